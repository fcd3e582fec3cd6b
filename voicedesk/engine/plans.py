"""Plan tiers, resource quotas and feature flags.

Quota checks are advisory counts: callers read the current count and compare
it against the limit with no reservation, so two concurrent creations can both
pass. Limits are soft business caps.
"""

from dataclasses import dataclass
from typing import Literal

from voicedesk.errors import FeatureNotAvailable, QuotaExceeded

ResourceType = Literal[
    "maxUsers", "maxAgents", "maxPhoneNumbers", "maxCallsPerMonth", "maxCampaigns"
]

UNLIMITED = -1
ALL_FEATURES = "all_features"

PLAN_LIMITS: dict[str, dict] = {
    "starter": {
        "maxUsers": 3,
        "maxAgents": 5,
        "maxPhoneNumbers": 1,
        "maxCallsPerMonth": 100,
        "maxCampaigns": 2,
        "features": ["basic_analytics", "email_support"],
    },
    "pro": {
        "maxUsers": 10,
        "maxAgents": 20,
        "maxPhoneNumbers": 5,
        "maxCallsPerMonth": 1000,
        "maxCampaigns": 10,
        "features": ["advanced_analytics", "priority_support", "api_access", "webhooks"],
    },
    "enterprise": {
        "maxUsers": UNLIMITED,
        "maxAgents": UNLIMITED,
        "maxPhoneNumbers": UNLIMITED,
        "maxCallsPerMonth": UNLIMITED,
        "maxCampaigns": UNLIMITED,
        "features": [ALL_FEATURES, "dedicated_support", "custom_integration", "sla"],
    },
}

DEFAULT_PLAN = "starter"


@dataclass(frozen=True)
class QuotaDecision:
    allowed: bool
    limit: int
    message: str | None = None


def get_plan_limits(plan: str) -> dict:
    """Limits for ``plan``; unknown plans get the lowest tier."""
    return PLAN_LIMITS.get(plan, PLAN_LIMITS[DEFAULT_PLAN])


def can_create_resource(
    current_count: int, plan: str, resource_type: ResourceType
) -> QuotaDecision:
    """Decide whether one more ``resource_type`` fits in ``plan``."""
    limit = get_plan_limits(plan)[resource_type]
    if limit == UNLIMITED:
        return QuotaDecision(allowed=True, limit=UNLIMITED)
    if current_count >= limit:
        return QuotaDecision(
            allowed=False,
            limit=limit,
            message=(
                f"Plan limit reached. Your {plan} plan allows {limit} {resource_type}. "
                "Upgrade to create more."
            ),
        )
    return QuotaDecision(allowed=True, limit=limit)


def ensure_can_create(current_count: int, plan: str, resource_type: ResourceType) -> None:
    """Raise QuotaExceeded when ``can_create_resource`` denies."""
    decision = can_create_resource(current_count, plan, resource_type)
    if not decision.allowed:
        raise QuotaExceeded(
            decision.message, current_count=current_count, limit=decision.limit, plan=plan
        )


def has_feature(plan: str, feature: str) -> bool:
    features = get_plan_limits(plan)["features"]
    return feature in features or ALL_FEATURES in features


def ensure_feature(plan: str, feature: str, message: str | None = None) -> None:
    if not has_feature(plan, feature):
        raise FeatureNotAvailable(message)
