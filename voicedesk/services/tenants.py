"""Tenant provisioning, plan/status updates and audited impersonation."""

import logging
import time
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from voicedesk.auth.security import hash_password, issue_impersonation_token
from voicedesk.errors import Conflict, InternalError, NotFound, ProviderError
from voicedesk.models import AdminAuditLog, SuperAdmin, Tenant, User
from voicedesk.provider.client import BolnaClient
from voicedesk.provider.deps import ensure_configured
from voicedesk.schemas.admin import (
    CreateTenantRequest,
    StopImpersonationRequest,
    UpdateTenantRequest,
)
from voicedesk.schemas.auth import TenantSummary, UserSummary
from voicedesk.storage.repositories import (
    get_tenant_by_slug,
    get_tenant_by_sub_account,
    get_user_by_email,
)

logger = logging.getLogger(__name__)

SUB_ACCOUNT_TAKEN = "Provider sub-account already linked to another tenant"


def is_enterprise_restriction(error: ProviderError) -> bool:
    """Provider refused programmatic sub-account creation for this account tier."""
    message = (error.message or "").lower()
    return (
        error.status_code == 403
        or "not available" in message
        or "contact support" in message
    )


def placeholder_sub_account_id(slug: str) -> str:
    return f"internal-{slug}-{int(time.time() * 1000)}"


async def _ensure_sub_account_free(db: AsyncSession, sub_account_id: str) -> None:
    if await get_tenant_by_sub_account(db, sub_account_id):
        raise Conflict(SUB_ACCOUNT_TAKEN)


async def _resolve_sub_account(
    db: AsyncSession, provider: BolnaClient, body: CreateTenantRequest
) -> tuple[str, dict[str, Any]]:
    """Sub-account id for a new tenant plus any settings flags it implies."""
    if body.sub_account_id:
        await _ensure_sub_account_free(db, body.sub_account_id)
        logger.info("Using provided sub-account %s for %s", body.sub_account_id, body.slug)
        return body.sub_account_id, {}

    try:
        await ensure_configured(provider, db)
        created = await provider.create_sub_account(body.name, body.admin_email)
    except ProviderError as e:
        if not is_enterprise_restriction(e):
            raise
        sub_account_id = placeholder_sub_account_id(body.slug)
        logger.warning(
            "Sub-account creation refused (%s); using placeholder %s", e.message, sub_account_id
        )
        return sub_account_id, {"pending_subaccount": True, "pending_reason": e.message}

    sub_account_id = (created or {}).get("sub_account_id") or (created or {}).get("id")
    if not sub_account_id:
        raise InternalError("Failed to create provider sub-account")
    sub_account_id = str(sub_account_id)
    await _ensure_sub_account_free(db, sub_account_id)
    return sub_account_id, {}


async def create_tenant(
    db: AsyncSession, provider: BolnaClient, body: CreateTenantRequest
) -> tuple[Tenant, User]:
    """Create a tenant and its first admin user atomically."""
    if await get_tenant_by_slug(db, body.slug):
        raise Conflict("Tenant slug already exists")
    if await get_user_by_email(db, body.admin_email):
        raise Conflict("Admin email already in use")

    sub_account_id, tenant_settings = await _resolve_sub_account(db, provider, body)

    tenant = Tenant(
        name=body.name,
        slug=body.slug,
        bolna_sub_account_id=sub_account_id,
        plan=body.plan,
        status="active",
        settings=tenant_settings,
    )
    try:
        db.add(tenant)
        await db.flush()
        admin = User(
            tenant_id=tenant.id,
            name=body.admin_name,
            email=body.admin_email,
            password_hash=hash_password(body.admin_password),
            role="admin",
            status="active",
        )
        db.add(admin)
        await db.commit()
    except IntegrityError as e:
        await db.rollback()
        raise Conflict("Tenant, admin email or sub-account already exists") from e
    except Exception:
        await db.rollback()
        raise

    await db.refresh(tenant)
    await db.refresh(admin)
    logger.info("Created tenant %s (%s) on plan %s", tenant.id, tenant.slug, tenant.plan)
    return tenant, admin


async def update_tenant(db: AsyncSession, tenant_id: int, body: UpdateTenantRequest) -> Tenant:
    """Change plan/status; linking a sub-account clears the pending flags."""
    tenant = await db.get(Tenant, tenant_id)
    if not tenant:
        raise NotFound("Tenant not found")

    if body.plan:
        tenant.plan = body.plan
    if body.status:
        tenant.status = body.status
    sub_account_id = (body.sub_account_id or "").strip()
    if sub_account_id:
        existing = await get_tenant_by_sub_account(db, sub_account_id)
        if existing and existing.id != tenant.id:
            raise Conflict(SUB_ACCOUNT_TAKEN)
        tenant.bolna_sub_account_id = sub_account_id
        tenant.settings = {
            k: v
            for k, v in (tenant.settings or {}).items()
            if k not in ("pending_subaccount", "pending_reason")
        }

    await db.commit()
    await db.refresh(tenant)
    return tenant


async def start_impersonation(
    db: AsyncSession, admin: SuperAdmin, tenant_id: int
) -> dict[str, Any]:
    """Record the audit event, then mint a short-lived token for the tenant's admin."""
    tenant = await db.get(Tenant, tenant_id)
    if not tenant:
        raise NotFound("Tenant not found")

    result = await db.execute(
        select(User)
        .where(User.tenant_id == tenant_id, User.role == "admin", User.status == "active")
        .order_by(User.id)
        .limit(1)
    )
    target = result.scalar_one_or_none()
    if not target:
        raise NotFound("No active admin user for tenant")

    db.add(
        AdminAuditLog(
            action="impersonation_start",
            admin_id=target.id,
            impersonator_id=admin.id,
            tenant_id=tenant.id,
            details={"by": admin.email},
        )
    )
    await db.commit()

    token = issue_impersonation_token(target.id, tenant.id, admin.id)
    logger.info("Super admin %s impersonating user %s of tenant %s", admin.id, target.id, tenant.id)
    return {
        "token": token,
        "user": UserSummary.model_validate(target).model_dump(),
        "tenant": TenantSummary.model_validate(tenant).model_dump(),
    }


async def stop_impersonation(
    db: AsyncSession, admin: SuperAdmin, body: StopImpersonationRequest
) -> dict[str, Any]:
    db.add(
        AdminAuditLog(
            action="impersonation_end",
            admin_id=body.admin_id,
            impersonator_id=admin.id,
            tenant_id=body.tenant_id,
            details={"by": admin.email},
        )
    )
    await db.commit()
    return {"ok": True}
