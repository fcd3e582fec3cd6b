"""Database models."""

from voicedesk.models.tenant import SuperAdmin, Tenant, User
from voicedesk.models.agent import Agent, Campaign, Execution, PhoneNumber
from voicedesk.models.audit import AdminAuditLog, ApiConfiguration

__all__ = [
    "SuperAdmin",
    "Tenant",
    "User",
    "Agent",
    "Campaign",
    "Execution",
    "PhoneNumber",
    "AdminAuditLog",
    "ApiConfiguration",
]
