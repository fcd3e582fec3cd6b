"""Super-admin endpoints - tenants, users, impersonation."""

import logging

from fastapi import APIRouter, Request, status
from sqlalchemy import select

from voicedesk.auth.middleware import SuperAdminDep
from voicedesk.auth.security import hash_password
from voicedesk.database import DbSession
from voicedesk.engine.plans import get_plan_limits
from voicedesk.errors import Conflict, NotFound
from voicedesk.models import Tenant, User
from voicedesk.schemas.admin import (
    AdminCreateUserRequest,
    AdminUpdateUserRequest,
    CreateTenantRequest,
    StopImpersonationRequest,
    UpdateTenantRequest,
)
from voicedesk.schemas.auth import TenantOut, UserOut
from voicedesk.services import tenants as tenant_service
from voicedesk.storage.repositories import get_user_by_email, usage_for_tenant

logger = logging.getLogger(__name__)

router = APIRouter()

# usage key -> plan limit key
USAGE_LIMIT_KEYS = {
    "users": "maxUsers",
    "agents": "maxAgents",
    "phoneNumbers": "maxPhoneNumbers",
    "campaigns": "maxCampaigns",
    "executions": "maxCallsPerMonth",
}


def _tenant_json(tenant: Tenant) -> dict:
    return TenantOut.model_validate(tenant).model_dump(mode="json")


def _user_json(user: User) -> dict:
    return UserOut.model_validate(user).model_dump(mode="json")


async def _get_tenant(db: DbSession, tenant_id: int) -> Tenant:
    tenant = await db.get(Tenant, tenant_id)
    if not tenant:
        raise NotFound("Tenant not found")
    return tenant


@router.get("/tenants")
async def list_tenants(admin: SuperAdminDep, db: DbSession):
    result = await db.execute(select(Tenant).order_by(Tenant.created_at.desc(), Tenant.id.desc()))
    return [_tenant_json(t) for t in result.scalars().all()]


@router.post("/tenants", status_code=status.HTTP_201_CREATED)
async def create_tenant(
    body: CreateTenantRequest, admin: SuperAdminDep, request: Request, db: DbSession
):
    """Create a tenant with its first admin, provisioning a provider sub-account if needed."""
    tenant, tenant_admin = await tenant_service.create_tenant(db, request.app.state.provider, body)
    return {"tenant": _tenant_json(tenant), "admin": _user_json(tenant_admin)}


@router.get("/tenants/{tenant_id}")
async def get_tenant(tenant_id: int, admin: SuperAdminDep, db: DbSession):
    """Tenant with per-resource usage against its plan."""
    tenant = await _get_tenant(db, tenant_id)
    limits = get_plan_limits(tenant.plan)
    counts = await usage_for_tenant(db, tenant.id)
    usage = {
        name: {"current": counts[name], "limit": limits[limit_key]}
        for name, limit_key in USAGE_LIMIT_KEYS.items()
    }
    return {"tenant": _tenant_json(tenant), "usage": usage, "planLimits": limits}


@router.patch("/tenants/{tenant_id}")
async def update_tenant(
    tenant_id: int, body: UpdateTenantRequest, admin: SuperAdminDep, db: DbSession
):
    tenant = await tenant_service.update_tenant(db, tenant_id, body)
    logger.info("Admin %s updated tenant %s", admin.id, tenant.id)
    return {"tenant": _tenant_json(tenant)}


@router.get("/tenants/{tenant_id}/users")
async def list_tenant_users(tenant_id: int, admin: SuperAdminDep, db: DbSession):
    result = await db.execute(
        select(User).where(User.tenant_id == tenant_id).order_by(User.created_at.desc())
    )
    return [_user_json(u) for u in result.scalars().all()]


@router.post("/users", status_code=status.HTTP_201_CREATED)
async def create_user(body: AdminCreateUserRequest, admin: SuperAdminDep, db: DbSession):
    """Create a user in any tenant."""
    await _get_tenant(db, body.tenant_id)
    if await get_user_by_email(db, body.email):
        raise Conflict("Email already in use")
    user = User(
        tenant_id=body.tenant_id,
        name=body.name,
        email=body.email,
        password_hash=hash_password(body.password),
        role=body.role,
        status="active",
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return _user_json(user)


@router.patch("/users/{user_id}")
async def update_user(
    user_id: int, body: AdminUpdateUserRequest, admin: SuperAdminDep, db: DbSession
):
    user = await db.get(User, user_id)
    if not user:
        raise NotFound("User not found")
    if body.email and body.email != user.email:
        if await get_user_by_email(db, body.email):
            raise Conflict("Email already in use")
        user.email = body.email
    if body.name:
        user.name = body.name
    if body.role:
        user.role = body.role
    if body.status:
        user.status = body.status
    await db.commit()
    await db.refresh(user)
    return _user_json(user)


@router.post("/tenants/{tenant_id}/impersonate")
async def impersonate(tenant_id: int, admin: SuperAdminDep, db: DbSession):
    """Short-lived token for the tenant's admin; the audit entry is written first."""
    return await tenant_service.start_impersonation(db, admin, tenant_id)


@router.post("/impersonation/stop")
async def stop_impersonation(
    admin: SuperAdminDep, db: DbSession, body: StopImpersonationRequest | None = None
):
    return await tenant_service.stop_impersonation(db, admin, body or StopImpersonationRequest())
