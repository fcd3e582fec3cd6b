"""Login endpoints for super admins and tenant users."""

import logging

from fastapi import APIRouter, Request
from sqlalchemy import select

from voicedesk.auth.middleware import SuperAdminDep, TenantUserDep
from voicedesk.auth.security import TokenPayload, compare_password, issue_token
from voicedesk.database import DbSession
from voicedesk.errors import NotFound, ProviderError, Unauthorized
from voicedesk.models import SuperAdmin, Tenant, User
from voicedesk.provider.deps import ensure_configured
from voicedesk.schemas.auth import (
    AdminSummary,
    LoginRequest,
    TenantOut,
    TenantSummary,
    UserOut,
    UserSummary,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def _tenant_session(user: User, tenant: Tenant) -> dict:
    if tenant.status != "active":
        raise Unauthorized("Account suspended")
    token = issue_token(
        TokenPayload(subject_id=user.id, subject_type="tenant_user", tenant_id=tenant.id)
    )
    return {
        "token": token,
        "user": UserSummary.model_validate(user).model_dump(),
        "tenant": TenantSummary.model_validate(tenant).model_dump(),
    }


@router.post("/super-admin/login")
async def super_admin_login(body: LoginRequest, db: DbSession):
    """Exchange super-admin credentials for a bearer token."""
    result = await db.execute(select(SuperAdmin).where(SuperAdmin.email == body.email))
    admin = result.scalar_one_or_none()
    if not admin or not compare_password(body.password, admin.password_hash):
        logger.info("Rejected super admin login for %s", body.email)
        raise Unauthorized("Invalid credentials")
    token = issue_token(TokenPayload(subject_id=admin.id, subject_type="super_admin"))
    return {"token": token, "admin": AdminSummary.model_validate(admin).model_dump()}


@router.get("/super-admin/me")
async def super_admin_me(admin: SuperAdminDep):
    return {"admin": AdminSummary.model_validate(admin).model_dump()}


@router.post("/tenants/{slug}/login")
async def tenant_login(slug: str, body: LoginRequest, db: DbSession):
    """Tenant-scoped login: the user must belong to the tenant named by ``slug``."""
    result = await db.execute(select(Tenant).where(Tenant.slug == slug.strip()))
    tenant = result.scalar_one_or_none()
    if not tenant:
        raise NotFound("Tenant not found")
    result = await db.execute(
        select(User).where(
            User.email == body.email, User.tenant_id == tenant.id, User.status == "active"
        )
    )
    user = result.scalar_one_or_none()
    if not user or not compare_password(body.password, user.password_hash):
        raise Unauthorized("Invalid credentials")
    return _tenant_session(user, tenant)


@router.post("/auth/login")
async def login(body: LoginRequest, db: DbSession):
    """Login by globally unique email."""
    result = await db.execute(
        select(User, Tenant)
        .join(Tenant, User.tenant_id == Tenant.id)
        .where(User.email == body.email, User.status == "active")
    )
    row = result.one_or_none()
    if not row or not compare_password(body.password, row[0].password_hash):
        raise Unauthorized("Invalid credentials")
    user, tenant = row
    return _tenant_session(user, tenant)


@router.get("/auth/me")
async def me(ctx: TenantUserDep, request: Request, db: DbSession):
    """Current user and tenant, enriched with wallet data when the provider answers."""
    response = {
        "user": UserOut.model_validate(ctx.user).model_dump(mode="json"),
        "tenant": TenantOut.model_validate(ctx.tenant).model_dump(mode="json"),
    }
    try:
        provider = await ensure_configured(request.app.state.provider, db)
        account = await provider.get_account_info(ctx.sub_account_id)
    except ProviderError as e:
        logger.info("Account info unavailable for tenant %s: %s", ctx.tenant.id, e.message)
        return response

    response.update(
        {
            "wallet": account.get("wallet") or 0,
            "concurrency": account.get("concurrency") or {"max": 0, "current": 0},
            "pricing": account.get("pricing"),
            "credit_limit": account.get("credit_limit"),
            "bypass_compliance": bool(account.get("bypass_compliance")),
            "tier_plan": account.get("tier_plan"),
        }
    )
    return response
