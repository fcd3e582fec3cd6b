"""Bearer-token guards for super admins and tenant users."""

from dataclasses import dataclass
from typing import Annotated

from fastapi import Depends, Request
from fastapi.security import APIKeyHeader
from sqlalchemy import select

from voicedesk.auth.security import TokenPayload, verify_token
from voicedesk.database import DbSession
from voicedesk.errors import Forbidden, InvalidToken, Unauthorized
from voicedesk.models import SuperAdmin, Tenant, User

API_KEY_HEADER = APIKeyHeader(name="Authorization", auto_error=False)


@dataclass
class TenantContext:
    """Authenticated tenant user together with its (active) tenant."""

    user: User
    tenant: Tenant
    token: TokenPayload

    @property
    def sub_account_id(self) -> str:
        return self.tenant.bolna_sub_account_id


def _bearer_token(auth_header: str | None) -> str:
    if not auth_header or not auth_header.startswith("Bearer "):
        raise Unauthorized("No token provided")
    token = auth_header[7:].strip()
    if not token:
        raise Unauthorized("No token provided")
    return token


async def get_current_super_admin(
    request: Request,
    db: DbSession,
    auth_header: str | None = Depends(API_KEY_HEADER),
) -> SuperAdmin:
    """Resolve the super admin behind the bearer token."""
    payload = verify_token(_bearer_token(auth_header))
    if payload.subject_type != "super_admin":
        raise Unauthorized("Super admin access required")
    admin = await db.get(SuperAdmin, payload.subject_id)
    if not admin:
        raise Unauthorized("Super admin not found")
    request.state.super_admin = admin
    return admin


async def get_current_tenant_user(
    request: Request,
    db: DbSession,
    auth_header: str | None = Depends(API_KEY_HEADER),
) -> TenantContext:
    """Resolve the active user and active tenant behind the bearer token."""
    payload = verify_token(_bearer_token(auth_header))
    if payload.subject_type != "tenant_user":
        raise InvalidToken("Tenant access required")
    result = await db.execute(
        select(User, Tenant)
        .join(Tenant, User.tenant_id == Tenant.id)
        .where(User.id == payload.subject_id, User.status == "active")
    )
    row = result.one_or_none()
    if not row:
        raise Unauthorized("User not found or inactive")
    user, tenant = row
    if tenant.status != "active":
        raise Unauthorized("Tenant suspended")
    ctx = TenantContext(user=user, tenant=tenant, token=payload)
    request.state.tenant_context = ctx
    return ctx


# Type aliases for dependency injection
SuperAdminDep = Annotated[SuperAdmin, Depends(get_current_super_admin)]
TenantUserDep = Annotated[TenantContext, Depends(get_current_tenant_user)]


def require_role(*roles: str):
    """Dependency factory: tenant user whose role is in ``roles``."""

    async def role_checker(ctx: TenantUserDep) -> TenantContext:
        if ctx.user.role not in roles:
            raise Forbidden("Insufficient permissions")
        return ctx

    return role_checker


AdminDep = Annotated[TenantContext, Depends(require_role("admin"))]
ManagerDep = Annotated[TenantContext, Depends(require_role("admin", "manager"))]
