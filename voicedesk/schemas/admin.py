"""Super-admin API schemas."""

from typing import Literal

from pydantic import BaseModel, Field, field_validator

Plan = Literal["starter", "pro", "enterprise"]
Role = Literal["admin", "manager", "agent"]
TenantStatus = Literal["active", "suspended", "cancelled"]
UserStatus = Literal["active", "inactive"]

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


class CreateTenantRequest(BaseModel):
    """POST /api/super-admin/tenants - tenant plus its first admin user."""

    name: str = Field(min_length=1)
    slug: str = Field(min_length=1, pattern=r"^[a-z0-9-]+$")
    admin_name: str = Field(min_length=1)
    admin_email: str = Field(pattern=EMAIL_PATTERN)
    admin_password: str = Field(min_length=6)
    plan: Plan = "starter"
    # Existing provider sub-account to link instead of creating one
    sub_account_id: str | None = None

    @field_validator("sub_account_id", mode="after")
    @classmethod
    def blank_to_none(cls, v: str | None) -> str | None:
        if v is None:
            return None
        return v.strip() or None


class UpdateTenantRequest(BaseModel):
    """PATCH /api/super-admin/tenants/{id}."""

    plan: Plan | None = None
    status: TenantStatus | None = None
    sub_account_id: str | None = None


class AdminCreateUserRequest(BaseModel):
    """POST /api/super-admin/users - user in any tenant."""

    tenant_id: int
    name: str = Field(min_length=1)
    email: str = Field(pattern=EMAIL_PATTERN)
    password: str = Field(min_length=6)
    role: Role = "agent"


class AdminUpdateUserRequest(BaseModel):
    name: str | None = Field(default=None, min_length=1)
    email: str | None = Field(default=None, pattern=EMAIL_PATTERN)
    role: Role | None = None
    status: UserStatus | None = None


class StopImpersonationRequest(BaseModel):
    admin_id: int | None = None
    tenant_id: int | None = None


class SaveKeyRequest(BaseModel):
    """POST /api/keys."""

    key: str = Field(min_length=1)
    value: str = Field(min_length=1)
