"""Login payloads and the public views of accounts."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class LoginRequest(BaseModel):
    """POST /api/super-admin/login, /api/auth/login, /api/tenants/{slug}/login."""

    email: str = Field(min_length=3, pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
    password: str = Field(min_length=6)


class AdminSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    email: str


class UserSummary(AdminSummary):
    role: str


class TenantSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    slug: str
    plan: str


class UserOut(BaseModel):
    """Tenant user without its password hash."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    tenant_id: int
    name: str
    email: str
    role: str
    status: str
    created_at: datetime | None = None


class TenantOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    slug: str
    bolna_sub_account_id: str
    plan: str
    status: str
    settings: dict[str, Any] = {}
    created_at: datetime | None = None
