"""Tenant-scoped API schemas."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from voicedesk.schemas.admin import EMAIL_PATTERN, Role


class CreateUserRequest(BaseModel):
    """POST /api/tenant/users."""

    name: str = Field(min_length=1)
    email: str = Field(pattern=EMAIL_PATTERN)
    password: str = Field(min_length=6)
    role: Role = "agent"


class Contact(BaseModel):
    phone: str
    name: str | None = None
    metadata: dict[str, Any] | None = None


class CampaignSchedule(BaseModel):
    start_time: datetime | None = None
    timezone: str = "UTC"
    batch_size: int = 10
    delay_between_calls: int = 30  # seconds


class CreateCampaignRequest(BaseModel):
    """POST /api/tenant/campaigns."""

    name: str = Field(min_length=1)
    agent_id: int
    contacts: list[Contact]
    schedule: CampaignSchedule | None = None


class CreatePhoneNumberRequest(BaseModel):
    """POST /api/tenant/phone-numbers."""

    phone_number: str = Field(min_length=1)
    bolna_phone_id: str | None = None


class AgentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    tenant_id: int
    bolna_agent_id: str
    agent_name: str
    status: str
    agent_config: dict[str, Any]
    agent_prompts: dict[str, Any]
    created_at: datetime | None = None


class PhoneNumberOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    tenant_id: int
    bolna_phone_id: str | None
    phone_number: str
    status: str
    created_at: datetime | None = None


class CampaignOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    tenant_id: int
    agent_id: int
    name: str
    status: str
    contacts: list[Any]
    schedule: dict[str, Any]
    created_at: datetime | None = None


class ExecutionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    tenant_id: int
    agent_id: int
    bolna_execution_id: str
    transcript: str | None
    recording_url: str | None
    duration: str | None
    created_at: datetime | None = None
