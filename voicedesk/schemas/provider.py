"""Request bodies forwarded to the voice provider."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class AgentPayload(BaseModel):
    """v2 agent definition; everything beyond the two top-level blobs passes through."""

    model_config = ConfigDict(extra="allow")

    agent_config: dict[str, Any]
    agent_prompts: dict[str, Any]


class AgentPatch(BaseModel):
    model_config = ConfigDict(extra="allow")

    agent_config: dict[str, Any] | None = None
    agent_prompts: dict[str, Any] | None = None


class MakeCallRequest(BaseModel):
    model_config = ConfigDict(extra="allow")

    agent_id: str = Field(min_length=1)
    recipient_phone_number: str = Field(min_length=1)
    from_phone_number: str | None = None
    user_data: dict[str, Any] | None = None


class CustomModelRequest(BaseModel):
    custom_model_name: str = Field(min_length=1)
    custom_model_url: str = Field(min_length=1)


class InboundSetupRequest(BaseModel):
    agent_id: str = Field(min_length=1)
    phone_number_id: str = Field(min_length=1)
    ivr_config: dict[str, Any] | None = None


class InboundUnlinkRequest(BaseModel):
    phone_number_id: str = Field(min_length=1)


class BuyPhoneNumberRequest(BaseModel):
    country: str = Field(min_length=1)
    phone_number: str = Field(min_length=1)


class ScheduleBatchRequest(BaseModel):
    scheduled_at: str = Field(min_length=1)
    bypass_call_guardrails: bool = False
