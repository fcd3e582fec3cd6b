"""Catalog and account resources: knowledgebases, voices, models, phone numbers, inbound."""

import json
import logging
from typing import Any

from fastapi import APIRouter, Request
from starlette.datastructures import UploadFile

from voicedesk.auth.middleware import ManagerDep, TenantUserDep
from voicedesk.database import DbSession
from voicedesk.engine.plans import ensure_can_create
from voicedesk.errors import ValidationError
from voicedesk.models import PhoneNumber
from voicedesk.provider.deps import ProviderDep
from voicedesk.schemas.provider import (
    BuyPhoneNumberRequest,
    CustomModelRequest,
    InboundSetupRequest,
    InboundUnlinkRequest,
)
from voicedesk.storage.repositories import count_for_tenant

logger = logging.getLogger(__name__)

router = APIRouter()

KB_INT_OPTIONS = ("chunk_size", "similarity_top_k", "overlapping")


def _as_int(value: Any) -> int | None:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


async def _knowledgebase_input(request: Request) -> tuple[dict[str, Any], UploadFile | None]:
    """Form fields and optional upload from a multipart or JSON request."""
    content_type = request.headers.get("content-type", "")
    if content_type.startswith("multipart/form-data"):
        form = await request.form()
        upload = form.get("file")
        fields = {k: v for k, v in form.items() if isinstance(v, str)}
        return fields, upload if isinstance(upload, UploadFile) else None
    if content_type.startswith("application/json"):
        try:
            body = await request.json()
        except json.JSONDecodeError as e:
            raise ValidationError("Invalid JSON body") from e
        return (body if isinstance(body, dict) else {}), None
    return {}, None


# -- knowledgebases ---------------------------------------------------------


@router.get("/api/bolna/knowledgebase")
@router.get("/api/knowledgebase/all")
async def list_knowledgebases(ctx: TenantUserDep, provider: ProviderDep):
    return await provider.get_knowledgebases(ctx.sub_account_id) or []


@router.post("/api/bolna/knowledgebase")
async def create_knowledgebase(request: Request, ctx: TenantUserDep, provider: ProviderDep):
    """Ingest a knowledgebase from a URL (JSON or form field) or an uploaded file."""
    fields, upload = await _knowledgebase_input(request)
    content = await upload.read() if upload else None
    options = {name: _as_int(fields.get(name)) for name in KB_INT_OPTIONS}
    url = fields.get("url")
    return await provider.create_knowledgebase(
        ctx.sub_account_id,
        url=str(url) if url else None,
        file=content,
        filename=upload.filename if upload else None,
        knowledgebase_name=fields.get("knowledgebase_name"),
        **options,
    )


@router.delete("/api/bolna/knowledgebase/{rag_id}")
async def delete_knowledgebase(rag_id: str, ctx: TenantUserDep, provider: ProviderDep):
    result = await provider.delete_knowledgebase(ctx.sub_account_id, rag_id)
    return result or {"message": "Knowledgebase deleted successfully"}


# -- voices and models ------------------------------------------------------------


@router.get("/api/bolna/voices")
async def list_voices(ctx: TenantUserDep, provider: ProviderDep):
    return await provider.get_voices(ctx.sub_account_id) or []


@router.get("/user/model/all")
@router.get("/api/user/model/all")
@router.get("/api/bolna/models")
async def list_models(ctx: TenantUserDep, provider: ProviderDep):
    return await provider.get_models(ctx.sub_account_id) or {}


@router.post("/api/bolna/models/custom")
async def add_custom_model(body: CustomModelRequest, ctx: TenantUserDep, provider: ProviderDep):
    logger.info("Tenant %s registering custom model %s", ctx.tenant.id, body.custom_model_name)
    return await provider.add_custom_model(
        ctx.sub_account_id, body.custom_model_name, body.custom_model_url
    )


# -- phone numbers --------------------------------------------------------------


@router.get("/api/bolna/phone-numbers")
async def list_phone_numbers(ctx: TenantUserDep, provider: ProviderDep):
    return await provider.list_phone_numbers(ctx.sub_account_id) or []


@router.get("/api/bolna/phone-numbers/search")
async def search_phone_numbers(
    ctx: TenantUserDep,
    provider: ProviderDep,
    country: str | None = None,
    pattern: str | None = None,
):
    if not country:
        raise ValidationError("Missing required parameter: country")
    return await provider.search_phone_numbers(ctx.sub_account_id, country, pattern) or []


@router.post("/api/bolna/phone-numbers")
@router.post("/api/bolna/phone-numbers/buy")
async def buy_phone_number(
    body: BuyPhoneNumberRequest, ctx: ManagerDep, provider: ProviderDep, db: DbSession
):
    """Buy a number upstream within the plan's phone limit and cache it locally."""
    current = await count_for_tenant(db, PhoneNumber, ctx.tenant.id)
    ensure_can_create(current, ctx.tenant.plan, "maxPhoneNumbers")

    result = await provider.buy_phone_number(ctx.sub_account_id, body.country, body.phone_number)
    bought = result if isinstance(result, dict) else {}
    phone_id = bought.get("phone_number_id") or bought.get("id")
    db.add(
        PhoneNumber(
            tenant_id=ctx.tenant.id,
            bolna_phone_id=str(phone_id) if phone_id else None,
            phone_number=bought.get("phone_number") or body.phone_number,
            status="active",
        )
    )
    await db.commit()
    logger.info("Tenant %s bought phone number %s", ctx.tenant.id, body.phone_number)
    return result


# -- inbound ----------------------------------------------------------------------


@router.post("/api/bolna/inbound/setup")
async def setup_inbound(body: InboundSetupRequest, ctx: TenantUserDep, provider: ProviderDep):
    return await provider.setup_inbound_agent(
        ctx.sub_account_id, body.agent_id, body.phone_number_id, body.ivr_config
    )


@router.post("/api/bolna/inbound/unlink")
async def unlink_inbound(body: InboundUnlinkRequest, ctx: TenantUserDep, provider: ProviderDep):
    return await provider.unlink_inbound_agent(ctx.sub_account_id, body.phone_number_id)
