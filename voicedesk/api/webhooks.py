"""Inbound provider webhook."""

import json
import logging

from fastapi import APIRouter, Request

from voicedesk.config import settings
from voicedesk.database import DbSession
from voicedesk.errors import ValidationError
from voicedesk.services.webhooks import (
    SIGNATURE_HEADER,
    process_provider_webhook,
    verify_signature,
)

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/bolna")
async def provider_webhook(request: Request, db: DbSession):
    """Verify the HMAC over the raw body, then upsert the execution."""
    body = await request.body()
    verify_signature(settings.bolna_webhook_secret, body, request.headers.get(SIGNATURE_HEADER))
    try:
        payload = json.loads(body or b"{}")
    except json.JSONDecodeError as e:
        raise ValidationError("Invalid JSON body") from e
    result = await process_provider_webhook(db, payload)
    return {"message": "ok", **result}
