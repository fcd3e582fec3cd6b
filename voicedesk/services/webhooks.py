"""Inbound provider webhook: signature check and execution upsert."""

import hashlib
import hmac
import logging
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from voicedesk.errors import NotFound, Unauthorized, ValidationError
from voicedesk.models import Execution
from voicedesk.schemas.tenant import ExecutionOut
from voicedesk.schemas.webhook import WebhookEvent
from voicedesk.storage.repositories import (
    get_agent_by_external_id,
    get_execution_by_external_id,
)

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "x-bolna-signature"


def compute_signature(secret: str, body: bytes) -> str:
    return hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()


def verify_signature(secret: str | None, body: bytes, signature: str | None) -> None:
    """Require a hex HMAC-SHA256 of the raw body when a secret is configured."""
    if not secret:
        return
    if not signature:
        raise Unauthorized("Missing webhook signature")
    expected = compute_signature(secret, body)
    if not hmac.compare_digest(expected, signature.strip().lower()):
        raise Unauthorized("Invalid webhook signature")


async def process_provider_webhook(db: AsyncSession, payload: Any) -> dict[str, Any]:
    """Insert or update the Execution keyed by the provider's execution id.

    Nothing is written unless both ids resolve and the agent is known.
    """
    if not isinstance(payload, dict):
        raise ValidationError("Missing execution or agent id")
    event = WebhookEvent.from_payload(payload)
    if not event.execution_id or not event.agent_id:
        raise ValidationError("Missing execution or agent id")

    agent = await get_agent_by_external_id(db, event.agent_id)
    if not agent:
        raise NotFound("Agent not found")

    existing = await get_execution_by_external_id(db, event.execution_id)
    if existing:
        existing.transcript = event.transcript
        existing.recording_url = event.recording_url
        existing.duration = event.duration
        await db.commit()
        logger.info("Webhook updated execution %s", event.execution_id)
        return {"updated": True}

    inserted = Execution(
        tenant_id=agent.tenant_id,
        agent_id=agent.id,
        bolna_execution_id=event.execution_id,
        transcript=event.transcript,
        recording_url=event.recording_url,
        duration=event.duration,
    )
    db.add(inserted)
    await db.commit()
    await db.refresh(inserted)
    logger.info("Webhook inserted execution %s for agent %s", event.execution_id, event.agent_id)
    return {"inserted": ExecutionOut.model_validate(inserted).model_dump(mode="json")}
