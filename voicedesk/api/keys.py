"""Shared credential store endpoints."""

import logging

from fastapi import APIRouter, Request

from voicedesk.auth.middleware import SuperAdminDep
from voicedesk.config import settings
from voicedesk.database import DbSession
from voicedesk.schemas.admin import SaveKeyRequest
from voicedesk.storage.repositories import get_api_key, save_api_key

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/{key}")
async def key_exists(key: str, db: DbSession):
    """Presence flag only; the stored value is never returned."""
    return {"value": bool(await get_api_key(db, key))}


@router.post("")
async def save_key(body: SaveKeyRequest, admin: SuperAdminDep, request: Request, db: DbSession):
    """Store a credential; saving the provider key reconfigures the live client."""
    saved = await save_api_key(db, body.key, body.value)
    if body.key == settings.provider_api_key_name:
        await request.app.state.provider.configure(body.value)
    logger.info("Saved key %s by admin %s", saved.key, admin.email)
    return {"key": saved.key, "updatedAt": saved.updated_at}
