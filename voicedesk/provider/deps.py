"""FastAPI dependency exposing the process-wide provider client."""

from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from voicedesk.config import settings
from voicedesk.database import DbSession
from voicedesk.errors import ProviderNotConfigured
from voicedesk.provider.client import BolnaClient
from voicedesk.storage.repositories import get_api_key


async def ensure_configured(client: BolnaClient, db: AsyncSession) -> BolnaClient:
    """Load the stored API key into ``client`` if it has none yet."""
    if not client.is_configured:
        api_key = await get_api_key(db, settings.provider_api_key_name)
        if not api_key:
            raise ProviderNotConfigured()
        await client.configure(api_key)
    return client


async def get_provider(request: Request, db: DbSession) -> BolnaClient:
    return await ensure_configured(request.app.state.provider, db)


ProviderDep = Annotated[BolnaClient, Depends(get_provider)]
