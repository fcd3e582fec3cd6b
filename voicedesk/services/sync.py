"""Reconcile a tenant's local caches with the provider.

Deletions are committed one at a time, so a failure part-way through leaves
earlier deletions in place. Execution import commits per agent and a failing
agent is logged and skipped.
"""

import logging

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from voicedesk.config import settings
from voicedesk.models import Agent, Execution, PhoneNumber, User
from voicedesk.provider.client import BolnaClient, ExecutionFilters, as_list
from voicedesk.storage.repositories import get_execution_by_external_id

logger = logging.getLogger(__name__)

EXECUTION_PAGE_SIZE = 100


def _upstream_ids(items: list, *keys: str) -> set[str]:
    ids = set()
    for item in items:
        if not isinstance(item, dict):
            continue
        for key in keys:
            if item.get(key):
                ids.add(str(item[key]))
                break
    return ids


async def _delete_row(db: AsyncSession, model, row_id: int) -> None:
    await db.execute(delete(model).where(model.id == row_id))
    await db.commit()


def _is_disposable_user(user: User) -> bool:
    marker = settings.sync_test_user_marker
    return user.status == "inactive" or bool(marker and marker in user.email)


async def sync_agents_with_provider(
    db: AsyncSession, provider: BolnaClient, tenant_id: int, sub_account_id: str
) -> dict[str, int]:
    """Drop local agents/phones missing upstream, purge stale users, import executions."""
    upstream_agents = _upstream_ids(
        as_list(await provider.list_agents(sub_account_id)), "agent_id", "id"
    )
    result = await db.execute(select(Agent).where(Agent.tenant_id == tenant_id))
    deleted_agents = 0
    for agent in result.scalars().all():
        if agent.bolna_agent_id not in upstream_agents:
            await _delete_row(db, Agent, agent.id)
            logger.info("Deleted orphaned agent %s (%s)", agent.agent_name, agent.bolna_agent_id)
            deleted_agents += 1

    upstream_phones = _upstream_ids(
        as_list(await provider.list_phone_numbers(sub_account_id)), "phone_number_id", "id"
    )
    result = await db.execute(select(PhoneNumber).where(PhoneNumber.tenant_id == tenant_id))
    deleted_phones = 0
    for phone in result.scalars().all():
        if phone.bolna_phone_id not in upstream_phones:
            await _delete_row(db, PhoneNumber, phone.id)
            logger.info("Deleted orphaned phone %s (%s)", phone.phone_number, phone.bolna_phone_id)
            deleted_phones += 1

    deleted_users = 0
    if settings.sync_purge_users:
        result = await db.execute(select(User).where(User.tenant_id == tenant_id))
        for user in result.scalars().all():
            if _is_disposable_user(user):
                await _delete_row(db, User, user.id)
                logger.info("Deleted inactive/test user %s", user.email)
                deleted_users += 1

    executions = await sync_executions_with_provider(db, provider, tenant_id, sub_account_id)

    logger.info(
        "Sync completed for tenant %s: %d agents, %d phones, %d users deleted, %d executions synced",
        tenant_id, deleted_agents, deleted_phones, deleted_users, executions["syncedCount"],
    )
    return {
        "success": True,
        "deletedAgents": deleted_agents,
        "deletedPhones": deleted_phones,
        "deletedUsers": deleted_users,
        "syncedExecutions": executions["syncedCount"],
    }


async def _import_agent_executions(
    db: AsyncSession,
    provider: BolnaClient,
    tenant_id: int,
    agent_id: int,
    bolna_agent_id: str,
    sub_account_id: str,
) -> int:
    page = await provider.fetch_executions(
        bolna_agent_id,
        sub_account_id,
        ExecutionFilters(page_number=1, page_size=EXECUTION_PAGE_SIZE),
    )
    records = page.get("data") if isinstance(page, dict) else None
    inserted = 0
    seen: set[str] = set()
    for record in records or []:
        execution_id = record.get("id") or record.get("execution_id")
        if not execution_id:
            continue
        execution_id = str(execution_id)
        if execution_id in seen or await get_execution_by_external_id(db, execution_id):
            continue
        seen.add(execution_id)
        duration = record.get("conversation_time") or record.get("duration")
        db.add(
            Execution(
                tenant_id=tenant_id,
                agent_id=agent_id,
                bolna_execution_id=execution_id,
                transcript=record.get("transcript") or "",
                recording_url=record.get("recording_url") or None,
                duration=str(duration) if duration is not None else None,
            )
        )
        inserted += 1
    await db.commit()
    return inserted


async def sync_executions_with_provider(
    db: AsyncSession, provider: BolnaClient, tenant_id: int, sub_account_id: str
) -> dict[str, int]:
    """Import upstream executions (first page per agent) not yet stored locally."""
    # plain rows: a rollback expires ORM instances
    result = await db.execute(
        select(Agent.id, Agent.bolna_agent_id).where(Agent.tenant_id == tenant_id)
    )
    synced = 0
    for agent_id, bolna_agent_id in result.all():
        try:
            synced += await _import_agent_executions(
                db, provider, tenant_id, agent_id, bolna_agent_id, sub_account_id
            )
        except Exception:
            await db.rollback()
            logger.warning("Error syncing executions for agent %s", bolna_agent_id, exc_info=True)
    logger.info("Synced %d executions for tenant %s", synced, tenant_id)
    return {"success": True, "syncedCount": synced}
