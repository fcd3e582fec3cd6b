"""Agent proxy endpoints under /api/bolna/agents."""

import logging
from typing import Annotated

from fastapi import APIRouter, Query, Response, status
from sqlalchemy import select

from voicedesk.auth.middleware import ManagerDep, TenantUserDep
from voicedesk.database import DbSession
from voicedesk.models import Agent
from voicedesk.provider.client import ExecutionFilters
from voicedesk.provider.deps import ProviderDep
from voicedesk.schemas.provider import AgentPatch, AgentPayload
from voicedesk.schemas.tenant import AgentOut
from voicedesk.services import agents as agent_service
from voicedesk.utils.export import executions_to_csv

logger = logging.getLogger(__name__)

router = APIRouter()

EXPORT_PAGE_SIZE = 100


def _filter(value: str | None) -> str | None:
    """Drop empty and "all" filter values."""
    if not value or value == "all":
        return None
    return value


def _voicemail_flag(value: str | None) -> bool | None:
    if value == "true":
        return True
    if value == "false":
        return False
    return None


async def _refresh_cache(db: DbSession, tenant_id: int, bolna_agent_id: str, payload: dict) -> None:
    result = await db.execute(
        select(Agent).where(Agent.tenant_id == tenant_id, Agent.bolna_agent_id == bolna_agent_id)
    )
    agent = result.scalar_one_or_none()
    if not agent:
        return
    config = payload.get("agent_config")
    if config:
        agent.agent_config = {**(agent.agent_config or {}), **config}
        if config.get("agent_name"):
            agent.agent_name = config["agent_name"]
    if payload.get("agent_prompts"):
        agent.agent_prompts = payload["agent_prompts"]
    await db.commit()


@router.get("/agents")
async def list_agents(ctx: TenantUserDep, provider: ProviderDep):
    return await provider.list_agents(ctx.sub_account_id)


@router.post("/agents", status_code=status.HTTP_201_CREATED)
async def create_agent(body: AgentPayload, ctx: ManagerDep, provider: ProviderDep, db: DbSession):
    """Create an agent upstream within the plan's agent limit."""
    agent = await agent_service.create_agent(db, provider, ctx, body.model_dump())
    return AgentOut.model_validate(agent).model_dump(mode="json")


@router.get("/agents/{agent_id}")
async def get_agent(agent_id: str, ctx: TenantUserDep, provider: ProviderDep):
    return await provider.get_agent(ctx.sub_account_id, agent_id)


@router.put("/agents/{agent_id}")
async def update_agent(
    agent_id: str, body: AgentPayload, ctx: ManagerDep, provider: ProviderDep, db: DbSession
):
    payload = body.model_dump()
    result = await provider.update_agent(ctx.sub_account_id, agent_id, payload)
    await _refresh_cache(db, ctx.tenant.id, agent_id, payload)
    return result


@router.patch("/agents/{agent_id}")
async def patch_agent(
    agent_id: str, body: AgentPatch, ctx: ManagerDep, provider: ProviderDep, db: DbSession
):
    payload = body.model_dump(exclude_none=True)
    result = await provider.patch_agent(ctx.sub_account_id, agent_id, payload)
    await _refresh_cache(db, ctx.tenant.id, agent_id, payload)
    return result


@router.delete("/agents/{agent_id}")
async def delete_agent(agent_id: str, ctx: ManagerDep, provider: ProviderDep, db: DbSession):
    result = await agent_service.delete_agent(db, provider, ctx, agent_id)
    return result or {"message": "Agent deleted"}


@router.get("/agents/{agent_id}/executions")
async def agent_executions(
    agent_id: str,
    ctx: TenantUserDep,
    provider: ProviderDep,
    page_number: int | None = None,
    page_size: int | None = None,
    status_filter: Annotated[str | None, Query(alias="status")] = None,
    call_type: str | None = None,
    provider_name: Annotated[str | None, Query(alias="provider")] = None,
    answered_by_voice_mail: str | None = None,
    batch_id: str | None = None,
    from_: Annotated[str | None, Query(alias="from")] = None,
    to: str | None = None,
):
    """One page of the agent's executions, filters passed through."""
    filters = ExecutionFilters(
        page_number=page_number,
        page_size=page_size,
        status=_filter(status_filter),
        call_type=_filter(call_type),
        provider=_filter(provider_name),
        answered_by_voice_mail=_voicemail_flag(answered_by_voice_mail),
        batch_id=_filter(batch_id),
        from_=from_,
        to=to,
    )
    return await provider.fetch_executions(agent_id, ctx.sub_account_id, filters) or {"data": []}


@router.post("/agents/{agent_id}/stop")
async def stop_agent(agent_id: str, ctx: TenantUserDep, provider: ProviderDep):
    """Stop all queued calls of the agent."""
    await provider.stop_agent(agent_id, ctx.sub_account_id)
    return {"ok": True}


@router.get("/agents/{agent_id}/export")
async def export_executions(
    agent_id: str,
    ctx: TenantUserDep,
    provider: ProviderDep,
    from_: Annotated[str | None, Query(alias="from")] = None,
    to: str | None = None,
):
    """Every upstream execution of the agent as CSV, following has_more pages."""
    filters = ExecutionFilters(page_number=1, page_size=EXPORT_PAGE_SIZE, from_=from_, to=to)
    records: list = []
    while True:
        page = await provider.fetch_executions(agent_id, ctx.sub_account_id, filters)
        if not isinstance(page, dict) or not page.get("data"):
            break
        records.extend(page["data"])
        if not page.get("has_more"):
            break
        filters.page_number += 1

    logger.info("Exporting %d executions for agent %s", len(records), agent_id)
    return Response(
        content=executions_to_csv(records),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="agent-{agent_id}-executions.csv"'},
    )


@router.get("/agents/{agent_id}/batches")
async def agent_batches(agent_id: str, ctx: TenantUserDep, provider: ProviderDep):
    return await provider.list_agent_batches(agent_id, ctx.sub_account_id) or []
