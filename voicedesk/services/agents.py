"""Agent creation and removal, keeping the local cache behind the provider."""

import logging

from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession

from voicedesk.auth.middleware import TenantContext
from voicedesk.engine.plans import ensure_can_create
from voicedesk.errors import InternalError
from voicedesk.models import Agent
from voicedesk.provider.client import BolnaClient
from voicedesk.storage.repositories import count_for_tenant

logger = logging.getLogger(__name__)


async def create_agent(
    db: AsyncSession, provider: BolnaClient, ctx: TenantContext, payload: dict
) -> Agent:
    """Create the agent upstream, then cache it; nothing is stored if the provider refuses."""
    current = await count_for_tenant(db, Agent, ctx.tenant.id)
    ensure_can_create(current, ctx.tenant.plan, "maxAgents")

    created = await provider.create_agent(ctx.sub_account_id, payload)
    bolna_agent_id = (created or {}).get("agent_id") or (created or {}).get("id")
    if not bolna_agent_id:
        raise InternalError("Failed to create agent in provider")

    agent_config = payload["agent_config"]
    agent = Agent(
        tenant_id=ctx.tenant.id,
        bolna_agent_id=str(bolna_agent_id),
        agent_name=agent_config.get("agent_name") or str(bolna_agent_id),
        status="created",
        agent_config=agent_config,
        agent_prompts=payload["agent_prompts"],
    )
    db.add(agent)
    await db.commit()
    await db.refresh(agent)
    logger.info("Tenant %s created agent %s", ctx.tenant.id, agent.bolna_agent_id)
    return agent


async def delete_agent(
    db: AsyncSession, provider: BolnaClient, ctx: TenantContext, bolna_agent_id: str
):
    """Delete upstream first, then drop the tenant's cached row."""
    result = await provider.delete_agent(ctx.sub_account_id, bolna_agent_id)
    await db.execute(
        delete(Agent).where(
            Agent.tenant_id == ctx.tenant.id, Agent.bolna_agent_id == bolna_agent_id
        )
    )
    await db.commit()
    logger.info("Tenant %s deleted agent %s", ctx.tenant.id, bolna_agent_id)
    return result
