"""Tenant endpoints - limits, users, campaigns, local caches, sync."""

import logging

from fastapi import APIRouter, Request, status
from sqlalchemy import select

from voicedesk.auth.middleware import AdminDep, ManagerDep, TenantUserDep
from voicedesk.auth.security import hash_password
from voicedesk.database import DbSession
from voicedesk.engine.plans import ensure_can_create, ensure_feature, get_plan_limits
from voicedesk.errors import Conflict, NotFound, ProviderError
from voicedesk.models import Agent, Campaign, Execution, PhoneNumber, User
from voicedesk.provider.client import as_list
from voicedesk.provider.deps import ProviderDep, ensure_configured
from voicedesk.schemas.auth import UserOut
from voicedesk.schemas.provider import AgentPayload
from voicedesk.schemas.tenant import (
    AgentOut,
    CampaignOut,
    CreateCampaignRequest,
    CreatePhoneNumberRequest,
    CreateUserRequest,
    ExecutionOut,
    PhoneNumberOut,
)
from voicedesk.services import agents as agent_service
from voicedesk.services.sync import sync_agents_with_provider, sync_executions_with_provider
from voicedesk.storage.repositories import count_for_tenant, get_user_by_email

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/limits")
async def get_limits(ctx: TenantUserDep, request: Request, db: DbSession):
    """Plan limits and usage; agent/phone counts come from the provider when reachable."""
    tenant = ctx.tenant
    limits = get_plan_limits(tenant.plan)
    users = await count_for_tenant(db, User, tenant.id)
    campaigns = await count_for_tenant(db, Campaign, tenant.id)
    try:
        provider = await ensure_configured(request.app.state.provider, db)
        agents = len(as_list(await provider.list_agents(ctx.sub_account_id)))
        phones = len(as_list(await provider.list_phone_numbers(ctx.sub_account_id)))
    except ProviderError as e:
        logger.warning("Using local counts for tenant %s limits: %s", tenant.id, e.message)
        agents = await count_for_tenant(db, Agent, tenant.id)
        phones = await count_for_tenant(db, PhoneNumber, tenant.id)

    return {
        "plan": tenant.plan,
        "limits": limits,
        "features": limits["features"],
        "usage": {
            "users": {"current": users, "limit": limits["maxUsers"]},
            "agents": {"current": agents, "limit": limits["maxAgents"]},
            "phoneNumbers": {"current": phones, "limit": limits["maxPhoneNumbers"]},
            "campaigns": {"current": campaigns, "limit": limits["maxCampaigns"]},
        },
    }


@router.get("/users")
async def list_users(ctx: ManagerDep, db: DbSession):
    result = await db.execute(
        select(User).where(User.tenant_id == ctx.tenant.id).order_by(User.created_at.desc())
    )
    return [UserOut.model_validate(u).model_dump(mode="json") for u in result.scalars().all()]


@router.post("/users", status_code=status.HTTP_201_CREATED)
async def create_user(body: CreateUserRequest, ctx: AdminDep, db: DbSession):
    """Add a user to the caller's tenant, within the plan's user limit."""
    current = await count_for_tenant(db, User, ctx.tenant.id)
    ensure_can_create(current, ctx.tenant.plan, "maxUsers")
    if await get_user_by_email(db, body.email):
        raise Conflict("Email already in use")

    user = User(
        tenant_id=ctx.tenant.id,
        name=body.name,
        email=body.email,
        password_hash=hash_password(body.password),
        role=body.role,
        status="active",
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return UserOut.model_validate(user).model_dump(mode="json")


@router.get("/campaigns")
async def list_campaigns(ctx: TenantUserDep, db: DbSession):
    result = await db.execute(
        select(Campaign, Agent)
        .join(Agent, Campaign.agent_id == Agent.id)
        .where(Campaign.tenant_id == ctx.tenant.id)
        .order_by(Campaign.created_at.desc())
    )
    return [
        {
            "campaign": CampaignOut.model_validate(campaign).model_dump(mode="json"),
            "agent": AgentOut.model_validate(agent).model_dump(mode="json"),
        }
        for campaign, agent in result.all()
    ]


@router.post("/campaigns", status_code=status.HTTP_201_CREATED)
async def create_campaign(body: CreateCampaignRequest, ctx: ManagerDep, db: DbSession):
    result = await db.execute(
        select(Agent).where(Agent.id == body.agent_id, Agent.tenant_id == ctx.tenant.id)
    )
    if not result.scalar_one_or_none():
        raise NotFound("Agent not found")

    current = await count_for_tenant(db, Campaign, ctx.tenant.id)
    ensure_can_create(current, ctx.tenant.plan, "maxCampaigns")

    campaign = Campaign(
        tenant_id=ctx.tenant.id,
        agent_id=body.agent_id,
        name=body.name,
        status="draft",
        contacts=[c.model_dump(exclude_none=True) for c in body.contacts],
        schedule=body.schedule.model_dump(mode="json") if body.schedule else {},
    )
    db.add(campaign)
    await db.commit()
    await db.refresh(campaign)
    return CampaignOut.model_validate(campaign).model_dump(mode="json")


@router.get("/phone-numbers")
async def list_phone_numbers(ctx: TenantUserDep, db: DbSession):
    result = await db.execute(select(PhoneNumber).where(PhoneNumber.tenant_id == ctx.tenant.id))
    return [PhoneNumberOut.model_validate(p).model_dump(mode="json") for p in result.scalars().all()]


@router.post("/phone-numbers", status_code=status.HTTP_201_CREATED)
async def create_phone_number(body: CreatePhoneNumberRequest, ctx: ManagerDep, db: DbSession):
    """Register a number the tenant already holds upstream."""
    current = await count_for_tenant(db, PhoneNumber, ctx.tenant.id)
    ensure_can_create(current, ctx.tenant.plan, "maxPhoneNumbers")
    phone = PhoneNumber(
        tenant_id=ctx.tenant.id,
        bolna_phone_id=body.bolna_phone_id or None,
        phone_number=body.phone_number,
        status="active",
    )
    db.add(phone)
    await db.commit()
    await db.refresh(phone)
    return PhoneNumberOut.model_validate(phone).model_dump(mode="json")


@router.get("/executions")
async def list_executions(ctx: TenantUserDep, db: DbSession):
    result = await db.execute(
        select(Execution, Agent)
        .join(Agent, Execution.agent_id == Agent.id)
        .where(Execution.tenant_id == ctx.tenant.id)
        .order_by(Execution.created_at.desc())
    )
    return [
        {
            "execution": ExecutionOut.model_validate(execution).model_dump(mode="json"),
            "agent": AgentOut.model_validate(agent).model_dump(mode="json"),
        }
        for execution, agent in result.all()
    ]


@router.post("/agents", status_code=status.HTTP_201_CREATED)
async def create_agent(body: AgentPayload, ctx: ManagerDep, request: Request, db: DbSession):
    """Programmatic agent creation; needs the api_access feature."""
    ensure_feature(ctx.tenant.plan, "api_access", "Your plan does not include API access")
    provider = await ensure_configured(request.app.state.provider, db)
    agent = await agent_service.create_agent(db, provider, ctx, body.model_dump())
    return AgentOut.model_validate(agent).model_dump(mode="json")


@router.post("/sync")
async def sync(ctx: TenantUserDep, provider: ProviderDep, db: DbSession):
    """Drop local records missing upstream and import new executions."""
    result = await sync_agents_with_provider(db, provider, ctx.tenant.id, ctx.sub_account_id)
    return {"message": "Sync completed", **result}


@router.post("/sync-executions")
async def sync_executions(ctx: TenantUserDep, provider: ProviderDep, db: DbSession):
    result = await sync_executions_with_provider(db, provider, ctx.tenant.id, ctx.sub_account_id)
    return {"message": "Executions synced successfully", **result}
