"""Repository functions for tenants, users, provider caches and stored keys."""

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from voicedesk.database import Base
from voicedesk.models import (
    Agent,
    ApiConfiguration,
    Campaign,
    Execution,
    PhoneNumber,
    Tenant,
    User,
)


async def count_for_tenant(db: AsyncSession, model: type[Base], tenant_id: int) -> int:
    """Current row count of a tenant-scoped table."""
    result = await db.execute(
        select(func.count()).select_from(model).where(model.tenant_id == tenant_id)
    )
    return result.scalar_one()


async def usage_for_tenant(db: AsyncSession, tenant_id: int) -> dict[str, int]:
    """Local counts for every quota-bearing resource."""
    return {
        "users": await count_for_tenant(db, User, tenant_id),
        "agents": await count_for_tenant(db, Agent, tenant_id),
        "phoneNumbers": await count_for_tenant(db, PhoneNumber, tenant_id),
        "campaigns": await count_for_tenant(db, Campaign, tenant_id),
        "executions": await count_for_tenant(db, Execution, tenant_id),
    }


async def get_tenant_by_slug(db: AsyncSession, slug: str) -> Tenant | None:
    result = await db.execute(select(Tenant).where(Tenant.slug == slug))
    return result.scalar_one_or_none()


async def get_tenant_by_sub_account(db: AsyncSession, sub_account_id: str) -> Tenant | None:
    result = await db.execute(
        select(Tenant).where(Tenant.bolna_sub_account_id == sub_account_id)
    )
    return result.scalar_one_or_none()


async def get_user_by_email(db: AsyncSession, email: str) -> User | None:
    result = await db.execute(select(User).where(User.email == email))
    return result.scalar_one_or_none()


async def get_agent_by_external_id(db: AsyncSession, bolna_agent_id: str) -> Agent | None:
    result = await db.execute(select(Agent).where(Agent.bolna_agent_id == bolna_agent_id))
    return result.scalar_one_or_none()


async def get_execution_by_external_id(
    db: AsyncSession, bolna_execution_id: str
) -> Execution | None:
    result = await db.execute(
        select(Execution).where(Execution.bolna_execution_id == bolna_execution_id)
    )
    return result.scalar_one_or_none()


async def get_api_key(db: AsyncSession, key: str) -> str | None:
    """Stored value for ``key`` from the key/value credential store."""
    result = await db.execute(select(ApiConfiguration).where(ApiConfiguration.key == key))
    config = result.scalar_one_or_none()
    return config.value if config else None


async def save_api_key(db: AsyncSession, key: str, value: str) -> ApiConfiguration:
    """Insert or overwrite a stored key."""
    result = await db.execute(select(ApiConfiguration).where(ApiConfiguration.key == key))
    config = result.scalar_one_or_none()
    if config:
        config.value = value
    else:
        config = ApiConfiguration(key=key, value=value)
        db.add(config)
    await db.commit()
    await db.refresh(config)
    return config
