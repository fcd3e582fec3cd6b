"""Async fixtures: in-memory SQLite database, ASGI client and a mocked provider API."""

import os

os.environ.setdefault("PASSWORD_HASH_ROUNDS", "4")
os.environ.setdefault("JWT_SECRET", "test-secret")

import pytest
import pytest_asyncio
import respx
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from voicedesk.auth.security import TokenPayload, hash_password, issue_token
from voicedesk.config import settings
from voicedesk.database import Base, get_db
from voicedesk.main import app
from voicedesk.models import Agent, SuperAdmin, Tenant, User
from voicedesk.provider.client import BolnaClient

PASSWORD = "secret123"


@pytest_asyncio.fixture
async def engine():
    eng = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest_asyncio.fixture
async def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def provider_api():
    """Intercept every call to the provider's base URL."""
    with respx.mock(base_url=settings.bolna_api_url, assert_all_called=False) as router:
        yield router


@pytest_asyncio.fixture
async def provider(provider_api):
    client = BolnaClient(api_key="test-key")
    yield client
    await client.aclose()


@pytest_asyncio.fixture
async def client(session_factory, provider):
    """HTTPX async client against the app, with a configured provider client."""

    async def override_get_db():
        async with session_factory() as session:
            yield session

    original_provider = app.state.provider
    app.dependency_overrides[get_db] = override_get_db
    app.state.provider = provider

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c

    app.dependency_overrides.clear()
    app.state.provider = original_provider


# -- factories ------------------------------------------------------------------


async def make_tenant(
    db: AsyncSession,
    slug: str = "acme",
    plan: str = "starter",
    status: str = "active",
    sub_account_id: str | None = None,
) -> Tenant:
    tenant = Tenant(
        name=slug.title(),
        slug=slug,
        bolna_sub_account_id=sub_account_id or f"sub-{slug}",
        plan=plan,
        status=status,
        settings={},
    )
    db.add(tenant)
    await db.commit()
    await db.refresh(tenant)
    return tenant


async def make_user(
    db: AsyncSession,
    tenant: Tenant,
    email: str,
    role: str = "admin",
    status: str = "active",
) -> User:
    user = User(
        tenant_id=tenant.id,
        email=email,
        name=email.split("@")[0],
        password_hash=hash_password(PASSWORD),
        role=role,
        status=status,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


async def make_agent(db: AsyncSession, tenant: Tenant, bolna_agent_id: str) -> Agent:
    agent = Agent(
        tenant_id=tenant.id,
        bolna_agent_id=bolna_agent_id,
        agent_name=f"Agent {bolna_agent_id}",
        status="created",
        agent_config={"agent_name": f"Agent {bolna_agent_id}"},
        agent_prompts={"task_1": {"system_prompt": "Be brief."}},
    )
    db.add(agent)
    await db.commit()
    await db.refresh(agent)
    return agent


def tenant_headers(user: User) -> dict[str, str]:
    token = issue_token(
        TokenPayload(subject_id=user.id, subject_type="tenant_user", tenant_id=user.tenant_id)
    )
    return {"Authorization": f"Bearer {token}"}


def admin_headers(admin: SuperAdmin) -> dict[str, str]:
    token = issue_token(TokenPayload(subject_id=admin.id, subject_type="super_admin"))
    return {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture
async def tenant(db):
    return await make_tenant(db)


@pytest_asyncio.fixture
async def tenant_admin(db, tenant):
    return await make_user(db, tenant, "owner@acme.io", role="admin")


@pytest_asyncio.fixture
async def super_admin(db):
    admin = SuperAdmin(
        email="root@voicedesk.io", name="Root", password_hash=hash_password(PASSWORD)
    )
    db.add(admin)
    await db.commit()
    await db.refresh(admin)
    return admin
