"""Database connection and session management."""

import ssl
from collections.abc import AsyncGenerator
from typing import Annotated
from urllib.parse import parse_qs, urlencode, urlparse, urlunparse

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from voicedesk.config import settings


def _make_permissive_ssl_context():
    """SSL context for managed Postgres poolers whose chains fail local verification."""
    ctx = ssl.create_default_context()
    ctx.check_hostname = False
    ctx.verify_mode = ssl.CERT_NONE
    return ctx


def get_engine_url_and_connect_args(url: str) -> tuple[str, dict]:
    """Move sslmode/ssl out of the URL (asyncpg rejects them) into connect_args."""
    connect_args: dict = {}
    if "sslmode=" not in url and "ssl=" not in url:
        return url, connect_args
    parsed = urlparse(url)
    query = parse_qs(parsed.query)
    sslmode = (query.pop("sslmode", None) or query.pop("ssl", None) or [""])[0]
    query.pop("ssl", None)
    url = urlunparse(parsed._replace(query=urlencode(query, doseq=True)))
    if sslmode in ("require", "true"):
        connect_args["ssl"] = _make_permissive_ssl_context()
    elif sslmode in ("verify-ca", "verify-full"):
        connect_args["ssl"] = ssl.create_default_context()
    return url, connect_args


_db_url, _connect_args = get_engine_url_and_connect_args(settings.database_url)


class Base(DeclarativeBase):
    """SQLAlchemy declarative base."""

    pass


engine = create_async_engine(
    _db_url,
    echo=settings.log_level == "DEBUG",
    connect_args=_connect_args,
)

async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency for database sessions."""
    async with async_session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


DbSession = Annotated[AsyncSession, Depends(get_db)]
