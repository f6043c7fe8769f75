# SPDX-License-Identifier: Apache-2.0
# Copyright 2024-2026 CAB Ingénierie / Christophe ABOULICAM
"""Database engine and session helpers.

The cache never owns a global engine: callers build one here and pass the
session factory into ``ConversationCache``. PostgreSQL (asyncpg) is the
production target; SQLite (aiosqlite) serves embedded use and tests.
"""

from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from .config import get_settings
from .logging_config import get_logger
from .models import Base

logger = get_logger(__name__)


def get_database_url(url: str | None = None) -> str:
    """Resolve the async database URL.

    Plain ``postgresql://`` and ``sqlite://`` URLs are rewritten to their
    async driver equivalents.
    """
    database_url = url or get_settings().database_url
    if database_url.startswith("postgresql://"):
        database_url = database_url.replace("postgresql://", "postgresql+asyncpg://", 1)
    elif database_url.startswith("sqlite://"):
        database_url = database_url.replace("sqlite://", "sqlite+aiosqlite://", 1)
    return database_url


def mask_database_url(database_url: str) -> str:
    """Mask the password portion of a database URL for logging."""
    if "@" not in database_url:
        return database_url
    credentials, host = database_url.rsplit("@", 1)
    scheme, _, userinfo = credentials.partition("://")
    if ":" not in userinfo:
        return database_url
    user = userinfo.split(":", 1)[0]
    return f"{scheme}://{user}:***@{host}"


def _enable_sqlite_foreign_keys(dbapi_connection: Any, connection_record: Any) -> None:
    # SQLite ignores ON DELETE CASCADE unless enabled per connection
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_engine(url: str | None = None, echo: bool | None = None) -> AsyncEngine:
    """Create an async engine for the configured (or given) database."""
    database_url = get_database_url(url)
    if echo is None:
        echo = get_settings().db_echo

    logger.info("database_engine_created", url=mask_database_url(database_url))

    engine = create_async_engine(database_url, echo=echo)
    if engine.dialect.name == "sqlite":
        event.listen(engine.sync_engine, "connect", _enable_sqlite_foreign_keys)
    return engine


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create the session factory injected into the cache engine."""
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


async def init_schema(engine: AsyncEngine) -> None:
    """Create all cache tables.

    Production deployments use the Alembic revisions under ``alembic/``;
    this is for embedded SQLite databases and tests.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("database_schema_ready", tables=sorted(Base.metadata.tables))


@asynccontextmanager
async def session_scope(
    factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """Open a session that commits on success and rolls back on error.

    Usage:
        async with session_scope(factory) as session:
            await session.execute(query)
    """
    async with factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
