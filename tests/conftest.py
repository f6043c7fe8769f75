# SPDX-License-Identifier: Apache-2.0
# Copyright 2024-2026 CAB Ingénierie / Christophe ABOULICAM
"""Shared pytest fixtures for testing."""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import func, select, update

from convcache.cache import ConversationCache
from convcache.config import Settings, clear_settings_cache
from convcache.database import create_engine, create_session_factory, init_schema
from convcache.models import Conversation


@pytest.fixture(autouse=True)
def reset_settings():
    """Each test starts from a fresh settings instance."""
    clear_settings_cache()
    yield
    clear_settings_cache()


@pytest.fixture
def settings():
    return Settings()


@pytest.fixture(scope="function")
async def db_engine(tmp_path):
    """Create a test database engine on a fresh SQLite file."""
    engine = create_engine(f"sqlite:///{tmp_path / 'cache.db'}", echo=False)
    await init_schema(engine)

    yield engine

    await engine.dispose()


@pytest.fixture(scope="function")
def session_factory(db_engine):
    return create_session_factory(db_engine)


@pytest.fixture(scope="function")
async def db_session(session_factory):
    """Create a test database session."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture(scope="function")
async def cache(session_factory, settings):
    """A started cache; stopped (and drained) after the test."""
    cache = ConversationCache(session_factory, settings)
    await cache.start()
    yield cache
    await cache.close()


async def set_usage(session_factory, conversation_id: str, usage_count: int) -> None:
    async with session_factory() as session, session.begin():
        await session.execute(
            update(Conversation)
            .where(Conversation.id == conversation_id)
            .values(usage_count=usage_count)
        )


async def age_conversation(session_factory, conversation_id: str, days: int) -> None:
    created_at = datetime.now(timezone.utc) - timedelta(days=days)
    async with session_factory() as session, session.begin():
        await session.execute(
            update(Conversation)
            .where(Conversation.id == conversation_id)
            .values(created_at=created_at)
        )


async def count_rows(session_factory, model) -> int:
    async with session_factory() as session:
        result = await session.execute(select(func.count()).select_from(model))
        return result.scalar_one()
