# SPDX-License-Identifier: Apache-2.0
# Copyright 2024-2026 CAB Ingénierie / Christophe ABOULICAM
"""Tests for engine and session helpers."""

import pytest
from sqlalchemy import Text, text

from convcache.database import session_scope
from convcache.models import Conversation, QueryKeyword
from convcache.models.conversation import generate_conversation_id


def _conversation(query_hash: str) -> Conversation:
    return Conversation(
        id=generate_conversation_id(),
        user_query="q",
        ai_response="r",
        query_hash=query_hash,
    )


class TestDatabase:

    @pytest.mark.asyncio
    async def test_schema_created(self, db_session):
        result = await db_session.execute(
            text("SELECT name FROM sqlite_master WHERE type = 'table' ORDER BY name")
        )
        tables = {row[0] for row in result}
        assert {"conversations", "query_keywords", "usage_stats"} <= tables

    @pytest.mark.asyncio
    async def test_foreign_keys_enabled(self, db_session):
        result = await db_session.execute(text("PRAGMA foreign_keys"))
        assert result.scalar_one() == 1

    @pytest.mark.asyncio
    async def test_session_scope_commits(self, session_factory):
        async with session_scope(session_factory) as session:
            session.add(_conversation("a" * 64))

        async with session_factory() as session:
            result = await session.execute(text("SELECT COUNT(*) FROM conversations"))
            assert result.scalar_one() == 1

    @pytest.mark.asyncio
    async def test_session_scope_rolls_back(self, session_factory):
        with pytest.raises(RuntimeError):
            async with session_scope(session_factory) as session:
                session.add(_conversation("b" * 64))
                await session.flush()
                raise RuntimeError("boom")

        async with session_factory() as session:
            result = await session.execute(text("SELECT COUNT(*) FROM conversations"))
            assert result.scalar_one() == 0

    def test_keyword_column_unbounded(self):
        keyword_type = QueryKeyword.__table__.c.keyword.type
        assert isinstance(keyword_type, Text)
        assert keyword_type.length is None
