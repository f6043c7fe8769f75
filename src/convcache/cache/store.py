# SPDX-License-Identifier: Apache-2.0
# Copyright 2024-2026 CAB Ingénierie / Christophe ABOULICAM
"""Conversation store: conversation rows and usage counters.

Methods take the caller's session and never commit; transaction
boundaries belong to the engine.
"""

from datetime import datetime
from typing import Any, Literal

from sqlalchemy import delete, func, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..models import Conversation
from ..models.base import utcnow
from ..models.conversation import generate_conversation_id

UsagePolicy = Literal["reset", "preserve"]

_DIALECT_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


class ConversationStore:
    """Reads and writes conversation rows."""

    def __init__(self, usage_on_replace: UsagePolicy = "reset") -> None:
        self._usage_on_replace = usage_on_replace

    @property
    def usage_on_replace(self) -> UsagePolicy:
        return self._usage_on_replace

    async def upsert(
        self,
        session: AsyncSession,
        *,
        query: str,
        response: str,
        query_hash: str,
        user_id: str | None = None,
        session_id: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> str:
        """Insert a conversation or replace the one with the same fingerprint.

        One ``INSERT ... ON CONFLICT (query_hash) DO UPDATE`` statement, so
        concurrent saves of one fingerprint resolve to a single row. The
        existing id is kept on conflict. Returns the row id.
        """
        dialect = session.get_bind().dialect.name
        try:
            dialect_insert = _DIALECT_INSERTS[dialect]
        except KeyError:
            raise NotImplementedError(f"Upsert not supported for dialect '{dialect}'")

        table = Conversation.__table__
        now = utcnow()
        stmt = dialect_insert(table).values(
            id=generate_conversation_id(),
            user_query=query,
            ai_response=response,
            query_hash=query_hash,
            usage_count=1,
            user_id=user_id,
            session_id=session_id,
            metadata=metadata or {},
            created_at=now,
            updated_at=now,
        )

        replaced: dict[str, Any] = {
            "user_query": stmt.excluded.user_query,
            "ai_response": stmt.excluded.ai_response,
            "user_id": stmt.excluded.user_id,
            "session_id": stmt.excluded.session_id,
            "metadata": stmt.excluded["metadata"],
            "updated_at": stmt.excluded.updated_at,
        }
        if self._usage_on_replace == "preserve":
            replaced["usage_count"] = table.c.usage_count + 1
        else:
            replaced["usage_count"] = 1
            replaced["created_at"] = stmt.excluded.created_at

        stmt = stmt.on_conflict_do_update(
            index_elements=[table.c.query_hash],
            set_=replaced,
        ).returning(table.c.id)

        result = await session.execute(stmt)
        return result.scalar_one()

    async def get_by_id(
        self,
        session: AsyncSession,
        conversation_id: str,
        with_keywords: bool = False,
    ) -> Conversation | None:
        query = select(Conversation).where(Conversation.id == conversation_id)
        if with_keywords:
            query = query.options(selectinload(Conversation.keywords))
        result = await session.execute(query)
        return result.scalar_one_or_none()

    async def get_by_hash(
        self, session: AsyncSession, query_hash: str
    ) -> Conversation | None:
        result = await session.execute(
            select(Conversation).where(Conversation.query_hash == query_hash)
        )
        return result.scalar_one_or_none()

    async def increment_usage(self, session: AsyncSession, conversation_id: str) -> int:
        """Atomically add one to usage_count. Returns rows updated."""
        result = await session.execute(
            update(Conversation)
            .where(Conversation.id == conversation_id)
            .values(usage_count=Conversation.usage_count + 1)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    async def delete_by_id(self, session: AsyncSession, conversation_id: str) -> int:
        """Delete one conversation; keywords and usage rows cascade."""
        result = await session.execute(
            delete(Conversation)
            .where(Conversation.id == conversation_id)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    async def purge(
        self, session: AsyncSession, cutoff: datetime, min_usage: int
    ) -> int:
        """Delete conversations created before ``cutoff`` with usage below ``min_usage``.

        A single predicate-scoped statement: it either removes every
        eligible row or none.
        """
        result = await session.execute(
            delete(Conversation)
            .where(Conversation.created_at < cutoff)
            .where(Conversation.usage_count < min_usage)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    async def list_recent(
        self,
        session: AsyncSession,
        limit: int,
        offset: int = 0,
        user_id: str | None = None,
        session_id: str | None = None,
    ) -> list[Conversation]:
        """Conversations newest first, optionally filtered by owner tags."""
        query = select(Conversation)
        if user_id:
            query = query.where(Conversation.user_id == user_id)
        if session_id:
            query = query.where(Conversation.session_id == session_id)
        query = (
            query.order_by(Conversation.created_at.desc(), Conversation.id)
            .limit(limit)
            .offset(offset)
        )
        result = await session.execute(query)
        return list(result.scalars().all())

    async def usage_summary(self, session: AsyncSession) -> dict[str, Any]:
        """Row count plus average and maximum usage_count."""
        result = await session.execute(
            select(
                func.count(Conversation.id),
                func.avg(Conversation.usage_count),
                func.max(Conversation.usage_count),
            )
        )
        total, avg_usage, max_usage = result.one()
        return {
            "total": total or 0,
            "avg_usage": float(avg_usage) if avg_usage is not None else 0.0,
            "max_usage": max_usage or 0,
        }
