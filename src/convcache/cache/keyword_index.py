# SPDX-License-Identifier: Apache-2.0
# Copyright 2024-2026 CAB Ingénierie / Christophe ABOULICAM
"""Keyword index: weighted keyword rows per conversation.

Keyword rows only exist as children of a conversation. They are written
inside the caller's save transaction and removed by the foreign-key cascade.
"""

from sqlalchemy import Select, delete, func, insert, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import Conversation, QueryKeyword
from .normalizer import WeightedKeyword, stem_token

LIKE_ESCAPE = "\\"


def escape_like(value: str) -> str:
    """Escape LIKE wildcards so user input matches literally."""
    return (
        value.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace("%", LIKE_ESCAPE + "%")
        .replace("_", LIKE_ESCAPE + "_")
    )


class KeywordIndex:
    """Insert and query weighted keyword entries."""

    async def replace(
        self,
        session: AsyncSession,
        conversation_id: str,
        keywords: list[WeightedKeyword],
    ) -> int:
        """Replace all keyword rows of a conversation in one batch.

        Must run inside the transaction that wrote the conversation row.
        Returns the number of rows inserted.
        """
        await session.execute(
            delete(QueryKeyword).where(QueryKeyword.conversation_id == conversation_id)
        )
        if not keywords:
            return 0
        await session.execute(
            insert(QueryKeyword),
            [
                {
                    "conversation_id": conversation_id,
                    "keyword": kw.keyword,
                    "weight": kw.weight,
                }
                for kw in keywords
            ],
        )
        return len(keywords)

    def overlap(self, keywords: list[str]) -> Select:
        """Aggregate matching entries per conversation.

        Yields one row per conversation sharing at least one keyword:
        (conversation_id, total_weight, keyword_matches).
        """
        return (
            select(
                QueryKeyword.conversation_id,
                func.sum(QueryKeyword.weight).label("total_weight"),
                func.count(QueryKeyword.keyword).label("keyword_matches"),
            )
            .where(QueryKeyword.keyword.in_(keywords))
            .group_by(QueryKeyword.conversation_id)
        )

    async def search(
        self, session: AsyncSession, fragment: str, limit: int
    ) -> list[tuple[Conversation, str, float]]:
        """Substring search over stored stems.

        The fragment is stemmed first so "queries" finds the stored "queri".
        Ordered by keyword weight, then conversation usage.
        """
        term = stem_token(fragment.lower().strip())
        pattern = f"%{escape_like(term)}%"
        result = await session.execute(
            select(Conversation, QueryKeyword.keyword, QueryKeyword.weight)
            .join(QueryKeyword, QueryKeyword.conversation_id == Conversation.id)
            .where(QueryKeyword.keyword.like(pattern, escape=LIKE_ESCAPE))
            .order_by(QueryKeyword.weight.desc(), Conversation.usage_count.desc())
            .limit(limit)
        )
        return [(row[0], row.keyword, row.weight) for row in result.all()]

    async def count(self, session: AsyncSession) -> int:
        result = await session.execute(select(func.count()).select_from(QueryKeyword))
        return result.scalar_one()
