# SPDX-License-Identifier: Apache-2.0
# Copyright 2024-2026 CAB Ingénierie / Christophe ABOULICAM
"""Similarity ranking over the keyword index.

similarity(c) = SUM(weight of c's entries whose keyword is in K) / |K|

Normalized by the query's keyword count only (not Jaccard), so extra
keywords on a stored conversation never lower its score. Scoring,
threshold, ordering and truncation all run in one SQL statement in
double precision.
"""

from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import Conversation
from .keyword_index import KeywordIndex


@dataclass
class RankedCandidate:
    conversation: Conversation
    similarity: float
    keyword_matches: int


class SimilarityRanker:
    """Scores and orders conversations sharing keywords with a query."""

    def __init__(self, keyword_index: KeywordIndex | None = None) -> None:
        self._index = keyword_index or KeywordIndex()

    async def rank(
        self,
        session: AsyncSession,
        keywords: list[str],
        limit: int,
        min_similarity: float,
    ) -> list[RankedCandidate]:
        """Return up to ``limit`` candidates scoring at least ``min_similarity``.

        ``keywords`` must already be de-duplicated. Ties on similarity go
        to the conversation with the higher usage_count.
        """
        if not keywords:
            return []

        query_size = float(len(keywords))
        overlap = self._index.overlap(keywords).subquery("overlap")
        score = overlap.c.total_weight / query_size
        similarity = score.label("similarity")

        stmt = (
            select(Conversation, similarity, overlap.c.keyword_matches)
            .join(overlap, overlap.c.conversation_id == Conversation.id)
            .where(score >= min_similarity)
            .order_by(similarity.desc(), Conversation.usage_count.desc())
            .limit(limit)
        )
        result = await session.execute(stmt)
        return [
            RankedCandidate(
                conversation=row[0],
                similarity=float(row.similarity),
                keyword_matches=int(row.keyword_matches),
            )
            for row in result.all()
        ]
