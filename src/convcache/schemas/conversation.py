# SPDX-License-Identifier: Apache-2.0
# Copyright 2024-2026 CAB Ingénierie / Christophe ABOULICAM
"""Pydantic schemas returned by the cache engine."""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from ..models import Conversation, QueryKeyword


class MatchType(str, Enum):
    """How a cached conversation matched the query."""

    EXACT = "exact"  # Fingerprint equality
    SIMILAR = "similar"  # Weighted keyword overlap


class KeywordWeight(BaseModel):
    """A stored keyword stem and its positional weight."""

    word: str
    weight: float


class ConversationRecord(BaseModel):
    """A cached conversation."""

    id: str
    user_query: str
    ai_response: str
    query_hash: str
    usage_count: int
    user_id: str | None = None
    session_id: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime
    updated_at: datetime
    keywords: list[KeywordWeight] | None = Field(
        None,
        description="Keyword stems in position order (only on detail lookups)",
    )

    @classmethod
    def _fields_from_model(cls, conversation: Conversation) -> dict[str, Any]:
        return {
            "id": conversation.id,
            "user_query": conversation.user_query,
            "ai_response": conversation.ai_response,
            "query_hash": conversation.query_hash,
            "usage_count": conversation.usage_count,
            "user_id": conversation.user_id,
            "session_id": conversation.session_id,
            "metadata": conversation.metadata_ or {},
            "created_at": conversation.created_at,
            "updated_at": conversation.updated_at,
        }

    @classmethod
    def from_model(
        cls,
        conversation: Conversation,
        keywords: list[QueryKeyword] | None = None,
    ) -> "ConversationRecord":
        fields = cls._fields_from_model(conversation)
        if keywords is not None:
            fields["keywords"] = [
                KeywordWeight(word=kw.keyword, weight=kw.weight) for kw in keywords
            ]
        return cls(**fields)


class CacheMatch(ConversationRecord):
    """A conversation returned by a similarity lookup."""

    similarity: float = Field(..., description="1.0 for exact matches")
    match_type: MatchType
    keyword_matches: int | None = Field(
        None,
        description="Number of matching keyword entries (similar matches only)",
    )

    @classmethod
    def from_candidate(
        cls,
        conversation: Conversation,
        similarity: float,
        match_type: MatchType,
        keyword_matches: int | None = None,
    ) -> "CacheMatch":
        return cls(
            **cls._fields_from_model(conversation),
            similarity=similarity,
            match_type=match_type,
            keyword_matches=keyword_matches,
        )


class KeywordSearchHit(BaseModel):
    """One keyword entry matching a keyword search."""

    keyword: str
    weight: float
    conversation: ConversationRecord


class HistoryPage(BaseModel):
    """A page of conversations, newest first."""

    conversations: list[ConversationRecord]
    limit: int
    offset: int
    count: int


class CacheStats(BaseModel):
    """Aggregate cache statistics."""

    total_conversations: int = 0
    total_keywords: int = 0
    total_accesses: int = 0
    avg_usage: float = Field(0.0, description="Average usage_count, rounded to 2 decimals")
    max_usage: int = 0
