"""Pydantic schemas."""

from .conversation import (
    CacheMatch,
    CacheStats,
    ConversationRecord,
    HistoryPage,
    KeywordSearchHit,
    KeywordWeight,
    MatchType,
)

__all__ = [
    "CacheMatch",
    "CacheStats",
    "ConversationRecord",
    "HistoryPage",
    "KeywordSearchHit",
    "KeywordWeight",
    "MatchType",
]
