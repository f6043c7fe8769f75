"""Conversation Cache - similarity cache for query/response pairs."""

__version__ = "0.1.0"

from .cache import ConversationCache
from .errors import (
    CacheError,
    CacheErrorCode,
    ConversationNotFoundError,
    NotFoundError,
    PartialWriteRecovered,
    StorageError,
    ValidationError,
)
from .schemas import CacheMatch, CacheStats, ConversationRecord, HistoryPage, KeywordSearchHit

__all__ = [
    "__version__",
    "CacheError",
    "CacheErrorCode",
    "CacheMatch",
    "CacheStats",
    "ConversationCache",
    "ConversationNotFoundError",
    "ConversationRecord",
    "HistoryPage",
    "KeywordSearchHit",
    "NotFoundError",
    "PartialWriteRecovered",
    "StorageError",
    "ValidationError",
]
