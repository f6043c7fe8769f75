"""SQLAlchemy models."""

from .base import Base
from .conversation import Conversation, QueryKeyword, UsageRecord

__all__ = ["Base", "Conversation", "QueryKeyword", "UsageRecord"]
