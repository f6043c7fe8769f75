# SPDX-License-Identifier: Apache-2.0
# Copyright 2024-2026 CAB Ingénierie / Christophe ABOULICAM
"""Conversation, keyword and usage-log models."""

from datetime import datetime
from typing import Any
from uuid import uuid4

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    Double,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, JSONDocument, utcnow


def generate_conversation_id() -> str:
    return str(uuid4())


class Conversation(Base):
    """A cached query/response pair.

    ``query_hash`` is the fingerprint of the normalized query and is unique:
    saving the same normalized query again updates this row in place.
    """

    __tablename__ = "conversations"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=generate_conversation_id
    )
    user_query: Mapped[str] = mapped_column(Text, nullable=False)
    ai_response: Mapped[str] = mapped_column(Text, nullable=False)
    query_hash: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    usage_count: Mapped[int] = mapped_column(
        Integer, nullable=False, default=1, server_default="1"
    )
    # Owner tags: opaque, never used for access control
    user_id: Mapped[str | None] = mapped_column(String(255))
    session_id: Mapped[str | None] = mapped_column(String(255))
    metadata_: Mapped[dict[str, Any]] = mapped_column(
        "metadata", JSONDocument, nullable=False, default=dict
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    keywords: Mapped[list["QueryKeyword"]] = relationship(
        back_populates="conversation",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="QueryKeyword.id",
    )
    usage_records: Mapped[list["UsageRecord"]] = relationship(
        back_populates="conversation",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        CheckConstraint("usage_count >= 1", name="usage_count_positive"),
        Index("idx_conversations_created_at", "created_at"),
        Index("idx_conversations_usage_count", "usage_count"),
    )


class QueryKeyword(Base):
    """A weighted keyword stem belonging to one conversation."""

    __tablename__ = "query_keywords"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    conversation_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("conversations.id", ondelete="CASCADE"), nullable=False
    )
    keyword: Mapped[str] = mapped_column(Text, nullable=False)
    weight: Mapped[float] = mapped_column(Double, nullable=False, default=1.0)

    conversation: Mapped["Conversation"] = relationship(back_populates="keywords")

    __table_args__ = (
        CheckConstraint("weight > 0 AND weight <= 1", name="weight_range"),
        # text_pattern_ops lets PostgreSQL serve prefix LIKE scans from the index
        Index(
            "idx_keywords_keyword",
            "keyword",
            postgresql_ops={"keyword": "text_pattern_ops"},
        ),
        Index("idx_keywords_conversation_id", "conversation_id"),
    )


class UsageRecord(Base):
    """One row per cache hit. Append-only."""

    __tablename__ = "usage_stats"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    conversation_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("conversations.id", ondelete="CASCADE"), nullable=False
    )
    accessed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    user_id: Mapped[str | None] = mapped_column(String(255))
    session_id: Mapped[str | None] = mapped_column(String(255))

    conversation: Mapped["Conversation"] = relationship(back_populates="usage_records")

    __table_args__ = (
        Index("idx_usage_stats_conversation_id", "conversation_id"),
        Index("idx_usage_stats_accessed_at", "accessed_at"),
    )
