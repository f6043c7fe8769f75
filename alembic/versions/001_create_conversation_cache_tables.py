# SPDX-License-Identifier: Apache-2.0
# Copyright 2024-2026 CAB Ingénierie / Christophe ABOULICAM
"""Create conversation cache tables.

Revision ID: 001
Revises:
Create Date: 2026-10-17

Creates:
- conversations (unique query_hash for the exact-match fast path)
- query_keywords (weighted stems, cascade-deleted with the conversation)
- usage_stats (append-only access log, cascade-deleted)
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

JSON_DOCUMENT = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def upgrade() -> None:
    op.create_table(
        "conversations",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("user_query", sa.Text(), nullable=False),
        sa.Column("ai_response", sa.Text(), nullable=False),
        sa.Column("query_hash", sa.String(length=64), nullable=False),
        sa.Column("usage_count", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("user_id", sa.String(length=255), nullable=True),
        sa.Column("session_id", sa.String(length=255), nullable=True),
        sa.Column("metadata", JSON_DOCUMENT, nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.CheckConstraint(
            "usage_count >= 1", name=op.f("ck_conversations_usage_count_positive")
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_conversations")),
        sa.UniqueConstraint("query_hash", name=op.f("uq_conversations_query_hash")),
    )
    op.create_index("idx_conversations_created_at", "conversations", ["created_at"])
    op.create_index("idx_conversations_usage_count", "conversations", ["usage_count"])

    op.create_table(
        "query_keywords",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("conversation_id", sa.String(length=36), nullable=False),
        sa.Column("keyword", sa.Text(), nullable=False),
        sa.Column("weight", sa.Double(), nullable=False),
        sa.CheckConstraint(
            "weight > 0 AND weight <= 1", name=op.f("ck_query_keywords_weight_range")
        ),
        sa.ForeignKeyConstraint(
            ["conversation_id"],
            ["conversations.id"],
            name=op.f("fk_query_keywords_conversation_id_conversations"),
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_query_keywords")),
    )
    # text_pattern_ops serves prefix LIKE scans on PostgreSQL
    op.create_index(
        "idx_keywords_keyword",
        "query_keywords",
        ["keyword"],
        postgresql_ops={"keyword": "text_pattern_ops"},
    )
    op.create_index(
        "idx_keywords_conversation_id", "query_keywords", ["conversation_id"]
    )

    op.create_table(
        "usage_stats",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("conversation_id", sa.String(length=36), nullable=False),
        sa.Column(
            "accessed_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column("user_id", sa.String(length=255), nullable=True),
        sa.Column("session_id", sa.String(length=255), nullable=True),
        sa.ForeignKeyConstraint(
            ["conversation_id"],
            ["conversations.id"],
            name=op.f("fk_usage_stats_conversation_id_conversations"),
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_usage_stats")),
    )
    op.create_index(
        "idx_usage_stats_conversation_id", "usage_stats", ["conversation_id"]
    )
    op.create_index("idx_usage_stats_accessed_at", "usage_stats", ["accessed_at"])


def downgrade() -> None:
    op.drop_index("idx_usage_stats_accessed_at", table_name="usage_stats")
    op.drop_index("idx_usage_stats_conversation_id", table_name="usage_stats")
    op.drop_table("usage_stats")

    op.drop_index("idx_keywords_conversation_id", table_name="query_keywords")
    op.drop_index("idx_keywords_keyword", table_name="query_keywords")
    op.drop_table("query_keywords")

    op.drop_index("idx_conversations_usage_count", table_name="conversations")
    op.drop_index("idx_conversations_created_at", table_name="conversations")
    op.drop_table("conversations")
