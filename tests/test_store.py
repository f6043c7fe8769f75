# SPDX-License-Identifier: Apache-2.0
# Copyright 2024-2026 CAB Ingénierie / Christophe ABOULICAM
"""Unit tests for the store, keyword index and ranker with mocked sessions."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from convcache.cache import ConversationStore, KeywordIndex, SimilarityRanker
from convcache.cache.keyword_index import escape_like
from convcache.cache.normalizer import WeightedKeyword


@pytest.fixture
def mock_session():
    session = AsyncMock()
    session.execute = AsyncMock()
    session.get_bind = MagicMock()
    return session


class TestConversationStore:

    @pytest.mark.asyncio
    async def test_upsert_unsupported_dialect(self, mock_session):
        mock_session.get_bind.return_value.dialect.name = "mssql"

        with pytest.raises(NotImplementedError):
            await ConversationStore().upsert(
                mock_session, query="q", response="r", query_hash="h" * 64
            )
        mock_session.execute.assert_not_called()

    def test_default_policy(self):
        assert ConversationStore().usage_on_replace == "reset"
        assert ConversationStore("preserve").usage_on_replace == "preserve"


class TestKeywordIndex:

    @pytest.mark.asyncio
    async def test_replace_without_keywords_only_deletes(self, mock_session):
        inserted = await KeywordIndex().replace(mock_session, "c-1", [])

        assert inserted == 0
        assert mock_session.execute.call_count == 1

    @pytest.mark.asyncio
    async def test_replace_inserts_one_batch(self, mock_session):
        keywords = [WeightedKeyword("alpha", 1.0), WeightedKeyword("beta", 0.9)]

        inserted = await KeywordIndex().replace(mock_session, "c-1", keywords)

        assert inserted == 2
        # One delete, one batched insert
        assert mock_session.execute.call_count == 2
        rows = mock_session.execute.call_args.args[1]
        assert rows == [
            {"conversation_id": "c-1", "keyword": "alpha", "weight": 1.0},
            {"conversation_id": "c-1", "keyword": "beta", "weight": 0.9},
        ]

    @pytest.mark.parametrize(
        "raw,escaped",
        [("cach", "cach"), ("50%", "50\\%"), ("a_b", "a\\_b"), ("c:\\x", "c:\\\\x")],
    )
    def test_escape_like(self, raw, escaped):
        assert escape_like(raw) == escaped


class TestSimilarityRanker:

    @pytest.mark.asyncio
    async def test_no_keywords_skips_query(self, mock_session):
        assert await SimilarityRanker().rank(mock_session, [], 5, 0.3) == []
        mock_session.execute.assert_not_called()
