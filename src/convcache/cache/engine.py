# SPDX-License-Identifier: Apache-2.0
# Copyright 2024-2026 CAB Ingénierie / Christophe ABOULICAM
"""Conversation cache engine.

Two-path lookup:
1. Fast path: SHA-256 fingerprint equality on the normalized query
2. Keyword path: weighted keyword overlap, ranked by similarity then usage

Saves write the conversation row and its keyword rows in one transaction.
Usage hits are queued and applied in the background so lookups never wait
on them.
"""

import math
import time
from collections.abc import Mapping
from datetime import datetime
from numbers import Real
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..config import Settings, get_settings
from ..errors import (
    ConversationNotFoundError,
    PartialWriteRecovered,
    StorageError,
    ValidationError,
)
from ..logging_config import get_logger
from ..schemas import (
    CacheMatch,
    CacheStats,
    ConversationRecord,
    HistoryPage,
    KeywordSearchHit,
    MatchType,
)
from .fingerprint import fingerprint
from .keyword_index import KeywordIndex
from .metrics import CACHE_HITS, CACHE_LATENCY, CACHE_MISSES, CACHE_PURGED, CACHE_SAVES
from .normalizer import extract_keywords, tokenize, unique_keywords
from .ranker import SimilarityRanker
from .retention import RetentionPolicy
from .store import ConversationStore
from .usage import HitRecorder, UsageHit, UsageLog

logger = get_logger(__name__)


def _require_text(param: str, value: Any) -> None:
    if not isinstance(value, str):
        raise ValidationError(param, "must be a string")
    if not value.strip():
        raise ValidationError(param, "is required")


def _require_int(param: str, value: Any, minimum: int) -> None:
    if isinstance(value, bool) or not isinstance(value, int) or value < minimum:
        raise ValidationError(param, f"must be an integer >= {minimum}")


def _require_ratio(param: str, value: Any) -> None:
    if (
        isinstance(value, bool)
        or not isinstance(value, Real)
        or math.isnan(value)
        or not 0.0 <= value <= 1.0
    ):
        raise ValidationError(param, "must be a number within [0, 1]")


class ConversationCache:
    """Similarity cache over a transactional relational store.

    The session factory is injected; the cache never creates or owns a
    global database handle.

    Usage:
        async with ConversationCache(session_factory) as cache:
            conversation_id = await cache.save("what is rust", "a language")
            matches = await cache.find_similar("What is Rust?")
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        settings: Settings | None = None,
        *,
        store: ConversationStore | None = None,
        keyword_index: KeywordIndex | None = None,
        ranker: SimilarityRanker | None = None,
        usage_log: UsageLog | None = None,
        hit_recorder: HitRecorder | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._session_factory = session_factory
        self._store = store or ConversationStore(self._settings.usage_on_replace)
        self._keywords = keyword_index or KeywordIndex()
        self._ranker = ranker or SimilarityRanker(self._keywords)
        self._usage_log = usage_log or UsageLog()
        self._hits = hit_recorder or HitRecorder(
            session_factory,
            store=self._store,
            usage_log=self._usage_log,
            queue_size=self._settings.hit_queue_size,
        )

    @property
    def hit_recorder(self) -> HitRecorder:
        return self._hits

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        await self._hits.start()

    async def close(self) -> None:
        """Apply pending usage hits and stop the background recorder."""
        await self._hits.stop()

    async def drain(self) -> None:
        """Wait for all queued usage hits to be applied."""
        await self._hits.drain()

    async def __aenter__(self) -> "ConversationCache":
        await self.start()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def save(
        self,
        query: str,
        response: str,
        user_id: str | None = None,
        session_id: str | None = None,
        metadata: Mapping[str, Any] | None = None,
    ) -> str:
        """Store a query/response pair and return its conversation id.

        Saving a query whose fingerprint already exists replaces that
        conversation in place and returns the existing id.

        Raises:
            ValidationError: query or response missing, metadata not a mapping
            PartialWriteRecovered: keyword write failed; nothing was saved
            StorageError: any other storage failure; nothing was saved
        """
        _require_text("query", query)
        _require_text("response", response)
        if metadata is not None and not isinstance(metadata, Mapping):
            raise ValidationError("metadata", "must be a mapping")

        query_hash = fingerprint(query)
        keywords = extract_keywords(query)
        start = time.monotonic()

        async with self._session_factory() as session:
            try:
                async with session.begin():
                    conversation_id = await self._store.upsert(
                        session,
                        query=query,
                        response=response,
                        query_hash=query_hash,
                        user_id=user_id,
                        session_id=session_id,
                        metadata=dict(metadata or {}),
                    )
                    try:
                        await self._keywords.replace(session, conversation_id, keywords)
                    except SQLAlchemyError as e:
                        raise PartialWriteRecovered(conversation_id, str(e)) from e
            except PartialWriteRecovered:
                CACHE_SAVES.labels(status="rolled_back").inc()
                logger.error("cache_save_rolled_back", query_hash=query_hash[:12])
                raise
            except SQLAlchemyError as e:
                CACHE_SAVES.labels(status="error").inc()
                logger.error("cache_save_failed", query_hash=query_hash[:12], error=str(e))
                raise StorageError("save", str(e)) from e

        CACHE_SAVES.labels(status="ok").inc()
        CACHE_LATENCY.labels(operation="save").observe(time.monotonic() - start)
        logger.info(
            "cache_save",
            conversation_id=conversation_id,
            query_hash=query_hash[:12],
            keywords=len(keywords),
        )
        return conversation_id

    async def delete_by_id(self, conversation_id: str) -> int:
        """Delete a conversation with its keywords and usage history.

        Idempotent: returns 0 when the conversation does not exist.
        """
        _require_text("conversation_id", conversation_id)
        try:
            async with self._session_factory() as session, session.begin():
                removed = await self._store.delete_by_id(session, conversation_id)
        except SQLAlchemyError as e:
            raise StorageError("delete", str(e)) from e

        logger.info("cache_delete", conversation_id=conversation_id, deleted=removed)
        return removed

    async def purge(
        self,
        max_age_days: int | None = None,
        min_usage: int | None = None,
        now: datetime | None = None,
    ) -> int:
        """Run a retention sweep. Returns the number of conversations removed.

        Defaults come from settings (30 days, usage below 2).
        """
        if max_age_days is None:
            max_age_days = self._settings.retention_max_age_days
        if min_usage is None:
            min_usage = self._settings.retention_min_usage
        _require_int("max_age_days", max_age_days, 0)
        _require_int("min_usage", min_usage, 1)
        policy = RetentionPolicy(max_age_days=max_age_days, min_usage=min_usage)

        try:
            async with self._session_factory() as session, session.begin():
                removed = await policy.sweep(session, self._store, now=now)
        except SQLAlchemyError as e:
            logger.error("cache_purge_failed", error=str(e))
            raise StorageError("purge", str(e)) from e

        CACHE_PURGED.inc(removed)
        logger.info(
            "cache_purge",
            deleted=removed,
            max_age_days=policy.max_age_days,
            min_usage=policy.min_usage,
        )
        return removed

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def find_similar(
        self,
        query: str,
        limit: int | None = None,
        min_similarity: float | None = None,
        user_id: str | None = None,
        session_id: str | None = None,
    ) -> list[CacheMatch]:
        """Look up cached conversations for a query.

        An exact fingerprint match is returned alone with similarity 1.0,
        whatever ``min_similarity`` is. Otherwise up to ``limit`` keyword
        matches scoring at least ``min_similarity`` are returned, best
        first. A usage hit is queued for every returned conversation.
        """
        _require_text("query", query)
        limit = self._settings.default_limit if limit is None else limit
        if min_similarity is None:
            min_similarity = self._settings.default_min_similarity
        _require_int("limit", limit, 1)
        _require_ratio("min_similarity", min_similarity)

        start = time.monotonic()
        query_hash = fingerprint(query)
        matches: list[CacheMatch] = []

        try:
            async with self._session_factory() as session:
                exact = await self._store.get_by_hash(session, query_hash)
                if exact is not None:
                    matches = [
                        CacheMatch.from_candidate(exact, 1.0, MatchType.EXACT)
                    ]
                else:
                    keywords = unique_keywords(tokenize(query))
                    candidates = await self._ranker.rank(
                        session, keywords, limit, min_similarity
                    )
                    matches = [
                        CacheMatch.from_candidate(
                            c.conversation,
                            c.similarity,
                            MatchType.SIMILAR,
                            keyword_matches=c.keyword_matches,
                        )
                        for c in candidates
                    ]
        except SQLAlchemyError as e:
            logger.error("cache_lookup_failed", query_hash=query_hash[:12], error=str(e))
            raise StorageError("find_similar", str(e)) from e

        CACHE_LATENCY.labels(operation="find_similar").observe(time.monotonic() - start)

        if not matches:
            CACHE_MISSES.inc()
            logger.debug("cache_miss", query_hash=query_hash[:12])
            return matches

        match_type = matches[0].match_type
        CACHE_HITS.labels(match_type=match_type.value).inc()
        logger.debug(
            f"cache_hit_{match_type.value}",
            query_hash=query_hash[:12],
            results=len(matches),
            best_similarity=round(matches[0].similarity, 4),
        )

        for match in matches:
            self._record_hit(match.id, user_id=user_id, session_id=session_id)
        return matches

    def _record_hit(
        self,
        conversation_id: str,
        user_id: str | None = None,
        session_id: str | None = None,
    ) -> None:
        """Queue a usage hit; never raises and never waits."""
        self._hits.record(
            UsageHit(conversation_id=conversation_id, user_id=user_id, session_id=session_id)
        )

    async def get_by_id(self, conversation_id: str) -> ConversationRecord:
        """Fetch a conversation with its keyword list.

        Raises:
            ConversationNotFoundError: no conversation with this id
        """
        _require_text("conversation_id", conversation_id)
        try:
            async with self._session_factory() as session:
                conversation = await self._store.get_by_id(
                    session, conversation_id, with_keywords=True
                )
                if conversation is None:
                    raise ConversationNotFoundError(conversation_id)
                return ConversationRecord.from_model(
                    conversation, keywords=conversation.keywords
                )
        except SQLAlchemyError as e:
            raise StorageError("get_by_id", str(e)) from e

    async def history(
        self,
        limit: int = 50,
        offset: int = 0,
        user_id: str | None = None,
        session_id: str | None = None,
    ) -> HistoryPage:
        """List conversations newest first, optionally filtered by owner tags."""
        _require_int("limit", limit, 1)
        _require_int("offset", offset, 0)

        try:
            async with self._session_factory() as session:
                rows = await self._store.list_recent(
                    session, limit, offset, user_id=user_id, session_id=session_id
                )
        except SQLAlchemyError as e:
            raise StorageError("history", str(e)) from e

        conversations = [ConversationRecord.from_model(row) for row in rows]
        return HistoryPage(
            conversations=conversations,
            limit=limit,
            offset=offset,
            count=len(conversations),
        )

    async def search_keywords(self, keyword: str, limit: int = 10) -> list[KeywordSearchHit]:
        """Find keyword entries whose stem contains the (stemmed) fragment."""
        _require_text("keyword", keyword)
        _require_int("limit", limit, 1)

        try:
            async with self._session_factory() as session:
                rows = await self._keywords.search(session, keyword, limit)
        except SQLAlchemyError as e:
            raise StorageError("search_keywords", str(e)) from e

        return [
            KeywordSearchHit(
                keyword=word,
                weight=weight,
                conversation=ConversationRecord.from_model(conversation),
            )
            for conversation, word, weight in rows
        ]

    async def stats(self) -> CacheStats:
        """Aggregate counts over conversations, keywords and usage rows."""
        try:
            async with self._session_factory() as session:
                summary = await self._store.usage_summary(session)
                total_keywords = await self._keywords.count(session)
                total_accesses = await self._usage_log.count(session)
        except SQLAlchemyError as e:
            raise StorageError("stats", str(e)) from e

        return CacheStats(
            total_conversations=summary["total"],
            total_keywords=total_keywords,
            total_accesses=total_accesses,
            avg_usage=round(summary["avg_usage"], 2),
            max_usage=summary["max_usage"],
        )
