# SPDX-License-Identifier: Apache-2.0
# Copyright 2024-2026 CAB Ingénierie / Christophe ABOULICAM
"""Usage tracking: access log and the background hit recorder.

Lookups enqueue hits and return immediately. A background task drains the
queue and, for each hit, issues two independent writes in separate
sessions: usage_count + 1 on the conversation, and one usage_stats row.
Either write may fail without affecting the other or the lookup that
produced the hit.
"""

import asyncio
from dataclasses import dataclass

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..database import session_scope
from ..logging_config import get_logger
from ..models import UsageRecord
from ..models.base import utcnow
from .metrics import USAGE_HITS_DROPPED, USAGE_HITS_RECORDED
from .store import ConversationStore

logger = get_logger(__name__)

DEFAULT_QUEUE_SIZE = 10_000


@dataclass(frozen=True)
class UsageHit:
    conversation_id: str
    user_id: str | None = None
    session_id: str | None = None


class UsageLog:
    """Append-only usage_stats writer."""

    async def append(self, session: AsyncSession, hit: UsageHit) -> None:
        session.add(
            UsageRecord(
                conversation_id=hit.conversation_id,
                accessed_at=utcnow(),
                user_id=hit.user_id,
                session_id=hit.session_id,
            )
        )
        await session.flush()

    async def count(self, session: AsyncSession) -> int:
        result = await session.execute(select(func.count()).select_from(UsageRecord))
        return result.scalar_one()


class HitRecorder:
    """Background worker that applies queued cache hits.

    Lifecycle managed via start()/stop(); stop() applies pending hits first.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        store: ConversationStore | None = None,
        usage_log: UsageLog | None = None,
        queue_size: int = DEFAULT_QUEUE_SIZE,
    ) -> None:
        self._session_factory = session_factory
        self._store = store or ConversationStore()
        self._usage_log = usage_log or UsageLog()
        self._queue: asyncio.Queue[UsageHit] = asyncio.Queue(maxsize=queue_size)
        self._task: asyncio.Task | None = None
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def record(self, hit: UsageHit) -> bool:
        """Enqueue a hit without waiting. Returns False if it was dropped.

        Starts the consumer on the running loop if nobody called start().
        """
        if not self._running:
            self._spawn_worker(lazy=True)
        try:
            self._queue.put_nowait(hit)
        except asyncio.QueueFull:
            USAGE_HITS_DROPPED.labels(reason="queue_full").inc()
            logger.warning(
                "usage_hit_dropped",
                conversation_id=hit.conversation_id,
                reason="queue_full",
            )
            return False
        return True

    async def start(self) -> None:
        """Start the background consumer task."""
        if self._running:
            return
        self._spawn_worker()

    def _spawn_worker(self, lazy: bool = False) -> None:
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("hit_recorder_not_running", pending=self.pending)
            return
        self._running = True
        self._task = asyncio.create_task(self._consume_loop())
        logger.info("hit_recorder_started", lazy=lazy)

    async def stop(self) -> None:
        """Apply pending hits, then stop the consumer task."""
        await self.drain()
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("hit_recorder_stopped")

    async def drain(self) -> None:
        """Wait until every queued hit has been applied."""
        if self._running:
            await self._queue.join()
            return
        while not self._queue.empty():
            hit = self._queue.get_nowait()
            try:
                await self._process(hit)
            finally:
                self._queue.task_done()

    async def _consume_loop(self) -> None:
        while self._running:
            try:
                hit = await asyncio.wait_for(self._queue.get(), timeout=1.0)
            except asyncio.TimeoutError:
                continue
            except asyncio.CancelledError:
                break

            try:
                await self._process(hit)
            except Exception:
                logger.exception("usage_hit_process_error", conversation_id=hit.conversation_id)
            finally:
                self._queue.task_done()

    async def _process(self, hit: UsageHit) -> None:
        results = await asyncio.gather(
            self._increment(hit),
            self._append_log(hit),
            return_exceptions=True,
        )
        for write, outcome in zip(("usage_count", "usage_log"), results):
            if isinstance(outcome, Exception):
                USAGE_HITS_DROPPED.labels(reason=f"{write}_failed").inc()
                logger.error(
                    "usage_hit_write_failed",
                    conversation_id=hit.conversation_id,
                    write=write,
                    error=str(outcome),
                )
        if not any(isinstance(outcome, Exception) for outcome in results):
            USAGE_HITS_RECORDED.inc()

    async def _increment(self, hit: UsageHit) -> None:
        async with session_scope(self._session_factory) as session:
            await self._store.increment_usage(session, hit.conversation_id)

    async def _append_log(self, hit: UsageHit) -> None:
        async with session_scope(self._session_factory) as session:
            await self._usage_log.append(session, hit)
