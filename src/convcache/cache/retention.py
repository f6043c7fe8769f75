# SPDX-License-Identifier: Apache-2.0
# Copyright 2024-2026 CAB Ingénierie / Christophe ABOULICAM
"""Retention policy for aged, low-value conversations.

An entry is evicted when it is older than ``max_age_days`` AND was used
fewer than ``min_usage`` times. With the default of 2, entries that were
never reused become eligible once stale, and entries reused at least once
are kept regardless of age. Sweeps are caller-triggered; nothing here
runs on a timer or keeps state between calls.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from sqlalchemy.ext.asyncio import AsyncSession

from .store import ConversationStore

DEFAULT_MAX_AGE_DAYS = 30
DEFAULT_MIN_USAGE = 2


@dataclass(frozen=True)
class RetentionPolicy:
    max_age_days: int = DEFAULT_MAX_AGE_DAYS
    min_usage: int = DEFAULT_MIN_USAGE

    def __post_init__(self) -> None:
        if self.max_age_days < 0:
            raise ValueError(f"max_age_days must be >= 0, got {self.max_age_days}")
        if self.min_usage < 1:
            raise ValueError(f"min_usage must be >= 1, got {self.min_usage}")

    def cutoff(self, now: datetime | None = None) -> datetime:
        """Creation time before which entries count as aged."""
        now = now or datetime.now(timezone.utc)
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        return now - timedelta(days=self.max_age_days)

    async def sweep(
        self,
        session: AsyncSession,
        store: ConversationStore,
        now: datetime | None = None,
    ) -> int:
        """Delete every evictable conversation. Returns rows removed."""
        return await store.purge(session, self.cutoff(now), self.min_usage)
