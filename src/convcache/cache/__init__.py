# SPDX-License-Identifier: Apache-2.0
# Copyright 2024-2026 CAB Ingénierie / Christophe ABOULICAM
"""Conversation cache.

Fingerprint fast path plus weighted keyword similarity over a
transactional relational store.
"""

from .engine import ConversationCache
from .keyword_index import KeywordIndex
from .ranker import RankedCandidate, SimilarityRanker
from .retention import RetentionPolicy
from .store import ConversationStore
from .usage import HitRecorder, UsageHit, UsageLog

__all__ = [
    "ConversationCache",
    "ConversationStore",
    "HitRecorder",
    "KeywordIndex",
    "RankedCandidate",
    "RetentionPolicy",
    "SimilarityRanker",
    "UsageHit",
    "UsageLog",
]
