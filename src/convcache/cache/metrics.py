# SPDX-License-Identifier: Apache-2.0
# Copyright 2024-2026 CAB Ingénierie / Christophe ABOULICAM
"""Prometheus metrics for the conversation cache."""

from prometheus_client import Counter, Histogram

from ..config import get_settings

prefix = get_settings().metrics_prefix

CACHE_HITS = Counter(
    f"{prefix}_cache_hits_total",
    "Total cache lookups answered from the cache",
    ["match_type"],
)

CACHE_MISSES = Counter(
    f"{prefix}_cache_misses_total",
    "Total cache lookups with no match",
)

CACHE_LATENCY = Histogram(
    f"{prefix}_cache_latency_seconds",
    "Cache operation latency",
    ["operation"],
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0],
)

CACHE_SAVES = Counter(
    f"{prefix}_cache_saves_total",
    "Total save attempts",
    ["status"],
)

CACHE_PURGED = Counter(
    f"{prefix}_cache_purged_total",
    "Total conversations removed by retention sweeps",
)

USAGE_HITS_RECORDED = Counter(
    f"{prefix}_usage_hits_recorded_total",
    "Total usage hits fully applied",
)

USAGE_HITS_DROPPED = Counter(
    f"{prefix}_usage_hits_dropped_total",
    "Total usage hits dropped or partially failed",
    ["reason"],
)
