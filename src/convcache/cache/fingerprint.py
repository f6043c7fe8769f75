# SPDX-License-Identifier: Apache-2.0
# Copyright 2024-2026 CAB Ingénierie / Christophe ABOULICAM
"""Query fingerprints for the exact-match fast path."""

import hashlib

from .normalizer import normalize


def fingerprint(query: str) -> str:
    """SHA-256 hex digest of the normalized query text.

    Hashes the normalized string itself, not the keyword sequence, so
    " Hello World " and "hello world" share a fingerprint while
    "hello, world" does not.
    """
    return hashlib.sha256(normalize(query).encode("utf-8")).hexdigest()
