# SPDX-License-Identifier: Apache-2.0
# Copyright 2024-2026 CAB Ingénierie / Christophe ABOULICAM
"""Tests for query fingerprints."""

import hashlib

from convcache.cache.fingerprint import fingerprint


class TestFingerprint:

    def test_sha256_hex(self):
        fp = fingerprint("hello world")
        assert len(fp) == 64  # SHA-256 hex
        assert fp == hashlib.sha256(b"hello world").hexdigest()

    def test_case_and_whitespace_insensitive(self):
        assert fingerprint("  Hello World ") == fingerprint("hello world")

    def test_punctuation_sensitive(self):
        assert fingerprint("hello, world") != fingerprint("hello world")

    def test_different_queries(self):
        assert fingerprint("what is rust") != fingerprint("what is python")

    def test_unicode(self):
        assert fingerprint("Что такое Кэш") == fingerprint("что такое кэш")
