# SPDX-License-Identifier: Apache-2.0
# Copyright 2024-2026 CAB Ingénierie / Christophe ABOULICAM
"""Tests for query normalization, tokenization and keyword weights."""

from unittest.mock import MagicMock

import pytest

from convcache.cache import normalizer
from convcache.cache.normalizer import (
    MAX_KEYWORD_LENGTH,
    MIN_KEYWORD_WEIGHT,
    STOP_WORDS,
    WeightedKeyword,
    extract_keywords,
    keyword_weight,
    normalize,
    stem_token,
    tokenize,
    unique_keywords,
)


class TestNormalize:

    def test_lowercases_and_trims(self):
        assert normalize("  What Is RUST?  ") == "what is rust?"

    def test_idempotent(self):
        once = normalize("  Mixed Case\tText ")
        assert normalize(once) == once

    def test_keeps_inner_punctuation(self):
        assert normalize("Hello, World") == "hello, world"


class TestTokenize:

    def test_stop_words_and_short_tokens_dropped(self):
        assert tokenize("What is the Rust language?") == [
            stem_token("rust"),
            stem_token("language"),
        ]

    def test_stop_word_only_query(self):
        assert tokenize("what is the") == []

    def test_empty_text(self):
        assert tokenize("") == []
        assert tokenize("   ") == []

    def test_stems_inflections_together(self):
        assert tokenize("connections") == tokenize("connection")
        assert tokenize("running") == [stem_token("running")]

    def test_case_insensitive(self):
        assert tokenize("Caching Strategies") == tokenize("caching strategies")

    def test_duplicates_kept_in_order(self):
        stem = stem_token("cache")
        assert tokenize("cache cache cache") == [stem, stem, stem]

    def test_punctuation_splits_words(self):
        assert tokenize("rust,python;golang") == [
            stem_token("rust"),
            stem_token("python"),
            stem_token("golang"),
        ]

    def test_russian_stop_words(self):
        assert "что" in STOP_WORDS
        keywords = tokenize("Что такое кэширование")
        assert "что" not in keywords
        assert keywords
        assert all(len(k) >= 3 for k in keywords)

    def test_short_stems_dropped(self, monkeypatch):
        fake = MagicMock()
        fake.stem.side_effect = lambda token: "ab" if token == "abcs" else token
        monkeypatch.setattr(normalizer, "_stemmer", fake)

        assert tokenize("abcs rust") == ["rust"]

    def test_long_tokens_kept_up_to_limit(self):
        token = "x" * 300
        assert tokenize(f"{token} rust") == [stem_token(token), stem_token("rust")]

    def test_oversized_tokens_dropped(self):
        blob = "q" * (MAX_KEYWORD_LENGTH + 1)
        assert tokenize(f"{blob} rust") == [stem_token("rust")]

    def test_deterministic(self):
        text = "Explain async database transactions in Python"
        assert tokenize(text) == tokenize(text)


class TestKeywordWeights:

    def test_first_positions(self):
        assert keyword_weight(0) == pytest.approx(1.0)
        assert keyword_weight(1) == pytest.approx(0.9)
        assert keyword_weight(2) == pytest.approx(0.8)

    def test_floor(self):
        assert keyword_weight(10) == pytest.approx(MIN_KEYWORD_WEIGHT)
        assert keyword_weight(25) == pytest.approx(MIN_KEYWORD_WEIGHT)

    def test_weights_in_range(self):
        for position in range(40):
            assert 0 < keyword_weight(position) <= 1

    def test_extract_keywords(self):
        keywords = extract_keywords("alpha beta gamma")
        assert keywords == [
            WeightedKeyword("alpha", pytest.approx(1.0)),
            WeightedKeyword("beta", pytest.approx(0.9)),
            WeightedKeyword("gamma", pytest.approx(0.8)),
        ]

    def test_extract_keywords_duplicates_weighted_by_position(self):
        weights = [kw.weight for kw in extract_keywords("delta delta delta")]
        assert weights == [pytest.approx(1.0), pytest.approx(0.9), pytest.approx(0.8)]


class TestUniqueKeywords:

    def test_first_occurrence_order(self):
        assert unique_keywords(["b", "a", "b", "c", "a"]) == ["b", "a", "c"]

    def test_empty(self):
        assert unique_keywords([]) == []
