# SPDX-License-Identifier: Apache-2.0
# Copyright 2024-2026 CAB Ingénierie / Christophe ABOULICAM
"""Query normalization and keyword extraction.

Pipeline (identical at save time and query time):
1. Lower-case, split on Unicode word characters (any script)
2. Drop stop-words and tokens shorter than 3 or longer than 512 characters
3. Porter-stem the remaining tokens (rule-based, no dictionary)
4. Drop stems shorter than 3 characters

Keyword weights are positional: the k-th keyword gets
max(MIN_KEYWORD_WEIGHT, 1 - KEYWORD_WEIGHT_STEP * k).
"""

import re
from dataclasses import dataclass

from nltk.stem.porter import PorterStemmer

MIN_TOKEN_LENGTH = 3
# 512 chars of 4-byte UTF-8 stay under the PostgreSQL btree entry limit
MAX_KEYWORD_LENGTH = 512
KEYWORD_WEIGHT_STEP = 0.1
MIN_KEYWORD_WEIGHT = 0.05

_WORD_RE = re.compile(r"\w+", re.UNICODE)

# Functional words carrying no retrieval signal. Tokens under
# MIN_TOKEN_LENGTH are dropped before this check, so short words are omitted.
RUSSIAN_STOP_WORDS = frozenset({
    "для", "как", "что", "это", "или", "уже", "еще", "только", "даже",
    "может", "быть", "все", "всего", "при", "через", "над", "под", "без",
    "про", "перед", "после", "между", "среди",
})

ENGLISH_STOP_WORDS = frozenset({
    "the", "and", "for", "are", "but", "not", "you", "all", "any", "can",
    "was", "our", "out", "has", "had", "his", "her", "its", "who", "how",
    "why", "did", "does", "what", "when", "where", "which", "with", "this",
    "that", "these", "those", "from", "into", "about", "there", "their",
    "then", "than", "them", "they", "have", "been", "being", "were", "will",
    "would", "should", "could", "your", "yours", "just", "also",
})

STOP_WORDS = RUSSIAN_STOP_WORDS | ENGLISH_STOP_WORDS

_stemmer = PorterStemmer()


@dataclass(frozen=True)
class WeightedKeyword:
    """A keyword stem with its positional weight."""

    keyword: str
    weight: float


def normalize(text: str) -> str:
    """Lower-case and trim surrounding whitespace. Idempotent."""
    return text.lower().strip()


def stem_token(token: str) -> str:
    """Porter-stem a single lower-case token."""
    return _stemmer.stem(token)


def tokenize(text: str) -> list[str]:
    """Extract the ordered keyword stem sequence from text.

    Duplicate stems are kept so repeated terms keep their positions.
    """
    keywords: list[str] = []
    for token in _WORD_RE.findall(text.lower()):
        if not MIN_TOKEN_LENGTH <= len(token) <= MAX_KEYWORD_LENGTH or token in STOP_WORDS:
            continue
        stem = stem_token(token)
        if len(stem) < MIN_TOKEN_LENGTH:
            continue
        keywords.append(stem)
    return keywords


def keyword_weight(position: int) -> float:
    """Weight for the keyword at 0-indexed ``position``."""
    return max(MIN_KEYWORD_WEIGHT, 1.0 - KEYWORD_WEIGHT_STEP * position)


def extract_keywords(text: str) -> list[WeightedKeyword]:
    """Tokenize text and attach positional weights."""
    return [
        WeightedKeyword(keyword=keyword, weight=keyword_weight(position))
        for position, keyword in enumerate(tokenize(text))
    ]


def unique_keywords(keywords: list[str]) -> list[str]:
    """De-duplicate keywords, keeping first-occurrence order."""
    return list(dict.fromkeys(keywords))
