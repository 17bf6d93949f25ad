"""String similarity primitives used to score a task field against a query.

All functions are pure and case-insensitive; they never raise for string input.
"""
from __future__ import annotations

import math

SUBSTRING_FLOOR = 0.6
WORD_FUZZY_THRESHOLD = 0.7


def _normalize(value: str) -> str:
    return value.lower().strip()


def levenshtein_distance(a: str, b: str) -> int:
    """Single-character insert/delete/substitute distance, each costing 1."""
    if len(a) < len(b):
        a, b = b, a
    previous = list(range(len(b) + 1))
    for i, char_a in enumerate(a, start=1):
        current = [i]
        for j, char_b in enumerate(b, start=1):
            if char_a == char_b:
                current.append(previous[j - 1])
            else:
                current.append(1 + min(previous[j - 1], previous[j], current[j - 1]))
        previous = current
    return previous[-1]


def fuzzy_score(a: str, b: str) -> float:
    """Similarity in [0, 1] between two strings.

    Substrings score at least ``SUBSTRING_FLOOR`` so that a short but exact
    fragment ("login") is not drowned by the length ratio against a long title.
    """
    s1, s2 = _normalize(a), _normalize(b)
    if s1 == s2:
        return 1.0
    if not s1 or not s2:
        return 0.0
    if s1 in s2 or s2 in s1:
        shorter, longer = sorted((s1, s2), key=len)
        return max(SUBSTRING_FLOOR, len(shorter) / len(longer))
    distance = levenshtein_distance(s1, s2)
    return 1.0 - distance / max(len(s1), len(s2))


def _words_match(word_a: str, word_b: str) -> bool:
    return word_b in word_a or word_a in word_b or fuzzy_score(word_a, word_b) > WORD_FUZZY_THRESHOLD


def word_match_score(a: str, b: str) -> float:
    """Share of the words of ``b`` that find a counterpart among the words of ``a``."""
    words_a = a.lower().split()
    words_b = b.lower().split()
    if not words_a or not words_b:
        return 0.0
    matches = sum(1 for word_b in words_b if any(_words_match(word_a, word_b) for word_a in words_a))
    return matches / max(len(words_a), len(words_b))


def field_score(field: str, query: str) -> float:
    """Best of the character-level and word-level signals for one field."""
    return max(fuzzy_score(field, query), word_match_score(field, query))


def to_confidence(score: float, weight: float = 1.0) -> int:
    """Scale a [0, 1] score to a 0-100 confidence, rounding half up."""
    return min(100, max(0, math.floor(score * 100 * weight + 0.5)))
