"""Fuzzy similarity between two fragments of normalized text.

On-screen text and spoken captions rarely agree verbatim. The score combines a
token-level overlap, a character-bigram overlap (partial credit for typos and
different word splits) and a bonus when one text literally contains the other.
"""

from __future__ import annotations

from typing import Set

from .normalization import char_bigrams, normalize_text, word_set


SUBSTRING_BONUS = 0.3


def _overlap_ratio(set_a: Set[str], set_b: Set[str]) -> float:
    """|A ∩ B| / max(|A|, |B|), or 0 when A is empty."""
    if not set_a:
        return 0.0
    return len(set_a & set_b) / max(len(set_a), len(set_b))


def word_overlap(a: str, b: str) -> float:
    """Jaccard-like overlap of unique word tokens (order ignored)."""
    words_a = word_set(a)
    words_b = word_set(b)
    if not words_a or not words_b:
        return 0.0
    return _overlap_ratio(words_a, words_b)


def bigram_overlap(a: str, b: str) -> float:
    """Overlap of character bigram sets over the full strings."""
    return _overlap_ratio(char_bigrams(a), char_bigrams(b))


def similarity(a: str, b: str) -> float:
    """Score two normalized texts in [0, 1].

    ``min(1, max(word_overlap, bigram_overlap) + bonus)`` where the bonus is
    SUBSTRING_BONUS if either string contains the other.
    """
    if not a or not b:
        return 0.0
    if not word_set(a) or not word_set(b):
        return 0.0

    structural = max(word_overlap(a, b), bigram_overlap(a, b))
    bonus = SUBSTRING_BONUS if (b in a or a in b) else 0.0
    return min(1.0, structural + bonus)


def text_similarity(raw_a: str, raw_b: str) -> float:
    """Normalize both raw texts, then score them."""
    return similarity(normalize_text(raw_a), normalize_text(raw_b))
