"""Text normalization for caption and beat comparison.

This module converts caption, beat and script text into a comparable form and
provides the token views (word sets, character bigrams, content words) used
by the similarity scorer and the segment window matcher.
"""

import re
from typing import FrozenSet, Iterable, List, Set


# Function words that match nearly every window; ignored when judging
# whether a transcript window and a segment script talk about the same thing.
STOP_WORDS: FrozenSet[str] = frozenset({
    "the", "a", "an", "is", "it", "in", "on", "to", "of", "and", "or", "but",
    "that", "this", "with", "for", "not", "are", "was", "be", "has", "had",
    "do", "does", "did", "will", "would", "could", "should", "can", "may",
    "i", "you", "he", "she", "we", "they", "my", "your", "his", "her", "our",
    "their", "its", "if", "so", "at", "by", "from", "up", "out", "no", "yes",
    "just", "all", "more", "some", "than", "then", "when", "what", "how",
    "about", "into", "over", "after", "before", "between", "through",
})

# Content words must be longer than this
MIN_CONTENT_WORD_LENGTH = 2


def _drop_punctuation(text: str) -> str:
    """Replace every non-word, non-space character with a space."""
    # Examples: "Hello, world!" → "hello  world ", "don't" → "don t"
    return re.sub(r"[^\w\s]", " ", text)


def _normalize_whitespace(text: str) -> str:
    """Collapse whitespace runs into single spaces and trim."""
    return re.sub(r"\s+", " ", text).strip()


def normalize_text(text: str) -> str:
    """Normalize text for similarity comparison.

    Steps:
    - Lowercase
    - Replace punctuation and other non-word characters with spaces
    - Collapse whitespace runs and trim

    The result is stable under repeated application.
    """
    if not text:
        return ""
    return _normalize_whitespace(_drop_punctuation(text.lower()))


def split_words(normalized: str) -> List[str]:
    """Split normalized text into whitespace-delimited tokens."""
    return [w for w in normalized.split(" ") if w]


def word_set(normalized: str) -> Set[str]:
    """Unique tokens of normalized text."""
    return set(split_words(normalized))


def char_bigrams(normalized: str) -> Set[str]:
    """Overlapping two-character substrings of the whole string."""
    return {normalized[i:i + 2] for i in range(len(normalized) - 1)}


def is_content_word(word: str) -> bool:
    return len(word) > MIN_CONTENT_WORD_LENGTH and word not in STOP_WORDS


def content_words(words: Iterable[str]) -> Set[str]:
    """Filter tokens down to content words (long enough, not stop words)."""
    return {w for w in words if is_content_word(w)}
