"""Fuzzy text similarity used by ``doc.contains_fuzzy`` checks.

The score is the larger of token-set Jaccard similarity and character-bigram Dice
coefficient over normalised text (lowercased, punctuation folded to spaces, whitespace
collapsed). Containment of one normalised text in the other scores 1.0; a haystack
with no text left after normalisation scores 0.0.
"""

from __future__ import annotations

import re
from collections import Counter
from collections.abc import Sequence
from typing import Final

_NON_ALNUM_RE: Final[re.Pattern[str]] = re.compile(r"[^a-z0-9\s]")
_WHITESPACE_RE: Final[re.Pattern[str]] = re.compile(r"\s+")


def normalize_text(text: str) -> str:
    folded = _NON_ALNUM_RE.sub(" ", text.lower())
    return _WHITESPACE_RE.sub(" ", folded).strip()


def tokenize(text: str) -> list[str]:
    return [token for token in normalize_text(text).split(" ") if token]


def jaccard(left: Sequence[str], right: Sequence[str]) -> float:
    left_set, right_set = set(left), set(right)
    union = left_set | right_set
    if not union:
        return 1.0
    return len(left_set & right_set) / len(union)


def bigrams(text: str) -> list[str]:
    normalized = normalize_text(text)
    if len(normalized) < 2:
        return [normalized]
    return [normalized[index : index + 2] for index in range(len(normalized) - 1)]


def dice_coefficient(left: Sequence[str], right: Sequence[str]) -> float:
    """Multiset Dice coefficient; two empty inputs are identical."""

    total = len(left) + len(right)
    if total == 0:
        return 1.0
    overlap = sum((Counter(left) & Counter(right)).values())
    return 2 * overlap / total


def fuzzy_score(haystack: str, needle: str) -> float:
    normalized_haystack = normalize_text(haystack)
    normalized_needle = normalize_text(needle)
    if not normalized_haystack:
        return 0.0
    if normalized_needle in normalized_haystack or normalized_haystack in normalized_needle:
        return 1.0
    return max(
        jaccard(tokenize(haystack), tokenize(needle)),
        dice_coefficient(bigrams(haystack), bigrams(needle)),
    )


__all__ = [
    "bigrams",
    "dice_coefficient",
    "fuzzy_score",
    "jaccard",
    "normalize_text",
    "tokenize",
]
