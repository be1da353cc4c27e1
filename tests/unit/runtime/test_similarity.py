"""
webspec — unit tests for fuzzy similarity

File: tests/unit/runtime/test_similarity.py

Purpose
- Validate normalisation and the scoring used by fuzzy doc checks.
"""

from __future__ import annotations

import pytest

from webspec.runtime.similarity import (
    bigrams,
    dice_coefficient,
    fuzzy_score,
    jaccard,
    normalize_text,
    tokenize,
)

try:
    from hypothesis import given
    from hypothesis import strategies as st
except ModuleNotFoundError:
    _HYPOTHESIS_AVAILABLE = False
else:
    _HYPOTHESIS_AVAILABLE = True


def test_normalize_text_folds_case_punctuation_and_whitespace() -> None:
    assert normalize_text("  Hello,\n\tWORLD!  ") == "hello world"
    assert tokenize("Build-time; checks") == ["build", "time", "checks"]


def test_containment_scores_one() -> None:
    doc = "# Overview\n\nThis site describes the Marketing pages, end to end."

    assert fuzzy_score(doc, "describes the marketing pages") == 1.0
    assert fuzzy_score("pages", "the pages list") == 1.0


def test_blank_haystack_scores_zero() -> None:
    assert fuzzy_score("", "pricing") == 0.0
    assert fuzzy_score("  --- \n", "pricing plans") == 0.0
    assert fuzzy_score("", "") == 0.0


def test_unrelated_text_scores_low() -> None:
    assert fuzzy_score("alpha beta gamma", "zzz qqq") < 0.2


def test_near_match_scores_between_bounds() -> None:
    score = fuzzy_score("The site explains pricing plans", "site explaining the pricing plan")

    assert 0.5 < score < 1.0


def test_jaccard_and_dice_edges() -> None:
    assert jaccard([], []) == 1.0
    assert jaccard(["a", "b"], ["b", "c"]) == pytest.approx(1 / 3)
    assert dice_coefficient([], []) == 1.0
    assert dice_coefficient(["ab", "bc"], ["ab", "cd"]) == pytest.approx(0.5)


def test_bigrams_of_short_text() -> None:
    assert bigrams("a") == ["a"]
    assert bigrams("abc") == ["ab", "bc"]


if _HYPOTHESIS_AVAILABLE:

    @given(st.text(max_size=60), st.text(max_size=60))
    def test_property_score_is_bounded(haystack: str, needle: str) -> None:
        score = fuzzy_score(haystack, needle)

        assert 0.0 <= score <= 1.0

    @given(st.text(alphabet="abcdefgh ", min_size=1, max_size=40).filter(str.strip))
    def test_property_text_matches_itself(text: str) -> None:
        assert fuzzy_score(text, text) == 1.0

else:

    def test_property_score_is_bounded() -> None:
        pytest.skip("hypothesis is not installed")

    def test_property_text_matches_itself() -> None:
        pytest.skip("hypothesis is not installed")
