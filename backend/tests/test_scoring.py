"""
Tests for the shared scoring helpers.

Covers tokenization, Jaccard similarity, exponential time decay and the
weighted average used to blend signals.
"""

import pytest

from app.services.scoring import (
    clamp,
    combine_scores,
    jaccard_similarity,
    time_decay,
    tokenize,
    top_n,
)


# =============================================================================
# Tokenize / Jaccard
# =============================================================================

class TestTokenize:

    def test_lowercases_and_drops_short_tokens(self):
        assert tokenize("Clean UP the Bay, now!") == {"clean", "the", "bay", "now"}

    def test_splits_on_punctuation(self):
        assert tokenize("air-quality/monitoring") == {"air", "quality", "monitoring"}

    def test_empty_and_none(self):
        assert tokenize("") == set()
        assert tokenize(None) == set()


class TestJaccardSimilarity:

    def test_identical_texts_score_one(self):
        text = "Reduce plastic waste in oceans"
        assert jaccard_similarity(text, text) == 1.0

    def test_disjoint_vocabularies_score_zero(self):
        assert jaccard_similarity("urban flooding drains", "school lunch nutrition") == 0.0

    def test_partial_overlap(self):
        # {plastic, waste, oceans} vs {plastic, waste, rivers}: 2 shared of 4
        assert jaccard_similarity("plastic waste oceans", "plastic waste rivers") == pytest.approx(0.5)

    def test_symmetric_and_bounded(self):
        a = "community solar panels for rural schools"
        b = "solar microgrids for rural clinics"
        assert jaccard_similarity(a, b) == jaccard_similarity(b, a)
        assert 0.0 <= jaccard_similarity(a, b) <= 1.0

    def test_empty_text_scores_zero(self):
        assert jaccard_similarity("", "anything here") == 0.0
        assert jaccard_similarity(None, None) == 0.0


# =============================================================================
# Time decay
# =============================================================================

class TestTimeDecay:

    def test_half_life(self):
        assert time_decay(48) == pytest.approx(0.5)

    def test_brand_new_is_one(self):
        assert time_decay(0) == 1.0

    def test_negative_age_counts_as_new(self):
        assert time_decay(-5) == 1.0

    def test_monotonically_decreasing(self):
        values = [time_decay(hours) for hours in (0, 1, 12, 48, 100, 200)]
        assert values == sorted(values, reverse=True)

    def test_floored(self):
        assert time_decay(10_000) == 0.01

    def test_custom_half_life(self):
        assert time_decay(24, half_life_hours=24) == pytest.approx(0.5)


# =============================================================================
# Combining signals
# =============================================================================

class TestCombineScores:

    def test_weighted_average(self):
        score = combine_scores({"a": 1.0, "b": 0.0}, {"a": 0.75, "b": 0.25})
        assert score == pytest.approx(0.75)

    def test_missing_signal_redistributes_weight(self):
        # Only "a" present: its score is not dragged down by the absent "b"
        assert combine_scores({"a": 0.8}, {"a": 0.3, "b": 0.7}) == pytest.approx(0.8)

    def test_no_weighted_signal_returns_none(self):
        assert combine_scores({"c": 0.9}, {"a": 1.0}) is None
        assert combine_scores({}, {"a": 1.0}) is None

    def test_scores_are_clamped(self):
        assert combine_scores({"a": 3.0}, {"a": 1.0}) == 1.0
        assert combine_scores({"a": -1.0}, {"a": 1.0}) == 0.0


def test_clamp():
    assert clamp(1.5) == 1.0
    assert clamp(-0.2) == 0.0
    assert clamp(0.4) == 0.4
    assert clamp(7, 0, 5) == 5


def test_top_n_breaks_ties_by_key():
    scores = {"b": 0.5, "a": 0.5, "c": 0.9}
    assert top_n(scores, 2) == [("c", 0.9), ("a", 0.5)]
