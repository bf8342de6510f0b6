"""Tests for prediction-to-probability conversion."""

import math

import pytest

from pivot_arena.shared.probability import confidence_to_probability, to_probability


class TestConfidenceToProbability:
    """Tests for {outcome, confidence} conversion."""

    def test_true_outcome(self):
        """A true call keeps its confidence."""
        assert confidence_to_probability(True, 0.8) == pytest.approx(0.8)

    def test_false_outcome(self):
        """A false call maps to 1 - confidence."""
        assert confidence_to_probability(False, 0.8) == pytest.approx(0.2)

    def test_coin_flip(self):
        """Confidence 0.5 is 0.5 either way."""
        assert confidence_to_probability(False, 0.5) == 0.5

    @pytest.mark.parametrize("confidence", [0.49, 1.01, -1.0])
    def test_out_of_range(self, confidence):
        """Confidence outside [0.5, 1] is rejected."""
        with pytest.raises(ValueError):
            confidence_to_probability(True, confidence)


class TestToProbability:
    """Tests for to_probability."""

    def test_plain_float(self):
        """Floats in [0, 1] pass through."""
        assert to_probability(0.3) == 0.3

    def test_bounds_inclusive(self):
        """0 and 1 are valid probabilities."""
        assert to_probability(0) == 0.0
        assert to_probability(1) == 1.0

    def test_mapping_probability(self):
        """A mapping with 'probability' is unwrapped."""
        assert to_probability({"probability": 0.65}) == 0.65

    def test_mapping_outcome_confidence(self):
        """A mapping with outcome and confidence is converted."""
        assert to_probability({"outcome": False, "confidence": 0.9}) == pytest.approx(0.1)

    def test_mapping_missing_fields(self):
        """A mapping without either form is rejected."""
        with pytest.raises(ValueError):
            to_probability({"outcome": True})

    @pytest.mark.parametrize("bad", [1.5, -0.1, math.nan, math.inf, "high", None, True])
    def test_rejects_invalid(self, bad):
        """Out of range, non-finite, non-numeric and bool values are rejected."""
        with pytest.raises(ValueError):
            to_probability(bad)

    @pytest.mark.parametrize("outcome", ["false", "true", 0, 1, None])
    def test_outcome_must_be_bool(self, outcome):
        """Strings and numbers are not accepted as an outcome."""
        with pytest.raises(ValueError):
            to_probability({"outcome": outcome, "confidence": 0.8})
