"""
Unit Tests for Input Validation.
"""

import pytest
from lc_insight.errors import InvalidInputError, ErrorCode
from lc_insight.validation import (
    parse_rating_offset,
    validate_rating_bounds,
    parse_difficulty_filter,
    resolve_recommendation_filters,
    parse_bool,
    clamp_limit,
    sanitize_pagination,
)


class TestRatingOffsets:
    """Tests for rating offset coercion."""

    def test_defaults_when_omitted(self):
        """Omitted offsets fall back to the defaults."""
        filters = resolve_recommendation_filters(None)
        assert filters.min_rating == 50
        assert filters.max_rating == 100

    def test_numeric_strings_accepted(self):
        """Offsets are coerced like float()."""
        value, error = parse_rating_offset("75", 50)
        assert error is None
        assert value == 75.0

    def test_negative_offset_accepted(self):
        value, error = parse_rating_offset(-100, 50)
        assert error is None
        assert value == -100.0

    def test_zero_is_not_treated_as_missing(self):
        value, error = parse_rating_offset(0, 50)
        assert error is None
        assert value == 0.0

    def test_non_numeric_rejected(self):
        """Non-numeric offsets are rejected."""
        for bad in ["abc", "12x", [1], {"a": 1}, True]:
            value, error = parse_rating_offset(bad, 50)
            assert value is None, f"{bad!r} should be rejected"
            assert error

    def test_non_finite_rejected(self):
        for bad in ["nan", "inf", float("-inf")]:
            value, error = parse_rating_offset(bad, 50)
            assert value is None
            assert "finite" in error

    def test_min_must_be_below_max(self):
        is_valid, error = validate_rating_bounds(100, 100)
        assert not is_valid
        assert "less than" in error

        is_valid, error = validate_rating_bounds(-50, 100)
        assert is_valid
        assert error is None

    def test_inverted_bounds_raise_invalid_input(self):
        with pytest.raises(InvalidInputError) as exc_info:
            resolve_recommendation_filters({"minRating": 200, "maxRating": 100})
        assert exc_info.value.code == ErrorCode.INVALID_INPUT
        assert exc_info.value.status_code == 400

    def test_non_numeric_body_raises_invalid_input(self):
        with pytest.raises(InvalidInputError) as exc_info:
            resolve_recommendation_filters({"minRating": "low"})
        assert exc_info.value.detail == "minRating"


class TestDifficultyFilter:
    """Tests for the preferred-difficulty variant."""

    def test_omitted_means_any(self):
        difficulty, error = parse_difficulty_filter(None)
        assert error is None
        assert difficulty.kind == "none"
        assert difficulty.values == frozenset()

    def test_single_string_case_insensitive(self):
        difficulty, error = parse_difficulty_filter("medium")
        assert error is None
        assert difficulty.kind == "single"
        assert difficulty.values == frozenset({"Medium"})

    def test_list_of_difficulties(self):
        difficulty, error = parse_difficulty_filter(["Easy", "HARD", "easy"])
        assert error is None
        assert difficulty.kind == "many"
        assert difficulty.values == frozenset({"Easy", "Hard"})

    def test_empty_string_means_any(self):
        difficulty, error = parse_difficulty_filter("  ")
        assert error is None
        assert difficulty.kind == "none"

    def test_unknown_difficulty_rejected(self):
        difficulty, error = parse_difficulty_filter("Insane")
        assert difficulty is None
        assert "Insane" in error

        difficulty, error = parse_difficulty_filter(["Easy", 3])
        assert difficulty is None

    def test_wrong_shape_rejected(self):
        difficulty, error = parse_difficulty_filter(42)
        assert difficulty is None
        assert error

    def test_resolve_raises_on_unknown(self):
        with pytest.raises(InvalidInputError):
            resolve_recommendation_filters({"preferredDifficulty": ["Easy", "Expert"]})


class TestMiscCoercion:
    """Tests for boolean, limit and pagination coercion."""

    def test_parse_bool(self):
        assert parse_bool("true") is True
        assert parse_bool("TRUE") is True
        assert parse_bool("0") is False
        assert parse_bool(None) is False
        assert parse_bool(1) is True

    def test_premium_flag_in_body(self):
        filters = resolve_recommendation_filters({"isPremium": "true"})
        assert filters.is_premium is True

    def test_clamp_limit(self):
        assert clamp_limit(None) == 12
        assert clamp_limit(0) == 1
        assert clamp_limit(-5) == 1
        assert clamp_limit(10) == 10
        assert clamp_limit(1000) == 25

    def test_sanitize_pagination(self):
        assert sanitize_pagination(0, 0) == (1, 10)
        assert sanitize_pagination(-3, -1) == (1, 1)
        assert sanitize_pagination(3, 5) == (3, 5)
