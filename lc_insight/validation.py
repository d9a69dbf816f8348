"""
Input Validation Utilities for LeetCode Insight.

Provides validation functions for user input with consistent error handling.
Filters are resolved once here; nothing malformed reaches the data layer.
"""

from dataclasses import dataclass, field
from typing import Any, FrozenSet, Mapping, Optional, Tuple

from .config import (
    DEFAULT_MIN_RATING_OFFSET,
    DEFAULT_MAX_RATING_OFFSET,
    DIFFICULTIES,
    RECOMMENDATION_LIMIT,
    RECOMMENDATION_LIMIT_MAX,
    DEFAULT_PAGE_SIZE,
)
from .errors import InvalidInputError

_DIFFICULTY_LOOKUP = {d.lower(): d for d in DIFFICULTIES}


@dataclass(frozen=True)
class DifficultyFilter:
    """Requested difficulties: none (any), a single one, or several."""
    values: FrozenSet[str] = field(default_factory=frozenset)

    @property
    def kind(self) -> str:
        if not self.values:
            return "none"
        return "single" if len(self.values) == 1 else "many"


@dataclass(frozen=True)
class RecommendationFilters:
    """Validated recommendation filter body (rating bounds are offsets)."""
    min_rating: float = DEFAULT_MIN_RATING_OFFSET
    max_rating: float = DEFAULT_MAX_RATING_OFFSET
    difficulty: DifficultyFilter = field(default_factory=DifficultyFilter)
    is_premium: bool = False


def parse_rating_offset(value: Any, default: float) -> Tuple[Optional[float], Optional[str]]:
    """
    Coerce a rating offset to a number.

    Returns:
        Tuple of (offset, error_message)
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        return float(default), None

    if isinstance(value, bool):
        return None, "Rating offset must be a number"

    try:
        offset = float(value)
    except (TypeError, ValueError):
        return None, f"Rating offset must be a number, got '{value}'"

    if offset != offset or offset in (float("inf"), float("-inf")):
        return None, "Rating offset must be a finite number"

    return offset, None


def validate_rating_bounds(min_rating: float, max_rating: float) -> Tuple[bool, Optional[str]]:
    """
    Validate that the rating window is non-empty.

    Returns:
        Tuple of (is_valid, error_message)
    """
    if min_rating >= max_rating:
        return False, f"minRating ({min_rating:g}) must be less than maxRating ({max_rating:g})"
    return True, None


def parse_difficulty_filter(value: Any) -> Tuple[Optional[DifficultyFilter], Optional[str]]:
    """
    Resolve the preferred-difficulty input (omitted, a string, or a list).

    Matching is case-insensitive; values are returned in canonical case.

    Returns:
        Tuple of (difficulty_filter, error_message)
    """
    if value is None:
        return DifficultyFilter(), None

    if isinstance(value, str):
        tokens = [value] if value.strip() else []
    elif isinstance(value, (list, tuple, set, frozenset)):
        tokens = list(value)
    else:
        return None, "preferredDifficulty must be a string or a list of strings"

    resolved = set()
    for token in tokens:
        if not isinstance(token, str):
            return None, f"Unknown difficulty: {token!r}"
        canonical = _DIFFICULTY_LOOKUP.get(token.strip().lower())
        if canonical is None:
            return None, f"Unknown difficulty: '{token}'. Expected one of {', '.join(DIFFICULTIES)}"
        resolved.add(canonical)

    return DifficultyFilter(frozenset(resolved)), None


def resolve_recommendation_filters(body: Optional[Mapping[str, Any]]) -> RecommendationFilters:
    """
    Validate the recommendation filter body.

    Args:
        body: Raw filter mapping (minRating, maxRating, preferredDifficulty, isPremium)

    Returns:
        RecommendationFilters

    Raises:
        InvalidInputError: On a non-numeric offset, min >= max, or an unknown difficulty
    """
    body = body or {}

    min_rating, error = parse_rating_offset(body.get("minRating"), DEFAULT_MIN_RATING_OFFSET)
    if error:
        raise InvalidInputError(error, detail="minRating")

    max_rating, error = parse_rating_offset(body.get("maxRating"), DEFAULT_MAX_RATING_OFFSET)
    if error:
        raise InvalidInputError(error, detail="maxRating")

    is_valid, error = validate_rating_bounds(min_rating, max_rating)
    if not is_valid:
        raise InvalidInputError(error)

    difficulty, error = parse_difficulty_filter(body.get("preferredDifficulty"))
    if error:
        raise InvalidInputError(error, detail="preferredDifficulty")

    return RecommendationFilters(
        min_rating=min_rating,
        max_rating=max_rating,
        difficulty=difficulty,
        is_premium=parse_bool(body.get("isPremium")),
    )


def parse_bool(value: Any) -> bool:
    """Coerce a loose boolean ("true", 1, None ...)."""
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "yes", "on")
    return bool(value)


def clamp_limit(limit: Optional[int]) -> int:
    """Keep the recommendation count within 1..RECOMMENDATION_LIMIT_MAX."""
    if limit is None:
        return RECOMMENDATION_LIMIT
    return max(1, min(RECOMMENDATION_LIMIT_MAX, int(limit)))


def sanitize_pagination(page: Optional[int], page_size: Optional[int]) -> Tuple[int, int]:
    """Clamp page and page size to at least 1."""
    page = max(1, int(page or 1))
    page_size = max(1, int(page_size or DEFAULT_PAGE_SIZE))
    return page, page_size
