"""
Cache helpers for LeetCode Insight.

- Weak-topic cache validation: a pure decision on whether a stored
  weak-topic result may be reused.
- Single-flight deduplication: collapses concurrent rebuilds for the same
  key into one in-flight task.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, Hashable, Optional

from .config import WEAK_TOPICS_CACHE_TTL_HOURS

logger = logging.getLogger(__name__)


# =============================================================================
# WEAK TOPIC CACHE
# =============================================================================

@dataclass(frozen=True)
class CacheCheck:
    """Outcome of a cache validity check."""
    valid: bool
    hours_since_calculation: Optional[float]
    reason: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "valid": self.valid,
            "hours_since_calculation": (
                round(self.hours_since_calculation, 2)
                if self.hours_since_calculation is not None else None
            ),
            "reason": self.reason,
        }


def parse_timestamp(value) -> Optional[datetime]:
    """
    Parse a stored timestamp (datetime, ISO string, or epoch seconds).

    Returns naive UTC datetimes; None when the value cannot be parsed.
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, bool):
        return None
    elif isinstance(value, (int, float)):
        try:
            return datetime.utcfromtimestamp(value)
        except (OverflowError, OSError, ValueError):
            return None
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None

    if parsed.tzinfo is not None:
        parsed = (parsed - parsed.utcoffset()).replace(tzinfo=None)
    return parsed


def is_weak_topics_cache_valid(
    cache: Optional[Dict[str, Any]],
    current_submission_count: int,
    ttl_hours: float = WEAK_TOPICS_CACHE_TTL_HOURS,
    now: Optional[datetime] = None
) -> CacheCheck:
    """
    Decide whether a cached weak-topic result may be reused.

    The cache is valid only when its submission count equals the live count
    exactly (edits and removals also force a recompute) and it is younger
    than the TTL.

    Args:
        cache: Stored cache document or None
        current_submission_count: Live solved + failed count
        ttl_hours: Maximum cache age in hours
        now: Reference time (defaults to utcnow)

    Returns:
        CacheCheck with a reason code
    """
    if not cache:
        return CacheCheck(False, None, "no cache")

    if not cache.get("result"):
        return CacheCheck(False, None, "no result in cache")

    raw_timestamp = cache.get("last_calculated")
    if not raw_timestamp:
        return CacheCheck(False, None, "no lastCalculated")

    last_calculated = parse_timestamp(raw_timestamp)
    if last_calculated is None:
        return CacheCheck(False, None, "invalid lastCalculated")

    now = now or datetime.utcnow()
    hours = (now - last_calculated).total_seconds() / 3600

    if cache.get("submission_count") != current_submission_count:
        return CacheCheck(False, hours, "submission count mismatch")

    if hours >= ttl_hours:
        return CacheCheck(False, hours, "cache too old")

    return CacheCheck(True, hours, "ok")


def build_weak_topics_cache(
    result: Dict[str, Any],
    submission_count: int,
    now: Optional[datetime] = None
) -> Dict[str, Any]:
    """Build the cache document stored on the user record."""
    return {
        "result": result,
        "last_calculated": (now or datetime.utcnow()).isoformat(),
        "submission_count": submission_count,
    }


# =============================================================================
# SINGLE FLIGHT
# =============================================================================

class SingleFlight:
    """
    Collapse concurrent calls for the same key into one in-flight task.

    Callers arriving while a task for their key is running await that task
    instead of starting their own; all of them see its result or exception.
    The key is released once the task finishes.
    """

    def __init__(self):
        self._inflight: Dict[Hashable, asyncio.Future] = {}

    async def do(self, key: Hashable, fn: Callable[[], Awaitable[Any]]) -> Any:
        existing = self._inflight.get(key)
        if existing is not None:
            logger.debug(f"Joining in-flight task for key: {key}")
            return await asyncio.shield(existing)

        task = asyncio.ensure_future(fn())
        self._inflight[key] = task
        task.add_done_callback(lambda t: self._release(key, t))
        return await asyncio.shield(task)

    def _release(self, key: Hashable, task: asyncio.Future) -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]

    def in_flight(self, key: Hashable) -> bool:
        return key in self._inflight


# Process-wide flight group for contest history rebuilds, keyed by user id
contest_rebuilds = SingleFlight()
