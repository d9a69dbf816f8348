"""
Contest History Cache Manager.

Serves a user's contest history from a per-user cache entry and rebuilds it
from LeetCode when it is missing, older than the TTL, or a refresh is forced.

Per request:
- FRESH_HIT: cached entry younger than the TTL is served as-is
- REBUILD_SUCCESS: the whole history is refetched, stored, and served
- REBUILD_FAILURE with a prior entry: the old entry is served, flagged stale
- REBUILD_FAILURE without one: the error propagates

A failed rebuild never modifies or deletes the stored entry.
"""

import asyncio
import logging
import math
from datetime import datetime, timedelta
from typing import Any, Dict, List, NamedTuple, Optional, Tuple

from sqlalchemy.orm import Session

from .cache import SingleFlight, contest_rebuilds
from .concurrency import TaskFailure, map_concurrent
from .config import (
    CONTEST_CACHE_TTL_DAYS,
    CONTEST_FETCH_CONCURRENCY,
    CONTEST_FETCH_TIMEOUT,
    DEFAULT_PAGE_SIZE,
)
from .corpus import ratings_by_question_id
from .lc_client import normalize_attended_contests, normalize_contest_question, question_id_of
from .models import User, UserContestCache
from .validation import sanitize_pagination

logger = logging.getLogger(__name__)

STALE_WARNING = "Showing cached contest history; refreshing from LeetCode failed."


class CacheSnapshot(NamedTuple):
    contests: List[Dict[str, Any]]
    last_updated: Optional[datetime]


def transform_contest(
    contest: Dict[str, Any],
    fetch_result: Any,
    ratings: Dict[str, Optional[float]]
) -> Dict[str, Any]:
    """
    Build a ContestResult from a normalized contest and its fetched questions.

    A failed fetch yields an entry with no questions and zero credits, so the
    contest still counts towards pagination.
    """
    raw_questions = fetch_result if isinstance(fetch_result, list) else []

    questions = []
    for raw in raw_questions:
        if not isinstance(raw, dict):
            continue
        qid = question_id_of(raw)
        questions.append(normalize_contest_question(raw, ratings.get(qid) if qid else None))

    total_credits = sum(q["credit"] for q in questions)
    earned_credits = sum(q["credit"] for q in questions if q["is_ac"])

    return {
        "title": contest["title"],
        "title_slug": contest["title_slug"],
        "start_time": contest["start_time"],
        "attended": contest["attended"],
        "rating": contest["rating"],
        "ranking": contest["ranking"],
        "total_credits": total_credits,
        "earned_credits": earned_credits,
        "questions": questions,
    }


def paginate(contests: List[Dict[str, Any]], page: int, page_size: int) -> Tuple[List[Dict[str, Any]], Dict[str, int]]:
    """Slice one page and describe it."""
    total_count = len(contests)
    start = (page - 1) * page_size
    page_contests = contests[start:start + page_size]
    return page_contests, {
        "total_count": total_count,
        "total_pages": math.ceil(total_count / page_size),
        "page": page,
        "page_size": page_size,
        "returned": len(page_contests),
    }


class ContestHistoryManager:
    """
    Reconciles the LeetCode contest source against the local cache.

    Database work runs in worker threads, one call at a time per manager,
    so a slow query never stalls the event loop.

    Args:
        db: Database session
        client: LeetCode client (get_attended_contests, fetch_contest_questions)
        concurrency: Maximum per-contest fetches in flight
        ttl: Cache time-to-live
        call_timeout: Upper bound for a single per-contest fetch
        flights: Single-flight group deduplicating rebuilds per user
    """

    def __init__(
        self,
        db: Session,
        client,
        concurrency: int = CONTEST_FETCH_CONCURRENCY,
        ttl: timedelta = timedelta(days=CONTEST_CACHE_TTL_DAYS),
        call_timeout: Optional[float] = CONTEST_FETCH_TIMEOUT,
        flights: SingleFlight = contest_rebuilds
    ):
        self.db = db
        self.client = client
        self.concurrency = concurrency
        self.ttl = ttl
        self.call_timeout = call_timeout
        self.flights = flights
        # Sessions are not thread-safe
        self._db_lock = asyncio.Lock()

    async def _in_thread(self, func, *args):
        async with self._db_lock:
            return await asyncio.to_thread(func, *args)

    def _load_cache(self, user_id: int) -> Optional[UserContestCache]:
        return self.db.query(UserContestCache).filter(UserContestCache.user_id == user_id).first()

    def _read_state(self, user: User) -> Tuple[int, str, Optional[CacheSnapshot]]:
        """Plain copies of everything the request needs, so nothing lazy-loads later."""
        entry = self._load_cache(user.id)
        snapshot = None
        if entry is not None:
            snapshot = CacheSnapshot(list(entry.contests or []), entry.last_updated)
        return user.id, user.username, snapshot

    def _is_fresh(self, snapshot: CacheSnapshot, now: datetime) -> bool:
        return snapshot.last_updated is not None and now - snapshot.last_updated < self.ttl

    async def get_contest_history(
        self,
        user: User,
        page: int = 1,
        page_size: int = DEFAULT_PAGE_SIZE,
        force_refresh: bool = False,
        now: Optional[datetime] = None
    ) -> Dict[str, Any]:
        """
        Return one page of the user's contest history.

        Returns:
            Dict with meta (pagination + cache status) and contests
        """
        page, page_size = sanitize_pagination(page, page_size)
        now = now or datetime.utcnow()
        user_id, username, cached = await self._in_thread(self._read_state, user)

        if cached is not None and not force_refresh and self._is_fresh(cached, now):
            logger.info(f"Contest cache HIT for user {user_id}")
            page_contests, meta = paginate(cached.contests, page, page_size)
            meta["cache"] = {
                "used": True,
                "stale": False,
                "last_updated": cached.last_updated.isoformat(),
            }
            return {"meta": meta, "contests": page_contests}

        reason = "forced" if force_refresh else ("missing" if cached is None else "expired")
        logger.info(f"Contest cache rebuild for user {user_id} ({reason})")

        try:
            contests, refreshed_at = await self.flights.do(
                user_id, lambda: self._rebuild_and_store(user_id, username, now)
            )
        except Exception as e:
            await self._in_thread(self.db.rollback)
            if cached is None:
                logger.error(f"Contest rebuild failed for user {user_id} with no cache to fall back on: {e}")
                raise

            logger.warning(f"Contest rebuild failed for user {user_id}, serving stale cache: {e}")
            page_contests, meta = paginate(cached.contests, page, page_size)
            meta["cache"] = {
                "used": True,
                "stale": True,
                "warning": STALE_WARNING,
                "refresh_error": str(e) or type(e).__name__,
                "last_updated": cached.last_updated.isoformat() if cached.last_updated else None,
            }
            return {"meta": meta, "contests": page_contests}

        page_contests, meta = paginate(contests, page, page_size)
        meta["cache"] = {
            "used": False,
            "stale": False,
            "refreshed_at": refreshed_at.isoformat(),
        }
        return {"meta": meta, "contests": page_contests}

    async def _rebuild_and_store(
        self, user_id: int, username: str, now: datetime
    ) -> Tuple[List[Dict[str, Any]], datetime]:
        contests = await self.rebuild_contests(user_id, username)
        await self._in_thread(self._store, user_id, contests, now)
        return contests, now

    def _store(self, user_id: int, contests: List[Dict[str, Any]], now: datetime) -> None:
        """Upsert the cache entry by user id."""
        entry = self._load_cache(user_id)
        if entry is None:
            entry = UserContestCache(user_id=user_id)
            self.db.add(entry)
        entry.contests = contests
        entry.last_updated = now
        self.db.commit()
        logger.info(f"Stored {len(contests)} contests for user {user_id}")

    async def rebuild_contests(self, user_id: int, username: str) -> List[Dict[str, Any]]:
        """
        Rebuild the user's full contest history from LeetCode.

        The attended-contest call must succeed; per-contest question fetches
        fail independently and leave that contest without questions.
        """
        attended = await asyncio.to_thread(self.client.get_attended_contests, username)
        contests = normalize_attended_contests(attended)

        async def fetch_questions(contest, _idx):
            return await asyncio.to_thread(self.client.fetch_contest_questions, contest["title_slug"])

        results = await map_concurrent(
            contests, self.concurrency, fetch_questions, timeout=self.call_timeout
        )

        question_ids = set()
        failures = 0
        for contest, result in zip(contests, results):
            if isinstance(result, TaskFailure):
                failures += 1
                logger.warning(f"Question fetch failed for {contest['title_slug']}: {result.message}")
                continue
            for q in result or []:
                if isinstance(q, dict):
                    qid = question_id_of(q)
                    if qid:
                        question_ids.add(qid)

        ratings = await self._in_thread(ratings_by_question_id, self.db, question_ids)

        logger.info(
            f"Rebuilt contest history for user {user_id}: {len(contests)} contests, "
            f"{failures} failed fetches, {len(question_ids)} questions"
        )
        return [transform_contest(c, r, ratings) for c, r in zip(contests, results)]
