"""
Recommendation Engine for LeetCode Practice Problems.

Turns a user's weak topics and rating into a ranked list of unsolved
problems.

Pipeline:
1. Resolve weak topics (reuse the cached result when still valid)
2. Compute the absolute rating window (push mode overrides the filters)
3. Query candidates: window, premium flag, difficulty, weak tags,
   excluding solved problems and the last few recommended batches
4. Score and rank candidates
5. Persist the batch (history ring + current recommendation) together
   with the weak-topic cache in one commit
"""

import logging
from datetime import datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional, Set, Tuple

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from .cache import CacheCheck, build_weak_topics_cache, is_weak_topics_cache_valid, parse_timestamp
from .config import (
    CANDIDATE_POOL_LIMIT,
    DEFAULT_USER_RATING,
    PUSH_MIN_RATING_OFFSET,
    PUSH_MAX_RATING_OFFSET,
    RECOMMENDATION_HISTORY_SIZE,
    RECOMMENDATION_LIMIT,
)
from .corpus import problem_to_candidate, tag_token_patterns
from .models import User, Problem, SolvedProblem, FailedProblem
from .scoring import calculate_weak_topics, rank_candidates
from .topic_weights import TopicWeightTable
from .validation import RecommendationFilters

logger = logging.getLogger(__name__)


# =============================================================================
# STEP 1: WEAK TOPICS
# =============================================================================

def get_weak_topics_for_user(
    db: Session,
    user: User,
    weights: TopicWeightTable,
    now: Optional[datetime] = None,
    commit: bool = True
) -> Tuple[Dict[str, Any], CacheCheck, bool]:
    """
    Resolve the user's weak topics, recomputing only on a cache miss.

    Args:
        db: Database session
        user: User record
        weights: Topic weight table
        now: Reference time (defaults to utcnow)
        commit: Commit a refreshed cache immediately; callers batching
            further writes pass False and commit themselves

    Returns:
        Tuple of (result, cache_check, recomputed)
    """
    submission_count = user.submission_count
    check = is_weak_topics_cache_valid(user.weak_topics_cache, submission_count, now=now)

    if check.valid:
        logger.info(f"Weak topics cache HIT for user {user.id}")
        return user.weak_topics_cache["result"], check, False

    logger.info(f"Weak topics cache MISS for user {user.id}: {check.reason}")
    result = calculate_weak_topics(
        [p.to_record() for p in user.solved_problems],
        [p.to_record() for p in user.failed_problems],
        weights,
        now=now,
    )
    user.weak_topics_cache = build_weak_topics_cache(result, submission_count, now=now)
    if commit:
        db.commit()
    return result, check, True


# =============================================================================
# STEP 2: RATING WINDOW
# =============================================================================

def resolve_user_rating(user: User) -> float:
    """Contest rating, else average solved rating, else the default."""
    if user.contest_rating is not None:
        return float(user.contest_rating)
    # 0 means no rated solves yet
    if user.average_rating:
        return float(user.average_rating)
    return float(DEFAULT_USER_RATING)


def compute_rating_window(
    user_rating: float,
    filters: RecommendationFilters,
    push: bool = False
) -> Tuple[float, float]:
    """
    Absolute rating window for candidates.

    Push mode ignores the filter offsets and uses a fixed +100..+200 window.
    """
    if push:
        return user_rating + PUSH_MIN_RATING_OFFSET, user_rating + PUSH_MAX_RATING_OFFSET
    return user_rating + filters.min_rating, user_rating + filters.max_rating


# =============================================================================
# STEP 3: CANDIDATE POOL
# =============================================================================

def recent_recommendation_ids(user: User) -> Set[str]:
    """Ids from the persisted recommendation history batches."""
    history = user.recent_recommendation_history or []
    return {str(pid) for batch in history[-RECOMMENDATION_HISTORY_SIZE:] for pid in batch}


def fetch_candidates(
    db: Session,
    user: User,
    window: Tuple[float, float],
    filters: RecommendationFilters,
    weak_topics: Iterable[str]
) -> List[Dict[str, Any]]:
    """
    Query unsolved problems that touch at least one weak topic.

    Filters:
    - rating within window (inclusive)
    - premium flag equal to the requested one
    - difficulty in the requested set (if any)
    - a tag equal to a weak topic (case-insensitive, whole tag)
    - not solved and not recently recommended

    The pool is capped at CANDIDATE_POOL_LIMIT rows in id order; problems
    beyond the cap are never scored.
    """
    weak_keys = list(weak_topics)
    if not weak_keys:
        return []

    min_rating, max_rating = window
    tag_clauses = [
        Problem.tags.ilike(pattern)
        for topic in weak_keys
        for pattern in tag_token_patterns(topic)
    ]
    solved_ids = select(SolvedProblem.problem_id).where(SolvedProblem.user_id == user.id)

    query = db.query(Problem).filter(
        Problem.rating >= min_rating,
        Problem.rating <= max_rating,
        Problem.is_paid_only == filters.is_premium,
        or_(*tag_clauses),
        ~Problem.id.in_(solved_ids),
    )

    difficulty = filters.difficulty
    if difficulty.kind == "single":
        (only,) = difficulty.values
        query = query.filter(func.lower(Problem.difficulty) == only.lower())
    elif difficulty.kind == "many":
        query = query.filter(
            func.lower(Problem.difficulty).in_(sorted(d.lower() for d in difficulty.values))
        )

    recent_ids = recent_recommendation_ids(user)
    if recent_ids:
        query = query.filter(~Problem.id.in_(sorted(recent_ids)))

    problems = query.order_by(Problem.id).limit(CANDIDATE_POOL_LIMIT).all()
    return [problem_to_candidate(p) for p in problems]


# =============================================================================
# STEP 4: PERSISTENCE
# =============================================================================

def push_recommendation_history(history: Optional[List[List[str]]], batch_ids: List[str]) -> List[List[str]]:
    """Append a batch to the history ring, keeping the newest entries."""
    updated = list(history or []) + [list(batch_ids)]
    return updated[-RECOMMENDATION_HISTORY_SIZE:]


# =============================================================================
# MAIN RECOMMENDATION FUNCTION
# =============================================================================

def generate_recommendations(
    db: Session,
    user: User,
    weights: TopicWeightTable,
    filters: RecommendationFilters,
    push: bool = False,
    limit: int = RECOMMENDATION_LIMIT,
    now: Optional[datetime] = None
) -> Dict[str, Any]:
    """
    Generate and persist a recommendation batch for a user.

    Args:
        db: Database session
        user: User requesting recommendations
        weights: Topic weight table
        filters: Validated filter body
        push: Use the fixed push-difficulty window
        limit: Maximum problems to return
        now: Reference time (defaults to utcnow)

    Returns:
        Dict with problems, message, rating_window, user_rating, push,
        weak_topics and cache info
    """
    weak_result, check, recomputed = get_weak_topics_for_user(
        db, user, weights, now=now, commit=False
    )
    weak_topics = weak_result.get("topics") or {}

    user_rating = resolve_user_rating(user)
    window = compute_rating_window(user_rating, filters, push)

    response = {
        "problems": [],
        "message": None,
        "user_rating": user_rating,
        "rating_window": {"min": window[0], "max": window[1]},
        "push": push,
        "weak_topics": weak_topics,
        "cache": {**check.to_dict(), "recomputed": recomputed},
    }

    if not weak_topics:
        if recomputed:
            db.commit()
        response["message"] = (
            "No weak topics found yet. Keep solving, and recommendations will "
            "appear once there is enough struggle signal."
        )
        return response

    candidates = fetch_candidates(db, user, window, filters, weak_topics.keys())
    ranked = rank_candidates(candidates, weak_topics, limit)
    logger.info(
        f"Recommendations for user {user.id}: window={window[0]:g}-{window[1]:g} "
        f"candidates={len(candidates)} returned={len(ranked)}"
    )

    if not ranked:
        if recomputed:
            db.commit()
        response["message"] = "No matching problems found for your weak topics in this rating range."
        return response

    # Weak-topic cache, history and current batch land in one commit
    user.recent_recommendation_history = push_recommendation_history(
        user.recent_recommendation_history, [entry["id"] for entry in ranked]
    )
    user.current_recommendation = ranked
    db.commit()

    response["problems"] = ranked
    return response


def get_current_recommendation(user: User) -> List[Dict[str, Any]]:
    """The last persisted recommendation batch."""
    return list(user.current_recommendation or [])


# =============================================================================
# SUBMISSION HISTORY SYNC
# =============================================================================

def _submission_fields(record: Mapping[str, Any]) -> Dict[str, Any]:
    return {
        "problem_id": str(record.get("problem_id")),
        "difficulty": record.get("difficulty"),
        "topic_tags": list(record.get("topic_tags") or []),
        "last_submitted_at": parse_timestamp(record.get("last_submitted_at")),
        "rating_at_event": record.get("rating_at_event") or 0,
        "num_submitted": record.get("num_submitted") or 1,
        "last_result": record.get("last_result"),
    }


def sync_submission_history(
    db: Session,
    user: User,
    solved: Iterable[Mapping[str, Any]],
    failed: Iterable[Mapping[str, Any]]
) -> Dict[str, int]:
    """
    Replace the user's solved and failed history wholesale.

    Submission records are never diffed; each sync rebuilds both lists.
    The weak-topic cache is left in place and invalidates itself through
    the submission count check.

    Returns:
        Counts of stored solved and failed records
    """
    user.solved_problems = [SolvedProblem(**_submission_fields(r)) for r in solved or []]
    user.failed_problems = [FailedProblem(**_submission_fields(r)) for r in failed or []]

    ratings = [p.rating_at_event for p in user.solved_problems if p.rating_at_event]
    user.average_rating = round(sum(ratings) / len(ratings), 2) if ratings else 0

    db.commit()
    logger.info(
        f"Synced history for user {user.id}: "
        f"{len(user.solved_problems)} solved, {len(user.failed_problems)} failed"
    )
    return {"solved": len(user.solved_problems), "failed": len(user.failed_problems)}
