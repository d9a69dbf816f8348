"""
API routes for LeetCode Insight.
Defines endpoints for weak topics, recommendations, contest history,
and problem rating lookups.
"""

import asyncio
import logging
from typing import Callable, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request
from sqlalchemy.orm import Session

from .config import DEFAULT_PAGE_SIZE, RECOMMENDATION_LIMIT, USER_ID_HEADER
from .contest_history import ContestHistoryManager
from .corpus import parse_frontend_id, ratings_by_problem_id
from .database import get_db
from .errors import InvalidInputError, ProblemNotFoundError, UserNotFoundError
from .lc_client import LeetCodeClient
from .models import User, Problem
from .recommender import generate_recommendations, get_current_recommendation, get_weak_topics_for_user
from .schemas import (
    WeakTopicsResponse,
    RecommendationFilterBody,
    RecommendationResponse,
    CurrentRecommendationResponse,
    ContestHistoryResponse,
    RateRequest,
    RateBatchRequest,
)
from .topic_weights import TopicWeightTable, load_topic_weights
from .validation import clamp_limit, resolve_recommendation_filters

logger = logging.getLogger(__name__)

# Create router instance
router = APIRouter()


# =============================================================================
# DEPENDENCIES
# =============================================================================

def get_current_user_id(x_user_id: Optional[str] = Header(None, alias=USER_ID_HEADER)) -> int:
    """
    Authenticated user id.

    Token verification happens upstream; the auth layer forwards the
    verified user id in this header.
    """
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Not authenticated")
    try:
        return int(x_user_id)
    except ValueError:
        raise HTTPException(status_code=401, detail="Invalid user id")


def get_topic_weights(request: Request) -> TopicWeightTable:
    """Topic weight table loaded at startup."""
    weights = getattr(request.app.state, "topic_weights", None)
    if weights is None:
        weights = load_topic_weights()
        request.app.state.topic_weights = weights
    return weights


def get_client_factory() -> Callable[[User], LeetCodeClient]:
    """Builds the LeetCode client for a user (overridden in tests)."""
    return LeetCodeClient.for_user


def load_user(db: Session, user_id: int) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise UserNotFoundError(user_id)
    return user


# =============================================================================
# WEAK TOPICS & RECOMMENDATIONS
# =============================================================================

@router.get("/user/topics", response_model=WeakTopicsResponse)
def get_weak_topics(
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    weights: TopicWeightTable = Depends(get_topic_weights)
):
    """
    Get the caller's weak topics.

    Served from the user's weak-topic cache while it is valid (same
    submission count, younger than 6 hours); recomputed otherwise.
    """
    user = load_user(db, user_id)
    result, check, recomputed = get_weak_topics_for_user(db, user, weights)
    return {**result, "cache": {**check.to_dict(), "recomputed": recomputed}}


@router.post("/user/problem-recs", response_model=RecommendationResponse)
def create_recommendations(
    body: Optional[RecommendationFilterBody] = None,
    push: bool = Query(False, description="Use the fixed +100..+200 push window"),
    limit: int = Query(RECOMMENDATION_LIMIT, description="Number of problems (1-25)"),
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    weights: TopicWeightTable = Depends(get_topic_weights)
):
    """
    Generate a new recommendation batch.

    Body filters (all optional):
    - minRating / maxRating: offsets from the user's rating (default +50 / +100)
    - preferredDifficulty: "Easy" | "Medium" | "Hard" or a list of them
    - isPremium: recommend premium problems instead of free ones
    """
    # Validate before touching the database
    filters = resolve_recommendation_filters(body.model_dump() if body else None)
    limit = clamp_limit(limit)

    user = load_user(db, user_id)
    return generate_recommendations(db, user, weights, filters, push=push, limit=limit)


@router.get("/user/problem-recs", response_model=CurrentRecommendationResponse)
def get_recommendations(
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db)
):
    """Return the last generated recommendation batch."""
    user = load_user(db, user_id)
    return {"problems": get_current_recommendation(user)}


# =============================================================================
# CONTEST HISTORY
# =============================================================================

@router.get("/contest/solves", response_model=ContestHistoryResponse)
async def get_contest_solves(
    page: int = Query(1, description="Page number (1-based)"),
    page_size: int = Query(DEFAULT_PAGE_SIZE, alias="pageSize", description="Contests per page"),
    force_refresh: bool = Query(False, alias="forceRefresh", description="Bypass the 7-day cache"),
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    client_factory: Callable[[User], LeetCodeClient] = Depends(get_client_factory)
):
    """
    Get one page of the caller's contest history.

    If a refresh fails and an older cache exists, the old data is returned
    with meta.cache.stale = true instead of an error.
    """
    user = await asyncio.to_thread(load_user, db, user_id)
    manager = ContestHistoryManager(db, client_factory(user))
    return await manager.get_contest_history(
        user, page=page, page_size=page_size, force_refresh=force_refresh
    )


# =============================================================================
# PROBLEM RATINGS
# =============================================================================

@router.post("/problem/rate")
def rate_one_problem(payload: RateRequest, db: Session = Depends(get_db)):
    """Look up the rating of one problem by its "<id>. Title" string."""
    if not isinstance(payload.title, str):
        raise InvalidInputError("Invalid payload", detail="title must be a string")

    problem_id = parse_frontend_id(payload.title)
    if problem_id is None:
        raise InvalidInputError('Title must start with "<id>."')

    problem = db.query(Problem).filter(Problem.id == problem_id).first()
    if not problem:
        raise ProblemNotFoundError(problem_id)

    return {"rating": problem.rating}


@router.post("/problem/rate-batch")
def rate_many_problems(payload: RateBatchRequest, db: Session = Depends(get_db)):
    """Look up ratings for many "<id>. Title" strings; unknown ids map to null."""
    ids = []
    for title in payload.questions:
        problem_id = parse_frontend_id(title)
        if problem_id is None:
            raise InvalidInputError('Title must start with "<id>."', detail=str(title))
        ids.append(problem_id)

    return {"message": "received.", "data": ratings_by_problem_id(db, ids)}
