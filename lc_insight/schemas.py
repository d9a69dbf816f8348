"""
Pydantic schemas for request/response validation.
Defines data transfer objects for API endpoints.
"""

from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field


# ============ Weak Topic Schemas ============

class WeakTopicsResponse(BaseModel):
    """Response schema for weak topic analysis."""
    topics: Dict[str, float]
    total_problems_analyzed: int
    algorithm: str
    weights_info: Dict[str, Any]
    cache: Dict[str, Any]


# ============ Recommendation Schemas ============

class RecommendationFilterBody(BaseModel):
    """
    Raw recommendation filters, as sent by the frontend.

    Values are loosely typed on purpose; validation.resolve_recommendation_filters
    coerces them and reports errors as INVALID_INPUT.
    """
    minRating: Optional[Any] = None
    maxRating: Optional[Any] = None
    preferredDifficulty: Optional[Any] = None
    isPremium: Optional[Any] = None


class RecommendationEntry(BaseModel):
    """A single recommended problem with its scoring breakdown."""
    id: str
    title: Optional[str] = None
    slug: Optional[str] = None
    rating: Optional[float] = None
    difficulty: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    matched_tags: List[str] = Field(default_factory=list)
    matched_weight_sum: float
    match_fraction: float
    weight: float


class RatingWindow(BaseModel):
    min: float
    max: float


class RecommendationResponse(BaseModel):
    """Response schema for problem recommendations."""
    problems: List[RecommendationEntry]
    message: Optional[str] = None
    user_rating: float
    rating_window: RatingWindow
    push: bool
    weak_topics: Dict[str, float]
    cache: Dict[str, Any]


class CurrentRecommendationResponse(BaseModel):
    """The last persisted recommendation batch."""
    problems: List[RecommendationEntry]


# ============ Contest Schemas ============

class ContestQuestion(BaseModel):
    question_id: str
    title: str = ""
    title_slug: str = ""
    is_ac: bool = False
    credit: float = 0
    rating: Optional[float] = None


class ContestResult(BaseModel):
    title: str = ""
    title_slug: str
    start_time: int
    attended: bool = True
    rating: Optional[float] = None
    ranking: Optional[int] = None
    total_credits: float = 0
    earned_credits: float = 0
    questions: List[ContestQuestion] = Field(default_factory=list)


class ContestHistoryMeta(BaseModel):
    total_count: int
    total_pages: int
    page: int
    page_size: int
    returned: int
    cache: Dict[str, Any]


class ContestHistoryResponse(BaseModel):
    """One page of contest history plus cache status."""
    meta: ContestHistoryMeta
    contests: List[ContestResult]


# ============ Problem Rating Schemas ============

class RateRequest(BaseModel):
    """A problem title in "<id>. Name" form."""
    title: Any = None


class RateBatchRequest(BaseModel):
    questions: List[Any] = Field(default_factory=list)
