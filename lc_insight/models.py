"""
SQLAlchemy ORM models for LeetCode Insight.
Defines User, submission history, Problem corpus, and contest cache tables.
"""

from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Boolean, Float, JSON
from sqlalchemy.orm import relationship

from .database import Base


class User(Base):
    """
    User model representing a linked LeetCode account.
    Holds the LeetCode credential pair plus the derived caches
    (weak topics, recommendation history, current recommendation).
    """
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String, unique=True, index=True, nullable=False)
    session_token = Column(String, nullable=True)
    csrf_token = Column(String, nullable=True)
    contest_rating = Column(Float, nullable=True)
    average_rating = Column(Float, default=0)
    created_at = Column(DateTime, default=datetime.utcnow)

    # {"result": {...}, "last_calculated": iso, "submission_count": int}
    weak_topics_cache = Column(JSON, nullable=True)

    # Last few recommended id batches, oldest first
    recent_recommendation_history = Column(JSON, default=list)
    current_recommendation = Column(JSON, default=list)

    solved_problems = relationship(
        "SolvedProblem", back_populates="user", cascade="all, delete-orphan"
    )
    failed_problems = relationship(
        "FailedProblem", back_populates="user", cascade="all, delete-orphan"
    )
    contest_cache = relationship(
        "UserContestCache", back_populates="user", uselist=False, cascade="all, delete-orphan"
    )

    @property
    def submission_count(self) -> int:
        return len(self.solved_problems) + len(self.failed_problems)


class _SubmissionRecordMixin:
    """Columns shared by the solved and failed submission records."""

    id = Column(Integer, primary_key=True, index=True)
    problem_id = Column(String, nullable=False)  # LeetCode frontend id
    difficulty = Column(String, nullable=True)
    topic_tags = Column(JSON, default=list)
    last_submitted_at = Column(DateTime, nullable=True)
    rating_at_event = Column(Float, default=0)
    num_submitted = Column(Integer, default=1)
    last_result = Column(String, nullable=True)

    def to_record(self) -> dict:
        """Plain-dict form consumed by the weakness scorer."""
        return {
            "problem_id": self.problem_id,
            "difficulty": self.difficulty,
            "topic_tags": list(self.topic_tags or []),
            "last_submitted_at": self.last_submitted_at,
            "rating_at_event": self.rating_at_event,
            "num_submitted": self.num_submitted,
            "last_result": self.last_result,
        }


class SolvedProblem(_SubmissionRecordMixin, Base):
    """Accepted problems. Replaced wholesale on each sync."""
    __tablename__ = "solved_problems"

    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    user = relationship("User", back_populates="solved_problems")


class FailedProblem(_SubmissionRecordMixin, Base):
    """Attempted but never accepted problems. Replaced wholesale on each sync."""
    __tablename__ = "failed_problems"

    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    user = relationship("User", back_populates="failed_problems")


class Problem(Base):
    """
    Problem corpus entry, keyed by LeetCode frontend id.
    Populated by the seeding scripts; read-only for this service.
    """
    __tablename__ = "problems"

    id = Column(String, primary_key=True, index=True)
    question_id = Column(String, nullable=True, index=True)  # Internal id used by contest data
    title = Column(String, nullable=False)
    title_slug = Column(String, default="")
    difficulty = Column(String, default="")
    is_paid_only = Column(Boolean, default=False)
    tags = Column(String, default="")  # Comma-separated normalized topic keys
    rating = Column(Float, nullable=True)

    @property
    def tag_list(self):
        return [t for t in (self.tags or "").split(",") if t]


class UserContestCache(Base):
    """
    One cached contest history per user.
    Only a successful full rebuild may overwrite it.
    """
    __tablename__ = "user_contest_cache"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, unique=True)
    contests = Column(JSON, default=list)
    last_updated = Column(DateTime, default=datetime.utcnow)

    user = relationship("User", back_populates="contest_cache")
