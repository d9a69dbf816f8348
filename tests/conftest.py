"""
Test Configuration and Fixtures for LeetCode Insight.
"""

import pytest
import sys
import os
import time
from datetime import datetime, timedelta

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Add repo root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from lc_insight.database import Base
from lc_insight.models import User, Problem
from lc_insight.topic_weights import fallback_topic_weights


FIXED_NOW = datetime(2024, 6, 1, 12, 0, 0)


@pytest.fixture
def now():
    """Fixed reference time so decay and TTL math is reproducible."""
    return FIXED_NOW


@pytest.fixture
def weights():
    """Hard-coded fallback topic weight table."""
    return fallback_topic_weights()


@pytest.fixture
def db_session():
    """In-memory SQLite session with all tables created."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture
def user(db_session):
    """Linked user with a credential pair and a contest rating."""
    u = User(
        username="alice",
        session_token="session-cookie",
        csrf_token="csrf-token",
        contest_rating=1500,
    )
    db_session.add(u)
    db_session.commit()
    return u


def make_problem(pid, rating, tags, difficulty="Medium", paid=False, question_id=None):
    return Problem(
        id=str(pid),
        question_id=str(question_id) if question_id is not None else str(1000 + int(pid)),
        title=f"Problem {pid}",
        title_slug=f"problem-{pid}",
        difficulty=difficulty,
        is_paid_only=paid,
        tags=",".join(tags),
        rating=rating,
    )


@pytest.fixture
def corpus(db_session):
    """Small problem corpus around rating 1500-1700."""
    problems = [
        make_problem(1, 1520, ["dynamic-programming"]),
        make_problem(2, 1550, ["dynamic-programming", "math"]),
        make_problem(3, 1580, ["graph", "tree"]),
        make_problem(4, 1590, ["string"], difficulty="Easy"),
        make_problem(5, 1600, ["dynamic-programming", "greedy"], difficulty="Hard"),
        make_problem(6, 1650, ["dynamic-programming"]),
        make_problem(7, 1560, ["dynamic-programming"], paid=True),
        make_problem(8, 1540, ["dynamic-programming-extra"]),
        make_problem(9, 1400, ["dynamic-programming"]),
    ]
    db_session.add_all(problems)
    db_session.commit()
    return problems


@pytest.fixture
def failed_dp_record():
    """One fresh failure on a dynamic programming problem."""
    return {
        "problem_id": "70",
        "difficulty": "Medium",
        "topic_tags": ["dynamic-programming"],
        "last_submitted_at": FIXED_NOW,
        "rating_at_event": 1500,
        "num_submitted": 1,
        "last_result": "Wrong Answer",
    }


@pytest.fixture
def sample_attended_contests():
    """Raw userContestRankingHistory entries (attended only)."""
    return [
        {"attended": True, "rating": 1510.5, "ranking": 3200,
         "contest": {"title": "Weekly Contest 400", "startTime": 1716690600}},
        {"attended": True, "rating": 1532.1, "ranking": 2100,
         "contest": {"title": "Biweekly Contest 131", "startTime": 1716647400}},
        {"attended": True, "rating": 1498.0, "ranking": 5400,
         "contest": {"title": "Weekly Contest 401", "startTime": 1717295400}},
    ]


class FakeLeetCodeClient:
    """
    Stand-in for LeetCodeClient with the same two blocking methods.

    Args:
        contests: Raw attended-contest entries
        questions: contest slug -> raw question list
        fail_slugs: slugs whose question fetch raises
        delays: slug -> seconds to sleep before answering
        fail_contests: make the attended-contest call raise
    """

    def __init__(self, contests=None, questions=None, fail_slugs=(), delays=None, fail_contests=False):
        self.contests = contests or []
        self.questions = questions or {}
        self.fail_slugs = set(fail_slugs)
        self.delays = delays or {}
        self.fail_contests = fail_contests
        self.contest_calls = 0
        self.question_calls = []

    def get_attended_contests(self, username):
        self.contest_calls += 1
        if self.fail_contests:
            raise RuntimeError("LeetCode unavailable")
        return list(self.contests)

    def fetch_contest_questions(self, contest_slug):
        self.question_calls.append(contest_slug)
        if contest_slug in self.delays:
            time.sleep(self.delays[contest_slug])
        if contest_slug in self.fail_slugs:
            raise RuntimeError(f"question fetch failed for {contest_slug}")
        return list(self.questions.get(contest_slug, []))


@pytest.fixture
def fake_client_cls():
    return FakeLeetCodeClient


@pytest.fixture
def days_ago():
    """Helper returning FIXED_NOW minus n days."""
    return lambda n: FIXED_NOW - timedelta(days=n)
