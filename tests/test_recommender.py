"""
Tests for the recommendation pipeline against an in-memory database.
"""

from datetime import timedelta

import pytest
from lc_insight.cache import build_weak_topics_cache
from lc_insight.models import SolvedProblem, FailedProblem
from lc_insight.recommender import (
    compute_rating_window,
    fetch_candidates,
    generate_recommendations,
    get_current_recommendation,
    get_weak_topics_for_user,
    push_recommendation_history,
    recent_recommendation_ids,
    resolve_user_rating,
    sync_submission_history,
)
from lc_insight.validation import resolve_recommendation_filters, RecommendationFilters


def add_dp_failures(db_session, user, when, count=1):
    for i in range(count):
        user.failed_problems.append(FailedProblem(
            problem_id=str(500 + i),
            difficulty="Medium",
            topic_tags=["dynamic-programming"],
            last_submitted_at=when,
            num_submitted=2,
        ))
    db_session.commit()


class TestRatingWindow:
    """Tests for the absolute rating window."""

    def test_filter_offsets(self):
        filters = resolve_recommendation_filters({"minRating": 0, "maxRating": 100})
        assert compute_rating_window(1500, filters, push=False) == (1500, 1600)

    def test_push_overrides_filters(self):
        filters = resolve_recommendation_filters({"minRating": 0, "maxRating": 100})
        assert compute_rating_window(1500, filters, push=True) == (1600, 1700)

    def test_default_offsets(self):
        assert compute_rating_window(1800, RecommendationFilters()) == (1850, 1900)

    def test_user_rating_fallbacks(self, user):
        assert resolve_user_rating(user) == 1500
        user.contest_rating = None
        user.average_rating = 1420
        assert resolve_user_rating(user) == 1420
        user.average_rating = 0
        assert resolve_user_rating(user) == 1500

    def test_zero_contest_rating_is_a_rating(self, user):
        user.contest_rating = 0.0
        user.average_rating = 1420
        assert resolve_user_rating(user) == 0.0
        filters = resolve_recommendation_filters({"minRating": 0, "maxRating": 100})
        assert compute_rating_window(resolve_user_rating(user), filters) == (0, 100)


class TestHistoryRing:
    """Tests for the recommendation history ring."""

    def test_keeps_last_three(self):
        history = []
        for batch in (["1"], ["2"], ["3"], ["4"]):
            history = push_recommendation_history(history, batch)
        assert history == [["2"], ["3"], ["4"]]

    def test_recent_ids(self, user):
        user.recent_recommendation_history = [["1", "2"], ["3"]]
        assert recent_recommendation_ids(user) == {"1", "2", "3"}


class TestWeakTopicsForUser:
    """Tests for cache-aware weak topic resolution."""

    def test_miss_then_hit(self, db_session, user, weights, now):
        add_dp_failures(db_session, user, now)

        result, check, recomputed = get_weak_topics_for_user(db_session, user, weights, now=now)
        assert recomputed
        assert check.reason == "no cache"
        assert result["topics"] == {"dynamic-programming": 2.5}
        assert user.weak_topics_cache["submission_count"] == 1

        _, check, recomputed = get_weak_topics_for_user(
            db_session, user, weights, now=now + timedelta(hours=1)
        )
        assert not recomputed
        assert check.reason == "ok"

    def test_new_submission_invalidates(self, db_session, user, weights, now):
        add_dp_failures(db_session, user, now)
        get_weak_topics_for_user(db_session, user, weights, now=now)

        add_dp_failures(db_session, user, now, count=2)
        result, check, recomputed = get_weak_topics_for_user(db_session, user, weights, now=now)
        assert recomputed
        assert check.reason == "submission count mismatch"
        assert result["topics"]["dynamic-programming"] == 7.5

    def test_stale_cache_recomputed(self, db_session, user, weights, now):
        add_dp_failures(db_session, user, now)
        user.weak_topics_cache = build_weak_topics_cache(
            {"topics": {"graph": 9.9}}, 1, now=now - timedelta(hours=7)
        )
        db_session.commit()
        result, check, recomputed = get_weak_topics_for_user(db_session, user, weights, now=now)
        assert recomputed
        assert check.reason == "cache too old"
        assert "graph" not in result["topics"]


class TestCandidatePool:
    """Tests for the candidate query."""

    def test_window_premium_and_tag_filters(self, db_session, user, corpus):
        candidates = fetch_candidates(
            db_session, user, (1500, 1600), RecommendationFilters(), ["dynamic-programming"]
        )
        # 6 is out of window, 7 is premium, 8 only has a tag with the same prefix, 9 is too easy
        assert [c["id"] for c in candidates] == ["1", "2", "5"]

    def test_premium_only(self, db_session, user, corpus):
        candidates = fetch_candidates(
            db_session, user, (1500, 1600), RecommendationFilters(is_premium=True), ["dynamic-programming"]
        )
        assert [c["id"] for c in candidates] == ["7"]

    def test_difficulty_filter(self, db_session, user, corpus):
        filters = resolve_recommendation_filters({"preferredDifficulty": "hard"})
        candidates = fetch_candidates(db_session, user, (1500, 1600), filters, ["dynamic-programming"])
        assert [c["id"] for c in candidates] == ["5"]

    def test_several_difficulties(self, db_session, user, corpus):
        filters = resolve_recommendation_filters({"preferredDifficulty": ["Hard", "easy"]})
        assert filters.difficulty.kind == "many"
        candidates = fetch_candidates(
            db_session, user, (1500, 1600), filters, ["dynamic-programming", "string"]
        )
        assert [c["id"] for c in candidates] == ["4", "5"]

    def test_solved_and_recent_excluded(self, db_session, user, corpus):
        user.solved_problems.append(SolvedProblem(problem_id="1", topic_tags=["dynamic-programming"]))
        user.recent_recommendation_history = [["2"]]
        db_session.commit()
        candidates = fetch_candidates(
            db_session, user, (1500, 1600), RecommendationFilters(), ["dynamic-programming"]
        )
        assert [c["id"] for c in candidates] == ["5"]

    def test_middle_tag_matched(self, db_session, user, corpus):
        candidates = fetch_candidates(db_session, user, (1500, 1600), RecommendationFilters(), ["tree"])
        assert [c["id"] for c in candidates] == ["3"]

    def test_no_weak_topics_no_query(self, db_session, user, corpus):
        assert fetch_candidates(db_session, user, (0, 5000), RecommendationFilters(), []) == []


class TestGenerateRecommendations:
    """End-to-end recommendation generation."""

    def test_no_weak_topics_returns_message(self, db_session, user, weights, corpus, now):
        response = generate_recommendations(db_session, user, weights, RecommendationFilters(), now=now)
        assert response["problems"] == []
        assert "No weak topics" in response["message"]
        assert user.weak_topics_cache is not None
        assert user.recent_recommendation_history in (None, [])

    def test_batch_ranked_and_persisted(self, db_session, user, weights, corpus, now):
        add_dp_failures(db_session, user, now)
        filters = resolve_recommendation_filters({"minRating": 0, "maxRating": 100})

        response = generate_recommendations(db_session, user, weights, filters, now=now)

        assert response["rating_window"] == {"min": 1500, "max": 1600}
        assert [p["id"] for p in response["problems"]] == ["1", "2", "5"]
        assert response["problems"][0]["weight"] == pytest.approx(5.75)
        assert response["cache"]["recomputed"] is True

        db_session.expire_all()
        assert user.recent_recommendation_history == [["1", "2", "5"]]
        assert [p["id"] for p in get_current_recommendation(user)] == ["1", "2", "5"]
        assert user.weak_topics_cache["submission_count"] == 1

    def test_next_batch_skips_recent(self, db_session, user, weights, corpus, now):
        add_dp_failures(db_session, user, now)
        filters = resolve_recommendation_filters({"minRating": 0, "maxRating": 200})

        first = generate_recommendations(db_session, user, weights, filters, limit=2, now=now)
        second = generate_recommendations(db_session, user, weights, filters, limit=2, now=now)

        first_ids = {p["id"] for p in first["problems"]}
        second_ids = {p["id"] for p in second["problems"]}
        assert len(first_ids) == 2
        assert not first_ids & second_ids
        assert second["cache"]["recomputed"] is False

    def test_push_mode_window(self, db_session, user, weights, corpus, now):
        add_dp_failures(db_session, user, now)
        response = generate_recommendations(
            db_session, user, weights, RecommendationFilters(), push=True, now=now
        )
        assert response["rating_window"] == {"min": 1600, "max": 1700}
        assert [p["id"] for p in response["problems"]] == ["6", "5"]

    def test_empty_pool_does_not_push_history(self, db_session, user, weights, corpus, now):
        add_dp_failures(db_session, user, now)
        filters = resolve_recommendation_filters({"minRating": 900, "maxRating": 1000})
        response = generate_recommendations(db_session, user, weights, filters, now=now)

        assert response["problems"] == []
        assert "No matching problems" in response["message"]
        db_session.expire_all()
        assert user.recent_recommendation_history in (None, [])
        assert user.weak_topics_cache is not None


class TestSubmissionSync:
    """Tests for wholesale history replacement."""

    def test_replaces_both_lists(self, db_session, user, now):
        add_dp_failures(db_session, user, now, count=3)
        counts = sync_submission_history(
            db_session, user,
            solved=[{"problem_id": 1, "topic_tags": ["graph"], "rating_at_event": 1400,
                     "num_submitted": 5, "last_submitted_at": "2024-05-30T10:00:00Z"},
                    {"problem_id": 2, "topic_tags": ["tree"], "rating_at_event": 1600}],
            failed=[{"problem_id": 3, "topic_tags": ["trie"]}],
        )
        assert counts == {"solved": 2, "failed": 1}
        assert user.submission_count == 3
        assert user.average_rating == 1500
        assert user.solved_problems[0].problem_id == "1"
        assert user.solved_problems[0].last_submitted_at.day == 30
        assert db_session.query(FailedProblem).count() == 1
