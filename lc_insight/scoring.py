"""
Scoring Module for LeetCode Insight.

Provides the weak-topic scorer and the recommendation candidate scorer.
All scoring functions are deterministic (same input → same output); the
only clock dependency is the day difference used for time decay, so callers
may pass a fixed `now`.
"""

import math
from typing import List, Dict, Any, Optional, Iterable, Mapping
from datetime import datetime

from .cache import parse_timestamp
from .config import (
    TIME_DECAY_DAYS,
    MIN_OCCURRENCES,
    MAX_WEAK_TOPICS,
    HIGH_RETRY_THRESHOLD,
    HIGH_RETRY_BASE_WEIGHT,
    FAILED_BASE_WEIGHT,
    WEAKNESS_ALGORITHM,
    EXACT_MATCH_BONUS,
    normalize_topic,
    normalize_topics,
)
from .topic_weights import TopicWeightTable


# =============================================================================
# WEAK TOPIC SCORING
# =============================================================================

def calculate_time_weight(submitted_at, now: datetime) -> float:
    """
    Exponential recency weight: exp(-days_since / TIME_DECAY_DAYS).

    No floor is applied. A missing or unparsable timestamp weighs 1.0.
    """
    timestamp = parse_timestamp(submitted_at) if submitted_at else None
    if timestamp is None:
        return 1.0
    days_ago = (now - timestamp).total_seconds() / 86400
    return math.exp(-days_ago / TIME_DECAY_DAYS)


def build_weighted_pool(
    solved: Iterable[Mapping[str, Any]],
    failed: Iterable[Mapping[str, Any]]
) -> List[tuple]:
    """
    Pair each struggle signal with its base weight.

    Solved problems count only when they took HIGH_RETRY_THRESHOLD or more
    submissions; clean solves carry no weakness signal. Every failed
    problem counts.
    """
    pool = []
    for record in solved or []:
        if (record.get("num_submitted") or 0) >= HIGH_RETRY_THRESHOLD:
            pool.append((record, HIGH_RETRY_BASE_WEIGHT))
    for record in failed or []:
        pool.append((record, FAILED_BASE_WEIGHT))
    return pool


def calculate_weak_topics(
    solved: Iterable[Mapping[str, Any]],
    failed: Iterable[Mapping[str, Any]],
    weights: TopicWeightTable,
    now: Optional[datetime] = None
) -> Dict[str, Any]:
    """
    Rank a user's weak topics from their submission history.

    Scoring per contributing record and topic:
        base_weight × time_weight × complexity_weight

    The score is a ranking signal, not a probability; it is unbounded.

    Args:
        solved: Solved submission records (dicts)
        failed: Failed submission records (dicts)
        weights: Topic weight table
        now: Reference time (defaults to utcnow)

    Returns:
        Dict with topics (topic -> score, highest first),
        total_problems_analyzed, algorithm, weights_info
    """
    now = now or datetime.utcnow()
    pool = build_weighted_pool(solved, failed)

    topic_scores: Dict[str, float] = {}

    for record, base_weight in pool:
        tags = record.get("topic_tags") or []
        if not tags:
            continue

        time_weight = calculate_time_weight(record.get("last_submitted_at"), now)

        for tag in tags:
            topic = normalize_topic(tag)
            if not topic or weights.is_filtered(topic):
                continue
            score = base_weight * time_weight * weights.weight_for(topic)
            topic_scores[topic] = topic_scores.get(topic, 0.0) + score

    threshold = MIN_OCCURRENCES * 0.5
    rounded = [
        (topic, round(score, 2))
        for topic, score in topic_scores.items()
        if score >= threshold
    ]
    ranked = sorted(rounded, key=lambda x: x[1], reverse=True)[:MAX_WEAK_TOPICS]

    return {
        "topics": dict(ranked),
        "total_problems_analyzed": len(pool),
        "algorithm": WEAKNESS_ALGORITHM,
        "weights_info": weights.info(),
    }


# =============================================================================
# CANDIDATE SCORING
# =============================================================================

def score_candidate(
    candidate: Mapping[str, Any],
    weak_topics: Mapping[str, float]
) -> Optional[Dict[str, Any]]:
    """
    Score one candidate problem against the weak-topic map.

    weight = matched_weight_sum × match_fraction × brevity_bonus × exact_match_bonus

    - match_fraction: share of the candidate's tags that are weak topics
    - brevity_bonus: 1 + 1/total_tags, favouring focused problems
    - exact_match_bonus: EXACT_MATCH_BONUS when every tag is weak

    Returns:
        Recommendation entry dict, or None when no tag matches
    """
    tags = normalize_topics(candidate.get("tags") or [])
    total = len(tags)
    if total == 0:
        return None

    matched = [t for t in tags if t in weak_topics]
    if not matched:
        return None

    matched_weight_sum = sum(weak_topics[t] for t in matched)
    match_fraction = len(matched) / total
    brevity_bonus = 1 + 1 / total
    exact_match_bonus = EXACT_MATCH_BONUS if len(matched) == total else 1.0
    weight = matched_weight_sum * match_fraction * brevity_bonus * exact_match_bonus

    if weight <= 0:
        return None

    return {
        "id": candidate.get("id"),
        "title": candidate.get("title"),
        "slug": candidate.get("slug"),
        "rating": candidate.get("rating"),
        "difficulty": candidate.get("difficulty"),
        "tags": tags,
        "matched_tags": matched,
        "matched_weight_sum": round(matched_weight_sum, 4),
        "match_fraction": round(match_fraction, 4),
        "weight": weight,
    }


def rank_candidates(
    candidates: Iterable[Mapping[str, Any]],
    weak_topics: Mapping[str, float],
    limit: int
) -> List[Dict[str, Any]]:
    """
    Score, filter and rank candidates.

    Ties keep their input order (the sort is stable and has no secondary
    key), so the ranking is reproducible for a given candidate order.

    Args:
        candidates: Candidate dicts with id, title, slug, rating, difficulty, tags
        weak_topics: topic -> weakness score
        limit: Maximum entries to return

    Returns:
        Recommendation entries sorted by weight descending
    """
    scored = []
    for candidate in candidates:
        entry = score_candidate(candidate, weak_topics)
        if entry is not None:
            scored.append(entry)

    ranked = sorted(scored, key=lambda e: e["weight"], reverse=True)[:max(limit, 0)]

    for entry in ranked:
        entry["weight"] = round(entry["weight"], 4)
    return ranked
