"""
Topic Weight Table.

Maps a normalized topic name to a difficulty-complexity multiplier in
[0.5, 3.0]. The multipliers come from an offline artifact of per-tag
Bayesian-shrunk rating scores; the table is loaded once at startup and
handed to the weakness scorer as a read-only dependency.
"""

import json
import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, FrozenSet, Mapping, Optional

from .config import (
    TOPIC_WEIGHTS_PATH,
    TOPIC_WEIGHT_MIN,
    TOPIC_WEIGHT_MAX,
    FILTER_WEIGHT_THRESHOLD,
    TOPIC_STOPLIST,
    normalize_topic,
)

logger = logging.getLogger(__name__)


FALLBACK_TOPIC_WEIGHTS = {
    "dynamic-programming": 2.5,
    "graph": 2.3,
    "tree": 2.0,
    "binary-search": 2.0,
    "backtracking": 2.2,
    "trie": 2.4,
    "heap": 2.0,
    "linked-list": 1.5,
    "stack": 1.4,
    "queue": 1.4,
    "hash-table": 0.7,
    "string": 0.9,
    "math": 1.0,
}


@dataclass(frozen=True, eq=False)
class TopicWeightTable:
    """Immutable topic -> complexity weight map."""

    weights: Mapping[str, float]
    score_min: float = 1.0
    score_max: float = 1.0
    source: str = "fallback"
    filtered_topics: FrozenSet[str] = field(init=False)

    def __post_init__(self):
        object.__setattr__(self, "weights", MappingProxyType(dict(self.weights)))
        filtered = {t for t, w in self.weights.items() if w < FILTER_WEIGHT_THRESHOLD}
        filtered.update(normalize_topic(t) for t in TOPIC_STOPLIST)
        object.__setattr__(self, "filtered_topics", frozenset(filtered))

    def weight_for(self, topic: str) -> float:
        """Complexity weight for a normalized topic (1.0 when unknown)."""
        return self.weights.get(topic, 1.0)

    def is_filtered(self, topic: str) -> bool:
        return topic in self.filtered_topics

    def info(self) -> Dict[str, Any]:
        return {
            "total_topics": len(self.weights),
            "score_range": {"min": self.score_min, "max": self.score_max},
            "filtered_topics_count": len(self.filtered_topics),
            "source": self.source,
        }


def fallback_topic_weights() -> TopicWeightTable:
    """Hard-coded table used when the artifact is unavailable."""
    return TopicWeightTable(weights=FALLBACK_TOPIC_WEIGHTS, source="fallback")


def build_topic_weights(artifact: Mapping[str, Mapping[str, Any]]) -> TopicWeightTable:
    """
    Normalize artifact scores into weights.

    Each weight is min-max scaled over the artifact's global score range into
    [TOPIC_WEIGHT_MIN, TOPIC_WEIGHT_MAX] and rounded to 2 decimals.

    Raises:
        ValueError: If the artifact holds no usable scores.
    """
    scores = {}
    for topic_name, topic_data in artifact.items():
        if not isinstance(topic_data, Mapping):
            continue
        score = topic_data.get("score")
        if score is None:
            continue
        scores[topic_name] = float(score)

    if not scores:
        raise ValueError("artifact contains no topic scores")

    min_score = min(scores.values())
    max_score = max(scores.values())
    span = max_score - min_score

    weights = {}
    for topic_name, score in scores.items():
        if span > 0:
            weight = TOPIC_WEIGHT_MIN + (TOPIC_WEIGHT_MAX - TOPIC_WEIGHT_MIN) * (score - min_score) / span
        else:
            weight = 1.0
        weights[normalize_topic(topic_name)] = round(weight, 2)

    return TopicWeightTable(
        weights=weights,
        score_min=min_score,
        score_max=max_score,
        source="artifact",
    )


def load_topic_weights(path: Optional[str] = None) -> TopicWeightTable:
    """
    Load the topic weight artifact from disk.

    Never raises: a missing or malformed artifact falls back to the
    hard-coded table with a warning.
    """
    weights_path = path or TOPIC_WEIGHTS_PATH

    try:
        with open(weights_path, "r", encoding="utf-8") as f:
            artifact = json.load(f)
        if not isinstance(artifact, dict):
            raise ValueError("artifact must be a JSON object")
        table = build_topic_weights(artifact)
    except (OSError, ValueError, TypeError) as e:
        logger.warning(f"Could not load topic weights from {weights_path}, using fallback weights: {e}")
        return fallback_topic_weights()

    logger.info(
        f"Loaded {len(table.weights)} topic weights "
        f"(score range {table.score_min:.4f}-{table.score_max:.4f})"
    )
    return table
