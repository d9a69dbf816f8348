"""
Centralized Configuration Module for LeetCode Insight.

All configurable constants, timeouts, TTLs, and limits are defined here.
Import from this module instead of hardcoding values.
"""

import os
import re
from typing import Iterable, List

# =============================================================================
# LEETCODE API CONFIGURATION
# =============================================================================

LEETCODE_BASE_URL = "https://leetcode.com"
LEETCODE_GRAPHQL_URL = os.getenv("LEETCODE_GRAPHQL_URL", f"{LEETCODE_BASE_URL}/graphql/")
LEETCODE_API_TIMEOUT = float(os.getenv("LEETCODE_API_TIMEOUT", "20"))  # seconds, per call
LEETCODE_API_MAX_RETRIES = int(os.getenv("LEETCODE_API_MAX_RETRIES", "3"))
LEETCODE_API_RETRY_DELAY = float(os.getenv("LEETCODE_API_RETRY_DELAY", "1.0"))  # backoff base

# =============================================================================
# CONTEST HISTORY CACHE
# =============================================================================

CONTEST_CACHE_TTL_DAYS = int(os.getenv("CONTEST_CACHE_TTL_DAYS", "7"))
CONTEST_FETCH_CONCURRENCY = int(os.getenv("CONTEST_FETCH_CONCURRENCY", "6"))

# Upper bound for one per-contest fetch, retries included
CONTEST_FETCH_TIMEOUT = (
    LEETCODE_API_TIMEOUT * LEETCODE_API_MAX_RETRIES
    + LEETCODE_API_RETRY_DELAY * (2 ** LEETCODE_API_MAX_RETRIES)
)

DEFAULT_PAGE_SIZE = 10

# =============================================================================
# WEAK TOPIC ANALYSIS
# =============================================================================

WEAK_TOPICS_CACHE_TTL_HOURS = 6

TOPIC_WEIGHTS_PATH = os.getenv(
    "TOPIC_WEIGHTS_PATH",
    os.path.join(os.path.dirname(os.path.abspath(__file__)), "data", "tag_averages.json"),
)

TOPIC_WEIGHT_MIN = 0.5
TOPIC_WEIGHT_MAX = 3.0
FILTER_WEIGHT_THRESHOLD = 0.8  # Topics lighter than this are too common to signal weakness

# Topics LeetCode attaches to almost everything
TOPIC_STOPLIST = (
    "array",
    "arrays",
    "hash table",
    "implementation",
    "brute-force",
    "simulation",
)

TIME_DECAY_DAYS = 30
MIN_OCCURRENCES = 2
MAX_WEAK_TOPICS = 15

HIGH_RETRY_THRESHOLD = 4       # Solved, but only after this many submissions
HIGH_RETRY_BASE_WEIGHT = 0.7
FAILED_BASE_WEIGHT = 1.0

WEAKNESS_ALGORITHM = "bayesian_weighted_v3"

# =============================================================================
# RECOMMENDATION SETTINGS
# =============================================================================

DEFAULT_MIN_RATING_OFFSET = 50
DEFAULT_MAX_RATING_OFFSET = 100

PUSH_MIN_RATING_OFFSET = 100
PUSH_MAX_RATING_OFFSET = 200

RECOMMENDATION_LIMIT = 12
RECOMMENDATION_LIMIT_MAX = 25
RECOMMENDATION_HISTORY_SIZE = 3
CANDIDATE_POOL_LIMIT = 500

EXACT_MATCH_BONUS = 1.15

DEFAULT_USER_RATING = 1500

DIFFICULTIES = ("Easy", "Medium", "Hard")

# =============================================================================
# API SETTINGS
# =============================================================================

API_VERSION = "v1"
USER_ID_HEADER = "X-User-Id"

# =============================================================================
# LOGGING CONFIGURATION
# =============================================================================

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# =============================================================================
# TOPIC NORMALIZATION
# =============================================================================

_TOPIC_SEPARATORS = re.compile(r"[\s_]+")


def normalize_topic(tag) -> str:
    """Normalize a topic name to its key form ("Dynamic Programming" -> "dynamic-programming")."""
    if tag is None:
        return ""
    return _TOPIC_SEPARATORS.sub("-", str(tag).strip().lower())


def normalize_topics(tags: Iterable) -> List[str]:
    """Normalize a list of topic names, dropping blanks and duplicates."""
    if not tags:
        return []
    if isinstance(tags, str):
        tags = tags.split(",")
    seen = set()
    unique_tags = []
    for t in tags:
        key = normalize_topic(t)
        if key and key not in seen:
            seen.add(key)
            unique_tags.append(key)
    return unique_tags
