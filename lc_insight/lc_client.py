"""
LeetCode GraphQL Client Module.

Handles all communication with the LeetCode GraphQL API including:
- Per-call timeout and retry handling with exponential backoff
- Structured upstream errors
- Normalization of contest history payloads
"""

import re
import math
import time
import functools
import logging
import unicodedata
from typing import List, Dict, Optional, Any

import requests

from .config import (
    LEETCODE_BASE_URL,
    LEETCODE_GRAPHQL_URL,
    LEETCODE_API_TIMEOUT,
    LEETCODE_API_MAX_RETRIES,
    LEETCODE_API_RETRY_DELAY,
)
from .errors import MissingCredentialsError, UpstreamUnavailableError, UpstreamTimeoutError

logger = logging.getLogger(__name__)


ATTENDED_CONTESTS_QUERY = """
query userContestRankingHistory($username: String!) {
  userContestRankingHistory(username: $username) {
    attended
    rating
    ranking
    contest { title startTime }
  }
}
"""

CONTEST_QUESTIONS_QUERY = """
query contestQuestionList($contestSlug: String!) {
  contestQuestionList(contestSlug: $contestSlug) {
    isAc
    credit
    title
    titleSlug
    questionId
  }
}
"""


def _make_graphql_request(
    payload: Dict[str, Any],
    headers: Dict[str, str],
    timeout: float = LEETCODE_API_TIMEOUT,
    max_retries: int = LEETCODE_API_MAX_RETRIES
) -> Dict[str, Any]:
    """
    POST a GraphQL query with timeout and retry logic.

    Args:
        payload: GraphQL body (operationName, query, variables)
        headers: Request headers including the session cookie
        timeout: Per-attempt timeout in seconds
        max_retries: Maximum attempts

    Returns:
        The `data` object of the GraphQL response

    Raises:
        UpstreamTimeoutError: If every attempt timed out
        UpstreamUnavailableError: If all attempts failed otherwise
    """
    operation = payload.get("operationName", "query")
    last_error = None

    for attempt in range(max_retries):
        try:
            delay = LEETCODE_API_RETRY_DELAY * (2 ** attempt) if attempt > 0 else 0
            if delay > 0:
                logger.info(f"Retry {attempt + 1}/{max_retries} for {operation} after {delay}s")
                time.sleep(delay)

            response = requests.post(
                LEETCODE_GRAPHQL_URL,
                json=payload,
                headers=headers,
                timeout=timeout
            )
            response.raise_for_status()
            body = response.json()

            if body.get("errors"):
                error_msg = "; ".join(
                    str(e.get("message", e)) if isinstance(e, dict) else str(e)
                    for e in body["errors"]
                )
                logger.warning(f"LeetCode {operation} returned errors: {error_msg}")
                last_error = error_msg
                continue

            return body.get("data") or {}

        except requests.exceptions.Timeout:
            logger.warning(f"LeetCode {operation} timeout (attempt {attempt + 1})")
            last_error = "timeout"

        except requests.exceptions.HTTPError as e:
            status = e.response.status_code if e.response is not None else None
            logger.warning(f"LeetCode {operation} failed with HTTP {status}")
            last_error = f"HTTP {status}"
            # No retry on 4xx except 429
            if status is not None and 400 <= status < 500 and status != 429:
                break

        except (requests.exceptions.RequestException, ValueError) as e:
            logger.warning(f"LeetCode {operation} request failed: {e}")
            last_error = str(e)

    if last_error == "timeout":
        raise UpstreamTimeoutError()
    raise UpstreamUnavailableError(
        f"LeetCode {operation} failed after {max_retries} attempts", last_error
    )


class LeetCodeClient:
    """
    Authenticated LeetCode client for one user.

    The session cookie / CSRF token pair comes from the browser extension
    and is stored on the user record.
    """

    def __init__(
        self,
        session_token: Optional[str],
        csrf_token: Optional[str],
        timeout: float = LEETCODE_API_TIMEOUT,
        max_retries: int = LEETCODE_API_MAX_RETRIES
    ):
        self.session_token = session_token
        self.csrf_token = csrf_token
        self.timeout = timeout
        self.max_retries = max_retries

    @classmethod
    def for_user(cls, user) -> "LeetCodeClient":
        return cls(user.session_token, user.csrf_token)

    def _headers(self, referer: Optional[str] = None) -> Dict[str, str]:
        if not self.session_token:
            raise MissingCredentialsError("session cookie")
        if not self.csrf_token:
            raise MissingCredentialsError("CSRF token")

        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "Cookie": f"LEETCODE_SESSION={self.session_token}",
            "x-csrftoken": self.csrf_token,
            "Origin": LEETCODE_BASE_URL,
        }
        if referer:
            headers["Referer"] = referer
        return headers

    def get_attended_contests(self, username: str) -> List[Dict]:
        """
        Fetch the user's contest ranking history, keeping attended contests.

        Returns:
            Raw entries: {attended, rating, ranking, contest: {title, startTime}}
        """
        if not username:
            raise MissingCredentialsError("username")

        logger.info(f"Fetching attended contests for {username}")
        data = _make_graphql_request(
            {
                "operationName": "userContestRankingHistory",
                "query": ATTENDED_CONTESTS_QUERY,
                "variables": {"username": username},
            },
            self._headers(),
            timeout=self.timeout,
            max_retries=self.max_retries,
        )

        history = data.get("userContestRankingHistory") or []
        if not isinstance(history, list):
            raise UpstreamUnavailableError(
                "Unexpected contest history payload", type(history).__name__
            )
        return [entry for entry in history if isinstance(entry, dict) and entry.get("attended") is True]

    def fetch_contest_questions(self, contest_slug: str) -> List[Dict]:
        """
        Fetch the user's per-question results for one contest.

        Returns:
            Raw entries: {isAc, credit, title, titleSlug, questionId}
        """
        data = _make_graphql_request(
            {
                "operationName": "contestQuestionList",
                "query": CONTEST_QUESTIONS_QUERY,
                "variables": {"contestSlug": contest_slug},
            },
            self._headers(referer=f"{LEETCODE_BASE_URL}/contest/{contest_slug}/"),
            timeout=self.timeout,
            max_retries=self.max_retries,
        )
        questions = data.get("contestQuestionList")
        if questions is None:
            return []
        if not isinstance(questions, list):
            raise UpstreamUnavailableError(
                f"Unexpected question list payload for {contest_slug}", type(questions).__name__
            )
        return questions


# =============================================================================
# PAYLOAD NORMALIZATION
# =============================================================================

def slugify(title: str) -> str:
    """Turn a contest title into its URL slug ("Weekly Contest 400" -> "weekly-contest-400")."""
    text = unicodedata.normalize("NFKD", str(title or ""))
    text = "".join(ch for ch in text if not unicodedata.combining(ch))
    text = text.lower().strip()
    text = re.sub(r"[^a-z0-9\s-]", "", text)
    text = re.sub(r"\s+", "-", text)
    text = re.sub(r"-+", "-", text)
    return text.strip("-")


def _to_number(value, default=0):
    try:
        return int(float(value))
    except (TypeError, ValueError, OverflowError):
        return default


def _newest_first(a: Dict, b: Dict) -> int:
    if a["start_time"] != b["start_time"]:
        return b["start_time"] - a["start_time"]
    # Ties with an untitled contest keep their upstream order
    if a["title_slug"] and b["title_slug"]:
        return (a["title_slug"] < b["title_slug"]) - (a["title_slug"] > b["title_slug"])
    return 0


def normalize_attended_contests(entries: List[Dict]) -> List[Dict]:
    """
    Normalize raw attended-contest entries.

    Each entry gets a title slug and numeric start time; the list is sorted
    by start time descending, then slug descending when both contests have
    one. Other ties keep their input order.
    """
    normalized = []
    for entry in entries or []:
        contest = entry.get("contest") or {}
        title = contest.get("title") or ""
        normalized.append({
            "title": title,
            "title_slug": slugify(title),
            "start_time": _to_number(contest.get("startTime")),
            "attended": bool(entry.get("attended")),
            "rating": entry.get("rating"),
            "ranking": entry.get("ranking"),
        })

    normalized.sort(key=functools.cmp_to_key(_newest_first))
    return normalized


def question_id_of(question: Dict) -> str:
    """Question id under any of the keys LeetCode has used."""
    for key in ("questionId", "question_id", "id"):
        value = question.get(key)
        if value is not None and str(value).strip():
            return str(value).strip()
    return ""


def normalize_contest_question(question: Dict, rating: Optional[float] = None) -> Dict:
    """Normalize one raw contest question and attach its corpus rating."""
    try:
        credit = float(question.get("credit", question.get("credits", 0)) or 0)
    except (TypeError, ValueError):
        credit = 0.0
    if not math.isfinite(credit):
        credit = 0.0
    if credit.is_integer():
        credit = int(credit)

    return {
        "question_id": question_id_of(question),
        "title": question.get("title") or "",
        "title_slug": question.get("titleSlug") or "",
        "is_ac": bool(question.get("isAc")),
        "credit": credit,
        "rating": rating,
    }
