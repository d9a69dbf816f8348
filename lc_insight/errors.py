"""
API error types for LeetCode Insight.

Every failure a route can report is an APIError subclass carrying a stable
code, an HTTP status and an optional detail line. main.py turns them into
the JSON body below; anything else becomes INTERNAL_ERROR.

    {"error": true, "code": "...", "message": "...", "detail": "...",
     "path": "/user/topics", "timestamp": "...Z"}
"""

from typing import Optional, Dict, Any
from enum import Enum
from dataclasses import dataclass, field
from datetime import datetime


def utc_timestamp() -> str:
    return datetime.utcnow().isoformat() + "Z"


class ErrorCode(str, Enum):
    # Caller errors
    INVALID_INPUT = "INVALID_INPUT"
    NOT_FOUND = "NOT_FOUND"
    MISSING_CREDENTIALS = "MISSING_CREDENTIALS"

    # LeetCode or service failures
    UPSTREAM_UNAVAILABLE = "UPSTREAM_UNAVAILABLE"
    UPSTREAM_TIMEOUT = "UPSTREAM_TIMEOUT"
    INTERNAL_ERROR = "INTERNAL_ERROR"


@dataclass
class ErrorResponse:
    """JSON error body shared by every failing endpoint."""

    code: str
    message: str
    detail: Optional[str] = None
    path: Optional[str] = None
    timestamp: str = field(default_factory=utc_timestamp)

    def to_dict(self) -> Dict[str, Any]:
        body = {"error": True, "code": self.code, "message": self.message}
        for key in ("detail", "path"):
            value = getattr(self, key)
            if value:
                body[key] = value
        body["timestamp"] = self.timestamp
        return body


class APIError(Exception):
    """Base exception for errors reported to the caller as structured JSON."""

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        status_code: int = 400,
        detail: Optional[str] = None
    ):
        self.code = code
        self.message = message
        self.status_code = status_code
        self.detail = detail
        super().__init__(message)

    @property
    def is_server_side(self) -> bool:
        """True for failures the caller cannot fix by changing the request."""
        return self.status_code >= 500

    def to_response(self, path: Optional[str] = None) -> ErrorResponse:
        return ErrorResponse(
            code=self.code.value,
            message=self.message,
            detail=self.detail,
            path=path
        )


class InvalidInputError(APIError):
    """Raised for malformed request values, before any data access."""

    def __init__(self, message: str, detail: Optional[str] = None):
        super().__init__(
            code=ErrorCode.INVALID_INPUT,
            message=message,
            status_code=400,
            detail=detail
        )


class UserNotFoundError(APIError):
    """Raised when the authenticated user has no record."""

    def __init__(self, user_id):
        super().__init__(
            code=ErrorCode.NOT_FOUND,
            message=f"User not found: '{user_id}'",
            status_code=404
        )


class ProblemNotFoundError(APIError):
    """Raised when a problem id is not in the corpus."""

    def __init__(self, problem_id: str):
        super().__init__(
            code=ErrorCode.NOT_FOUND,
            message=f"No problem found with id {problem_id}",
            status_code=404
        )


class MissingCredentialsError(APIError):
    """Raised when the user has no LeetCode session to call upstream with."""

    def __init__(self, missing: str):
        super().__init__(
            code=ErrorCode.MISSING_CREDENTIALS,
            message=f"LeetCode {missing} is required",
            status_code=401,
            detail="Link your LeetCode account through the extension first."
        )


class UpstreamUnavailableError(APIError):
    """Raised when the LeetCode API fails or returns an unusable payload."""

    def __init__(self, message: str = "LeetCode API error", detail: Optional[str] = None):
        super().__init__(
            code=ErrorCode.UPSTREAM_UNAVAILABLE,
            message=message,
            status_code=502,
            detail=detail
        )


class UpstreamTimeoutError(APIError):
    """Raised when the LeetCode API times out."""

    def __init__(self):
        super().__init__(
            code=ErrorCode.UPSTREAM_TIMEOUT,
            message="LeetCode API timeout",
            status_code=504,
            detail="LeetCode did not respond in time. Please try again."
        )

