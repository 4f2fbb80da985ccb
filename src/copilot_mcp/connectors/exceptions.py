"""Copilot error taxonomy.

Callers of the service layer only ever see two families of errors:

- ``ValidationFailure`` for malformed input, raised before any network call.
- ``ClassifiedError`` (one subclass per ``ErrorKind``) for upstream failures,
  produced by the classifier from raw GitHub API errors.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional


class ErrorKind(str, Enum):
    """Classified upstream failure kinds."""

    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"
    RATE_LIMITED = "rate_limited"
    NOT_FOUND = "not_found"
    SERVER_ERROR = "server_error"
    UNKNOWN = "unknown"

    @property
    def retryable(self) -> bool:
        return self not in (ErrorKind.UNAUTHORIZED, ErrorKind.NOT_FOUND)


class CopilotError(Exception):
    """Base exception for all Copilot service errors."""

    pass


class ValidationFailure(CopilotError):
    """Invalid input provided to a Copilot operation. Never retried."""

    def __init__(self, message: str, field: str = ""):
        self.message = message
        self.field = field
        super().__init__(message)


class ClassifiedError(CopilotError):
    """Upstream failure mapped to one of the ``ErrorKind`` values."""

    kind: ErrorKind = ErrorKind.UNKNOWN

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        payload: Any = None,
    ):
        self.message = message
        self.status_code = status_code
        self.payload = payload
        super().__init__(message)


class UnauthorizedError(ClassifiedError):
    """Bad or missing credentials (401)."""

    kind = ErrorKind.UNAUTHORIZED


class ForbiddenError(ClassifiedError):
    """Credentials lack permission for the operation (403)."""

    kind = ErrorKind.FORBIDDEN


class RateLimitedError(ClassifiedError):
    """Primary rate limit exhausted (403 with ``x-ratelimit-reset``)."""

    kind = ErrorKind.RATE_LIMITED

    def __init__(
        self,
        message: str,
        reset_at: Optional[datetime],
        retry_after: int,
        status_code: Optional[int] = None,
        payload: Any = None,
    ):
        self.reset_at = reset_at
        self.retry_after = retry_after
        super().__init__(message, status_code=status_code, payload=payload)


class NotFoundError(ClassifiedError):
    """Organization, enterprise or user does not exist (404)."""

    kind = ErrorKind.NOT_FOUND


class ServerError(ClassifiedError):
    """GitHub returned a 5xx response."""

    kind = ErrorKind.SERVER_ERROR


class UnknownAPIError(ClassifiedError):
    """Anything the classifier has no specific rule for."""

    kind = ErrorKind.UNKNOWN


def is_retryable(exc: BaseException) -> bool:
    """Whether a failed attempt may be retried.

    Unclassified exceptions are treated as transient.
    """
    if isinstance(exc, ValidationFailure):
        return False
    if isinstance(exc, ClassifiedError):
        return exc.kind.retryable
    return True
