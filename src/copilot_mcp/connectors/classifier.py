"""Translate raw GitHub API failures into classified Copilot errors.

Decision table (first match wins, by HTTP status):

    401                              -> UnauthorizedError
    403 + ``x-ratelimit-reset``      -> RateLimitedError
    403                              -> ForbiddenError
    404                              -> NotFoundError
    >= 500                           -> ServerError
    anything else / no status        -> UnknownAPIError (original message)
"""

import logging
import math
from datetime import datetime, timezone
from typing import Any, Mapping, NoReturn, Optional

import httpx

from .exceptions import (
    ClassifiedError,
    ForbiddenError,
    NotFoundError,
    RateLimitedError,
    ServerError,
    UnauthorizedError,
    UnknownAPIError,
    ValidationFailure,
)

logger = logging.getLogger(__name__)

RATE_LIMIT_RESET_HEADER = "x-ratelimit-reset"

UNAUTHORIZED_MESSAGE = (
    "Authentication failed. Please check your GitHub token or app credentials."
)
RATE_LIMITED_MESSAGE = "GitHub API rate limit exceeded. Please try again later."
FORBIDDEN_MESSAGE = "Access forbidden. Check your permissions for this operation."
NOT_FOUND_MESSAGE = "Resource not found. Please check the organization/user name."
SERVER_ERROR_MESSAGE = "GitHub API server error. Please try again later."
UNKNOWN_MESSAGE = "Unknown GitHub API error"


def _extract_status(error: BaseException) -> Optional[int]:
    if isinstance(error, httpx.HTTPStatusError):
        return error.response.status_code
    for attr in ("status", "status_code"):
        value = getattr(error, attr, None)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
    return None


def _extract_headers(error: BaseException) -> Mapping[str, str]:
    if isinstance(error, httpx.HTTPStatusError):
        return error.response.headers
    headers = getattr(error, "headers", None) or {}
    # Match header names case-insensitively like httpx.Headers does
    return {str(k).lower(): v for k, v in headers.items()}


def _extract_payload(error: BaseException) -> Any:
    if isinstance(error, httpx.HTTPStatusError):
        try:
            return error.response.json()
        except ValueError:
            return error.response.text[:500]
    return getattr(error, "payload", None)


def _parse_reset(value: Any) -> Optional[datetime]:
    """Parse an ``x-ratelimit-reset`` value (unix seconds)."""
    try:
        return datetime.fromtimestamp(int(value), tz=timezone.utc)
    except (TypeError, ValueError, OverflowError, OSError):
        return None


def build_classified_error(
    error: BaseException,
    operation: str,
    now: Optional[datetime] = None,
) -> ClassifiedError:
    """Map a raw upstream failure to its ``ClassifiedError`` without raising."""
    status = _extract_status(error)
    payload = _extract_payload(error)
    logger.debug(
        "Classifying %s (status=%s) during %s", type(error).__name__, status, operation
    )

    if status == 401:
        return UnauthorizedError(UNAUTHORIZED_MESSAGE, status_code=401, payload=payload)

    if status == 403:
        headers = _extract_headers(error)
        if RATE_LIMIT_RESET_HEADER in headers:
            reset_at = _parse_reset(headers[RATE_LIMIT_RESET_HEADER])
            retry_after = 0
            if reset_at is not None:
                now = now or datetime.now(timezone.utc)
                retry_after = max(0, math.ceil((reset_at - now).total_seconds()))
            return RateLimitedError(
                RATE_LIMITED_MESSAGE,
                reset_at=reset_at,
                retry_after=retry_after,
                status_code=403,
                payload=payload,
            )
        return ForbiddenError(FORBIDDEN_MESSAGE, status_code=403, payload=payload)

    if status == 404:
        return NotFoundError(NOT_FOUND_MESSAGE, status_code=404, payload=payload)

    if status is not None and status >= 500:
        return ServerError(SERVER_ERROR_MESSAGE, status_code=status, payload=payload)

    return UnknownAPIError(
        str(error) or UNKNOWN_MESSAGE, status_code=status, payload=payload
    )


def classify(
    error: BaseException,
    operation: str,
    log: Optional[logging.Logger] = None,
) -> NoReturn:
    """Raise the classified form of ``error``.

    Errors that are already typed are re-raised unchanged.
    """
    if isinstance(error, (ClassifiedError, ValidationFailure)):
        raise error

    classified = build_classified_error(error, operation)
    (log or logger).error(
        "GitHub API error during %s",
        operation,
        extra={
            "context": {
                "operation": operation,
                "status": classified.status_code,
                "kind": classified.kind.value,
                "error": str(error),
                "response": classified.payload,
            }
        },
    )
    raise classified from error
