"""Retry with exponential backoff for Copilot API operations.

Transparent to callers: wrap any async callable and it is re-invoked on
transient failures, one attempt at a time.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

from .exceptions import is_retryable

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_BASE_DELAY = 1.0


def compute_backoff(attempt: int, base_delay: float) -> float:
    """Delay in seconds after a failed ``attempt`` (1-based). No jitter."""
    return base_delay * (2 ** (attempt - 1))


async def retry_with_backoff(
    operation: Callable[[], Awaitable[Any]],
    *,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    base_delay: float = DEFAULT_BASE_DELAY,
    operation_name: str = "operation",
    log: Optional[logging.Logger] = None,
) -> Any:
    """Execute an async operation, retrying transient failures.

    Never retries:
      - ValidationFailure
      - ClassifiedError whose kind is not retryable (unauthorized, not found)

    Everything else is retried after ``base_delay * 2^(attempt-1)`` seconds
    until ``max_attempts`` invocations have been made.

    Args:
        operation: Zero-argument async callable to execute.
        max_attempts: Total number of invocations allowed (default 3).
        base_delay: Delay in seconds after the first failure (default 1.0).
        operation_name: Description used in log records.
        log: Logger to report attempts to (defaults to this module's).

    Returns:
        The result of ``operation()``.

    Raises:
        The last error raised by ``operation`` once retries are exhausted,
        or the first non-retryable error.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be >= 1")
    log = log or logger

    attempt = 1
    while True:
        log.debug(
            "Attempting %s",
            operation_name,
            extra={"context": {"attempt": attempt, "max_attempts": max_attempts}},
        )
        try:
            return await operation()
        except Exception as exc:
            if attempt >= max_attempts:
                log.error(
                    "%s failed after %d attempts",
                    operation_name,
                    max_attempts,
                    extra={"context": {"attempts": max_attempts, "error": str(exc)}},
                )
                raise

            if not is_retryable(exc):
                log.debug(
                    "Not retrying %s due to error type",
                    operation_name,
                    extra={"context": {"error": str(exc), "type": type(exc).__name__}},
                )
                raise

            delay = compute_backoff(attempt, base_delay)
            log.warning(
                "%s failed, retrying in %.1fs",
                operation_name,
                delay,
                extra={
                    "context": {
                        "attempt": attempt,
                        "max_attempts": max_attempts,
                        "delay": delay,
                        "error": str(exc),
                    }
                },
            )
            await asyncio.sleep(delay)
            attempt += 1
