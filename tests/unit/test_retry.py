"""Tests for retry_with_backoff.

Verifies:
- First-call success returns immediately with no retry.
- Transient failures (server errors, unknown errors, rate limits) are retried
  with pure exponential backoff: base, 2*base, 4*base, ...
- Unauthorized, not-found and validation failures are NEVER retried.
- Retry exhaustion re-raises the last observed error.
"""

from unittest.mock import AsyncMock, MagicMock, call, patch

import pytest

from copilot_mcp.connectors.exceptions import (
    ForbiddenError,
    NotFoundError,
    ServerError,
    UnauthorizedError,
    UnknownAPIError,
    ValidationFailure,
)
from copilot_mcp.connectors.retry import retry_with_backoff


pytestmark = pytest.mark.asyncio


# ---------------------------------------------------------------------------
# Success / no-retry cases
# ---------------------------------------------------------------------------

@patch("copilot_mcp.connectors.retry.asyncio.sleep", new_callable=AsyncMock)
async def test_success_no_retry(mock_sleep):
    """Operation succeeds on first call -- no retry, returns result."""
    fn = AsyncMock(return_value="ok")

    result = await retry_with_backoff(fn, max_attempts=3)

    assert result == "ok"
    assert fn.await_count == 1
    mock_sleep.assert_not_awaited()


# ---------------------------------------------------------------------------
# Transient failures
# ---------------------------------------------------------------------------

@patch("copilot_mcp.connectors.retry.asyncio.sleep", new_callable=AsyncMock)
async def test_server_error_twice_then_success(mock_sleep):
    """Two server errors then success: returns value after base + 2*base of sleep."""
    fn = AsyncMock(
        side_effect=[
            ServerError("boom", status_code=502),
            ServerError("boom", status_code=503),
            {"seats": []},
        ]
    )

    result = await retry_with_backoff(fn, max_attempts=3, base_delay=1.0)

    assert result == {"seats": []}
    assert fn.await_count == 3
    assert mock_sleep.await_args_list == [call(1.0), call(2.0)]
    total_sleep = sum(c.args[0] for c in mock_sleep.await_args_list)
    assert total_sleep >= 1.0 + 2 * 1.0


@patch("copilot_mcp.connectors.retry.asyncio.sleep", new_callable=AsyncMock)
async def test_unclassified_error_is_retried(mock_sleep):
    """Plain exceptions are treated as transient."""
    fn = AsyncMock(side_effect=[RuntimeError("connection reset"), "ok"])

    result = await retry_with_backoff(fn, max_attempts=3, base_delay=0.5)

    assert result == "ok"
    mock_sleep.assert_awaited_once_with(0.5)


@patch("copilot_mcp.connectors.retry.asyncio.sleep", new_callable=AsyncMock)
async def test_forbidden_is_retried(mock_sleep):
    """Only unauthorized and not-found short-circuit; forbidden is retried."""
    fn = AsyncMock(side_effect=[ForbiddenError("nope", status_code=403), "ok"])

    result = await retry_with_backoff(fn, max_attempts=3, base_delay=0.01)

    assert result == "ok"
    assert fn.await_count == 2


# ---------------------------------------------------------------------------
# Non-retryable failures
# ---------------------------------------------------------------------------

@patch("copilot_mcp.connectors.retry.asyncio.sleep", new_callable=AsyncMock)
async def test_unauthorized_no_retry(mock_sleep):
    """Unauthorized on attempt 1 raises immediately: one call, no sleep."""
    fn = AsyncMock(side_effect=UnauthorizedError("bad token", status_code=401))

    with pytest.raises(UnauthorizedError):
        await retry_with_backoff(fn, max_attempts=3)

    assert fn.await_count == 1
    mock_sleep.assert_not_awaited()


@patch("copilot_mcp.connectors.retry.asyncio.sleep", new_callable=AsyncMock)
async def test_not_found_no_retry(mock_sleep):
    fn = AsyncMock(side_effect=NotFoundError("missing", status_code=404))

    with pytest.raises(NotFoundError):
        await retry_with_backoff(fn, max_attempts=3)

    assert fn.await_count == 1
    mock_sleep.assert_not_awaited()


@patch("copilot_mcp.connectors.retry.asyncio.sleep", new_callable=AsyncMock)
async def test_validation_failure_no_retry(mock_sleep):
    fn = AsyncMock(side_effect=ValidationFailure("bad org", field="org"))

    with pytest.raises(ValidationFailure):
        await retry_with_backoff(fn, max_attempts=3)

    assert fn.await_count == 1
    mock_sleep.assert_not_awaited()


# ---------------------------------------------------------------------------
# Retry exhaustion
# ---------------------------------------------------------------------------

@patch("copilot_mcp.connectors.retry.asyncio.sleep", new_callable=AsyncMock)
async def test_exhaustion_raises_last_error(mock_sleep):
    """After max_attempts failures the last error is raised unchanged."""
    last = UnknownAPIError("third", status_code=422)
    fn = AsyncMock(
        side_effect=[
            UnknownAPIError("first", status_code=422),
            UnknownAPIError("second", status_code=422),
            last,
        ]
    )

    with pytest.raises(UnknownAPIError) as exc_info:
        await retry_with_backoff(fn, max_attempts=3, base_delay=1.0)

    assert exc_info.value is last
    assert fn.await_count == 3
    # No sleep after the final attempt
    assert mock_sleep.await_args_list == [call(1.0), call(2.0)]


@patch("copilot_mcp.connectors.retry.asyncio.sleep", new_callable=AsyncMock)
async def test_single_attempt_budget(mock_sleep):
    fn = AsyncMock(side_effect=ServerError("down", status_code=500))

    with pytest.raises(ServerError):
        await retry_with_backoff(fn, max_attempts=1)

    assert fn.await_count == 1
    mock_sleep.assert_not_awaited()


async def test_invalid_attempt_budget():
    with pytest.raises(ValueError, match="max_attempts"):
        await retry_with_backoff(AsyncMock(), max_attempts=0)


# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

@patch("copilot_mcp.connectors.retry.asyncio.sleep", new_callable=AsyncMock)
async def test_injected_logger_receives_retry_records(mock_sleep):
    """The injected logger gets a warning per retry and an error on exhaustion."""
    log = MagicMock()
    fn = AsyncMock(side_effect=ServerError("down", status_code=500))

    with pytest.raises(ServerError):
        await retry_with_backoff(
            fn, max_attempts=2, base_delay=0.01, operation_name="list seats", log=log
        )

    assert log.warning.call_count == 1
    assert log.error.call_count == 1
    assert "list seats" in log.error.call_args.args

