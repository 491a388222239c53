"""Tests for the rate-limit retry policy."""

from unittest.mock import AsyncMock

import pytest

from twinbridge.core.errors import QuoteUnavailableError, RemoteCallError
from twinbridge.core.retry import RetryPolicy, is_rate_limit_error


class TestClassifier:
    """Rate-limit detection."""

    @pytest.mark.parametrize(
        "exc",
        [
            RemoteCallError("busy", status=429),
            RuntimeError("HTTP 429 returned"),
            RuntimeError("Rate limit exceeded"),
            RuntimeError("Too Many Requests"),
        ],
    )
    def test_rate_limited(self, exc):
        assert is_rate_limit_error(exc)

    @pytest.mark.parametrize("exc", [RuntimeError("connection reset"), RemoteCallError("bad", status=500)])
    def test_not_rate_limited(self, exc):
        assert not is_rate_limit_error(exc)


class TestRetryPolicy:
    """Backoff schedule and retry decisions."""

    def test_delays_are_capped(self):
        policy = RetryPolicy(base_delay=1.0, max_delay=4.0)
        assert [policy.delay_for(n) for n in range(5)] == [1.0, 2.0, 4.0, 4.0, 4.0]

    @pytest.mark.asyncio
    async def test_retries_rate_limits_then_succeeds(self):
        sleep = AsyncMock()
        policy = RetryPolicy(max_attempts=3, sleep=sleep)
        operation = AsyncMock(side_effect=[QuoteUnavailableError("429", status=429), "ok"])

        assert await policy.run(operation, label="test") == "ok"
        assert operation.await_count == 2
        sleep.assert_awaited_once_with(1.0)

    @pytest.mark.asyncio
    async def test_other_errors_fail_immediately(self):
        sleep = AsyncMock()
        policy = RetryPolicy(max_attempts=3, sleep=sleep)
        operation = AsyncMock(side_effect=RuntimeError("connection reset"))

        with pytest.raises(RuntimeError):
            await policy.run(operation)
        assert operation.await_count == 1
        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_gives_up_after_max_attempts(self):
        sleep = AsyncMock()
        policy = RetryPolicy(max_attempts=3, sleep=sleep)
        operation = AsyncMock(side_effect=RuntimeError("rate limit"))

        with pytest.raises(RuntimeError):
            await policy.run(operation)
        assert operation.await_count == 3
        assert [call.args[0] for call in sleep.await_args_list] == [1.0, 2.0]

    def test_invalid_attempts(self):
        with pytest.raises(ValueError):
            RetryPolicy(max_attempts=0)
