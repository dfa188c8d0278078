# tests/unit/core/test_unit_retry.py — v1
"""Tests for core/retry.py — bounded retry helper."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from marathon_cloud.core.retry import RetryConfig, RetryExhausted, _compute_delay, with_retry


class TestComputeDelay:
    def test_fixed_delay_by_default(self):
        config = RetryConfig(base_delay_s=1.0)
        assert [_compute_delay(config, n) for n in range(3)] == [1.0, 1.0, 1.0]

    def test_backoff(self):
        config = RetryConfig(base_delay_s=1.0, backoff_factor=2.0)
        assert _compute_delay(config, 2) == 4.0

    def test_jitter_bounds(self):
        config = RetryConfig(base_delay_s=1.0, jitter=True)
        for _ in range(20):
            assert 0.5 <= _compute_delay(config, 0) <= 1.5


class TestRetryConfig:
    def test_rejects_zero_attempts(self):
        with pytest.raises(ValueError):
            RetryConfig(max_attempts=0)


class TestWithRetry:
    @pytest.mark.asyncio
    async def test_success_first_try(self):
        fn = AsyncMock(return_value="ok")
        sleep = AsyncMock()
        assert await with_retry(fn, "a", sleep=sleep) == "ok"
        fn.assert_awaited_once_with("a")
        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_fail_fail_succeed(self):
        fn = AsyncMock(side_effect=[OSError("1"), OSError("2"), "ok"])
        sleep = AsyncMock()
        result = await with_retry(fn, config=RetryConfig(base_delay_s=0.5), sleep=sleep)
        assert result == "ok"
        assert fn.await_count == 3
        assert [c.args[0] for c in sleep.await_args_list] == [0.5, 0.5]

    @pytest.mark.asyncio
    async def test_exhausted(self):
        fn = AsyncMock(side_effect=OSError("down"))
        with pytest.raises(RetryExhausted) as exc_info:
            await with_retry(fn, label="get", sleep=AsyncMock())
        assert exc_info.value.attempts == 3
        assert isinstance(exc_info.value.last_error, OSError)
        assert fn.await_count == 3

    @pytest.mark.asyncio
    async def test_non_retryable_propagates(self):
        fn = AsyncMock(side_effect=KeyError("x"))
        with pytest.raises(KeyError):
            await with_retry(fn, retry_on=(OSError,), sleep=AsyncMock())
        assert fn.await_count == 1
