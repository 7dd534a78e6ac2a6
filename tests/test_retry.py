"""
Tests for retry with exponential backoff.
"""

import asyncio
from unittest.mock import AsyncMock

import pytest

from llm_orchestrator.exceptions import BackendRejection, BackendTransientFailure
from llm_orchestrator.resilience import RetryPolicy, retry_async

# ==================== RetryPolicy Tests ====================


class TestRetryPolicy:
    """Tests for RetryPolicy dataclass."""

    def test_default_policy(self):
        policy = RetryPolicy()
        assert policy.max_attempts == 3
        assert policy.base_delay == 1.0
        assert policy.max_delay == 10.0
        assert policy.attempt_timeout == 60.0

    def test_delay_grows_exponentially_and_caps(self):
        policy = RetryPolicy(base_delay=1.0, max_delay=5.0, jitter=0.0)
        assert [policy.calculate_delay(n) for n in (1, 2, 3, 4)] == [1.0, 2.0, 4.0, 5.0]

    def test_jitter_stays_in_range(self):
        policy = RetryPolicy(base_delay=1.0, max_delay=10.0, jitter=0.1)
        for _ in range(50):
            assert 0.9 <= policy.calculate_delay(1) <= 1.1

    def test_should_retry_only_transient_failures(self):
        policy = RetryPolicy(max_attempts=3)
        assert policy.should_retry(BackendTransientFailure("boom"), 1) is True
        assert policy.should_retry(BackendRejection("bad request"), 1) is False
        assert policy.should_retry(ValueError("bug"), 1) is False

    def test_should_not_retry_on_last_attempt(self):
        policy = RetryPolicy(max_attempts=3)
        assert policy.should_retry(BackendTransientFailure("boom"), 3) is False

    @pytest.mark.parametrize(
        "kwargs, message",
        [
            ({"max_attempts": 0}, "max_attempts must be at least 1"),
            ({"base_delay": -1.0}, "base_delay must be non-negative"),
            ({"base_delay": 10.0, "max_delay": 5.0}, "max_delay must be >= base_delay"),
            ({"jitter": 1.5}, "jitter must be between 0 and 1"),
            ({"attempt_timeout": 0}, "attempt_timeout must be positive"),
        ],
    )
    def test_validation(self, kwargs, message):
        with pytest.raises(ValueError, match=message):
            RetryPolicy(**kwargs)


# ==================== retry_async Tests ====================

FAST = RetryPolicy(max_attempts=3, base_delay=0.5, max_delay=2.0, jitter=0.0)


@pytest.mark.asyncio
async def test_returns_first_success():
    func = AsyncMock(return_value="ok")
    sleep = AsyncMock()

    assert await retry_async(func, "a", policy=FAST, sleep=sleep, flag=True) == "ok"
    func.assert_awaited_once_with("a", flag=True)
    sleep.assert_not_awaited()


@pytest.mark.asyncio
async def test_retries_transient_failures_then_succeeds():
    func = AsyncMock(side_effect=[BackendTransientFailure("1"), BackendTransientFailure("2"), "ok"])
    sleep = AsyncMock()

    assert await retry_async(func, policy=FAST, sleep=sleep) == "ok"
    assert func.await_count == 3
    assert [call.args[0] for call in sleep.await_args_list] == [0.5, 1.0]


@pytest.mark.asyncio
async def test_raises_last_error_when_exhausted():
    func = AsyncMock(side_effect=BackendTransientFailure("still down"))

    with pytest.raises(BackendTransientFailure, match="still down"):
        await retry_async(func, policy=FAST, sleep=AsyncMock())
    assert func.await_count == 3


@pytest.mark.asyncio
async def test_rejection_is_not_retried():
    func = AsyncMock(side_effect=BackendRejection("bad request", status_code=400))
    sleep = AsyncMock()

    with pytest.raises(BackendRejection):
        await retry_async(func, policy=FAST, sleep=sleep)
    assert func.await_count == 1
    sleep.assert_not_awaited()


@pytest.mark.asyncio
async def test_attempt_timeout_counts_as_transient():
    """A hung attempt is cancelled and retried."""
    attempts = 0

    async def slow_then_fast():
        nonlocal attempts
        attempts += 1
        if attempts == 1:
            await asyncio.sleep(10)
        return "ok"

    policy = RetryPolicy(max_attempts=2, base_delay=0.0, max_delay=0.0, jitter=0.0, attempt_timeout=0.05)
    assert await retry_async(slow_then_fast, policy=policy, sleep=AsyncMock()) == "ok"
    assert attempts == 2


@pytest.mark.asyncio
async def test_attempt_timeout_exhausted_raises_transient():
    async def hang():
        await asyncio.sleep(10)

    policy = RetryPolicy(max_attempts=1, attempt_timeout=0.05)
    with pytest.raises(BackendTransientFailure, match="timed out"):
        await retry_async(hang, policy=policy)
