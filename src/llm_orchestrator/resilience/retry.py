"""
Retry with exponential backoff for backend calls.

Every attempt is bounded by ``RetryPolicy.attempt_timeout``; an attempt that
overruns it is cancelled and counts as a transient failure.
"""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, TypeVar

from llm_orchestrator.exceptions import BackendTransientFailure

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """
    Configuration for retry behavior.

    Attributes:
        max_attempts: Maximum number of attempts (including the first try).
        base_delay: Delay before the first retry, in seconds.
        max_delay: Upper bound for any single delay, in seconds.
        exponential_base: Growth factor between consecutive delays.
        jitter: Jitter factor as a fraction (0.1 = +/- 10%).
        attempt_timeout: Seconds allowed per attempt, None for unbounded.
        retryable_exceptions: Exception types that trigger a retry.
    """

    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 10.0
    exponential_base: float = 2.0
    jitter: float = 0.1
    attempt_timeout: float | None = 60.0
    retryable_exceptions: tuple[type[Exception], ...] = (BackendTransientFailure,)

    def __post_init__(self) -> None:
        """Validate policy parameters."""
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.base_delay < 0:
            raise ValueError("base_delay must be non-negative")
        if self.max_delay < self.base_delay:
            raise ValueError("max_delay must be >= base_delay")
        if self.exponential_base < 1:
            raise ValueError("exponential_base must be >= 1")
        if not 0 <= self.jitter <= 1:
            raise ValueError("jitter must be between 0 and 1")
        if self.attempt_timeout is not None and self.attempt_timeout <= 0:
            raise ValueError("attempt_timeout must be positive")

    def calculate_delay(self, attempt: int) -> float:
        """
        Calculate delay after a failed attempt.

        Args:
            attempt: The attempt number that just failed (1-indexed).

        Returns:
            Delay in seconds with jitter applied.
        """
        delay = min(self.base_delay * (self.exponential_base ** (attempt - 1)), self.max_delay)
        if self.jitter > 0:
            jitter_range = delay * self.jitter
            delay = max(0.0, delay + random.uniform(-jitter_range, jitter_range))
        return delay

    def should_retry(self, exception: BaseException, attempt: int) -> bool:
        """Return True if ``exception`` on ``attempt`` deserves another try."""
        if attempt >= self.max_attempts:
            return False
        return isinstance(exception, self.retryable_exceptions)


async def _run_attempt(
    func: Callable[..., Awaitable[T]],
    args: tuple[Any, ...],
    kwargs: dict[str, Any],
    timeout: float | None,
    attempt: int,
) -> T:
    if timeout is None:
        return await func(*args, **kwargs)
    try:
        return await asyncio.wait_for(func(*args, **kwargs), timeout=timeout)
    except asyncio.TimeoutError as e:
        raise BackendTransientFailure(f"Attempt {attempt} timed out after {timeout:g}s") from e


async def retry_async(
    func: Callable[..., Awaitable[T]],
    *args: Any,
    policy: RetryPolicy,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    **kwargs: Any,
) -> T:
    """
    Await ``func(*args, **kwargs)`` with retries.

    Args:
        func: Coroutine function to call.
        *args: Positional arguments for ``func``.
        policy: Retry policy to apply.
        sleep: Awaitable sleep used between attempts. Injectable for tests.
        **kwargs: Keyword arguments for ``func``.

    Returns:
        The result of the first successful attempt.

    Raises:
        The last exception once attempts are exhausted, or immediately for
        exceptions the policy does not retry.
    """
    attempt = 0
    while True:
        attempt += 1
        try:
            return await _run_attempt(func, args, kwargs, policy.attempt_timeout, attempt)
        except Exception as e:
            if not policy.should_retry(e, attempt):
                raise
            delay = policy.calculate_delay(attempt)
            logger.warning(
                f"Attempt {attempt}/{policy.max_attempts} failed: {e}. "
                f"Retrying in {delay:.2f}s"
            )
            await sleep(delay)
