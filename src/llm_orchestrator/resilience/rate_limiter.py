"""
Sliding window rate limiter.

Bounds the number of backend calls each caller may start within a rolling
window. Unlike a token bucket there is no burst allowance at window
boundaries.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import deque
from collections.abc import Callable

from llm_orchestrator.exceptions import QuotaExceeded

logger = logging.getLogger(__name__)

ANONYMOUS_KEY = "anonymous"


class SlidingWindowRateLimiter:
    """
    Per-key sliding window log.

    Each key keeps the timestamps of its admitted calls; a call is admitted
    when fewer than ``max_calls`` timestamps fall inside the trailing window.
    Keys with no call inside the window are dropped within two windows of
    their last call, so the map only holds recently active callers.

    Thread Safety:
        Check-and-record happens under a single lock, so concurrent callers
        cannot both take the last slot.

    Example:
        >>> limiter = SlidingWindowRateLimiter(max_calls=10, window_seconds=60)
        >>> limiter.try_acquire("user_123")
        True
    """

    def __init__(
        self,
        max_calls: int,
        window_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """
        Initialize the rate limiter.

        Args:
            max_calls: Calls admitted per key within the window.
            window_seconds: Length of the rolling window.
            clock: Monotonic time source. Injectable for tests.
        """
        if max_calls < 1:
            raise ValueError("max_calls must be at least 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")

        self.max_calls = max_calls
        self.window_seconds = window_seconds
        self._clock = clock
        self._calls: dict[str, deque[float]] = {}
        self._last_sweep = clock()
        self._lock = threading.Lock()

    def _prune(self, key: str, now: float) -> deque[float]:
        calls = self._calls.get(key)
        if calls is None:
            return deque()
        cutoff = now - self.window_seconds
        while calls and calls[0] <= cutoff:
            calls.popleft()
        if not calls:
            del self._calls[key]
        return calls

    def _evict_idle(self, now: float) -> None:
        # Keys whose newest call left the window hold no quota state
        if now - self._last_sweep < self.window_seconds:
            return
        self._last_sweep = now
        cutoff = now - self.window_seconds
        idle = [key for key, calls in self._calls.items() if not calls or calls[-1] <= cutoff]
        for key in idle:
            del self._calls[key]
        if idle:
            logger.debug(f"Evicted {len(idle)} idle rate limit keys")

    def try_acquire(self, key: str | None) -> bool:
        """
        Admit a call for ``key`` if it has quota left, consuming one slot.

        Args:
            key: Caller identifier (None is treated as anonymous).

        Returns:
            True if admitted, False if rate limited.
        """
        key = key or ANONYMOUS_KEY
        with self._lock:
            now = self._clock()
            self._evict_idle(now)
            calls = self._prune(key, now)
            if len(calls) >= self.max_calls:
                logger.debug(f"Rate limit exceeded: key={key}, calls={len(calls)}")
                return False
            calls.append(now)
            self._calls[key] = calls
            return True

    def acquire(self, key: str | None) -> None:
        """
        Admit a call or raise.

        Raises:
            QuotaExceeded: If the key has no quota left in the window.
        """
        if not self.try_acquire(key):
            raise QuotaExceeded(
                key=key or ANONYMOUS_KEY,
                limit=self.max_calls,
                window_seconds=self.window_seconds,
                retry_after=self.retry_after(key),
            )

    def remaining(self, key: str | None) -> int:
        """Calls still available to ``key`` in the current window."""
        key = key or ANONYMOUS_KEY
        with self._lock:
            return max(0, self.max_calls - len(self._prune(key, self._clock())))

    def retry_after(self, key: str | None) -> float:
        """Seconds until ``key`` regains a slot, 0 if one is available."""
        key = key or ANONYMOUS_KEY
        with self._lock:
            now = self._clock()
            calls = self._prune(key, now)
            if len(calls) < self.max_calls:
                return 0.0
            return calls[0] + self.window_seconds - now

    @property
    def tracked_keys(self) -> int:
        """Number of keys currently holding call history."""
        with self._lock:
            return len(self._calls)

    def reset(self, key: str | None = None) -> None:
        """Forget the history of one key, or of all keys."""
        with self._lock:
            if key is None:
                self._calls.clear()
            else:
                self._calls.pop(key, None)
