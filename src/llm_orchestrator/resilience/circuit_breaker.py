"""
Circuit breaker for the LLM backend.

Trips on the failure *ratio* over a count-based sliding window of recent
calls, rather than on consecutive failures, so a backend that fails every
other request is still detected.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from llm_orchestrator.exceptions import BackendUnavailable

logger = logging.getLogger(__name__)


class CircuitState(Enum):
    """Circuit breaker states."""
    CLOSED = "closed"      # Normal operation, calls pass through
    OPEN = "open"          # Backend deemed unhealthy, calls rejected
    HALF_OPEN = "half_open"  # Cooldown elapsed, trial calls allowed


@dataclass(frozen=True)
class CircuitSnapshot:
    """Point-in-time view of a circuit breaker."""
    state: CircuitState
    buffered_calls: int
    failed_calls: int
    failure_rate: float | None


class CircuitBreaker:
    """
    Failure-ratio circuit breaker.

    State Transitions:
    - CLOSED -> OPEN: at least ``minimum_calls`` outcomes are buffered and
      the failure ratio over the window is >= ``failure_rate_threshold``.
    - OPEN -> HALF_OPEN: ``open_timeout`` seconds after opening (evaluated
      lazily whenever the state is read).
    - HALF_OPEN -> CLOSED: a trial call succeeds.
    - HALF_OPEN -> OPEN: a trial call fails.

    Callers bracket each backend call with ``before_call()`` and exactly one
    of ``record_success()``, ``record_failure()`` or ``release()``, passing
    back the token ``before_call()`` returned. Every state transition starts
    a new generation; outcomes of calls admitted in an earlier generation are
    ignored, so a slow call admitted while CLOSED cannot decide a HALF_OPEN
    trial.

    Thread Safety:
        All state lives behind one lock; no I/O happens while it is held.
    """

    def __init__(
        self,
        failure_rate_threshold: float = 0.5,
        window_size: int = 10,
        minimum_calls: int = 5,
        open_timeout: float = 30.0,
        half_open_max_calls: int = 1,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """
        Initialize the circuit breaker.

        Args:
            failure_rate_threshold: Failure ratio (0-1] that opens the circuit.
            window_size: Number of most recent outcomes kept.
            minimum_calls: Outcomes required before the ratio is evaluated.
            open_timeout: Seconds to stay open before allowing trial calls.
            half_open_max_calls: Concurrent trial calls allowed when half-open.
            clock: Monotonic time source. Injectable for tests.
        """
        if not 0 < failure_rate_threshold <= 1:
            raise ValueError("failure_rate_threshold must be in (0, 1]")
        if not 1 <= minimum_calls <= window_size:
            raise ValueError("minimum_calls must be between 1 and window_size")
        if half_open_max_calls < 1:
            raise ValueError("half_open_max_calls must be at least 1")

        self.failure_rate_threshold = failure_rate_threshold
        self.window_size = window_size
        self.minimum_calls = minimum_calls
        self.open_timeout = open_timeout
        self.half_open_max_calls = half_open_max_calls
        self._clock = clock

        self._state = CircuitState.CLOSED
        self._window: deque[bool] = deque(maxlen=window_size)  # True = failure
        self._opened_at = 0.0
        self._half_open_in_flight = 0
        self._generation = 0
        self._lock = threading.Lock()

    def _maybe_transition_to_half_open(self) -> None:
        if self._state != CircuitState.OPEN:
            return
        elapsed = self._clock() - self._opened_at
        if elapsed >= self.open_timeout:
            logger.info(f"Circuit transitioning from OPEN to HALF_OPEN after {elapsed:.1f}s")
            self._state = CircuitState.HALF_OPEN
            self._half_open_in_flight = 0
            self._generation += 1

    def _set_state(self, new_state: CircuitState) -> None:
        old_state = self._state
        if old_state == new_state:
            return
        self._state = new_state
        self._half_open_in_flight = 0
        self._generation += 1
        if new_state == CircuitState.OPEN:
            self._opened_at = self._clock()
            logger.warning(f"Circuit state: {old_state.value} -> {new_state.value}")
        else:
            logger.info(f"Circuit state: {old_state.value} -> {new_state.value}")
        if new_state == CircuitState.CLOSED:
            self._window.clear()

    def _failure_rate(self) -> float | None:
        if len(self._window) < self.minimum_calls:
            return None
        return sum(self._window) / len(self._window)

    @property
    def state(self) -> CircuitState:
        """Get current circuit state."""
        with self._lock:
            self._maybe_transition_to_half_open()
            return self._state

    @property
    def failure_rate(self) -> float | None:
        """Failure ratio over the window, None until ``minimum_calls`` are buffered."""
        with self._lock:
            return self._failure_rate()

    def snapshot(self) -> CircuitSnapshot:
        with self._lock:
            self._maybe_transition_to_half_open()
            return CircuitSnapshot(
                state=self._state,
                buffered_calls=len(self._window),
                failed_calls=sum(self._window),
                failure_rate=self._failure_rate(),
            )

    def _is_stale(self, token: int) -> bool:
        if token != self._generation:
            logger.debug(f"Ignoring outcome from generation {token}, circuit is at {self._generation}")
            return True
        return False

    def before_call(self) -> int:
        """
        Ask permission to call the backend.

        Returns:
            Admission token to pass to the matching record/release call.

        Raises:
            BackendUnavailable: If the circuit is open, or half-open with all
                trial slots taken.
        """
        with self._lock:
            self._maybe_transition_to_half_open()

            if self._state == CircuitState.OPEN:
                remaining = self.open_timeout - (self._clock() - self._opened_at)
                raise BackendUnavailable(retry_after=remaining, failure_rate=self._failure_rate())

            if self._state == CircuitState.HALF_OPEN:
                if self._half_open_in_flight >= self.half_open_max_calls:
                    raise BackendUnavailable(retry_after=0.0)
                self._half_open_in_flight += 1

            return self._generation

    def record_success(self, token: int) -> None:
        """Record a successful backend call admitted with ``token``."""
        with self._lock:
            self._maybe_transition_to_half_open()
            if self._is_stale(token):
                return
            if self._state == CircuitState.HALF_OPEN:
                self._set_state(CircuitState.CLOSED)
            elif self._state == CircuitState.CLOSED:
                self._window.append(False)

    def record_failure(self, token: int) -> None:
        """Record a failed backend call admitted with ``token``."""
        with self._lock:
            self._maybe_transition_to_half_open()
            if self._is_stale(token):
                return
            if self._state == CircuitState.HALF_OPEN:
                # Any failure in half-open opens the circuit again
                self._set_state(CircuitState.OPEN)
            elif self._state == CircuitState.CLOSED:
                self._window.append(True)
                rate = self._failure_rate()
                if rate is not None and rate >= self.failure_rate_threshold:
                    logger.warning(
                        f"Failure rate {rate:.0%} over last {len(self._window)} calls "
                        f"reached threshold {self.failure_rate_threshold:.0%}"
                    )
                    self._set_state(CircuitState.OPEN)

    def release(self, token: int) -> None:
        """End an admitted call without counting it as success or failure."""
        with self._lock:
            self._maybe_transition_to_half_open()
            if self._is_stale(token):
                return
            if self._state == CircuitState.HALF_OPEN:
                self._half_open_in_flight = max(0, self._half_open_in_flight - 1)

    def reset(self) -> None:
        """Reset the circuit breaker to closed state."""
        with self._lock:
            self._set_state(CircuitState.CLOSED)
            self._window.clear()

    def force_open(self) -> None:
        """Force the circuit to open state (for testing/maintenance)."""
        with self._lock:
            self._set_state(CircuitState.OPEN)

    def is_available(self) -> bool:
        """Check if the circuit will accept requests."""
        return self.state != CircuitState.OPEN
