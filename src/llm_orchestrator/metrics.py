"""In-process metrics sink.

Process-wide counters and timers that are never reset per request.
"""

import threading
from dataclasses import dataclass

CACHE_HITS = "llm.cache.hits"
CACHE_MISSES = "llm.cache.misses"
CACHE_ERRORS = "llm.cache.errors"
LLM_CALL_DURATION = "llm.call.duration"


@dataclass
class TimerStats:
    """Aggregate of the measurements recorded for one timer."""

    count: int = 0
    total_ms: float = 0.0
    max_ms: float = 0.0

    @property
    def avg_ms(self) -> float:
        """Calculate average duration."""
        if self.count == 0:
            return 0.0
        return self.total_ms / self.count

    def record(self, duration_ms: float) -> None:
        self.count += 1
        self.total_ms += duration_ms
        self.max_ms = max(self.max_ms, duration_ms)


class InMemoryMetrics:
    """Thread-safe implementation of the MetricsSink protocol."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._counters: dict[str, int] = {}
        self._timers: dict[str, TimerStats] = {}

    def increment(self, name: str, value: int = 1) -> None:
        with self._lock:
            self._counters[name] = self._counters.get(name, 0) + value

    def record_timer(self, name: str, duration_ms: float) -> None:
        with self._lock:
            self._timers.setdefault(name, TimerStats()).record(duration_ms)

    def counter(self, name: str) -> int:
        """Current value of a counter (0 if never incremented)."""
        with self._lock:
            return self._counters.get(name, 0)

    def timer(self, name: str) -> TimerStats:
        """Snapshot of a timer."""
        with self._lock:
            stats = self._timers.get(name, TimerStats())
            return TimerStats(count=stats.count, total_ms=stats.total_ms, max_ms=stats.max_ms)

    def to_dict(self) -> dict[str, dict]:
        """Convert metrics to dictionary."""
        with self._lock:
            return {
                "counters": dict(self._counters),
                "timers": {
                    name: {
                        "count": stats.count,
                        "total_ms": stats.total_ms,
                        "avg_ms": stats.avg_ms,
                        "max_ms": stats.max_ms,
                    }
                    for name, stats in self._timers.items()
                },
            }
