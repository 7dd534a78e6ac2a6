"""Metrics sink protocol.

Accepts named counters and timers. There is no schema beyond a name and a
numeric value, so adapters for Prometheus, StatsD or OpenTelemetry only need
these two methods.
"""

from typing import Protocol, runtime_checkable


@runtime_checkable
class MetricsSink(Protocol):
    """Protocol for metrics backends."""

    def increment(self, name: str, value: int = 1) -> None:
        """Add ``value`` to the counter ``name``."""
        ...

    def record_timer(self, name: str, duration_ms: float) -> None:
        """Record one duration measurement for the timer ``name``."""
        ...
