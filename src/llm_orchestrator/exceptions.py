"""Exception hierarchy for the orchestrator.

Repositories and backend clients raise these; the resilience envelope and
the orchestrator translate them into ``GenerationResult`` statuses so that
callers of ``generate()`` never see them.
"""

from __future__ import annotations


class OrchestratorError(Exception):
    """Base class for all orchestrator errors."""


class CacheFailure(OrchestratorError):
    """Cache storage is unreachable or returned corrupt data."""

    def __init__(self, message: str, fingerprint: str | None = None) -> None:
        self.fingerprint = fingerprint
        super().__init__(message)


class BackendError(OrchestratorError):
    """Base class for failures of the LLM backend call."""


class BackendTransientFailure(BackendError):
    """Network error, timeout or server-side failure. Safe to retry."""


class BackendRejection(BackendError):
    """The backend answered but refused the request. Never retried."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)


class QuotaExceeded(OrchestratorError):
    """The caller exceeded its rate limit quota."""

    def __init__(self, key: str, limit: int, window_seconds: float, retry_after: float) -> None:
        self.key = key
        self.limit = limit
        self.window_seconds = window_seconds
        self.retry_after = retry_after
        super().__init__(
            f"Rate limit exceeded for '{key}': {limit} calls per {window_seconds:g}s "
            f"(retry after {retry_after:.1f}s)"
        )


class BackendUnavailable(OrchestratorError):
    """The circuit breaker is open and the backend is not being called."""

    def __init__(self, retry_after: float, failure_rate: float | None = None) -> None:
        self.retry_after = retry_after
        self.failure_rate = failure_rate
        super().__init__(f"Circuit open, retry after {max(retry_after, 0.0):.1f}s")
