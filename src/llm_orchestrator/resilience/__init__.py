"""
Resilience policies for backend calls.

Composed by ResilienceEnvelope in the order:
    rate limiter -> circuit breaker -> retry -> BackendClient
"""

from .circuit_breaker import CircuitBreaker, CircuitSnapshot, CircuitState
from .envelope import ResilienceEnvelope
from .rate_limiter import SlidingWindowRateLimiter
from .retry import RetryPolicy, retry_async

__all__ = [
    "CircuitBreaker",
    "CircuitSnapshot",
    "CircuitState",
    "ResilienceEnvelope",
    "RetryPolicy",
    "SlidingWindowRateLimiter",
    "retry_async",
]
