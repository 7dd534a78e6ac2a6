"""
Shared fixtures for the orchestrator tests.
"""

from collections import deque

import pytest

from llm_orchestrator.entities import BackendResponse, GenerationStatus
from llm_orchestrator.repositories import InMemoryCacheRepository
from llm_orchestrator.resilience import (
    CircuitBreaker,
    ResilienceEnvelope,
    RetryPolicy,
    SlidingWindowRateLimiter,
)
from llm_orchestrator.services import LlmOrchestrator


class FakeClock:
    """Manually advanced time source."""

    def __init__(self, start: float = 1_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class ScriptedBackend:
    """BackendClient whose outcomes are queued by the test.

    Each queued item is either a BackendResponse to return or an exception
    to raise. When the queue is empty a default successful response is
    returned.
    """

    model_name = "scripted-model"

    def __init__(self, *outcomes) -> None:
        self._outcomes = deque(outcomes)
        self.calls: list[tuple] = []
        self.available = True

    @property
    def call_count(self) -> int:
        return len(self.calls)

    def queue(self, *outcomes) -> None:
        self._outcomes.extend(outcomes)

    async def generate(self, prompt, model, temperature, max_tokens):
        self.calls.append((prompt, model, temperature, max_tokens))
        if self._outcomes:
            outcome = self._outcomes.popleft()
            if isinstance(outcome, BaseException):
                raise outcome
            return outcome
        return BackendResponse(
            content=f"answer to: {prompt}",
            model=model or self.model_name,
            tokens_used=42,
            status=GenerationStatus.SUCCESS,
        )

    async def is_available(self) -> bool:
        return self.available

    def estimate_tokens(self, text: str) -> int:
        return len(text) // 4


async def no_sleep(_delay: float) -> None:
    """Stand-in for asyncio.sleep between retries."""


def make_envelope(
    backend,
    max_calls: int = 100,
    breaker: CircuitBreaker | None = None,
    max_attempts: int = 3,
) -> ResilienceEnvelope:
    return ResilienceEnvelope(
        backend=backend,
        rate_limiter=SlidingWindowRateLimiter(max_calls=max_calls, window_seconds=60),
        circuit_breaker=breaker or CircuitBreaker(),
        retry_policy=RetryPolicy(max_attempts=max_attempts, base_delay=0.0, max_delay=0.0, jitter=0.0),
        sleep=no_sleep,
    )


@pytest.fixture
def clock():
    """Fake clock starting at a fixed timestamp."""
    return FakeClock()


@pytest.fixture
def backend():
    """Backend that succeeds unless told otherwise."""
    return ScriptedBackend()


@pytest.fixture
def cache(clock):
    """In-memory cache driven by the fake clock."""
    return InMemoryCacheRepository(clock=clock)


@pytest.fixture
def orchestrator(cache, backend):
    """Orchestrator over the in-memory cache and the scripted backend."""
    return LlmOrchestrator(
        cache_store=cache,
        backend=backend,
        envelope=make_envelope(backend),
        ttl=3600,
    )
