"""
Resilience envelope around the Backend Client.

Applies three policies in a fixed order: rate limiter, then circuit
breaker, then retry. Each one that stops a call produces its own status:

- RATE_LIMITED: the caller is over quota (backend and breaker untouched)
- SERVICE_UNAVAILABLE: the circuit is open
- ERROR: transient failures persisted after all retries
- FAILED: the backend rejected the request (not retried)
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from llm_orchestrator.config import Settings
from llm_orchestrator.entities import (
    BackendResponse,
    GenerationRequest,
    GenerationResult,
    GenerationStatus,
)
from llm_orchestrator.exceptions import (
    BackendRejection,
    BackendTransientFailure,
    BackendUnavailable,
    QuotaExceeded,
)
from llm_orchestrator.protocols import BackendClient
from llm_orchestrator.resilience.circuit_breaker import CircuitBreaker
from llm_orchestrator.resilience.rate_limiter import SlidingWindowRateLimiter
from llm_orchestrator.resilience.retry import RetryPolicy, retry_async

logger = logging.getLogger(__name__)

RATE_LIMITED_MESSAGE = "Too many requests. Please try again later."
UNAVAILABLE_MESSAGE = "Generation service is temporarily unavailable. Please try again in a few minutes."


class ResilienceEnvelope:
    """Protected invocation of a BackendClient.

    Example:
        ```python
        envelope = ResilienceEnvelope(
            backend=OllamaBackendClient.create(),
            rate_limiter=SlidingWindowRateLimiter(max_calls=10, window_seconds=60),
            circuit_breaker=CircuitBreaker(),
            retry_policy=RetryPolicy(max_attempts=3),
        )
        result = await envelope.execute(GenerationRequest(prompt="eggs, flour, milk"))
        ```
    """

    def __init__(
        self,
        backend: BackendClient,
        rate_limiter: SlidingWindowRateLimiter,
        circuit_breaker: CircuitBreaker,
        retry_policy: RetryPolicy,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._backend = backend
        self._rate_limiter = rate_limiter
        self._breaker = circuit_breaker
        self._retry_policy = retry_policy
        self._sleep = sleep

    @classmethod
    def from_settings(cls, backend: BackendClient, settings: Settings) -> "ResilienceEnvelope":
        """Build an envelope with every policy configured from settings."""
        return cls(
            backend=backend,
            rate_limiter=SlidingWindowRateLimiter(
                max_calls=settings.rate_limit_max_calls,
                window_seconds=settings.rate_limit_window,
            ),
            circuit_breaker=CircuitBreaker(
                failure_rate_threshold=settings.circuit_failure_rate,
                window_size=settings.circuit_window_size,
                minimum_calls=settings.circuit_min_calls,
                open_timeout=settings.circuit_open_timeout,
                half_open_max_calls=settings.circuit_half_open_calls,
            ),
            retry_policy=RetryPolicy(
                max_attempts=settings.retry_max_attempts,
                base_delay=settings.retry_base_delay,
                max_delay=settings.retry_max_delay,
                attempt_timeout=settings.retry_attempt_timeout,
            ),
        )

    @property
    def rate_limiter(self) -> SlidingWindowRateLimiter:
        return self._rate_limiter

    @property
    def circuit_breaker(self) -> CircuitBreaker:
        return self._breaker

    def _result(
        self,
        request: GenerationRequest,
        status: GenerationStatus,
        error_message: str,
    ) -> GenerationResult:
        return GenerationResult(
            content=None,
            model=request.model or self._backend.model_name,
            status=status,
            error_message=error_message,
        )

    async def _call_backend(self, request: GenerationRequest) -> BackendResponse:
        return await self._backend.generate(
            request.prompt,
            request.model,
            request.temperature,
            request.max_tokens,
        )

    async def execute(self, request: GenerationRequest) -> GenerationResult:
        """Run one protected backend call.

        Never raises for rate limiting, open circuits or backend failures;
        each is reported through the result status.
        """
        try:
            self._rate_limiter.acquire(request.caller_id)
        except QuotaExceeded as e:
            logger.warning(f"Rate limit exceeded: {e}")
            return self._result(request, GenerationStatus.RATE_LIMITED, RATE_LIMITED_MESSAGE)

        try:
            token = self._breaker.before_call()
        except BackendUnavailable as e:
            logger.error(f"Circuit breaker open - LLM unavailable: {e}")
            return self._result(request, GenerationStatus.SERVICE_UNAVAILABLE, UNAVAILABLE_MESSAGE)

        try:
            response = await retry_async(
                self._call_backend,
                request,
                policy=self._retry_policy,
                sleep=self._sleep,
            )
        except BackendTransientFailure as e:
            self._breaker.record_failure(token)
            logger.error(f"LLM call failed after retries: {e}")
            return self._result(
                request,
                GenerationStatus.ERROR,
                f"Failed to generate response after retries: {e}",
            )
        except BackendRejection as e:
            self._breaker.release(token)
            logger.warning(f"LLM rejected request: {e}")
            return self._result(request, GenerationStatus.FAILED, str(e))
        except asyncio.CancelledError:
            self._breaker.release(token)
            raise
        except Exception as e:
            self._breaker.record_failure(token)
            logger.exception(f"Unexpected error from LLM backend: {e}")
            return self._result(request, GenerationStatus.ERROR, f"Unexpected backend error: {e}")

        if response.status != GenerationStatus.SUCCESS:
            self._breaker.release(token)
            status = response.status if response.status == GenerationStatus.ERROR else GenerationStatus.FAILED
            logger.warning(f"LLM returned non-success: status={response.status.value}, error={response.error_message}")
            return GenerationResult(
                content=response.content,
                model=response.model,
                tokens_used=response.tokens_used,
                status=status,
                error_message=response.error_message or "Backend returned a non-success status",
            )

        self._breaker.record_success(token)
        return GenerationResult(
            content=response.content,
            model=response.model,
            tokens_used=response.tokens_used,
            status=GenerationStatus.SUCCESS,
        )
