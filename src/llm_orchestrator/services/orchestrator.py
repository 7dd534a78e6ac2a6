"""Orchestrator for cache-aware LLM generation.

This service coordinates the cache store (data access), the resilience
envelope (protected backend calls) and the metrics sink.

Request flow:
    1. Fingerprint the request and look it up in the cache
    2. Hit: return the cached completion, backend untouched
    3. Miss: call the backend through the resilience envelope
    4. Cache successful responses (first writer wins)
    5. Record hit/miss counters and backend latency
"""

import dataclasses
import logging
import threading
import time

from llm_orchestrator.config import Settings, settings
from llm_orchestrator.entities import (
    CacheEntryEntity,
    CacheStats,
    GenerationRequest,
    GenerationResult,
    GenerationStatus,
)
from llm_orchestrator.exceptions import CacheFailure
from llm_orchestrator.fingerprint import compute_fingerprint
from llm_orchestrator.metrics import (
    CACHE_ERRORS,
    CACHE_HITS,
    CACHE_MISSES,
    LLM_CALL_DURATION,
    InMemoryMetrics,
)
from llm_orchestrator.protocols import BackendClient, CacheStore, MetricsSink
from llm_orchestrator.resilience import ResilienceEnvelope

logger = logging.getLogger(__name__)

# Statuses decided before the backend is reached carry no latency
_FAST_FAIL_STATUSES = (GenerationStatus.RATE_LIMITED, GenerationStatus.SERVICE_UNAVAILABLE)


class LlmOrchestrator:
    """Cache-aware generation service.

    This service depends on PROTOCOLS, not concrete implementations:
    - CacheStore: can be Redis, in-memory, SQL, etc.
    - BackendClient: can be Ollama, a hosted API, a mock, etc.
    - MetricsSink: can be in-memory, Prometheus, StatsD, etc.

    Example:
        ```python
        from llm_orchestrator.repositories import OllamaBackendClient, RedisCacheRepository
        from llm_orchestrator.services import LlmOrchestrator

        orchestrator = LlmOrchestrator.create(
            cache_store=RedisCacheRepository.create(),
            backend=OllamaBackendClient.create(),
        )
        result = await orchestrator.generate(GenerationRequest(prompt="eggs, flour, milk"))
        ```
    """

    def __init__(
        self,
        cache_store: CacheStore,
        backend: BackendClient,
        envelope: ResilienceEnvelope,
        metrics: MetricsSink | None = None,
        ttl: int | None = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            cache_store: Cache storage backend (required).
            backend: LLM backend client (required).
            envelope: Resilience policies wrapping ``backend`` (required).
            metrics: Metrics sink. Defaults to a new InMemoryMetrics.
            ttl: Time-to-live for cache entries in seconds. Defaults to settings.
        """
        self._cache = cache_store
        self._backend = backend
        self._envelope = envelope
        self._metrics = metrics if metrics is not None else InMemoryMetrics()
        self._ttl = settings.cache_ttl if ttl is None else ttl
        # Hit/miss totals for cache_stats(), independent of the metrics sink
        self._hits = 0
        self._misses = 0
        self._counter_lock = threading.Lock()

    @classmethod
    def create(
        cls,
        cache_store: CacheStore,
        backend: BackendClient,
        metrics: MetricsSink | None = None,
        config: Settings | None = None,
    ) -> "LlmOrchestrator":
        """Factory method wiring the resilience envelope from settings.

        Args:
            cache_store: Cache storage backend (required).
            backend: LLM backend client (required).
            metrics: Metrics sink. If None, uses InMemoryMetrics.
            config: Settings to read policies and TTL from. If None, uses settings.

        Returns:
            Configured LlmOrchestrator
        """
        config = config or settings
        return cls(
            cache_store=cache_store,
            backend=backend,
            envelope=ResilienceEnvelope.from_settings(backend, config),
            metrics=metrics,
            ttl=config.cache_ttl,
        )

    def _count(self, hit: bool) -> None:
        with self._counter_lock:
            if hit:
                self._hits += 1
            else:
                self._misses += 1
        self._metrics.increment(CACHE_HITS if hit else CACHE_MISSES)

    def _lookup(self, fingerprint: str) -> CacheEntryEntity | None:
        try:
            return self._cache.lookup(fingerprint)
        except CacheFailure as e:
            # Degrade to a miss rather than failing the request
            self._metrics.increment(CACHE_ERRORS)
            logger.warning(f"Cache lookup failed, treating as miss: fingerprint={fingerprint}, error={e}")
            return None

    def _store(self, fingerprint: str, result: GenerationResult) -> None:
        try:
            inserted = self._cache.insert(
                fingerprint=fingerprint,
                response=result.content or "",
                model=result.model,
                tokens_used=result.tokens_used,
                ttl=self._ttl,
            )
        except CacheFailure as e:
            self._metrics.increment(CACHE_ERRORS)
            logger.warning(f"Cache write failed, response not cached: fingerprint={fingerprint}, error={e}")
            return

        if inserted:
            logger.info(f"Cached LLM response: fingerprint={fingerprint}, model={result.model}, ttl={self._ttl}s")
        else:
            logger.debug(f"Cache entry already present, kept existing: fingerprint={fingerprint}")

    async def generate(self, request: GenerationRequest) -> GenerationResult:
        """Generate a completion, serving it from the cache when possible.

        Args:
            request: The generation request

        Returns:
            GenerationResult. Expected failures (rate limiting, open circuit,
            backend errors) are reported through ``status``, never raised.
        """
        fingerprint = compute_fingerprint(request)
        logger.debug(
            f"LLM request: model={request.model}, prompt_length={len(request.prompt)}, "
            f"temperature={request.temperature}, caller={request.caller_id}"
        )

        entry = self._lookup(fingerprint)
        if entry is not None:
            self._count(hit=True)
            logger.info(
                f"Cache hit: fingerprint={fingerprint}, model={entry.model}, "
                f"age={(time.time() - entry.created_at) / 60:.0f}min"
            )
            return GenerationResult(
                content=entry.response,
                model=entry.model,
                tokens_used=entry.tokens_used,
                status=GenerationStatus.CACHE_HIT,
                latency_ms=0.0,
                cached=True,
                generated_at=entry.created_at,
            )

        self._count(hit=False)
        logger.info(f"Cache miss: calling LLM backend, model={request.model or self._backend.model_name}")

        start = time.perf_counter()
        result = await self._envelope.execute(request)
        latency_ms = (time.perf_counter() - start) * 1000

        if result.status in _FAST_FAIL_STATUSES:
            return dataclasses.replace(result, latency_ms=0.0, cached=False)

        self._metrics.record_timer(LLM_CALL_DURATION, latency_ms)
        result = dataclasses.replace(result, latency_ms=latency_ms, cached=False)

        if result.status == GenerationStatus.SUCCESS:
            self._store(fingerprint, result)
        else:
            logger.warning(
                f"Not caching failed LLM response: status={result.status.value}, error={result.error_message}"
            )

        logger.info(
            f"LLM generation complete: latency={latency_ms:.0f}ms, model={result.model}, "
            f"status={result.status.value}"
        )
        return result

    def cache_stats(self) -> CacheStats:
        """Get cache statistics.

        Returns:
            CacheStats with valid/total entries and process-wide hit/miss counts

        Raises:
            CacheFailure: If the cache store cannot be reached
        """
        valid, total = self._cache.stats()
        with self._counter_lock:
            hits, misses = self._hits, self._misses
        return CacheStats(valid_entries=valid, total_entries=total, hit_count=hits, miss_count=misses)

    def purge_expired(self) -> int:
        """Delete expired cache entries.

        Returns:
            Number of deleted entries

        Raises:
            CacheFailure: If the cache store cannot be reached
        """
        deleted = self._cache.purge_expired()
        if deleted > 0:
            logger.info(f"Cleaned up {deleted} expired cache entries")
        return deleted

    async def is_available(self) -> bool:
        """Check if the LLM backend is available (health check)."""
        return await self._backend.is_available()

    def is_cache_healthy(self) -> bool:
        """Check if the cache store is reachable."""
        return self._cache.health_check()

    @property
    def model_name(self) -> str:
        """Get the default model of the backend."""
        return self._backend.model_name

    @property
    def ttl(self) -> int:
        return self._ttl

    @property
    def backend(self) -> BackendClient:
        """Get the underlying backend client."""
        return self._backend

    @property
    def metrics(self) -> MetricsSink:
        """Get the metrics sink (for testing)."""
        return self._metrics

    @property
    def envelope(self) -> ResilienceEnvelope:
        """Get the resilience envelope (for testing)."""
        return self._envelope
