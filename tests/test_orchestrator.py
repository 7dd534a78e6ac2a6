"""
Tests for the cache-aware orchestrator.
"""

import asyncio
from unittest.mock import MagicMock

import pytest
from conftest import ScriptedBackend, make_envelope

from llm_orchestrator.config import Settings
from llm_orchestrator.entities import BackendResponse, GenerationRequest, GenerationStatus
from llm_orchestrator.exceptions import BackendTransientFailure, CacheFailure
from llm_orchestrator.fingerprint import compute_fingerprint
from llm_orchestrator.metrics import (
    CACHE_ERRORS,
    CACHE_HITS,
    CACHE_MISSES,
    LLM_CALL_DURATION,
    InMemoryMetrics,
)
from llm_orchestrator.repositories import InMemoryCacheRepository, MockBackendClient
from llm_orchestrator.resilience import CircuitBreaker
from llm_orchestrator.services import LlmOrchestrator

RECIPE = GenerationRequest(prompt="eggs, flour, milk", model="mistral", temperature=0.7)


@pytest.mark.asyncio
async def test_miss_then_hit(orchestrator, backend, clock):
    """The second identical request is served from cache without a backend call."""
    first = await orchestrator.generate(RECIPE)
    second = await orchestrator.generate(RECIPE)

    assert first.status == GenerationStatus.SUCCESS
    assert first.cached is False
    assert second.status == GenerationStatus.CACHE_HIT
    assert second.cached is True
    assert second.latency_ms == 0.0
    assert second.content == first.content
    assert second.tokens_used == first.tokens_used
    assert second.generated_at == clock.now
    assert backend.call_count == 1


@pytest.mark.asyncio
async def test_normalized_prompt_hits_cache(orchestrator, backend):
    await orchestrator.generate(RECIPE)
    result = await orchestrator.generate(
        GenerationRequest(prompt="  Eggs, FLOUR, milk ", model="mistral", temperature=0.7)
    )

    assert result.status == GenerationStatus.CACHE_HIT
    assert backend.call_count == 1


@pytest.mark.asyncio
async def test_different_temperature_misses(orchestrator, backend):
    await orchestrator.generate(RECIPE)
    result = await orchestrator.generate(
        GenerationRequest(prompt="eggs, flour, milk", model="mistral", temperature=0.2)
    )

    assert result.status == GenerationStatus.SUCCESS
    assert backend.call_count == 2


@pytest.mark.asyncio
async def test_entry_expires_after_ttl(orchestrator, backend, clock):
    await orchestrator.generate(RECIPE)
    clock.advance(3600)

    result = await orchestrator.generate(RECIPE)

    assert result.status == GenerationStatus.SUCCESS
    assert backend.call_count == 2


@pytest.mark.asyncio
async def test_failures_are_not_cached(cache, clock):
    backend = ScriptedBackend(*[BackendTransientFailure("down")] * 3)
    orchestrator = LlmOrchestrator(cache_store=cache, backend=backend, envelope=make_envelope(backend), ttl=60)

    failed = await orchestrator.generate(RECIPE)
    assert failed.status == GenerationStatus.ERROR
    assert cache.lookup(compute_fingerprint(RECIPE)) is None

    recovered = await orchestrator.generate(RECIPE)
    assert recovered.status == GenerationStatus.SUCCESS
    assert backend.call_count == 4


@pytest.mark.asyncio
async def test_rate_limited_has_zero_latency(cache):
    backend = ScriptedBackend()
    orchestrator = LlmOrchestrator(
        cache_store=cache, backend=backend, envelope=make_envelope(backend, max_calls=2), ttl=60
    )

    results = [
        await orchestrator.generate(GenerationRequest(prompt=f"dish {i}", caller_id="alice")) for i in range(3)
    ]

    assert [r.status for r in results] == [
        GenerationStatus.SUCCESS,
        GenerationStatus.SUCCESS,
        GenerationStatus.RATE_LIMITED,
    ]
    assert results[2].latency_ms == 0.0
    assert backend.call_count == 2


@pytest.mark.asyncio
async def test_fast_failures_are_not_timed(cache):
    """Calls stopped before the backend do not land in the backend-latency timer."""
    backend = ScriptedBackend()
    breaker = CircuitBreaker()
    orchestrator = LlmOrchestrator(
        cache_store=cache,
        backend=backend,
        envelope=make_envelope(backend, max_calls=1, breaker=breaker),
        ttl=60,
    )

    await orchestrator.generate(GenerationRequest(prompt="one", caller_id="alice"))
    limited = await orchestrator.generate(GenerationRequest(prompt="two", caller_id="alice"))
    breaker.force_open()
    unavailable = await orchestrator.generate(GenerationRequest(prompt="three", caller_id="bob"))

    assert limited.status == GenerationStatus.RATE_LIMITED
    assert unavailable.status == GenerationStatus.SERVICE_UNAVAILABLE
    assert backend.call_count == 1
    assert orchestrator.metrics.timer(LLM_CALL_DURATION).count == 1
    assert orchestrator.metrics.counter(CACHE_MISSES) == 3


@pytest.mark.asyncio
async def test_cache_hits_bypass_rate_limit(cache):
    """Cached answers are served even when the caller has no quota left."""
    backend = ScriptedBackend()
    orchestrator = LlmOrchestrator(
        cache_store=cache, backend=backend, envelope=make_envelope(backend, max_calls=1), ttl=60
    )
    request = GenerationRequest(prompt="soup", caller_id="alice")

    await orchestrator.generate(request)
    result = await orchestrator.generate(request)

    assert result.status == GenerationStatus.CACHE_HIT


@pytest.mark.asyncio
async def test_open_circuit_reports_service_unavailable(cache):
    backend = ScriptedBackend()
    breaker = CircuitBreaker()
    breaker.force_open()
    orchestrator = LlmOrchestrator(
        cache_store=cache, backend=backend, envelope=make_envelope(backend, breaker=breaker), ttl=60
    )

    result = await orchestrator.generate(RECIPE)

    assert result.status == GenerationStatus.SERVICE_UNAVAILABLE
    assert result.latency_ms == 0.0
    assert backend.call_count == 0


@pytest.mark.asyncio
async def test_lookup_failure_degrades_to_miss(backend):
    cache = MagicMock()
    cache.lookup.side_effect = CacheFailure("redis down")
    cache.insert.return_value = True
    metrics = InMemoryMetrics()
    orchestrator = LlmOrchestrator(
        cache_store=cache, backend=backend, envelope=make_envelope(backend), metrics=metrics, ttl=60
    )

    result = await orchestrator.generate(RECIPE)

    assert result.status == GenerationStatus.SUCCESS
    assert backend.call_count == 1
    assert metrics.counter(CACHE_ERRORS) == 1
    assert metrics.counter(CACHE_MISSES) == 1


@pytest.mark.asyncio
async def test_insert_failure_still_returns_success(backend):
    cache = MagicMock()
    cache.lookup.return_value = None
    cache.insert.side_effect = CacheFailure("redis down")
    metrics = InMemoryMetrics()
    orchestrator = LlmOrchestrator(
        cache_store=cache, backend=backend, envelope=make_envelope(backend), metrics=metrics, ttl=60
    )

    result = await orchestrator.generate(RECIPE)

    assert result.status == GenerationStatus.SUCCESS
    assert result.content is not None
    assert metrics.counter(CACHE_ERRORS) == 1


@pytest.mark.asyncio
async def test_success_is_stored_with_backend_model_and_ttl(backend):
    backend.queue(BackendResponse(content="crepes", model="mistral:7b", tokens_used=9))
    cache = MagicMock()
    cache.lookup.return_value = None
    orchestrator = LlmOrchestrator(cache_store=cache, backend=backend, envelope=make_envelope(backend), ttl=120)

    await orchestrator.generate(RECIPE)

    cache.insert.assert_called_once_with(
        fingerprint=compute_fingerprint(RECIPE),
        response="crepes",
        model="mistral:7b",
        tokens_used=9,
        ttl=120,
    )


@pytest.mark.asyncio
async def test_metrics_counters_and_timer(orchestrator):
    await orchestrator.generate(RECIPE)
    await orchestrator.generate(RECIPE)
    await orchestrator.generate(RECIPE)

    metrics = orchestrator.metrics
    assert metrics.counter(CACHE_HITS) == 2
    assert metrics.counter(CACHE_MISSES) == 1
    # Only misses reach the backend and get timed
    assert metrics.timer(LLM_CALL_DURATION).count == 1


@pytest.mark.asyncio
async def test_cache_stats(orchestrator, clock):
    await orchestrator.generate(RECIPE)
    await orchestrator.generate(RECIPE)
    await orchestrator.generate(GenerationRequest(prompt="other"))
    clock.advance(3600)

    stats = orchestrator.cache_stats()

    assert stats.total_entries == 2
    assert stats.valid_entries == 0
    assert stats.expired_entries == 2
    assert stats.hit_count == 1
    assert stats.miss_count == 2
    assert stats.hit_rate == pytest.approx(1 / 3)


@pytest.mark.asyncio
async def test_purge_expired(orchestrator, clock):
    await orchestrator.generate(RECIPE)
    clock.advance(3600)

    assert orchestrator.purge_expired() == 1
    assert orchestrator.cache_stats().total_entries == 0


@pytest.mark.asyncio
async def test_health(orchestrator, backend):
    assert await orchestrator.is_available() is True
    assert orchestrator.is_cache_healthy() is True

    backend.available = False
    assert await orchestrator.is_available() is False


@pytest.mark.asyncio
async def test_concurrent_identical_requests_store_one_entry(cache):
    """Racing misses may each call the backend, but only one entry is kept."""
    backend = MockBackendClient(delay=0.01)
    orchestrator = LlmOrchestrator(cache_store=cache, backend=backend, envelope=make_envelope(backend), ttl=60)

    results = await asyncio.gather(*[orchestrator.generate(RECIPE) for _ in range(5)])

    assert all(r.status == GenerationStatus.SUCCESS for r in results)
    assert cache.stats() == (1, 1)


@pytest.mark.asyncio
async def test_end_to_end_with_mock_backend():
    """Miss then hit through the factory-built orchestrator."""
    backend = MockBackendClient()
    orchestrator = LlmOrchestrator.create(
        cache_store=InMemoryCacheRepository(),
        backend=backend,
        config=Settings(cache_ttl=600),
    )

    first = await orchestrator.generate(RECIPE)
    second = await orchestrator.generate(RECIPE)

    assert first.status == GenerationStatus.SUCCESS
    assert first.model == "mock-model"
    assert "Mock Recipe" in first.content
    assert second.status == GenerationStatus.CACHE_HIT
    assert backend.call_count == 1
    assert orchestrator.ttl == 600
