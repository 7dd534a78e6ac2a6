#!/usr/bin/env python3
"""
Demo script for the LLM orchestrator.

Runs against the in-memory cache and the mock backend, so neither Redis
nor Ollama is needed.
"""

import asyncio

from llm_orchestrator import (
    CircuitBreaker,
    GenerationRequest,
    InMemoryCacheRepository,
    LlmOrchestrator,
    MockBackendClient,
    ResilienceEnvelope,
    RetryPolicy,
    SlidingWindowRateLimiter,
    compute_fingerprint,
)


def print_section(title: str) -> None:
    """Print a section header."""
    print("\n" + "=" * 70)
    print(f"  {title}")
    print("=" * 70)


def build_orchestrator(backend: MockBackendClient, max_calls: int = 10) -> LlmOrchestrator:
    envelope = ResilienceEnvelope(
        backend=backend,
        rate_limiter=SlidingWindowRateLimiter(max_calls=max_calls, window_seconds=60),
        circuit_breaker=CircuitBreaker(),
        retry_policy=RetryPolicy(max_attempts=3, base_delay=0.1, max_delay=1.0),
    )
    return LlmOrchestrator(
        cache_store=InMemoryCacheRepository(),
        backend=backend,
        envelope=envelope,
    )


async def demo_cache_hit() -> None:
    """Demonstrate miss-then-hit for an identical request."""
    print_section("Cache Miss, then Cache Hit")

    backend = MockBackendClient(delay=0.2)
    orchestrator = build_orchestrator(backend)
    request = GenerationRequest(prompt="eggs, flour, milk", model="mistral", temperature=0.7)

    print(f"\n🔑 Fingerprint: {compute_fingerprint(request)}")

    for attempt in (1, 2):
        result = await orchestrator.generate(request)
        print(
            f"  Call {attempt}: status={result.status.value:<9} cached={result.cached!s:<5} "
            f"latency={result.latency_ms:7.1f}ms backend_calls={backend.call_count}"
        )

    # Normalization: case and surrounding whitespace do not matter
    variant = GenerationRequest(prompt="  EGGS, Flour, MILK ", model="mistral", temperature=0.7)
    result = await orchestrator.generate(variant)
    print(f"  Variant '{variant.prompt}': status={result.status.value}, backend_calls={backend.call_count}")

    stats = orchestrator.cache_stats()
    print(f"\n📊 Stats: valid={stats.valid_entries}, total={stats.total_entries}, hit_rate={stats.hit_rate:.0%}")


async def demo_rate_limit() -> None:
    """Demonstrate per-caller rate limiting."""
    print_section("Rate Limiting (3 calls per minute)")

    backend = MockBackendClient()
    orchestrator = build_orchestrator(backend, max_calls=3)

    for i in range(5):
        result = await orchestrator.generate(
            GenerationRequest(prompt=f"recipe #{i}", caller_id="demo-user")
        )
        print(f"  Request {i}: {result.status.value}")


async def main() -> None:
    """Run all demos."""
    print("\n🚀 LLM Orchestrator Demo")
    print("=" * 70)

    await demo_cache_hit()
    await demo_rate_limit()

    print("\n" + "=" * 70)
    print("✅ Demo completed successfully!")
    print("=" * 70)


if __name__ == "__main__":
    asyncio.run(main())
