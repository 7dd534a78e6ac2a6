"""LLM Orchestrator - cache-aware, rate-limited, circuit-broken LLM generation.

This package provides a layered architecture for LLM generation:

Layers:
    - protocols: Interface contracts (CacheStore, BackendClient, MetricsSink)
    - repositories: Data access implementations (Redis, in-memory, Ollama, mock)
    - resilience: Rate limiter, circuit breaker and retry policies
    - services: Business logic (LlmOrchestrator)
    - handlers: HTTP endpoint handlers
    - dto: Data transfer objects (API contracts)
    - entities: Domain models (internal)

Usage:
    ```python
    from llm_orchestrator import GenerationRequest, LlmOrchestrator
    from llm_orchestrator.repositories import OllamaBackendClient, RedisCacheRepository

    orchestrator = LlmOrchestrator.create(
        cache_store=RedisCacheRepository.create(),
        backend=OllamaBackendClient.create(),
    )
    result = await orchestrator.generate(GenerationRequest(prompt="eggs, flour, milk"))
    ```

For HTTP API:
    ```python
    from llm_orchestrator.api.app import app
    ```
"""

from llm_orchestrator.config import get_redis_client, settings
from llm_orchestrator.entities import (
    BackendResponse,
    CacheEntryEntity,
    CacheStats,
    GenerationRequest,
    GenerationResult,
    GenerationStatus,
)
from llm_orchestrator.exceptions import (
    BackendError,
    BackendRejection,
    BackendTransientFailure,
    BackendUnavailable,
    CacheFailure,
    OrchestratorError,
    QuotaExceeded,
)
from llm_orchestrator.fingerprint import compute_fingerprint
from llm_orchestrator.handlers import GenerationHandler
from llm_orchestrator.metrics import InMemoryMetrics
from llm_orchestrator.protocols import BackendClient, CacheStore, MetricsSink
from llm_orchestrator.repositories import (
    InMemoryCacheRepository,
    MockBackendClient,
    OllamaBackendClient,
    RedisCacheRepository,
)
from llm_orchestrator.resilience import (
    CircuitBreaker,
    ResilienceEnvelope,
    RetryPolicy,
    SlidingWindowRateLimiter,
)
from llm_orchestrator.services import LlmOrchestrator

__all__ = [
    # Configuration
    "settings",
    "get_redis_client",
    # Protocols (interfaces)
    "BackendClient",
    "CacheStore",
    "MetricsSink",
    # Services (business logic)
    "LlmOrchestrator",
    "compute_fingerprint",
    # Resilience
    "CircuitBreaker",
    "ResilienceEnvelope",
    "RetryPolicy",
    "SlidingWindowRateLimiter",
    # Handlers (HTTP)
    "GenerationHandler",
    # Repositories (data access)
    "InMemoryCacheRepository",
    "MockBackendClient",
    "OllamaBackendClient",
    "RedisCacheRepository",
    "InMemoryMetrics",
    # Entities (domain models)
    "BackendResponse",
    "CacheEntryEntity",
    "CacheStats",
    "GenerationRequest",
    "GenerationResult",
    "GenerationStatus",
    # Errors
    "OrchestratorError",
    "CacheFailure",
    "BackendError",
    "BackendTransientFailure",
    "BackendRejection",
    "QuotaExceeded",
    "BackendUnavailable",
]
