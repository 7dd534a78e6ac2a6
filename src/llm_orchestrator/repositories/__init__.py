"""Repository layer for data access.

This layer abstracts external dependencies (Redis, LLM backends)
behind protocol-based interfaces. This enables:
- Easy swapping of implementations (Redis → in-memory, Ollama → mock, etc.)
- Unit testing with fake implementations
- Clear separation of concerns

The repositories are protocol-based (structural typing), not inheritance-based.
Any class implementing the required methods will satisfy the protocol.
"""

from llm_orchestrator.protocols import BackendClient, CacheStore

from .memory_repository import InMemoryCacheRepository
from .mock_client import MockBackendClient
from .ollama_client import OllamaBackendClient
from .redis_repository import RedisCacheRepository

__all__ = [
    "BackendClient",
    "CacheStore",
    "InMemoryCacheRepository",
    "MockBackendClient",
    "OllamaBackendClient",
    "RedisCacheRepository",
]
