"""Protocol interfaces for swappable implementations.

This package contains protocol definitions using structural typing.
Protocols enable:
- Easy swapping of implementations (Redis → in-memory, Ollama → hosted API, etc.)
- Unit testing with fake implementations
- Clear separation of concerns
"""

from .backend_client import BackendClient
from .cache_store import CacheStore
from .metrics_sink import MetricsSink

__all__ = [
    "BackendClient",
    "CacheStore",
    "MetricsSink",
]
