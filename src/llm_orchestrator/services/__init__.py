"""Service layer for business logic.

This layer contains the core business logic and orchestration.
Services depend on protocols (interfaces), not concrete implementations,
making them testable and flexible.

Architecture:
    Handler -> Service -> Repository
    (HTTP)  -> (Business) -> (Data Access)

Usage:
    ```python
    from llm_orchestrator.services import LlmOrchestrator

    # Using factory method (recommended)
    orchestrator = LlmOrchestrator.create(cache_store=repo, backend=client)

    # Or manual creation with explicit policies
    orchestrator = LlmOrchestrator(cache_store=repo, backend=client, envelope=envelope)
    ```
"""

from .orchestrator import LlmOrchestrator

__all__ = [
    "LlmOrchestrator",
]
