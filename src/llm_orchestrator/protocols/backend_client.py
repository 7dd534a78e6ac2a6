"""LLM backend client protocol.

Defines the interface for any text-generation backend.

Implementations can include:
- Ollama (local, default)
- Mock backend (deterministic, for development and tests)
- OpenAI / Anthropic style hosted APIs
"""

from typing import Protocol, runtime_checkable

from llm_orchestrator.entities import BackendResponse


@runtime_checkable
class BackendClient(Protocol):
    """Protocol for LLM backends.

    Error contract for ``generate``:
    - raise ``BackendTransientFailure`` for network errors, timeouts and
      server-side failures (these are retried)
    - raise ``BackendRejection`` or return a non-SUCCESS ``BackendResponse``
      when the backend refuses the request (never retried)
    """

    @property
    def model_name(self) -> str:
        """Return the default model this client uses."""
        ...

    async def generate(
        self,
        prompt: str,
        model: str | None,
        temperature: float,
        max_tokens: int | None,
    ) -> BackendResponse:
        """Generate text for a prompt.

        Args:
            prompt: The prompt text
            model: Model name, or None for the client default
            temperature: Sampling temperature
            max_tokens: Optional generation bound

        Returns:
            The backend response
        """
        ...

    async def is_available(self) -> bool:
        """Check if the backend is reachable and healthy."""
        ...

    def estimate_tokens(self, text: str) -> int:
        """Approximate the token count of a text."""
        ...
