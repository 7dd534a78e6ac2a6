"""Deterministic backend client for local development.

Returns a fixed JSON recipe document derived from the prompt, so the whole
request path can be exercised without a running Ollama.
"""

import asyncio
import json

from llm_orchestrator.entities import BackendResponse, GenerationStatus


class MockBackendClient:
    """Mock implementation of BackendClient protocol.

    Attributes:
        call_count: Number of ``generate`` calls received
        available: Value reported by ``is_available``
    """

    MODEL_NAME = "mock-model"

    def __init__(self, delay: float = 0.0) -> None:
        """Initialize the mock client.

        Args:
            delay: Seconds to sleep per generation, to mimic inference time.
        """
        self._delay = delay
        self.call_count = 0
        self.available = True

    @property
    def model_name(self) -> str:
        return self.MODEL_NAME

    async def generate(
        self,
        prompt: str,
        model: str | None,
        temperature: float,
        max_tokens: int | None,
    ) -> BackendResponse:
        self.call_count += 1
        if self._delay:
            await asyncio.sleep(self._delay)

        content = json.dumps(
            {
                "title": "Mock Recipe",
                "description": f"Test recipe using {prompt[:50]}",
                "prepTime": 15,
                "cookTime": 30,
                "difficulty": "easy",
                "instructions": ["Prepare ingredients", "Cook", "Serve"],
                "tags": ["Test", "Mock"],
            }
        )
        return BackendResponse(
            content=content,
            model=self.MODEL_NAME,
            tokens_used=self.estimate_tokens(content),
            status=GenerationStatus.SUCCESS,
        )

    async def is_available(self) -> bool:
        return self.available

    def estimate_tokens(self, text: str) -> int:
        return len(text) // 4
