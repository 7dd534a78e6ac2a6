"""Ollama-based backend client.

Uses Ollama's local API to generate completions.

Requirements:
    - Ollama installed: https://ollama.com
    - Model pulled: `ollama pull mistral`
    - Ollama running: `ollama serve` (usually runs automatically)

Endpoints used:
- POST /api/generate (non-streaming generation)
- GET /api/tags (health check)
"""

import logging
import time

import httpx

from llm_orchestrator.config import settings
from llm_orchestrator.entities import BackendResponse, GenerationStatus
from llm_orchestrator.exceptions import BackendRejection, BackendTransientFailure

logger = logging.getLogger(__name__)

# 429 means the backend is shedding load; worth another attempt
RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})


class OllamaBackendClient:
    """Ollama-based implementation of BackendClient protocol.

    This class satisfies the BackendClient protocol through structural
    typing - no explicit inheritance needed.

    Example:
        ```python
        client = OllamaBackendClient.create(model_name="mistral")
        response = await client.generate("eggs, flour, milk", None, 0.7, None)
        print(response.content)
        ```
    """

    def __init__(
        self,
        model_name: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the Ollama backend client.

        Args:
            model_name: Default model. Defaults to settings.ollama_model.
            base_url: Ollama API base URL. Defaults to settings.ollama_base_url.
            timeout: Request timeout in seconds. Defaults to settings.ollama_timeout.
            transport: Optional httpx transport (used by tests).
        """
        self._model_name = model_name or settings.ollama_model
        self._base_url = (base_url or settings.ollama_base_url).rstrip("/")
        self._timeout = timeout or settings.ollama_timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    def client(self) -> httpx.AsyncClient:
        """Lazy-load the async HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                timeout=self._timeout,
                limits=httpx.Limits(max_connections=100, max_keepalive_connections=20),
                transport=self._transport,
            )
        return self._client

    @classmethod
    def create(
        cls,
        model_name: str | None = None,
        base_url: str | None = None,
    ) -> "OllamaBackendClient":
        """Factory method to create OllamaBackendClient with defaults.

        Args:
            model_name: Model name. If None, uses settings.
            base_url: Ollama API URL. If None, uses settings.

        Returns:
            Configured OllamaBackendClient
        """
        return cls(model_name=model_name, base_url=base_url)

    @property
    def model_name(self) -> str:
        """Get the default model name (e.g., "mistral")."""
        return self._model_name

    async def generate(
        self,
        prompt: str,
        model: str | None,
        temperature: float,
        max_tokens: int | None,
    ) -> BackendResponse:
        """Generate a completion.

        Args:
            prompt: The prompt text
            model: Model name, or None for the default model
            temperature: Sampling temperature
            max_tokens: Optional bound, sent as ``num_predict``

        Returns:
            BackendResponse with status SUCCESS

        Raises:
            BackendTransientFailure: On timeouts, connection errors, 429 and 5xx
            BackendRejection: On other 4xx responses or a malformed body
        """
        options: dict[str, float | int] = {"temperature": temperature}
        if max_tokens is not None:
            options["num_predict"] = max_tokens

        payload = {
            "model": model or self._model_name,
            "prompt": prompt,
            "stream": False,
            "options": options,
        }

        logger.debug(f"Sending request to Ollama: model={payload['model']}, prompt_length={len(prompt)}")
        start_time = time.perf_counter()

        try:
            response = await self.client.post("/api/generate", json=payload)
            response.raise_for_status()
        except httpx.TimeoutException as e:
            raise BackendTransientFailure(f"Ollama request timed out: {e}") from e
        except httpx.HTTPStatusError as e:
            code = e.response.status_code
            detail = e.response.text[:200]
            if code in RETRYABLE_STATUS_CODES:
                raise BackendTransientFailure(f"Ollama returned {code}: {detail}") from e
            if code == 404:
                detail += f"\n  → Model not found? Try: ollama pull {payload['model']}"
            raise BackendRejection(f"Ollama rejected request ({code}): {detail}", status_code=code) from e
        except httpx.TransportError as e:
            error_msg = f"Ollama API error: {e}"
            if "connection refused" in str(e).lower():
                error_msg += "\n  → Is Ollama running? Try: ollama serve"
            raise BackendTransientFailure(error_msg) from e

        try:
            data = response.json()
            content = data["response"]
        except (ValueError, KeyError) as e:
            raise BackendRejection(f"Unexpected response format from Ollama: {e}") from e

        # Ollama reports exact counts when it has them
        if "prompt_eval_count" in data or "eval_count" in data:
            tokens_used = int(data.get("prompt_eval_count", 0)) + int(data.get("eval_count", 0))
        else:
            tokens_used = self.estimate_tokens(prompt + content)

        latency_ms = (time.perf_counter() - start_time) * 1000
        logger.info(f"Ollama generation successful: latency={latency_ms:.0f}ms, response_length={len(content)}")

        return BackendResponse(
            content=content,
            model=data.get("model", payload["model"]),
            tokens_used=tokens_used,
            status=GenerationStatus.SUCCESS,
        )

    async def is_available(self) -> bool:
        """Check if Ollama is reachable.

        Returns:
            True if GET /api/tags answers 200, False otherwise
        """
        try:
            response = await self.client.get("/api/tags")
            return response.status_code == 200
        except httpx.HTTPError as e:
            logger.warning(f"Ollama health check failed: {e}")
            return False

    def estimate_tokens(self, text: str) -> int:
        """Rough estimation: ~4 characters per token."""
        return len(text) // 4

    async def close(self) -> None:
        """Close the async HTTP client.

        Should be called when shutting down the application.
        """
        if self._client is not None:
            await self._client.aclose()
            self._client = None
