"""HTTP handlers for generation and cache administration.

Handlers convert between DTOs (API contracts) and service calls.
They handle HTTP concerns like status codes, validation, and error handling.
"""

from fastapi import HTTPException, status

from llm_orchestrator.dto import (
    CacheStatsResponse,
    GenerateRequest,
    GenerateResponse,
    HealthCheckResponse,
    PurgeResponse,
)
from llm_orchestrator.entities import GenerationRequest, GenerationResult, GenerationStatus
from llm_orchestrator.exceptions import CacheFailure
from llm_orchestrator.services import LlmOrchestrator

HTTP_STATUS_BY_RESULT = {
    GenerationStatus.SUCCESS: status.HTTP_200_OK,
    GenerationStatus.CACHE_HIT: status.HTTP_200_OK,
    GenerationStatus.FAILED: status.HTTP_400_BAD_REQUEST,
    GenerationStatus.RATE_LIMITED: status.HTTP_429_TOO_MANY_REQUESTS,
    GenerationStatus.SERVICE_UNAVAILABLE: status.HTTP_503_SERVICE_UNAVAILABLE,
    GenerationStatus.ERROR: status.HTTP_502_BAD_GATEWAY,
}


class GenerationHandler:
    """HTTP handlers for orchestrator operations.

    This handler delegates business logic to LlmOrchestrator
    and handles HTTP-specific concerns like:
    - Converting entities to DTOs
    - Choosing status codes
    - Error handling and responses
    """

    def __init__(self, orchestrator: LlmOrchestrator) -> None:
        """Initialize the handler.

        Args:
            orchestrator: The orchestrator for business logic (required).
        """
        self._orchestrator = orchestrator

    @staticmethod
    def http_status(result: GenerationResult) -> int:
        """HTTP status code for a generation outcome."""
        return HTTP_STATUS_BY_RESULT[result.status]

    async def generate(self, request: GenerateRequest) -> tuple[GenerateResponse, int]:
        """Handle POST /generate requests.

        Args:
            request: The generate request DTO

        Returns:
            Tuple of the response DTO and the HTTP status code to send
        """
        result = await self._orchestrator.generate(
            GenerationRequest(
                prompt=request.prompt,
                model=request.model,
                temperature=request.temperature,
                max_tokens=request.max_tokens,
                caller_id=request.caller_id,
            )
        )

        response = GenerateResponse(
            content=result.content,
            model=result.model,
            tokens_used=result.tokens_used,
            status=result.status.value,
            error_message=result.error_message,
            latency_ms=result.latency_ms,
            cached=result.cached,
            generated_at=result.generated_at,
        )
        return response, self.http_status(result)

    async def get_stats(self) -> CacheStatsResponse:
        """Handle GET /admin/cache/stats requests.

        Raises:
            HTTPException: 503 if the cache store is unreachable
        """
        try:
            stats = self._orchestrator.cache_stats()
        except CacheFailure as e:
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail=f"Failed to get stats: {e}",
            ) from e

        return CacheStatsResponse(
            total_entries=stats.total_entries,
            active_entries=stats.valid_entries,
            expired_entries=stats.expired_entries,
            total_hits=stats.hit_count,
            total_misses=stats.miss_count,
            hit_rate=stats.hit_rate,
            ttl_seconds=self._orchestrator.ttl,
        )

    async def purge_expired(self) -> PurgeResponse:
        """Handle DELETE /admin/cache requests.

        Raises:
            HTTPException: 503 if the cache store is unreachable
        """
        try:
            deleted = self._orchestrator.purge_expired()
        except CacheFailure as e:
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail=f"Failed to purge cache: {e}",
            ) from e

        return PurgeResponse(
            success=True,
            deleted_count=deleted,
            message=f"Cleared {deleted} expired cache entries",
        )

    async def health_check(self) -> HealthCheckResponse:
        """Handle GET /health requests."""
        backend_available = await self._orchestrator.is_available()
        cache_healthy = self._orchestrator.is_cache_healthy()

        return HealthCheckResponse(
            status="healthy" if backend_available and cache_healthy else "unhealthy",
            backend_available=backend_available,
            cache_healthy=cache_healthy,
            model=self._orchestrator.model_name,
        )
