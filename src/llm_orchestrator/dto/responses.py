"""Response DTOs for API endpoints."""

from pydantic import BaseModel, Field


class GenerateResponse(BaseModel):
    """Response DTO for text generation."""

    content: str | None = Field(None, description="The generated text (null on failure)")
    model: str = Field(..., description="Model that served the request")
    tokens_used: int | None = Field(None, description="Tokens consumed (input + output)")
    status: str = Field(
        ...,
        description="SUCCESS, CACHE_HIT, FAILED, RATE_LIMITED, SERVICE_UNAVAILABLE or ERROR",
    )
    error_message: str | None = Field(None, description="Failure detail, if any")
    latency_ms: float = Field(..., description="Latency attributed to the request in milliseconds", ge=0.0)
    cached: bool = Field(..., description="Whether the response was served from cache")
    generated_at: float = Field(..., description="When the completion was generated (Unix timestamp)")


class CacheStatsResponse(BaseModel):
    """Response DTO for cache statistics."""

    total_entries: int = Field(..., description="Total number of stored entries", ge=0)
    active_entries: int = Field(..., description="Entries that have not expired", ge=0)
    expired_entries: int = Field(..., description="Expired entries awaiting purge", ge=0)
    total_hits: int = Field(..., description="Cache hits since process start", ge=0)
    total_misses: int = Field(..., description="Cache misses since process start", ge=0)
    hit_rate: float = Field(..., description="hits / (hits + misses)", ge=0.0, le=1.0)
    ttl_seconds: int = Field(..., description="Time-to-live for new entries in seconds", ge=0)


class PurgeResponse(BaseModel):
    """Response DTO for expired-entry purge."""

    success: bool = Field(..., description="Whether the operation succeeded")
    deleted_count: int = Field(..., description="Number of entries deleted", ge=0)
    message: str = Field(..., description="Human-readable status message")


class HealthCheckResponse(BaseModel):
    """Response DTO for health check."""

    status: str = Field(..., description="Health status: 'healthy' or 'unhealthy'")
    backend_available: bool = Field(..., description="Whether the LLM backend is reachable")
    cache_healthy: bool = Field(..., description="Whether the cache store is reachable")
    model: str = Field(..., description="Default model of the LLM backend")
