"""Data Transfer Objects for API contracts.

These Pydantic models define the external API contract.
They are used for request/response validation and serialization.

Internal domain logic should use entities from the entities package.
"""

from .requests import GenerateRequest
from .responses import (
    CacheStatsResponse,
    GenerateResponse,
    HealthCheckResponse,
    PurgeResponse,
)

__all__ = [
    "GenerateRequest",
    "GenerateResponse",
    "CacheStatsResponse",
    "PurgeResponse",
    "HealthCheckResponse",
]
