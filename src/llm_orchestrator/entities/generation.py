"""Generation request/result domain entities."""

import time
from dataclasses import dataclass, field
from enum import Enum


class GenerationStatus(str, Enum):
    """Terminal status of a single generation attempt."""

    SUCCESS = "SUCCESS"
    CACHE_HIT = "CACHE_HIT"
    FAILED = "FAILED"
    RATE_LIMITED = "RATE_LIMITED"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"
    ERROR = "ERROR"


@dataclass(frozen=True)
class GenerationRequest:
    """An inbound generation request.

    Attributes:
        prompt: The full prompt text
        model: Model identifier (None = backend default)
        temperature: Sampling temperature (0.0 = deterministic)
        max_tokens: Optional upper bound on generated tokens
        caller_id: Caller identifier for rate limiting and logging only.
            It never takes part in the fingerprint.
    """

    prompt: str
    model: str | None = None
    temperature: float = 0.7
    max_tokens: int | None = None
    caller_id: str | None = None


@dataclass(frozen=True)
class BackendResponse:
    """Raw outcome of one Backend Client call."""

    content: str | None
    model: str
    tokens_used: int | None = None
    status: GenerationStatus = GenerationStatus.SUCCESS
    error_message: str | None = None


@dataclass(frozen=True)
class GenerationResult:
    """Outcome returned to the caller for one request.

    Attributes:
        content: Generated text (None on failure)
        model: Model that actually served the request
        tokens_used: Tokens consumed
        status: Terminal status of the attempt
        error_message: Failure detail, if any
        latency_ms: Wall-clock latency attributed to the request
        cached: True when served from the cache
        generated_at: Unix timestamp of the original generation
    """

    content: str | None
    model: str
    status: GenerationStatus
    tokens_used: int | None = None
    error_message: str | None = None
    latency_ms: float = 0.0
    cached: bool = False
    generated_at: float = field(default_factory=time.time)

    @property
    def is_success(self) -> bool:
        return self.status in (GenerationStatus.SUCCESS, GenerationStatus.CACHE_HIT)


@dataclass(frozen=True)
class CacheStats:
    """Aggregate cache statistics for administrative reporting."""

    valid_entries: int
    total_entries: int
    hit_count: int
    miss_count: int

    @property
    def expired_entries(self) -> int:
        return self.total_entries - self.valid_entries

    @property
    def hit_rate(self) -> float:
        total = self.hit_count + self.miss_count
        if total == 0:
            return 0.0
        return self.hit_count / total
