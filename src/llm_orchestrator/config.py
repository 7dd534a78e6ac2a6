import os
from dataclasses import dataclass
from functools import lru_cache

import redis
from dotenv import load_dotenv

load_dotenv()


@dataclass(frozen=True)
class Settings:
    """Application settings loaded from environment variables."""

    # Redis
    redis_url: str = os.getenv("REDIS_URL", "redis://localhost:6379")
    redis_password: str | None = os.getenv("REDIS_PASSWORD")

    # Cache
    cache_backend: str = os.getenv("CACHE_BACKEND", "redis")  # "redis" or "memory"
    cache_ttl: int = int(os.getenv("CACHE_TTL", "604800"))  # 7 days default
    cache_key_prefix: str = os.getenv("CACHE_KEY_PREFIX", "llm_cache")
    # Seconds between background purges in the API process, 0 disables
    cache_purge_interval: int = int(os.getenv("CACHE_PURGE_INTERVAL", "3600"))

    # LLM backend
    llm_backend: str = os.getenv("LLM_BACKEND", "ollama")  # "ollama" or "mock"
    ollama_base_url: str = os.getenv("OLLAMA_BASE_URL", "http://localhost:11434")
    ollama_model: str = os.getenv("OLLAMA_MODEL", "mistral")
    ollama_timeout: float = float(os.getenv("OLLAMA_TIMEOUT", "120"))

    # Rate limiter: calls per caller per rolling window
    rate_limit_max_calls: int = int(os.getenv("RATE_LIMIT_MAX_CALLS", "10"))
    rate_limit_window: float = float(os.getenv("RATE_LIMIT_WINDOW", "60"))

    # Circuit breaker
    circuit_failure_rate: float = float(os.getenv("CIRCUIT_FAILURE_RATE", "0.5"))
    circuit_window_size: int = int(os.getenv("CIRCUIT_WINDOW_SIZE", "10"))
    circuit_min_calls: int = int(os.getenv("CIRCUIT_MIN_CALLS", "5"))
    circuit_open_timeout: float = float(os.getenv("CIRCUIT_OPEN_TIMEOUT", "30"))
    circuit_half_open_calls: int = int(os.getenv("CIRCUIT_HALF_OPEN_CALLS", "1"))

    # Retry
    retry_max_attempts: int = int(os.getenv("RETRY_MAX_ATTEMPTS", "3"))
    retry_base_delay: float = float(os.getenv("RETRY_BASE_DELAY", "1.0"))
    retry_max_delay: float = float(os.getenv("RETRY_MAX_DELAY", "10.0"))
    retry_attempt_timeout: float = float(os.getenv("RETRY_ATTEMPT_TIMEOUT", "60"))

    # API
    api_host: str = os.getenv("API_HOST", "0.0.0.0")
    api_port: int = int(os.getenv("API_PORT", "8000"))
    api_reload: bool = os.getenv("API_RELOAD", "false").lower() == "true"
    log_level: str = os.getenv("LOG_LEVEL", "INFO").upper()

    def __post_init__(self) -> None:
        """Validate settings after initialization."""
        if self.cache_backend not in ("redis", "memory"):
            raise ValueError(f"CACHE_BACKEND must be 'redis' or 'memory', got {self.cache_backend!r}")

        if self.llm_backend not in ("ollama", "mock"):
            raise ValueError(f"LLM_BACKEND must be 'ollama' or 'mock', got {self.llm_backend!r}")

        if self.cache_ttl < 0:
            raise ValueError("CACHE_TTL must be non-negative")

        if not 0 < self.circuit_failure_rate <= 1:
            raise ValueError("CIRCUIT_FAILURE_RATE must be in (0, 1]")

        if self.circuit_min_calls > self.circuit_window_size:
            raise ValueError("CIRCUIT_MIN_CALLS cannot exceed CIRCUIT_WINDOW_SIZE")

        if self.rate_limit_max_calls < 1 or self.rate_limit_window <= 0:
            raise ValueError("RATE_LIMIT_MAX_CALLS and RATE_LIMIT_WINDOW must be positive")

        if self.retry_max_attempts < 1:
            raise ValueError("RETRY_MAX_ATTEMPTS must be at least 1")


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Global settings instance
settings = get_settings()


def get_redis_client() -> redis.Redis:
    """Create a Redis client instance."""
    return redis.from_url(
        settings.redis_url,
        password=settings.redis_password,
        decode_responses=True,
    )
