"""In-process implementation of CacheStore.

Keeps entries in a dictionary guarded by a lock. Suitable for tests and
single-process deployments; entries do not survive a restart.
"""

import logging
import threading
import time
from collections.abc import Callable

from llm_orchestrator.config import settings
from llm_orchestrator.entities import CacheEntryEntity

logger = logging.getLogger(__name__)


class InMemoryCacheRepository:
    """Dictionary-backed cache store.

    This class satisfies the CacheStore protocol through structural
    typing - no explicit inheritance needed.
    """

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        """Initialize the repository.

        Args:
            clock: Returns the current Unix time. Injectable for tests.
        """
        self._clock = clock
        self._entries: dict[str, CacheEntryEntity] = {}
        self._lock = threading.Lock()

    @classmethod
    def create(cls) -> "InMemoryCacheRepository":
        """Factory method mirroring RedisCacheRepository.create()."""
        return cls()

    def lookup(self, fingerprint: str) -> CacheEntryEntity | None:
        with self._lock:
            entry = self._entries.get(fingerprint)
        if entry is None or not entry.is_valid(self._clock()):
            return None
        return entry

    def insert(
        self,
        fingerprint: str,
        response: str,
        model: str,
        tokens_used: int | None,
        ttl: int | None = None,
    ) -> bool:
        ttl = settings.cache_ttl if ttl is None else ttl
        if ttl < 0:
            raise ValueError("ttl must be non-negative")

        with self._lock:
            now = self._clock()
            existing = self._entries.get(fingerprint)
            if existing is not None and existing.is_valid(now):
                logger.debug(f"Cache entry already exists: fingerprint={fingerprint}")
                return False

            self._entries[fingerprint] = CacheEntryEntity(
                fingerprint=fingerprint,
                response=response,
                model=model,
                tokens_used=tokens_used,
                created_at=now,
                expires_at=now + ttl,
            )
        return True

    def purge_expired(self) -> int:
        with self._lock:
            now = self._clock()
            expired = [fp for fp, entry in self._entries.items() if entry.expires_at <= now]
            for fingerprint in expired:
                del self._entries[fingerprint]
        return len(expired)

    def stats(self) -> tuple[int, int]:
        with self._lock:
            now = self._clock()
            valid = sum(1 for entry in self._entries.values() if entry.is_valid(now))
            return valid, len(self._entries)

    def health_check(self) -> bool:
        return True
