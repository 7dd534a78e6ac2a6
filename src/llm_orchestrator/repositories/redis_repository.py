"""Redis implementation of CacheStore.

Each entry is a JSON document stored under ``<prefix>:<fingerprint>``. A
sorted set ``<prefix>:expiry`` scores every fingerprint by its expiration
time so that purges and statistics never need to scan the keyspace.

Entries carry no Redis-level TTL: expiry is evaluated lazily on read and
storage is reclaimed only by ``purge_expired``.
"""

import json
import logging
import time
from collections.abc import Callable

import redis

from llm_orchestrator.config import get_redis_client, settings
from llm_orchestrator.entities import CacheEntryEntity
from llm_orchestrator.exceptions import CacheFailure

logger = logging.getLogger(__name__)


class RedisCacheRepository:
    """Redis implementation using optimistic transactions.

    This class satisfies the CacheStore protocol through structural
    typing - no explicit inheritance needed.

    Inserts run inside a WATCH/MULTI transaction on the entry key, so
    two concurrent writers for the same fingerprint cannot both succeed:
    the loser sees a ``WatchError`` and skips its write.
    """

    def __init__(
        self,
        redis_client: redis.Redis | None = None,
        key_prefix: str | None = None,
        clock: Callable[[], float] = time.time,
        purge_max_retries: int = 5,
    ) -> None:
        """Initialize the Redis cache repository.

        Args:
            redis_client: Redis client instance. If None, creates default.
                Must be created with ``decode_responses=True``.
            key_prefix: Prefix for all keys. Defaults to settings.
            clock: Returns the current Unix time. Injectable for tests.
            purge_max_retries: Attempts before a contended purge gives up.
        """
        self._client = redis_client or get_redis_client()
        self._prefix = key_prefix or settings.cache_key_prefix
        self._expiry_key = f"{self._prefix}:expiry"
        self._clock = clock
        self._purge_max_retries = purge_max_retries

    @classmethod
    def create(cls, key_prefix: str | None = None) -> "RedisCacheRepository":
        """Factory method to create RedisCacheRepository with defaults.

        Args:
            key_prefix: Redis key prefix. If None, uses settings.

        Returns:
            Configured RedisCacheRepository
        """
        return cls(key_prefix=key_prefix)

    def _key(self, fingerprint: str) -> str:
        return f"{self._prefix}:{fingerprint}"

    def _decode(self, fingerprint: str, raw: str) -> CacheEntryEntity:
        try:
            return CacheEntryEntity.from_dict(json.loads(raw))
        except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            raise CacheFailure(f"Corrupt cache entry: {e}", fingerprint=fingerprint) from e

    def lookup(self, fingerprint: str) -> CacheEntryEntity | None:
        """Get the entry for a fingerprint if present and not expired.

        Args:
            fingerprint: The request fingerprint

        Returns:
            The valid entry, or None

        Raises:
            CacheFailure: If Redis is unreachable or the entry is corrupt
        """
        try:
            raw = self._client.get(self._key(fingerprint))
        except redis.RedisError as e:
            raise CacheFailure(f"Cache lookup failed: {e}", fingerprint=fingerprint) from e

        if raw is None:
            return None

        entry = self._decode(fingerprint, raw)
        if not entry.is_valid(self._clock()):
            logger.debug(f"Cache expired: fingerprint={fingerprint}, expires_at={entry.expires_at}")
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
        """Create an entry unless a valid one already exists.

        An expired entry that has not been purged yet is replaced.

        Args:
            fingerprint: The request fingerprint
            response: The generated text
            model: Model that produced the text
            tokens_used: Tokens consumed by the generation
            ttl: Time-to-live in seconds. Defaults to settings.

        Returns:
            True if this call created the entry, False if it was skipped

        Raises:
            CacheFailure: If Redis is unreachable
        """
        ttl = settings.cache_ttl if ttl is None else ttl
        if ttl < 0:
            raise ValueError("ttl must be non-negative")

        key = self._key(fingerprint)
        try:
            with self._client.pipeline() as pipe:
                pipe.watch(key)
                raw = pipe.get(key)
                now = self._clock()

                if raw is not None:
                    try:
                        existing = self._decode(fingerprint, raw)
                    except CacheFailure:
                        logger.warning(f"Replacing corrupt cache entry: fingerprint={fingerprint}")
                        existing = None
                    if existing is not None and existing.is_valid(now):
                        logger.debug(f"Cache entry already exists: fingerprint={fingerprint}")
                        return False

                entry = CacheEntryEntity(
                    fingerprint=fingerprint,
                    response=response,
                    model=model,
                    tokens_used=tokens_used,
                    created_at=now,
                    expires_at=now + ttl,
                )

                pipe.multi()
                pipe.set(key, json.dumps(entry.to_dict()))
                pipe.zadd(self._expiry_key, {fingerprint: entry.expires_at})
                pipe.execute()
        except redis.WatchError:
            logger.debug(f"Concurrent insert won the race: fingerprint={fingerprint}")
            return False
        except redis.RedisError as e:
            raise CacheFailure(f"Cache insert failed: {e}", fingerprint=fingerprint) from e

        return True

    def purge_expired(self) -> int:
        """Delete all entries with an expiration time at or before now.

        Returns:
            Number of entries deleted

        Raises:
            CacheFailure: If Redis is unreachable or the purge stays contended
        """
        for _ in range(self._purge_max_retries):
            try:
                with self._client.pipeline() as pipe:
                    pipe.watch(self._expiry_key)
                    expired = pipe.zrangebyscore(self._expiry_key, "-inf", self._clock())
                    if not expired:
                        return 0

                    pipe.multi()
                    pipe.delete(*[self._key(fp) for fp in expired])
                    pipe.zrem(self._expiry_key, *expired)
                    deleted, _ = pipe.execute()
                    return int(deleted)
            except redis.WatchError:
                # An insert touched the index; re-read the expired set
                continue
            except redis.RedisError as e:
                raise CacheFailure(f"Cache purge failed: {e}") from e

        raise CacheFailure(f"Cache purge aborted after {self._purge_max_retries} contended attempts")

    def stats(self) -> tuple[int, int]:
        """Count valid and total entries.

        Returns:
            Tuple (valid_entries, total_entries)
        """
        try:
            pipe = self._client.pipeline(transaction=False)
            pipe.zcount(self._expiry_key, f"({self._clock()!r}", "+inf")
            pipe.zcard(self._expiry_key)
            valid, total = pipe.execute()
        except redis.RedisError as e:
            raise CacheFailure(f"Cache stats failed: {e}") from e
        return int(valid), int(total)

    def health_check(self) -> bool:
        """Check if Redis is accessible.

        Returns:
            True if healthy, False otherwise
        """
        try:
            return bool(self._client.ping())
        except redis.RedisError as e:
            logger.warning(f"Redis health check failed: {e}")
            return False

    @property
    def client(self) -> redis.Redis:
        """Get the Redis client."""
        return self._client
