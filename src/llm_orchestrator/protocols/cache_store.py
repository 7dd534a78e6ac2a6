"""Cache storage protocol.

Defines the interface for any content-addressable store that can hold
completions keyed by request fingerprint.

Implementations can include:
- Redis (default)
- In-process dictionary (tests, single-process deployments)
- Any SQL database with a unique constraint on the fingerprint
"""

from typing import Protocol, runtime_checkable

from llm_orchestrator.entities import CacheEntryEntity


@runtime_checkable
class CacheStore(Protocol):
    """Protocol for cache storage backends.

    Similar to Go's interface pattern - any type that implements these
    methods satisfies the protocol, no explicit inheritance needed.

    Implementations raise ``CacheFailure`` when the storage itself is
    unreachable or returns corrupt data.

    Example:
        ```python
        from llm_orchestrator.protocols import CacheStore

        # Type check passes for any matching implementation
        repo: CacheStore = RedisCacheRepository.create()
        repo: CacheStore = InMemoryCacheRepository()
        ```
    """

    def lookup(self, fingerprint: str) -> CacheEntryEntity | None:
        """Return the entry for a fingerprint if it exists and is still valid.

        Expired entries are reported as absent but are not deleted.

        Args:
            fingerprint: The request fingerprint

        Returns:
            The valid entry, or None
        """
        ...

    def insert(
        self,
        fingerprint: str,
        response: str,
        model: str,
        tokens_used: int | None,
        ttl: int,
    ) -> bool:
        """Atomically create an entry unless a valid one already exists.

        A concurrent writer that got there first wins: the existing entry is
        left untouched and no error is raised.

        Args:
            fingerprint: The request fingerprint
            response: The generated text
            model: Model that produced the text
            tokens_used: Tokens consumed by the generation
            ttl: Time-to-live in seconds

        Returns:
            True if this call created the entry, False if it was skipped
        """
        ...

    def purge_expired(self) -> int:
        """Delete every entry whose expiration time is at or before now.

        Returns:
            Number of entries deleted
        """
        ...

    def stats(self) -> tuple[int, int]:
        """Count entries.

        Returns:
            Tuple (valid_entries, total_entries), evaluated at call time
        """
        ...

    def health_check(self) -> bool:
        """Check if the storage is accessible.

        Returns:
            True if healthy, False otherwise
        """
        ...
