"""Cache entry domain entity."""

from dataclasses import dataclass


@dataclass(frozen=True)
class CacheEntryEntity:
    """Domain entity for a cached completion.

    This is an internal representation used by services and repositories.
    For API contracts, use the DTO classes from the dto package.

    Attributes:
        fingerprint: SHA-256 of the normalized request (primary key)
        response: The cached LLM response text
        model: Model that produced the response
        tokens_used: Tokens consumed by the original generation
        created_at: Creation time (Unix timestamp)
        expires_at: Expiration time (Unix timestamp)
    """

    fingerprint: str
    response: str
    model: str
    tokens_used: int | None
    created_at: float
    expires_at: float

    def is_valid(self, now: float) -> bool:
        """Return True while the entry has not expired."""
        return now < self.expires_at

    def to_dict(self) -> dict:
        return {
            "fingerprint": self.fingerprint,
            "response": self.response,
            "model": self.model,
            "tokens_used": self.tokens_used,
            "created_at": self.created_at,
            "expires_at": self.expires_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "CacheEntryEntity":
        return cls(
            fingerprint=data["fingerprint"],
            response=data["response"],
            model=data["model"],
            tokens_used=data.get("tokens_used"),
            created_at=float(data["created_at"]),
            expires_at=float(data["expires_at"]),
        )
