"""Content fingerprint used as the cache key.

The normalized form is ``"<prompt>|<model>|<temperature>"`` where the prompt
is lowercased then trimmed, a missing model becomes ``default`` and the
temperature is rendered with exactly two decimals (half-up). Keys written by
existing deployments depend on this exact format.
"""

import hashlib
from decimal import ROUND_HALF_UP, Decimal

from llm_orchestrator.entities import GenerationRequest

DEFAULT_MODEL_TOKEN = "default"
FIELD_DELIMITER = "|"

_TWO_PLACES = Decimal("0.01")


def format_temperature(temperature: float) -> str:
    """Render a temperature with two decimals, rounding half-up.

    Rounds the shortest decimal representation of the float, so
    ``0.125`` becomes ``"0.13"`` rather than the binary-float ``"0.12"``.
    """
    return str(Decimal(repr(float(temperature))).quantize(_TWO_PLACES, rounding=ROUND_HALF_UP))


def normalize_request(request: GenerationRequest) -> str:
    """Build the normalized string that is hashed into the fingerprint."""
    return FIELD_DELIMITER.join(
        (
            request.prompt.lower().strip(),
            request.model if request.model is not None else DEFAULT_MODEL_TOKEN,
            format_temperature(request.temperature),
        )
    )


def compute_fingerprint(request: GenerationRequest) -> str:
    """Return the SHA-256 hex digest of the normalized request."""
    return hashlib.sha256(normalize_request(request).encode("utf-8")).hexdigest()
