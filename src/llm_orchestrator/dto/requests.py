"""Request DTOs for API endpoints."""

from pydantic import BaseModel, Field


class GenerateRequest(BaseModel):
    """Request DTO for text generation.

    The handler will convert this to a GenerationRequest entity.
    """

    prompt: str = Field(..., description="The full prompt to send to the LLM", min_length=1)
    model: str | None = Field(None, description="Model name (e.g. 'mistral'), null = backend default")
    temperature: float = Field(
        0.7,
        description="Sampling temperature (0.0 = deterministic, 1.0 = creative)",
        ge=0.0,
        le=2.0,
    )
    max_tokens: int | None = Field(None, description="Maximum tokens to generate", gt=0)
    caller_id: str | None = Field(None, description="Caller identifier used for rate limiting")
