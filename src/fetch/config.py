"""Configuration models for the HTTP fetch layer."""

from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, field_validator

from src.fetch.constants import (
    DEFAULT_MAX_RESPONSE_SIZE_BYTES,
    DEFAULT_TIMEOUT_SECONDS,
)


class FetchConfig(BaseModel):
    """Configuration for the HTTP fetch layer.

    Upstream JSON endpoints reject anonymous clients, so every request
    carries ``user_agent`` as its client identifier.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    user_agent: Annotated[str, Field(min_length=1, max_length=500)] = (
        "feed-aggregator/1.0"
    )
    timeout_seconds: Annotated[float, Field(gt=0, le=300.0)] = DEFAULT_TIMEOUT_SECONDS
    max_response_size_bytes: Annotated[int, Field(ge=1024, le=100 * 1024 * 1024)] = (
        DEFAULT_MAX_RESPONSE_SIZE_BYTES
    )
    default_headers: dict[str, str] = Field(
        default_factory=lambda: {"Accept": "application/json"}
    )

    @field_validator("default_headers")
    @classmethod
    def validate_no_auth_headers(cls, v: dict[str, str]) -> dict[str, str]:
        """Ensure no credentials are stored in config."""
        forbidden = {"authorization", "cookie", "x-api-key"}
        for key in v:
            if key.lower() in forbidden:
                msg = (
                    f"Header '{key}' must not be stored in config; "
                    "use environment variables"
                )
                raise ValueError(msg)
        return v
