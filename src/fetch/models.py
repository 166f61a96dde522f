"""Data models for the HTTP fetch layer."""

from enum import Enum
from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, Field

from src.fetch.constants import HTTP_STATUS_OK_MAX, HTTP_STATUS_OK_MIN


class FetchErrorClass(str, Enum):
    """Classification of fetch errors for metrics and retry decisions.

    - NETWORK_TIMEOUT: Request timed out
    - CONNECTION_ERROR: Could not establish connection
    - RESPONSE_SIZE_EXCEEDED: Response exceeded max size limit
    - HTTP_4XX: 4xx client error (except 429)
    - HTTP_5XX: 5xx server error
    - RATE_LIMITED: 429 Too Many Requests
    - INVALID_BODY: 2xx response whose body is not usable JSON or has
      no items in the expected shape
    - UNKNOWN: Unclassified error
    """

    NETWORK_TIMEOUT = "NETWORK_TIMEOUT"
    CONNECTION_ERROR = "CONNECTION_ERROR"
    RESPONSE_SIZE_EXCEEDED = "RESPONSE_SIZE_EXCEEDED"
    HTTP_4XX = "HTTP_4XX"
    HTTP_5XX = "HTTP_5XX"
    RATE_LIMITED = "RATE_LIMITED"
    INVALID_BODY = "INVALID_BODY"
    UNKNOWN = "UNKNOWN"


class FetchError(BaseModel):
    """Typed error from a fetch operation.

    Transient upstream failures travel as values, never as exceptions,
    so retry decisions and logging can inspect them.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    error_class: FetchErrorClass = Field(description="Classification of the error")
    message: Annotated[str, Field(min_length=1, description="Human-readable message")]
    status_code: int | None = Field(
        default=None, description="HTTP status code if available"
    )
    retry_after: int | None = Field(
        default=None, description="Retry-After seconds (for 429)"
    )


class FetchResult(BaseModel):
    """Result of a single fetch attempt.

    ``status_code`` is 0 when no response was received at all.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    status_code: int = Field(ge=0, le=599, description="HTTP status code")
    final_url: Annotated[
        str, Field(min_length=1, description="Final URL after redirects")
    ]
    body: Any = Field(default=None, description="Decoded JSON body")
    body_size: int = Field(default=0, ge=0, description="Body size in bytes")
    error: FetchError | None = Field(
        default=None, description="Error details if fetch failed"
    )

    @property
    def is_success(self) -> bool:
        """Check if the fetch was successful (2xx status, no error)."""
        return (
            self.error is None
            and HTTP_STATUS_OK_MIN <= self.status_code < HTTP_STATUS_OK_MAX
        )

    @classmethod
    def failed(cls, url: str, error: FetchError) -> "FetchResult":
        """Build a result for an attempt that produced no usable response."""
        return cls(
            status_code=error.status_code or 0,
            final_url=url,
            error=error,
        )


class PayloadValidationError(Exception):
    """Raised by a payload parser when a 2xx body has no usable items."""


class ResponseSizeExceededError(Exception):
    """Raised when response size exceeds the configured limit."""
