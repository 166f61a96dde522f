"""Error types for source adapters."""

from enum import Enum
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field


class SourceErrorClass(str, Enum):
    """Classification of source adapter errors.

    - FETCH: HTTP/network errors during fetch
    - PARSE: Response body could not be interpreted
    - SCHEMA: Data doesn't match the expected shape
    - PROXY: The relay request failed or returned an unusable envelope
    - TIMEOUT: The adapter did not settle before the aggregation deadline
    - INTERNAL: Unexpected exception inside the adapter
    """

    FETCH = "FETCH"
    PARSE = "PARSE"
    SCHEMA = "SCHEMA"
    PROXY = "PROXY"
    TIMEOUT = "TIMEOUT"
    INTERNAL = "INTERNAL"


class SourceError(Exception):
    """Base exception for source adapter errors.

    Provides structured error information for logging.
    """

    def __init__(
        self,
        error_class: SourceErrorClass,
        message: str,
        source_id: str | None = None,
        details: dict[str, str | int | bool | None] | None = None,
    ) -> None:
        """Initialize the source error.

        Args:
            error_class: Classification of the error.
            message: Human-readable error message.
            source_id: Identifier of the source that failed.
            details: Additional structured error details.
        """
        super().__init__(message)
        self.error_class = error_class
        self.message = message
        self.source_id = source_id
        self.details = details or {}


class EnvelopeError(SourceError):
    """Relay response could not be unwrapped into the upstream payload."""

    def __init__(self, message: str, source_id: str | None = None) -> None:
        """Initialize the envelope error.

        Args:
            message: Human-readable error message.
            source_id: Identifier of the source that failed.
        """
        super().__init__(
            error_class=SourceErrorClass.PROXY,
            message=message,
            source_id=source_id,
        )


class ErrorRecord(BaseModel):
    """Serializable error record attached to a failed source outcome."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    error_class: SourceErrorClass = Field(description="Error classification")
    message: Annotated[str, Field(min_length=1, description="Error message")]
    source_id: str | None = Field(default=None, description="Source identifier")
    details: dict[str, str | int | bool | None] = Field(
        default_factory=dict, description="Additional error details"
    )

    @classmethod
    def from_unexpected(cls, error: BaseException, source_id: str) -> "ErrorRecord":
        """Create an INTERNAL record for an exception an adapter leaked."""
        message = type(error).__name__
        if str(error):
            message = f"{message}: {error}"
        return cls(
            error_class=SourceErrorClass.INTERNAL,
            message=message,
            source_id=source_id,
        )
