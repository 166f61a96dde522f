"""Unit tests for source error types."""

from src.sources.errors import (
    EnvelopeError,
    ErrorRecord,
    SourceError,
    SourceErrorClass,
)


class TestSourceError:
    """Tests for SourceError and ErrorRecord."""

    def test_carries_classification(self) -> None:
        """Test that the error keeps its class, source and details."""
        error = SourceError(
            SourceErrorClass.PARSE,
            "bad listing",
            source_id="reddit",
            details={"children": 0},
        )

        assert error.error_class == SourceErrorClass.PARSE
        assert error.source_id == "reddit"
        assert error.details == {"children": 0}
        assert str(error) == "bad listing"

    def test_envelope_error_is_proxy_class(self) -> None:
        """Test that relay envelope errors are classified as PROXY."""
        error = EnvelopeError("no contents", source_id="reddit")

        assert error.error_class == SourceErrorClass.PROXY
        assert isinstance(error, SourceError)

    def test_record_from_unexpected(self) -> None:
        """Test that leaked exceptions become INTERNAL records."""
        record = ErrorRecord.from_unexpected(KeyError("data"), "reddit")

        assert record.error_class == SourceErrorClass.INTERNAL
        assert record.message == "KeyError: 'data'"

    def test_record_from_unexpected_without_message(self) -> None:
        """Test that an empty exception message still yields a record."""
        record = ErrorRecord.from_unexpected(RuntimeError(), "reddit")

        assert record.message == "RuntimeError"
