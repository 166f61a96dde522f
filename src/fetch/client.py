"""HTTP client for upstream JSON endpoints.

``HttpFetcher.get_json`` turns every outcome of a GET, including
timeouts, refused connections, throttling and oversize or non-JSON
bodies, into a ``FetchResult``. Callers branch on ``result.error``;
nothing upstream-related is raised.
"""

import json
import time
from datetime import UTC, datetime
from email.utils import parsedate_to_datetime
from types import TracebackType

import httpx
import structlog

from src.fetch.config import FetchConfig
from src.fetch.constants import (
    DEFAULT_CHUNK_SIZE,
    HTTP_STATUS_BAD_REQUEST,
    HTTP_STATUS_OK_MAX,
    HTTP_STATUS_OK_MIN,
    HTTP_STATUS_SERVER_ERROR_MAX,
    HTTP_STATUS_SERVER_ERROR_MIN,
    HTTP_STATUS_TOO_MANY_REQUESTS,
)
from src.fetch.metrics import FetchMetrics
from src.fetch.models import (
    FetchError,
    FetchErrorClass,
    FetchResult,
    ResponseSizeExceededError,
)
from src.fetch.redact import redact_headers, redact_url_credentials


logger = structlog.get_logger()

# Transport exceptions in match order (subclasses before httpx.HTTPError)
_TRANSPORT_ERRORS: tuple[tuple[type[httpx.HTTPError], FetchErrorClass, str], ...] = (
    (httpx.TimeoutException, FetchErrorClass.NETWORK_TIMEOUT, "Timed out"),
    (httpx.ConnectError, FetchErrorClass.CONNECTION_ERROR, "Could not connect"),
    (httpx.HTTPError, FetchErrorClass.UNKNOWN, "Transport error"),
)


def parse_retry_after(value: str | None, now: datetime | None = None) -> int | None:
    """Read a Retry-After header as whole seconds.

    Accepts delta-seconds or an HTTP date; past dates give 0.

    Args:
        value: Raw header value.
        now: Reference time for HTTP dates.

    Returns:
        Seconds to wait, or None when absent or unreadable.
    """
    if not value:
        return None
    value = value.strip()
    if value.isdigit():
        return int(value)
    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=UTC)
    remaining = when - (now or datetime.now(UTC))
    return max(0, int(remaining.total_seconds()))


def classify_status(status_code: int, headers: httpx.Headers) -> FetchError | None:
    """Map a non-2xx status to a FetchError (None for 2xx)."""
    if HTTP_STATUS_OK_MIN <= status_code < HTTP_STATUS_OK_MAX:
        return None

    if status_code == HTTP_STATUS_TOO_MANY_REQUESTS:
        return FetchError(
            error_class=FetchErrorClass.RATE_LIMITED,
            message="Upstream is throttling (429)",
            status_code=status_code,
            retry_after=parse_retry_after(headers.get("retry-after")),
        )

    if HTTP_STATUS_BAD_REQUEST <= status_code < HTTP_STATUS_SERVER_ERROR_MIN:
        error_class = FetchErrorClass.HTTP_4XX
    elif HTTP_STATUS_SERVER_ERROR_MIN <= status_code < HTTP_STATUS_SERVER_ERROR_MAX:
        error_class = FetchErrorClass.HTTP_5XX
    else:
        # 1xx, or a 3xx left after following redirects
        error_class = FetchErrorClass.UNKNOWN

    return FetchError(
        error_class=error_class,
        message=f"Upstream answered {status_code}",
        status_code=status_code,
    )


class HttpFetcher:
    """Shared JSON GET client for all source adapters.

    Wraps one ``httpx.Client`` (thread-safe, so the aggregator's workers
    share its connection pool). Every request sends the configured
    User-Agent and is cut off at ``max_response_size_bytes``.
    """

    def __init__(
        self,
        config: FetchConfig,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """Initialize the fetcher.

        Args:
            config: Fetch configuration.
            transport: Optional transport (tests pass ``httpx.MockTransport``).
        """
        self._config = config
        self._metrics = FetchMetrics.get_instance()
        self._client = httpx.Client(
            timeout=config.timeout_seconds,
            follow_redirects=True,
            transport=transport,
        )
        self._log = logger.bind(component="fetch")

    @property
    def config(self) -> FetchConfig:
        """Get the fetch configuration."""
        return self._config

    def close(self) -> None:
        """Release pooled connections."""
        self._client.close()

    def __enter__(self) -> "HttpFetcher":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()

    def get_json(
        self,
        url: str,
        source_id: str,
        extra_headers: dict[str, str] | None = None,
        timeout: float | None = None,
    ) -> FetchResult:
        """GET ``url`` and decode the body as JSON.

        Args:
            url: Absolute URL.
            source_id: Source the request is made for (logs and metrics).
            extra_headers: Headers added to the defaults.
            timeout: Per-request timeout in seconds (config default if None).

        Returns:
            FetchResult carrying the decoded body or a typed error.
        """
        started_ns = time.perf_counter_ns()
        headers = {
            "User-Agent": self._config.user_agent,
            **self._config.default_headers,
            **(extra_headers or {}),
        }
        log = self._log.bind(source_id=source_id, url=redact_url_credentials(url))
        log.debug("fetch_started", headers=redact_headers(headers))

        result = self._request(url, headers, timeout or self._config.timeout_seconds)

        elapsed_ms = (time.perf_counter_ns() - started_ns) / 1_000_000
        self._metrics.record_attempt(source_id, elapsed_ms)
        if result.error:
            self._metrics.record_failure(result.error.error_class)

        log.info(
            "fetch_complete",
            status_code=result.status_code,
            bytes=result.body_size,
            duration_ms=round(elapsed_ms, 2),
            error_class=result.error.error_class.value if result.error else None,
        )
        return result

    def _request(
        self, url: str, headers: dict[str, str], timeout: float
    ) -> FetchResult:
        """Perform the GET and classify whatever happened."""
        try:
            with self._client.stream(
                "GET", url, headers=headers, timeout=timeout
            ) as response:
                body = self._read_capped(response)
                self._metrics.record_response(response.status_code, len(body))

                error = classify_status(response.status_code, response.headers)
                if error is None:
                    return self._decode(response, body)
                return FetchResult(
                    status_code=response.status_code,
                    final_url=str(response.url),
                    body_size=len(body),
                    error=error,
                )
        except ResponseSizeExceededError as e:
            return FetchResult.failed(
                url,
                FetchError(
                    error_class=FetchErrorClass.RESPONSE_SIZE_EXCEEDED,
                    message=str(e),
                ),
            )
        except httpx.HTTPError as e:
            for exc_type, error_class, label in _TRANSPORT_ERRORS:
                if isinstance(e, exc_type):
                    break
            return FetchResult.failed(
                url,
                FetchError(error_class=error_class, message=f"{label}: {e!r}"),
            )

    def _decode(self, response: httpx.Response, body: bytes) -> FetchResult:
        """Decode a 2xx body; a non-JSON body is INVALID_BODY."""
        try:
            decoded = json.loads(body) if body else None
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            return FetchResult(
                status_code=response.status_code,
                final_url=str(response.url),
                body_size=len(body),
                error=FetchError(
                    error_class=FetchErrorClass.INVALID_BODY,
                    message=f"Body is not JSON: {e}",
                    status_code=response.status_code,
                ),
            )
        return FetchResult(
            status_code=response.status_code,
            final_url=str(response.url),
            body=decoded,
            body_size=len(body),
        )

    def _read_capped(self, response: httpx.Response) -> bytes:
        """Read the streamed body, refusing anything over the size cap.

        Raises:
            ResponseSizeExceededError: If Content-Length or the bytes
                actually read exceed the cap.
        """
        cap = self._config.max_response_size_bytes

        declared = response.headers.get("content-length", "")
        if declared.isdigit() and int(declared) > cap:
            msg = f"Declared body of {declared} bytes exceeds cap of {cap}"
            raise ResponseSizeExceededError(msg)

        chunks: list[bytes] = []
        received = 0
        for chunk in response.iter_bytes(chunk_size=DEFAULT_CHUNK_SIZE):
            received += len(chunk)
            if received > cap:
                msg = f"Body exceeded cap of {cap} bytes after {received} bytes"
                raise ResponseSizeExceededError(msg)
            chunks.append(chunk)
        return b"".join(chunks)
