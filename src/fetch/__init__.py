"""HTTP fetch layer with retries and failure isolation.

This module provides robust HTTP fetch operations with:
- Time-bounded JSON GET requests that never raise for upstream faults
- A reusable retry policy with exponential backoff
- Maximum response size enforcement
- Header and URL redaction for logging
- Metrics collection for observability
"""

from src.fetch.client import HttpFetcher
from src.fetch.config import FetchConfig
from src.fetch.metrics import FetchMetrics
from src.fetch.models import (
    FetchError,
    FetchErrorClass,
    FetchResult,
    PayloadValidationError,
    ResponseSizeExceededError,
)
from src.fetch.redact import redact_headers, redact_url_credentials
from src.fetch.retry import RetryOutcome, RetryPolicy, run_with_retry


__all__ = [
    # Client
    "HttpFetcher",
    # Config
    "FetchConfig",
    # Models
    "FetchResult",
    "FetchError",
    "FetchErrorClass",
    "PayloadValidationError",
    "ResponseSizeExceededError",
    # Retry
    "RetryPolicy",
    "RetryOutcome",
    "run_with_retry",
    # Metrics
    "FetchMetrics",
    # Redaction
    "redact_headers",
    "redact_url_credentials",
]
