"""Reusable retry policy with exponential backoff.

Every network adapter drives its attempts through ``run_with_retry``
instead of hand-writing nested loops: the policy decides how many
attempts and how long to wait, the caller supplies the attempt and a
parser that turns a 2xx response into a value (or rejects it).
"""

import random
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Annotated, Generic, TypeVar

import structlog
from pydantic import BaseModel, ConfigDict, Field

from src.fetch.metrics import FetchMetrics
from src.fetch.models import (
    FetchError,
    FetchErrorClass,
    FetchResult,
    PayloadValidationError,
)


logger = structlog.get_logger()

T = TypeVar("T")

_NON_RETRYABLE = frozenset({FetchErrorClass.RESPONSE_SIZE_EXCEEDED})


class RetryPolicy(BaseModel):
    """Configuration for retry behavior.

    ``max_attempts`` counts every try including the first one.
    Backoff: delay = base_delay_ms * (exponential_base ^ attempt), capped
    at ``max_delay_ms``; no delay follows the final attempt.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    max_attempts: Annotated[int, Field(ge=1, le=10)] = 2
    base_delay_ms: Annotated[int, Field(ge=0, le=60000)] = 500
    max_delay_ms: Annotated[int, Field(ge=0, le=300000)] = 8000
    exponential_base: Annotated[float, Field(ge=1.0, le=5.0)] = 2.0
    jitter_factor: Annotated[float, Field(ge=0.0, le=1.0)] = 0.0

    def has_attempts_left(self, attempt: int) -> bool:
        """Check whether another attempt follows ``attempt`` (0-indexed)."""
        return attempt + 1 < self.max_attempts

    def should_retry(self, error: FetchError, attempt: int) -> bool:
        """Determine if a failed attempt should be retried.

        Upstream feeds answer blocks and throttling with 403/429 as often
        as with 5xx, so every class except oversize bodies is retried.

        Args:
            error: The error that occurred.
            attempt: Current attempt number (0-indexed).

        Returns:
            True if the request should be retried.
        """
        if not self.has_attempts_left(attempt):
            return False
        return error.error_class not in _NON_RETRYABLE

    def get_delay_ms(self, attempt: int, retry_after: int | None = None) -> int:
        """Calculate delay before the next retry attempt.

        Args:
            attempt: Attempt that just failed (0-indexed).
            retry_after: Server-provided Retry-After seconds, if any.

        Returns:
            Delay in milliseconds.
        """
        delay = self.base_delay_ms * (self.exponential_base**attempt)
        if retry_after and retry_after > 0:
            delay = max(delay, retry_after * 1000)
        delay = min(delay, self.max_delay_ms)

        jitter = delay * self.jitter_factor * random.random()  # noqa: S311
        return int(delay + jitter)


@dataclass(frozen=True)
class RetryOutcome(Generic[T]):
    """Result of a retried operation."""

    succeeded: bool
    attempts: int
    value: T | None = None
    last_error: FetchError | None = None


def run_with_retry(
    attempt_fn: Callable[[], FetchResult],
    parse: Callable[[FetchResult], T],
    policy: RetryPolicy,
    *,
    sleep: Callable[[float], None] = time.sleep,
    log: structlog.stdlib.BoundLogger | None = None,
) -> RetryOutcome[T]:
    """Run ``attempt_fn`` until ``parse`` accepts a result or attempts run out.

    An attempt counts as successful only when the fetch has no error AND
    ``parse`` returns without raising ``PayloadValidationError``; a 2xx
    response with an empty or malformed body is a failed attempt.

    Args:
        attempt_fn: Performs one time-bounded request.
        parse: Converts a successful result into a value.
        policy: Retry policy.
        sleep: Blocking sleep, injectable for tests.
        log: Bound logger.

    Returns:
        RetryOutcome with the parsed value or the last error.
    """
    log = log or logger
    metrics = FetchMetrics.get_instance()
    last_error: FetchError | None = None

    for attempt in range(policy.max_attempts):
        result = attempt_fn()

        if result.error is None:
            try:
                value = parse(result)
            except PayloadValidationError as e:
                last_error = FetchError(
                    error_class=FetchErrorClass.INVALID_BODY,
                    message=str(e) or "Response body has no usable items",
                    status_code=result.status_code,
                )
            else:
                return RetryOutcome(
                    succeeded=True,
                    attempts=attempt + 1,
                    value=value,
                )
        else:
            last_error = result.error

        log.info(
            "attempt_failed",
            attempt=attempt,
            error_class=last_error.error_class.value,
            status_code=last_error.status_code,
        )

        if not policy.should_retry(last_error, attempt):
            return RetryOutcome(
                succeeded=False,
                attempts=attempt + 1,
                last_error=last_error,
            )

        delay_ms = policy.get_delay_ms(attempt, last_error.retry_after)
        metrics.record_retry()
        log.debug(
            "retry_attempt",
            attempt=attempt + 1,
            delay_ms=delay_ms,
            max_attempts=policy.max_attempts,
        )
        sleep(delay_ms / 1000.0)

    # max_attempts >= 1, so the loop always returns
    return RetryOutcome(
        succeeded=False, attempts=policy.max_attempts, last_error=last_error
    )
