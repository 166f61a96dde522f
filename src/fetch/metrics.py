"""Counters for upstream requests made by source adapters."""

import threading
from dataclasses import dataclass, field
from typing import ClassVar

from src.fetch.models import FetchErrorClass


@dataclass
class FetchMetrics:
    """Process-wide upstream request counters.

    Updated from the aggregator's worker threads, hence the lock.
    """

    requests_by_status: dict[int, int] = field(default_factory=dict)
    requests_by_source: dict[str, int] = field(default_factory=dict)
    failures_by_class: dict[str, int] = field(default_factory=dict)
    retries_total: int = 0
    bytes_total: int = 0
    duration_ms_total: float = 0.0
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    _instance: ClassVar["FetchMetrics | None"] = None

    @classmethod
    def get_instance(cls) -> "FetchMetrics":
        """Get singleton metrics instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Reset metrics (primarily for testing)."""
        cls._instance = None

    def record_attempt(self, source_id: str, duration_ms: float) -> None:
        """Count one request issued for ``source_id``, answered or not."""
        with self._lock:
            self.requests_by_source[source_id] = (
                self.requests_by_source.get(source_id, 0) + 1
            )
            self.duration_ms_total += duration_ms

    def record_response(self, status_code: int, bytes_received: int) -> None:
        """Count a response that arrived, whatever its status."""
        with self._lock:
            self.requests_by_status[status_code] = (
                self.requests_by_status.get(status_code, 0) + 1
            )
            self.bytes_total += bytes_received

    def record_retry(self) -> None:
        """Record a backoff before another attempt."""
        with self._lock:
            self.retries_total += 1

    def record_failure(self, error_class: FetchErrorClass) -> None:
        """Record a failed attempt by class."""
        key = error_class.value
        with self._lock:
            self.failures_by_class[key] = self.failures_by_class.get(key, 0) + 1

    @property
    def attempts_total(self) -> int:
        """Get the number of requests issued across all sources."""
        with self._lock:
            return sum(self.requests_by_source.values())

    @property
    def avg_duration_ms(self) -> float:
        """Average wall time per request."""
        attempts = self.attempts_total
        if attempts == 0:
            return 0.0
        return self.duration_ms_total / attempts

    def to_dict(self) -> dict[str, int | float | dict[str, int] | dict[int, int]]:
        """Snapshot for the health endpoint."""
        avg_duration_ms = round(self.avg_duration_ms, 2)
        with self._lock:
            return {
                "requests_by_status": dict(self.requests_by_status),
                "requests_by_source": dict(self.requests_by_source),
                "failures_by_class": dict(self.failures_by_class),
                "retries_total": self.retries_total,
                "bytes_total": self.bytes_total,
                "avg_duration_ms": avg_duration_ms,
            }
