"""Metrics collection for feed aggregation."""

import threading
from dataclasses import dataclass, field
from typing import ClassVar

from src.feed.models import ItemOrigin
from src.sources.errors import SourceErrorClass


@dataclass
class AggregatorMetrics:
    """Metrics for aggregation runs.

    Singleton class tracking run counts, per-source origins, and
    adapter failures caught at the aggregation boundary.
    """

    aggregations_total: int = 0
    items_total: int = 0
    duration_ms_total: float = 0.0
    origins_total: dict[str, dict[str, int]] = field(default_factory=dict)
    adapter_failures_total: dict[str, int] = field(default_factory=dict)
    deadline_exceeded_total: int = 0
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    _instance: ClassVar["AggregatorMetrics | None"] = None

    @classmethod
    def get_instance(cls) -> "AggregatorMetrics":
        """Get singleton metrics instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Reset metrics (primarily for testing)."""
        cls._instance = None

    def record_aggregation(self, items: int, duration_ms: float) -> None:
        """Record a completed aggregation."""
        with self._lock:
            self.aggregations_total += 1
            self.items_total += items
            self.duration_ms_total += duration_ms

    def record_origin(self, source_id: str, origin: ItemOrigin) -> None:
        """Record where a source's items came from."""
        with self._lock:
            per_source = self.origins_total.setdefault(source_id, {})
            per_source[origin.value] = per_source.get(origin.value, 0) + 1

    def record_adapter_failure(self, error_class: SourceErrorClass) -> None:
        """Record an adapter outcome replaced by fallback items."""
        with self._lock:
            key = error_class.value
            self.adapter_failures_total[key] = (
                self.adapter_failures_total.get(key, 0) + 1
            )
            if error_class == SourceErrorClass.TIMEOUT:
                self.deadline_exceeded_total += 1

    def to_dict(
        self,
    ) -> dict[str, int | float | dict[str, int] | dict[str, dict[str, int]]]:
        """Convert metrics to dictionary."""
        with self._lock:
            return {
                "aggregations_total": self.aggregations_total,
                "items_total": self.items_total,
                "duration_ms_total": self.duration_ms_total,
                "origins_total": {k: dict(v) for k, v in self.origins_total.items()},
                "adapter_failures_total": dict(self.adapter_failures_total),
                "deadline_exceeded_total": self.deadline_exceeded_total,
            }
