"""Metrics collection for the serving policy."""

import threading
from dataclasses import dataclass, field
from typing import ClassVar

from src.serving.state_machine import ServingState


@dataclass
class ServingMetrics:
    """Counts of feed requests by the state they were served in."""

    requests_total: dict[str, int] = field(default_factory=dict)
    aggregation_faults_total: int = 0
    coalesced_total: int = 0
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    _instance: ClassVar["ServingMetrics | None"] = None

    @classmethod
    def get_instance(cls) -> "ServingMetrics":
        """Get singleton metrics instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Reset metrics (primarily for testing)."""
        cls._instance = None

    def record_served(self, state: ServingState) -> None:
        """Record a request served in ``state``."""
        with self._lock:
            self.requests_total[state.value] = (
                self.requests_total.get(state.value, 0) + 1
            )

    def record_aggregation_fault(self) -> None:
        """Record an aggregation that raised."""
        with self._lock:
            self.aggregation_faults_total += 1

    def record_coalesced(self) -> None:
        """Record a request served from a refresh done by another request."""
        with self._lock:
            self.coalesced_total += 1

    def to_dict(self) -> dict[str, int | dict[str, int]]:
        """Convert metrics to dictionary."""
        with self._lock:
            return {
                "requests_total": dict(self.requests_total),
                "aggregation_faults_total": self.aggregation_faults_total,
                "coalesced_total": self.coalesced_total,
            }
