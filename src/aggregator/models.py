"""Result models for feed aggregation."""

from dataclasses import dataclass, field
from datetime import datetime

from src.feed.models import FeedItem, ItemOrigin
from src.sources.errors import SourceErrorClass


@dataclass(frozen=True)
class SourceReport:
    """What one adapter contributed to an aggregation."""

    source_id: str
    origin: ItemOrigin
    items_count: int
    attempts: int = 0
    error_class: SourceErrorClass | None = None

    @property
    def substituted(self) -> bool:
        """Check if the adapter's fallback replaced a failed outcome."""
        return self.error_class is not None


@dataclass(frozen=True)
class AggregationResult:
    """Result of one aggregation run."""

    items: list[FeedItem]
    started_at: datetime
    duration_ms: float
    sources: list[SourceReport] = field(default_factory=list)
    renamed_ids: int = 0

    @property
    def items_count(self) -> int:
        """Get number of aggregated items."""
        return len(self.items)

    def origins(self) -> dict[str, str]:
        """Map source id to the origin of its items."""
        return {report.source_id: report.origin.value for report in self.sources}
