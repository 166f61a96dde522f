"""Feed aggregation across source adapters."""

from src.aggregator.aggregator import FeedAggregator, ensure_unique_ids
from src.aggregator.metrics import AggregatorMetrics
from src.aggregator.models import AggregationResult, SourceReport
from src.aggregator.shuffle import fisher_yates_shuffle


__all__ = [
    "AggregationResult",
    "AggregatorMetrics",
    "FeedAggregator",
    "SourceReport",
    "ensure_unique_ids",
    "fisher_yates_shuffle",
]
