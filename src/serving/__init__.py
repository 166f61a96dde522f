"""Serving policy for feed requests."""

from src.serving.factory import build_feed_service, fetch_config_from_settings
from src.serving.metrics import ServingMetrics
from src.serving.models import FeedResponse
from src.serving.service import AggregationError, FeedService
from src.serving.state_machine import (
    ServingState,
    ServingStateMachine,
    ServingStateTransitionError,
)


__all__ = [
    "AggregationError",
    "FeedResponse",
    "FeedService",
    "ServingMetrics",
    "ServingState",
    "ServingStateMachine",
    "ServingStateTransitionError",
    "build_feed_service",
    "fetch_config_from_settings",
]
