"""Wiring of the feed service from settings."""

import random
import time
from collections.abc import Callable
from datetime import timedelta

from src.aggregator.aggregator import FeedAggregator
from src.cache.cache import InMemoryFeedCache
from src.fetch.client import HttpFetcher
from src.fetch.config import FetchConfig
from src.serving.service import FeedService
from src.settings.app import AppSettings
from src.sources.base import Clock, utc_now
from src.sources.registry import build_default_adapters


def fetch_config_from_settings(settings: AppSettings) -> FetchConfig:
    """Build the fetch layer configuration from settings."""
    return FetchConfig(
        user_agent=settings.user_agent,
        timeout_seconds=settings.request_timeout_seconds,
    )


def build_feed_service(
    settings: AppSettings,
    http_client: HttpFetcher,
    sleep: Callable[[float], None] = time.sleep,
    clock: Clock = utc_now,
    rng: random.Random | None = None,
) -> FeedService:
    """Assemble adapters, aggregator, cache and serving policy.

    Args:
        settings: Application settings.
        http_client: Shared HTTP fetcher (caller owns its lifetime).
        sleep: Backoff sleep for network adapters.
        clock: Time source.
        rng: Random source for shuffles.

    Returns:
        Ready-to-use FeedService with an empty cache.
    """
    adapters = build_default_adapters(settings, http_client, sleep=sleep, clock=clock)
    aggregator = FeedAggregator(
        max_workers=settings.max_workers,
        deadline_seconds=settings.aggregation_deadline_seconds,
        rng=rng,
        clock=clock,
    )
    cache = InMemoryFeedCache(ttl=timedelta(seconds=settings.cache_ttl_seconds))
    return FeedService(
        adapters=adapters,
        aggregator=aggregator,
        cache=cache,
        clock=clock,
        single_flight=settings.single_flight,
        rng=rng,
    )
