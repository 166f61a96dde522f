"""Construction of the configured source adapters."""

import time
from collections.abc import Callable

from src.fetch.client import HttpFetcher
from src.fetch.retry import RetryPolicy
from src.settings.app import AppSettings
from src.sources.base import Clock, SourceAdapter, utc_now
from src.sources.reddit import RedditSourceAdapter
from src.sources.static import simulated_twitter_adapter


def retry_policy_from_settings(settings: AppSettings) -> RetryPolicy:
    """Build the per-endpoint retry policy from settings."""
    return RetryPolicy(
        max_attempts=settings.retry_attempts,
        base_delay_ms=settings.retry_base_delay_ms,
        max_delay_ms=settings.retry_max_delay_ms,
    )


def build_default_adapters(
    settings: AppSettings,
    http_client: HttpFetcher,
    sleep: Callable[[float], None] = time.sleep,
    clock: Clock = utc_now,
) -> list[SourceAdapter]:
    """Build the adapters served by the feed.

    Args:
        settings: Application settings.
        http_client: Shared HTTP fetcher.
        sleep: Backoff sleep for network adapters.
        clock: Time source.

    Returns:
        Adapters in configuration order.
    """
    return [
        RedditSourceAdapter(
            http_client=http_client,
            subreddit=settings.subreddit,
            listings=settings.reddit_listings,
            limit=settings.reddit_limit,
            retry_policy=retry_policy_from_settings(settings),
            relay_url_template=settings.relay_url_template,
            timeout_seconds=settings.request_timeout_seconds,
            sleep=sleep,
            clock=clock,
        ),
        simulated_twitter_adapter(clock=clock),
    ]
