"""Feed cache."""

from src.cache.cache import DEFAULT_TTL, FeedCache, InMemoryFeedCache


__all__ = [
    "DEFAULT_TTL",
    "FeedCache",
    "InMemoryFeedCache",
]
