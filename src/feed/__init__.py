"""Feed data model."""

from src.feed.models import CacheEntry, FeedItem, ItemOrigin, is_absolute_url


__all__ = [
    "CacheEntry",
    "FeedItem",
    "ItemOrigin",
    "is_absolute_url",
]
