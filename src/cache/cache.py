"""Single-slot store for the last aggregated feed."""

import threading
from collections.abc import Sequence
from datetime import datetime, timedelta
from typing import Protocol, runtime_checkable

import structlog

from src.feed.models import CacheEntry, FeedItem


logger = structlog.get_logger()

DEFAULT_TTL = timedelta(minutes=5)


@runtime_checkable
class FeedCache(Protocol):
    """Protocol for the feed cache."""

    @property
    def ttl(self) -> timedelta:
        """Maximum age at which an entry is fresh."""
        ...

    def read(self) -> CacheEntry | None:
        """Return the current entry, or None if never populated."""
        ...

    def is_fresh(self, entry: CacheEntry, now: datetime) -> bool:
        """Check whether ``entry`` is younger than the TTL at ``now``."""
        ...

    def replace(self, items: Sequence[FeedItem], now: datetime) -> CacheEntry:
        """Install a new entry built from ``items``."""
        ...


class InMemoryFeedCache:
    """Process-local, single-slot feed cache.

    Entries are immutable and installed by swapping one reference, so a
    reader holds either the old entry or the new one, never a mix. No
    eviction beyond the one slot.
    """

    def __init__(self, ttl: timedelta = DEFAULT_TTL) -> None:
        """Initialize the cache.

        Args:
            ttl: Maximum age at which an entry is served as fresh.

        Raises:
            ValueError: If ttl is not positive.
        """
        if ttl <= timedelta(0):
            msg = f"TTL must be positive, got {ttl}"
            raise ValueError(msg)
        self._ttl = ttl
        self._entry: CacheEntry | None = None
        self._lock = threading.Lock()
        self._log = logger.bind(component="cache")

    @property
    def ttl(self) -> timedelta:
        """Get the cache TTL."""
        return self._ttl

    def read(self) -> CacheEntry | None:
        """Return the current entry, or None if never populated."""
        with self._lock:
            return self._entry

    def is_fresh(self, entry: CacheEntry, now: datetime) -> bool:
        """Check whether ``now - entry.fetched_at < ttl``.

        Args:
            entry: Cached entry.
            now: Current time.

        Returns:
            True if the entry may be served without refreshing.
        """
        return entry.age(now) < self._ttl

    def replace(self, items: Sequence[FeedItem], now: datetime) -> CacheEntry:
        """Install a new entry, overwriting any previous one.

        Args:
            items: Aggregated feed in display order.
            now: When aggregation completed.

        Returns:
            The installed entry.
        """
        entry = CacheEntry(items=tuple(items), fetched_at=now)
        with self._lock:
            self._entry = entry
        self._log.info(
            "cache_replaced",
            items=entry.items_count,
            fetched_at=now.isoformat(),
        )
        return entry

    def clear(self) -> None:
        """Drop the cached entry."""
        with self._lock:
            self._entry = None
        self._log.info("cache_cleared")
