"""Static adapter for sources without a live integration."""

from collections.abc import Sequence
from datetime import datetime

import structlog

from src.feed.models import FeedItem, ItemOrigin
from src.sources.base import (
    BaseSourceAdapter,
    Clock,
    SourceOutcome,
    StaticEntry,
    utc_now,
)
from src.sources.constants import (
    TWITTER_ID_PREFIX,
    TWITTER_SIMULATED_ENTRIES,
    TWITTER_SOURCE_ID,
    TWITTER_SOURCE_NAME,
)


logger = structlog.get_logger()


class StaticSourceAdapter(BaseSourceAdapter):
    """Adapter serving a fixed list of posts.

    Each call stamps the entries with the current time and ids of the
    form ``<id_prefix>_<index>``, so content and ids are stable across
    calls while timestamps are fresh. Always succeeds.
    """

    def __init__(  # noqa: PLR0913
        self,
        source_id: str,
        source_name: str,
        entries: Sequence[StaticEntry],
        id_prefix: str | None = None,
        clock: Clock = utc_now,
    ) -> None:
        """Initialize the static adapter.

        Args:
            source_id: Identifier of this source.
            source_name: Source tag on every item.
            entries: Fixed post content (at least one).
            id_prefix: Prefix for item ids (defaults to source_id).
            clock: Time source.

        Raises:
            ValueError: If no entries are given.
        """
        super().__init__(source_id, clock)
        if not entries:
            msg = f"Static source '{source_id}' needs at least one entry"
            raise ValueError(msg)
        self._source_name = source_name
        self._entries = tuple(entries)
        self._id_prefix = id_prefix or source_id

    def fetch(self) -> SourceOutcome:
        """Return the fixed posts stamped at call time."""
        items = self.fallback_items(self._clock())
        logger.debug(
            "source_fetched",
            component="source",
            source_id=self.source_id,
            origin=ItemOrigin.STATIC.value,
            items=len(items),
        )
        return SourceOutcome.success(self.source_id, items, ItemOrigin.STATIC)

    def fallback_items(self, now: datetime) -> list[FeedItem]:
        """The fixed posts double as the fallback content."""
        return self.stamp_entries(
            self._entries, self._id_prefix, self._source_name, now
        )


def simulated_twitter_adapter(clock: Clock = utc_now) -> StaticSourceAdapter:
    """Build the simulated Twitter feed."""
    return StaticSourceAdapter(
        source_id=TWITTER_SOURCE_ID,
        source_name=TWITTER_SOURCE_NAME,
        entries=TWITTER_SIMULATED_ENTRIES,
        id_prefix=TWITTER_ID_PREFIX,
        clock=clock,
    )
