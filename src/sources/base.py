"""Base source adapter interface and utilities."""

from abc import ABC, abstractmethod
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Protocol, runtime_checkable

from src.feed.models import FeedItem, ItemOrigin
from src.sources.errors import ErrorRecord


Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Return the current UTC time."""
    return datetime.now(UTC)


@dataclass(frozen=True)
class StaticEntry:
    """Fixed post content without id or timestamp."""

    title: str
    url: str
    score: int | None = None
    thumbnail: str | None = None


@dataclass(frozen=True)
class SourceOutcome:
    """Tagged result of one adapter invocation.

    Either a success carrying items (and where they came from) or a
    failure carrying an ErrorRecord. Adapters return outcomes; they do
    not raise past the aggregator.
    """

    source_id: str
    items: tuple[FeedItem, ...] = ()
    origin: ItemOrigin | None = None
    error: ErrorRecord | None = None
    attempts: int = 0

    @classmethod
    def success(
        cls,
        source_id: str,
        items: Sequence[FeedItem],
        origin: ItemOrigin,
        attempts: int = 0,
    ) -> "SourceOutcome":
        """Build a successful outcome."""
        return cls(
            source_id=source_id,
            items=tuple(items),
            origin=origin,
            attempts=attempts,
        )

    @classmethod
    def failure(cls, source_id: str, error: ErrorRecord) -> "SourceOutcome":
        """Build a failed outcome."""
        return cls(source_id=source_id, error=error)

    @property
    def is_success(self) -> bool:
        """Check if the adapter produced items."""
        return self.error is None

    @property
    def items_count(self) -> int:
        """Get number of items in the outcome."""
        return len(self.items)


@runtime_checkable
class SourceAdapter(Protocol):
    """Protocol for source adapters.

    Adapters are responsible for:
    1. Fetching one upstream source's content
    2. Normalizing it into FeedItems
    3. Owning that source's retry and fallback policy
    """

    @property
    def source_id(self) -> str:
        """Stable identifier of the source."""
        ...

    def fetch(self) -> SourceOutcome:
        """Fetch and normalize the source's current items."""
        ...

    def fallback_items(self, now: datetime) -> list[FeedItem]:
        """Static items served when the source cannot be fetched."""
        ...


class BaseSourceAdapter(ABC):
    """Abstract base class for source adapters."""

    def __init__(self, source_id: str, clock: Clock = utc_now) -> None:
        """Initialize the base adapter.

        Args:
            source_id: Stable identifier of the source.
            clock: Time source for item timestamps.
        """
        self._source_id = source_id
        self._clock = clock

    @property
    def source_id(self) -> str:
        """Get the source identifier."""
        return self._source_id

    @abstractmethod
    def fetch(self) -> SourceOutcome:
        """Fetch and normalize the source's current items."""

    @abstractmethod
    def fallback_items(self, now: datetime) -> list[FeedItem]:
        """Static items served when the source cannot be fetched."""

    def stamp_entries(
        self,
        entries: Sequence[StaticEntry],
        id_prefix: str,
        source: str,
        now: datetime,
    ) -> list[FeedItem]:
        """Turn fixed entries into FeedItems stamped at ``now``.

        Ids are ``<id_prefix>_<index>`` so repeated calls yield the same
        ids with fresh timestamps.

        Args:
            entries: Fixed post content.
            id_prefix: Prefix for generated ids.
            source: Source tag for every item.
            now: Timestamp for createdAt.

        Returns:
            List of FeedItems in entry order.
        """
        return [
            FeedItem(
                id=f"{id_prefix}_{index}",
                title=entry.title,
                url=entry.url,
                source=source,
                score=entry.score,
                thumbnail=entry.thumbnail,
                created_at=now,
            )
            for index, entry in enumerate(entries)
        ]
