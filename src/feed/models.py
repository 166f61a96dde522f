"""Data models for aggregated feed items and the cached feed."""

from datetime import datetime, timedelta
from enum import Enum
from typing import Annotated, Any
from urllib.parse import urlsplit

from pydantic import BaseModel, ConfigDict, Field, field_validator


def is_absolute_url(value: str) -> bool:
    """Check that a string is an absolute http(s) URL with a host.

    Args:
        value: Candidate URL.

    Returns:
        True if the URL is absolute.
    """
    try:
        parts = urlsplit(value)
    except ValueError:
        return False
    return parts.scheme in ("http", "https") and bool(parts.netloc)


class ItemOrigin(str, Enum):
    """Where a source's contribution to a feed came from.

    - LIVE: Upstream endpoint answered directly
    - PROXY: Upstream data recovered through the relay
    - FALLBACK: Hard-coded placeholder content
    - STATIC: Source without live backing (simulated feed)
    """

    LIVE = "LIVE"
    PROXY = "PROXY"
    FALLBACK = "FALLBACK"
    STATIC = "STATIC"


class FeedItem(BaseModel):
    """Single post in the aggregated feed.

    Serialized field names (``createdAt`` in particular) are the wire
    contract consumed by feed clients.
    """

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    id: Annotated[str, Field(min_length=1, description="Unique within one feed")]
    title: Annotated[str, Field(min_length=1, description="Post title")]
    url: Annotated[str, Field(min_length=1, description="Absolute post URL")]
    source: Annotated[str, Field(min_length=1, description="Originating source tag")]
    score: int | float | None = Field(
        default=None, description="Popularity signal, if the source has one"
    )
    thumbnail: str | None = Field(
        default=None, description="Absolute thumbnail URL, if any"
    )
    created_at: datetime = Field(
        alias="createdAt", description="Origination or aggregation time"
    )

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        """Reject whitespace-only titles."""
        v = v.strip()
        if not v:
            msg = "title must not be blank"
            raise ValueError(msg)
        return v

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Require an absolute http(s) URL."""
        if not is_absolute_url(v):
            msg = f"url must be an absolute http(s) URL: {v!r}"
            raise ValueError(msg)
        return v

    @field_validator("thumbnail", mode="before")
    @classmethod
    def coerce_thumbnail(cls, v: Any) -> str | None:
        """Drop thumbnails that are not absolute URLs.

        Upstreams use markers like "self", "default" or "nsfw" in place
        of a thumbnail; those are never passed to clients.
        """
        if isinstance(v, str) and is_absolute_url(v):
            return v
        return None

    def to_wire(self) -> dict[str, Any]:
        """Serialize to the JSON shape served to clients."""
        return self.model_dump(mode="json", by_alias=True)


class CacheEntry(BaseModel):
    """The last successfully aggregated feed.

    Immutable: the cache replaces whole entries, so readers holding an
    entry never observe a partial update.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    items: tuple[FeedItem, ...] = Field(description="Feed in display order")
    fetched_at: datetime = Field(description="When aggregation completed")

    def age(self, now: datetime) -> timedelta:
        """Get the entry's age at ``now``."""
        return now - self.fetched_at

    @property
    def items_count(self) -> int:
        """Get number of cached items."""
        return len(self.items)
