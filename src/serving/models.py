"""Response model for the serving policy."""

from dataclasses import dataclass
from datetime import datetime
from http import HTTPStatus
from typing import Any

from src.feed.models import FeedItem
from src.serving.state_machine import ServingState


@dataclass(frozen=True)
class FeedResponse:
    """Items to serve plus how they were obtained."""

    items: list[FeedItem]
    state: ServingState
    status_code: int = HTTPStatus.OK
    fetched_at: datetime | None = None

    @property
    def items_count(self) -> int:
        """Get number of items served."""
        return len(self.items)

    def to_wire(self) -> list[dict[str, Any]]:
        """Serialize the items to the JSON array sent to clients."""
        return [item.to_wire() for item in self.items]
