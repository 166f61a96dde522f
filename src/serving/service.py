"""Serving policy: cache first, aggregate on miss, degrade on faults."""

import random
import threading
from collections.abc import Sequence
from datetime import datetime
from http import HTTPStatus
from typing import Any

import structlog

from src.aggregator.aggregator import FeedAggregator, ensure_unique_ids
from src.aggregator.shuffle import fisher_yates_shuffle
from src.cache.cache import FeedCache
from src.feed.models import CacheEntry, FeedItem
from src.serving.metrics import ServingMetrics
from src.serving.models import FeedResponse
from src.serving.state_machine import ServingStateMachine
from src.sources.base import Clock, SourceAdapter, utc_now


logger = structlog.get_logger()


class AggregationError(Exception):
    """Raised when an aggregation completes without a usable feed."""


class FeedService:
    """Entry point for feed requests.

    Serves, in order of preference:
    1. The cached feed while it is younger than the TTL
    2. A freshly aggregated feed (installed into the cache)
    3. The expired cached feed, if aggregation raised
    4. Every adapter's fallback items with a 500 status, if aggregation
       raised and nothing was ever cached

    Source failures never reach this class; the aggregator absorbs them.
    Only processing faults trigger steps 3 and 4.

    With ``single_flight`` enabled, refreshes are serialized: requests
    that miss the cache while another request is aggregating wait for
    it and then serve the entry it installed.
    """

    def __init__(  # noqa: PLR0913
        self,
        adapters: Sequence[SourceAdapter],
        aggregator: FeedAggregator,
        cache: FeedCache,
        clock: Clock = utc_now,
        single_flight: bool = True,
        rng: random.Random | None = None,
    ) -> None:
        """Initialize the feed service.

        Args:
            adapters: Configured source adapters.
            aggregator: Aggregator driving the adapters.
            cache: Feed cache (this service is its only writer).
            clock: Time source.
            single_flight: Coalesce concurrent refreshes.
            rng: Random source for the fallback-only shuffle.
        """
        self._adapters = list(adapters)
        self._aggregator = aggregator
        self._cache = cache
        self._clock = clock
        self._single_flight = single_flight
        self._rng = rng or random.Random()  # noqa: S311
        self._refresh_lock = threading.Lock()
        self._metrics = ServingMetrics.get_instance()
        self._log = logger.bind(component="serving")

    @property
    def adapters(self) -> list[SourceAdapter]:
        """Get the configured adapters."""
        return list(self._adapters)

    @property
    def cache(self) -> FeedCache:
        """Get the feed cache."""
        return self._cache

    def get_feed(self, now: datetime | None = None) -> FeedResponse:
        """Serve the feed for one request.

        Args:
            now: Request time (defaults to the clock).

        Returns:
            FeedResponse; never raises for source or aggregation faults.
        """
        explicit_now = now is not None
        now = now or self._clock()
        sm = ServingStateMachine()

        entry = self._cache.read()
        if entry is not None and self._cache.is_fresh(entry, now):
            return self._serve_cached(sm, entry, now)

        if not self._single_flight:
            return self._refresh(sm, entry, now)

        with self._refresh_lock:
            if not explicit_now:
                now = self._clock()
            current = self._cache.read()
            if (
                current is not None
                and current is not entry
                and self._cache.is_fresh(current, now)
            ):
                self._metrics.record_coalesced()
                self._log.debug("refresh_coalesced", fetched_at=current.fetched_at)
                return self._serve_cached(sm, current, now)
            return self._refresh(sm, current, now)

    def _serve_cached(
        self,
        sm: ServingStateMachine,
        entry: CacheEntry,
        now: datetime,
    ) -> FeedResponse:
        """Serve a fresh cache entry unchanged."""
        sm.to_serving_cache()
        self._metrics.record_served(sm.state)
        self._log.info(
            "cache_hit",
            items=entry.items_count,
            age_seconds=round(entry.age(now).total_seconds(), 3),
        )
        return FeedResponse(
            items=list(entry.items),
            state=sm.state,
            status_code=HTTPStatus.OK,
            fetched_at=entry.fetched_at,
        )

    def _refresh(
        self,
        sm: ServingStateMachine,
        previous: CacheEntry | None,
        now: datetime,
    ) -> FeedResponse:
        """Aggregate and install, degrading if aggregation raises.

        Args:
            sm: Request state machine.
            previous: Entry present before the refresh (may be expired).
            now: Request time; becomes the new entry's fetched_at.

        Returns:
            FeedResponse for the request.
        """
        sm.to_aggregating()
        self._log.info(
            "cache_miss",
            populated=previous is not None,
        )

        try:
            items = self._aggregator.aggregate(self._adapters)
            if self._adapters and not items:
                msg = "Aggregation produced no items"
                raise AggregationError(msg)
            entry = self._cache.replace(items, now)
        except Exception as e:  # noqa: BLE001
            self._metrics.record_aggregation_fault()
            self._log.error("aggregation_failed", error=str(e), exc_info=e)
            return self._degrade(sm, now)

        sm.to_serving_fresh()
        self._metrics.record_served(sm.state)
        return FeedResponse(
            items=list(entry.items),
            state=sm.state,
            status_code=HTTPStatus.OK,
            fetched_at=entry.fetched_at,
        )

    def _degrade(self, sm: ServingStateMachine, now: datetime) -> FeedResponse:
        """Serve stale cache or, failing that, fallback-only content."""
        stale = self._cache.read()
        if stale is not None:
            sm.to_serving_stale()
            self._metrics.record_served(sm.state)
            self._log.warning(
                "serving_stale_on_error",
                items=stale.items_count,
                age_seconds=round(stale.age(now).total_seconds(), 3),
            )
            return FeedResponse(
                items=list(stale.items),
                state=sm.state,
                status_code=HTTPStatus.OK,
                fetched_at=stale.fetched_at,
            )

        sm.to_fallback_only()
        self._metrics.record_served(sm.state)
        items = self.fallback_feed(now)
        self._log.warning("serving_fallback_only", items=len(items))
        return FeedResponse(
            items=items,
            state=sm.state,
            status_code=HTTPStatus.INTERNAL_SERVER_ERROR,
        )

    def fallback_feed(self, now: datetime) -> list[FeedItem]:
        """Concatenate every adapter's fallback items and shuffle them.

        Args:
            now: Timestamp for the fallback items.

        Returns:
            Shuffled fallback items with unique ids.
        """
        items: list[FeedItem] = []
        for adapter in self._adapters:
            try:
                items.extend(adapter.fallback_items(now))
            except Exception as e:  # noqa: BLE001
                self._log.error(
                    "fallback_unavailable",
                    source_id=adapter.source_id,
                    error=str(e),
                )
        unique, _ = ensure_unique_ids(items)
        return fisher_yates_shuffle(unique, self._rng)

    def cache_status(self, now: datetime | None = None) -> dict[str, Any]:
        """Describe the cache slot for health reporting."""
        now = now or self._clock()
        entry = self._cache.read()
        if entry is None:
            return {
                "populated": False,
                "ttl_seconds": self._cache.ttl.total_seconds(),
            }
        return {
            "populated": True,
            "fresh": self._cache.is_fresh(entry, now),
            "fetched_at": entry.fetched_at.isoformat(),
            "age_seconds": round(entry.age(now).total_seconds(), 3),
            "items": entry.items_count,
            "ttl_seconds": self._cache.ttl.total_seconds(),
        }
