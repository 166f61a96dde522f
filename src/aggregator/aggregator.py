"""Concurrent fan-out/fan-in over source adapters."""

import random
import time
from collections.abc import Sequence
from concurrent.futures import Future, ThreadPoolExecutor, wait

import structlog

from src.aggregator.metrics import AggregatorMetrics
from src.aggregator.models import AggregationResult, SourceReport
from src.aggregator.shuffle import fisher_yates_shuffle
from src.feed.models import FeedItem, ItemOrigin
from src.sources.base import Clock, SourceAdapter, SourceOutcome, utc_now
from src.sources.errors import ErrorRecord, SourceErrorClass


logger = structlog.get_logger()


def ensure_unique_ids(items: Sequence[FeedItem]) -> tuple[list[FeedItem], int]:
    """Rename items whose id was already used earlier in the batch.

    A colliding id ``x`` becomes ``x_2``, ``x_3``, ... (first free
    suffix), so the result is deterministic for a given input order.

    Args:
        items: Items in merge order.

    Returns:
        Tuple of (items with unique ids, number of renamed items).
    """
    seen: set[str] = set()
    unique: list[FeedItem] = []
    renamed = 0

    for item in items:
        item_id = item.id
        if item_id in seen:
            suffix = 2
            while f"{item.id}_{suffix}" in seen:
                suffix += 1
            item_id = f"{item.id}_{suffix}"
            item = item.model_copy(update={"id": item_id})
            renamed += 1
        seen.add(item_id)
        unique.append(item)

    return unique, renamed


class FeedAggregator:
    """Runs every adapter concurrently and merges their items.

    Provides:
    - Parallel adapter execution on a thread pool
    - Failure isolation (an adapter that raises, returns garbage, or
      misses the deadline is replaced by its fallback items; the others
      are unaffected)
    - Batch-wide id uniqueness
    - A fresh uniform shuffle of the merged feed
    """

    def __init__(
        self,
        max_workers: int = 8,
        deadline_seconds: float | None = 30.0,
        rng: random.Random | None = None,
        clock: Clock = utc_now,
    ) -> None:
        """Initialize the aggregator.

        Args:
            max_workers: Maximum adapters running at once.
            deadline_seconds: Ceiling on the whole fan-out; adapters still
                running when it passes are replaced by their fallback
                items. None waits indefinitely.
            rng: Random source for the shuffle (seeded per process by
                default; tests inject a seeded one).
            clock: Time source.
        """
        self._max_workers = max_workers
        self._deadline_seconds = deadline_seconds
        self._rng = rng or random.Random()  # noqa: S311
        self._clock = clock
        self._metrics = AggregatorMetrics.get_instance()
        self._log = logger.bind(component="aggregator")

    def aggregate(self, adapters: Sequence[SourceAdapter]) -> list[FeedItem]:
        """Aggregate all adapters into one shuffled feed.

        Args:
            adapters: Configured adapters.

        Returns:
            Shuffled items; at least one per adapter.
        """
        return self.run(adapters).items

    def run(self, adapters: Sequence[SourceAdapter]) -> AggregationResult:
        """Aggregate all adapters and report per-source outcomes.

        Args:
            adapters: Configured adapters.

        Returns:
            AggregationResult with shuffled items and source reports.
        """
        started_at = self._clock()
        start_time_ns = time.perf_counter_ns()

        self._log.info("aggregation_started", source_count=len(adapters))

        outcomes = self._collect_outcomes(adapters)

        now = self._clock()
        merged: list[FeedItem] = []
        reports: list[SourceReport] = []
        for adapter, outcome in zip(adapters, outcomes, strict=True):
            if outcome.is_success:
                merged.extend(outcome.items)
                origin = outcome.origin or ItemOrigin.LIVE
                reports.append(
                    SourceReport(
                        source_id=adapter.source_id,
                        origin=origin,
                        items_count=outcome.items_count,
                        attempts=outcome.attempts,
                    )
                )
            else:
                fallback = adapter.fallback_items(now)
                merged.extend(fallback)
                error_class = (
                    outcome.error.error_class
                    if outcome.error
                    else SourceErrorClass.INTERNAL
                )
                self._metrics.record_adapter_failure(error_class)
                origin = ItemOrigin.FALLBACK
                reports.append(
                    SourceReport(
                        source_id=adapter.source_id,
                        origin=origin,
                        items_count=len(fallback),
                        error_class=error_class,
                    )
                )
            self._metrics.record_origin(adapter.source_id, origin)

        unique, renamed = ensure_unique_ids(merged)
        shuffled = fisher_yates_shuffle(unique, self._rng)

        duration_ms = (time.perf_counter_ns() - start_time_ns) / 1_000_000
        self._metrics.record_aggregation(len(shuffled), duration_ms)

        result = AggregationResult(
            items=shuffled,
            started_at=started_at,
            duration_ms=duration_ms,
            sources=reports,
            renamed_ids=renamed,
        )

        self._log.info(
            "aggregation_complete",
            duration_ms=round(duration_ms, 2),
            total_items=result.items_count,
            renamed_ids=renamed,
            origins=result.origins(),
        )

        return result

    def _collect_outcomes(
        self, adapters: Sequence[SourceAdapter]
    ) -> list[SourceOutcome]:
        """Run every adapter and wait for all of them (or the deadline).

        Args:
            adapters: Configured adapters.

        Returns:
            One outcome per adapter, in adapter order.
        """
        if not adapters:
            return []

        executor = ThreadPoolExecutor(
            max_workers=max(1, min(self._max_workers, len(adapters))),
            thread_name_prefix="feed-source",
        )
        try:
            futures: list[Future[SourceOutcome]] = [
                executor.submit(adapter.fetch) for adapter in adapters
            ]
            _, not_done = wait(futures, timeout=self._deadline_seconds)
        finally:
            # Stragglers keep their thread until their own timeouts fire;
            # the aggregation does not wait for them.
            executor.shutdown(wait=False, cancel_futures=True)

        outcomes: list[SourceOutcome] = []
        for adapter, future in zip(adapters, futures, strict=True):
            if future in not_done:
                self._log.warning(
                    "aggregation_deadline_exceeded",
                    source_id=adapter.source_id,
                    deadline_seconds=self._deadline_seconds,
                )
                outcomes.append(
                    SourceOutcome.failure(
                        adapter.source_id,
                        ErrorRecord(
                            error_class=SourceErrorClass.TIMEOUT,
                            message=(
                                "Adapter did not settle within "
                                f"{self._deadline_seconds}s"
                            ),
                            source_id=adapter.source_id,
                        ),
                    )
                )
                continue

            outcomes.append(self._settle(adapter, future))

        return outcomes

    def _settle(
        self,
        adapter: SourceAdapter,
        future: "Future[SourceOutcome]",
    ) -> SourceOutcome:
        """Turn a finished future into an outcome, never raising.

        Args:
            adapter: The adapter that ran.
            future: Its completed future.

        Returns:
            The adapter's outcome, or a failure outcome.
        """
        try:
            outcome = future.result()
        except Exception as e:  # noqa: BLE001
            self._log.error(
                "adapter_crashed",
                source_id=adapter.source_id,
                error=str(e),
                exc_info=e,
            )
            return SourceOutcome.failure(
                adapter.source_id,
                ErrorRecord.from_unexpected(e, adapter.source_id),
            )

        if not isinstance(outcome, SourceOutcome):
            self._log.error(
                "adapter_bad_outcome",
                source_id=adapter.source_id,
                outcome_type=type(outcome).__name__,
            )
            return SourceOutcome.failure(
                adapter.source_id,
                ErrorRecord(
                    error_class=SourceErrorClass.INTERNAL,
                    message=f"Adapter returned {type(outcome).__name__}",
                    source_id=adapter.source_id,
                ),
            )

        if outcome.is_success and not outcome.items:
            self._log.warning("adapter_empty", source_id=adapter.source_id)
            return SourceOutcome.failure(
                adapter.source_id,
                ErrorRecord(
                    error_class=SourceErrorClass.SCHEMA,
                    message="Adapter reported success without items",
                    source_id=adapter.source_id,
                ),
            )

        if not outcome.is_success:
            self._log.warning(
                "adapter_failed",
                source_id=adapter.source_id,
                error_class=outcome.error.error_class.value if outcome.error else None,
            )

        return outcome
