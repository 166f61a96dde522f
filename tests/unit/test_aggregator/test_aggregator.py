"""Unit tests for concurrent aggregation."""

import random
import threading
from datetime import datetime

import httpx
import pytest

from src.aggregator.aggregator import FeedAggregator, ensure_unique_ids
from src.aggregator.metrics import AggregatorMetrics
from src.aggregator.shuffle import fisher_yates_shuffle
from src.feed.models import FeedItem, ItemOrigin
from src.fetch.client import HttpFetcher
from src.fetch.metrics import FetchMetrics
from src.fetch.retry import RetryPolicy, run_with_retry
from src.sources.base import BaseSourceAdapter, SourceOutcome, StaticEntry
from src.sources.errors import SourceErrorClass
from src.sources.static import StaticSourceAdapter
from tests.helpers.time import FIXED_NOW, FakeClock, RecordingSleep
from tests.helpers.upstream import make_fetcher


def _item(item_id: str, source: str = "Test") -> FeedItem:
    return FeedItem(
        id=item_id,
        title=f"Title {item_id}",
        url=f"https://example.com/{item_id}",
        source=source,
        created_at=FIXED_NOW,
    )


class SingleEndpointAdapter(BaseSourceAdapter):
    """Network adapter with one endpoint and a one-item fallback."""

    def __init__(self, http_client: HttpFetcher, sleep: RecordingSleep) -> None:
        super().__init__("a", clock=FakeClock())
        self._http = http_client
        self._sleep = sleep

    def fetch(self) -> SourceOutcome:
        outcome = run_with_retry(
            lambda: self._http.get_json("https://a.example/feed.json", "a"),
            lambda result: [_item(f"A_{i}") for i in result.body],
            RetryPolicy(max_attempts=2),
            sleep=self._sleep,
        )
        if outcome.succeeded and outcome.value:
            return SourceOutcome.success("a", outcome.value, ItemOrigin.LIVE)
        return SourceOutcome.success(
            "a", self.fallback_items(self._clock()), ItemOrigin.FALLBACK
        )

    def fallback_items(self, now: datetime) -> list[FeedItem]:
        return [
            FeedItem(
                id="A_fb",
                title="A is unavailable",
                url="https://a.example/",
                source="A (Fallback)",
                created_at=now,
            )
        ]


class RaisingAdapter(BaseSourceAdapter):
    """Adapter whose fetch raises."""

    def __init__(self, source_id: str = "broken") -> None:
        super().__init__(source_id, clock=FakeClock())

    def fetch(self) -> SourceOutcome:
        msg = "adapter bug"
        raise RuntimeError(msg)

    def fallback_items(self, now: datetime) -> list[FeedItem]:
        return [_item(f"{self.source_id}_fb")]


class ReturningAdapter(BaseSourceAdapter):
    """Adapter returning a fixed outcome."""

    def __init__(self, source_id: str, outcome: object) -> None:
        super().__init__(source_id, clock=FakeClock())
        self._outcome = outcome

    def fetch(self) -> SourceOutcome:
        return self._outcome  # type: ignore[return-value]

    def fallback_items(self, now: datetime) -> list[FeedItem]:
        return [_item(f"{self.source_id}_fb")]


class BlockingAdapter(BaseSourceAdapter):
    """Adapter that blocks until released."""

    def __init__(self, release: threading.Event) -> None:
        super().__init__("slow", clock=FakeClock())
        self._release = release

    def fetch(self) -> SourceOutcome:
        self._release.wait(timeout=5)
        return SourceOutcome.success("slow", [_item("slow_live")], ItemOrigin.LIVE)

    def fallback_items(self, now: datetime) -> list[FeedItem]:
        return [_item("slow_fb")]


def _static_b() -> StaticSourceAdapter:
    return StaticSourceAdapter(
        "b",
        "B",
        [StaticEntry(title=f"B{i}", url=f"https://b.example/{i}") for i in range(3)],
        clock=FakeClock(),
    )


class TestEnsureUniqueIds:
    """Tests for ensure_unique_ids."""

    def test_unique_input_unchanged(self) -> None:
        """Test that unique ids are left alone."""
        items = [_item("a"), _item("b")]

        unique, renamed = ensure_unique_ids(items)

        assert unique == items
        assert renamed == 0

    def test_collisions_get_suffixes(self) -> None:
        """Test that later duplicates are renamed with the first free suffix."""
        items = [_item("x"), _item("x"), _item("x_2"), _item("x")]

        unique, renamed = ensure_unique_ids(items)

        assert [item.id for item in unique] == ["x", "x_2", "x_2_2", "x_3"]
        assert renamed == 3
        assert len({item.id for item in unique}) == 4


class TestFisherYatesShuffle:
    """Tests for the shuffle."""

    def test_is_permutation(self) -> None:
        """Test that the shuffle keeps every element exactly once."""
        items = list(range(20))

        shuffled = fisher_yates_shuffle(items, random.Random(7))

        assert sorted(shuffled) == items
        assert items == list(range(20))

    def test_deterministic_for_seed(self) -> None:
        """Test that equal seeds give equal orders."""
        items = list(range(10))

        assert fisher_yates_shuffle(items, random.Random(1)) == fisher_yates_shuffle(
            items, random.Random(1)
        )

    def test_roughly_uniform(self) -> None:
        """Test that every element reaches the first slot."""
        rng = random.Random(3)
        first_positions = {fisher_yates_shuffle([0, 1, 2], rng)[0] for _ in range(200)}

        assert first_positions == {0, 1, 2}

    def test_empty_and_single(self) -> None:
        """Test degenerate inputs."""
        rng = random.Random(0)

        assert fisher_yates_shuffle([], rng) == []
        assert fisher_yates_shuffle(["only"], rng) == ["only"]


class TestFeedAggregator:
    """Tests for FeedAggregator."""

    def setup_method(self) -> None:
        """Reset metrics before each test."""
        AggregatorMetrics.reset()
        FetchMetrics.reset()

    @pytest.fixture
    def aggregator(self) -> FeedAggregator:
        """Create an aggregator with a seeded shuffle."""
        return FeedAggregator(rng=random.Random(42), clock=FakeClock())

    def test_timing_out_adapter_with_static_adapter(
        self, aggregator: FeedAggregator
    ) -> None:
        """Test a timing-out network adapter next to a three-item static one."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        fetcher, transport = make_fetcher(handler)
        sleep = RecordingSleep()
        adapter_a = SingleEndpointAdapter(fetcher, sleep)

        items = aggregator.aggregate([adapter_a, _static_b()])

        assert len(items) == 4
        assert len({item.id for item in items}) == 4
        fallback = [item for item in items if item.id == "A_fb"]
        assert len(fallback) == 1
        assert fallback[0].source == "A (Fallback)"
        assert sorted(item.title for item in items if item.source == "B") == [
            "B0",
            "B1",
            "B2",
        ]
        assert len(transport.requests) == 2
        assert sleep.calls == [0.5]

    def test_raising_adapter_replaced_by_fallback(
        self, aggregator: FeedAggregator
    ) -> None:
        """Test that one adapter raising does not affect the others."""
        result = aggregator.run([RaisingAdapter(), _static_b()])

        ids = {item.id for item in result.items}
        assert "broken_fb" in ids
        assert {"b_0", "b_1", "b_2"} <= ids
        report = result.sources[0]
        assert report.origin == ItemOrigin.FALLBACK
        assert report.error_class == SourceErrorClass.INTERNAL
        assert report.substituted is True
        assert result.sources[1].origin == ItemOrigin.STATIC

    @pytest.mark.parametrize(
        "outcome",
        [
            None,
            SourceOutcome.success("empty", [], ItemOrigin.LIVE),
        ],
    )
    def test_bad_outcomes_replaced_by_fallback(
        self, aggregator: FeedAggregator, outcome: object
    ) -> None:
        """Test that garbage or empty outcomes are treated as failures."""
        items = aggregator.aggregate([ReturningAdapter("empty", outcome)])

        assert [item.id for item in items] == ["empty_fb"]

    def test_colliding_ids_renamed(self, aggregator: FeedAggregator) -> None:
        """Test that ids colliding across adapters are made unique."""
        same = SourceOutcome.success("s", [_item("dup")], ItemOrigin.LIVE)

        result = aggregator.run(
            [ReturningAdapter("one", same), ReturningAdapter("two", same)]
        )

        assert sorted(item.id for item in result.items) == ["dup", "dup_2"]
        assert result.renamed_ids == 1

    def test_never_fewer_items_than_adapters(
        self, aggregator: FeedAggregator
    ) -> None:
        """Test that every adapter contributes at least one item."""
        adapters = [RaisingAdapter(f"r{i}") for i in range(5)]

        items = aggregator.aggregate(adapters)

        assert len(items) >= len(adapters)

    def test_no_adapters(self, aggregator: FeedAggregator) -> None:
        """Test that zero adapters produce an empty feed."""
        assert aggregator.aggregate([]) == []

    def test_deadline_substitutes_fallback(self) -> None:
        """Test that an adapter missing the deadline is replaced."""
        release = threading.Event()
        aggregator = FeedAggregator(deadline_seconds=0.05, clock=FakeClock())

        try:
            result = aggregator.run([BlockingAdapter(release), _static_b()])
        finally:
            release.set()

        ids = {item.id for item in result.items}
        assert "slow_fb" in ids
        assert "slow_live" not in ids
        assert result.sources[0].error_class == SourceErrorClass.TIMEOUT
        assert AggregatorMetrics.get_instance().deadline_exceeded_total == 1

    def test_adapters_run_concurrently(self) -> None:
        """Test that adapters overlap instead of running one after another."""
        barrier = threading.Barrier(2, timeout=2)

        class BarrierAdapter(BaseSourceAdapter):
            def fetch(self) -> SourceOutcome:
                barrier.wait()
                return SourceOutcome.success(
                    self.source_id, [_item(self.source_id)], ItemOrigin.LIVE
                )

            def fallback_items(self, now: datetime) -> list[FeedItem]:
                return [_item(f"{self.source_id}_fb")]

        aggregator = FeedAggregator(max_workers=2, clock=FakeClock())

        items = aggregator.aggregate([BarrierAdapter("p"), BarrierAdapter("q")])

        assert sorted(item.id for item in items) == ["p", "q"]

    def test_records_metrics(self, aggregator: FeedAggregator) -> None:
        """Test that origins and failures are counted."""
        aggregator.run([RaisingAdapter(), _static_b()])

        metrics = AggregatorMetrics.get_instance().to_dict()
        assert metrics["aggregations_total"] == 1
        assert metrics["adapter_failures_total"] == {"INTERNAL": 1}
        assert metrics["origins_total"] == {
            "broken": {"FALLBACK": 1},
            "b": {"STATIC": 1},
        }
