"""Shared, deterministic timestamps for tests."""

from datetime import UTC, datetime, timedelta


# Fixed timestamp so cache ages and createdAt values are deterministic.
FIXED_NOW = datetime(2017, 6, 13, 0, 0, 0, tzinfo=UTC)


class FakeClock:
    """Manually advanced clock usable wherever a ``Clock`` is expected."""

    def __init__(self, now: datetime = FIXED_NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta: timedelta) -> None:
        self.now = self.now + delta


class RecordingSleep:
    """No-op sleep that records requested delays in seconds."""

    def __init__(self) -> None:
        self.calls: list[float] = []

    def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)
