"""
Injectable clock.

Project and step-document timestamps are taken from a TimeProvider so
tests can pin "now" and move it forward between edits.
"""

from datetime import datetime, timedelta, timezone
from typing import Protocol

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class TimeProvider(Protocol):
    def now(self) -> datetime:
        """Current time, timezone-aware UTC"""
        ...


class RealTimeProvider:
    """Wall clock"""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class TestTimeProvider:
    """Frozen clock that only moves when a test moves it"""

    __test__ = False  # not a pytest test class

    def __init__(self, initial_time: datetime | None = None) -> None:
        self._now = initial_time or EPOCH

    def now(self) -> datetime:
        return self._now

    def set_time(self, dt: datetime) -> None:
        self._now = dt

    def advance(self, delta: timedelta) -> None:
        self._now += delta

    def advance_seconds(self, seconds: int) -> None:
        self.advance(timedelta(seconds=seconds))

    def advance_days(self, days: int) -> None:
        self.advance(timedelta(days=days))
