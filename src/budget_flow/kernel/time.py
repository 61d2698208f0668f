"""
Injectable clock

Expense and income timestamps, and the month a session opens on, come from
a TimeProvider so tests can pin them.
"""

from datetime import datetime, timezone
from typing import Protocol


class TimeProvider(Protocol):
    def now(self) -> datetime:
        """Return current UTC datetime"""
        ...


class RealTimeProvider:
    """System clock, UTC"""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class FixedTimeProvider:
    """
    Clock pinned to one instant until moved with set_time

    Defaults to mid-June 2025 so a fresh session opens on "2025-06".
    """

    def __init__(self, initial_time: datetime | None = None) -> None:
        self._current_time = initial_time or datetime(2025, 6, 15, 12, 0, tzinfo=timezone.utc)

    def now(self) -> datetime:
        return self._current_time

    def set_time(self, dt: datetime) -> None:
        self._current_time = dt


def month_id_for(dt: datetime) -> str:
    """Return the "YYYY-MM" id of the calendar month containing dt"""
    return f"{dt.year:04d}-{dt.month:02d}"
