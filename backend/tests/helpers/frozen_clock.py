"""Deterministic clock for time-dependent services."""

from datetime import date, datetime, timedelta, timezone

# Monday 2025-03-03, 08:00 in America/Caracas (UTC-4, no DST)
MONDAY = date(2025, 3, 3)
NOW = datetime(2025, 3, 3, 12, 0, tzinfo=timezone.utc)


def caracas(day: date, hour: int, minute: int = 0) -> datetime:
    """UTC instant of a wall-clock time in America/Caracas."""
    return datetime(day.year, day.month, day.day, hour, minute, tzinfo=timezone.utc) + timedelta(
        hours=4
    )


class FrozenClock:
    """Injectable clock that only moves when told to."""

    def __init__(self, now: datetime = NOW):
        self.current = now

    def __call__(self) -> datetime:
        return self.current

    def set(self, now: datetime) -> None:
        self.current = now

    def advance(self, **delta: float) -> None:
        self.current = self.current + timedelta(**delta)
