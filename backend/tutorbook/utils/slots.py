# backend/tutorbook/utils/slots.py
"""
Pure slot arithmetic for teacher availability.

Everything here works on wall-clock times of a single day, in the zone the
windows were authored in. No database access; the availability service
gathers the inputs and calls into this module.
"""

from dataclasses import dataclass, field
from datetime import date, time
from typing import Iterable, List, Mapping, Optional, Sequence, Tuple

from ..core.enums import AvailabilityReason, Weekday
from .time_helpers import minutes_range, time_from_minutes


@dataclass(frozen=True, order=True)
class TimeRange:
    """Half-open wall-clock interval [start, end)."""

    start: time
    end: time

    def minutes(self) -> Tuple[int, int]:
        return minutes_range(self.start, self.end)

    def overlaps(self, other: "TimeRange") -> bool:
        start, end = self.minutes()
        other_start, other_end = other.minutes()
        return start < other_end and end > other_start

    def label(self) -> str:
        return f"{self.start.strftime('%H:%M')}-{self.end.strftime('%H:%M')}"


@dataclass
class DayAvailability:
    """Free slots of one teacher on one day, plus the reason code."""

    day: date
    reason: AvailabilityReason
    slots: List[TimeRange] = field(default_factory=list)

    @property
    def available(self) -> bool:
        return self.reason == AvailabilityReason.AVAILABLE


def _as_ranges(items: Iterable[object]) -> List[TimeRange]:
    ranges: List[TimeRange] = []
    for item in items:
        if isinstance(item, TimeRange):
            ranges.append(item)
        else:
            start, end = item  # type: ignore[misc]
            ranges.append(TimeRange(start, end))
    return ranges


def free_slots(
    work_windows: Sequence[object],
    break_windows: Sequence[object],
    booked: Sequence[object],
    slot_duration: int = 60,
    step: int = 30,
) -> List[TimeRange]:
    """
    Enumerate free slots of ``slot_duration`` minutes.

    For each work window a cursor starts at the window's start and advances
    by ``step`` minutes while ``cursor + slot_duration`` still fits. A
    candidate is free iff it overlaps neither a booked interval nor a break
    (half-open test: ``a.start < b.end and a.end > b.start``).

    Args:
        work_windows: TimeRange or (start, end) tuples
        break_windows: TimeRange or (start, end) tuples
        booked: TimeRange or (start, end) tuples
        slot_duration: Slot length in minutes
        step: Cursor granularity in minutes

    Returns:
        Free slots in ascending order, without duplicates
    """
    if slot_duration <= 0 or step <= 0:
        raise ValueError("slot_duration and step must be positive")

    blocked = _as_ranges(booked) + _as_ranges(break_windows)
    found: List[TimeRange] = []
    seen = set()

    for window in sorted(_as_ranges(work_windows)):
        window_start, window_end = window.minutes()
        cursor = window_start
        while cursor + slot_duration <= window_end:
            candidate = TimeRange(
                time_from_minutes(cursor), time_from_minutes(cursor + slot_duration)
            )
            if not any(candidate.overlaps(b) for b in blocked):
                key = (cursor, cursor + slot_duration)
                if key not in seen:
                    seen.add(key)
                    found.append(candidate)
            cursor += step

    return sorted(found, key=lambda r: r.minutes())


def evaluate_day(
    day: date,
    working_days: Iterable[Weekday],
    work_hours: Mapping[Weekday, Sequence[object]],
    break_hours: Mapping[Weekday, Sequence[object]],
    booked: Sequence[object],
    slot_duration: int = 60,
    step: int = 30,
) -> DayAvailability:
    """
    Free slots for one day with a reason code.

    A day outside ``working_days`` (or without work windows) is
    ``non_working_day``; a working day whose windows are fully taken is
    ``no_slots_available``.
    """
    weekday = Weekday.from_date(day)
    windows = work_hours.get(weekday) or []
    if weekday not in set(working_days) or not windows:
        return DayAvailability(day=day, reason=AvailabilityReason.NON_WORKING_DAY)

    slots = free_slots(
        windows,
        break_hours.get(weekday) or [],
        booked,
        slot_duration=slot_duration,
        step=step,
    )
    if not slots:
        return DayAvailability(day=day, reason=AvailabilityReason.NO_SLOTS_AVAILABLE)
    return DayAvailability(day=day, reason=AvailabilityReason.AVAILABLE, slots=slots)


def first_overlap(candidate: TimeRange, booked: Sequence[object]) -> Optional[TimeRange]:
    """Return the first booked interval that overlaps ``candidate``, if any."""
    for other in _as_ranges(booked):
        if candidate.overlaps(other):
            return other
    return None
