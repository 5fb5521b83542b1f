# backend/tutorbook/schemas/schedule.py
"""
Weekly schedule schemas.

Teachers' work and break hours arrive as JSON. They are parsed here into a
strongly typed ``Dict[Weekday, List[TimeRange]]`` and rejected if a range is
inverted or if break ranges of a day overlap each other. Nothing inside the
engine reads the raw JSON.
"""

import datetime
import json
from typing import Any, Dict, List, Set

from pydantic import Field, field_validator, model_validator

from ..core.constants import DEFAULT_WORKING_DAYS
from ..core.enums import Weekday
from ..utils.slots import TimeRange
from ..utils.time_helpers import minutes_range, string_to_time
from ._strict_base import StrictModel

TimeType = datetime.time


class TimeWindow(StrictModel):
    """One wall-clock range inside a day."""

    start: TimeType
    end: TimeType

    @field_validator("start", "end", mode="before")
    @classmethod
    def _parse_time(cls, v: Any) -> Any:
        if isinstance(v, str):
            return string_to_time(v)
        return v

    @model_validator(mode="after")
    def _validate_order(self) -> "TimeWindow":
        start_min, end_min = minutes_range(self.start, self.end)
        if start_min >= end_min:
            raise ValueError("End time must be after start time")
        return self

    def as_range(self) -> TimeRange:
        return TimeRange(self.start, self.end)


def _normalize_day_key(key: Any) -> Any:
    if isinstance(key, str):
        return key.strip().lower()
    return key


class WeeklySchedule(StrictModel):
    """Validated weekly schedule of a teacher."""

    work_hours: Dict[Weekday, List[TimeWindow]] = Field(default_factory=dict)
    break_hours: Dict[Weekday, List[TimeWindow]] = Field(default_factory=dict)
    working_days: Set[Weekday] = Field(
        default_factory=lambda: {Weekday(d) for d in DEFAULT_WORKING_DAYS}
    )

    @field_validator("work_hours", "break_hours", mode="before")
    @classmethod
    def _normalize_keys(cls, v: Any) -> Any:
        if v is None:
            return {}
        if isinstance(v, str):
            v = json.loads(v or "{}")
        if isinstance(v, dict):
            return {_normalize_day_key(k): (windows or []) for k, windows in v.items()}
        return v

    @field_validator("working_days", mode="before")
    @classmethod
    def _normalize_days(cls, v: Any) -> Any:
        if v is None:
            return {Weekday(d) for d in DEFAULT_WORKING_DAYS}
        return [_normalize_day_key(d) for d in v]

    @field_validator("break_hours")
    @classmethod
    def _breaks_do_not_overlap(
        cls, v: Dict[Weekday, List[TimeWindow]]
    ) -> Dict[Weekday, List[TimeWindow]]:
        for day, windows in v.items():
            ranges = sorted(w.as_range() for w in windows)
            for previous, current in zip(ranges, ranges[1:]):
                if previous.overlaps(current):
                    raise ValueError(
                        f"Break ranges overlap on {day.value}: "
                        f"{previous.label()} and {current.label()}"
                    )
        return v

    def work_ranges(self) -> Dict[Weekday, List[TimeRange]]:
        return {day: [w.as_range() for w in windows] for day, windows in self.work_hours.items()}

    def break_ranges(self) -> Dict[Weekday, List[TimeRange]]:
        return {day: [w.as_range() for w in windows] for day, windows in self.break_hours.items()}

    @classmethod
    def from_teacher(cls, teacher: Any) -> "WeeklySchedule":
        return cls.model_validate(
            {
                "work_hours": teacher.work_hours,
                "break_hours": teacher.break_hours,
                "working_days": teacher.working_days,
            }
        )
