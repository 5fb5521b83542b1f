"""Response models for the lifecycle sweep and its diagnostics."""

from datetime import date, datetime, time
from typing import List, Optional

from pydantic import Field

from ..monitoring.time_check_sink import TimeCheckEvent
from ..services.lifecycle_service import SweepResult
from ._strict_base import StrictModel


class SweepResultResponse(StrictModel):
    """Counters of one sweep run."""

    started_at: datetime
    finished_at: Optional[datetime] = None
    candidates: int
    classes_completed: int
    bookings_attended: int
    bookings_deferred: int = Field(
        description="Scheduled bookings whose class has not ended yet for their student"
    )
    packages_recomputed: int
    packages_completed: int
    failed_units: int
    failed_class_ids: List[str] = Field(default_factory=list)
    duration_seconds: float

    @classmethod
    def from_result(cls, result: SweepResult) -> "SweepResultResponse":
        return cls(**result.to_dict())


class TimeCheckEventResponse(StrictModel):
    checked_at: datetime
    class_id: str
    booking_id: Optional[str] = None
    student_id: Optional[str] = None
    class_date: date
    end_time: time
    source_timezone: str
    observer_timezone: str
    observer_now: datetime
    is_past: bool

    @classmethod
    def from_event(cls, event: TimeCheckEvent) -> "TimeCheckEventResponse":
        return cls(
            checked_at=event.checked_at,
            class_id=event.class_id,
            booking_id=event.booking_id,
            student_id=event.student_id,
            class_date=event.class_date,
            end_time=event.end_time,
            source_timezone=event.source_timezone,
            observer_timezone=event.observer_timezone,
            observer_now=event.observer_now,
            is_past=event.is_past,
        )


class TimeCheckListResponse(StrictModel):
    capacity: int
    events: List[TimeCheckEventResponse]
