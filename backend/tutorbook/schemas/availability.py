"""Response models for availability endpoints."""

from datetime import date
from typing import Dict, List

from pydantic import Field

from ..core.enums import AvailabilityReason
from ..services.availability_service import TeacherDayAvailability, TeacherOptions
from ..utils.slots import TimeRange
from ..utils.time_helpers import time_to_string
from ._strict_base import StrictModel

DateType = date


class SlotResponse(StrictModel):
    """One bookable slot, as HH:MM:SS wall-clock times in the admin timezone."""

    start_time: str
    end_time: str
    label: str

    @classmethod
    def from_range(cls, slot: TimeRange) -> "SlotResponse":
        return cls(
            start_time=time_to_string(slot.start),
            end_time=time_to_string(slot.end),
            label=slot.label(),
        )


class TeacherDayAvailabilityResponse(StrictModel):
    """Free slots of one teacher on one day."""

    teacher_id: str
    teacher_name: str
    date: DateType
    is_primary: bool
    available: bool
    reason: AvailabilityReason
    slots: List[SlotResponse] = Field(default_factory=list)

    @classmethod
    def from_result(cls, result: TeacherDayAvailability) -> "TeacherDayAvailabilityResponse":
        return cls(
            teacher_id=result.teacher_id,
            teacher_name=result.teacher_name,
            date=result.day,
            is_primary=result.is_primary,
            available=result.available,
            reason=result.reason,
            slots=[SlotResponse.from_range(slot) for slot in result.slots],
        )


class TeacherAvailableDatesResponse(StrictModel):
    """Per-date availability of a single teacher."""

    teacher_id: str
    start_date: date
    end_date: date
    dates: Dict[date, bool]


class AvailableDatesResponse(StrictModel):
    """Per-date, per-teacher availability detail."""

    start_date: date
    end_date: date
    dates: Dict[date, List[TeacherDayAvailabilityResponse]]


class StudentTeacherOptionsResponse(StrictModel):
    """Teachers a student may book on one day."""

    student_id: str
    date: DateType
    restricted: bool = Field(
        description="True when the student may only book assigned teachers"
    )
    teachers: List[TeacherDayAvailabilityResponse] = Field(default_factory=list)

    @classmethod
    def from_result(cls, result: TeacherOptions) -> "StudentTeacherOptionsResponse":
        return cls(
            student_id=result.student_id,
            date=result.day,
            restricted=result.restricted,
            teachers=[TeacherDayAvailabilityResponse.from_result(t) for t in result.teachers],
        )
