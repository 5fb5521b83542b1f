# backend/tutorbook/schemas/reschedule.py
"""
Request and response models for reschedules.

A new slot is either an existing class (``class_id``) or a wall-clock
``date`` + ``start_time`` in the admin timezone; ``end_time`` defaults to
one class length after the start.
"""

from datetime import date, datetime, time
from typing import Any, List, Optional

from pydantic import Field, field_validator, model_validator

from ..core.constants import MAX_REASON_LENGTH
from ..core.enums import BookingStatus, ClassStatus, PackageStatus, RescheduleStatus
from ..services.reschedule_service import NewSlot, RescheduleResult, ReversalResult
from ..utils.time_helpers import minutes_range, string_to_time
from ._strict_base import ORMResponseModel, StrictModel, StrictRequestModel

DateType = date


class NewSlotRequest(StrictRequestModel):
    """Target of a reschedule."""

    class_id: Optional[str] = None
    date: Optional[DateType] = None
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    title: Optional[str] = Field(default=None, max_length=200)

    @field_validator("start_time", "end_time", mode="before")
    @classmethod
    def _parse_time(cls, v: Any) -> Any:
        if isinstance(v, str):
            return string_to_time(v)
        return v

    @model_validator(mode="after")
    def _validate_target(self) -> "NewSlotRequest":
        if self.class_id:
            return self
        if self.date is None or self.start_time is None:
            raise ValueError("Provide either class_id or date and start_time")
        if self.end_time is not None:
            start_min, end_min = minutes_range(self.start_time, self.end_time)
            if end_min <= start_min:
                raise ValueError("End time must be after start time")
        return self

    def to_slot(self) -> NewSlot:
        return NewSlot(
            date=self.date,
            start_time=self.start_time,
            end_time=self.end_time,
            class_id=self.class_id,
            title=self.title,
        )


class RescheduleCreate(StrictRequestModel):
    """Body of POST /reschedules."""

    student_id: str
    old_class_id: str
    new_slot: NewSlotRequest
    reason: Optional[str] = Field(default=None, max_length=MAX_REASON_LENGTH)
    teacher_id: Optional[str] = Field(
        default=None, description="Teacher of the new slot; defaults to the current teacher"
    )


class RescheduleCancel(StrictRequestModel):
    """Optional body of the admin reversal."""

    note: Optional[str] = Field(default=None, max_length=MAX_REASON_LENGTH)


class BookingSummary(ORMResponseModel):
    id: str
    student_id: str
    class_id: str
    student_package_id: str
    status: BookingStatus
    can_reschedule: bool
    original_class_id: Optional[str] = None
    rescheduled_date: Optional[date] = None
    notes: Optional[str] = None


class ClassSummary(ORMResponseModel):
    id: str
    title: str
    date: DateType
    start_time: time
    end_time: time
    teacher_id: Optional[str] = None
    status: ClassStatus
    timezone: str


class RescheduleRecordResponse(ORMResponseModel):
    """One entry of the append-only reschedule log."""

    id: str
    student_id: str
    old_class_id: str
    new_class_id: str
    old_booking_id: str
    new_booking_id: str
    student_package_id: str
    reason: Optional[str] = None
    different_teacher: bool
    old_teacher_id: Optional[str] = None
    new_teacher_id: Optional[str] = None
    new_class_created: bool
    status: RescheduleStatus
    rescheduled_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    cancelled_by: Optional[str] = None


class PackageCreditsResponse(ORMResponseModel):
    id: str
    status: PackageStatus
    remaining_classes: int
    used_reschedules: int
    max_reschedules: int


class RescheduleResultResponse(StrictModel):
    """Outcome of a successful reschedule."""

    reschedule: RescheduleRecordResponse
    old_booking: BookingSummary
    new_booking: BookingSummary
    new_class: ClassSummary
    different_teacher: bool

    @classmethod
    def from_result(cls, result: RescheduleResult) -> "RescheduleResultResponse":
        return cls(
            reschedule=RescheduleRecordResponse.model_validate(result.record),
            old_booking=BookingSummary.model_validate(result.old_booking),
            new_booking=BookingSummary.model_validate(result.new_booking),
            new_class=ClassSummary.model_validate(result.new_class),
            different_teacher=result.different_teacher,
        )


class ReversalResultResponse(StrictModel):
    """Outcome of an admin reschedule cancellation."""

    reschedule: RescheduleRecordResponse
    old_booking: BookingSummary
    new_booking: BookingSummary
    student_package: PackageCreditsResponse
    new_class_cancelled: bool

    @classmethod
    def from_result(cls, result: ReversalResult) -> "ReversalResultResponse":
        return cls(
            reschedule=RescheduleRecordResponse.model_validate(result.record),
            old_booking=BookingSummary.model_validate(result.old_booking),
            new_booking=BookingSummary.model_validate(result.new_booking),
            student_package=PackageCreditsResponse.model_validate(result.student_package),
            new_class_cancelled=result.new_class_cancelled,
        )


class RescheduleListResponse(StrictModel):
    items: List[RescheduleRecordResponse]
    total: int
