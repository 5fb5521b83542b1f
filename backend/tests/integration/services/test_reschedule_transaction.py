# backend/tests/integration/services/test_reschedule_transaction.py
"""
Reschedule transaction and its admin reversal.

Every rejected reschedule must leave the database exactly as it was; a
reversal must restore the pre-reschedule state.
"""

from dataclasses import dataclass
from datetime import date, time, timedelta
from unittest.mock import MagicMock, patch

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from tests.factories.scheduling_builders import SchedulingBuilder
from tests.helpers.frozen_clock import MONDAY, FrozenClock
from tutorbook.core.enums import BookingStatus, ClassStatus, PackageStatus, RescheduleStatus
from tutorbook.core.exceptions import (
    ConcurrentModificationException,
    CreditExhaustedException,
    ForbiddenException,
    NoActivePackageException,
    NotEligibleException,
    NotFoundException,
    ServiceUnavailableException,
    SlotUnavailableException,
    TooLateToRescheduleException,
    ValidationException,
)
from tutorbook.models import (
    Booking,
    ClassSession,
    RescheduleRecord,
    Student,
    StudentPackage,
    Teacher,
)
from tutorbook.services.reschedule_service import NewSlot, RescheduleService

WEDNESDAY = MONDAY + timedelta(days=2)
THURSDAY = MONDAY + timedelta(days=3)


@dataclass
class Scenario:
    teacher: Teacher
    student: Student
    package: StudentPackage
    old_class: ClassSession
    booking: Booking


@pytest.fixture
def service(db: Session, clock: FrozenClock) -> RescheduleService:
    return RescheduleService(db, clock)


def _scenario(
    builder: SchedulingBuilder,
    *,
    max_reschedules: int = 2,
    used_reschedules: int = 0,
    class_day: date = WEDNESDAY,
    start: time = time(10, 0),
    **student_overrides,
) -> Scenario:
    teacher = builder.teacher()
    student = builder.student(**student_overrides)
    builder.assign(teacher, student)
    package = builder.package(
        student, max_reschedules=max_reschedules, used_reschedules=used_reschedules
    )
    end = time(start.hour + 1, start.minute)
    old_class = builder.class_session(class_day, start, end, teacher=teacher)
    booking = builder.booking(student, old_class, package)
    return Scenario(teacher, student, package, old_class, booking)


def _thursday_slot(hour: int = 10) -> NewSlot:
    return NewSlot(date=THURSDAY, start_time=time(hour, 0), end_time=time(hour + 1, 0))


def _snapshot(db: Session) -> dict:
    """Comparable view of every scheduling row."""
    db.expire_all()
    return {
        "bookings": sorted(
            (b.id, b.class_id, b.status, b.can_reschedule, b.rescheduled_date)
            for b in db.query(Booking).all()
        ),
        "classes": sorted((c.id, c.status) for c in db.query(ClassSession).all()),
        "packages": sorted(
            (p.id, p.used_reschedules, p.remaining_classes, p.status)
            for p in db.query(StudentPackage).all()
        ),
        "records": db.query(RescheduleRecord).count(),
    }


class TestReschedule:
    def test_moves_booking_to_new_class(
        self, service: RescheduleService, builder: SchedulingBuilder, db: Session
    ):
        s = _scenario(builder)

        result = service.reschedule(s.student.id, s.old_class.id, _thursday_slot(), "Doctor visit")

        assert result.old_booking.status == BookingStatus.RESCHEDULED
        assert result.old_booking.can_reschedule is False
        assert result.old_booking.rescheduled_date == THURSDAY
        assert "Rescheduled to class #" in result.old_booking.notes

        assert result.new_booking.status == BookingStatus.SCHEDULED
        assert result.new_booking.can_reschedule is False
        assert result.new_booking.original_class_id == s.old_class.id
        assert result.new_booking.student_package_id == s.package.id

        assert result.new_class.date == THURSDAY
        assert result.new_class.teacher_id == s.teacher.id
        assert result.new_class.timezone == "America/Caracas"
        assert result.different_teacher is False

        assert result.record.status == RescheduleStatus.CONFIRMED
        assert result.record.new_class_created is True
        assert result.record.reason == "Doctor visit"

        db.expire_all()
        package = db.get(StudentPackage, s.package.id)
        assert package.used_reschedules == 1
        assert package.remaining_classes == 1
        assert package.status == PackageStatus.ACTIVE

    def test_reuses_existing_slot_for_same_teacher(
        self, service: RescheduleService, builder: SchedulingBuilder, db: Session
    ):
        s = _scenario(builder)
        existing = builder.class_session(THURSDAY, time(10, 0), time(11, 0), teacher=s.teacher)

        result = service.reschedule(s.student.id, s.old_class.id, _thursday_slot())

        assert result.new_class.id == existing.id
        assert result.record.new_class_created is False
        assert db.query(ClassSession).count() == 2

    def test_targets_class_by_id(self, service: RescheduleService, builder: SchedulingBuilder):
        s = _scenario(builder)
        target = builder.class_session(THURSDAY, time(15, 0), time(16, 0), teacher=s.teacher)

        result = service.reschedule(s.student.id, s.old_class.id, NewSlot(class_id=target.id))

        assert result.new_class.id == target.id

    def test_default_end_time_uses_class_duration(
        self, service: RescheduleService, builder: SchedulingBuilder
    ):
        s = _scenario(builder)
        result = service.reschedule(
            s.student.id, s.old_class.id, NewSlot(date=THURSDAY, start_time=time(15, 30))
        )
        assert result.new_class.end_time == time(16, 30)

    def test_credit_exhausted_leaves_rows_unchanged(
        self, service: RescheduleService, builder: SchedulingBuilder, db: Session
    ):
        s = _scenario(builder, max_reschedules=1, used_reschedules=1)
        before = _snapshot(db)

        with pytest.raises(CreditExhaustedException):
            service.reschedule(s.student.id, s.old_class.id, _thursday_slot())

        assert _snapshot(db) == before

    def test_too_late_when_class_starts_within_notice(
        self, service: RescheduleService, builder: SchedulingBuilder, db: Session
    ):
        """The clock reads 08:00 in the admin zone; the class starts at 09:00."""
        s = _scenario(builder, class_day=MONDAY, start=time(9, 0))
        before = _snapshot(db)

        with pytest.raises(TooLateToRescheduleException) as exc_info:
            service.reschedule(s.student.id, s.old_class.id, _thursday_slot())

        assert exc_info.value.details["hours_until_start"] == pytest.approx(1.0)
        assert _snapshot(db) == before

    def test_teacher_busy_slot_is_unavailable(
        self, service: RescheduleService, builder: SchedulingBuilder, db: Session
    ):
        s = _scenario(builder)
        builder.activity(s.teacher, THURSDAY, time(10, 30), time(11, 30))
        before = _snapshot(db)

        with pytest.raises(SlotUnavailableException) as exc_info:
            service.reschedule(s.student.id, s.old_class.id, _thursday_slot())

        assert exc_info.value.details["reason"] == "teacher_busy"
        assert _snapshot(db) == before

    def test_full_class_is_unavailable(
        self, service: RescheduleService, builder: SchedulingBuilder
    ):
        s = _scenario(builder)
        target = builder.class_session(THURSDAY, time(15, 0), time(16, 0), teacher=s.teacher)
        other = builder.student()
        builder.booking(other, target, builder.package(other))

        with pytest.raises(SlotUnavailableException) as exc_info:
            service.reschedule(s.student.id, s.old_class.id, NewSlot(class_id=target.id))

        assert exc_info.value.details["reason"] == "class_full"

    def test_cancelled_target_class_is_unavailable(
        self, service: RescheduleService, builder: SchedulingBuilder
    ):
        s = _scenario(builder)
        target = builder.class_session(
            THURSDAY, time(15, 0), time(16, 0), teacher=s.teacher, status=ClassStatus.CANCELLED
        )
        with pytest.raises(SlotUnavailableException):
            service.reschedule(s.student.id, s.old_class.id, NewSlot(class_id=target.id))

    def test_new_slot_in_the_past(self, service: RescheduleService, builder: SchedulingBuilder):
        s = _scenario(builder)
        with pytest.raises(ValidationException):
            service.reschedule(
                s.student.id,
                s.old_class.id,
                NewSlot(date=MONDAY - timedelta(days=1), start_time=time(10, 0)),
            )

    def test_rescheduled_booking_cannot_move_again(
        self, service: RescheduleService, builder: SchedulingBuilder
    ):
        s = _scenario(builder)
        result = service.reschedule(s.student.id, s.old_class.id, _thursday_slot())

        with pytest.raises(NotEligibleException, match="cannot be rescheduled again"):
            service.reschedule(s.student.id, result.new_class.id, _thursday_slot(15))

    def test_old_class_without_booking(
        self, service: RescheduleService, builder: SchedulingBuilder
    ):
        s = _scenario(builder)
        stranger = builder.student()
        with pytest.raises(NotEligibleException):
            service.reschedule(stranger.id, s.old_class.id, _thursday_slot())

    def test_no_active_package(
        self, service: RescheduleService, builder: SchedulingBuilder, db: Session
    ):
        s = _scenario(builder)
        s.package.status = PackageStatus.CANCELLED
        db.commit()

        with pytest.raises(NoActivePackageException):
            service.reschedule(s.student.id, s.old_class.id, _thursday_slot())

    def test_restricted_student_cannot_switch_teacher(
        self, service: RescheduleService, builder: SchedulingBuilder
    ):
        s = _scenario(builder)
        other_teacher = builder.teacher()

        with pytest.raises(ForbiddenException) as exc_info:
            service.reschedule(
                s.student.id, s.old_class.id, _thursday_slot(), teacher_id=other_teacher.id
            )

        assert exc_info.value.code == "DIFFERENT_TEACHER_NOT_ALLOWED"

    def test_flexible_student_switches_teacher(
        self, service: RescheduleService, builder: SchedulingBuilder
    ):
        s = _scenario(builder, allow_different_teacher=True)
        other_teacher = builder.teacher()

        result = service.reschedule(
            s.student.id, s.old_class.id, _thursday_slot(), teacher_id=other_teacher.id
        )

        assert result.different_teacher is True
        assert result.new_class.teacher_id == other_teacher.id
        assert result.record.old_teacher_id == s.teacher.id
        assert result.record.new_teacher_id == other_teacher.id
        assert "with a different teacher" in result.new_booking.notes

    def test_restricted_student_cannot_pick_other_teachers_class(
        self, service: RescheduleService, builder: SchedulingBuilder, db: Session
    ):
        s = _scenario(builder)
        other_teacher = builder.teacher()
        target = builder.class_session(THURSDAY, time(15, 0), time(16, 0), teacher=other_teacher)
        before = _snapshot(db)

        with pytest.raises(ForbiddenException) as exc_info:
            service.reschedule(s.student.id, s.old_class.id, NewSlot(class_id=target.id))

        assert exc_info.value.code == "DIFFERENT_TEACHER_NOT_ALLOWED"
        assert exc_info.value.details["teacher_id"] == other_teacher.id
        assert _snapshot(db) == before

    def test_class_by_id_is_checked_against_its_own_teacher(
        self, service: RescheduleService, builder: SchedulingBuilder, db: Session
    ):
        s = _scenario(builder, allow_different_teacher=True)
        other_teacher = builder.teacher()
        busy = builder.class_session(THURSDAY, time(10, 0), time(11, 0), teacher=other_teacher)
        classmate = builder.student()
        builder.booking(classmate, busy, builder.package(classmate))
        target = builder.class_session(THURSDAY, time(10, 30), time(11, 30), teacher=other_teacher)
        before = _snapshot(db)

        with pytest.raises(SlotUnavailableException) as exc_info:
            service.reschedule(s.student.id, s.old_class.id, NewSlot(class_id=target.id))

        assert exc_info.value.details["reason"] == "teacher_busy"
        assert _snapshot(db) == before

    def test_class_by_id_sets_the_new_teacher(
        self, service: RescheduleService, builder: SchedulingBuilder
    ):
        s = _scenario(builder, allow_different_teacher=True)
        other_teacher = builder.teacher()
        target = builder.class_session(THURSDAY, time(15, 0), time(16, 0), teacher=other_teacher)

        result = service.reschedule(s.student.id, s.old_class.id, NewSlot(class_id=target.id))

        assert result.different_teacher is True
        assert result.record.new_teacher_id == other_teacher.id

    def test_teacher_id_must_match_chosen_class(
        self, service: RescheduleService, builder: SchedulingBuilder
    ):
        s = _scenario(builder, allow_different_teacher=True)
        other_teacher = builder.teacher()
        target = builder.class_session(THURSDAY, time(15, 0), time(16, 0), teacher=other_teacher)

        with pytest.raises(ValidationException, match="belongs to a different teacher"):
            service.reschedule(
                s.student.id,
                s.old_class.id,
                NewSlot(class_id=target.id),
                teacher_id=s.teacher.id,
            )


class TestCalendarLock:
    def test_teacher_locked_before_slot_lookup(
        self, service: RescheduleService, builder: SchedulingBuilder
    ):
        s = _scenario(builder)
        calls = []
        lock_calendar = service.teacher_repository.lock_calendar
        find_slot = service.class_repository.find_slot

        def _lock(teacher_id):
            calls.append(("lock", teacher_id))
            return lock_calendar(teacher_id)

        def _find(*args, **kwargs):
            calls.append(("find_slot", kwargs["teacher_id"]))
            return find_slot(*args, **kwargs)

        with patch.object(service.teacher_repository, "lock_calendar", side_effect=_lock):
            with patch.object(service.class_repository, "find_slot", side_effect=_find):
                service.reschedule(s.student.id, s.old_class.id, _thursday_slot())

        assert calls == [("lock", s.teacher.id), ("find_slot", s.teacher.id)]

    def test_lock_follows_the_chosen_class(
        self, service: RescheduleService, builder: SchedulingBuilder
    ):
        s = _scenario(builder, allow_different_teacher=True)
        other_teacher = builder.teacher()
        target = builder.class_session(THURSDAY, time(15, 0), time(16, 0), teacher=other_teacher)

        with patch.object(
            service.teacher_repository,
            "lock_calendar",
            wraps=service.teacher_repository.lock_calendar,
        ) as lock:
            service.reschedule(s.student.id, s.old_class.id, NewSlot(class_id=target.id))

        lock.assert_called_once_with(other_teacher.id)

    def test_second_writer_sees_the_first_writers_class(
        self, service: RescheduleService, builder: SchedulingBuilder, db: Session
    ):
        first = _scenario(builder)
        second_student = builder.student()
        builder.assign(first.teacher, second_student)
        package = builder.package(second_student)
        old_class = builder.class_session(
            WEDNESDAY, time(14, 0), time(15, 0), teacher=first.teacher
        )
        builder.booking(second_student, old_class, package)

        service.reschedule(first.student.id, first.old_class.id, _thursday_slot())
        before = _snapshot(db)

        with pytest.raises(SlotUnavailableException) as exc_info:
            service.reschedule(second_student.id, old_class.id, _thursday_slot())

        assert exc_info.value.details["reason"] == "class_full"
        assert _snapshot(db) == before


class TestRetryAndErrors:
    def test_stale_data_is_retried_once(
        self, service: RescheduleService, builder: SchedulingBuilder
    ):
        s = _scenario(builder)
        outcome = MagicMock()
        with patch.object(
            service, "_reschedule_once", side_effect=[StaleDataError("version mismatch"), outcome]
        ) as body:
            result = service.reschedule(s.student.id, s.old_class.id, _thursday_slot())

        assert result is outcome
        assert body.call_count == 2

    def test_persistent_conflict_surfaces(
        self, service: RescheduleService, builder: SchedulingBuilder
    ):
        s = _scenario(builder)
        with patch.object(
            service, "_reschedule_once", side_effect=StaleDataError("version mismatch")
        ) as body:
            with pytest.raises(ConcurrentModificationException):
                service.reschedule(s.student.id, s.old_class.id, _thursday_slot())

        assert body.call_count == 2

    def test_unique_violation_means_slot_taken(
        self, service: RescheduleService, builder: SchedulingBuilder
    ):
        s = _scenario(builder)
        error = IntegrityError("INSERT INTO bookings", {}, Exception("UNIQUE constraint failed"))
        with patch.object(service, "_reschedule_once", side_effect=error):
            with pytest.raises(SlotUnavailableException) as exc_info:
                service.reschedule(s.student.id, s.old_class.id, _thursday_slot())

        assert exc_info.value.details == {"reason": "already_booked"}

    def test_datastore_outage_rolls_back(
        self, service: RescheduleService, builder: SchedulingBuilder, db: Session
    ):
        s = _scenario(builder)
        before = _snapshot(db)
        error = OperationalError("SELECT", {}, Exception("server closed the connection"))
        with patch.object(service.booking_repository, "get_student_booking", side_effect=error):
            with pytest.raises(ServiceUnavailableException):
                service.reschedule(s.student.id, s.old_class.id, _thursday_slot())

        assert _snapshot(db) == before


class TestCancelReschedule:
    def test_reversal_is_exact_inverse(
        self, service: RescheduleService, builder: SchedulingBuilder, db: Session
    ):
        s = _scenario(builder)
        before = _snapshot(db)
        result = service.reschedule(s.student.id, s.old_class.id, _thursday_slot())

        reversal = service.cancel_reschedule(result.record.id, cancelled_by="admin-1")

        assert reversal.new_class_cancelled is True
        assert reversal.record.status == RescheduleStatus.CANCELLED
        assert reversal.record.cancelled_by == "admin-1"
        assert reversal.record.cancelled_at is not None
        assert reversal.new_booking.status == BookingStatus.CANCELLED

        after = _snapshot(db)
        new_booking_id = result.new_booking.id
        new_class_id = result.new_class.id
        # Old rows are restored; the additions are closed out, never deleted
        assert [b for b in after["bookings"] if b[0] != new_booking_id] == before["bookings"]
        assert [c for c in after["classes"] if c[0] != new_class_id] == before["classes"]
        assert after["packages"] == before["packages"]
        assert (new_class_id, ClassStatus.CANCELLED.value) in after["classes"]

        old_booking = db.get(Booking, s.booking.id)
        assert old_booking.can_reschedule is True
        assert old_booking.rescheduled_date is None

    def test_reused_class_is_not_cancelled(
        self, service: RescheduleService, builder: SchedulingBuilder, db: Session
    ):
        s = _scenario(builder)
        existing = builder.class_session(THURSDAY, time(10, 0), time(11, 0), teacher=s.teacher)
        result = service.reschedule(s.student.id, s.old_class.id, _thursday_slot())

        reversal = service.cancel_reschedule(result.record.id)

        assert reversal.new_class_cancelled is False
        db.expire_all()
        assert db.get(ClassSession, existing.id).status == ClassStatus.SCHEDULED

    def test_reversal_allows_rescheduling_again(
        self, service: RescheduleService, builder: SchedulingBuilder
    ):
        s = _scenario(builder, max_reschedules=1)
        first = service.reschedule(s.student.id, s.old_class.id, _thursday_slot())
        service.cancel_reschedule(first.record.id)

        second = service.reschedule(s.student.id, s.old_class.id, _thursday_slot(15))

        assert second.record.status == RescheduleStatus.CONFIRMED

    def test_cancelling_twice_is_rejected(
        self, service: RescheduleService, builder: SchedulingBuilder
    ):
        s = _scenario(builder)
        result = service.reschedule(s.student.id, s.old_class.id, _thursday_slot())
        service.cancel_reschedule(result.record.id)

        with pytest.raises(NotEligibleException):
            service.cancel_reschedule(result.record.id)

    def test_unknown_record(self, service: RescheduleService):
        with pytest.raises(NotFoundException):
            service.cancel_reschedule("01HZZZZZZZZZZZZZZZZZZZZZZZ")


def test_listing_records(service: RescheduleService, builder: SchedulingBuilder):
    s = _scenario(builder)
    result = service.reschedule(s.student.id, s.old_class.id, _thursday_slot())

    assert [r.id for r in service.list_student_reschedules(s.student.id)] == [result.record.id]
    assert [r.id for r in service.list_reschedules(status=RescheduleStatus.CONFIRMED)] == [
        result.record.id
    ]
    assert service.list_reschedules(status=RescheduleStatus.CANCELLED) == []
