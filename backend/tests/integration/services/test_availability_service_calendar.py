# backend/tests/integration/services/test_availability_service_calendar.py
"""
Integration tests for AvailabilityService against a real schema.

The frozen clock reads Monday 2025-03-03 08:00 in the admin zone, so every
Monday slot from 09:00 on is still bookable.
"""

from datetime import date, datetime, time, timedelta, timezone
from pathlib import Path
from typing import Iterator

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from tests.factories.scheduling_builders import SchedulingBuilder
from tests.helpers.frozen_clock import MONDAY, FrozenClock, caracas
from tutorbook.core.enums import AvailabilityReason, ClassStatus
from tutorbook.core.exceptions import NotFoundException, ValidationException
from tutorbook.database import Base
from tutorbook.services.availability_service import AvailabilityService

MONDAY_STARTS = [
    "09:00",
    "11:00",
    "11:30",
    "12:00",
    "14:00",
    "14:30",
    "15:00",
    "15:30",
    "16:00",
]


def _starts(detail):
    return [s.start.strftime("%H:%M") for s in detail.slots]


@pytest.fixture
def service(db: Session, clock: FrozenClock) -> AvailabilityService:
    return AvailabilityService(db, clock, max_workers=1)


class TestTeacherSlots:
    def test_existing_class_blocks_its_interval(
        self, service: AvailabilityService, builder: SchedulingBuilder
    ):
        teacher = builder.teacher()
        builder.class_session(MONDAY, time(10, 0), time(11, 0), teacher=teacher)

        detail = service.get_teacher_slots(teacher.id, MONDAY)

        assert detail.reason == AvailabilityReason.AVAILABLE
        assert _starts(detail) == MONDAY_STARTS

    def test_assigned_students_bookings_block_the_teacher(
        self, service: AvailabilityService, builder: SchedulingBuilder
    ):
        """A class without a teacher still occupies the calendar of the student's teacher."""
        teacher = builder.teacher()
        student = builder.student()
        builder.assign(teacher, student)
        package = builder.package(student)
        cls = builder.class_session(MONDAY, time(10, 0), time(11, 0))
        builder.booking(student, cls, package)

        detail = service.get_teacher_slots(teacher.id, MONDAY)

        assert _starts(detail) == MONDAY_STARTS

    def test_cancelled_class_frees_the_slot(
        self, service: AvailabilityService, builder: SchedulingBuilder
    ):
        teacher = builder.teacher()
        builder.class_session(
            MONDAY, time(10, 0), time(11, 0), teacher=teacher, status=ClassStatus.CANCELLED
        )

        detail = service.get_teacher_slots(teacher.id, MONDAY)

        assert "10:00" in _starts(detail)

    def test_activity_in_other_zone_is_converted(
        self, service: AvailabilityService, builder: SchedulingBuilder
    ):
        """07:00-08:00 in Phoenix is 10:00-11:00 in the admin zone."""
        teacher = builder.teacher()
        builder.activity(teacher, MONDAY, time(7, 0), time(8, 0), timezone="America/Phoenix")

        detail = service.get_teacher_slots(teacher.id, MONDAY)

        assert _starts(detail) == MONDAY_STARTS

    def test_elapsed_slots_are_dropped(
        self, service: AvailabilityService, builder: SchedulingBuilder, clock: FrozenClock
    ):
        teacher = builder.teacher()
        clock.set(caracas(MONDAY, 12, 10))

        detail = service.get_teacher_slots(teacher.id, MONDAY)

        assert _starts(detail) == ["14:00", "14:30", "15:00", "15:30", "16:00"]

    def test_past_day_has_no_slots(self, service: AvailabilityService, builder: SchedulingBuilder):
        teacher = builder.teacher()
        detail = service.get_teacher_slots(teacher.id, MONDAY - timedelta(days=7))
        assert detail.reason == AvailabilityReason.NO_SLOTS_AVAILABLE
        assert detail.slots == []

    def test_unknown_or_inactive_teacher(
        self, service: AvailabilityService, builder: SchedulingBuilder
    ):
        inactive = builder.teacher(active=False)
        with pytest.raises(NotFoundException):
            service.get_teacher_slots(inactive.id, MONDAY)
        with pytest.raises(NotFoundException):
            service.get_teacher_slots("01HZZZZZZZZZZZZZZZZZZZZZZZ", MONDAY)


class TestAvailableDates:
    def test_single_teacher_returns_flags(
        self, service: AvailabilityService, builder: SchedulingBuilder
    ):
        teacher = builder.teacher()

        result = service.get_available_dates(
            MONDAY, MONDAY + timedelta(days=6), teacher_id=teacher.id
        )

        assert len(result) == 7
        assert result[MONDAY] is True
        assert result[date(2025, 3, 8)] is False  # Saturday
        assert result[date(2025, 3, 9)] is False  # Sunday

    def test_all_teachers_detail_is_sorted_primary_first(
        self, service: AvailabilityService, builder: SchedulingBuilder
    ):
        primary = builder.teacher(first_name="Zed")
        other = builder.teacher(first_name="Amy")
        student = builder.student(allow_different_teacher=True)
        builder.assign(primary, student)
        # The non-primary teacher has more free slots; primary still comes first
        builder.class_session(MONDAY, time(9, 0), time(12, 0), teacher=primary)

        result = service.get_available_dates(MONDAY, MONDAY, student_id=student.id)

        ordered = result[MONDAY]
        assert [t.teacher_id for t in ordered] == [primary.id, other.id]
        assert ordered[0].is_primary is True
        assert ordered[1].is_primary is False

    def test_inverted_range_rejected(self, service: AvailabilityService):
        with pytest.raises(ValidationException):
            service.get_available_dates(MONDAY, MONDAY - timedelta(days=1))

    def test_long_range_is_clamped(
        self, service: AvailabilityService, builder: SchedulingBuilder
    ):
        teacher = builder.teacher()
        result = service.get_available_dates(
            MONDAY, MONDAY + timedelta(days=365), teacher_id=teacher.id
        )
        assert max(result) == MONDAY + timedelta(days=90)


class TestStudentTeacherOptions:
    def test_restricted_student_sees_assigned_teachers_only(
        self, service: AvailabilityService, builder: SchedulingBuilder
    ):
        assigned = builder.teacher()
        builder.teacher()
        student = builder.student(allow_different_teacher=False)
        builder.assign(assigned, student)

        options = service.get_student_teacher_options(student.id, MONDAY)

        assert options.restricted is True
        assert [t.teacher_id for t in options.teachers] == [assigned.id]

    def test_restricted_student_without_assignment_gets_nothing(
        self, service: AvailabilityService, builder: SchedulingBuilder
    ):
        builder.teacher()
        student = builder.student()

        options = service.get_student_teacher_options(student.id, MONDAY)

        assert options.restricted is True
        assert options.teachers == []

    def test_flexible_student_sees_every_active_teacher(
        self, service: AvailabilityService, builder: SchedulingBuilder
    ):
        assigned = builder.teacher()
        other = builder.teacher()
        builder.teacher(active=False)
        student = builder.student(allow_different_teacher=True)
        builder.assign(assigned, student)

        options = service.get_student_teacher_options(student.id, MONDAY)

        assert options.restricted is False
        assert {t.teacher_id for t in options.teachers} == {assigned.id, other.id}
        assert options.teachers[0].teacher_id == assigned.id

    def test_unknown_student(self, service: AvailabilityService):
        with pytest.raises(NotFoundException):
            service.get_student_teacher_options("01HZZZZZZZZZZZZZZZZZZZZZZZ", MONDAY)


def test_find_conflict_excludes_given_classes(
    service: AvailabilityService, builder: SchedulingBuilder
):
    teacher = builder.teacher()
    cls = builder.class_session(MONDAY, time(15, 0), time(16, 0), teacher=teacher)

    conflict = service.find_conflict(teacher.id, MONDAY, time(15, 30), time(16, 30))
    assert conflict is not None and conflict.label() == "15:00-16:00"
    assert (
        service.find_conflict(
            teacher.id, MONDAY, time(15, 30), time(16, 30), exclude_class_ids=[cls.id]
        )
        is None
    )


@pytest.fixture
def file_session_factory(tmp_path: Path) -> Iterator[sessionmaker]:
    """File-backed database so worker threads get their own connections."""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'availability.db'}", connect_args={"check_same_thread": False}
    )
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    yield factory
    engine.dispose()


def test_multi_teacher_query_fans_out_to_workers(file_session_factory: sessionmaker):
    session = file_session_factory()
    try:
        builder = SchedulingBuilder(session)
        teachers = [builder.teacher() for _ in range(3)]
        builder.class_session(MONDAY, time(10, 0), time(11, 0), teacher=teachers[1])

        clock = FrozenClock(datetime(2025, 3, 3, 12, 0, tzinfo=timezone.utc))
        service = AvailabilityService(
            session, clock, session_factory=file_session_factory, max_workers=3
        )
        per_teacher = {t.teacher_id: t for t in service.get_slots_for_date(MONDAY)}
    finally:
        session.close()

    assert set(per_teacher) == {t.id for t in teachers}
    assert _starts(per_teacher[teachers[1].id]) == MONDAY_STARTS
    assert len(per_teacher[teachers[0].id].slots) == len(MONDAY_STARTS) + 2
