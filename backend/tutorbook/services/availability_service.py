# backend/tutorbook/services/availability_service.py
"""
Availability Service for the tutorbook scheduling engine.

Computes free slots per teacher and day. A teacher's weekly schedule is
authored in the admin timezone; the calendar it is checked against is the
union of:
- classes taught by the teacher,
- classes booked by students actively assigned to the teacher,
- the teacher's non-cancelled activities.

Multi-teacher queries fan out over a bounded thread pool. Each worker opens
its own session and returns plain dataclasses, never ORM rows.
"""

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
import logging
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Union

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.enums import AvailabilityReason
from ..core.exceptions import NotFoundException, ValidationException
from ..core.timezone_utils import Clock, admin_zone_name, now_in_zone, to_zone
from ..database import SessionLocal
from ..models.student import Student
from ..models.teacher import Teacher
from ..repositories.factory import RepositoryFactory
from ..schemas.schedule import WeeklySchedule
from ..utils.slots import DayAvailability, TimeRange, evaluate_day, first_overlap
from ..utils.time_helpers import minutes_range
from .base import BaseService

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], Session]


@dataclass
class TeacherDayAvailability:
    """Free slots of one teacher on one day."""

    teacher_id: str
    teacher_name: str
    day: date
    is_primary: bool
    reason: AvailabilityReason
    slots: List[TimeRange] = field(default_factory=list)

    @property
    def available(self) -> bool:
        return self.reason == AvailabilityReason.AVAILABLE


@dataclass
class TeacherOptions:
    """Teachers a student may book on a day."""

    student_id: str
    day: date
    restricted: bool
    teachers: List[TeacherDayAvailability] = field(default_factory=list)


def sort_teacher_availability(
    items: Iterable[TeacherDayAvailability],
) -> List[TeacherDayAvailability]:
    """Primary teachers first, then more free slots, then teacher id."""
    return sorted(items, key=lambda t: (not t.is_primary, -len(t.slots), t.teacher_id))


class AvailabilityService(BaseService):
    """
    Service layer for teacher availability.

    Args:
        db: Database session used for single-teacher queries
        clock: Injectable UTC clock
        session_factory: Opens the per-worker sessions of multi-teacher queries
        max_workers: Bound of the per-teacher worker pool
    """

    def __init__(
        self,
        db: Session,
        clock: Optional[Clock] = None,
        *,
        session_factory: Optional[SessionFactory] = None,
        max_workers: Optional[int] = None,
    ):
        super().__init__(db, clock)
        self.teacher_repository = RepositoryFactory.create_teacher_repository(db)
        self.class_repository = RepositoryFactory.create_class_repository(db)
        self.student_repository = RepositoryFactory.create_base_repository(db, Student)
        self.session_factory: SessionFactory = session_factory or SessionLocal
        self.max_workers = max(1, max_workers or settings.availability_max_workers)
        self.slot_duration = settings.class_duration_minutes
        self.step = settings.slot_step_minutes

    # Public operations

    @BaseService.measure_operation("get_teacher_slots")
    def get_teacher_slots(
        self, teacher_id: str, day: date, *, student_id: Optional[str] = None
    ) -> TeacherDayAvailability:
        """Free slots of one teacher on one day."""
        teacher = self._get_teacher(teacher_id)
        primary_ids = set(self._primary_teacher_ids(student_id))
        return self._compute_for_teacher(
            self.db, teacher, day, day, is_primary=teacher.id in primary_ids
        )[day]

    @BaseService.measure_operation("get_available_dates")
    def get_available_dates(
        self,
        start_date: date,
        end_date: date,
        *,
        student_id: Optional[str] = None,
        teacher_id: Optional[str] = None,
    ) -> Dict[date, Union[bool, List[TeacherDayAvailability]]]:
        """
        Availability over a date range.

        With ``teacher_id``: ``{date: bool}`` for that teacher. Without it:
        ``{date: [per-teacher detail]}`` over the teachers the student may
        book (all active teachers when no student is given), sorted primary
        first.
        """
        start_date, end_date = self._validate_range(start_date, end_date)

        if teacher_id:
            teacher = self._get_teacher(teacher_id)
            primary_ids = set(self._primary_teacher_ids(student_id))
            per_day = self._compute_for_teacher(
                self.db, teacher, start_date, end_date, is_primary=teacher.id in primary_ids
            )
            return {day: detail.available for day, detail in per_day.items()}

        teachers, primary_ids, _restricted = self._candidate_teachers(student_id)
        per_teacher = self._fan_out(teachers, primary_ids, start_date, end_date)

        result: Dict[date, Union[bool, List[TeacherDayAvailability]]] = {}
        day = start_date
        while day <= end_date:
            result[day] = sort_teacher_availability(
                per_teacher[t.id][day] for t in teachers if t.id in per_teacher
            )
            day += timedelta(days=1)
        return result

    @BaseService.measure_operation("get_slots_for_date")
    def get_slots_for_date(
        self, day: date, *, student_id: Optional[str] = None
    ) -> List[TeacherDayAvailability]:
        """Per-teacher availability on one day across every active teacher."""
        teachers = self.teacher_repository.list_active()
        primary_ids = set(self._primary_teacher_ids(student_id))
        per_teacher = self._fan_out(teachers, primary_ids, day, day)
        return sort_teacher_availability(per_teacher[t.id][day] for t in teachers)

    @BaseService.measure_operation("get_student_teacher_options")
    def get_student_teacher_options(self, student_id: str, day: date) -> TeacherOptions:
        """
        Teachers a student may book on a day.

        Students without ``allow_different_teacher`` only see their assigned
        teachers; with none assigned the result is empty and ``restricted``.
        """
        teachers, primary_ids, restricted = self._candidate_teachers(student_id)
        per_teacher = self._fan_out(teachers, primary_ids, day, day)
        return TeacherOptions(
            student_id=student_id,
            day=day,
            restricted=restricted,
            teachers=sort_teacher_availability(per_teacher[t.id][day] for t in teachers),
        )

    def find_conflict(
        self,
        teacher_id: Optional[str],
        day: date,
        start: time,
        end: time,
        *,
        exclude_class_ids: Sequence[str] = (),
    ) -> Optional[TimeRange]:
        """
        First calendar entry of the teacher overlapping [start, end), if any.

        Runs on the caller's session so it sees the caller's transaction.
        """
        if teacher_id is None:
            return None
        student_ids = self.teacher_repository.get_active_student_ids(teacher_id)
        booked = self._booked_ranges(
            self.db,
            teacher_id,
            student_ids,
            day,
            day,
            exclude_class_ids=exclude_class_ids,
        ).get(day, [])
        return first_overlap(TimeRange(start, end), booked)

    # Internals

    def _validate_range(self, start_date: date, end_date: date) -> tuple[date, date]:
        if end_date < start_date:
            raise ValidationException(
                "end_date must not be before start_date",
                details={"start_date": start_date.isoformat(), "end_date": end_date.isoformat()},
            )
        max_days = settings.availability_max_range_days
        if (end_date - start_date).days > max_days:
            clamped = start_date + timedelta(days=max_days)
            self.logger.info(
                "Availability range clamped",
                extra={"requested_end": end_date.isoformat(), "clamped_end": clamped.isoformat()},
            )
            end_date = clamped
        return start_date, end_date

    def _get_teacher(self, teacher_id: str) -> Teacher:
        teacher = self.teacher_repository.get_by_id(teacher_id)
        if teacher is None or not teacher.active:
            raise NotFoundException("Teacher not found", details={"teacher_id": teacher_id})
        return teacher

    def _get_student(self, student_id: str) -> Student:
        student = self.student_repository.get_by_id(student_id)
        if student is None:
            raise NotFoundException("Student not found", details={"student_id": student_id})
        return student

    def _primary_teacher_ids(self, student_id: Optional[str]) -> List[str]:
        if not student_id:
            return []
        return self.teacher_repository.get_assigned_teacher_ids(student_id)

    def _candidate_teachers(
        self, student_id: Optional[str]
    ) -> tuple[List[Teacher], set, bool]:
        """Teachers to consider, the primary ids, and whether the list is restricted."""
        if not student_id:
            return self.teacher_repository.list_active(), set(), False

        student = self._get_student(student_id)
        primary_ids = set(self._primary_teacher_ids(student_id))
        if student.allow_different_teacher:
            return self.teacher_repository.list_active(), primary_ids, False
        return self.teacher_repository.list_by_ids(sorted(primary_ids)), primary_ids, True

    def _fan_out(
        self,
        teachers: List[Teacher],
        primary_ids: set,
        start_date: date,
        end_date: date,
    ) -> Dict[str, Dict[date, TeacherDayAvailability]]:
        """Compute per-teacher availability, in parallel when it pays off."""
        if len(teachers) <= 1 or self.max_workers <= 1:
            return {
                t.id: self._compute_for_teacher(
                    self.db, t, start_date, end_date, is_primary=t.id in primary_ids
                )
                for t in teachers
            }

        teacher_ids = [t.id for t in teachers]
        with ThreadPoolExecutor(
            max_workers=min(self.max_workers, len(teacher_ids)),
            thread_name_prefix="availability",
        ) as pool:
            futures = {
                teacher_id: pool.submit(
                    self._compute_in_worker,
                    teacher_id,
                    start_date,
                    end_date,
                    teacher_id in primary_ids,
                )
                for teacher_id in teacher_ids
            }
            return {teacher_id: future.result() for teacher_id, future in futures.items()}

    def _compute_in_worker(
        self, teacher_id: str, start_date: date, end_date: date, is_primary: bool
    ) -> Dict[date, TeacherDayAvailability]:
        session = self.session_factory()
        try:
            teacher = RepositoryFactory.create_teacher_repository(session).get_by_id(teacher_id)
            if teacher is None:
                raise NotFoundException("Teacher not found", details={"teacher_id": teacher_id})
            return self._compute_for_teacher(
                session, teacher, start_date, end_date, is_primary=is_primary
            )
        finally:
            session.close()

    def _compute_for_teacher(
        self,
        session: Session,
        teacher: Teacher,
        start_date: date,
        end_date: date,
        *,
        is_primary: bool,
    ) -> Dict[date, TeacherDayAvailability]:
        schedule = WeeklySchedule.from_teacher(teacher)
        work = schedule.work_ranges()
        breaks = schedule.break_ranges()
        student_ids = RepositoryFactory.create_teacher_repository(session).get_active_student_ids(
            teacher.id
        )
        booked_by_day = self._booked_ranges(session, teacher.id, student_ids, start_date, end_date)
        admin_now = now_in_zone(admin_zone_name(), self.clock)

        result: Dict[date, TeacherDayAvailability] = {}
        day = start_date
        while day <= end_date:
            evaluated = evaluate_day(
                day,
                schedule.working_days,
                work,
                breaks,
                booked_by_day.get(day, []),
                slot_duration=self.slot_duration,
                step=self.step,
            )
            evaluated = self._drop_elapsed(evaluated, admin_now)
            result[day] = TeacherDayAvailability(
                teacher_id=teacher.id,
                teacher_name=teacher.full_name,
                day=day,
                is_primary=is_primary,
                reason=evaluated.reason,
                slots=evaluated.slots,
            )
            day += timedelta(days=1)
        return result

    @staticmethod
    def _drop_elapsed(evaluated: DayAvailability, admin_now: datetime) -> DayAvailability:
        """Slots that already started (admin zone) are not bookable."""
        if evaluated.reason != AvailabilityReason.AVAILABLE or evaluated.day > admin_now.date():
            return evaluated
        now_minutes = admin_now.hour * 60 + admin_now.minute
        remaining = [
            s
            for s in evaluated.slots
            if evaluated.day == admin_now.date() and s.minutes()[0] > now_minutes
        ]
        if remaining:
            return DayAvailability(evaluated.day, AvailabilityReason.AVAILABLE, remaining)
        return DayAvailability(evaluated.day, AvailabilityReason.NO_SLOTS_AVAILABLE)

    def _booked_ranges(
        self,
        session: Session,
        teacher_id: str,
        student_ids: Sequence[str],
        start_date: date,
        end_date: date,
        *,
        exclude_class_ids: Sequence[str] = (),
    ) -> Dict[date, List[TimeRange]]:
        """Occupied ranges per day, expressed in the admin zone."""
        admin_zone = admin_zone_name()
        class_repository = RepositoryFactory.create_class_repository(session)
        teacher_repository = RepositoryFactory.create_teacher_repository(session)

        # Entries authored in another zone can land on a neighbouring day
        window_start = start_date - timedelta(days=1)
        window_end = end_date + timedelta(days=1)

        booked: Dict[date, List[TimeRange]] = {}

        def _add(day: date, start: time, end: time, tz_name: Optional[str]) -> None:
            if tz_name and tz_name != admin_zone:
                start_day, start = to_zone(day, start, tz_name, admin_zone)
                _end_day, end = to_zone(day, end, tz_name, admin_zone)
                day = start_day
            if minutes_range(start, end)[0] >= minutes_range(start, end)[1]:
                # Crosses admin midnight: keep the part on the start day
                end = time(0, 0)
            if start_date <= day <= end_date:
                booked.setdefault(day, []).append(TimeRange(start, end))

        calendar = class_repository.get_calendar(
            teacher_id,
            window_start,
            window_end,
            student_ids,
            exclude_class_ids=exclude_class_ids,
        )
        for day, classes in calendar.items():
            for cls in classes:
                _add(day, cls.start_time, cls.end_time, cls.timezone)

        for day, activities in teacher_repository.get_activities(
            teacher_id, window_start, window_end
        ).items():
            for activity in activities:
                _add(day, activity.start_time, activity.end_time, activity.timezone)

        return booked
