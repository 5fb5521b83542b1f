# backend/tutorbook/repositories/class_repository.py
"""
Class Repository.

Calendar queries for ClassSession rows: the slot lookup used by
reschedules, the teacher calendar used by availability, and the
completion candidates used by the lifecycle sweep.
"""

from datetime import date, time
from typing import Dict, Iterable, List, Optional

from sqlalchemy import and_, or_
from sqlalchemy.orm import Session

from ..core.enums import BookingStatus, ClassStatus
from ..models.booking import Booking
from ..models.class_session import ClassSession
from .base_repository import BaseRepository

# Booking states that still hold the class on the teacher's calendar
OCCUPYING_BOOKING_STATUSES = (
    BookingStatus.SCHEDULED.value,
    BookingStatus.ATTENDED.value,
    BookingStatus.MISSED.value,
)


class ClassRepository(BaseRepository[ClassSession]):
    """Data access for calendar slots."""

    def __init__(self, db: Session):
        super().__init__(db, ClassSession)

    def find_slot(
        self,
        class_date: date,
        start_time: time,
        end_time: time,
        *,
        teacher_id: Optional[str],
        status: ClassStatus = ClassStatus.SCHEDULED,
    ) -> Optional[ClassSession]:
        """Exact lookup of a slot by date, times, teacher and status."""
        query = self.db.query(ClassSession).filter(
            ClassSession.date == class_date,
            ClassSession.start_time == start_time,
            ClassSession.end_time == end_time,
            ClassSession.status == status.value,
        )
        if teacher_id is None:
            query = query.filter(ClassSession.teacher_id.is_(None))
        else:
            query = query.filter(ClassSession.teacher_id == teacher_id)
        return query.order_by(ClassSession.created_at, ClassSession.id).first()

    def get_calendar(
        self,
        teacher_id: str,
        start_date: date,
        end_date: date,
        student_ids: Iterable[str] = (),
        *,
        exclude_class_ids: Iterable[str] = (),
    ) -> Dict[date, List[ClassSession]]:
        """
        Classes occupying a teacher's calendar, grouped by date.

        The calendar is the union of the teacher's own classes and the
        classes booked by students assigned to the teacher. Cancelled
        classes never occupy the calendar.
        """
        student_ids = list(student_ids)
        exclude = list(exclude_class_ids)

        owner_filter = ClassSession.teacher_id == teacher_id
        if student_ids:
            booked_by_students = (
                self.db.query(Booking.class_id)
                .filter(
                    Booking.student_id.in_(student_ids),
                    Booking.status.in_(OCCUPYING_BOOKING_STATUSES),
                )
                .scalar_subquery()
            )
            owner_filter = or_(owner_filter, ClassSession.id.in_(booked_by_students))

        query = self.db.query(ClassSession).filter(
            ClassSession.date >= start_date,
            ClassSession.date <= end_date,
            ClassSession.status != ClassStatus.CANCELLED.value,
            owner_filter,
        )
        if exclude:
            query = query.filter(ClassSession.id.notin_(exclude))

        grouped: Dict[date, List[ClassSession]] = {}
        for cls in self._execute_query(query.order_by(ClassSession.date, ClassSession.start_time)):
            grouped.setdefault(cls.date, []).append(cls)
        return grouped

    def find_due_for_completion(self, today: date, now_time: time) -> List[ClassSession]:
        """
        Scheduled classes whose end has passed in the admin zone.

        ``today``/``now_time`` are wall-clock values in the admin zone; this is
        a cheap prefilter, the per-observer check happens per booking.
        """
        query = (
            self.db.query(ClassSession)
            .filter(
                ClassSession.status == ClassStatus.SCHEDULED.value,
                or_(
                    ClassSession.date < today,
                    and_(ClassSession.date == today, ClassSession.end_time < now_time),
                ),
            )
            .order_by(ClassSession.date, ClassSession.end_time, ClassSession.id)
        )
        return self._execute_query(query)

    def find_completed_with_pending_bookings(
        self, student_id: Optional[str] = None
    ) -> List[ClassSession]:
        """Completed classes that still carry scheduled bookings."""
        query = (
            self.db.query(ClassSession)
            .join(Booking, Booking.class_id == ClassSession.id)
            .filter(
                ClassSession.status == ClassStatus.COMPLETED.value,
                Booking.status == BookingStatus.SCHEDULED.value,
            )
        )
        if student_id:
            query = query.filter(Booking.student_id == student_id)
        return self._execute_query(
            query.distinct().order_by(ClassSession.date, ClassSession.end_time, ClassSession.id)
        )

    def find_for_student(
        self, student_id: str, statuses: Iterable[ClassStatus]
    ) -> List[ClassSession]:
        """Classes a student has a scheduled booking on, filtered by class status."""
        query = (
            self.db.query(ClassSession)
            .join(Booking, Booking.class_id == ClassSession.id)
            .filter(
                Booking.student_id == student_id,
                Booking.status == BookingStatus.SCHEDULED.value,
                ClassSession.status.in_([s.value for s in statuses]),
            )
        )
        return self._execute_query(query.distinct().order_by(ClassSession.date, ClassSession.id))
