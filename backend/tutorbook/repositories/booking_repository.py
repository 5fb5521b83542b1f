# backend/tutorbook/repositories/booking_repository.py
"""
Booking Repository.

Bookings are never deleted; every query here filters on status.
"""

from datetime import date
from typing import List, Optional

from sqlalchemy import case
from sqlalchemy.orm import Session

from ..core.enums import BookingStatus
from ..models.booking import Booking
from ..models.class_session import ClassSession
from .base_repository import BaseRepository


class BookingRepository(BaseRepository[Booking]):
    """Data access for student-class assignments."""

    def __init__(self, db: Session):
        super().__init__(db, Booking)

    def get_student_booking(
        self, student_id: str, class_id: str, *, for_update: bool = False
    ) -> Optional[Booking]:
        """
        The student's booking on a class.

        A scheduled booking wins over historical ones; otherwise the most
        recent booking is returned.
        """
        query = (
            self.db.query(Booking)
            .filter(Booking.student_id == student_id, Booking.class_id == class_id)
            .order_by(
                case((Booking.status == BookingStatus.SCHEDULED.value, 0), else_=1),
                Booking.created_at.desc(),
                Booking.id.desc(),
            )
        )
        if for_update:
            query = self._lock(query)
        return query.first()

    def get_scheduled_for_class(
        self, class_id: str, *, for_update: bool = False
    ) -> List[Booking]:
        query = (
            self.db.query(Booking)
            .filter(
                Booking.class_id == class_id,
                Booking.status == BookingStatus.SCHEDULED.value,
            )
            .order_by(Booking.created_at, Booking.id)
        )
        if for_update:
            query = self._lock(query)
        return self._execute_query(query)

    def count_scheduled_for_class(self, class_id: str, *, exclude_id: Optional[str] = None) -> int:
        query = self.db.query(Booking).filter(
            Booking.class_id == class_id,
            Booking.status == BookingStatus.SCHEDULED.value,
        )
        if exclude_id:
            query = query.filter(Booking.id != exclude_id)
        return query.count()

    def count_scheduled_for_package(self, student_package_id: str) -> int:
        return (
            self.db.query(Booking)
            .filter(
                Booking.student_package_id == student_package_id,
                Booking.status == BookingStatus.SCHEDULED.value,
            )
            .count()
        )

    def has_future_scheduled(self, student_package_id: str, today: date) -> bool:
        """Whether the package holds a scheduled booking dated today or later."""
        return (
            self.db.query(Booking.id)
            .join(ClassSession, ClassSession.id == Booking.class_id)
            .filter(
                Booking.student_package_id == student_package_id,
                Booking.status == BookingStatus.SCHEDULED.value,
                ClassSession.date >= today,
            )
            .first()
            is not None
        )

    def list_for_package(self, student_package_id: str) -> List[Booking]:
        query = (
            self.db.query(Booking)
            .filter(Booking.student_package_id == student_package_id)
            .order_by(Booking.created_at, Booking.id)
        )
        return self._execute_query(query)

    def list_for_student(
        self, student_id: str, status: Optional[BookingStatus] = None
    ) -> List[Booking]:
        query = self.db.query(Booking).filter(Booking.student_id == student_id)
        if status is not None:
            query = query.filter(Booking.status == status.value)
        return self._execute_query(query.order_by(Booking.created_at, Booking.id))
