# backend/tutorbook/models/booking.py
"""
Booking model: assignment of a student to a class, owned by one package.

Bookings are never deleted, only status-transitioned, so the table doubles
as the audit history. A partial unique index guarantees at most one
``scheduled`` booking per class.
"""

from typing import Any, Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import ulid

from ..core.enums import BookingStatus
from ..database import Base


class Booking(Base):
    """A student's seat in a class."""

    __tablename__ = "bookings"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    student_id = Column(String(26), ForeignKey("students.id"), nullable=False, index=True)
    class_id = Column(String(26), ForeignKey("classes.id"), nullable=False, index=True)
    student_package_id = Column(
        String(26), ForeignKey("student_packages.id"), nullable=False, index=True
    )
    status = Column(String(20), nullable=False, default=BookingStatus.SCHEDULED, index=True)
    can_reschedule = Column(Boolean, nullable=False, default=True)

    # Set on bookings created by a reschedule
    original_class_id = Column(String(26), ForeignKey("classes.id"), nullable=True)
    rescheduled_date = Column(Date, nullable=True)
    notes = Column(Text, nullable=True)

    version_id = Column(Integer, nullable=False, default=1)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    student = relationship("Student", back_populates="bookings")
    class_session = relationship("ClassSession", back_populates="bookings", foreign_keys=[class_id])
    original_class = relationship("ClassSession", foreign_keys=[original_class_id])
    student_package = relationship("StudentPackage", back_populates="bookings")

    __mapper_args__ = {"version_id_col": version_id}

    __table_args__ = (
        CheckConstraint(
            "status IN ('scheduled', 'attended', 'missed', 'cancelled', 'rescheduled')",
            name="ck_bookings_status",
        ),
        Index(
            "uq_bookings_one_scheduled_per_class",
            "class_id",
            unique=True,
            postgresql_where=(status == BookingStatus.SCHEDULED.value),
            sqlite_where=(status == BookingStatus.SCHEDULED.value),
        ),
    )

    def __init__(self, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        if not self.status:
            self.status = BookingStatus.SCHEDULED
        if self.can_reschedule is None:
            self.can_reschedule = True

    def append_note(self, note: Optional[str]) -> None:
        """Append a line to the booking notes, keeping earlier annotations."""
        if not note:
            return
        self.notes = f"{self.notes}\n{note}" if self.notes else note

    def __repr__(self) -> str:
        return (
            f"<Booking {self.id}: student={self.student_id}, class={self.class_id}, "
            f"package={self.student_package_id}, status={self.status}>"
        )
