"""Append-only reschedule audit records."""

from __future__ import annotations

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, ForeignKey, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import ulid

from ..core.enums import RescheduleStatus
from ..database import Base


class RescheduleRecord(Base):
    """
    Immutable fact describing one reschedule.

    Only ``status`` (plus the cancellation stamp) changes, and only through an
    admin cancellation that reverses the reschedule's effects.
    """

    __tablename__ = "reschedules"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    student_id = Column(String(26), ForeignKey("students.id"), nullable=False, index=True)
    old_class_id = Column(String(26), ForeignKey("classes.id"), nullable=False)
    new_class_id = Column(String(26), ForeignKey("classes.id"), nullable=False)
    old_booking_id = Column(String(26), ForeignKey("bookings.id"), nullable=False)
    new_booking_id = Column(String(26), ForeignKey("bookings.id"), nullable=False)
    student_package_id = Column(String(26), ForeignKey("student_packages.id"), nullable=False)
    reason = Column(Text, nullable=True)
    different_teacher = Column(Boolean, nullable=False, default=False)
    old_teacher_id = Column(String(26), ForeignKey("teachers.id"), nullable=True)
    new_teacher_id = Column(String(26), ForeignKey("teachers.id"), nullable=True)
    new_class_created = Column(Boolean, nullable=False, default=False)
    status = Column(String(20), nullable=False, default=RescheduleStatus.CONFIRMED, index=True)

    rescheduled_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_by = Column(String(26), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    old_class = relationship("ClassSession", foreign_keys=[old_class_id])
    new_class = relationship("ClassSession", foreign_keys=[new_class_id])
    old_booking = relationship("Booking", foreign_keys=[old_booking_id])
    new_booking = relationship("Booking", foreign_keys=[new_booking_id])

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'confirmed', 'cancelled')",
            name="ck_reschedules_status",
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<RescheduleRecord {self.id}: student={self.student_id} "
            f"{self.old_class_id}->{self.new_class_id} status={self.status}>"
        )
