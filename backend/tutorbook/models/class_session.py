# backend/tutorbook/models/class_session.py
"""
Class (calendar slot) model.

A class records the literal date/time it was authored with and the zone it
was authored in. The zone is never changed after creation.
"""

from typing import Any

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Time,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import ulid

from ..core.constants import DEFAULT_CLASS_TITLE
from ..core.enums import ClassStatus
from ..database import Base


class ClassSession(Base):
    """One lesson slot on a teacher's calendar."""

    __tablename__ = "classes"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    title = Column(String(200), nullable=False, default=DEFAULT_CLASS_TITLE)
    date = Column(Date, nullable=False, index=True)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    teacher_id = Column(String(26), ForeignKey("teachers.id"), nullable=True, index=True)
    status = Column(String(20), nullable=False, default=ClassStatus.SCHEDULED, index=True)
    timezone = Column(String(64), nullable=False)
    max_students = Column(Integer, nullable=False, default=1)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
    completed_at = Column(DateTime(timezone=True), nullable=True)

    teacher = relationship("Teacher")
    bookings = relationship(
        "Booking", back_populates="class_session", foreign_keys="Booking.class_id"
    )

    __table_args__ = (
        CheckConstraint(
            "status IN ('scheduled', 'completed', 'cancelled')",
            name="ck_classes_status",
        ),
        CheckConstraint("max_students > 0", name="check_max_students_positive"),
        Index("ix_classes_slot_lookup", "date", "start_time", "end_time", "status"),
    )

    def __init__(self, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        if not self.status:
            self.status = ClassStatus.SCHEDULED

    def __repr__(self) -> str:
        return (
            f"<ClassSession {self.id}: teacher={self.teacher_id}, date={self.date}, "
            f"time={self.start_time}-{self.end_time}, status={self.status}, tz={self.timezone}>"
        )
