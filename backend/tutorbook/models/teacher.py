# backend/tutorbook/models/teacher.py
"""
Teacher models.

A teacher's weekly schedule (work hours, break hours and working days) is
stored as JSON and validated at the boundary by ``schemas.schedule``; the
engine never reads the raw blobs directly.
"""

from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    String,
    Text,
    Time,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import ulid

from ..core.constants import DEFAULT_WORKING_DAYS
from ..core.enums import ActivityStatus, ActivityType
from ..database import Base


class Teacher(Base):
    """A tutor whose calendar holds classes and activities."""

    __tablename__ = "teachers"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False, default="")
    email = Column(String(255), nullable=True, unique=True)
    active = Column(Boolean, nullable=False, default=True)
    timezone = Column(String(64), nullable=True)

    # {"monday": [{"start": "09:00", "end": "17:00"}], ...}
    work_hours = Column(JSON, nullable=False, default=dict)
    break_hours = Column(JSON, nullable=False, default=dict)
    working_days = Column(JSON, nullable=False, default=lambda: list(DEFAULT_WORKING_DAYS))

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    student_links = relationship("TeacherStudent", back_populates="teacher")
    activities = relationship("TeacherActivity", back_populates="teacher")

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def __repr__(self) -> str:
        return f"<Teacher {self.id}: {self.full_name}>"


class TeacherStudent(Base):
    """
    Assignment of a student to a teacher.

    An active assignment makes the teacher the student's primary teacher and
    pulls the student's classes into the teacher's calendar.
    """

    __tablename__ = "teacher_students"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    teacher_id = Column(String(26), ForeignKey("teachers.id"), nullable=False, index=True)
    student_id = Column(String(26), ForeignKey("students.id"), nullable=False, index=True)
    active = Column(Boolean, nullable=False, default=True)
    assigned_date = Column(Date, nullable=True)
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    teacher = relationship("Teacher", back_populates="student_links")
    student = relationship("Student", back_populates="teacher_links")

    __table_args__ = (Index("ix_teacher_students_pair", "teacher_id", "student_id"),)

    def __repr__(self) -> str:
        return (
            f"<TeacherStudent teacher={self.teacher_id} student={self.student_id} "
            f"active={self.active}>"
        )


class TeacherActivity(Base):
    """A non-class entry (meeting, preparation...) that occupies a teacher's calendar."""

    __tablename__ = "teacher_activities"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    teacher_id = Column(String(26), ForeignKey("teachers.id"), nullable=False, index=True)
    title = Column(String(200), nullable=False, default="")
    activity_type = Column(String(20), nullable=False, default=ActivityType.OTHER)
    date = Column(Date, nullable=False, index=True)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    status = Column(String(20), nullable=False, default=ActivityStatus.SCHEDULED)
    timezone = Column(String(64), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    teacher = relationship("Teacher", back_populates="activities")

    def __init__(self, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        if not self.status:
            self.status = ActivityStatus.SCHEDULED

    def __repr__(self) -> str:
        return (
            f"<TeacherActivity {self.id}: teacher={self.teacher_id}, date={self.date}, "
            f"time={self.start_time}-{self.end_time}, type={self.activity_type}>"
        )
