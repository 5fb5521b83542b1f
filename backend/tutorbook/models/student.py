# backend/tutorbook/models/student.py
"""Student model."""

from sqlalchemy import Boolean, Column, DateTime, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import ulid

from ..database import Base


class Student(Base):
    """
    A learner who holds lesson packages.

    ``timezone`` is the student's local zone (nullable: the admin zone is used
    instead). ``allow_different_teacher`` lets the student book teachers other
    than the ones assigned to them.
    """

    __tablename__ = "students"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    name = Column(String(200), nullable=False)
    email = Column(String(255), nullable=True, unique=True)
    timezone = Column(String(64), nullable=True)
    allow_different_teacher = Column(Boolean, nullable=False, default=False)
    active = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    teacher_links = relationship("TeacherStudent", back_populates="student")
    packages = relationship("StudentPackage", back_populates="student")
    bookings = relationship("Booking", back_populates="student")

    def __repr__(self) -> str:
        return f"<Student {self.id}: {self.name} tz={self.timezone}>"
