"""
Database models for the tutorbook scheduling engine.

The models are organized by functionality:
- Teachers, their student assignments and calendar activities
- Students
- Classes (calendar slots) and bookings
- Lesson packages and their credit counters
- Reschedule audit records
"""

from .booking import Booking
from .class_session import ClassSession
from .package import Package, StudentPackage
from .reschedule import RescheduleRecord
from .student import Student
from .teacher import Teacher, TeacherActivity, TeacherStudent

__all__ = [
    "Booking",
    "ClassSession",
    "Package",
    "RescheduleRecord",
    "Student",
    "StudentPackage",
    "Teacher",
    "TeacherActivity",
    "TeacherStudent",
]
