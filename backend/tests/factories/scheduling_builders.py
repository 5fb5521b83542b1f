"""Builders for scheduling rows used across the test-suite."""

from __future__ import annotations

from datetime import date, time, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from tutorbook.core.enums import BookingStatus, ClassStatus, PackageStatus
from tutorbook.models import (
    Booking,
    ClassSession,
    Package,
    Student,
    StudentPackage,
    Teacher,
    TeacherActivity,
    TeacherStudent,
)

ADMIN_TZ = "America/Caracas"

WEEKDAY_NAMES = ("monday", "tuesday", "wednesday", "thursday", "friday")


def standard_hours(start: str = "09:00", end: str = "17:00") -> Dict[str, List[Dict[str, str]]]:
    return {day: [{"start": start, "end": end}] for day in WEEKDAY_NAMES}


def lunch_break(start: str = "13:00", end: str = "14:00") -> Dict[str, List[Dict[str, str]]]:
    return {day: [{"start": start, "end": end}] for day in WEEKDAY_NAMES}


class SchedulingBuilder:
    """Creates and commits rows with sensible defaults."""

    def __init__(self, db: Session):
        self.db = db
        self._seq = 0

    def _next(self) -> int:
        self._seq += 1
        return self._seq

    def _save(self, obj: Any) -> Any:
        self.db.add(obj)
        self.db.commit()
        return obj

    def teacher(self, **overrides: Any) -> Teacher:
        n = self._next()
        values: Dict[str, Any] = {
            "first_name": f"Teacher{n}",
            "last_name": "Test",
            "email": f"teacher{n}@example.com",
            "timezone": ADMIN_TZ,
            "work_hours": standard_hours(),
            "break_hours": lunch_break(),
            "working_days": list(WEEKDAY_NAMES),
            "active": True,
        }
        values.update(overrides)
        return self._save(Teacher(**values))

    def student(self, **overrides: Any) -> Student:
        n = self._next()
        values: Dict[str, Any] = {
            "name": f"Student {n}",
            "email": f"student{n}@example.com",
            "timezone": ADMIN_TZ,
            "allow_different_teacher": False,
            "active": True,
        }
        values.update(overrides)
        return self._save(Student(**values))

    def assign(self, teacher: Teacher, student: Student, active: bool = True) -> TeacherStudent:
        return self._save(
            TeacherStudent(teacher_id=teacher.id, student_id=student.id, active=active)
        )

    def package(
        self,
        student: Student,
        *,
        total_classes: int = 8,
        max_reschedules: int = 2,
        used_reschedules: int = 0,
        status: PackageStatus = PackageStatus.ACTIVE,
        start_date: Optional[date] = None,
    ) -> StudentPackage:
        catalog = self._save(
            Package(
                name=f"{total_classes} classes",
                total_classes=total_classes,
                max_reschedules=max_reschedules,
                duration_months=1,
                price=100,
            )
        )
        start = start_date or date(2025, 3, 1)
        return self._save(
            StudentPackage(
                student_id=student.id,
                package_id=catalog.id,
                start_date=start,
                end_date=start + timedelta(days=30),
                total_classes=total_classes,
                max_reschedules=max_reschedules,
                remaining_classes=0,
                used_reschedules=used_reschedules,
                status=status,
            )
        )

    def class_session(
        self,
        day: date,
        start: time,
        end: time,
        *,
        teacher: Optional[Teacher] = None,
        status: ClassStatus = ClassStatus.SCHEDULED,
        timezone: str = ADMIN_TZ,
    ) -> ClassSession:
        return self._save(
            ClassSession(
                title="Individual Class",
                date=day,
                start_time=start,
                end_time=end,
                teacher_id=teacher.id if teacher else None,
                status=status,
                timezone=timezone,
                max_students=1,
            )
        )

    def booking(
        self,
        student: Student,
        cls: ClassSession,
        package: StudentPackage,
        *,
        status: BookingStatus = BookingStatus.SCHEDULED,
        can_reschedule: bool = True,
    ) -> Booking:
        booking = self._save(
            Booking(
                student_id=student.id,
                class_id=cls.id,
                student_package_id=package.id,
                status=status,
                can_reschedule=can_reschedule,
            )
        )
        if status == BookingStatus.SCHEDULED:
            package.remaining_classes = (package.remaining_classes or 0) + 1
            self.db.commit()
        return booking

    def activity(
        self,
        teacher: Teacher,
        day: date,
        start: time,
        end: time,
        *,
        timezone: Optional[str] = ADMIN_TZ,
        **overrides: Any,
    ) -> TeacherActivity:
        values: Dict[str, Any] = {
            "teacher_id": teacher.id,
            "title": "Staff meeting",
            "date": day,
            "start_time": start,
            "end_time": end,
            "timezone": timezone,
        }
        values.update(overrides)
        return self._save(TeacherActivity(**values))
