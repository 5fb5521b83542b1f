# backend/tutorbook/repositories/teacher_repository.py
"""
Teacher Repository.

Teachers, their student assignments and their non-class activities.
"""

from datetime import date
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from ..core.enums import ActivityStatus
from ..models.teacher import Teacher, TeacherActivity, TeacherStudent
from .base_repository import BaseRepository


class TeacherRepository(BaseRepository[Teacher]):
    """Data access for teachers and their calendars."""

    def __init__(self, db: Session):
        super().__init__(db, Teacher)

    def lock_calendar(self, teacher_id: str) -> Optional[Teacher]:
        """
        Row-lock a teacher for the rest of the transaction.

        Every write that adds a class or booking to the teacher's calendar
        takes this lock first, so two writers cannot both find the same slot
        free.
        """
        return self.get_by_id(teacher_id, for_update=True)

    def list_active(self) -> List[Teacher]:
        query = self.db.query(Teacher).filter(Teacher.active.is_(True)).order_by(Teacher.id)
        return self._execute_query(query)

    def list_by_ids(self, ids: List[str]) -> List[Teacher]:
        if not ids:
            return []
        query = (
            self.db.query(Teacher)
            .filter(Teacher.id.in_(ids), Teacher.active.is_(True))
            .order_by(Teacher.id)
        )
        return self._execute_query(query)

    def get_assigned_teacher_ids(self, student_id: str) -> List[str]:
        """Teachers actively assigned to a student (the student's primary teachers)."""
        rows = (
            self.db.query(TeacherStudent.teacher_id)
            .filter(TeacherStudent.student_id == student_id, TeacherStudent.active.is_(True))
            .order_by(TeacherStudent.teacher_id)
            .all()
        )
        return [row[0] for row in rows]

    def get_active_student_ids(self, teacher_id: str) -> List[str]:
        rows = (
            self.db.query(TeacherStudent.student_id)
            .filter(TeacherStudent.teacher_id == teacher_id, TeacherStudent.active.is_(True))
            .all()
        )
        return [row[0] for row in rows]

    def get_activities(
        self, teacher_id: str, start_date: date, end_date: date
    ) -> Dict[date, List[TeacherActivity]]:
        """Non-cancelled activities of a teacher, grouped by date."""
        query = (
            self.db.query(TeacherActivity)
            .filter(
                TeacherActivity.teacher_id == teacher_id,
                TeacherActivity.date >= start_date,
                TeacherActivity.date <= end_date,
                TeacherActivity.status != ActivityStatus.CANCELLED.value,
            )
            .order_by(TeacherActivity.date, TeacherActivity.start_time)
        )
        grouped: Dict[date, List[TeacherActivity]] = {}
        for activity in self._execute_query(query):
            grouped.setdefault(activity.date, []).append(activity)
        return grouped
