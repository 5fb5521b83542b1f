# backend/tutorbook/repositories/package_repository.py
"""Student package repository (credit rows)."""

from typing import List, Optional

from sqlalchemy.orm import Session

from ..core.enums import PackageStatus
from ..models.package import StudentPackage
from .base_repository import BaseRepository


class PackageRepository(BaseRepository[StudentPackage]):
    """Data access for packages assigned to students."""

    def __init__(self, db: Session):
        super().__init__(db, StudentPackage)

    def get_active_for_student(
        self, student_id: str, *, for_update: bool = False
    ) -> Optional[StudentPackage]:
        """Most recently started active package of a student."""
        query = (
            self.db.query(StudentPackage)
            .filter(
                StudentPackage.student_id == student_id,
                StudentPackage.status == PackageStatus.ACTIVE.value,
            )
            .order_by(StudentPackage.start_date.desc(), StudentPackage.id.desc())
        )
        if for_update:
            query = self._lock(query)
        return query.first()

    def list_for_student(self, student_id: str) -> List[StudentPackage]:
        query = (
            self.db.query(StudentPackage)
            .filter(StudentPackage.student_id == student_id)
            .order_by(StudentPackage.start_date, StudentPackage.id)
        )
        return self._execute_query(query)

    def get_many(self, ids: List[str], *, for_update: bool = False) -> List[StudentPackage]:
        if not ids:
            return []
        query = (
            self.db.query(StudentPackage)
            .filter(StudentPackage.id.in_(ids))
            .order_by(StudentPackage.id)
        )
        if for_update:
            query = self._lock(query)
        return self._execute_query(query)
