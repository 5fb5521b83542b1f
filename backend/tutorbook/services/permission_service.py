# backend/tutorbook/services/permission_service.py
"""
Capability checks for the scheduling routes.

Who may act on a student's schedule:
- the student themself;
- an admin;
- a teacher with an active assignment to the student.
"""

from typing import Dict, Optional

from sqlalchemy.orm import Session

from ..core.exceptions import ForbiddenException
from ..principal import Principal
from ..repositories.factory import RepositoryFactory
from .base import BaseService


class PermissionService(BaseService):
    """Answers capability questions about a principal."""

    def __init__(self, db: Session):
        super().__init__(db)
        self._cache: Dict[str, bool] = {}  # Per-request memo of assignment lookups
        self.teacher_repository = RepositoryFactory.create_teacher_repository(db)

    def is_assigned_teacher(self, teacher_id: str, student_id: str) -> bool:
        cache_key = f"{teacher_id}:{student_id}"
        if cache_key not in self._cache:
            assigned = self.teacher_repository.get_assigned_teacher_ids(student_id)
            self._cache[cache_key] = teacher_id in assigned
        return self._cache[cache_key]

    def can_act_for_student(self, principal: Optional[Principal], student_id: str) -> bool:
        if principal is None:
            return False
        if principal.is_admin:
            return True
        if principal.is_student:
            return principal.student_id == student_id
        if principal.is_teacher and principal.teacher_id:
            return self.is_assigned_teacher(principal.teacher_id, student_id)
        return False

    def require_student_access(self, principal: Optional[Principal], student_id: str) -> None:
        """
        Raises:
            ForbiddenException: If the principal may not act for the student
        """
        if not self.can_act_for_student(principal, student_id):
            self.logger.warning(
                "Student access denied",
                extra={
                    "principal_id": getattr(principal, "id", None),
                    "student_id": student_id,
                },
            )
            raise ForbiddenException(
                "Not allowed to act for this student", details={"student_id": student_id}
            )

    def require_admin(self, principal: Optional[Principal]) -> None:
        if principal is None or not principal.is_admin:
            raise ForbiddenException("Admin access required")
