"""Principal abstraction for authenticated callers.

Authentication happens upstream; whatever authenticates the request places a
``Principal`` on ``request.state.principal``. The engine only consumes it.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .core.enums import PrincipalRole


@dataclass(frozen=True)
class Principal:
    """The entity making a request."""

    id: str
    role: PrincipalRole
    # Set when the principal acts as a student or teacher record
    student_id: Optional[str] = None
    teacher_id: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role == PrincipalRole.ADMIN

    @property
    def is_teacher(self) -> bool:
        return self.role == PrincipalRole.TEACHER

    @property
    def is_student(self) -> bool:
        return self.role == PrincipalRole.STUDENT
