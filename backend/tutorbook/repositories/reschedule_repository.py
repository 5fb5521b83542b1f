"""Reschedule record repository."""

from typing import List, Optional

from sqlalchemy.orm import Session

from ..core.constants import DEFAULT_QUERY_LIMIT
from ..core.enums import RescheduleStatus
from ..models.reschedule import RescheduleRecord
from .base_repository import BaseRepository


class RescheduleRepository(BaseRepository[RescheduleRecord]):
    def __init__(self, db: Session):
        super().__init__(db, RescheduleRecord)

    def list_for_student(self, student_id: str) -> List[RescheduleRecord]:
        query = (
            self.db.query(RescheduleRecord)
            .filter(RescheduleRecord.student_id == student_id)
            .order_by(RescheduleRecord.rescheduled_at.desc(), RescheduleRecord.id.desc())
        )
        return self._execute_query(query)

    def list_recent(
        self,
        *,
        status: Optional[RescheduleStatus] = None,
        limit: int = DEFAULT_QUERY_LIMIT,
    ) -> List[RescheduleRecord]:
        query = self.db.query(RescheduleRecord)
        if status is not None:
            query = query.filter(RescheduleRecord.status == status.value)
        query = query.order_by(
            RescheduleRecord.rescheduled_at.desc(), RescheduleRecord.id.desc()
        ).limit(limit)
        return self._execute_query(query)
