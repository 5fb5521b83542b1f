# backend/tutorbook/services/credit_ledger.py
"""
Credit ledger for student packages.

Two kinds of credit live on a StudentPackage:
- reschedule credits: ``used_reschedules`` bounded by ``max_reschedules``;
- class credits: ``remaining_classes``, which is never decremented directly.
  It is recomputed from the package's bookings that are still scheduled,
  so reschedules and out-of-order completions cannot make it drift.

The ledger never commits. Every method runs inside the caller's
transaction, on a package row the caller locked with ``lock_package``.
"""

import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from ..core.enums import PackageStatus
from ..core.exceptions import CreditExhaustedException, NotFoundException
from ..core.timezone_utils import Clock, admin_zone_name, today_in_zone
from ..models.package import StudentPackage
from ..repositories.factory import RepositoryFactory
from .base import BaseService

logger = logging.getLogger(__name__)


class CreditLedger(BaseService):
    """Reschedule and class credit bookkeeping."""

    def __init__(self, db: Session, clock: Optional[Clock] = None):
        super().__init__(db, clock)
        self.package_repository = RepositoryFactory.create_package_repository(db)
        self.booking_repository = RepositoryFactory.create_booking_repository(db)

    def lock_package(self, student_package_id: str) -> StudentPackage:
        """Load a package with SELECT ... FOR UPDATE."""
        package = self.package_repository.get_by_id(student_package_id, for_update=True)
        if package is None:
            raise NotFoundException(
                "Package not found", details={"student_package_id": student_package_id}
            )
        return package

    @staticmethod
    def can_consume_reschedule(package: StudentPackage) -> bool:
        return (package.used_reschedules or 0) < (package.max_reschedules or 0)

    def consume_reschedule(self, package: StudentPackage) -> StudentPackage:
        """
        Spend one reschedule credit.

        Raises:
            CreditExhaustedException: If no reschedule credit is left
        """
        if not self.can_consume_reschedule(package):
            raise CreditExhaustedException(
                used=package.used_reschedules or 0,
                maximum=package.max_reschedules or 0,
                package_id=package.id,
            )
        package.used_reschedules = (package.used_reschedules or 0) + 1
        self.db.flush()
        self.logger.info(
            "Reschedule credit consumed",
            extra={
                "student_package_id": package.id,
                "used_reschedules": package.used_reschedules,
                "max_reschedules": package.max_reschedules,
            },
        )
        return package

    def release_reschedule(self, package: StudentPackage) -> StudentPackage:
        """Give one reschedule credit back; the counter never goes below zero."""
        package.used_reschedules = max(0, (package.used_reschedules or 0) - 1)
        self.db.flush()
        self.logger.info(
            "Reschedule credit released",
            extra={"student_package_id": package.id, "used_reschedules": package.used_reschedules},
        )
        return package

    def recompute_remaining(self, package: StudentPackage) -> StudentPackage:
        """
        Recompute ``remaining_classes`` from scheduled bookings.

        With nothing scheduled (and nothing scheduled in the future) an active
        package becomes ``completed``; otherwise it is ``active``. A
        ``cancelled`` package keeps its status, only its counter changes.
        """
        # Pending booking transitions must be visible to the count
        self.db.flush()

        scheduled = self.booking_repository.count_scheduled_for_package(package.id)
        previous_status = package.status
        package.remaining_classes = scheduled

        if package.status != PackageStatus.CANCELLED:
            today = today_in_zone(admin_zone_name(), self.clock)
            has_future = self.booking_repository.has_future_scheduled(package.id, today)
            if scheduled == 0 and not has_future:
                package.status = PackageStatus.COMPLETED
            else:
                package.status = PackageStatus.ACTIVE

        self.db.flush()
        if package.status != previous_status:
            self.logger.info(
                "Package status changed",
                extra={
                    "student_package_id": package.id,
                    "from_status": str(getattr(previous_status, "value", previous_status)),
                    "to_status": package.status.value,
                    "remaining_classes": scheduled,
                },
            )
        return package

    def check_invariants(self, package: StudentPackage) -> List[str]:
        """
        Return a description of every violated credit invariant (empty when healthy).
        """
        self.db.flush()
        violations: List[str] = []
        used = package.used_reschedules or 0
        maximum = package.max_reschedules or 0
        if used < 0:
            violations.append(f"used_reschedules is negative ({used})")
        if used > maximum:
            violations.append(f"used_reschedules ({used}) exceeds max_reschedules ({maximum})")

        scheduled = self.booking_repository.count_scheduled_for_package(package.id)
        if package.remaining_classes != scheduled:
            violations.append(
                f"remaining_classes ({package.remaining_classes}) "
                f"!= scheduled bookings ({scheduled})"
            )
        return violations
