# backend/tutorbook/services/reschedule_service.py
"""
Reschedule Service for the tutorbook scheduling engine.

Moves a student from a booked class to another slot in one transaction:

1. lock the target teacher's calendar, then resolve (or create) the target class,
2. mark the old booking ``rescheduled``,
3. create the new booking (not reschedulable again),
4. append a RescheduleRecord,
5. consume one reschedule credit.

An admin cancellation of the record is the exact inverse of those five
effects. Optimistic-lock conflicts are retried once before surfacing.
"""

from dataclasses import dataclass
from datetime import date, time
import logging
from typing import Callable, List, Optional, TypeVar

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from ..core.config import settings
from ..core.constants import DEFAULT_CLASS_TITLE, DEFAULT_RESCHEDULE_REASON
from ..core.enums import BookingStatus, ClassStatus, PackageStatus, RescheduleStatus
from ..core.exceptions import (
    ConcurrentModificationException,
    DomainException,
    ForbiddenException,
    NoActivePackageException,
    NotEligibleException,
    NotFoundException,
    RepositoryException,
    SlotUnavailableException,
    TooLateToRescheduleException,
    ValidationException,
)
from ..core.timezone_utils import (
    Clock,
    add_minutes,
    admin_zone_name,
    hours_until,
    is_past,
)
from ..models.booking import Booking
from ..models.class_session import ClassSession
from ..models.package import StudentPackage
from ..models.reschedule import RescheduleRecord
from ..models.student import Student
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.factory import RepositoryFactory
from .availability_service import AvailabilityService
from .base import BaseService
from .credit_ledger import CreditLedger

logger = logging.getLogger(__name__)

T = TypeVar("T")

REINSTATED_NOTE = "Reinstated after cancelled reschedule"
CANCELLED_NOTE = "Cancelled due to reschedule cancellation"


@dataclass
class NewSlot:
    """Target of a reschedule: an existing class, or a date/time to resolve."""

    date: Optional[date] = None
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    class_id: Optional[str] = None
    title: Optional[str] = None


@dataclass
class RescheduleResult:
    old_booking: Booking
    new_booking: Booking
    record: RescheduleRecord
    new_class: ClassSession
    different_teacher: bool


@dataclass
class ReversalResult:
    record: RescheduleRecord
    old_booking: Booking
    new_booking: Booking
    student_package: StudentPackage
    new_class_cancelled: bool


def _is_integrity_error(exc: BaseException) -> bool:
    current: Optional[BaseException] = exc
    while current is not None:
        if isinstance(current, IntegrityError):
            return True
        current = current.__cause__
    return False


class RescheduleService(BaseService):
    """Reschedule transaction and its admin reversal."""

    def __init__(
        self,
        db: Session,
        clock: Optional[Clock] = None,
        *,
        availability_service: Optional[AvailabilityService] = None,
        credit_ledger: Optional[CreditLedger] = None,
    ):
        super().__init__(db, clock)
        self.booking_repository = RepositoryFactory.create_booking_repository(db)
        self.class_repository = RepositoryFactory.create_class_repository(db)
        self.package_repository = RepositoryFactory.create_package_repository(db)
        self.reschedule_repository = RepositoryFactory.create_reschedule_repository(db)
        self.teacher_repository = RepositoryFactory.create_teacher_repository(db)
        self.student_repository = RepositoryFactory.create_base_repository(db, Student)
        self.availability_service = availability_service or AvailabilityService(
            db, self.clock, max_workers=1
        )
        self.ledger = credit_ledger or CreditLedger(db, self.clock)
        self.min_notice_hours = settings.reschedule_min_notice_hours

    # Public operations

    @BaseService.measure_operation("reschedule")
    def reschedule(
        self,
        student_id: str,
        old_class_id: str,
        new_slot: NewSlot,
        reason: Optional[str] = None,
        teacher_id: Optional[str] = None,
    ) -> RescheduleResult:
        """
        Move a student's scheduled booking to a new slot.

        Raises:
            NotEligibleException: No scheduled, reschedulable booking on the old class
            NoActivePackageException: The student has no active package
            CreditExhaustedException: No reschedule credit left
            TooLateToRescheduleException: The old class starts too soon
            SlotUnavailableException: The target slot is taken
            ConcurrentModificationException: Version conflict persisted after a retry
            ServiceUnavailableException: The datastore failed (rolled back)
        """
        try:
            result = self._with_retry(
                "booking",
                lambda: self._reschedule_once(
                    student_id, old_class_id, new_slot, reason, teacher_id
                ),
            )
        except DomainException as exc:
            prometheus_metrics.inc_reschedule(exc.code)
            self.logger.info(
                "Reschedule rejected",
                extra={"student_id": student_id, "old_class_id": old_class_id, "code": exc.code},
            )
            raise

        prometheus_metrics.inc_reschedule(RescheduleStatus.CONFIRMED.value)
        self.log_operation(
            "reschedule",
            student_id=student_id,
            old_class_id=old_class_id,
            new_class_id=result.new_class.id,
            reschedule_id=result.record.id,
            different_teacher=result.different_teacher,
        )
        return result

    @BaseService.measure_operation("cancel_reschedule")
    def cancel_reschedule(
        self, record_id: str, cancelled_by: Optional[str] = None
    ) -> ReversalResult:
        """
        Reverse a confirmed reschedule (admin only).

        Restores the old booking, cancels the new one, gives the credit back,
        cancels the class the reschedule created when nothing else is booked
        on it, and marks the record cancelled.
        """
        result = self._with_retry(
            "reschedule",
            lambda: self._cancel_once(record_id, cancelled_by),
        )
        prometheus_metrics.inc_reschedule_reversal()
        self.log_operation(
            "cancel_reschedule",
            reschedule_id=record_id,
            cancelled_by=cancelled_by,
            new_class_cancelled=result.new_class_cancelled,
        )
        return result

    @BaseService.measure_operation("list_student_reschedules")
    def list_student_reschedules(self, student_id: str) -> List[RescheduleRecord]:
        return self.reschedule_repository.list_for_student(student_id)

    @BaseService.measure_operation("list_reschedules")
    def list_reschedules(
        self, status: Optional[RescheduleStatus] = None, limit: int = 100
    ) -> List[RescheduleRecord]:
        return self.reschedule_repository.list_recent(status=status, limit=limit)

    # Transaction bodies

    def _reschedule_once(
        self,
        student_id: str,
        old_class_id: str,
        new_slot: NewSlot,
        reason: Optional[str],
        teacher_id: Optional[str],
    ) -> RescheduleResult:
        now = self.now()

        old_booking = self.booking_repository.get_student_booking(
            student_id, old_class_id, for_update=True
        )
        if old_booking is None or old_booking.status != BookingStatus.SCHEDULED:
            raise NotEligibleException(
                "Class not found or not eligible for rescheduling",
                details={"student_id": student_id, "class_id": old_class_id},
            )
        if not old_booking.can_reschedule:
            raise NotEligibleException(
                "A rescheduled class cannot be rescheduled again",
                details={"booking_id": old_booking.id},
            )

        package = self._resolve_active_package(student_id, old_booking)

        if not self.ledger.can_consume_reschedule(package):
            # consume_reschedule raises the typed error with the counters
            self.ledger.consume_reschedule(package)

        old_class = self.class_repository.get_by_id(old_class_id)
        if old_class is None:
            raise NotEligibleException(
                "Class not found or not eligible for rescheduling",
                details={"class_id": old_class_id},
            )
        lead_hours = hours_until(
            old_class.date, old_class.start_time, old_class.timezone or admin_zone_name(), now
        )
        if lead_hours < self.min_notice_hours:
            raise TooLateToRescheduleException(self.min_notice_hours, lead_hours)

        requested = self._get_requested_class(new_slot) if new_slot.class_id else None
        target_teacher_id = self._target_teacher_id(requested, teacher_id, old_class.teacher_id)
        self._check_teacher_allowed(student_id, old_class.teacher_id, target_teacher_id)

        # Serializes every writer on this teacher's calendar until commit
        if target_teacher_id:
            self.teacher_repository.lock_calendar(target_teacher_id)

        if requested is not None:
            new_class, created = self._lock_requested_class(requested.id, now), False
        else:
            new_class, created = self._find_or_create_slot(new_slot, target_teacher_id, now)
        if new_class.id == old_class.id:
            raise ValidationException(
                "The new slot is the class being rescheduled", details={"class_id": new_class.id}
            )
        self._check_slot_free(new_class, old_class, target_teacher_id)

        old_teacher_id = old_class.teacher_id
        new_teacher_id = new_class.teacher_id or target_teacher_id
        different_teacher = bool(
            old_teacher_id and new_teacher_id and old_teacher_id != new_teacher_id
        )

        if target_teacher_id and not new_class.teacher_id:
            new_class.teacher_id = target_teacher_id

        when = new_class.date.strftime("%b %d, %Y")
        suffix = " with a different teacher" if different_teacher else ""
        old_booking.status = BookingStatus.RESCHEDULED
        old_booking.can_reschedule = False
        old_booking.rescheduled_date = new_class.date
        old_booking.append_note(f"Rescheduled to class #{new_class.id} on {when}{suffix}")
        self.db.flush()

        new_booking = self.booking_repository.create(
            student_id=student_id,
            class_id=new_class.id,
            student_package_id=package.id,
            status=BookingStatus.SCHEDULED,
            can_reschedule=False,
            original_class_id=old_class.id,
            notes=f"Rescheduled from class #{old_class.id}{suffix}",
        )

        record = self.reschedule_repository.create(
            student_id=student_id,
            old_class_id=old_class.id,
            new_class_id=new_class.id,
            old_booking_id=old_booking.id,
            new_booking_id=new_booking.id,
            student_package_id=package.id,
            reason=reason or DEFAULT_RESCHEDULE_REASON,
            different_teacher=different_teacher,
            old_teacher_id=old_teacher_id,
            new_teacher_id=new_teacher_id,
            new_class_created=created,
            status=RescheduleStatus.CONFIRMED,
            rescheduled_at=now,
        )

        self.ledger.consume_reschedule(package)
        self._recompute_packages(package, old_booking.student_package_id)

        return RescheduleResult(
            old_booking=old_booking,
            new_booking=new_booking,
            record=record,
            new_class=new_class,
            different_teacher=different_teacher,
        )

    def _cancel_once(self, record_id: str, cancelled_by: Optional[str]) -> ReversalResult:
        record = self.reschedule_repository.get_by_id(record_id, for_update=True)
        if record is None:
            raise NotFoundException(
                "Reschedule record not found", details={"reschedule_id": record_id}
            )
        if record.status != RescheduleStatus.CONFIRMED:
            raise NotEligibleException(
                "Only confirmed reschedules can be cancelled",
                details={"reschedule_id": record_id, "status": str(record.status)},
            )

        old_booking = self.booking_repository.get_by_id(record.old_booking_id, for_update=True)
        new_booking = self.booking_repository.get_by_id(record.new_booking_id, for_update=True)
        if new_booking is None or new_booking.status != BookingStatus.SCHEDULED:
            raise NotEligibleException(
                "The rescheduled class is no longer scheduled",
                details={"reschedule_id": record_id, "booking_id": record.new_booking_id},
            )
        if old_booking is None or old_booking.status != BookingStatus.RESCHEDULED:
            raise NotEligibleException(
                "The original booking can no longer be reinstated",
                details={"reschedule_id": record_id, "booking_id": record.old_booking_id},
            )

        new_booking.status = BookingStatus.CANCELLED
        new_booking.append_note(CANCELLED_NOTE)
        self.db.flush()

        old_booking.status = BookingStatus.SCHEDULED
        old_booking.can_reschedule = True
        old_booking.rescheduled_date = None
        old_booking.append_note(REINSTATED_NOTE)
        self.db.flush()

        package = self.ledger.lock_package(record.student_package_id)
        self.ledger.release_reschedule(package)

        new_class_cancelled = False
        if record.new_class_created:
            new_class = self.class_repository.get_by_id(record.new_class_id, for_update=True)
            if (
                new_class is not None
                and new_class.status == ClassStatus.SCHEDULED
                and self.booking_repository.count_scheduled_for_class(new_class.id) == 0
            ):
                new_class.status = ClassStatus.CANCELLED
                new_class_cancelled = True

        record.status = RescheduleStatus.CANCELLED
        record.cancelled_at = self.now()
        record.cancelled_by = cancelled_by
        self.db.flush()

        self._recompute_packages(package, old_booking.student_package_id)

        return ReversalResult(
            record=record,
            old_booking=old_booking,
            new_booking=new_booking,
            student_package=package,
            new_class_cancelled=new_class_cancelled,
        )

    # Helpers

    def _with_retry(self, entity: str, body: Callable[[], T]) -> T:
        """Run ``body`` in a transaction; retry once on an optimistic-lock conflict."""
        attempt = 0
        while True:
            try:
                with self.transaction():
                    return body()
            except StaleDataError as exc:
                if attempt >= 1:
                    raise ConcurrentModificationException(entity) from exc
                attempt += 1
                self.logger.warning(
                    "Concurrent modification detected, retrying",
                    extra={"entity": entity, "attempt": attempt},
                )
            except (IntegrityError, RepositoryException) as exc:
                if _is_integrity_error(exc):
                    raise SlotUnavailableException(
                        details={"reason": "already_booked"}
                    ) from exc
                raise

    def _resolve_active_package(self, student_id: str, old_booking: Booking) -> StudentPackage:
        """The old booking's package when active, else the student's active package."""
        package = self.package_repository.get_by_id(old_booking.student_package_id, for_update=True)
        if package is not None and package.status == PackageStatus.ACTIVE:
            return package
        package = self.package_repository.get_active_for_student(student_id, for_update=True)
        if package is None:
            raise NoActivePackageException(student_id)
        return package

    def _check_teacher_allowed(
        self, student_id: str, old_teacher_id: Optional[str], target_teacher_id: Optional[str]
    ) -> None:
        if not target_teacher_id or target_teacher_id == old_teacher_id:
            return
        student = self.student_repository.get_by_id(student_id)
        if student is not None and student.allow_different_teacher:
            return
        if target_teacher_id in self.teacher_repository.get_assigned_teacher_ids(student_id):
            return
        raise ForbiddenException(
            "This student can only book classes with their assigned teachers",
            code="DIFFERENT_TEACHER_NOT_ALLOWED",
            details={"student_id": student_id, "teacher_id": target_teacher_id},
        )

    def _get_requested_class(self, new_slot: NewSlot) -> ClassSession:
        """Unlocked read of a class chosen by id; only its teacher is needed before locking."""
        target = self.class_repository.get_by_id(new_slot.class_id)
        if target is None:
            raise NotFoundException("Class not found", details={"class_id": new_slot.class_id})
        return target

    @staticmethod
    def _target_teacher_id(
        requested: Optional[ClassSession],
        teacher_id: Optional[str],
        old_teacher_id: Optional[str],
    ) -> Optional[str]:
        """
        Teacher the student ends up with.

        A class chosen by id decides the teacher; an explicit ``teacher_id``
        must then agree with it.
        """
        if requested is not None and requested.teacher_id:
            if teacher_id and teacher_id != requested.teacher_id:
                raise ValidationException(
                    "The selected class belongs to a different teacher",
                    details={
                        "class_id": requested.id,
                        "teacher_id": teacher_id,
                        "class_teacher_id": requested.teacher_id,
                    },
                )
            return requested.teacher_id
        return teacher_id or old_teacher_id

    def _lock_requested_class(self, class_id: str, now) -> ClassSession:
        target = self.class_repository.get_by_id(class_id, for_update=True)
        if target is None:
            raise NotFoundException("Class not found", details={"class_id": class_id})
        if target.status != ClassStatus.SCHEDULED:
            raise SlotUnavailableException(
                "The selected class is not open for booking",
                details={"class_id": target.id, "status": str(target.status)},
            )
        if is_past(target.date, target.start_time, target.timezone, target.timezone, now):
            raise ValidationException(
                "The new slot must be in the future", details={"class_id": target.id}
            )
        return target

    def _find_or_create_slot(
        self, new_slot: NewSlot, teacher_id: Optional[str], now
    ) -> tuple[ClassSession, bool]:
        """Reuse the teacher's class at exactly this slot or create it; returns (class, created)."""
        admin_zone = admin_zone_name()

        if new_slot.date is None or new_slot.start_time is None:
            raise ValidationException("A new slot needs a class id or a date and start time")

        end_time = new_slot.end_time or add_minutes(
            new_slot.start_time, settings.class_duration_minutes
        )
        if is_past(new_slot.date, new_slot.start_time, admin_zone, admin_zone, now):
            raise ValidationException(
                "The new slot must be in the future",
                details={"date": new_slot.date.isoformat(), "start_time": str(new_slot.start_time)},
            )

        existing = self.class_repository.find_slot(
            new_slot.date, new_slot.start_time, end_time, teacher_id=teacher_id
        )
        if existing is not None:
            return existing, False

        created = self.class_repository.create(
            title=new_slot.title or DEFAULT_CLASS_TITLE,
            date=new_slot.date,
            start_time=new_slot.start_time,
            end_time=end_time,
            teacher_id=teacher_id,
            status=ClassStatus.SCHEDULED,
            timezone=admin_zone,
            max_students=1,
        )
        return created, True

    def _check_slot_free(
        self, new_class: ClassSession, old_class: ClassSession, teacher_id: Optional[str]
    ) -> None:
        booked = self.booking_repository.count_scheduled_for_class(new_class.id)
        if booked >= (new_class.max_students or 1):
            raise SlotUnavailableException(
                details={"class_id": new_class.id, "reason": "class_full"}
            )

        conflict = self.availability_service.find_conflict(
            teacher_id or new_class.teacher_id,
            new_class.date,
            new_class.start_time,
            new_class.end_time,
            exclude_class_ids=[old_class.id, new_class.id],
        )
        if conflict is not None:
            raise SlotUnavailableException(
                details={
                    "class_id": new_class.id,
                    "reason": "teacher_busy",
                    "conflicting_range": conflict.label(),
                }
            )

    def _recompute_packages(self, package: StudentPackage, other_package_id: Optional[str]) -> None:
        self.ledger.recompute_remaining(package)
        if other_package_id and other_package_id != package.id:
            other = self.ledger.lock_package(other_package_id)
            self.ledger.recompute_remaining(other)
