# backend/tutorbook/services/lifecycle_service.py
"""
Lifecycle sweep for classes, bookings and packages.

The sweep is the only writer of ``scheduled -> completed`` (classes) and
``scheduled -> attended`` (bookings). One run:

1. prefilters scheduled classes whose end passed in the admin zone;
2. completes each class in its own sub-transaction;
3. flips each scheduled booking on it to ``attended`` once the class has
   ended for that booking's own student (falling back to the admin zone);
   otherwise the booking stays scheduled for the next run;
4. recomputes every package touched.

Each run also re-evaluates scheduled bookings left on completed classes.
A failing unit is logged and rolled back; the next run retries it.
"""

from dataclasses import asdict, dataclass, field
from datetime import datetime
import logging
from threading import Lock
import time
from typing import Any, Dict, List, Optional, Set

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.enums import BookingStatus, ClassStatus, PackageStatus
from ..core.timezone_utils import Clock, admin_zone_name, is_past, now_in_zone, resolve_zone
from ..database import with_db_retry
from ..database.session_utils import set_local_statement_timeout
from ..models.booking import Booking
from ..models.class_session import ClassSession
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..monitoring.time_check_sink import TimeCheckEvent, TimeCheckSink
from ..repositories.factory import RepositoryFactory
from .base import BaseService
from .credit_ledger import CreditLedger

logger = logging.getLogger(__name__)

# Serializes sweeps started in this process (timer and manual trigger)
_SWEEP_LOCK = Lock()


@dataclass
class UnitOutcome:
    class_completed: bool = False
    bookings_attended: int = 0
    bookings_deferred: int = 0
    packages_recomputed: int = 0
    packages_completed: int = 0


@dataclass
class SweepResult:
    """Summary of one sweep run."""

    started_at: datetime
    finished_at: Optional[datetime] = None
    candidates: int = 0
    classes_completed: int = 0
    bookings_attended: int = 0
    bookings_deferred: int = 0
    packages_recomputed: int = 0
    packages_completed: int = 0
    failed_units: int = 0
    failed_class_ids: List[str] = field(default_factory=list)
    duration_seconds: float = 0.0

    def absorb(self, outcome: UnitOutcome) -> None:
        self.classes_completed += int(outcome.class_completed)
        self.bookings_attended += outcome.bookings_attended
        self.bookings_deferred += outcome.bookings_deferred
        self.packages_recomputed += outcome.packages_recomputed
        self.packages_completed += outcome.packages_completed

    @property
    def transitions(self) -> int:
        return self.classes_completed + self.bookings_attended + self.packages_completed

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class LifecycleService(BaseService):
    """
    Advances class, booking and package state as time passes.

    Args:
        db: Session used for every sub-transaction of the run
        clock: Injectable UTC clock
        sink: Recorder of time-check decisions
    """

    def __init__(
        self,
        db: Session,
        clock: Optional[Clock] = None,
        *,
        sink: Optional[TimeCheckSink] = None,
        credit_ledger: Optional[CreditLedger] = None,
    ):
        super().__init__(db, clock)
        self.class_repository = RepositoryFactory.create_class_repository(db)
        self.booking_repository = RepositoryFactory.create_booking_repository(db)
        self.package_repository = RepositoryFactory.create_package_repository(db)
        self.ledger = credit_ledger or CreditLedger(db, self.clock)
        self.sink = sink or TimeCheckSink(settings.time_check_log_size)
        self.unit_timeout_ms = settings.sweep_unit_timeout_ms

    @BaseService.measure_operation("run_sweep")
    def run_sweep(self) -> SweepResult:
        """One full pass over due classes and pending bookings."""
        with _SWEEP_LOCK:
            return self._run(student_id=None)

    def run_sweep_now(self) -> SweepResult:
        """Manual trigger; safe to call while the timer is active."""
        self.logger.info("Manual sweep requested")
        return self.run_sweep()

    @BaseService.measure_operation("sweep_student")
    def sweep_student(self, student_id: str) -> SweepResult:
        """Reconcile one student's classes and packages now."""
        with _SWEEP_LOCK:
            result = self._run(student_id=student_id)
            with self.transaction():
                for package in self.package_repository.list_for_student(student_id):
                    locked = self.ledger.lock_package(package.id)
                    before = locked.status
                    self.ledger.recompute_remaining(locked)
                    result.packages_recomputed += 1
                    if locked.status != before and locked.status == PackageStatus.COMPLETED:
                        result.packages_completed += 1
            return result

    # Internals

    def _run(self, student_id: Optional[str]) -> SweepResult:
        started = time.monotonic()
        admin_now = now_in_zone(admin_zone_name(), self.clock)
        result = SweepResult(started_at=self.now())

        due_ids = self._due_class_ids(admin_now, student_id)
        pending_ids = [
            class_id
            for class_id in self._pending_class_ids(student_id)
            if class_id not in set(due_ids)
        ]
        result.candidates = len(due_ids)

        for class_id in due_ids + pending_ids:
            try:
                outcome = self._process_class(class_id)
            except Exception as exc:
                # Unit isolation: roll back this class only; it is retried next run
                result.failed_units += 1
                result.failed_class_ids.append(class_id)
                prometheus_metrics.inc_sweep_unit_failure()
                self.logger.error(
                    "Sweep unit failed, will retry on next run",
                    exc_info=True,
                    extra={"class_id": class_id, "error": str(exc)},
                )
                continue
            result.absorb(outcome)

        result.finished_at = self.now()
        result.duration_seconds = time.monotonic() - started
        prometheus_metrics.record_sweep(
            result.duration_seconds,
            classes_completed=result.classes_completed,
            bookings_attended=result.bookings_attended,
            bookings_deferred=result.bookings_deferred,
            packages_completed=result.packages_completed,
        )

        self.logger.info(
            "Lifecycle sweep finished",
            extra={
                "student_id": student_id,
                "candidates": result.candidates,
                "classes_completed": result.classes_completed,
                "bookings_attended": result.bookings_attended,
                "bookings_deferred": result.bookings_deferred,
                "packages_completed": result.packages_completed,
                "failed_units": result.failed_units,
                "duration_seconds": round(result.duration_seconds, 3),
            },
        )
        return result

    def _due_class_ids(self, admin_now: datetime, student_id: Optional[str]) -> List[str]:
        today = admin_now.date()
        now_time = admin_now.time().replace(tzinfo=None)

        def _query() -> List[str]:
            if student_id:
                classes = self.class_repository.find_for_student(
                    student_id, [ClassStatus.SCHEDULED]
                )
                due = [
                    c.id
                    for c in classes
                    if c.date < today or (c.date == today and c.end_time < now_time)
                ]
            else:
                due = [c.id for c in self.class_repository.find_due_for_completion(today, now_time)]
            # End the read-only transaction before the per-unit ones start
            self.db.commit()
            return due

        return with_db_retry("sweep_prefilter", _query)

    def _pending_class_ids(self, student_id: Optional[str]) -> List[str]:
        def _query() -> List[str]:
            pending = self.class_repository.find_completed_with_pending_bookings(student_id)
            ids = [c.id for c in pending]
            self.db.commit()
            return ids

        return with_db_retry("sweep_pending", _query)

    def _process_class(self, class_id: str) -> UnitOutcome:
        """Complete one class and settle its bookings, in one sub-transaction."""
        outcome = UnitOutcome()
        now = self.now()

        with self.transaction():
            set_local_statement_timeout(self.db, self.unit_timeout_ms)

            cls = self.class_repository.get_by_id(class_id, for_update=True)
            if cls is None or cls.status == ClassStatus.CANCELLED:
                return outcome

            if cls.status == ClassStatus.SCHEDULED:
                # Completion is a fact of the admin zone, independent of participants
                cls.status = ClassStatus.COMPLETED
                cls.completed_at = now
                outcome.class_completed = True

            touched: Set[str] = set()
            bookings = self.booking_repository.get_scheduled_for_class(class_id, for_update=True)
            for booking in bookings:
                if self._has_ended_for(cls, booking, now):
                    booking.status = BookingStatus.ATTENDED
                    outcome.bookings_attended += 1
                    touched.add(booking.student_package_id)
                else:
                    outcome.bookings_deferred += 1

            self.db.flush()
            for package_id in sorted(touched):
                package = self.ledger.lock_package(package_id)
                before = package.status
                self.ledger.recompute_remaining(package)
                outcome.packages_recomputed += 1
                if package.status != before and package.status == PackageStatus.COMPLETED:
                    outcome.packages_completed += 1

        return outcome

    def _has_ended_for(self, cls: ClassSession, booking: Booking, now: datetime) -> bool:
        """
        Whether the class has ended for the booking's student.

        The lesson's wall-clock end is read in the student's own zone, so a
        student behind the admin zone keeps the booking scheduled until the
        end time passes locally.
        """
        student = booking.student
        observer_zone = str(resolve_zone(student.timezone if student else None))
        ended = is_past(cls.date, cls.end_time, observer_zone, observer_zone, now)

        self.sink.record(
            TimeCheckEvent(
                checked_at=now,
                class_id=cls.id,
                booking_id=booking.id,
                student_id=booking.student_id,
                class_date=cls.date,
                end_time=cls.end_time,
                source_timezone=cls.timezone,
                observer_timezone=observer_zone,
                observer_now=now_in_zone(observer_zone, lambda: now),
                is_past=ended,
            )
        )
        return ended
