# backend/tutorbook/api/dependencies/services.py
"""
Service layer dependencies for dependency injection.

This module provides factory functions that create service instances
with their required dependencies properly injected. The clock and the
time-check sink are dependencies too, so tests can swap them through
``app.dependency_overrides``.
"""

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from ...core.config import settings
from ...core.timezone_utils import Clock, utc_now
from ...database import SessionLocal
from ...monitoring.time_check_sink import TimeCheckSink
from ...services.availability_service import AvailabilityService
from ...services.credit_ledger import CreditLedger
from ...services.lifecycle_service import LifecycleService
from ...services.permission_service import PermissionService
from ...services.reschedule_service import RescheduleService
from .database import get_db


def get_clock() -> Clock:
    return utc_now


def get_time_check_sink(request: Request) -> TimeCheckSink:
    """The application's time-check sink (created on first use)."""
    sink = getattr(request.app.state, "time_check_sink", None)
    if sink is None:
        sink = TimeCheckSink(settings.time_check_log_size)
        request.app.state.time_check_sink = sink
    return sink


def get_permission_service(db: Session = Depends(get_db)) -> PermissionService:
    return PermissionService(db)


def get_credit_ledger(
    db: Session = Depends(get_db), clock: Clock = Depends(get_clock)
) -> CreditLedger:
    return CreditLedger(db, clock)


def get_availability_service(
    db: Session = Depends(get_db), clock: Clock = Depends(get_clock)
) -> AvailabilityService:
    """
    Get availability service instance.

    Multi-teacher queries open one session per worker from SessionLocal.
    """
    return AvailabilityService(db, clock, session_factory=SessionLocal)


def get_reschedule_service(
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    credit_ledger: CreditLedger = Depends(get_credit_ledger),
) -> RescheduleService:
    # Conflict checks must see the reschedule's own transaction
    availability = AvailabilityService(db, clock, max_workers=1)
    return RescheduleService(
        db, clock, availability_service=availability, credit_ledger=credit_ledger
    )


def get_lifecycle_service(
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    sink: TimeCheckSink = Depends(get_time_check_sink),
    credit_ledger: CreditLedger = Depends(get_credit_ledger),
) -> LifecycleService:
    return LifecycleService(db, clock, sink=sink, credit_ledger=credit_ledger)
