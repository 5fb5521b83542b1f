# backend/tutorbook/tasks/lifecycle.py
"""
Lifecycle sweep tasks.

Beat enqueues ``run_lifecycle_sweep`` hourly; every worker also enqueues one
sweep as soon as it is ready, so state catches up after downtime.
"""

import logging
from typing import Any, Callable, Dict, TypeVar, cast

from celery import shared_task
from celery.signals import worker_ready

from ..core.config import settings
from ..database import get_db_session
from ..monitoring.time_check_sink import TimeCheckSink
from ..services.lifecycle_service import LifecycleService

logger = logging.getLogger(__name__)

_TaskFunc = TypeVar("_TaskFunc", bound=Callable[..., Any])

# Time checks made by this worker process
worker_time_checks = TimeCheckSink(settings.time_check_log_size)


def _typed_shared_task(*args: Any, **kwargs: Any) -> Callable[[_TaskFunc], _TaskFunc]:
    """Typed wrapper for Celery's shared_task decorator."""
    return cast(Callable[[_TaskFunc], _TaskFunc], shared_task(*args, **kwargs))


@_typed_shared_task(name="tutorbook.tasks.lifecycle.run_lifecycle_sweep", ignore_result=True)
def run_lifecycle_sweep() -> Dict[str, Any]:
    """Advance class, booking and package state for every due class."""
    with get_db_session() as db:
        result = LifecycleService(db, sink=worker_time_checks).run_sweep()
    logger.info(
        "[SWEEP] completed=%d attended=%d deferred=%d failed=%d",
        result.classes_completed,
        result.bookings_attended,
        result.bookings_deferred,
        result.failed_units,
    )
    return {
        "classes_completed": result.classes_completed,
        "bookings_attended": result.bookings_attended,
        "bookings_deferred": result.bookings_deferred,
        "packages_completed": result.packages_completed,
        "failed_units": result.failed_units,
    }


@_typed_shared_task(name="tutorbook.tasks.lifecycle.sweep_student", ignore_result=True)
def sweep_student(student_id: str) -> Dict[str, Any]:
    """Reconcile one student's classes and packages."""
    with get_db_session() as db:
        result = LifecycleService(db, sink=worker_time_checks).sweep_student(student_id)
    return {
        "student_id": student_id,
        "classes_completed": result.classes_completed,
        "bookings_attended": result.bookings_attended,
        "packages_recomputed": result.packages_recomputed,
    }


@worker_ready.connect  # type: ignore[misc]
def sweep_on_worker_ready(sender: Any = None, **kwargs: Any) -> None:
    """Run one sweep when a worker starts, in addition to the hourly beat."""
    logger.info("[SWEEP] Worker ready, enqueueing startup sweep")
    run_lifecycle_sweep.delay()  # type: ignore[attr-defined]
