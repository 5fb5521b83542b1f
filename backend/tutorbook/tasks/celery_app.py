# backend/tutorbook/tasks/celery_app.py
"""
Celery application for the lifecycle sweep.

Redis is the broker; sweep tasks ignore their results so no result backend
is configured. Beat runs in the admin timezone so "top of the hour" is the
admin's hour.
"""

import logging
from typing import Any, Dict

from celery import Celery, Task
from celery.signals import setup_logging

from ..core.config import settings

logger = logging.getLogger(__name__)

MAINTENANCE_QUEUE = "maintenance"
TASK_MODULES = ("tutorbook.tasks.lifecycle",)


def _task_limits() -> Dict[str, int]:
    """A sweep must finish well inside one beat interval."""
    hard = max(60, settings.sweep_interval_minutes * 60 // 2)
    return {"task_soft_time_limit": hard - 30, "task_time_limit": hard}


class SweepTask(Task):  # type: ignore[misc]
    """
    Task base that logs outcomes.

    No automatic retry: a sweep that fails as a whole is picked up by the
    next beat tick, and each unit inside it is already isolated.
    """

    def on_failure(self, exc: Exception, task_id: str, args: Any, kwargs: Any, einfo: Any) -> None:
        logger.error(
            "Task %s[%s] failed: %s",
            self.name,
            task_id,
            exc,
            exc_info=True,
            extra={"task_id": task_id, "task_name": self.name, "task_args": str(args)},
        )
        super().on_failure(exc, task_id, args, kwargs, einfo)

    def on_success(self, retval: Any, task_id: str, args: Any, kwargs: Any) -> None:
        logger.info(
            "Task %s[%s] finished",
            self.name,
            task_id,
            extra={"task_id": task_id, "task_name": self.name, "summary": retval},
        )
        super().on_success(retval, task_id, args, kwargs)


def create_celery_app() -> Celery:
    """Build the app, route sweep tasks to the maintenance queue and install beat."""
    app = Celery("tutorbook", broker=settings.get_broker_url(), task_cls=SweepTask)
    app.conf.update(
        task_serializer="json",
        accept_content=["json"],
        timezone=settings.admin_timezone,
        enable_utc=True,
        task_ignore_result=True,
        # One sweep at a time per worker process
        worker_prefetch_multiplier=1,
        task_acks_late=True,
        task_reject_on_worker_lost=True,
        worker_hijack_root_logger=False,
        broker_transport_options={"visibility_timeout": 3600},
        imports=TASK_MODULES,
        task_routes={"tutorbook.tasks.lifecycle.*": {"queue": MAINTENANCE_QUEUE}},
        **_task_limits(),
    )

    from .beat_schedule import get_beat_schedule

    app.conf.beat_schedule = get_beat_schedule()
    return app


@setup_logging.connect  # type: ignore[misc]
def config_loggers(*args: Any, **kwargs: Any) -> None:
    """Keep Celery from replacing the application's logging setup."""
    logging.basicConfig(
        level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )


celery_app = create_celery_app()
