# backend/tutorbook/tasks/beat_schedule.py
"""
Celery Beat schedule configuration for tutorbook.

The lifecycle sweep runs at the top of every hour. A non-default
SWEEP_INTERVAL_MINUTES switches to a plain interval schedule.
"""

from datetime import timedelta
from typing import Any, Union

from celery.schedules import crontab

from ..core.config import settings

LIFECYCLE_SWEEP_TASK = "tutorbook.tasks.lifecycle.run_lifecycle_sweep"


def _sweep_schedule(interval_minutes: int) -> Union[crontab, timedelta]:
    if interval_minutes == 60:
        return crontab(minute=0)
    return timedelta(minutes=interval_minutes)


CELERYBEAT_SCHEDULE = {
    "lifecycle-sweep": {
        "task": LIFECYCLE_SWEEP_TASK,
        "schedule": _sweep_schedule(settings.sweep_interval_minutes),
        "options": {
            "queue": "maintenance",
            # A missed tick is covered by the next one
            "expires": settings.sweep_interval_minutes * 60,
        },
    },
}


def get_beat_schedule() -> dict[str, dict[str, Any]]:
    """Beat configuration keyed by schedule entry name."""
    return dict(CELERYBEAT_SCHEDULE)
