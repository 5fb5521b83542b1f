# backend/tutorbook/tasks/__init__.py
"""
Celery tasks package for tutorbook.

Importing the package registers the lifecycle sweep tasks with the app.
"""

from .celery_app import celery_app
from .lifecycle import run_lifecycle_sweep, sweep_student

__all__ = ["celery_app", "run_lifecycle_sweep", "sweep_student"]
