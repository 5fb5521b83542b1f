# backend/tutorbook/schemas/__init__.py
"""
Pydantic schemas for the tutorbook scheduling API.

Request/response models that wrap service results live in their own modules
(``availability``, ``reschedule``, ``sweep``) and are imported from there;
only the service-independent models are re-exported here.
"""

from .health import HealthResponse
from .schedule import TimeWindow, WeeklySchedule

__all__ = [
    "HealthResponse",
    "TimeWindow",
    "WeeklySchedule",
]
