# backend/tutorbook/routes/v1/__init__.py
"""
API v1 Routes

Versioned API endpoints under /api/v1.
"""

from . import admin, availability, health, reschedules, students

__all__ = ["admin", "availability", "health", "reschedules", "students"]
