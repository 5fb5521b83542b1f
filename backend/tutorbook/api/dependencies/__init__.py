# backend/tutorbook/api/dependencies/__init__.py
"""
Central export point for all dependencies.

This module re-exports all dependencies from submodules
for convenient access throughout the application.
"""

from .auth import get_principal, get_principal_optional, require_admin
from .database import get_db
from .services import (
    get_availability_service,
    get_clock,
    get_credit_ledger,
    get_lifecycle_service,
    get_permission_service,
    get_reschedule_service,
    get_time_check_sink,
)

__all__ = [
    # Auth
    "get_principal",
    "get_principal_optional",
    "require_admin",
    # Database
    "get_db",
    # Services
    "get_availability_service",
    "get_clock",
    "get_credit_ledger",
    "get_lifecycle_service",
    "get_permission_service",
    "get_reschedule_service",
    "get_time_check_sink",
]
