"""
Repository layer for the tutorbook scheduling engine.

Repositories encapsulate data access; services own transactions.
"""

from .base_repository import BaseRepository
from .booking_repository import BookingRepository
from .class_repository import ClassRepository
from .factory import RepositoryFactory
from .package_repository import PackageRepository
from .reschedule_repository import RescheduleRepository
from .teacher_repository import TeacherRepository

__all__ = [
    "BaseRepository",
    "BookingRepository",
    "ClassRepository",
    "PackageRepository",
    "RepositoryFactory",
    "RescheduleRepository",
    "TeacherRepository",
]
