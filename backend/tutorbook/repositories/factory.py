# backend/tutorbook/repositories/factory.py
"""
Single place where services obtain repositories.

Services never construct repositories directly, so a test can patch one
factory method to swap the data access for a whole service.
"""

from typing import Type, TypeVar

from sqlalchemy.orm import Session

from .base_repository import BaseRepository
from .booking_repository import BookingRepository
from .class_repository import ClassRepository
from .package_repository import PackageRepository
from .reschedule_repository import RescheduleRepository
from .teacher_repository import TeacherRepository

M = TypeVar("M")


class RepositoryFactory:
    @staticmethod
    def create_base_repository(db: Session, model: Type[M]) -> BaseRepository[M]:
        """Generic by-id access for models without a dedicated repository (students)."""
        return BaseRepository(db, model)

    @staticmethod
    def create_class_repository(db: Session) -> ClassRepository:
        return ClassRepository(db)

    @staticmethod
    def create_booking_repository(db: Session) -> BookingRepository:
        return BookingRepository(db)

    @staticmethod
    def create_package_repository(db: Session) -> PackageRepository:
        return PackageRepository(db)

    @staticmethod
    def create_reschedule_repository(db: Session) -> RescheduleRepository:
        return RescheduleRepository(db)

    @staticmethod
    def create_teacher_repository(db: Session) -> TeacherRepository:
        """Teachers, their student assignments and their external activities."""
        return TeacherRepository(db)
