# backend/tutorbook/models/package.py
"""
Lesson package models.

``Package`` is the catalog entry; ``StudentPackage`` is a package assigned to
a student and holds the credit counters. ``remaining_classes`` is derived:
it is only ever written by the credit ledger's recompute.
"""

from typing import Any

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import ulid

from ..core.enums import PackageStatus, PaymentStatus
from ..database import Base


class Package(Base):
    """Catalog entry describing a purchasable bundle of classes."""

    __tablename__ = "packages"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    total_classes = Column(Integer, nullable=False)
    max_reschedules = Column(Integer, nullable=False, default=2)
    duration_months = Column(Integer, nullable=False, default=1)
    price = Column(Numeric(10, 2), nullable=True)
    active = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    __table_args__ = (
        CheckConstraint("total_classes > 0", name="check_total_classes_positive"),
        CheckConstraint("max_reschedules >= 0", name="check_max_reschedules_non_negative"),
    )

    def __repr__(self) -> str:
        return f"<Package {self.id}: {self.name} classes={self.total_classes}>"


class StudentPackage(Base):
    """
    A package assigned to a student.

    ``total_classes`` and ``max_reschedules`` are snapshotted from the catalog
    at assignment time and never change afterwards.
    """

    __tablename__ = "student_packages"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    student_id = Column(String(26), ForeignKey("students.id"), nullable=False, index=True)
    package_id = Column(String(26), ForeignKey("packages.id"), nullable=True)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=True)
    total_classes = Column(Integer, nullable=False)
    max_reschedules = Column(Integer, nullable=False, default=2)
    remaining_classes = Column(Integer, nullable=False, default=0)
    used_reschedules = Column(Integer, nullable=False, default=0)
    status = Column(String(20), nullable=False, default=PackageStatus.ACTIVE, index=True)
    payment_status = Column(String(20), nullable=False, default=PaymentStatus.PENDING)

    # Optimistic lock: concurrent writers on the same package fail with StaleDataError
    version_id = Column(Integer, nullable=False, default=1)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    student = relationship("Student", back_populates="packages")
    package = relationship("Package")
    bookings = relationship("Booking", back_populates="student_package")

    __mapper_args__ = {"version_id_col": version_id}

    __table_args__ = (
        CheckConstraint(
            "status IN ('active', 'completed', 'cancelled')",
            name="ck_student_packages_status",
        ),
        CheckConstraint("used_reschedules >= 0", name="check_used_reschedules_non_negative"),
        CheckConstraint(
            "used_reschedules <= max_reschedules", name="check_used_reschedules_within_max"
        ),
        CheckConstraint("remaining_classes >= 0", name="check_remaining_classes_non_negative"),
    )

    def __init__(self, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        if not self.status:
            self.status = PackageStatus.ACTIVE
        if self.used_reschedules is None:
            self.used_reschedules = 0
        if self.remaining_classes is None:
            self.remaining_classes = 0

    @property
    def remaining_reschedules(self) -> int:
        return max(0, (self.max_reschedules or 0) - (self.used_reschedules or 0))

    def __repr__(self) -> str:
        return (
            f"<StudentPackage {self.id}: student={self.student_id}, status={self.status}, "
            f"remaining={self.remaining_classes}, "
            f"reschedules={self.used_reschedules}/{self.max_reschedules}>"
        )
