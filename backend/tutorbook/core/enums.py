# backend/tutorbook/core/enums.py
"""
Core enums for the tutorbook scheduling engine.

All enums persisted to the database inherit from (str, Enum) and define
their values explicitly, so ORM queries and raw SQL agree on the stored
representation.
"""

from enum import Enum


class Weekday(str, Enum):
    """Days of the week, in calendar order."""

    MONDAY = "monday"
    TUESDAY = "tuesday"
    WEDNESDAY = "wednesday"
    THURSDAY = "thursday"
    FRIDAY = "friday"
    SATURDAY = "saturday"
    SUNDAY = "sunday"

    @classmethod
    def from_date(cls, value) -> "Weekday":
        """Weekday of a datetime.date (Monday is index 0)."""
        return list(cls)[value.weekday()]


class ClassStatus(str, Enum):
    """
    Calendar slot status.

    scheduled -> completed is driven by the lifecycle sweep and is
    irreversible. cancelled is an external action.
    """

    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class BookingStatus(str, Enum):
    """Status of a student's assignment to a class."""

    SCHEDULED = "scheduled"
    ATTENDED = "attended"
    MISSED = "missed"
    CANCELLED = "cancelled"
    RESCHEDULED = "rescheduled"


class PackageStatus(str, Enum):
    """Lifecycle of a package assigned to a student."""

    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    REFUNDED = "refunded"


class RescheduleStatus(str, Enum):
    """Status of an append-only reschedule record."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


class ActivityType(str, Enum):
    """Non-class entries that occupy a teacher's calendar."""

    CLASS = "class"
    MEETING = "meeting"
    PREPARATION = "preparation"
    OTHER = "other"


class ActivityStatus(str, Enum):
    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class AvailabilityReason(str, Enum):
    """Why a day did or did not yield free slots."""

    AVAILABLE = "available"
    NON_WORKING_DAY = "non_working_day"
    NO_SLOTS_AVAILABLE = "no_slots_available"


class PrincipalRole(str, Enum):
    """Roles recognized by the consumed authorization capability."""

    ADMIN = "admin"
    TEACHER = "teacher"
    STUDENT = "student"
