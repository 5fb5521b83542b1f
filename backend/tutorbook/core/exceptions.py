# backend/tutorbook/core/exceptions.py
"""
Exceptions raised by the scheduling services.

Each carries an HTTP status, a stable ``code`` and a ``details`` payload;
the API turns them into problem-details bodies. Reschedule rejections use
upper-case codes (CREDIT_EXHAUSTED, TOO_LATE_TO_RESCHEDULE, ...) that
clients match on.
"""

from typing import Any, Dict, Optional

from fastapi import HTTPException, status

HTTP_422_UNPROCESSABLE: int = getattr(status, "HTTP_422_UNPROCESSABLE_CONTENT", 422)


class DomainException(Exception):
    """Base exception for all domain-specific errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=self.status_code,
            detail={
                "message": self.message,
                "code": self.code,
                "details": self.details,
            },
        )


class ValidationException(DomainException):
    """Raised when business validation fails."""

    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundException(DomainException):
    """Raised when a requested resource is not found."""

    status_code = status.HTTP_404_NOT_FOUND


class ConflictException(DomainException):
    """Raised when there's a conflict with existing data."""

    status_code = status.HTTP_409_CONFLICT


class BusinessRuleException(DomainException):
    """Raised when a business rule is violated."""

    status_code = HTTP_422_UNPROCESSABLE


class ForbiddenException(DomainException):
    """Raised when the caller lacks permission for an action."""

    status_code = status.HTTP_403_FORBIDDEN


class ServiceException(DomainException):
    """Raised when a service operation fails for a reason the caller cannot fix."""


class ServiceUnavailableException(ServiceException):
    """
    Raised when the datastore cannot complete an operation.

    The failing transaction has been rolled back; no partial effects remain.
    """

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    def __init__(self, message: Optional[str] = None, *, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message or "Service temporarily unavailable. Please retry.",
            code="SERVICE_UNAVAILABLE",
            details=details or {},
        )

    def to_http_exception(self) -> HTTPException:
        exc = super().to_http_exception()
        exc.headers = {"Retry-After": "2"}
        return exc


# Specific scheduling exceptions


class NotEligibleException(BusinessRuleException):
    """Raised when a booking is not in a reschedulable state."""

    def __init__(self, message: str, *, details: Optional[Dict[str, Any]] = None):
        super().__init__(message=message, code="NOT_ELIGIBLE", details=details or {})


class NoActivePackageException(BusinessRuleException):
    """Raised when the student has no active lesson package."""

    def __init__(self, student_id: str):
        super().__init__(
            message="No active package found for this student",
            code="NO_ACTIVE_PACKAGE",
            details={"student_id": student_id},
        )


class CreditExhaustedException(BusinessRuleException):
    """Raised when a package has no reschedule credits left."""

    def __init__(self, used: int, maximum: int, *, package_id: Optional[str] = None):
        super().__init__(
            message=f"Maximum reschedules ({maximum}) already used for this package",
            code="CREDIT_EXHAUSTED",
            details={
                "student_package_id": package_id,
                "used_reschedules": used,
                "max_reschedules": maximum,
            },
        )


class TooLateToRescheduleException(BusinessRuleException):
    """Raised when the class starts too soon to be rescheduled."""

    def __init__(self, required_hours: float, hours_until_start: float):
        super().__init__(
            message=f"Classes can only be rescheduled at least {required_hours:g} hours in advance",
            code="TOO_LATE_TO_RESCHEDULE",
            details={
                "required_hours": required_hours,
                "hours_until_start": round(hours_until_start, 2),
            },
        )


class SlotUnavailableException(ConflictException):
    """Raised when the target slot is already taken on the teacher's calendar."""

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message or "The selected time slot is no longer available",
            code="SLOT_UNAVAILABLE",
            details=details or {},
        )


class ConcurrentModificationException(ConflictException):
    """Raised when an optimistic version check keeps failing after a retry."""

    def __init__(self, entity: str, *, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=f"The {entity} was modified concurrently. Please retry.",
            code="CONCURRENT_MODIFICATION",
            details=details or {},
        )


class RepositoryException(Exception):
    """
    Exception raised for repository layer errors.

    This exception is used when data access operations fail,
    such as database connection issues, query failures, or
    constraint violations.
    """
