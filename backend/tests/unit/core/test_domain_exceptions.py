# backend/tests/unit/core/test_domain_exceptions.py
"""Every business failure maps to a distinct code and status."""

import pytest

from tutorbook.core.exceptions import (
    ConcurrentModificationException,
    CreditExhaustedException,
    DomainException,
    NoActivePackageException,
    NotEligibleException,
    ServiceUnavailableException,
    SlotUnavailableException,
    TooLateToRescheduleException,
)


@pytest.mark.parametrize(
    "exc, status_code, code",
    [
        (NotEligibleException("nope"), 422, "NOT_ELIGIBLE"),
        (NoActivePackageException("s1"), 422, "NO_ACTIVE_PACKAGE"),
        (CreditExhaustedException(used=2, maximum=2, package_id="p1"), 422, "CREDIT_EXHAUSTED"),
        (TooLateToRescheduleException(2, 1.0), 422, "TOO_LATE_TO_RESCHEDULE"),
        (SlotUnavailableException(), 409, "SLOT_UNAVAILABLE"),
        (ConcurrentModificationException("booking"), 409, "CONCURRENT_MODIFICATION"),
        (ServiceUnavailableException(), 503, "SERVICE_UNAVAILABLE"),
    ],
)
def test_codes_and_statuses(exc: DomainException, status_code: int, code: str):
    http_exc = exc.to_http_exception()
    assert http_exc.status_code == status_code
    assert http_exc.detail["code"] == code
    assert exc.code == code


def test_credit_exhausted_carries_counters():
    exc = CreditExhaustedException(used=1, maximum=1, package_id="p1")
    assert exc.details == {
        "student_package_id": "p1",
        "used_reschedules": 1,
        "max_reschedules": 1,
    }
    assert "Maximum reschedules (1)" in exc.message


def test_too_late_rounds_lead_time():
    exc = TooLateToRescheduleException(2.0, 0.98765)
    assert exc.details == {"required_hours": 2.0, "hours_until_start": 0.99}
    assert "at least 2 hours" in exc.message


def test_service_unavailable_asks_for_retry():
    http_exc = ServiceUnavailableException().to_http_exception()
    assert http_exc.headers == {"Retry-After": "2"}


def test_default_code_is_class_name():
    assert DomainException("boom").code == "DomainException"
