"""Application-wide constants for the tutorbook scheduling engine."""

from __future__ import annotations

BRAND_NAME = "tutorbook"

# Canonical ("admin") timezone used when ADMIN_TIMEZONE is not configured
DEFAULT_ADMIN_TIMEZONE = "America/Caracas"

# Weekdays in calendar order; datetime.date.weekday() indexes into this tuple
WEEKDAYS = (
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
)
DEFAULT_WORKING_DAYS = WEEKDAYS[:5]

DATE_FORMAT = "%Y-%m-%d"
TIME_FORMAT = "%H:%M:%S"

# Text constraints
MAX_REASON_LENGTH = 500
DEFAULT_RESCHEDULE_REASON = "Student rescheduled"
DEFAULT_CLASS_TITLE = "Individual Class"

# Query limits
DEFAULT_QUERY_LIMIT = 100
