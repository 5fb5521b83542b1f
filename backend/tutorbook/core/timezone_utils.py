# backend/tutorbook/core/timezone_utils.py
"""
Timezone utilities for the scheduling engine.

Class dates and times are authored in a single canonical ("admin") zone.
Everything that asks "has this ended" or "what time is this for X" goes
through this module; no caller compares raw date/time strings across zones.

Invalid zone identifiers never raise: they degrade to the admin zone and
the fallback is logged.
"""

from datetime import date, datetime, time, timedelta, timezone
import logging
from typing import Any, Callable, Dict, Optional, Tuple, Union

import pytz

from ..utils.time_helpers import string_to_date, string_to_time
from .config import settings

logger = logging.getLogger(__name__)

DateLike = Union[date, str]
TimeLike = Union[time, str]
Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Default clock: timezone-aware UTC now."""
    return datetime.now(timezone.utc)


def admin_zone_name() -> str:
    return settings.admin_timezone


def resolve_zone(tz_name: Optional[str]) -> pytz.BaseTzInfo:
    """
    Resolve an IANA identifier to a tzinfo.

    Empty or unknown identifiers fall back to the admin zone. An unknown
    identifier is logged as an invalid-timezone degradation.
    """
    admin_name = admin_zone_name()
    if not tz_name:
        return pytz.timezone(admin_name)
    try:
        return pytz.timezone(tz_name)
    except pytz.UnknownTimeZoneError:
        logger.warning(
            "Invalid timezone, falling back to admin timezone",
            extra={
                "event": "invalid_timezone",
                "timezone": tz_name,
                "fallback": admin_name,
            },
        )
        return pytz.timezone(admin_name)


def _coerce_date(value: DateLike) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return string_to_date(value)


def _coerce_time(value: TimeLike) -> time:
    if isinstance(value, time):
        return value.replace(tzinfo=None)
    return string_to_time(value)


def localize(day: DateLike, at: TimeLike, tz_name: Optional[str]) -> datetime:
    """
    Attach a zone to a wall-clock date/time.

    Ambiguous times (DST fall back) resolve to the first occurrence.
    Times inside a spring-forward gap are shifted forward by the gap.
    """
    tz = resolve_zone(tz_name)
    naive_dt = datetime.combine(
        _coerce_date(day), _coerce_time(at)
    )  # utc-naive-ok: Intentionally naive for pytz.localize()

    try:
        return tz.localize(naive_dt, is_dst=None)
    except pytz.exceptions.AmbiguousTimeError:
        return tz.localize(naive_dt, is_dst=True)
    except pytz.exceptions.NonExistentTimeError:
        return tz.normalize(tz.localize(naive_dt, is_dst=False))


def to_zone(
    day: DateLike,
    at: TimeLike,
    source_zone: Optional[str],
    target_zone: Optional[str],
) -> Tuple[date, time]:
    """
    Re-express a wall-clock (date, time) from source_zone in target_zone.

    The result is the same absolute instant, so the date moves when the
    offset difference crosses midnight.

    Args:
        day: Date or ``YYYY-MM-DD`` string
        at: Time or ``HH:MM[:SS]`` string
        source_zone: IANA zone the input was authored in
        target_zone: IANA zone to express the result in

    Returns:
        (date, time) in the target zone
    """
    source_dt = localize(day, at, source_zone)
    target_dt = source_dt.astimezone(resolve_zone(target_zone))
    return target_dt.date(), target_dt.time().replace(tzinfo=None)


def now_in_zone(tz_name: Optional[str], clock: Optional[Clock] = None) -> datetime:
    current = (clock or utc_now)()
    if current.tzinfo is None:
        current = current.replace(tzinfo=timezone.utc)
    return current.astimezone(resolve_zone(tz_name))


def today_in_zone(tz_name: Optional[str], clock: Optional[Clock] = None) -> date:
    return now_in_zone(tz_name, clock).date()


def is_past(
    day: DateLike,
    at: TimeLike,
    source_zone: Optional[str],
    observer_zone: Optional[str],
    now: Optional[datetime] = None,
) -> bool:
    """
    Has this instant already elapsed, as seen by an observer in observer_zone?

    This is the single authority for "has this class ended" questions.

    Args:
        day: Date of the instant, in source_zone
        at: Time of the instant, in source_zone
        source_zone: Zone the date/time were authored in
        observer_zone: Zone of the person asking
        now: Current instant (defaults to UTC now)
    """
    local_date, local_time = to_zone(day, at, source_zone, observer_zone)
    instant = localize(local_date, local_time, observer_zone)
    observer_now = now_in_zone(observer_zone, (lambda: now) if now is not None else None)
    return observer_now >= instant


def hours_until(
    day: DateLike,
    at: TimeLike,
    source_zone: Optional[str],
    now: Optional[datetime] = None,
) -> float:
    """Hours from now until a wall-clock instant authored in source_zone."""
    instant = localize(day, at, source_zone)
    current = now or utc_now()
    if current.tzinfo is None:
        current = current.replace(tzinfo=timezone.utc)
    return (instant - current).total_seconds() / 3600


def admin_to_user(
    day: DateLike, at: TimeLike, user_zone: Optional[str]
) -> Tuple[date, time]:
    """Convert an admin-zone date/time to a participant's zone."""
    return to_zone(day, at, admin_zone_name(), user_zone)


def user_to_admin(
    day: DateLike, at: TimeLike, user_zone: Optional[str]
) -> Tuple[date, time]:
    """Convert a participant's local date/time to the admin zone."""
    return to_zone(day, at, user_zone, admin_zone_name())


def add_minutes(at: time, minutes: int) -> time:
    """Wall-clock arithmetic on a time of day (wraps at midnight)."""
    anchor = datetime.combine(date(2000, 1, 1), at)  # utc-naive-ok: pure arithmetic
    return (anchor + timedelta(minutes=minutes)).time()


def debug_timezone(tz_name: Optional[str], clock: Optional[Clock] = None) -> Dict[str, Any]:
    """Snapshot of a zone against the admin zone, for diagnostics."""
    admin_now = now_in_zone(admin_zone_name(), clock)
    local_now = now_in_zone(tz_name, clock)
    offset = local_now.utcoffset() or timedelta(0)
    admin_offset = admin_now.utcoffset() or timedelta(0)
    return {
        "timezone": str(resolve_zone(tz_name)),
        "requested": tz_name,
        "admin_timezone": admin_zone_name(),
        "local_now": local_now.isoformat(),
        "admin_now": admin_now.isoformat(),
        "offset_from_admin_hours": (offset - admin_offset).total_seconds() / 3600,
    }
