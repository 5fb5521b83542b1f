from datetime import date, datetime, time

from ..core.constants import DATE_FORMAT, TIME_FORMAT

MINUTES_PER_DAY = 24 * 60


def time_to_string(t: time) -> str:
    """Always return HH:MM:SS format"""
    return t.strftime(TIME_FORMAT)


def string_to_time(time_str: str) -> time:
    """Parse time strings flexibly, handling '24:00[:00]' end-of-day sentinels."""
    normalized = time_str.strip()
    if len(normalized) == 5:
        normalized += ":00"
    if normalized == "24:00:00":
        return time(0, 0)
    return datetime.strptime(normalized, TIME_FORMAT).time()


def string_to_date(date_str: str) -> date:
    """Parse a YYYY-MM-DD string (a trailing time component is ignored)."""
    return datetime.strptime(date_str.strip()[:10], DATE_FORMAT).date()


def date_to_string(d: date) -> str:
    return d.strftime(DATE_FORMAT)


def minutes_range(start: time, end: time) -> tuple[int, int]:
    """Minutes-of-day for a range; an end of midnight means end of day."""
    start_min = start.hour * 60 + start.minute
    end_min = end.hour * 60 + end.minute
    if end == time(0, 0) and start != time(0, 0):
        end_min = MINUTES_PER_DAY
    return start_min, end_min


def time_from_minutes(minutes: int) -> time:
    """Inverse of minutes_range; 1440 wraps to midnight."""
    if minutes >= MINUTES_PER_DAY:
        return time(0, 0)
    return time(minutes // 60, minutes % 60)
