# backend/tests/unit/core/test_time_conversion.py
"""
Timezone conversion tests.

The admin zone is America/Caracas (UTC-4, no DST) for the whole suite.
"""

from datetime import date, datetime, time, timezone
import logging

import pytest

from tutorbook.core.timezone_utils import (
    add_minutes,
    admin_to_user,
    debug_timezone,
    hours_until,
    is_past,
    localize,
    now_in_zone,
    resolve_zone,
    to_zone,
    today_in_zone,
    user_to_admin,
)

CARACAS = "America/Caracas"
PHOENIX = "America/Phoenix"
TOKYO = "Asia/Tokyo"


class TestToZone:
    def test_same_instant_different_wall_clock(self):
        assert to_zone(date(2025, 3, 3), time(10, 0), CARACAS, PHOENIX) == (
            date(2025, 3, 3),
            time(7, 0),
        )

    def test_crosses_date_boundary_forward(self):
        """20:00 Caracas is already the next morning in Tokyo."""
        assert to_zone(date(2025, 3, 3), time(20, 0), CARACAS, TOKYO) == (
            date(2025, 3, 4),
            time(9, 0),
        )

    def test_crosses_date_boundary_backward(self):
        assert to_zone(date(2025, 3, 4), time(1, 0), CARACAS, PHOENIX) == (
            date(2025, 3, 3),
            time(22, 0),
        )

    def test_accepts_strings(self):
        assert to_zone("2025-03-03", "10:00", CARACAS, "UTC") == (date(2025, 3, 3), time(14, 0))

    def test_admin_helpers_are_inverse(self):
        local = admin_to_user(date(2025, 3, 3), time(23, 30), PHOENIX)
        assert local == (date(2025, 3, 3), time(20, 30))
        assert user_to_admin(local[0], local[1], PHOENIX) == (date(2025, 3, 3), time(23, 30))


class TestResolveZone:
    def test_invalid_zone_falls_back_to_admin(self, caplog):
        with caplog.at_level(logging.WARNING, logger="tutorbook.core.timezone_utils"):
            tz = resolve_zone("Mars/Olympus_Mons")

        assert str(tz) == CARACAS
        assert any(
            getattr(record, "event", None) == "invalid_timezone" for record in caplog.records
        )

    @pytest.mark.parametrize("value", [None, ""])
    def test_missing_zone_is_admin(self, value):
        assert str(resolve_zone(value)) == CARACAS

    def test_invalid_zone_never_raises_in_conversion(self):
        assert to_zone(date(2025, 3, 3), time(10, 0), "Not/AZone", CARACAS) == (
            date(2025, 3, 3),
            time(10, 0),
        )


class TestLocalize:
    def test_dst_gap_is_shifted_forward(self):
        """02:30 does not exist in New York on 2025-03-09."""
        result = localize(date(2025, 3, 9), time(2, 30), "America/New_York")
        assert result.astimezone(timezone.utc) == datetime(2025, 3, 9, 7, 30, tzinfo=timezone.utc)

    def test_ambiguous_time_uses_first_occurrence(self):
        result = localize(date(2025, 11, 2), time(1, 30), "America/New_York")
        assert result.utcoffset().total_seconds() == -4 * 3600


class TestIsPast:
    NOW = datetime(2025, 3, 4, 3, 45, tzinfo=timezone.utc)  # Mon 23:45 Caracas

    def test_admin_observer_sees_class_ended(self):
        assert is_past(date(2025, 3, 3), time(23, 30), CARACAS, CARACAS, self.NOW) is True

    def test_observer_three_hours_behind(self):
        """A 23:30 end read in Phoenix has not passed: it is 20:45 there."""
        assert is_past(date(2025, 3, 3), time(23, 30), PHOENIX, PHOENIX, self.NOW) is False

    def test_same_instant_is_past_in_every_zone(self):
        """Converting before comparing keeps the absolute instant."""
        assert is_past(date(2025, 3, 3), time(23, 30), CARACAS, PHOENIX, self.NOW) is True

    def test_exact_end_counts_as_past(self):
        end = datetime(2025, 3, 4, 3, 30, tzinfo=timezone.utc)
        assert is_past(date(2025, 3, 3), time(23, 30), CARACAS, CARACAS, end) is True


def test_hours_until_uses_source_zone():
    now = datetime(2025, 3, 3, 12, 0, tzinfo=timezone.utc)  # 08:00 Caracas
    assert hours_until(date(2025, 3, 3), time(9, 0), CARACAS, now) == pytest.approx(1.0)
    assert hours_until(date(2025, 3, 3), time(7, 0), CARACAS, now) == pytest.approx(-1.0)


def test_now_and_today_follow_injected_clock():
    clock = lambda: datetime(2025, 3, 4, 2, 0, tzinfo=timezone.utc)  # noqa: E731
    assert now_in_zone(CARACAS, clock).hour == 22
    assert today_in_zone(CARACAS, clock) == date(2025, 3, 3)
    assert today_in_zone(TOKYO, clock) == date(2025, 3, 4)


def test_add_minutes_wraps_midnight():
    assert add_minutes(time(23, 30), 60) == time(0, 30)
    assert add_minutes(time(9, 0), 90) == time(10, 30)


def test_debug_timezone_reports_offset():
    clock = lambda: datetime(2025, 3, 3, 12, 0, tzinfo=timezone.utc)  # noqa: E731
    snapshot = debug_timezone(PHOENIX, clock)
    assert snapshot["timezone"] == PHOENIX
    assert snapshot["admin_timezone"] == CARACAS
    assert snapshot["offset_from_admin_hours"] == -3.0
