# backend/tests/unit/monitoring/test_time_check_sink.py
from datetime import date, datetime, time, timezone
import logging

import pytest

from tutorbook.monitoring.time_check_sink import TimeCheckEvent, TimeCheckSink


def _event(class_id: str, is_past: bool = True) -> TimeCheckEvent:
    now = datetime(2025, 3, 4, 3, 45, tzinfo=timezone.utc)
    return TimeCheckEvent(
        checked_at=now,
        class_id=class_id,
        booking_id=f"b-{class_id}",
        student_id="s-1",
        class_date=date(2025, 3, 3),
        end_time=time(23, 30),
        source_timezone="America/Caracas",
        observer_timezone="America/Phoenix",
        observer_now=now,
        is_past=is_past,
    )


def test_keeps_only_the_most_recent_events():
    sink = TimeCheckSink(3)
    for i in range(5):
        sink.record(_event(f"c{i}"))

    assert len(sink) == 3
    assert [e.class_id for e in sink.recent()] == ["c2", "c3", "c4"]
    assert sink.maxlen == 3


def test_clear_empties_buffer():
    sink = TimeCheckSink(2)
    sink.record(_event("c1"))
    sink.clear()
    assert sink.recent() == []


def test_record_emits_structured_log(caplog):
    sink = TimeCheckSink(2)
    with caplog.at_level(logging.INFO, logger="tutorbook.monitoring.time_check_sink"):
        sink.record(_event("c1", is_past=False))

    record = caplog.records[-1]
    assert record.event == "time_check"
    assert record.observer_timezone == "America/Phoenix"
    assert record.is_past is False


def test_event_serializes_temporal_fields():
    data = _event("c1").to_dict()
    assert data["class_date"] == "2025-03-03"
    assert data["end_time"] == "23:30:00"
    assert data["checked_at"].startswith("2025-03-04T03:45")


def test_rejects_non_positive_size():
    with pytest.raises(ValueError):
        TimeCheckSink(0)
