"""
Bounded recorder of time-check decisions.

The lifecycle sweep asks "has this class ended for this observer?" many
times per run. Each answer is emitted as a structured log record and kept
in a bounded buffer so admins (and tests) can inspect recent decisions.
Instances are injected into the services that use them.
"""

from collections import deque
from dataclasses import asdict, dataclass
from datetime import date, datetime, time
import logging
from threading import Lock
from typing import Any, Deque, Dict, List, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TimeCheckEvent:
    """One "has this ended" decision."""

    checked_at: datetime
    class_id: str
    booking_id: Optional[str]
    student_id: Optional[str]
    class_date: date
    end_time: time
    source_timezone: str
    observer_timezone: str
    observer_now: datetime
    is_past: bool

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        for key in ("checked_at", "observer_now", "class_date", "end_time"):
            data[key] = data[key].isoformat()
        return data


class TimeCheckSink:
    """Thread-safe ring buffer of the most recent time-check events."""

    def __init__(self, maxlen: int = 20, *, log: Optional[logging.Logger] = None):
        if maxlen <= 0:
            raise ValueError("maxlen must be positive")
        self._events: Deque[TimeCheckEvent] = deque(maxlen=maxlen)
        self._lock = Lock()
        self._logger = log or logger

    @property
    def maxlen(self) -> int:
        return self._events.maxlen or 0

    def record(self, event: TimeCheckEvent) -> None:
        with self._lock:
            self._events.append(event)
        self._logger.info(
            "Time check for class %s: past=%s",
            event.class_id,
            event.is_past,
            extra={"event": "time_check", **event.to_dict()},
        )

    def recent(self) -> List[TimeCheckEvent]:
        """Events oldest first."""
        with self._lock:
            return list(self._events)

    def clear(self) -> None:
        with self._lock:
            self._events.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)
