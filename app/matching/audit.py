"""
Mismatch Audit Log

Bounded in-process record of excluded items for admin review.
Oldest entries are dropped once capacity is reached. Nothing is
persisted across restarts.

Request handlers run on a thread pool, so appends and reads go through
a lock.
"""

from collections import deque
from datetime import datetime, timezone
from threading import Lock
from typing import Deque, List, Optional

from .models import MismatchLogEntry, Severity

DEFAULT_CAPACITY = 1000


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class MismatchLog:
    """Ring buffer of MismatchLogEntry, newest kept."""

    def __init__(self, capacity: int = DEFAULT_CAPACITY):
        if capacity < 1:
            raise ValueError(f"capacity must be positive, got {capacity}")
        self._capacity = capacity
        self._entries: Deque[MismatchLogEntry] = deque(maxlen=capacity)
        self._lock = Lock()

    @property
    def capacity(self) -> int:
        return self._capacity

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def append(self, entry: MismatchLogEntry) -> None:
        with self._lock:
            self._entries.append(entry)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def query(
        self,
        user_id: Optional[str] = None,
        severity: Optional[Severity] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
    ) -> List[MismatchLogEntry]:
        """
        Return matching entries, newest first.

        Naive datetimes in the bounds are taken as UTC.
        """
        with self._lock:
            # Reversed so entries sharing a timestamp also come out newest first
            logs = list(reversed(self._entries))

        if user_id is not None:
            logs = [log for log in logs if log.user_id == str(user_id)]

        if severity is not None:
            logs = [log for log in logs if log.severity == severity]

        if start_date is not None:
            start = _as_utc(start_date)
            logs = [log for log in logs if _as_utc(log.timestamp) >= start]

        if end_date is not None:
            end = _as_utc(end_date)
            logs = [log for log in logs if _as_utc(log.timestamp) <= end]

        return sorted(logs, key=lambda log: _as_utc(log.timestamp), reverse=True)
