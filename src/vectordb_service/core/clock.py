"""Timestamp helpers."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from threading import Lock
from typing import Optional


def utc_now() -> datetime:
    """Return timezone-aware UTC datetime."""
    return datetime.now(tz=timezone.utc)


def to_iso(value: datetime) -> str:
    """
    Render a datetime as a fixed-width ISO-8601 UTC string.

    Naive datetimes are taken to be UTC. The fixed width keeps stored
    timestamps lexicographically ordered.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


class MonotonicClock:
    """
    UTC clock whose readings strictly increase within a process.

    Two reads inside the same clock tick are separated by one microsecond,
    so an update always moves ``updated_at`` forward.
    """

    def __init__(self) -> None:
        self._last: Optional[datetime] = None
        self._lock = Lock()

    def now(self) -> datetime:
        with self._lock:
            current = utc_now()
            if self._last is not None and current <= self._last:
                current = self._last + timedelta(microseconds=1)
            self._last = current
            return current

    def now_iso(self) -> str:
        return to_iso(self.now())
