# src/glance/core/clock.py

from __future__ import annotations

"""
Time helpers.

All persisted timestamps are unix milliseconds. Day boundaries are computed in
the local timezone, the same way the UI shows them.
"""

import threading
import time
from datetime import date, datetime, timedelta


class MonotonicClock:
    """
    Millisecond wall clock that never returns the same value twice.

    Two mutations issued within the same millisecond still get distinct,
    increasing timestamps. Cross-process ordering is handled in SQL with
    MAX(updated_at + 1, ?).
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._last = 0

    def now_ms(self) -> int:
        with self._lock:
            now = int(time.time() * 1000)
            if now <= self._last:
                now = self._last + 1
            self._last = now
            return now


def start_of_day_ms(day: date) -> int:
    start = datetime(day.year, day.month, day.day).astimezone()
    return int(start.timestamp() * 1000)


def start_of_today_ms(now: datetime | None = None) -> int:
    current = now or datetime.now()
    return start_of_day_ms(current.date())


def history_window_start_ms(days: int, now: datetime | None = None) -> int:
    """Start of the trailing window of `days` local days that ends today."""
    current = now or datetime.now()
    first = current.date() - timedelta(days=max(1, int(days)) - 1)
    return start_of_day_ms(first)


def format_local_date(ts_ms: int | None) -> str:
    if ts_ms is None:
        return "Unknown"
    return datetime.fromtimestamp(ts_ms / 1000).strftime("%Y-%m-%d")


def format_date_key(day: date) -> str:
    return day.strftime("%Y-%m-%d")
