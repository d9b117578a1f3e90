# src/glance/history/archiver.py

from __future__ import annotations

import logging
from collections.abc import Iterable

from ..changes.change_log import append_change
from ..core.clock import MonotonicClock, format_local_date
from ..store.db import Database
from ..tasks.task_models import ChangeType, HistoryDayStat, HistoryGroup, Task

logger = logging.getLogger(__name__)


class HistoryArchiver:
    """
    Completed-task history.

    The live dashboard shows tasks completed since the start of today. Archiving
    rewrites those completions to one millisecond before the day boundary, so they
    read as "completed yesterday" and only remain in history.
    """

    def __init__(self, db: Database, *, clock: MonotonicClock | None = None) -> None:
        self._db = db
        self._clock = clock or MonotonicClock()

    def move_completed_to_history(self, start_of_today_ms: int) -> int:
        start = int(start_of_today_ms)

        with self._db.read() as conn:
            row = conn.execute(
                "SELECT 1 FROM tasks WHERE completed_at IS NOT NULL AND completed_at >= ? LIMIT 1",
                (start,),
            ).fetchone()
        if row is None:
            return 0

        now = self._clock.now_ms()
        moved_to = start - 1

        with self._db.transaction() as conn:
            ids = [
                str(r["id"])
                for r in conn.execute(
                    "SELECT id FROM tasks WHERE completed_at IS NOT NULL AND completed_at >= ? ORDER BY completed_at",
                    (start,),
                ).fetchall()
            ]
            conn.execute(
                """
                UPDATE tasks
                SET completed_at = ?,
                    updated_at = MAX(updated_at + 1, ?)
                WHERE completed_at IS NOT NULL
                  AND completed_at >= ?
                """,
                (moved_to, now, start),
            )
            for task_id in ids:
                append_change(conn, task_id, ChangeType.COMPLETE, now)

        logger.info("Moved %d completed tasks to history (boundary=%s)", len(ids), start)
        return len(ids)

    def history_stats(self, start_of_window_ms: int) -> list[HistoryDayStat]:
        """Completed-task counts per local calendar day since the window start, oldest first."""
        with self._db.read() as conn:
            rows = conn.execute(
                """
                SELECT date(completed_at / 1000, 'unixepoch', 'localtime') AS day, COUNT(*) AS count
                FROM tasks
                WHERE completed_at IS NOT NULL AND completed_at >= ?
                GROUP BY day
                ORDER BY day ASC
                """,
                (int(start_of_window_ms),),
            ).fetchall()
        return [HistoryDayStat(date=str(r["day"]), count=int(r["count"])) for r in rows]


def group_history(tasks: Iterable[Task]) -> list[HistoryGroup]:
    """Group completed tasks by local completion date, keeping the input order."""
    groups: dict[str, list[Task]] = {}
    for task in tasks:
        groups.setdefault(format_local_date(task.completed_at), []).append(task)
    return [HistoryGroup(date=day, tasks=items) for day, items in groups.items()]
