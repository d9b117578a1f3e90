# src/glance/tasks/task_store.py

from __future__ import annotations

import logging
import sqlite3
import uuid
from typing import Any

from ..changes.change_log import append_change
from ..core.clock import MonotonicClock
from ..search.index import delete_entry, escape_like, write_entry
from ..store.db import Database
from ..store.documents import extract_plain_text
from ..store.rows import TASK_COLUMNS, doc_to_str, row_to_task
from .task_models import (
    DASHBOARD_MAIN,
    ChangeType,
    CompletionResult,
    Task,
    TaskCreated,
    TaskUpdated,
)

logger = logging.getLogger(__name__)

_UNSET: Any = object()


def normalize_scheduled_date(value: str | None) -> str | None:
    if value is None or not str(value).strip():
        return None
    return str(value).strip()


class TaskStore:
    """
    SQLite task store.

    Every mutation is one transaction covering the task row, its search entry and
    a change-log append; any failure rolls back all three.

    Updates are last-writer-wins. There are no per-task locks: update_task() reports
    a stale caller through TaskUpdated.external_update and applies the patch anyway.

    Thread-safety:
    - each method opens its own SQLite connection
    """

    def __init__(self, db: Database, *, clock: MonotonicClock | None = None) -> None:
        self._db = db
        self._clock = clock or MonotonicClock()
        try:
            total = self.count_tasks()
        except Exception:
            total = -1
        logger.info("TaskStore ready db=%s total=%s", db.path, total)

    # ---- probes ----

    def count_tasks(self) -> int:
        with self._db.read() as conn:
            (n,) = conn.execute("SELECT COUNT(*) FROM tasks").fetchone()
            return int(n)

    def task_exists(self, task_id: str) -> bool:
        with self._db.read() as conn:
            return _exists(conn, task_id)

    def get_task(self, task_id: str) -> Task | None:
        with self._db.read() as conn:
            row = conn.execute(f"SELECT {TASK_COLUMNS} FROM tasks WHERE id = ?", (task_id,)).fetchone()
            return row_to_task(row) if row else None

    def find_by_id_prefix(self, prefix: str, *, limit: int = 2) -> list[str]:
        """Ids starting with `prefix` (any page, open or completed), at most `limit` of them."""
        if not prefix:
            return []
        with self._db.read() as conn:
            rows = conn.execute(
                "SELECT id FROM tasks WHERE id LIKE ? ESCAPE '\\' ORDER BY id LIMIT ?",
                (f"{escape_like(prefix)}%", int(limit)),
            ).fetchall()
            return [str(r["id"]) for r in rows]

    # ---- mutations ----

    def create_task(
        self,
        *,
        page: str,
        title: dict[str, Any],
        content: dict[str, Any],
        position: float,
        scheduled_date: str | None = None,
        recurrence: dict[str, Any] | None = None,
    ) -> TaskCreated:
        if not page or not page.strip():
            raise ValueError("page is required")

        task_id = str(uuid.uuid4())
        now = self._clock.now_ms()

        with self._db.transaction() as conn:
            conn.execute(
                """
                INSERT INTO tasks(
                    id, page, title, title_json, content_json, position,
                    created_at, updated_at, scheduled_date, recurrence_json
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    task_id,
                    page.strip(),
                    extract_plain_text(title),
                    doc_to_str(title),
                    doc_to_str(content) or "{}",
                    float(position),
                    now,
                    now,
                    normalize_scheduled_date(scheduled_date),
                    doc_to_str(recurrence),
                ),
            )
            write_entry(conn, task_id, title, content)
            append_change(conn, task_id, ChangeType.CREATE, now)

        logger.debug(
            "Task created id=%s page=%s template=%s scheduled=%s",
            task_id,
            page,
            recurrence is not None,
            scheduled_date,
        )
        return TaskCreated(task_id=task_id, updated_at=now)

    def update_task(
        self,
        task_id: str,
        *,
        base_updated_at: int,
        title: dict[str, Any] | Any = _UNSET,
        content: dict[str, Any] | Any = _UNSET,
        page: str | Any = _UNSET,
        position: float | Any = _UNSET,
        scheduled_date: str | None | Any = _UNSET,
        recurrence: dict[str, Any] | None | Any = _UNSET,
    ) -> TaskUpdated | None:
        """
        Read-modify-write patch. Omitted fields keep their stored value.

        Returns None when the task does not exist.
        """
        with self._db.transaction() as conn:
            row = conn.execute(f"SELECT {TASK_COLUMNS} FROM tasks WHERE id = ?", (task_id,)).fetchone()
            if row is None:
                return None

            current = row_to_task(row)
            external_update = int(base_updated_at) < current.updated_at
            now = max(self._clock.now_ms(), current.updated_at + 1)

            new_title = current.title if title is _UNSET else title
            new_content = current.content if content is _UNSET else content
            new_page = current.page if page is _UNSET else str(page)
            new_position = current.position if position is _UNSET else float(position)
            new_scheduled = (
                current.scheduled_date if scheduled_date is _UNSET else normalize_scheduled_date(scheduled_date)
            )
            # Keep the stored recurrence text byte-for-byte when it is not patched.
            new_recurrence_json = (
                row["recurrence_json"] if recurrence is _UNSET else doc_to_str(recurrence)
            )

            conn.execute(
                """
                UPDATE tasks
                SET page = ?,
                    title = ?,
                    title_json = ?,
                    content_json = ?,
                    position = ?,
                    scheduled_date = ?,
                    recurrence_json = ?,
                    updated_at = ?
                WHERE id = ?
                """,
                (
                    new_page,
                    extract_plain_text(new_title),
                    doc_to_str(new_title),
                    doc_to_str(new_content) or "{}",
                    new_position,
                    new_scheduled,
                    new_recurrence_json,
                    now,
                    task_id,
                ),
            )
            write_entry(conn, task_id, new_title, new_content)
            append_change(conn, task_id, ChangeType.UPDATE, now)

        if external_update:
            logger.info(
                "Task %s updated from a stale copy base=%s current=%s",
                task_id,
                base_updated_at,
                current.updated_at,
            )
        logger.debug("Task updated id=%s updated_at=%s", task_id, now)
        return TaskUpdated(updated_at=now, external_update=external_update)

    def set_completion(self, task_id: str, completed: bool) -> CompletionResult | None:
        now = self._clock.now_ms()
        completed_at = now if completed else None

        with self._db.transaction() as conn:
            if not _exists(conn, task_id):
                return None
            conn.execute(
                """
                UPDATE tasks
                SET completed_at = ?,
                    updated_at = MAX(updated_at + 1, ?)
                WHERE id = ?
                """,
                (completed_at, now, task_id),
            )
            append_change(conn, task_id, ChangeType.COMPLETE, now)

        logger.debug("Task %s -> %s", task_id, "completed" if completed else "open")
        return CompletionResult(completed_at=completed_at)

    def delete_task(self, task_id: str) -> bool:
        """Remove a task and its search entry. Returns False when it was already gone."""
        now = self._clock.now_ms()

        with self._db.transaction() as conn:
            if not _exists(conn, task_id):
                return False
            delete_entry(conn, task_id)
            conn.execute("DELETE FROM tasks WHERE id = ?", (task_id,))
            append_change(conn, task_id, ChangeType.DELETE, now)

        logger.debug("Task deleted id=%s", task_id)
        return True

    # ---- listings ----

    def list_by_page(self, page: str) -> list[Task]:
        """Open tasks on a page, in display order."""
        with self._db.read() as conn:
            rows = conn.execute(
                f"""
                SELECT {TASK_COLUMNS}
                FROM tasks
                WHERE page = ? AND completed_at IS NULL
                ORDER BY position ASC
                """,
                (page,),
            ).fetchall()
            return [row_to_task(r) for r in rows]

    def list_dashboard_main(self, start_of_today_ms: int) -> list[Task]:
        """
        The live dashboard: open tasks plus everything completed today.

        Tasks completed before start_of_today_ms belong to history only.
        """
        with self._db.read() as conn:
            rows = conn.execute(
                f"""
                SELECT {TASK_COLUMNS}
                FROM tasks
                WHERE page = ?
                  AND (completed_at IS NULL OR completed_at >= ?)
                ORDER BY position ASC
                """,
                (DASHBOARD_MAIN, int(start_of_today_ms)),
            ).fetchall()
            return [row_to_task(r) for r in rows]

    def list_history(self) -> list[Task]:
        with self._db.read() as conn:
            rows = conn.execute(
                f"""
                SELECT {TASK_COLUMNS}
                FROM tasks
                WHERE completed_at IS NOT NULL
                ORDER BY completed_at DESC
                """
            ).fetchall()
            return [row_to_task(r) for r in rows]

    def list_templates(self) -> list[Task]:
        with self._db.read() as conn:
            rows = conn.execute(
                f"SELECT {TASK_COLUMNS} FROM tasks WHERE recurrence_json IS NOT NULL ORDER BY created_at ASC"
            ).fetchall()
            return [row_to_task(r) for r in rows]


def _exists(conn: sqlite3.Connection, task_id: str) -> bool:
    return conn.execute("SELECT 1 FROM tasks WHERE id = ?", (task_id,)).fetchone() is not None

