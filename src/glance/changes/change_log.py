# src/glance/changes/change_log.py

from __future__ import annotations

import logging
import sqlite3

from ..store.db import Database
from ..tasks.task_models import ChangeRecord, ChangesPage, ChangeType

logger = logging.getLogger(__name__)

ENTITY_TASK = "task"


def append_change(
    conn: sqlite3.Connection,
    entity_id: str,
    change_type: ChangeType,
    changed_at: int,
    *,
    entity_type: str = ENTITY_TASK,
) -> int:
    """
    Append one record inside the caller's transaction.

    Records are never updated or deleted afterwards.
    """
    cur = conn.execute(
        """
        INSERT INTO changes(entity_type, entity_id, change_type, changed_at)
        VALUES (?, ?, ?, ?)
        """,
        (entity_type, entity_id, ChangeType(change_type).value, int(changed_at)),
    )
    rowid = cur.lastrowid
    if rowid is None:
        raise RuntimeError("SQLite did not return lastrowid for changes insert")
    return int(rowid)


class ChangeLog:
    """Read side of the append-only change ledger used for polling sync."""

    def __init__(self, db: Database) -> None:
        self._db = db

    def get_changes(self, since_id: int = 0) -> ChangesPage:
        since = int(since_id)
        last_id = since
        records: list[ChangeRecord] = []

        with self._db.read() as conn:
            rows = conn.execute(
                """
                SELECT id, entity_type, entity_id, change_type, changed_at
                FROM changes
                WHERE id > ?
                ORDER BY id ASC
                """,
                (since,),
            ).fetchall()

        for row in rows:
            last_id = int(row["id"])
            records.append(
                ChangeRecord(
                    sequence_id=last_id,
                    entity_type=str(row["entity_type"]),
                    entity_id=str(row["entity_id"]),
                    change_type=ChangeType(row["change_type"]),
                    changed_at=int(row["changed_at"]),
                )
            )

        logger.debug("Changes since=%s -> %d records last_id=%s", since, len(records), last_id)
        return ChangesPage(last_id=last_id, records=records)
