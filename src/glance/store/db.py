# src/glance/store/db.py

from __future__ import annotations

import contextlib
import logging
import sqlite3
import time
from collections.abc import Iterator
from pathlib import Path

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 2

SEARCH_TABLE = "task_search"
CREATE_SEARCH_TABLE_SQL = f"CREATE VIRTUAL TABLE {SEARCH_TABLE} USING fts5(task_id UNINDEXED, content)"


class Database:
    """
    SQLite storage engine shared by every repository.

    The schema is migration-safe:
    - create tables if missing
    - use PRAGMA table_info to detect missing columns
    - add columns with ALTER TABLE only when needed
    - record the schema version in schema_migrations

    Thread-safety:
    - every read() / transaction() scope opens its own connection
    - transaction() takes the write lock up front (BEGIN IMMEDIATE), so change-log
      appends land in commit order
    """

    def __init__(self, db_path: str | Path = "glance.sqlite3") -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()
        logger.info("Database ready db=%s schema=%s", self._db_path, self.get_schema_version())

    @property
    def path(self) -> Path:
        return self._db_path

    def close(self) -> None:
        """Compatibility hook for shutdown (no persistent connections to close)."""
        return

    # ---- connections ----

    def connect(self) -> sqlite3.Connection:
        # Autocommit mode: transaction boundaries are explicit in transaction().
        conn = sqlite3.connect(str(self._db_path), timeout=30.0, isolation_level=None)
        conn.row_factory = sqlite3.Row
        self._configure_conn(conn)
        return conn

    @staticmethod
    def _configure_conn(conn: sqlite3.Connection) -> None:
        with contextlib.suppress(Exception):
            conn.execute("PRAGMA journal_mode=WAL")
        conn.create_function("glance_lower", 1, _lower, deterministic=True)

    @contextlib.contextmanager
    def read(self) -> Iterator[sqlite3.Connection]:
        conn = self.connect()
        try:
            yield conn
        finally:
            conn.close()

    @contextlib.contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """
        One atomic unit of work.

        Commits when the block exits normally; rolls back and re-raises otherwise.
        """
        conn = self.connect()
        try:
            conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
            except BaseException:
                if conn.in_transaction:
                    conn.execute("ROLLBACK")
                raise
            conn.execute("COMMIT")
        finally:
            conn.close()

    # ---- schema ----

    def _ensure_schema(self) -> None:
        conn = self.connect()
        try:
            cur = conn.cursor()
            cur.execute("BEGIN IMMEDIATE")

            fresh = not _table_exists(conn, "tasks")

            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS tasks (
                    id             TEXT PRIMARY KEY,
                    page           TEXT NOT NULL,
                    title          TEXT NOT NULL DEFAULT '',
                    title_json     TEXT,
                    content_json   TEXT NOT NULL DEFAULT '{}',
                    position       REAL NOT NULL DEFAULT 0,
                    created_at     INTEGER NOT NULL,
                    updated_at     INTEGER NOT NULL,
                    completed_at   INTEGER,
                    scheduled_date TEXT,
                    recurrence_json TEXT
                )
                """
            )

            # Migrations (safe): add missing columns.
            cur.execute("PRAGMA table_info(tasks)")
            cols = {row["name"] for row in cur.fetchall()}

            def add_col(name: str, decl: str) -> None:
                if name in cols:
                    return
                cur.execute(f"ALTER TABLE tasks ADD COLUMN {name} {decl}")
                logger.info("Database migration: added column tasks.%s", name)

            # Version 1 databases stored the title as plain text only.
            add_col("title_json", "TEXT")
            add_col("scheduled_date", "TEXT")
            add_col("recurrence_json", "TEXT")

            cur.execute("CREATE INDEX IF NOT EXISTS idx_tasks_page ON tasks(page, completed_at, position)")
            cur.execute("CREATE INDEX IF NOT EXISTS idx_tasks_completed ON tasks(completed_at)")

            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS changes (
                    id          INTEGER PRIMARY KEY AUTOINCREMENT,
                    entity_type TEXT NOT NULL,
                    entity_id   TEXT NOT NULL,
                    change_type TEXT NOT NULL,
                    changed_at  INTEGER NOT NULL
                )
                """
            )

            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS app_meta (
                    key   TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                )
                """
            )

            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS schema_migrations (
                    version    INTEGER PRIMARY KEY,
                    applied_at INTEGER NOT NULL
                )
                """
            )

            # An existing database without the index is left alone: maintenance
            # detects the missing table and rebuilds it from the task rows.
            if fresh and not _table_exists(conn, SEARCH_TABLE):
                cur.execute(CREATE_SEARCH_TABLE_SQL)

            now_ms = int(time.time() * 1000)
            for version in range(1, SCHEMA_VERSION + 1):
                cur.execute(
                    "INSERT OR IGNORE INTO schema_migrations(version, applied_at) VALUES (?, ?)",
                    (version, now_ms),
                )

            cur.execute("COMMIT")
        except BaseException:
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            raise
        finally:
            conn.close()

    def get_schema_version(self) -> int:
        with self.read() as conn:
            (version,) = conn.execute("SELECT COALESCE(MAX(version), 0) FROM schema_migrations").fetchone()
            return int(version)

    def table_exists(self, name: str) -> bool:
        with self.read() as conn:
            return _table_exists(conn, name)

    def integrity_check(self) -> str:
        """Run PRAGMA integrity_check and return SQLite's verdict ("ok" when healthy)."""
        with self.read() as conn:
            row = conn.execute("PRAGMA integrity_check").fetchone()
            return str(row[0]) if row else ""


def _table_exists(conn: sqlite3.Connection, name: str) -> bool:
    row = conn.execute(
        "SELECT 1 FROM sqlite_master WHERE type = 'table' AND name = ?",
        (name,),
    ).fetchone()
    return row is not None


def _lower(value: str | None) -> str | None:
    # SQLite's lower() only folds ASCII.
    return value.lower() if value is not None else None
