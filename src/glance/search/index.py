# src/glance/search/index.py

from __future__ import annotations

"""
Full-text search over tasks.

Each task has one entry in the FTS5 table task_search holding the plain text of
its title and content. Queries combine two matchers:
- an FTS5 prefix query (every plain token gets a trailing '*'), and
- a literal, case-insensitive substring match per token, which catches in-word
  hits the tokenizer cannot ("ew" in "new").

The index is derived data: rebuild() recomputes it from the tasks table.
"""

import contextlib
import logging
import sqlite3
from collections.abc import Iterator
from typing import Any

from ..errors import SearchIndexMissingError
from ..store.db import CREATE_SEARCH_TABLE_SQL, SEARCH_TABLE, Database
from ..store.documents import search_text
from ..store.rows import TASK_COLUMNS, row_to_task, str_to_doc, title_from_row
from ..tasks.task_models import Task

logger = logging.getLogger(__name__)

RESERVED_KEYWORDS = frozenset({"AND", "OR", "NOT", "NEAR"})

_SELECT_TASKS = (
    "SELECT "
    + ", ".join(f"t.{c.strip()}" for c in TASK_COLUMNS.split(","))
    + f" FROM {SEARCH_TABLE} ts JOIN tasks t ON t.id = ts.task_id"
)


def _tokens(raw: str) -> list[str]:
    return [t for t in (raw or "").split() if t]


def build_match_query(raw: str) -> str:
    """
    FTS5 query for the prefix matcher.

    Boolean keywords and tokens that already carry '*' or '"' pass through untouched.
    """
    parts: list[str] = []
    for token in _tokens(raw):
        if token.upper() in RESERVED_KEYWORDS or "*" in token or '"' in token:
            parts.append(token)
        else:
            parts.append(f"{token}*")
    return " ".join(parts)


def build_like_tokens(raw: str) -> list[str]:
    """Literal substrings for the fallback matcher: unquoted, no wildcards, no keywords."""
    out: list[str] = []
    for token in _tokens(raw):
        trimmed = token.strip("\"'")
        if not trimmed.strip():
            continue
        if trimmed.upper() in RESERVED_KEYWORDS:
            continue
        literal = trimmed.replace("*", "")
        if literal:
            out.append(literal)
    return out


def escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _is_missing_table(exc: sqlite3.OperationalError) -> bool:
    return f"no such table: {SEARCH_TABLE}" in str(exc)


@contextlib.contextmanager
def _index_errors() -> Iterator[None]:
    try:
        yield
    except sqlite3.OperationalError as exc:
        if _is_missing_table(exc):
            raise SearchIndexMissingError(f"{SEARCH_TABLE} table is missing") from exc
        raise


def write_entry(conn: sqlite3.Connection, task_id: str, title: Any, content: Any) -> None:
    """Replace the task's entry wholesale, inside the caller's transaction."""
    text = search_text(title, content)
    with _index_errors():
        conn.execute(f"DELETE FROM {SEARCH_TABLE} WHERE task_id = ?", (task_id,))
        conn.execute(
            f"INSERT INTO {SEARCH_TABLE}(task_id, content) VALUES (?, ?)",
            (task_id, text),
        )


def delete_entry(conn: sqlite3.Connection, task_id: str) -> None:
    with _index_errors():
        conn.execute(f"DELETE FROM {SEARCH_TABLE} WHERE task_id = ?", (task_id,))


class SearchIndex:
    def __init__(self, db: Database) -> None:
        self._db = db

    def exists(self) -> bool:
        return self._db.table_exists(SEARCH_TABLE)

    def rebuild(self) -> int:
        """
        Drop and recompute every entry in one transaction.

        Returns the number of indexed tasks.
        """
        count = 0
        with self._db.transaction() as conn:
            conn.execute(f"DROP TABLE IF EXISTS {SEARCH_TABLE}")
            conn.execute(CREATE_SEARCH_TABLE_SQL)

            rows = conn.execute("SELECT id, title, title_json, content_json FROM tasks").fetchall()
            for row in rows:
                title = title_from_row(row["title_json"], row["title"])
                content = str_to_doc(row["content_json"])
                conn.execute(
                    f"INSERT INTO {SEARCH_TABLE}(task_id, content) VALUES (?, ?)",
                    (str(row["id"]), search_text(title, content)),
                )
                count += 1

        logger.info("Search index rebuilt: %d tasks", count)
        return count

    def entry_text(self, task_id: str) -> str | None:
        """Indexed text of one task (None when it has no entry)."""
        with self._db.read() as conn, _index_errors():
            row = conn.execute(
                f"SELECT content FROM {SEARCH_TABLE} WHERE task_id = ?",
                (task_id,),
            ).fetchone()
            return str(row["content"]) if row else None

    def query(self, raw: str) -> list[Task]:
        """
        Hybrid search.

        Result: union of the prefix match and the AND-combined substring match,
        deduplicated by task id, newest update first. A blank query returns []
        without touching the index.
        """
        if not raw or not raw.strip():
            return []

        match_query = build_match_query(raw)
        like_tokens = build_like_tokens(raw)
        if not match_query and not like_tokens:
            return []

        found: dict[str, Task] = {}
        with self._db.read() as conn, _index_errors():
            if match_query:
                try:
                    rows = conn.execute(
                        f"{_SELECT_TASKS} WHERE {SEARCH_TABLE} MATCH ?",
                        (match_query,),
                    ).fetchall()
                except sqlite3.OperationalError as exc:
                    if _is_missing_table(exc):
                        raise
                    # FTS5 syntax errors (unbalanced quotes, col: filters, ...).
                    logger.warning("Prefix search rejected query=%r: %s", match_query, exc)
                    rows = []
                for row in rows:
                    task = row_to_task(row)
                    found[task.id] = task

            if like_tokens:
                clauses = " AND ".join("glance_lower(ts.content) LIKE ? ESCAPE '\\'" for _ in like_tokens)
                params = [f"%{escape_like(tok.lower())}%" for tok in like_tokens]
                rows = conn.execute(f"{_SELECT_TASKS} WHERE {clauses}", params).fetchall()
                for row in rows:
                    task = row_to_task(row)
                    found[task.id] = task

        results = sorted(found.values(), key=lambda t: t.updated_at, reverse=True)
        logger.debug("Search query=%r -> %d results", raw, len(results))
        return results
