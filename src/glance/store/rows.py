# src/glance/store/rows.py

from __future__ import annotations

import json
import logging
import sqlite3
from typing import Any

from ..tasks.task_models import Task
from .documents import paragraph_doc

logger = logging.getLogger(__name__)

TASK_COLUMNS = (
    "id, page, title, title_json, content_json, position, "
    "created_at, updated_at, completed_at, scheduled_date, recurrence_json"
)


def doc_to_str(doc: dict[str, Any] | None) -> str | None:
    if doc is None:
        return None
    return json.dumps(doc, ensure_ascii=False, separators=(",", ":"))


def str_to_doc(s: str | None) -> dict[str, Any] | None:
    if not s or not s.strip():
        return None
    try:
        val = json.loads(s)
    except ValueError:
        logger.warning("Stored document is not valid JSON; reading it as empty.")
        return None
    return val if isinstance(val, dict) else None


def title_from_row(title_json: str | None, legacy_title: str | None) -> dict[str, Any]:
    """Structured title, or a one-paragraph document built from the legacy text column."""
    return str_to_doc(title_json) or paragraph_doc(legacy_title or "")


def row_to_task(row: sqlite3.Row) -> Task:
    return Task(
        id=str(row["id"]),
        page=str(row["page"]),
        title=title_from_row(row["title_json"], row["title"]),
        content=str_to_doc(row["content_json"]) or {"type": "doc", "content": []},
        position=float(row["position"] or 0.0),
        created_at=int(row["created_at"] or 0),
        updated_at=int(row["updated_at"] or 0),
        completed_at=int(row["completed_at"]) if row["completed_at"] is not None else None,
        scheduled_date=row["scheduled_date"],
        recurrence=str_to_doc(row["recurrence_json"]),
    )
