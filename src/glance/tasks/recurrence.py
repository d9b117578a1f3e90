# src/glance/tasks/recurrence.py

from __future__ import annotations

"""
Recurrence generation.

A template is a task whose recurrence is set. Each pass materializes the dates a
template covers within the horizon as ordinary tasks ("occurrences"):
- weekly: every matching weekday of the Monday..Sunday week containing `today`,
  including days already past (missed runs heal themselves),
- monthly: every matching day of month in today .. today + 27.

Occurrence ids are derived from (template id, date), and inserts use
INSERT OR IGNORE, so re-running a pass never duplicates anything.
"""

import hashlib
import json
import logging
import uuid
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, timedelta
from enum import StrEnum
from typing import Any

from ..changes.change_log import append_change
from ..core.clock import MonotonicClock, format_date_key
from ..search.index import write_entry
from ..store.db import Database
from ..store.documents import extract_plain_text
from ..store.rows import doc_to_str, str_to_doc, title_from_row
from .task_models import ChangeType

logger = logging.getLogger(__name__)

MONTHLY_HORIZON_DAYS = 28


class RecurrenceType(StrEnum):
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    # Category markers set by the UI; never materialized.
    REPEATABLE = "repeatable"
    NOTES = "notes"


_MARKER_TYPES = {RecurrenceType.REPEATABLE.value, RecurrenceType.NOTES.value}


@dataclass(frozen=True, slots=True)
class RecurrenceSpec:
    type: RecurrenceType
    weekdays: frozenset[int] = frozenset()
    month_days: frozenset[int] = frozenset()

    @property
    def is_materializable(self) -> bool:
        if self.type == RecurrenceType.WEEKLY:
            return bool(self.weekdays)
        if self.type == RecurrenceType.MONTHLY:
            return bool(self.month_days)
        return False


@dataclass(frozen=True, slots=True)
class RecurrenceTemplate:
    id: str
    page: str
    title_text: str
    title_json: str
    content_json: str
    spec: RecurrenceSpec


def _int_members(raw: Any, lo: int, hi: int) -> frozenset[int]:
    if not isinstance(raw, list):
        return frozenset()
    out: set[int] = set()
    for item in raw:
        # bool is an int subclass; JSON true/false are not day numbers.
        if isinstance(item, bool) or not isinstance(item, (int, float)):
            continue
        if isinstance(item, float) and not item.is_integer():
            continue
        value = int(item)
        if lo <= value <= hi:
            out.add(value)
    return frozenset(out)


def parse_recurrence(raw: Any) -> RecurrenceSpec | None:
    """
    Parse a stored recurrence (dict or JSON text).

    Returns None when it cannot be understood. Marker types parse successfully
    but are not materializable.
    """
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except ValueError:
            return None

    if not isinstance(raw, dict):
        return None

    type_raw = raw.get("type")
    if not isinstance(type_raw, str):
        return None
    try:
        rtype = RecurrenceType(type_raw)
    except ValueError:
        return None

    weekdays: frozenset[int] = frozenset()
    month_days: frozenset[int] = frozenset()
    if rtype == RecurrenceType.WEEKLY:
        weekdays = _int_members(raw.get("weekdays"), 1, 7)
    elif rtype == RecurrenceType.MONTHLY:
        month_days = _int_members(raw.get("monthDays"), 1, 31)

    return RecurrenceSpec(type=rtype, weekdays=weekdays, month_days=month_days)


def week_bounds(today: date) -> tuple[date, date]:
    start = today - timedelta(days=today.weekday())
    return start, start + timedelta(days=6)


def horizon_end(today: date) -> date:
    """Last date any template can be materialized for in a pass run on `today`."""
    _, week_end = week_bounds(today)
    return max(week_end, today + timedelta(days=MONTHLY_HORIZON_DAYS - 1))


def _days(start: date, end: date) -> Iterable[date]:
    day = start
    while day <= end:
        yield day
        day += timedelta(days=1)


def occurrence_dates(spec: RecurrenceSpec, today: date) -> list[date]:
    if spec.type == RecurrenceType.WEEKLY:
        week_start, week_end = week_bounds(today)
        # isoweekday(): Monday=1 .. Sunday=7
        return [d for d in _days(week_start, week_end) if d.isoweekday() in spec.weekdays]

    if spec.type == RecurrenceType.MONTHLY:
        end = today + timedelta(days=MONTHLY_HORIZON_DAYS - 1)
        return [d for d in _days(today, end) if d.day in spec.month_days]

    return []


def occurrence_id(template_id: str, date_key: str) -> str:
    """Stable id for one template's occurrence on one date (128-bit SHA-256 prefix)."""
    digest = hashlib.sha256(f"{template_id}:{date_key}".encode("utf-8")).digest()
    return str(uuid.UUID(bytes=digest[:16]))


class RecurrenceGenerator:
    def __init__(self, db: Database, *, clock: MonotonicClock | None = None) -> None:
        self._db = db
        self._clock = clock or MonotonicClock()

    def load_templates(self) -> list[RecurrenceTemplate]:
        """Templates that can produce occurrences. Anything else is skipped and logged."""
        with self._db.read() as conn:
            rows = conn.execute(
                """
                SELECT id, page, title, title_json, content_json, recurrence_json
                FROM tasks
                WHERE recurrence_json IS NOT NULL
                ORDER BY created_at ASC, id ASC
                """
            ).fetchall()

        templates: list[RecurrenceTemplate] = []
        for row in rows:
            raw = row["recurrence_json"]
            if not raw or not str(raw).strip():
                continue

            spec = parse_recurrence(raw)
            if spec is None:
                logger.warning("Skipping template %s: unparseable recurrence %r", row["id"], raw)
                continue
            if spec.type.value in _MARKER_TYPES:
                continue
            if not spec.is_materializable:
                logger.warning("Skipping template %s: %s recurrence without days", row["id"], spec.type.value)
                continue

            title = title_from_row(row["title_json"], row["title"])
            templates.append(
                RecurrenceTemplate(
                    id=str(row["id"]),
                    page=str(row["page"]),
                    title_text=str(row["title"] or extract_plain_text(title)),
                    title_json=doc_to_str(title) or "{}",
                    content_json=str(row["content_json"] or "{}"),
                    spec=spec,
                )
            )
        return templates

    def generate(self, today: date) -> int:
        """
        Materialize every template across the horizon for `today`.

        Returns the number of newly created occurrences; a second call for the same
        day returns 0. All inserts of one call share a single transaction.
        """
        templates = self.load_templates()
        if not templates:
            return 0

        now = self._clock.now_ms()
        created = 0

        with self._db.transaction() as conn:
            for template in templates:
                for day in occurrence_dates(template.spec, today):
                    date_key = format_date_key(day)
                    task_id = occurrence_id(template.id, date_key)

                    cur = conn.execute(
                        """
                        INSERT OR IGNORE INTO tasks(
                            id, page, title, title_json, content_json, position,
                            created_at, updated_at, scheduled_date, recurrence_json
                        )
                        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, NULL)
                        """,
                        (
                            task_id,
                            template.page,
                            template.title_text,
                            template.title_json,
                            template.content_json,
                            float(now + created),
                            now,
                            now,
                            date_key,
                        ),
                    )
                    if cur.rowcount <= 0:
                        continue

                    write_entry(conn, task_id, str_to_doc(template.title_json), str_to_doc(template.content_json))
                    append_change(conn, task_id, ChangeType.CREATE, now)
                    created += 1

        if created:
            logger.info("Recurrence generated %d occurrences for %s", created, format_date_key(today))
        else:
            logger.debug("Recurrence pass for %s created nothing", format_date_key(today))
        return created
