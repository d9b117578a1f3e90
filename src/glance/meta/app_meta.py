# src/glance/meta/app_meta.py

from __future__ import annotations

import json
import logging
import threading
from collections.abc import Callable
from dataclasses import asdict, dataclass, fields, replace
from typing import Any

from ..store.db import Database

logger = logging.getLogger(__name__)

MAINTENANCE_STATE_KEY = "maintenance_state"
APP_VERSION_KEY = "app_version"


class AppMetaRepository:
    """Small key-value settings store (app_meta table)."""

    def __init__(self, db: Database) -> None:
        self._db = db

    def get_value(self, key: str) -> str | None:
        with self._db.read() as conn:
            row = conn.execute("SELECT value FROM app_meta WHERE key = ?", (key,)).fetchone()
            return str(row["value"]) if row else None

    def set_value(self, key: str, value: str) -> None:
        with self._db.transaction() as conn:
            conn.execute(
                """
                INSERT INTO app_meta(key, value)
                VALUES (?, ?)
                ON CONFLICT(key) DO UPDATE SET value = excluded.value
                """,
                (key, value),
            )

    def get_schema_version(self) -> int:
        return self._db.get_schema_version()


@dataclass(frozen=True, slots=True)
class MaintenanceState:
    last_reindex_at: str | None = None
    reindex_in_progress: bool = False
    integrity_error: bool = False
    recurrence_generated_until: str | None = None
    last_daily_run: str | None = None

    @staticmethod
    def from_json(raw: str | None) -> MaintenanceState:
        if not raw:
            return MaintenanceState()
        try:
            data = json.loads(raw)
        except ValueError:
            logger.warning("Stored maintenance state is not valid JSON; starting fresh.")
            return MaintenanceState()
        if not isinstance(data, dict):
            return MaintenanceState()
        known = {f.name for f in fields(MaintenanceState)}
        return MaintenanceState(**{k: v for k, v in data.items() if k in known})

    def to_json(self) -> str:
        return json.dumps(asdict(self), ensure_ascii=False, sort_keys=True)


class MaintenanceStateStore:
    """
    The one persisted maintenance record.

    Every change goes through update(), which reads, applies and writes the record
    while holding a single process-wide lock.
    """

    _lock = threading.Lock()

    def __init__(self, meta: AppMetaRepository) -> None:
        self._meta = meta

    def load(self) -> MaintenanceState:
        with self._lock:
            return MaintenanceState.from_json(self._meta.get_value(MAINTENANCE_STATE_KEY))

    def update(self, fn: Callable[[MaintenanceState], MaintenanceState]) -> MaintenanceState:
        with self._lock:
            current = MaintenanceState.from_json(self._meta.get_value(MAINTENANCE_STATE_KEY))
            new_state = fn(current)
            self._meta.set_value(MAINTENANCE_STATE_KEY, new_state.to_json())
            return new_state

    def set(self, **changes: Any) -> MaintenanceState:
        return self.update(lambda s: replace(s, **changes))
