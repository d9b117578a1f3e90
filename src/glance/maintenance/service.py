# src/glance/maintenance/service.py

from __future__ import annotations

"""
Maintenance jobs layered on the stores.

Everything here is safe to retry blindly: generation never double-inserts,
archival is additive, and reindexing recomputes derived data.
"""

import logging
from dataclasses import dataclass, replace
from datetime import datetime

from ..core.clock import format_date_key
from ..history.archiver import HistoryArchiver
from ..meta.app_meta import APP_VERSION_KEY, AppMetaRepository, MaintenanceState, MaintenanceStateStore
from ..search.index import SearchIndex
from ..store.db import Database
from ..tasks.recurrence import RecurrenceGenerator, horizon_end
from ..tasks.task_store import TaskStore

logger = logging.getLogger(__name__)

TASK_WARNING_THRESHOLD = 5000
DB_SIZE_WARNING_BYTES = 200 * 1024 * 1024


@dataclass(frozen=True, slots=True)
class MaintenanceWarning:
    kind: str
    message: str


def _ts(now: datetime) -> str:
    return now.strftime("%Y-%m-%d %H:%M:%S")


class MaintenanceService:
    def __init__(
        self,
        *,
        db: Database,
        tasks: TaskStore,
        search: SearchIndex,
        recurrence: RecurrenceGenerator,
        history: HistoryArchiver,
        meta: AppMetaRepository,
        app_version: str = "",
    ) -> None:
        self._db = db
        self._tasks = tasks
        self._search = search
        self._recurrence = recurrence
        self._history = history
        self._meta = meta
        self._state = MaintenanceStateStore(meta)
        self._app_version = app_version

    # ---- jobs ----

    def run_startup(self, now: datetime) -> None:
        self.ensure_search_index(now)
        self.generate_recurring(now)
        self._record_app_version()

    def run_daily(self, now: datetime) -> None:
        self.generate_recurring(now)
        self.ensure_search_index(now)
        self._state.set(last_daily_run=format_date_key(now.date()))

    def generate_recurring(self, now: datetime) -> int:
        today = now.date()
        created = self._recurrence.generate(today)
        self._state.set(recurrence_generated_until=format_date_key(horizon_end(today)))
        return created

    def move_completed_to_history(self, start_of_today_ms: int) -> int:
        return self._history.move_completed_to_history(start_of_today_ms)

    def reindex_search(self, now: datetime | None = None) -> int:
        """
        Rebuild the search index.

        The in-progress flag is advisory: a flag left set by another caller (or a
        crash) is logged and the rebuild runs anyway.
        """
        previous = self._state.load()
        if previous.reindex_in_progress:
            logger.warning("Search reindex already in progress")

        self._state.set(reindex_in_progress=True)
        try:
            count = self._search.rebuild()
            self._state.set(last_reindex_at=_ts(now or datetime.now()))
            return count
        finally:
            self._state.set(reindex_in_progress=False)

    def ensure_search_index(self, now: datetime | None = None) -> bool:
        """Rebuild when the index table is missing or an earlier rebuild did not finish."""
        state = self._state.load()
        missing = not self._search.exists()
        if not missing and not state.reindex_in_progress:
            return False

        logger.info("Rebuilding search index (missing=%s interrupted=%s)", missing, state.reindex_in_progress)
        self.reindex_search(now)
        return True

    # ---- probes ----

    def get_task_count(self) -> int:
        return self._tasks.count_tasks()

    def search_index_exists(self) -> bool:
        return self._search.exists()

    def integrity_check(self) -> bool:
        if not self._db.path.exists():
            return True
        try:
            verdict = self._db.integrity_check()
        except Exception:
            logger.exception("Integrity check failed")
            self._state.set(integrity_error=True)
            return False

        ok = verdict.strip().lower() == "ok"
        if not ok:
            logger.error("Integrity check failed: %s", verdict)
        self._state.set(integrity_error=not ok)
        return ok

    def warnings(self) -> list[MaintenanceWarning]:
        out: list[MaintenanceWarning] = []
        state = self._state.load()

        if state.integrity_error:
            out.append(MaintenanceWarning("integrity", "Database integrity check failed. Some data may be corrupted."))

        count = self.get_task_count()
        if count >= TASK_WARNING_THRESHOLD:
            out.append(
                MaintenanceWarning("tasks", f"Large number of tasks detected ({count}). Performance may degrade.")
            )

        if self._db.path.exists():
            size = self._db.path.stat().st_size
            if size >= DB_SIZE_WARNING_BYTES:
                size_mb = round(size / 1024 / 1024)
                out.append(
                    MaintenanceWarning("db-size", f"Database size is {size_mb} MB. Consider archiving older data.")
                )
        return out

    def status(self) -> MaintenanceState:
        return self._state.load()

    def reset_state(self) -> MaintenanceState:
        """Clear the advisory flags (used after a manual recovery)."""
        return self._state.update(lambda s: replace(s, reindex_in_progress=False, integrity_error=False))

    def _record_app_version(self) -> None:
        if not self._app_version:
            return
        try:
            stored = self._meta.get_value(APP_VERSION_KEY)
            logger.info(
                "App version %s, stored app_version %s, schema %s",
                self._app_version,
                stored or "none",
                self._meta.get_schema_version(),
            )
            self._meta.set_value(APP_VERSION_KEY, self._app_version)
        except Exception:
            logger.warning("Failed to store app version in app_meta.", exc_info=True)
