# src/glance/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires the SQLite-backed stores and the maintenance service into AppState.
"""

from __future__ import annotations

import logging

from ..changes.change_log import ChangeLog
from ..config import get_settings
from ..core.clock import MonotonicClock
from ..core.state import AppState
from ..history.archiver import HistoryArchiver
from ..maintenance.service import MaintenanceService
from ..meta.app_meta import AppMetaRepository
from ..search.index import SearchIndex
from ..store.db import Database
from ..tasks.recurrence import RecurrenceGenerator
from ..tasks.task_store import TaskStore

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.db_path.parent.mkdir(parents=True, exist_ok=True)


def create_initial_state(*, settings=None) -> AppState:
    """
    Create AppState from the provided settings.

    If settings is None, falls back to get_settings(). Tests pass a SimpleNamespace.
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    # One clock for every writer in this process keeps timestamps strictly increasing.
    clock = MonotonicClock()
    db = Database(settings.db_path)
    tasks = TaskStore(db, clock=clock)
    search = SearchIndex(db)
    recurrence = RecurrenceGenerator(db, clock=clock)
    history = HistoryArchiver(db, clock=clock)
    meta = AppMetaRepository(db)

    maintenance = MaintenanceService(
        db=db,
        tasks=tasks,
        search=search,
        recurrence=recurrence,
        history=history,
        meta=meta,
        app_version=str(getattr(settings, "app_version", "") or ""),
    )

    return AppState(
        settings=settings,
        db=db,
        tasks=tasks,
        search=search,
        changes=ChangeLog(db),
        history=history,
        recurrence=recurrence,
        meta=meta,
        maintenance=maintenance,
    )
