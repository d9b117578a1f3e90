# src/glance/core/state.py

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Any

from ..changes.change_log import ChangeLog
from ..history.archiver import HistoryArchiver
from ..maintenance.service import MaintenanceService
from ..meta.app_meta import AppMetaRepository
from ..search.index import SearchIndex
from ..store.db import Database
from ..tasks.recurrence import RecurrenceGenerator
from ..tasks.task_store import TaskStore


@dataclass
class AppState:
    """Everything the console commands and background jobs share."""

    settings: Any
    db: Database
    tasks: TaskStore
    search: SearchIndex
    changes: ChangeLog
    history: HistoryArchiver
    recurrence: RecurrenceGenerator
    meta: AppMetaRepository
    maintenance: MaintenanceService

    # Serializes console commands against each other.
    lock: threading.RLock = field(default_factory=threading.RLock)
