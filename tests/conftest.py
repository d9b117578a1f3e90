# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from glance.changes.change_log import ChangeLog
from glance.cli.bootstrap import create_initial_state
from glance.core.clock import MonotonicClock
from glance.core.state import AppState
from glance.history.archiver import HistoryArchiver
from glance.search.index import SearchIndex
from glance.store.db import Database
from glance.tasks.recurrence import RecurrenceGenerator
from glance.tasks.task_store import TaskStore


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with AppState and the CLI.

    A SimpleNamespace instead of the real config keeps tests away from the
    environment and any local .env.
    """
    return SimpleNamespace(
        app_name="glance-test",
        app_version="9.9.9",
        data_dir=tmp_path,
        db_path=tmp_path / "glance.sqlite3",
        log_dir=tmp_path,
        history_window_days=180,
        maintenance_interval_seconds=0.01,
        console_enabled=False,
    )


@pytest.fixture()
def clock() -> MonotonicClock:
    return MonotonicClock()


@pytest.fixture()
def db(settings: SimpleNamespace) -> Database:
    return Database(settings.db_path)


@pytest.fixture()
def store(db: Database, clock: MonotonicClock) -> TaskStore:
    return TaskStore(db, clock=clock)


@pytest.fixture()
def search(db: Database) -> SearchIndex:
    return SearchIndex(db)


@pytest.fixture()
def changes(db: Database) -> ChangeLog:
    return ChangeLog(db)


@pytest.fixture()
def generator(db: Database, clock: MonotonicClock) -> RecurrenceGenerator:
    return RecurrenceGenerator(db, clock=clock)


@pytest.fixture()
def archiver(db: Database, clock: MonotonicClock) -> HistoryArchiver:
    return HistoryArchiver(db, clock=clock)


@pytest.fixture()
def state(settings: SimpleNamespace) -> AppState:
    """Fully wired AppState over a real SQLite file in tmp_path."""
    return create_initial_state(settings=settings)
