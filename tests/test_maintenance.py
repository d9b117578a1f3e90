# tests/test_maintenance.py

from __future__ import annotations

from dataclasses import replace
from datetime import datetime

import pytest

from glance.maintenance import service as service_module
from glance.meta.app_meta import (
    APP_VERSION_KEY,
    MAINTENANCE_STATE_KEY,
    MaintenanceState,
    MaintenanceStateStore,
)
from glance.store.db import SCHEMA_VERSION

from .fakes import add_task

NOW = datetime(2024, 5, 15, 9, 30)


def test_app_meta_values(state) -> None:
    assert state.meta.get_value("missing") is None
    state.meta.set_value("k", "v1")
    state.meta.set_value("k", "v2")
    assert state.meta.get_value("k") == "v2"
    assert state.meta.get_schema_version() == SCHEMA_VERSION


def test_maintenance_state_roundtrip(state) -> None:
    store = MaintenanceStateStore(state.meta)
    assert store.load() == MaintenanceState()

    store.set(last_reindex_at="2024-05-15 09:00:00")
    store.update(lambda s: replace(s, integrity_error=True))

    loaded = store.load()
    assert loaded.last_reindex_at == "2024-05-15 09:00:00"
    assert loaded.integrity_error is True
    assert loaded.reindex_in_progress is False


def test_maintenance_state_tolerates_bad_json(state) -> None:
    state.meta.set_value(MAINTENANCE_STATE_KEY, "{oops")
    assert MaintenanceStateStore(state.meta).load() == MaintenanceState()

    state.meta.set_value(MAINTENANCE_STATE_KEY, '{"integrity_error": true, "future_field": 1}')
    assert MaintenanceStateStore(state.meta).load().integrity_error is True


def test_ensure_search_index_rebuilds_missing_table(state) -> None:
    task_id = add_task(state.tasks, "findable")
    assert state.maintenance.ensure_search_index(NOW) is False

    with state.db.transaction() as conn:
        conn.execute("DROP TABLE task_search")
    assert state.maintenance.search_index_exists() is False

    assert state.maintenance.ensure_search_index(NOW) is True
    assert [t.id for t in state.search.query("findable")] == [task_id]
    assert state.maintenance.status().last_reindex_at == "2024-05-15 09:30:00"


def test_interrupted_reindex_is_redone(state) -> None:
    MaintenanceStateStore(state.meta).set(reindex_in_progress=True)

    assert state.maintenance.ensure_search_index(NOW) is True
    assert state.maintenance.status().reindex_in_progress is False


def test_reindex_clears_flag_on_failure(state, monkeypatch) -> None:
    def boom() -> int:
        raise RuntimeError("disk on fire")

    monkeypatch.setattr(state.search, "rebuild", boom)
    with pytest.raises(RuntimeError):
        state.maintenance.reindex_search(NOW)

    st = state.maintenance.status()
    assert st.reindex_in_progress is False
    assert st.last_reindex_at is None


def test_run_startup_generates_and_records_version(state) -> None:
    add_task(state.tasks, "Weekly", recurrence={"type": "weekly", "weekdays": [1]})

    state.maintenance.run_startup(NOW)

    assert state.tasks.count_tasks() == 2
    assert state.meta.get_value(APP_VERSION_KEY) == "9.9.9"
    assert state.maintenance.status().recurrence_generated_until == "2024-06-11"


def test_run_daily_records_the_day(state) -> None:
    add_task(state.tasks, "Monthly", recurrence={"type": "monthly", "monthDays": [20]})

    state.maintenance.run_daily(NOW)
    state.maintenance.run_daily(NOW)

    assert state.tasks.count_tasks() == 2
    assert state.maintenance.status().last_daily_run == "2024-05-15"


def test_integrity_check_ok(state) -> None:
    assert state.maintenance.integrity_check() is True
    assert state.maintenance.status().integrity_error is False
    assert state.maintenance.warnings() == []


def test_integrity_failure_is_recorded(state, monkeypatch) -> None:
    monkeypatch.setattr(state.db, "integrity_check", lambda: "*** in database main ***\nPage 3 is never used")

    assert state.maintenance.integrity_check() is False
    kinds = [w.kind for w in state.maintenance.warnings()]
    assert kinds == ["integrity"]

    state.maintenance.reset_state()
    assert state.maintenance.warnings() == []


def test_size_warnings(state, monkeypatch) -> None:
    add_task(state.tasks, "one")
    add_task(state.tasks, "two")
    monkeypatch.setattr(service_module, "TASK_WARNING_THRESHOLD", 2)
    monkeypatch.setattr(service_module, "DB_SIZE_WARNING_BYTES", 1)

    kinds = {w.kind for w in state.maintenance.warnings()}
    assert kinds == {"tasks", "db-size"}
    assert state.maintenance.get_task_count() == 2
