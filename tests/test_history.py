# tests/test_history.py

from __future__ import annotations

from datetime import datetime, timedelta

from glance.core.clock import format_local_date, history_window_start_ms, start_of_day_ms
from glance.history.archiver import group_history
from glance.tasks.task_models import ChangeType

from .fakes import add_task


def _complete(store, task_id: str) -> int:
    res = store.set_completion(task_id, True)
    assert res is not None and res.completed_at is not None
    return res.completed_at


def test_move_completed_to_history(store, archiver, changes) -> None:
    done = add_task(store, "Done today")
    still_open = add_task(store, "Open")
    completed_at = _complete(store, done)
    boundary = completed_at - 10
    before = store.get_task(done).updated_at
    last_id = changes.get_changes(0).last_id

    assert archiver.move_completed_to_history(boundary) == 1

    moved = store.get_task(done)
    assert moved.completed_at == boundary - 1
    assert moved.updated_at > before
    assert [t.id for t in store.list_dashboard_main(boundary)] == [still_open]
    assert [t.id for t in store.list_history()] == [done]

    new = changes.get_changes(last_id).records
    assert [(r.entity_id, r.change_type) for r in new] == [(done, ChangeType.COMPLETE)]


def test_move_is_a_noop_when_nothing_qualifies(store, archiver, changes) -> None:
    task_id = add_task(store, "Old")
    completed_at = _complete(store, task_id)
    last_id = changes.get_changes(0).last_id

    assert archiver.move_completed_to_history(completed_at + 1) == 0
    assert archiver.move_completed_to_history(completed_at + 1) == 0
    assert changes.get_changes(last_id).records == []
    assert store.get_task(task_id).completed_at == completed_at


def test_second_move_finds_nothing(store, archiver) -> None:
    completed_at = _complete(store, add_task(store, "Once"))
    boundary = completed_at - 1
    assert archiver.move_completed_to_history(boundary) == 1
    assert archiver.move_completed_to_history(boundary) == 0


def test_history_stats_group_by_local_day(store, archiver, db) -> None:
    today = datetime.now().date()
    yesterday = today - timedelta(days=1)
    noon_today = start_of_day_ms(today) + 12 * 3600 * 1000
    noon_yesterday = start_of_day_ms(yesterday) + 12 * 3600 * 1000

    ids = [add_task(store, name) for name in ("a", "b", "c", "open")]
    with db.transaction() as conn:
        conn.execute("UPDATE tasks SET completed_at = ? WHERE id IN (?, ?)", (noon_today, ids[0], ids[1]))
        conn.execute("UPDATE tasks SET completed_at = ? WHERE id = ?", (noon_yesterday, ids[2]))

    stats = archiver.history_stats(history_window_start_ms(180))
    assert [(s.date, s.count) for s in stats] == [
        (yesterday.isoformat(), 1),
        (today.isoformat(), 2),
    ]

    assert [(s.date, s.count) for s in archiver.history_stats(start_of_day_ms(today))] == [(today.isoformat(), 2)]


def test_group_history_by_completion_date(store, db) -> None:
    today = datetime.now().date()
    yesterday = today - timedelta(days=1)
    a, b, c = (add_task(store, n) for n in ("a", "b", "c"))
    with db.transaction() as conn:
        conn.execute("UPDATE tasks SET completed_at = ? WHERE id = ?", (start_of_day_ms(today) + 2000, a))
        conn.execute("UPDATE tasks SET completed_at = ? WHERE id = ?", (start_of_day_ms(today) + 1000, b))
        conn.execute("UPDATE tasks SET completed_at = ? WHERE id = ?", (start_of_day_ms(yesterday) + 1000, c))

    groups = group_history(store.list_history())
    assert [g.date for g in groups] == [today.isoformat(), yesterday.isoformat()]
    assert [t.id for t in groups[0].tasks] == [a, b]
    assert [t.id for t in groups[1].tasks] == [c]


def test_format_local_date_unknown() -> None:
    assert format_local_date(None) == "Unknown"


def test_dashboard_day_rollover_scenario(store, archiver) -> None:
    """Completed today stays visible; after archiving at the next boundary it is history only."""
    a = add_task(store, "Pay rent", position=1)
    b = add_task(store, "Call mom", position=2)
    completed_at = _complete(store, a)
    today_start = completed_at - 60_000

    assert [t.id for t in store.list_dashboard_main(today_start)] == [a, b]

    tomorrow_start = completed_at + 60_000
    assert [t.id for t in store.list_dashboard_main(tomorrow_start)] == [b]

    # Archiving against the current day pins the completion before the boundary.
    assert archiver.move_completed_to_history(today_start) == 1
    assert [t.id for t in store.list_dashboard_main(today_start)] == [b]
    assert store.get_task(a).completed_at == today_start - 1


def test_task_completed_yesterday_stays_out_of_the_dashboard(store, archiver, db, changes) -> None:
    today_start = start_of_day_ms(datetime.now().date())
    yesterday_noon = today_start - 12 * 3600 * 1000

    task_id = add_task(store, "Buy milk")
    with db.transaction() as conn:
        conn.execute("UPDATE tasks SET completed_at = ? WHERE id = ?", (yesterday_noon, task_id))
    before = store.get_task(task_id)
    last_id = changes.get_changes(0).last_id

    assert task_id not in {t.id for t in store.list_dashboard_main(today_start)}
    assert [t.id for t in store.list_history()] == [task_id]

    assert archiver.move_completed_to_history(today_start) == 0

    after = store.get_task(task_id)
    assert after.completed_at == yesterday_noon
    assert after.updated_at == before.updated_at
    assert changes.get_changes(last_id).records == []
