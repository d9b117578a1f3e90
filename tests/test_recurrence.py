# tests/test_recurrence.py

from __future__ import annotations

from datetime import date

import pytest

from glance.store.documents import extract_plain_text
from glance.tasks.recurrence import (
    RecurrenceType,
    horizon_end,
    occurrence_dates,
    occurrence_id,
    parse_recurrence,
    week_bounds,
)
from glance.tasks.task_models import DASHBOARD_NEW, ChangeType

from .fakes import add_task

WEDNESDAY = date(2024, 5, 15)


def test_parse_recurrence_normalizes_members() -> None:
    spec = parse_recurrence({"type": "weekly", "weekdays": [3, 1, 1, 9, 0, "2", 2.5, True, 4.0]})
    assert spec is not None
    assert spec.type is RecurrenceType.WEEKLY
    assert spec.weekdays == frozenset({1, 3, 4})
    assert spec.is_materializable

    monthly = parse_recurrence('{"type": "monthly", "monthDays": [31, 32, 15]}')
    assert monthly is not None
    assert monthly.month_days == frozenset({15, 31})


@pytest.mark.parametrize("raw", [None, "", "{bad", "[]", {"weekdays": [1]}, {"type": "yearly"}, {"type": 3}])
def test_parse_recurrence_rejects_garbage(raw) -> None:
    assert parse_recurrence(raw) is None


def test_markers_and_empty_sets_are_not_materializable() -> None:
    assert not parse_recurrence({"type": "notes"}).is_materializable
    assert not parse_recurrence({"type": "repeatable"}).is_materializable
    assert not parse_recurrence({"type": "weekly", "weekdays": []}).is_materializable


def test_weekly_covers_the_whole_current_week() -> None:
    monday = parse_recurrence({"type": "weekly", "weekdays": [1]})
    assert occurrence_dates(monday, WEDNESDAY) == [date(2024, 5, 13)]

    every_day = parse_recurrence({"type": "weekly", "weekdays": [1, 2, 3, 4, 5, 6, 7]})
    dates = occurrence_dates(every_day, WEDNESDAY)
    assert dates[0] == date(2024, 5, 13)
    assert dates[-1] == date(2024, 5, 19)
    assert len(dates) == 7

    assert week_bounds(date(2024, 5, 19)) == (date(2024, 5, 13), date(2024, 5, 19))


def test_monthly_covers_28_days_from_today() -> None:
    spec = parse_recurrence({"type": "monthly", "monthDays": [1, 15, 25]})
    assert occurrence_dates(spec, date(2024, 1, 20)) == [date(2024, 1, 25), date(2024, 2, 1), date(2024, 2, 15)]

    only_31 = parse_recurrence({"type": "monthly", "monthDays": [31]})
    assert occurrence_dates(only_31, date(2024, 2, 1)) == []

    assert horizon_end(date(2024, 1, 20)) == date(2024, 2, 16)


def test_occurrence_id_is_stable_uuid() -> None:
    a = occurrence_id("tpl", "2024-05-13")
    assert a == occurrence_id("tpl", "2024-05-13")
    assert a != occurrence_id("tpl", "2024-05-14")
    assert a != occurrence_id("other", "2024-05-13")
    assert len(a) == 36 and a.count("-") == 4


def test_generate_is_idempotent(store, generator, changes) -> None:
    tpl = add_task(
        store,
        "Stretch",
        content="ten minutes",
        page=DASHBOARD_NEW,
        recurrence={"type": "weekly", "weekdays": [1, 2, 3, 4, 5, 6, 7]},
    )

    assert generator.generate(WEDNESDAY) == 7
    assert generator.generate(WEDNESDAY) == 0
    assert store.count_tasks() == 8

    occ = store.get_task(occurrence_id(tpl, "2024-05-13"))
    assert occ is not None
    assert occ.page == DASHBOARD_NEW
    assert occ.scheduled_date == "2024-05-13"
    assert occ.recurrence is None
    assert extract_plain_text(occ.title) == "Stretch"
    assert extract_plain_text(occ.content) == "ten minutes"

    creates = [r for r in changes.get_changes(0).records if r.change_type == ChangeType.CREATE]
    assert len(creates) == 8


def test_generate_positions_follow_insert_order(store, generator) -> None:
    tpl = add_task(store, "Daily", recurrence={"type": "weekly", "weekdays": [1, 2]})
    generator.generate(WEDNESDAY)

    first = store.get_task(occurrence_id(tpl, "2024-05-13"))
    second = store.get_task(occurrence_id(tpl, "2024-05-14"))
    assert second.position == first.position + 1


def test_generated_occurrences_are_searchable(store, generator, search) -> None:
    tpl = add_task(store, "Water plants", recurrence={"type": "weekly", "weekdays": [3]})
    generator.generate(WEDNESDAY)

    ids = {t.id for t in search.query("plants")}
    assert ids == {tpl, occurrence_id(tpl, "2024-05-15")}


def test_deleted_occurrence_is_recreated_by_next_pass(store, generator) -> None:
    tpl = add_task(store, "Run", recurrence={"type": "weekly", "weekdays": [1]})
    generator.generate(WEDNESDAY)

    occ_id = occurrence_id(tpl, "2024-05-13")
    assert store.delete_task(occ_id)
    assert generator.generate(WEDNESDAY) == 1


def test_markers_and_malformed_templates_are_skipped(store, generator, db) -> None:
    add_task(store, "Notes", recurrence={"type": "notes"})
    add_task(store, "Repeat", recurrence={"type": "repeatable"})
    add_task(store, "Empty", recurrence={"type": "weekly", "weekdays": []})
    with db.transaction() as conn:
        conn.execute(
            """
            INSERT INTO tasks(id, page, title, content_json, position, created_at, updated_at, recurrence_json)
            VALUES ('broken', 'p', 'Broken', '{}', 0, 1, 1, '{not json')
            """
        )
    good = add_task(store, "Good", recurrence={"type": "monthly", "monthDays": [15]})

    assert [t.id for t in generator.load_templates()] == [good]
    assert generator.generate(WEDNESDAY) == 1
    assert store.task_exists(occurrence_id(good, "2024-05-15"))


def test_generate_without_templates_creates_nothing(store, generator) -> None:
    add_task(store, "Plain task")
    assert generator.generate(WEDNESDAY) == 0
    assert store.count_tasks() == 1


def test_single_weekday_inserts_exactly_one_row(store, generator, changes) -> None:
    tpl = add_task(store, "Weekly review", recurrence={"type": "weekly", "weekdays": [1]})
    last_id = changes.get_changes(0).last_id

    assert generator.generate(WEDNESDAY) == 1
    assert store.count_tasks() == 2

    new = changes.get_changes(last_id).records
    assert [(r.entity_id, r.change_type) for r in new] == [(occurrence_id(tpl, "2024-05-13"), ChangeType.CREATE)]
    assert store.get_task(occurrence_id(tpl, "2024-05-13")).scheduled_date == "2024-05-13"
