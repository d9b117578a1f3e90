# tests/test_search.py

from __future__ import annotations

import pytest

from glance.errors import SearchIndexMissingError
from glance.search.index import build_like_tokens, build_match_query, escape_like
from glance.store.documents import paragraph_doc

from .fakes import add_task


def test_match_query_adds_prefix_star_except_keywords() -> None:
    assert build_match_query("milk or bread") == "milk* or bread*"
    assert build_match_query('"exact phrase" tea* NEAR x') == '"exact phrase" tea* NEAR x*'
    assert build_match_query("   ") == ""


def test_like_tokens_strip_quotes_wildcards_and_keywords() -> None:
    assert build_like_tokens('"milk" AND br*ead not') == ["milk", "bread"]
    assert build_like_tokens('"" *') == []


def test_escape_like() -> None:
    assert escape_like("100%_\\") == "100\\%\\_\\\\"


def test_blank_query_returns_nothing(store, search) -> None:
    add_task(store, "Anything")
    assert search.query("") == []
    assert search.query("   ") == []


def test_prefix_and_infix_matches(store, search) -> None:
    task_id = add_task(store, "New task")

    assert [t.id for t in search.query("tas")] == [task_id]
    # Not a token prefix; found by the substring matcher.
    assert [t.id for t in search.query("ew")] == [task_id]
    assert [t.id for t in search.query("NEW")] == [task_id]
    assert search.query("zzz") == []


def test_content_is_searched(store, search) -> None:
    task_id = add_task(store, "Groceries", content="oat milk and bread")
    assert [t.id for t in search.query("oat")] == [task_id]


def test_substring_tokens_are_and_combined(store, search) -> None:
    both = add_task(store, "milk and bread")
    add_task(store, "milk only")
    assert [t.id for t in search.query("ilk rea")] == [both]


def test_keyword_query_unions_prefix_results(store, search) -> None:
    milk = add_task(store, "buy milk")
    bread = add_task(store, "buy bread")
    assert {t.id for t in search.query("milk OR bread")} == {milk, bread}


def test_unicode_case_folding(store, search) -> None:
    task_id = add_task(store, "Über uns")
    assert [t.id for t in search.query("über")] == [task_id]
    assert [t.id for t in search.query("BER")] == [task_id]


def test_like_wildcards_are_literal(store, search) -> None:
    percent = add_task(store, "100% done")
    add_task(store, "1000 items")
    assert [t.id for t in search.query("100%")] == [percent]


def test_fts_syntax_error_falls_back_to_substring(store, search) -> None:
    task_id = add_task(store, "buy milk")
    assert [t.id for t in search.query('"milk')] == [task_id]


def test_results_newest_update_first(store, search) -> None:
    first = add_task(store, "report draft")
    second = add_task(store, "report final")
    assert [t.id for t in search.query("report")] == [second, first]

    task = store.get_task(first)
    store.update_task(first, base_updated_at=task.updated_at, content=paragraph_doc("edited"))
    assert [t.id for t in search.query("report")] == [first, second]


def test_update_replaces_entry(store, search) -> None:
    task_id = add_task(store, "old words")
    task = store.get_task(task_id)
    store.update_task(task_id, base_updated_at=task.updated_at, title=paragraph_doc("fresh words"))

    assert search.query("old") == []
    assert search.entry_text(task_id) == "fresh words\n"


def test_rebuild_matches_incremental_index(store, search, generator) -> None:
    ids = [
        add_task(store, "one", content="alpha"),
        add_task(store, "two"),
        add_task(store, "three", recurrence={"type": "weekly", "weekdays": [1]}),
    ]
    before = {i: search.entry_text(i) for i in ids}

    assert search.rebuild() == 3
    assert {i: search.entry_text(i) for i in ids} == before


def test_missing_index_raises_and_rebuild_restores(store, search, db) -> None:
    task_id = add_task(store, "survivor")
    with db.transaction() as conn:
        conn.execute("DROP TABLE task_search")

    assert search.exists() is False
    with pytest.raises(SearchIndexMissingError):
        search.query("survivor")

    assert search.rebuild() == 1
    assert search.exists() is True
    assert [t.id for t in search.query("survivor")] == [task_id]
