# src/glance/cli/commands.py

from __future__ import annotations

import inspect
import logging
from collections.abc import Callable
from datetime import datetime
from typing import Any, cast

from ..core.clock import format_local_date, history_window_start_ms, start_of_today_ms
from ..core.state import AppState
from ..errors import GlanceError
from ..history.archiver import group_history
from ..store.documents import contains_heading, contains_list, extract_plain_text, paragraph_doc
from ..tasks.task_models import DASHBOARD_MAIN, Task

CommandEmitter = Callable[[str], None]
CommandHandler2 = Callable[[AppState, list[str]], str]
CommandHandler3 = Callable[[AppState, list[str], CommandEmitter | None], str]
CommandHandler = CommandHandler2 | CommandHandler3

logger = logging.getLogger(__name__)

SHORT_ID_LEN = 8
CONTENT_SEPARATOR = "::"


class CommandRegistry:
    """Simple slash-command registry used by the console (/help, /add, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    def handle(self, state: AppState, line: str, emit: CommandEmitter | None = None) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        try:
            nparams = len(inspect.signature(handler).parameters)
        except (TypeError, ValueError):
            nparams = 3

        try:
            if nparams >= 3:
                h3 = cast(CommandHandler3, handler)
                return h3(state, args, emit)
            h2 = cast(CommandHandler2, handler)
            return h2(state, args)
        except (GlanceError, ValueError) as e:
            logger.info("/%s rejected: %s", name, e)
            return f"Error: {e}"

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


# ---- helpers ----


def _short(task_id: str) -> str:
    return task_id[:SHORT_ID_LEN]


def _title(task: Task) -> str:
    return extract_plain_text(task.title) or "(untitled)"


def _format_task(task: Task) -> str:
    mark = "x" if task.completed_at is not None else " "
    extras: list[str] = []
    if task.scheduled_date:
        extras.append(f"@{task.scheduled_date}")
    if task.recurrence:
        extras.append(f"[{task.recurrence.get('type', '?')}]")
    suffix = f"  {' '.join(extras)}" if extras else ""
    return f"[{mark}] {_short(task.id)}  {_title(task)}{suffix}"


def _resolve_task(state: AppState, ref: str) -> Task | None:
    """Find a task by full id, or by a unique id prefix."""
    task = state.tasks.get_task(ref)
    if task is not None:
        return task
    matches = state.tasks.find_by_id_prefix(ref, limit=2)
    if len(matches) > 1:
        raise ValueError(f"ambiguous id prefix '{ref}'")
    return state.tasks.get_task(matches[0]) if matches else None


def _parse_days(raw: str, lo: int, hi: int) -> list[int]:
    out: list[int] = []
    for part in raw.split(","):
        part = part.strip()
        if not part:
            continue
        if not part.isdigit() or not lo <= int(part) <= hi:
            raise ValueError(f"day must be a number in {lo}..{hi}, got '{part}'")
        out.append(int(part))
    if not out:
        raise ValueError("at least one day is required")
    return sorted(set(out))


def _parse_recurrence(kind: str, days: str | None) -> dict[str, Any] | None:
    kind = kind.lower()
    if kind in ("off", "none"):
        return None
    if kind in ("repeatable", "notes"):
        return {"type": kind}
    if days is None:
        raise ValueError(f"{kind} recurrence needs a day list, e.g. 1,3,5")
    if kind == "weekly":
        return {"type": "weekly", "weekdays": _parse_days(days, 1, 7)}
    if kind == "monthly":
        return {"type": "monthly", "monthDays": _parse_days(days, 1, 31)}
    raise ValueError(f"unknown recurrence type '{kind}'")


def _validated_title(text: str) -> dict[str, Any]:
    doc = paragraph_doc(text)
    if contains_heading(doc) or contains_list(doc):
        raise ValueError("a title cannot contain headings or lists")
    return doc


def _next_position(state: AppState, page: str) -> float:
    positions = [t.position for t in state.tasks.list_by_page(page)]
    return (max(positions) + 1.0) if positions else 0.0


def _generate_now(state: AppState) -> int:
    return state.maintenance.generate_recurring(datetime.now())


# ---- commands ----


def cmd_help(state: AppState, args: list[str]) -> str:
    return registry.build_help()


def cmd_status(state: AppState, args: list[str]) -> str:
    ms = state.maintenance.status()
    return (
        "Status:\n"
        f"  Database: {state.db.path} (schema v{state.meta.get_schema_version()})\n"
        f"  Tasks: {state.tasks.count_tasks()}\n"
        f"  Search index: {'OK' if state.search.exists() else 'MISSING'}\n"
        f"  Last reindex: {ms.last_reindex_at or 'never'}\n"
        f"  Recurrence generated until: {ms.recurrence_generated_until or 'never'}\n"
        f"  Last daily run: {ms.last_daily_run or 'never'}"
    )


def cmd_add(state: AppState, args: list[str]) -> str:
    """
    /add [--page P] [--date YYYY-MM-DD] [--weekly 1,3] [--monthly 1,15] title [:: content]
    """
    page = DASHBOARD_MAIN
    scheduled: str | None = None
    recurrence: dict[str, Any] | None = None

    rest = list(args)
    while rest and rest[0].startswith("--"):
        flag = rest.pop(0).lower()
        if not rest:
            raise ValueError(f"{flag} needs a value")
        value = rest.pop(0)
        if flag == "--page":
            page = value
        elif flag == "--date":
            scheduled = value
        elif flag in ("--weekly", "--monthly"):
            recurrence = _parse_recurrence(flag[2:], value)
        elif flag == "--kind":
            recurrence = _parse_recurrence(value, None)
        else:
            raise ValueError(f"unknown flag {flag}")

    text = " ".join(rest)
    title_text, _, content_text = text.partition(CONTENT_SEPARATOR)
    if not title_text.strip():
        return "Usage: /add [--page P] [--date YYYY-MM-DD] [--weekly 1,3 | --monthly 1,15] title [:: content]"

    created = state.tasks.create_task(
        page=page,
        title=_validated_title(title_text.strip()),
        content=paragraph_doc(content_text.strip()) if content_text.strip() else {"type": "doc", "content": []},
        position=_next_position(state, page),
        scheduled_date=scheduled,
        recurrence=recurrence,
    )
    reply = f"Added {_short(created.task_id)}."
    if recurrence is not None:
        reply += f" Generated {_generate_now(state)} occurrence(s)."
    return reply


def cmd_edit(state: AppState, args: list[str]) -> str:
    """/edit <id> new title"""
    if len(args) < 2:
        return "Usage: /edit <id> new title"
    task = _resolve_task(state, args[0])
    if task is None:
        return f"No task {args[0]}."

    res = state.tasks.update_task(
        task.id,
        base_updated_at=task.updated_at,
        title=_validated_title(" ".join(args[1:])),
    )
    if res is None:
        return f"No task {args[0]}."
    if res.external_update:
        return f"Updated {_short(task.id)} (it had changed elsewhere; your edit won)."
    return f"Updated {_short(task.id)}."


def cmd_repeat(state: AppState, args: list[str]) -> str:
    """/repeat <id> weekly 1,3 | monthly 1,15 | repeatable | notes | off"""
    if len(args) < 2:
        return "Usage: /repeat <id> weekly 1,3 | monthly 1,15 | repeatable | notes | off"
    task = _resolve_task(state, args[0])
    if task is None:
        return f"No task {args[0]}."

    recurrence = _parse_recurrence(args[1], args[2] if len(args) > 2 else None)
    res = state.tasks.update_task(task.id, base_updated_at=task.updated_at, recurrence=recurrence)
    if res is None:
        return f"No task {args[0]}."
    if recurrence is None:
        return f"Recurrence cleared on {_short(task.id)}."
    return f"Recurrence set on {_short(task.id)}. Generated {_generate_now(state)} occurrence(s)."


def cmd_list(state: AppState, args: list[str]) -> str:
    """/list [page] - the dashboard by default (open + completed today)."""
    if args:
        page = args[0]
        tasks = state.tasks.list_by_page(page)
    else:
        page = DASHBOARD_MAIN
        tasks = state.tasks.list_dashboard_main(start_of_today_ms())
    if not tasks:
        return f"No tasks on {page}."
    return "\n".join([f"{page}:"] + [f"  {_format_task(t)}" for t in tasks])


def _set_completion(state: AppState, args: list[str], completed: bool) -> str:
    if not args:
        return f"Usage: /{'done' if completed else 'undone'} <id>"
    task = _resolve_task(state, args[0])
    if task is None or state.tasks.set_completion(task.id, completed) is None:
        return f"No task {args[0]}."
    return f"{'Completed' if completed else 'Reopened'} {_short(task.id)}."


def cmd_done(state: AppState, args: list[str]) -> str:
    return _set_completion(state, args, True)


def cmd_undone(state: AppState, args: list[str]) -> str:
    return _set_completion(state, args, False)


def cmd_rm(state: AppState, args: list[str]) -> str:
    if not args:
        return "Usage: /rm <id>"
    task = _resolve_task(state, args[0])
    if task is None or not state.tasks.delete_task(task.id):
        return f"No task {args[0]}."
    return f"Deleted {_short(task.id)}."


def cmd_search(state: AppState, args: list[str]) -> str:
    query = " ".join(args)
    if not query.strip():
        return "Usage: /search words..."
    results = state.search.query(query)
    if not results:
        return f"Nothing found for '{query}'."
    return "\n".join([f"{len(results)} result(s):"] + [f"  {_format_task(t)}" for t in results])


def cmd_changes(state: AppState, args: list[str]) -> str:
    """/changes [since_id]"""
    since = 0
    if args:
        if not args[0].isdigit():
            return "Usage: /changes [since_id]"
        since = int(args[0])
    page = state.changes.get_changes(since)
    if not page.records:
        return f"No changes after #{since}."
    lines = [f"Changes after #{since} (last_id={page.last_id}):"]
    for r in page.records:
        lines.append(f"  #{r.sequence_id} {r.change_type.value} {_short(r.entity_id)} {format_local_date(r.changed_at)}")
    return "\n".join(lines)


def cmd_history(state: AppState, args: list[str]) -> str:
    """/history [stats]"""
    if args and args[0].lower() == "stats":
        days = int(getattr(state.settings, "history_window_days", 180))
        stats = state.history.history_stats(history_window_start_ms(days))
        if not stats:
            return f"No completed tasks in the last {days} days."
        return "\n".join([f"Completed per day (last {days} days):"] + [f"  {s.date}: {s.count}" for s in stats])

    groups = group_history(state.tasks.list_history())
    if not groups:
        return "History is empty."
    lines: list[str] = []
    for g in groups:
        lines.append(f"{g.date}:")
        lines.extend(f"  {_format_task(t)}" for t in g.tasks)
    return "\n".join(lines)


def cmd_generate(state: AppState, args: list[str]) -> str:
    return f"Generated {_generate_now(state)} occurrence(s)."


def cmd_archive(state: AppState, args: list[str]) -> str:
    moved = state.maintenance.move_completed_to_history(start_of_today_ms())
    return f"Moved {moved} completed task(s) to history."


def cmd_reindex(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    if emit:
        emit("[SEARCH] Rebuilding search index...")
    count = state.maintenance.reindex_search()
    return f"Search index rebuilt ({count} tasks)."


def cmd_warnings(state: AppState, args: list[str]) -> str:
    if args and args[0].lower() == "check":
        state.maintenance.integrity_check()
    items = state.maintenance.warnings()
    if not items:
        return "No warnings."
    return "\n".join(f"[{w.kind}] {w.message}" for w in items)


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("status", cmd_status, help_text="Show database, index and maintenance status.")
registry.register(
    "add",
    cmd_add,
    help_text="Add a task: /add [--page P] [--date D] [--weekly 1,3 | --monthly 1,15] title [:: content].",
)
registry.register("edit", cmd_edit, help_text="Change a task title: /edit <id> new title.")
registry.register("repeat", cmd_repeat, help_text="Set recurrence: /repeat <id> weekly 1,3 | monthly 1,15 | off.")
registry.register("list", cmd_list, help_text="List the dashboard or a page: /list [page].", aliases=["ls"])
registry.register("done", cmd_done, help_text="Complete a task: /done <id>.")
registry.register("undone", cmd_undone, help_text="Reopen a task: /undone <id>.")
registry.register("rm", cmd_rm, help_text="Delete a task: /rm <id>.")
registry.register("search", cmd_search, help_text="Search titles and content: /search words.", aliases=["s"])
registry.register("changes", cmd_changes, help_text="Show the change log: /changes [since_id].")
registry.register("history", cmd_history, help_text="Completed tasks by day: /history | /history stats.")
registry.register("generate", cmd_generate, help_text="Materialize recurring tasks now.")
registry.register("archive", cmd_archive, help_text="Move tasks completed today to history.")
registry.register("reindex", cmd_reindex, help_text="Rebuild the search index.")
registry.register("warnings", cmd_warnings, help_text="Show maintenance warnings: /warnings [check].")
