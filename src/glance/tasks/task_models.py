# src/glance/tasks/task_models.py

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

DASHBOARD_MAIN = "dashboard:main"
DASHBOARD_NEW = "dashboard:new"


class ChangeType(StrEnum):
    """
    Change-log entry kinds.

    Notes:
    - "complete" is written both when a task is completed and when it is reopened;
      pollers re-read the task to learn which.
    """

    CREATE = "create"
    UPDATE = "update"
    COMPLETE = "complete"
    DELETE = "delete"


@dataclass(slots=True)
class Task:
    id: str
    page: str
    title: dict[str, Any]
    content: dict[str, Any]
    position: float

    created_at: int
    updated_at: int
    completed_at: int | None = None

    scheduled_date: str | None = None
    recurrence: dict[str, Any] | None = None

    @property
    def is_open(self) -> bool:
        return self.completed_at is None

    @property
    def is_template(self) -> bool:
        return self.recurrence is not None


@dataclass(frozen=True, slots=True)
class TaskCreated:
    task_id: str
    updated_at: int


@dataclass(frozen=True, slots=True)
class TaskUpdated:
    updated_at: int
    # Advisory: the caller edited a stale copy. The patch was still applied.
    external_update: bool


@dataclass(frozen=True, slots=True)
class CompletionResult:
    completed_at: int | None


@dataclass(frozen=True, slots=True)
class ChangeRecord:
    sequence_id: int
    entity_type: str
    entity_id: str
    change_type: ChangeType
    changed_at: int


@dataclass(frozen=True, slots=True)
class ChangesPage:
    last_id: int
    records: list[ChangeRecord] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class HistoryDayStat:
    date: str
    count: int


@dataclass(frozen=True, slots=True)
class HistoryGroup:
    date: str
    tasks: list[Task]
