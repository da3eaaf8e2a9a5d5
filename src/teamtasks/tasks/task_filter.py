# src/teamtasks/tasks/task_filter.py

from __future__ import annotations

"""
Filter composition over the in-memory task set.

A task is visible iff every non-empty predicate matches:
- status: exact enum match
- assigned_id: exact match
- date: creation day in local time equals the given day
- text: case-insensitive substring of "title details assignedName"

Filtering is pure and re-evaluated from scratch on every change.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date

from .task_models import Employee, Task, TaskStatus


@dataclass(frozen=True, slots=True)
class TaskFilter:
    status: TaskStatus | None = None
    assigned_id: str | None = None
    date: date | None = None
    text: str = ""

    @property
    def is_empty(self) -> bool:
        return not (self.status or self.assigned_id or self.date or self.text.strip())

    def matches(self, task: Task) -> bool:
        if self.status and task.status != self.status:
            return False
        if self.assigned_id and task.assigned_id != self.assigned_id:
            return False
        if self.date and created_day(task) != self.date:
            return False
        needle = self.text.strip().lower()
        if needle:
            hay = f"{task.title} {task.details or ''} {task.assigned_name or ''}".lower()
            if needle not in hay:
                return False
        return True


def created_day(task: Task) -> date:
    """Creation timestamp truncated to a calendar day in local time."""
    return task.created_at.astimezone().date()


def filter_tasks(tasks: Iterable[Task], flt: TaskFilter | None = None) -> list[Task]:
    if flt is None or flt.is_empty:
        return list(tasks)
    return [t for t in tasks if flt.matches(t)]


def sort_newest_first(tasks: Iterable[Task]) -> list[Task]:
    return sorted(tasks, key=lambda t: t.created_at, reverse=True)


def sort_by_name(employees: Iterable[Employee]) -> list[Employee]:
    return sorted(employees, key=lambda e: (e.name.casefold(), e.id))
