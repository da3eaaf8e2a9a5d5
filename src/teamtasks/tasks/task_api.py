# src/teamtasks/tasks/task_api.py

from __future__ import annotations

import logging
from datetime import date, timedelta

from ..core.state import AppState
from .edit_session import EditSession, save_session
from .task_models import Task, TaskPatch, TaskStatus

logger = logging.getLogger(__name__)

_DEMO_TASKS = [
    ("Add social media links to web design", 0, 3, TaskStatus.CLOSED),
    ("Database not set up correctly", 1, 4, TaskStatus.OPEN),
    ("Client newest web design", 0, 3, TaskStatus.WAITING_CLIENT),
]


async def seed_demo_tasks(state: AppState, *, today: date | None = None) -> int:
    """
    One-time sample data for an empty local store.
    Returns the number of tasks created (0 if any task already exists).
    """
    if await state.tasks.list():
        return 0

    employees = await state.employees.list()
    if not employees:
        return 0

    today = today or date.today()
    created = 0
    for title, emp_index, deadline_days, status in _DEMO_TASKS:
        emp = employees[emp_index % len(employees)]

        session = EditSession(
            title=title,
            assigned_id=emp.id,
            deadline=today + timedelta(days=deadline_days),
            status=status,
        )
        await save_session(
            session,
            tasks=state.tasks,
            employees=state.employees,
            materializer=state.materializer,
        )
        created += 1

    logger.info("Seeded %d demo tasks", created)
    return created


async def reconcile_assignees(state: AppState) -> list[Task]:
    """
    Re-resolve the denormalized assignedName of every task from assignedId.

    Tasks whose assignee is no longer in the directory are left untouched.
    Returns the tasks that were repaired.
    """
    names = {e.id: e.name for e in await state.employees.list()}
    repaired: list[Task] = []
    for task in await state.tasks.list():
        if not task.assigned_id or task.assigned_id not in names:
            continue
        current = names[task.assigned_id]
        if task.assigned_name != current:
            await state.tasks.update(task.id, TaskPatch(assigned_name=current))
            logger.info(
                "Repaired assignee name task=%s %r -> %r", task.id, task.assigned_name, current
            )
            task.assigned_name = current
            repaired.append(task)
    return repaired
