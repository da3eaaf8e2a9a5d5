# src/teamtasks/tasks/local_store.py

from __future__ import annotations

import json
import logging
from typing import Any

from ..core.ports import KeyValueStore, SnapshotCallback
from ..core.sync import HubSubscription, SnapshotHub
from ..errors import DuplicateName, InvalidName, NotFound, StorageFailure
from .task_filter import TaskFilter, filter_tasks, sort_by_name, sort_newest_first
from .task_models import (
    Attachment,
    Employee,
    Task,
    TaskDraft,
    TaskPatch,
    TaskStatus,
    employee_from_record,
    employee_to_record,
    new_id,
    require_title,
    task_from_record,
    task_to_record,
    utc_now,
)

logger = logging.getLogger(__name__)

TASKS_KEY = "tasks"
EMPLOYEES_KEY = "employees"

STARTER_EMPLOYEES = [
    Employee(id="emp-1", name="James O'Brian"),
    Employee(id="emp-2", name="Adam Baker"),
    Employee(id="emp-3", name="Priya Sharma"),
    Employee(id="emp-4", name="Mina Patel"),
]


def _load_list(kv: KeyValueStore, key: str) -> list[Any] | None:
    raw = kv.get(key)
    if raw is None:
        return None
    try:
        val = json.loads(raw)
    except ValueError as e:
        raise StorageFailure(f"Stored {key!r} is not valid JSON") from e
    if not isinstance(val, list):
        raise StorageFailure(f"Stored {key!r} is not a list")
    return val


def _save_list(kv: KeyValueStore, key: str, records: list[dict[str, Any]]) -> None:
    kv.set(key, json.dumps(records, ensure_ascii=False))


class LocalEmployeeDirectory:
    """
    Employee directory kept as one JSON list under the "employees" key.

    The starter employees are written on first use (missing key).
    """

    def __init__(self, kv: KeyValueStore, *, hub: SnapshotHub | None = None) -> None:
        self._kv = kv
        self._hub = hub or SnapshotHub("employees")

    def _load(self) -> list[Employee]:
        records = _load_list(self._kv, EMPLOYEES_KEY)
        if records is None:
            starters = [Employee(id=e.id, name=e.name) for e in STARTER_EMPLOYEES]
            self._save(starters)
            logger.info("Seeded %d starter employees", len(starters))
            return starters
        return [employee_from_record(r) for r in records]

    def _save(self, employees: list[Employee]) -> None:
        _save_list(self._kv, EMPLOYEES_KEY, [employee_to_record(e) for e in employees])

    async def list(self) -> list[Employee]:
        return sort_by_name(self._load())

    async def get(self, employee_id: str) -> Employee | None:
        return next((e for e in self._load() if e.id == employee_id), None)

    async def add(self, name: str) -> Employee:
        nm = (name or "").strip()
        if not nm:
            raise InvalidName("Employee name is required")

        employees = self._load()
        lowered = nm.lower()
        if any(e.name.strip().lower() == lowered for e in employees):
            raise DuplicateName(nm)

        emp = Employee(id=new_id("emp"), name=nm)
        employees.append(emp)
        self._save(employees)
        logger.info("Employee added id=%s name=%s", emp.id, emp.name)
        await self._hub.publish(sort_by_name(employees))
        return emp

    async def subscribe(self, callback: SnapshotCallback) -> HubSubscription:
        # Read first: a failed initial load must not leave the callback registered.
        snapshot = await self.list()
        sub = self._hub.subscribe(callback)
        await self._hub.deliver(sub.token, snapshot)
        return sub


class LocalTaskStore:
    """
    Task repository kept as one JSON list under the "tasks" key.

    Attachments are embedded in each task record (data URLs / external links),
    so every write rewrites the whole list. Reads and writes are synchronous
    underneath; the async surface matches the remote repository.
    """

    def __init__(self, kv: KeyValueStore, *, hub: SnapshotHub | None = None) -> None:
        self._kv = kv
        self._hub = hub or SnapshotHub("tasks")

    # ---- low-level helpers ----

    def _load(self) -> list[Task]:
        records = _load_list(self._kv, TASKS_KEY) or []
        return [task_from_record(r) for r in records]

    def _save(self, tasks: list[Task]) -> None:
        _save_list(self._kv, TASKS_KEY, [task_to_record(t) for t in tasks])

    async def _commit(self, tasks: list[Task]) -> None:
        self._save(tasks)
        await self._hub.publish(sort_newest_first(tasks))

    @staticmethod
    def _index(tasks: list[Task], task_id: str) -> int:
        for i, t in enumerate(tasks):
            if t.id == task_id:
                return i
        return -1

    # ---- public API ----

    async def create(self, draft: TaskDraft) -> Task:
        title = require_title(draft.title)
        task = Task(
            id=new_id("task"),
            title=title,
            details=draft.details or "",
            assigned_id=draft.assigned_id or None,
            assigned_name=draft.assigned_name or "",
            created_at=utc_now(),
            deadline=draft.deadline,
            status=draft.status or TaskStatus.OPEN,
            attachments=[],
        )
        tasks = self._load()
        tasks.append(task)
        await self._commit(tasks)
        logger.info("Task created id=%s status=%s assigned=%s", task.id, task.status.value, task.assigned_id)
        return task

    async def update(self, task_id: str, patch: TaskPatch) -> None:
        tasks = self._load()
        i = self._index(tasks, task_id)
        if i < 0:
            raise NotFound("Task", task_id)
        tasks[i] = patch.apply(tasks[i])
        await self._commit(tasks)
        logger.info("Task updated id=%s fields=%s", task_id, sorted(patch.changes()))

    async def delete(self, task_id: str) -> None:
        tasks = self._load()
        kept = [t for t in tasks if t.id != task_id]
        if len(kept) == len(tasks):
            logger.debug("delete: task %s not found (no-op)", task_id)
            return
        await self._commit(kept)
        logger.info("Task deleted id=%s", task_id)

    async def get(self, task_id: str) -> Task | None:
        return next((t for t in self._load() if t.id == task_id), None)

    async def list(self, flt: TaskFilter | None = None) -> list[Task]:
        return filter_tasks(sort_newest_first(self._load()), flt)

    async def add_attachment(self, task_id: str, attachment: Attachment) -> None:
        tasks = self._load()
        i = self._index(tasks, task_id)
        if i < 0:
            raise NotFound("Task", task_id)
        tasks[i].attachments.append(attachment)
        await self._commit(tasks)
        logger.debug("Attachment added task=%s att=%s", task_id, attachment.id)

    async def remove_attachment(self, task_id: str, attachment_id: str) -> None:
        tasks = self._load()
        i = self._index(tasks, task_id)
        if i < 0:
            raise NotFound("Task", task_id)
        task = tasks[i]
        task.attachments = [a for a in task.attachments if a.id != attachment_id]
        await self._commit(tasks)
        logger.debug("Attachment removed task=%s att=%s", task_id, attachment_id)

    async def subscribe(self, callback: SnapshotCallback) -> HubSubscription:
        # Read first: a failed initial load must not leave the callback registered.
        snapshot = await self.list()
        sub = self._hub.subscribe(callback)
        await self._hub.deliver(sub.token, snapshot)
        return sub
