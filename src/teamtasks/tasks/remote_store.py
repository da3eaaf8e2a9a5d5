# src/teamtasks/tasks/remote_store.py

from __future__ import annotations

import asyncio
import logging

from ..core.ports import BlobStore, DocumentStore, SnapshotCallback, StoredDocument, Subscription
from ..errors import DuplicateName, InvalidName, NotFound, StorageFailure
from .task_filter import TaskFilter, filter_tasks
from .task_models import (
    Attachment,
    Employee,
    Task,
    TaskDraft,
    TaskPatch,
    TaskStatus,
    attachment_from_record,
    attachment_to_record,
    employee_from_record,
    require_title,
    task_from_record,
    task_to_record,
    utc_now,
)

logger = logging.getLogger(__name__)

EMPLOYEES = "employees"
TASKS = "tasks"


def attachments_path(task_id: str) -> str:
    return f"{TASKS}/{task_id}/attachments"


class RemoteEmployeeDirectory:
    """Employees as root documents: {name, nameLower, createdAt}."""

    def __init__(self, docs: DocumentStore) -> None:
        self._docs = docs

    @staticmethod
    def _to_employees(docs: list[StoredDocument]) -> list[Employee]:
        return [employee_from_record(d.data, doc_id=d.id) for d in docs]

    async def list(self) -> list[Employee]:
        return self._to_employees(await self._docs.query(EMPLOYEES, order_by="name"))

    async def get(self, employee_id: str) -> Employee | None:
        data = await self._docs.get(EMPLOYEES, employee_id)
        return None if data is None else employee_from_record(data, doc_id=employee_id)

    async def add(self, name: str) -> Employee:
        nm = (name or "").strip()
        if not nm:
            raise InvalidName("Employee name is required")

        doc_id = await self._docs.add_unique(
            EMPLOYEES,
            {"name": nm, "nameLower": nm.lower(), "createdAt": utc_now().isoformat()},
            unique="nameLower",
        )
        if doc_id is None:
            raise DuplicateName(nm)
        logger.info("Employee added id=%s name=%s", doc_id, nm)
        return Employee(id=doc_id, name=nm)

    async def subscribe(self, callback: SnapshotCallback) -> Subscription:
        async def on_docs(docs: list[StoredDocument]) -> None:
            result = callback(self._to_employees(docs))
            if asyncio.iscoroutine(result):
                await result

        return await self._docs.watch(EMPLOYEES, on_docs, order_by="name")


class RemoteTaskStore:
    """
    Tasks as root documents, attachments as a per-task sub-collection and
    uploaded files in a path-addressed blob store.

    There is no cross-document transaction: a task created before its
    attachment uploads fail stays without those attachments.
    """

    def __init__(self, docs: DocumentStore, blobs: BlobStore) -> None:
        self._docs = docs
        self._blobs = blobs

    # ---- low-level helpers ----

    async def _attachments(self, task_id: str) -> list[Attachment]:
        docs = await self._docs.query(attachments_path(task_id))
        return [attachment_from_record(d.data, doc_id=d.id) for d in docs]

    async def _resolve(self, doc: StoredDocument) -> Task:
        return task_from_record(doc.data, doc_id=doc.id, attachments=await self._attachments(doc.id))

    async def _resolve_all(self, docs: list[StoredDocument]) -> list[Task]:
        return list(await asyncio.gather(*(self._resolve(d) for d in docs)))

    async def _delete_blob_quietly(self, path: str) -> None:
        # A missing or already-deleted blob must never block task deletion.
        try:
            await self._blobs.delete(path)
        except Exception:
            logger.warning("Blob delete failed path=%s (ignored)", path, exc_info=True)

    async def _remove_attachment_doc(self, task_id: str, att: StoredDocument) -> None:
        removals = [self._docs.delete(attachments_path(task_id), att.id)]
        storage_path = att.data.get("storagePath")
        if storage_path:
            removals.append(self._delete_blob_quietly(str(storage_path)))
        await asyncio.gather(*removals)

    # ---- public API ----

    async def create(self, draft: TaskDraft) -> Task:
        title = require_title(draft.title)
        task = Task(
            id="",
            title=title,
            details=draft.details or "",
            assigned_id=draft.assigned_id or None,
            assigned_name=draft.assigned_name or "",
            created_at=utc_now(),
            deadline=draft.deadline,
            status=draft.status or TaskStatus.OPEN,
            attachments=[],
        )
        record = task_to_record(task, with_attachments=False)
        record.pop("id")
        task.id = await self._docs.add(TASKS, record)
        logger.info("Task created id=%s status=%s assigned=%s", task.id, task.status.value, task.assigned_id)
        return task

    async def update(self, task_id: str, patch: TaskPatch) -> None:
        data = await self._docs.get(TASKS, task_id)
        if data is None:
            raise NotFound("Task", task_id)
        merged = patch.apply(task_from_record(data, doc_id=task_id, attachments=[]))
        record = task_to_record(merged, with_attachments=False)
        # id and createdAt are immutable after creation.
        record.pop("id")
        record.pop("createdAt")
        if not await self._docs.update(TASKS, task_id, record):
            raise NotFound("Task", task_id)
        logger.info("Task updated id=%s fields=%s", task_id, sorted(patch.changes()))

    async def delete(self, task_id: str) -> None:
        atts = await self._docs.query(attachments_path(task_id))
        # Fan out every attachment/blob removal, join, then drop the parent.
        await asyncio.gather(*(self._remove_attachment_doc(task_id, a) for a in atts))
        await self._docs.delete(TASKS, task_id)
        logger.info("Task deleted id=%s attachments=%d", task_id, len(atts))

    async def get(self, task_id: str) -> Task | None:
        data = await self._docs.get(TASKS, task_id)
        if data is None:
            return None
        return await self._resolve(StoredDocument(id=task_id, data=data))

    async def list(self, flt: TaskFilter | None = None) -> list[Task]:
        docs = await self._docs.query(TASKS, order_by="createdAt", descending=True)
        return filter_tasks(await self._resolve_all(docs), flt)

    async def add_attachment(self, task_id: str, attachment: Attachment) -> None:
        if await self._docs.get(TASKS, task_id) is None:
            raise NotFound("Task", task_id)
        record = attachment_to_record(attachment)
        record.pop("id")
        record["createdAt"] = utc_now().isoformat()
        await self._docs.set(attachments_path(task_id), attachment.id, record)
        logger.debug("Attachment added task=%s att=%s", task_id, attachment.id)

    async def remove_attachment(self, task_id: str, attachment_id: str) -> None:
        data = await self._docs.get(attachments_path(task_id), attachment_id)
        if data is None:
            logger.debug("remove_attachment: %s/%s already gone", task_id, attachment_id)
            return
        await self._remove_attachment_doc(task_id, StoredDocument(id=attachment_id, data=data))
        logger.debug("Attachment removed task=%s att=%s", task_id, attachment_id)

    async def subscribe(self, callback: SnapshotCallback) -> Subscription:
        async def on_docs(docs: list[StoredDocument]) -> None:
            try:
                tasks = await self._resolve_all(docs)
            except StorageFailure:
                logger.exception("Task snapshot could not be resolved; skipped")
                return
            result = callback(tasks)
            if asyncio.iscoroutine(result):
                await result

        return await self._docs.watch(TASKS, on_docs, order_by="createdAt", descending=True)
