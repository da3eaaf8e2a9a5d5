# src/teamtasks/tasks/task_models.py

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timezone
from enum import StrEnum
from typing import Any

from ..errors import StorageFailure, ValidationError

_UNSET: Any = object()


def new_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class TaskStatus(StrEnum):
    OPEN = "Open"
    IN_PROGRESS = "In-progress"
    WAITING_CLIENT = "Waiting client"
    CLOSED = "Closed"

    @classmethod
    def from_db(cls, raw: str | None) -> TaskStatus:
        """Missing status means Open; an unknown value is a malformed record."""
        if not raw:
            return cls.OPEN
        return cls(raw)

    @classmethod
    def parse(cls, text: str) -> TaskStatus:
        """Lenient user-input parsing: 'in-progress', 'waiting_client', 'closed', ..."""
        key = "".join(ch for ch in (text or "").lower() if ch.isalnum())
        for status in cls:
            if "".join(ch for ch in status.value.lower() if ch.isalnum()) == key:
                return status
        choices = ", ".join(s.value for s in cls)
        raise ValidationError(f"Unknown status {text!r}; expected one of: {choices}")


@dataclass(slots=True)
class Employee:
    id: str
    name: str


@dataclass(slots=True)
class Attachment:
    """
    Persisted attachment.

    Exactly one payload is populated:
    - external link: url
    - embedded upload (local store): data_url
    - blob-store upload (remote store): storage_path (+ url for retrieval)
    """

    id: str
    name: str
    mime: str
    external: bool
    url: str | None = None
    data_url: str | None = None
    storage_path: str | None = None

    @property
    def is_embedded(self) -> bool:
        return bool(self.data_url)


@dataclass(slots=True)
class Task:
    id: str
    title: str
    details: str
    assigned_id: str | None
    # Snapshot of the employee name at assignment time; may drift from the directory.
    assigned_name: str
    created_at: datetime
    deadline: date | None
    status: TaskStatus
    attachments: list[Attachment] = field(default_factory=list)


@dataclass(slots=True)
class TaskDraft:
    title: str
    details: str = ""
    assigned_id: str | None = None
    assigned_name: str = ""
    deadline: date | None = None
    status: TaskStatus | None = None


@dataclass(slots=True)
class TaskPatch:
    """Partial update. Fields left at _UNSET are not touched; None is a real value."""

    title: Any = _UNSET
    details: Any = _UNSET
    assigned_id: Any = _UNSET
    assigned_name: Any = _UNSET
    deadline: Any = _UNSET
    status: Any = _UNSET

    def changes(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        for name in ("title", "details", "assigned_id", "assigned_name", "deadline", "status"):
            value = getattr(self, name)
            if value is not _UNSET:
                out[name] = value
        return out

    def apply(self, task: Task) -> Task:
        changes = self.changes()
        if "title" in changes:
            changes["title"] = require_title(changes["title"])
        if "details" in changes:
            changes["details"] = changes["details"] or ""
        if "assigned_name" in changes:
            changes["assigned_name"] = changes["assigned_name"] or ""
        if "status" in changes:
            changes["status"] = TaskStatus(changes["status"] or TaskStatus.OPEN)
        return replace(task, **changes)


def require_title(title: str | None) -> str:
    t = (title or "").strip()
    if not t:
        raise ValidationError("Title is required")
    return t


# ---- store boundary ----
#
# Records are the plain dicts kept in the key-value store / document store.
# Keys follow the stored shape (camelCase), not the Python attribute names.


def _parse_created(raw: Any) -> datetime:
    if isinstance(raw, datetime):
        dt = raw
    else:
        dt = datetime.fromisoformat(str(raw))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def _parse_deadline(raw: Any) -> date | None:
    if raw in (None, ""):
        return None
    if isinstance(raw, date):
        return raw
    # Older local records hold a full ISO timestamp; keep the calendar day.
    return date.fromisoformat(str(raw)[:10])


def employee_to_record(emp: Employee) -> dict[str, Any]:
    return {"id": emp.id, "name": emp.name}


def employee_from_record(rec: Any, *, doc_id: str | None = None) -> Employee:
    if not isinstance(rec, dict):
        raise StorageFailure(f"Malformed employee record: {rec!r}")
    ident = doc_id or rec.get("id")
    name = rec.get("name")
    if not ident or not isinstance(name, str) or not name.strip():
        raise StorageFailure(f"Malformed employee record: {rec!r}")
    return Employee(id=str(ident), name=name)


def attachment_to_record(att: Attachment) -> dict[str, Any]:
    rec: dict[str, Any] = {
        "id": att.id,
        "name": att.name,
        "mime": att.mime,
        "external": att.external,
    }
    if att.url is not None:
        rec["url"] = att.url
    if att.data_url is not None:
        rec["dataUrl"] = att.data_url
    if att.storage_path is not None:
        rec["storagePath"] = att.storage_path
    return rec


def attachment_from_record(rec: Any, *, doc_id: str | None = None) -> Attachment:
    if not isinstance(rec, dict):
        raise StorageFailure(f"Malformed attachment record: {rec!r}")
    ident = doc_id or rec.get("id")
    if not ident:
        raise StorageFailure(f"Attachment record without id: {rec!r}")

    external = bool(rec.get("external", False))
    url = rec.get("url")
    data_url = rec.get("dataUrl")
    storage_path = rec.get("storagePath")

    if external:
        ok = bool(url) and not data_url and not storage_path
    else:
        ok = bool(data_url) != bool(storage_path)
    if not ok:
        raise StorageFailure(f"Attachment {ident} has an inconsistent payload")

    return Attachment(
        id=str(ident),
        name=str(rec.get("name") or url or ident),
        # Local records call it "type", remote ones "mime".
        mime=str(rec.get("mime") or rec.get("type") or ""),
        external=external,
        url=url,
        data_url=data_url,
        storage_path=storage_path,
    )


def task_to_record(task: Task, *, with_attachments: bool = True) -> dict[str, Any]:
    rec: dict[str, Any] = {
        "id": task.id,
        "title": task.title,
        "details": task.details,
        "assignedId": task.assigned_id,
        "assignedName": task.assigned_name,
        "createdAt": task.created_at.isoformat(),
        "deadline": task.deadline.isoformat() if task.deadline else None,
        "status": task.status.value,
    }
    if with_attachments:
        rec["attachments"] = [attachment_to_record(a) for a in task.attachments]
    return rec


def task_from_record(
    rec: Any,
    *,
    doc_id: str | None = None,
    attachments: list[Attachment] | None = None,
) -> Task:
    if not isinstance(rec, dict):
        raise StorageFailure(f"Malformed task record: {rec!r}")
    ident = doc_id or rec.get("id")
    title = rec.get("title")
    if not ident or not isinstance(title, str):
        raise StorageFailure(f"Malformed task record: {rec!r}")

    try:
        created_at = _parse_created(rec.get("createdAt"))
        deadline = _parse_deadline(rec.get("deadline"))
        status = TaskStatus.from_db(rec.get("status"))
    except (TypeError, ValueError) as e:
        raise StorageFailure(f"Malformed task record {ident}: {e}") from e

    if attachments is None:
        raw_atts = rec.get("attachments") or []
        if not isinstance(raw_atts, list):
            raise StorageFailure(f"Task {ident} has malformed attachments")
        attachments = [attachment_from_record(a) for a in raw_atts]

    return Task(
        id=str(ident),
        title=title,
        details=str(rec.get("details") or ""),
        assigned_id=rec.get("assignedId") or None,
        assigned_name=str(rec.get("assignedName") or ""),
        created_at=created_at,
        deadline=deadline,
        status=status,
        attachments=attachments,
    )
