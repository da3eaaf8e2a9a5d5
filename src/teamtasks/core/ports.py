# src/teamtasks/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the services.

Repositories and the edit-session flow depend on Protocols instead of concrete
stores. This keeps the local key-value backend and the remote document/blob
backend swappable and makes testing easier.
"""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Protocol

SnapshotCallback = Callable[[list[Any]], Awaitable[None] | None]
# Receives a full snapshot (never a delta); may be a plain function or a coroutine function.


@dataclass(frozen=True, slots=True)
class StoredDocument:
    id: str
    data: dict[str, Any]


class Subscription(Protocol):
    @property
    def active(self) -> bool: ...
    def cancel(self) -> None: ...


class KeyValueStore(Protocol):
    """String blobs by key (browser-local-storage shape)."""
    def get(self, key: str) -> str | None: ...
    def set(self, key: str, value: str) -> None: ...


class DocumentStore(Protocol):
    """
    Collection-scoped document database.

    Collection paths are slash-separated: "tasks", "tasks/<task_id>/attachments".
    """

    async def add(self, path: str, data: dict[str, Any]) -> str: ...
    async def add_unique(self, path: str, data: dict[str, Any], *, unique: str) -> str | None: ...
    async def set(self, path: str, doc_id: str, data: dict[str, Any]) -> None: ...
    async def get(self, path: str, doc_id: str) -> dict[str, Any] | None: ...
    async def update(self, path: str, doc_id: str, changes: dict[str, Any]) -> bool: ...
    async def delete(self, path: str, doc_id: str) -> None: ...

    async def query(
            self,
            path: str,
            *,
            order_by: str | None = None,
            descending: bool = False,
            where: dict[str, Any] | None = None,
    ) -> list[StoredDocument]: ...

    async def watch(
            self,
            path: str,
            callback: SnapshotCallback,
            *,
            order_by: str | None = None,
            descending: bool = False,
    ) -> Subscription: ...


class BlobStore(Protocol):
    async def upload(self, path: str, content: bytes, mime: str) -> None: ...
    async def url_for(self, path: str) -> str: ...
    async def delete(self, path: str) -> None: ...


class EmployeeRepo(Protocol):
    async def list(self) -> list[Any]: ...
    async def get(self, employee_id: str) -> Any | None: ...
    async def add(self, name: str) -> Any: ...
    async def subscribe(self, callback: SnapshotCallback) -> Subscription: ...


class TaskRepo(Protocol):
    async def create(self, draft: Any) -> Any: ...
    async def update(self, task_id: str, patch: Any) -> None: ...
    async def delete(self, task_id: str) -> None: ...
    async def get(self, task_id: str) -> Any | None: ...
    async def list(self, flt: Any | None = None) -> list[Any]: ...

    # Attachment commit API (edit session)
    async def add_attachment(self, task_id: str, attachment: Any) -> None: ...
    async def remove_attachment(self, task_id: str, attachment_id: str) -> None: ...

    async def subscribe(self, callback: SnapshotCallback) -> Subscription: ...


class AttachmentMaterializer(Protocol):
    """Turns a staged file/link into a persistable Attachment (inline or uploaded)."""
    async def materialize(self, task_id: str, staged: Any) -> Any: ...
