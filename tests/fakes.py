# tests/fakes.py

from __future__ import annotations

from dataclasses import dataclass, field

from teamtasks.errors import StorageFailure
from teamtasks.tasks.attachments import InlineEncoder, StagedFile, StagedLink
from teamtasks.tasks.task_models import Attachment


@dataclass(slots=True)
class FlakyBlobStore:
    """
    In-memory BlobStore used by remote-backend tests.

    - Captures uploads, delete attempts and successful deletes for assertions
    - Paths in fail_deletes raise on delete; fail_uploads makes every upload raise
    """

    objects: dict[str, bytes] = field(default_factory=dict)
    attempted: list[str] = field(default_factory=list)
    deleted: list[str] = field(default_factory=list)
    fail_deletes: set[str] = field(default_factory=set)
    fail_uploads: bool = False

    async def upload(self, path: str, content: bytes, mime: str) -> None:
        if self.fail_uploads:
            raise StorageFailure(f"upload refused: {path}")
        self.objects[path] = content

    async def url_for(self, path: str) -> str:
        if path not in self.objects:
            raise StorageFailure(f"Blob not found: {path}")
        return f"mem://{path}"

    async def delete(self, path: str) -> None:
        self.attempted.append(path)
        if path in self.fail_deletes:
            raise StorageFailure(f"delete refused: {path}")
        if self.objects.pop(path, None) is None:
            raise StorageFailure(f"Blob not found: {path}")
        self.deleted.append(path)


class FailingMaterializer:
    """
    Wraps InlineEncoder and fails the configured call numbers (1-based).

    Used to simulate a storage failure in the middle of committing a working set.
    """

    def __init__(self, fail_on: set[int]) -> None:
        self.fail_on = set(fail_on)
        self.calls = 0
        self._inner = InlineEncoder()

    async def materialize(self, task_id: str, staged: StagedFile | StagedLink) -> Attachment:
        self.calls += 1
        if self.calls in self.fail_on:
            raise StorageFailure(f"materialize failed on call {self.calls}")
        return await self._inner.materialize(task_id, staged)


class SnapshotRecorder:
    """Snapshot callback that keeps every delivered snapshot."""

    def __init__(self) -> None:
        self.snapshots: list[list] = []

    def __call__(self, snapshot: list) -> None:
        self.snapshots.append(list(snapshot))

    @property
    def last(self) -> list:
        return self.snapshots[-1]
