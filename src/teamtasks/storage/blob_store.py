# src/teamtasks/storage/blob_store.py

from __future__ import annotations

import asyncio
import logging
from pathlib import Path, PurePosixPath

from ..errors import StorageFailure

logger = logging.getLogger(__name__)


class FilesystemBlobStore:
    """
    Path-addressed blob store on the local filesystem.

    Object paths look like "tasks/<task_id>/<millis>-<filename>" and map to
    files under the root directory. Retrieval locators are file:// URLs.
    Deleting a missing object raises StorageFailure (callers doing cascade
    cleanup are expected to tolerate it).
    """

    def __init__(self, root: str | Path) -> None:
        self._root = Path(root).expanduser().resolve()
        self._root.mkdir(parents=True, exist_ok=True)
        logger.info("FilesystemBlobStore ready root=%s", self._root)

    def _resolve(self, path: str) -> Path:
        rel = PurePosixPath(path)
        if not path or rel.is_absolute() or ".." in rel.parts:
            raise StorageFailure(f"Invalid blob path: {path!r}")
        return self._root.joinpath(*rel.parts)

    @staticmethod
    def _write(target: Path, content: bytes) -> None:
        target.parent.mkdir(parents=True, exist_ok=True)
        tmp = target.with_name(target.name + ".part")
        tmp.write_bytes(content)
        tmp.replace(target)

    async def upload(self, path: str, content: bytes, mime: str) -> None:
        target = self._resolve(path)
        try:
            await asyncio.to_thread(self._write, target, content)
        except OSError as e:
            raise StorageFailure(f"Upload failed for {path}: {e}") from e
        logger.info("blob uploaded path=%s bytes=%s mime=%s", path, len(content), mime)

    async def url_for(self, path: str) -> str:
        target = self._resolve(path)
        if not target.is_file():
            raise StorageFailure(f"Blob not found: {path}")
        return target.as_uri()

    async def delete(self, path: str) -> None:
        target = self._resolve(path)
        try:
            await asyncio.to_thread(target.unlink)
        except FileNotFoundError as e:
            raise StorageFailure(f"Blob not found: {path}") from e
        except OSError as e:
            raise StorageFailure(f"Delete failed for {path}: {e}") from e
        logger.info("blob deleted path=%s", path)

    def exists(self, path: str) -> bool:
        return self._resolve(path).is_file()
