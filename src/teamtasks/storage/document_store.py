# src/teamtasks/storage/document_store.py

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import sqlite3
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from ..core.ports import SnapshotCallback, StoredDocument
from ..core.sync import HubSubscription, SnapshotHub
from ..errors import StorageFailure

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class _Watch:
    path: str
    order_by: str | None
    descending: bool
    hub: SnapshotHub


def _sort_key(order_by: str):
    # Documents missing the field sort last in ascending order.
    def key(doc: StoredDocument) -> tuple[bool, Any]:
        value = doc.data.get(order_by)
        if isinstance(value, str):
            value = value.casefold()
        return (value is None, value if value is not None else "")

    return key


class SqliteDocumentStore:
    """
    SQLite document store with ordered live queries.

    Documents are JSON objects addressed by (collection path, id). Collection
    paths nest: "tasks/<task_id>/attachments" is a sub-collection of a task.
    Deleting a document does not delete its sub-collections.

    Live queries:
    - watch() delivers an initial snapshot before returning
    - every write to the watched collection, or to any of its sub-collections,
      re-runs the query and delivers a full snapshot

    Thread-safety:
    - blocking SQLite work runs in worker threads, one connection per call
    """

    def __init__(self, db_path: str | Path = "documents.sqlite3") -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._watches: list[_Watch] = []
        self._ensure_schema()
        logger.info("SqliteDocumentStore ready db=%s", self._db_path)

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        with contextlib.suppress(sqlite3.Error):
            conn.execute("PRAGMA journal_mode=WAL")
        return conn

    def _ensure_schema(self) -> None:
        try:
            conn = self._get_conn()
            try:
                conn.execute(
                    """
                    CREATE TABLE IF NOT EXISTS documents (
                        path TEXT NOT NULL,
                        id TEXT NOT NULL,
                        data TEXT NOT NULL DEFAULT '{}',
                        PRIMARY KEY (path, id)
                    )
                    """
                )
                conn.commit()
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise StorageFailure(f"Cannot initialize document store {self._db_path}: {e}") from e

    async def _run(self, fn, *args):
        try:
            return await asyncio.to_thread(fn, *args)
        except sqlite3.Error as e:
            raise StorageFailure(f"document store {fn.__name__} failed: {e}") from e

    @staticmethod
    def _encode(data: dict[str, Any]) -> str:
        try:
            return json.dumps(data, ensure_ascii=False)
        except (TypeError, ValueError) as e:
            raise StorageFailure(f"Document is not JSON-serializable: {e}") from e

    @staticmethod
    def _decode(path: str, doc_id: str, raw: str) -> dict[str, Any]:
        try:
            val = json.loads(raw)
        except ValueError as e:
            raise StorageFailure(f"Corrupt document {path}/{doc_id}") from e
        if not isinstance(val, dict):
            raise StorageFailure(f"Corrupt document {path}/{doc_id}")
        return val

    # ---- sync primitives (worker thread) ----

    def _write_sync(self, path: str, doc_id: str, encoded: str) -> None:
        conn = self._get_conn()
        try:
            conn.execute(
                """
                INSERT INTO documents(path, id, data) VALUES (?, ?, ?)
                ON CONFLICT(path, id) DO UPDATE SET data = excluded.data
                """,
                (path, doc_id, encoded),
            )
            conn.commit()
        finally:
            conn.close()

    def _read_sync(self, path: str, doc_id: str) -> str | None:
        conn = self._get_conn()
        try:
            row = conn.execute(
                "SELECT data FROM documents WHERE path = ? AND id = ?", (path, doc_id)
            ).fetchone()
            return None if row is None else str(row[0])
        finally:
            conn.close()

    def _merge_sync(self, path: str, doc_id: str, changes: dict[str, Any]) -> bool:
        conn = self._get_conn()
        try:
            # Read-modify-write inside one transaction: per-document atomicity.
            conn.execute("BEGIN IMMEDIATE")
            row = conn.execute(
                "SELECT data FROM documents WHERE path = ? AND id = ?", (path, doc_id)
            ).fetchone()
            if row is None:
                conn.rollback()
                return False
            data = self._decode(path, doc_id, row[0])
            data.update(changes)
            conn.execute(
                "UPDATE documents SET data = ? WHERE path = ? AND id = ?",
                (self._encode(data), path, doc_id),
            )
            conn.commit()
            return True
        finally:
            conn.close()

    def _insert_unique_sync(self, path: str, doc_id: str, data: dict[str, Any], unique: str) -> bool:
        conn = self._get_conn()
        try:
            # Check-then-insert inside one write transaction so concurrent adds serialize.
            conn.execute("BEGIN IMMEDIATE")
            rows = conn.execute("SELECT id, data FROM documents WHERE path = ?", (path,)).fetchall()
            for row_id, raw in rows:
                if self._decode(path, str(row_id), raw).get(unique) == data.get(unique):
                    conn.rollback()
                    return False
            conn.execute(
                "INSERT INTO documents(path, id, data) VALUES (?, ?, ?)",
                (path, doc_id, self._encode(data)),
            )
            conn.commit()
            return True
        finally:
            conn.close()

    def _delete_sync(self, path: str, doc_id: str) -> None:
        conn = self._get_conn()
        try:
            conn.execute("DELETE FROM documents WHERE path = ? AND id = ?", (path, doc_id))
            conn.commit()
        finally:
            conn.close()

    def _list_sync(self, path: str) -> list[tuple[str, str]]:
        conn = self._get_conn()
        try:
            rows = conn.execute(
                "SELECT id, data FROM documents WHERE path = ? ORDER BY rowid", (path,)
            ).fetchall()
            return [(str(r[0]), str(r[1])) for r in rows]
        finally:
            conn.close()

    # ---- public API ----

    async def add(self, path: str, data: dict[str, Any]) -> str:
        doc_id = uuid.uuid4().hex[:20]
        await self.set(path, doc_id, data)
        return doc_id

    async def add_unique(self, path: str, data: dict[str, Any], *, unique: str) -> str | None:
        """Add unless a document in the collection has the same value for `unique`; None on conflict."""
        doc_id = uuid.uuid4().hex[:20]
        if not await self._run(self._insert_unique_sync, path, doc_id, dict(data), unique):
            logger.debug("doc add_unique %s conflict on %s", path, unique)
            return None
        logger.debug("doc add_unique %s/%s", path, doc_id)
        await self._notify(path)
        return doc_id

    async def set(self, path: str, doc_id: str, data: dict[str, Any]) -> None:
        await self._run(self._write_sync, path, doc_id, self._encode(data))
        logger.debug("doc set %s/%s", path, doc_id)
        await self._notify(path)

    async def get(self, path: str, doc_id: str) -> dict[str, Any] | None:
        raw = await self._run(self._read_sync, path, doc_id)
        return None if raw is None else self._decode(path, doc_id, raw)

    async def update(self, path: str, doc_id: str, changes: dict[str, Any]) -> bool:
        updated = await self._run(self._merge_sync, path, doc_id, dict(changes))
        if updated:
            logger.debug("doc update %s/%s fields=%s", path, doc_id, sorted(changes))
            await self._notify(path)
        return bool(updated)

    async def delete(self, path: str, doc_id: str) -> None:
        await self._run(self._delete_sync, path, doc_id)
        logger.debug("doc delete %s/%s", path, doc_id)
        await self._notify(path)

    async def query(
            self,
            path: str,
            *,
            order_by: str | None = None,
            descending: bool = False,
            where: dict[str, Any] | None = None,
    ) -> list[StoredDocument]:
        rows = await self._run(self._list_sync, path)
        docs = [StoredDocument(id=i, data=self._decode(path, i, raw)) for i, raw in rows]
        if where:
            docs = [d for d in docs if all(d.data.get(k) == v for k, v in where.items())]
        if order_by:
            docs.sort(key=_sort_key(order_by), reverse=descending)
        return docs

    async def watch(
            self,
            path: str,
            callback: SnapshotCallback,
            *,
            order_by: str | None = None,
            descending: bool = False,
    ) -> HubSubscription:
        w = _Watch(path=path, order_by=order_by, descending=descending, hub=SnapshotHub(f"docs:{path}"))
        sub = w.hub.subscribe(callback)
        self._watches.append(w)
        try:
            snapshot = await self._snapshot(w)
        except StorageFailure:
            sub.cancel()
            raise
        logger.info("watch started path=%s order_by=%s desc=%s", path, order_by, descending)
        await w.hub.deliver(sub.token, snapshot)
        return sub

    # ---- live queries ----

    async def _snapshot(self, w: _Watch) -> list[StoredDocument]:
        return await self.query(w.path, order_by=w.order_by, descending=w.descending)

    async def _notify(self, written_path: str) -> None:
        # Cancelled watches are pruned lazily here.
        self._watches = [w for w in self._watches if len(w.hub)]
        for w in list(self._watches):
            if written_path == w.path or written_path.startswith(w.path + "/"):
                await w.hub.publish(await self._snapshot(w))
