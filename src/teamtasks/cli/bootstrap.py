# src/teamtasks/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires the local (key-value) or remote (document + blob) backend into AppState,
- starts the live snapshot subscriptions that keep the view current.
"""

from __future__ import annotations

import logging

from ..config import get_settings
from ..core.state import AppState
from ..storage.blob_store import FilesystemBlobStore
from ..storage.document_store import SqliteDocumentStore
from ..storage.kv_store import SqliteKeyValueStore
from ..tasks.attachments import AttachmentPolicy, BlobUploader, InlineEncoder
from ..tasks.local_store import LocalEmployeeDirectory, LocalTaskStore
from ..tasks.remote_store import RemoteEmployeeDirectory, RemoteTaskStore

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    if settings.is_remote:
        settings.docs_db_path.parent.mkdir(parents=True, exist_ok=True)
        settings.blob_dir.mkdir(parents=True, exist_ok=True)
    else:
        settings.kv_db_path.parent.mkdir(parents=True, exist_ok=True)


def create_initial_state(*, settings=None) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings injectable makes the app easier to test and avoids hidden global config reads.
    If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)
    policy = AttachmentPolicy.from_settings(settings)

    if settings.is_remote:
        docs = SqliteDocumentStore(settings.docs_db_path)
        blobs = FilesystemBlobStore(settings.blob_dir)
        state = AppState(
            settings=settings,
            employees=RemoteEmployeeDirectory(docs),
            tasks=RemoteTaskStore(docs, blobs),
            materializer=BlobUploader(blobs),
            policy=policy,
        )
    else:
        kv = SqliteKeyValueStore(settings.kv_db_path)
        state = AppState(
            settings=settings,
            employees=LocalEmployeeDirectory(kv),
            tasks=LocalTaskStore(kv),
            materializer=InlineEncoder(),
            policy=policy,
        )

    logger.info(
        "State ready mode=%s max_upload=%s restrict_types=%s",
        settings.storage_mode,
        policy.max_bytes,
        policy.restrict_types,
    )
    return state


async def start_realtime(state: AppState) -> None:
    """Subscribe the view to both collections; every snapshot replaces the cached one."""

    def on_employees(employees: list) -> None:
        state.latest_employees = list(employees)
        logger.debug("Employee snapshot: %d", len(employees))

    def on_tasks(tasks: list) -> None:
        state.latest_tasks = list(tasks)
        logger.debug("Task snapshot: %d", len(tasks))

    state.subscriptions.append(await state.employees.subscribe(on_employees))
    state.subscriptions.append(await state.tasks.subscribe(on_tasks))
