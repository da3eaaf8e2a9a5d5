# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from teamtasks.cli.bootstrap import create_initial_state
from teamtasks.config import (
    DEFAULT_ALLOWED_MIME_PREFIXES,
    DEFAULT_ALLOWED_MIME_TYPES,
    LOCAL_MAX_UPLOAD_BYTES,
    REMOTE_MAX_UPLOAD_BYTES,
)
from teamtasks.core.state import AppState


def _settings(tmp_path: Path, mode: str) -> SimpleNamespace:
    remote = mode == "remote"
    data_dir = tmp_path / "data"
    return SimpleNamespace(
        app_name="teamtasks-test",
        log_level="DEBUG",
        storage_mode=mode,
        is_remote=remote,
        # Paths (tmp per test run)
        data_dir=data_dir,
        kv_db_path=data_dir / "local_store.sqlite3",
        docs_db_path=data_dir / "documents.sqlite3",
        blob_dir=data_dir / "blobs",
        export_path=tmp_path / "export.csv",
        # Attachments
        max_upload_bytes=REMOTE_MAX_UPLOAD_BYTES if remote else LOCAL_MAX_UPLOAD_BYTES,
        restrict_mime_types=not remote,
        allowed_mime_prefixes=list(DEFAULT_ALLOWED_MIME_PREFIXES),
        allowed_mime_types=list(DEFAULT_ALLOWED_MIME_TYPES),
        seed_demo_data=False,
        log_file=None,
        log_file_level="DEBUG",
    )


@pytest.fixture()
def local_settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with AppState and bootstrap.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated from the developer's environment / .env.
    """
    return _settings(tmp_path, "local")


@pytest.fixture()
def remote_settings(tmp_path: Path) -> SimpleNamespace:
    return _settings(tmp_path, "remote")


@pytest.fixture()
def local_state(local_settings: SimpleNamespace) -> AppState:
    """
    AppState wired to the local key-value backend.

    NOTE: We keep real SQLite stores here because their correctness is part
    of what we want to test.
    """
    return create_initial_state(settings=local_settings)


@pytest.fixture()
def remote_state(remote_settings: SimpleNamespace) -> AppState:
    """AppState wired to the document store + filesystem blob store."""
    return create_initial_state(settings=remote_settings)


@pytest.fixture(params=["local", "remote"])
def any_state(request, tmp_path: Path) -> AppState:
    """Same test against both backends: the repository contract is shared."""
    return create_initial_state(settings=_settings(tmp_path, request.param))
