# src/teamtasks/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app.
- Nothing required at import time; every value has a local default.
- Storage mode decides a few defaults (upload ceiling, MIME allowlist).
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import List

from dotenv import load_dotenv

ENV_PREFIX = "TEAMTASKS"

STORAGE_LOCAL = "local"
STORAGE_REMOTE = "remote"

# Upload ceilings observed in the two deployment shapes.
LOCAL_MAX_UPLOAD_BYTES = int(2.5 * 1024 * 1024)
REMOTE_MAX_UPLOAD_BYTES = 5 * 1024 * 1024

DEFAULT_ALLOWED_MIME_PREFIXES = ["image/"]
DEFAULT_ALLOWED_MIME_TYPES = [
    "application/pdf",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
]


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


load_dotenv(override=False)


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_list(name: str, default: List[str]) -> List[str]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return list(default)
    return [p.strip() for p in raw.replace(",", " ").split() if p.strip()]


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str
    log_file: Path | None
    log_file_level: str

    # ---- Storage ----
    storage_mode: str
    data_dir: Path
    kv_db_path: Path
    docs_db_path: Path
    blob_dir: Path
    export_path: Path

    # ---- Attachments ----
    max_upload_bytes: int
    restrict_mime_types: bool
    allowed_mime_prefixes: List[str]
    allowed_mime_types: List[str]

    # ---- Startup ----
    seed_demo_data: bool

    @property
    def is_remote(self) -> bool:
        return self.storage_mode == STORAGE_REMOTE

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "teamtasks")
        log_level = _env(_k("LOG_LEVEL"), "INFO")

        storage_mode = _env(_k("STORAGE_MODE"), STORAGE_LOCAL).strip().lower()
        if storage_mode not in (STORAGE_LOCAL, STORAGE_REMOTE):
            storage_mode = STORAGE_LOCAL
        remote = storage_mode == STORAGE_REMOTE

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/teamtasks"))
        log_file: Path | None = _env_path(_k("LOG_FILE"), data_dir / "teamtasks.log")
        if not _env_bool(_k("LOG_TO_FILE"), True):
            log_file = None
        log_file_level = _env(_k("LOG_FILE_LEVEL"), "DEBUG")
        kv_db_path = _env_path(_k("KV_DB_PATH"), data_dir / "local_store.sqlite3")
        docs_db_path = _env_path(_k("DOCS_DB_PATH"), data_dir / "documents.sqlite3")
        blob_dir = _env_path(_k("BLOB_DIR"), data_dir / "blobs")
        export_path = _env_path(_k("EXPORT_PATH"), Path("tasks-export.csv"))

        max_upload_bytes = _env_int(
            _k("MAX_UPLOAD_BYTES"),
            REMOTE_MAX_UPLOAD_BYTES if remote else LOCAL_MAX_UPLOAD_BYTES,
        )
        restrict_mime_types = _env_bool(_k("RESTRICT_MIME_TYPES"), not remote)
        allowed_mime_prefixes = _env_list(_k("ALLOWED_MIME_PREFIXES"), DEFAULT_ALLOWED_MIME_PREFIXES)
        allowed_mime_types = _env_list(_k("ALLOWED_MIME_TYPES"), DEFAULT_ALLOWED_MIME_TYPES)

        seed_demo_data = _env_bool(_k("SEED_DEMO_DATA"), not remote)

        return Settings(
            app_name=app_name,
            log_level=log_level,
            log_file=log_file,
            log_file_level=log_file_level,
            storage_mode=storage_mode,
            data_dir=data_dir,
            kv_db_path=kv_db_path,
            docs_db_path=docs_db_path,
            blob_dir=blob_dir,
            export_path=export_path,
            max_upload_bytes=max_upload_bytes,
            restrict_mime_types=restrict_mime_types,
            allowed_mime_prefixes=allowed_mime_prefixes,
            allowed_mime_types=allowed_mime_types,
            seed_demo_data=seed_demo_data,
        )


SETTINGS = Settings.from_env()


def get_settings() -> Settings:
    return SETTINGS
