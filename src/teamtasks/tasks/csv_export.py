# src/teamtasks/tasks/csv_export.py

from __future__ import annotations

import csv
import io
import logging
from collections.abc import Iterable
from datetime import date, datetime
from pathlib import Path

import pandas as pd

from .task_models import Attachment, Task

logger = logging.getLogger(__name__)

EXPORT_COLUMNS = [
    "Title",
    "Details",
    "Assigned",
    "Created At",
    "Deadline",
    "Status",
    "AttachmentsCount",
    "AttachmentLinks",
]

EMBEDDED_MARKER = "[embedded]"
LINK_SEPARATOR = " | "


def format_day(value: date | datetime | None) -> str:
    """YYYY-MM-DD; timestamps are converted to local time first."""
    if value is None:
        return ""
    if isinstance(value, datetime):
        return value.astimezone().date().isoformat()
    return value.isoformat()


def attachment_link(att: Attachment) -> str:
    # CSV cannot carry binaries: embedded payloads get a marker, everything else its URL.
    if att.external:
        return att.url or ""
    if att.is_embedded:
        return EMBEDDED_MARKER
    return att.url or ""


def tasks_frame(tasks: Iterable[Task]) -> pd.DataFrame:
    rows = [
        {
            "Title": t.title,
            "Details": t.details,
            "Assigned": t.assigned_name,
            "Created At": format_day(t.created_at),
            "Deadline": format_day(t.deadline),
            "Status": t.status.value,
            "AttachmentsCount": len(t.attachments),
            "AttachmentLinks": LINK_SEPARATOR.join(attachment_link(a) for a in t.attachments),
        }
        for t in tasks
    ]
    return pd.DataFrame(rows, columns=EXPORT_COLUMNS)


def export_tasks_csv(tasks: Iterable[Task]) -> str:
    """Every field double-quoted, embedded quotes doubled, one row per task."""
    return tasks_frame(tasks).to_csv(index=False, quoting=csv.QUOTE_ALL, lineterminator="\n")


def parse_tasks_csv(text: str) -> list[dict[str, str]]:
    df = pd.read_csv(io.StringIO(text), dtype=str, keep_default_na=False)
    missing = [c for c in EXPORT_COLUMNS if c not in df.columns]
    if missing:
        raise ValueError(f"Not a task export; missing columns: {', '.join(missing)}")
    return df.to_dict(orient="records")


def write_export(path: str | Path, tasks: Iterable[Task]) -> Path:
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    text = export_tasks_csv(tasks)
    target.write_text(text, encoding="utf-8")
    logger.info("Exported tasks to %s (%d bytes)", target, len(text))
    return target
