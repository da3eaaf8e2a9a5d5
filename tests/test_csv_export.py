# tests/test_csv_export.py

from __future__ import annotations

from datetime import date, datetime, timezone
from pathlib import Path

import pytest

from teamtasks.tasks.csv_export import (
    EMBEDDED_MARKER,
    EXPORT_COLUMNS,
    export_tasks_csv,
    format_day,
    parse_tasks_csv,
    write_export,
)
from teamtasks.tasks.task_models import Attachment, Task, TaskStatus


def _tricky_task() -> Task:
    return Task(
        id="t1",
        title='Fix "login", again',
        details="line one\nline two, with comma",
        assigned_id="emp-1",
        assigned_name="James O'Brian",
        created_at=datetime(2024, 5, 10, 12, 0, tzinfo=timezone.utc),
        deadline=date(2024, 5, 20),
        status=TaskStatus.WAITING_CLIENT,
        attachments=[
            Attachment(id="a1", name="shot.png", mime="image/png", external=False, data_url="data:image/png;base64,AA=="),
            Attachment(id="a2", name="docs", mime="link", external=True, url="https://example.com/docs"),
        ],
    )


def test_export_quotes_every_field_and_keeps_column_order() -> None:
    text = export_tasks_csv([_tricky_task()])
    header = text.split("\n", 1)[0]
    assert header == ",".join(f'"{c}"' for c in EXPORT_COLUMNS)
    # embedded quotes are doubled
    assert '"Fix ""login"", again"' in text


def test_export_parses_back_to_the_same_fields() -> None:
    task = _tricky_task()
    rows = parse_tasks_csv(export_tasks_csv([task]))

    assert len(rows) == 1
    row = rows[0]
    assert row["Title"] == task.title
    assert row["Details"] == task.details
    assert row["Assigned"] == "James O'Brian"
    assert row["Created At"] == format_day(task.created_at)
    assert row["Deadline"] == "2024-05-20"
    assert row["Status"] == "Waiting client"
    assert row["AttachmentsCount"] == "2"
    assert row["AttachmentLinks"] == f"{EMBEDDED_MARKER} | https://example.com/docs"


def test_empty_optional_fields_export_as_empty_strings() -> None:
    task = _tricky_task()
    task.deadline = None
    task.attachments = []
    row = parse_tasks_csv(export_tasks_csv([task]))[0]
    assert row["Deadline"] == ""
    assert row["AttachmentsCount"] == "0"
    assert row["AttachmentLinks"] == ""


def test_parse_rejects_foreign_csv() -> None:
    with pytest.raises(ValueError):
        parse_tasks_csv('"a","b"\n"1","2"\n')


def test_write_export_creates_file(tmp_path: Path) -> None:
    target = write_export(tmp_path / "out" / "tasks.csv", [_tricky_task()])
    assert target.is_file()
    assert len(parse_tasks_csv(target.read_text(encoding="utf-8"))) == 1
