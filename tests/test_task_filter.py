# tests/test_task_filter.py

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

from teamtasks.tasks.task_filter import TaskFilter, created_day, filter_tasks
from teamtasks.tasks.task_models import Task, TaskStatus


def _task(tid: str, *, status: TaskStatus, assigned_id: str, assigned_name: str, created: datetime) -> Task:
    return Task(
        id=tid,
        title=f"Task {tid}",
        details="Homepage redesign" if tid == "A" else "",
        assigned_id=assigned_id,
        assigned_name=assigned_name,
        created_at=created,
        deadline=None,
        status=status,
    )


BASE = datetime(2024, 5, 10, 12, 0, tzinfo=timezone.utc)
A = _task("A", status=TaskStatus.OPEN, assigned_id="emp-1", assigned_name="James", created=BASE)
B = _task(
    "B", status=TaskStatus.CLOSED, assigned_id="emp-1", assigned_name="James", created=BASE - timedelta(days=3)
)
C = _task(
    "C", status=TaskStatus.OPEN, assigned_id="emp-2", assigned_name="Adam", created=BASE - timedelta(days=6)
)
ALL = [A, B, C]


def test_empty_filter_returns_everything() -> None:
    assert TaskFilter().is_empty
    assert filter_tasks(ALL, TaskFilter()) == ALL
    assert filter_tasks(ALL, None) == ALL


def test_predicates_are_conjunctive() -> None:
    flt = TaskFilter(status=TaskStatus.OPEN, assigned_id="emp-1")
    assert filter_tasks(ALL, flt) == [A]


def test_status_only() -> None:
    assert filter_tasks(ALL, TaskFilter(status=TaskStatus.OPEN)) == [A, C]


def test_date_matches_local_creation_day() -> None:
    assert filter_tasks(ALL, TaskFilter(date=created_day(B))) == [B]
    assert filter_tasks(ALL, TaskFilter(date=date(1999, 1, 1))) == []


def test_text_searches_title_details_and_assignee_case_insensitively() -> None:
    assert filter_tasks(ALL, TaskFilter(text="HOMEPAGE")) == [A]
    assert filter_tasks(ALL, TaskFilter(text="adam")) == [C]
    assert filter_tasks(ALL, TaskFilter(text="task b")) == [B]
    assert filter_tasks(ALL, TaskFilter(text="   ")) == ALL


def test_no_match_yields_empty_list() -> None:
    flt = TaskFilter(status=TaskStatus.CLOSED, assigned_id="emp-2")
    assert filter_tasks(ALL, flt) == []
