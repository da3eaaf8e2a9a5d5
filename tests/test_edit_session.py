# tests/test_edit_session.py

from __future__ import annotations

from datetime import date

import pytest

from teamtasks.errors import NotFound, StorageFailure, ValidationError
from teamtasks.tasks.attachments import remove_staged, stage_file, stage_link
from teamtasks.tasks.edit_session import (
    cancel_session,
    open_add_session,
    open_edit_session,
    save_session,
)
from teamtasks.tasks.task_models import Attachment, TaskStatus

from .fakes import FailingMaterializer


async def _save(state, session, materializer=None):
    return await save_session(
        session,
        tasks=state.tasks,
        employees=state.employees,
        materializer=materializer or state.materializer,
    )


@pytest.mark.asyncio
async def test_save_new_task_commits_fields_and_attachments(local_state) -> None:
    session = open_add_session(title="Ship release", assigned_id="emp-2")
    session.details = "Tag and publish"
    session.deadline = date(2024, 7, 1)
    session.status = TaskStatus.WAITING_CLIENT
    stage_file(session, local_state.policy, name="shot.png", mime="image/png", content=b"\x89PNG")
    stage_link(session, "https://example.com/changelog", "Changelog")

    task = await _save(local_state, session)

    assert session.task_id == task.id
    assert task.title == "Ship release"
    assert task.assigned_name == "Adam Baker"
    assert task.deadline == date(2024, 7, 1)
    assert task.status is TaskStatus.WAITING_CLIENT
    assert [a.name for a in task.attachments] == ["shot.png", "Changelog"]
    assert task.attachments[0].data_url.startswith("data:image/png;base64,")
    assert task.attachments[1].external


@pytest.mark.asyncio
async def test_blank_title_aborts_before_any_write(local_state) -> None:
    session = open_add_session(title="  ")
    stage_link(session, "https://example.com")

    with pytest.raises(ValidationError):
        await _save(local_state, session)

    assert await local_state.tasks.list() == []
    assert session.task_id is None
    assert len(session.attachments) == 1


@pytest.mark.asyncio
async def test_cancel_leaves_stored_task_unchanged(any_state) -> None:
    session = open_add_session(title="Original")
    stage_link(session, "https://example.com/keep")
    saved = await _save(any_state, session)

    edit = await open_edit_session(any_state.tasks, saved.id)
    edit.title = "Changed"
    remove_staged(edit, saved.attachments[0].id)
    stage_link(edit, "https://example.com/new")
    cancel_session(edit)

    got = await any_state.tasks.get(saved.id)
    assert got == saved


@pytest.mark.asyncio
async def test_removal_of_persisted_attachment_happens_on_save(local_state) -> None:
    session = open_add_session(title="Two links")
    stage_link(session, "https://example.com/a")
    stage_link(session, "https://example.com/b")
    saved = await _save(local_state, session)
    first, second = saved.attachments

    edit = await open_edit_session(local_state.tasks, saved.id)
    remove_staged(edit, first.id)

    # Not yet persisted.
    got = await local_state.tasks.get(saved.id)
    assert got is not None and len(got.attachments) == 2

    result = await _save(local_state, edit)
    assert [a.id for a in result.attachments] == [second.id]


@pytest.mark.asyncio
async def test_retry_after_failure_neither_duplicates_task_nor_attachments(local_state) -> None:
    session = open_add_session(title="Flaky upload")
    stage_file(session, local_state.policy, name="a.png", mime="image/png", content=b"a")
    stage_file(session, local_state.policy, name="b.png", mime="image/png", content=b"b")
    flaky = FailingMaterializer(fail_on={2})

    with pytest.raises(StorageFailure):
        await _save(local_state, session, flaky)

    # The task and the first attachment landed; the form keeps everything.
    tasks = await local_state.tasks.list()
    assert len(tasks) == 1
    assert session.task_id == tasks[0].id
    assert [a.name for a in tasks[0].attachments] == ["a.png"]
    assert isinstance(session.attachments[0], Attachment)
    assert not isinstance(session.attachments[1], Attachment)

    task = await _save(local_state, session, flaky)

    assert [t.id for t in await local_state.tasks.list()] == [task.id]
    assert [a.name for a in task.attachments] == ["a.png", "b.png"]
    assert flaky.calls == 3


@pytest.mark.asyncio
async def test_edit_missing_task_raises(local_state) -> None:
    with pytest.raises(NotFound):
        await open_edit_session(local_state.tasks, "missing")


@pytest.mark.asyncio
async def test_unknown_assignee_saves_without_name(local_state) -> None:
    session = open_add_session(title="Orphan", assigned_id="emp-gone")
    task = await _save(local_state, session)
    assert task.assigned_id == "emp-gone"
    assert task.assigned_name == ""
