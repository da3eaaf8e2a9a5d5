# tests/test_sync.py

from __future__ import annotations

import sqlite3

import pytest

from teamtasks.cli.bootstrap import start_realtime
from teamtasks.core.sync import SnapshotHub
from teamtasks.errors import StorageFailure
from teamtasks.tasks.local_store import EMPLOYEES_KEY, TASKS_KEY
from teamtasks.tasks.task_models import Attachment, TaskDraft

from .fakes import SnapshotRecorder


@pytest.mark.asyncio
async def test_subscribe_delivers_initial_then_full_snapshots(any_state) -> None:
    rec = SnapshotRecorder()
    sub = await any_state.tasks.subscribe(rec)

    assert rec.snapshots == [[]]

    a = await any_state.tasks.create(TaskDraft(title="first"))
    assert [t.id for t in rec.last] == [a.id]

    b = await any_state.tasks.create(TaskDraft(title="second"))
    assert {t.id for t in rec.last} == {a.id, b.id}

    sub.cancel()


@pytest.mark.asyncio
async def test_cancelled_subscription_receives_nothing(any_state) -> None:
    rec = SnapshotRecorder()
    sub = await any_state.tasks.subscribe(rec)
    sub.cancel()
    sub.cancel()

    await any_state.tasks.create(TaskDraft(title="after cancel"))

    assert not sub.active
    assert rec.snapshots == [[]]


@pytest.mark.asyncio
async def test_attachment_write_refreshes_task_snapshot(any_state) -> None:
    task = await any_state.tasks.create(TaskDraft(title="watch me"))
    rec = SnapshotRecorder()
    sub = await any_state.tasks.subscribe(rec)

    await any_state.tasks.add_attachment(
        task.id,
        Attachment(id="att-1", name="docs", mime="link", external=True, url="https://example.com"),
    )

    assert [a.id for a in rec.last[0].attachments] == ["att-1"]
    sub.cancel()


@pytest.mark.asyncio
async def test_employee_snapshot_follows_hires(any_state) -> None:
    rec = SnapshotRecorder()
    sub = await any_state.employees.subscribe(rec)

    await any_state.employees.add("New Hire")

    assert "New Hire" in [e.name for e in rec.last]
    sub.cancel()


@pytest.mark.asyncio
async def test_start_realtime_keeps_state_current(local_state) -> None:
    await start_realtime(local_state)
    try:
        assert len(local_state.latest_employees) == 4
        task = await local_state.tasks.create(TaskDraft(title="live"))
        assert [t.id for t in local_state.latest_tasks] == [task.id]
    finally:
        local_state.cancel_subscriptions()
    assert local_state.subscriptions == []


@pytest.mark.asyncio
async def test_failing_subscriber_does_not_block_others() -> None:
    hub = SnapshotHub("test")
    good = SnapshotRecorder()

    def broken(snapshot: list) -> None:
        raise RuntimeError("view crashed")

    hub.subscribe(broken)
    hub.subscribe(good)

    await hub.publish([1, 2])

    assert good.snapshots == [[1, 2]]


@pytest.mark.asyncio
async def test_async_subscriber_is_awaited() -> None:
    hub = SnapshotHub("test")
    seen: list[list] = []

    async def on_snapshot(snapshot: list) -> None:
        seen.append(snapshot)

    sub = hub.subscribe(on_snapshot)
    await hub.publish(["x"])
    sub.cancel()
    await hub.publish(["y"])

    assert seen == [["x"]]
    assert len(hub) == 0


@pytest.mark.asyncio
async def test_failed_initial_load_leaves_no_local_employee_subscription(local_state) -> None:
    kv = local_state.employees._kv
    kv.set(EMPLOYEES_KEY, "{not json")
    rec = SnapshotRecorder()

    with pytest.raises(StorageFailure):
        await local_state.employees.subscribe(rec)

    kv.set(EMPLOYEES_KEY, '[{"id": "e1", "name": "A"}]')
    await local_state.employees.add("B")

    assert rec.snapshots == []
    assert len(local_state.employees._hub) == 0


@pytest.mark.asyncio
async def test_failed_initial_load_leaves_no_local_task_subscription(local_state) -> None:
    kv = local_state.tasks._kv
    kv.set(TASKS_KEY, '{"not": "a list"}')
    rec = SnapshotRecorder()

    with pytest.raises(StorageFailure):
        await local_state.tasks.subscribe(rec)

    kv.set(TASKS_KEY, "[]")
    await local_state.tasks.create(TaskDraft(title="after"))

    assert rec.snapshots == []
    assert len(local_state.tasks._hub) == 0


@pytest.mark.asyncio
async def test_failed_initial_load_leaves_no_document_watch(remote_state) -> None:
    db_path = remote_state.settings.docs_db_path
    conn = sqlite3.connect(str(db_path))
    with conn:
        conn.execute(
            "INSERT INTO documents(path, id, data) VALUES (?, ?, ?)",
            ("employees", "broken", "{not json"),
        )
    rec = SnapshotRecorder()

    with pytest.raises(StorageFailure):
        await remote_state.employees.subscribe(rec)

    with conn:
        conn.execute("DELETE FROM documents WHERE id = ?", ("broken",))
    conn.close()
    await remote_state.employees.add("After")

    assert rec.snapshots == []
