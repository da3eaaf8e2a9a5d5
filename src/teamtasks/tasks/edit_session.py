# src/teamtasks/tasks/edit_session.py

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date

from ..core.ports import AttachmentMaterializer, EmployeeRepo, TaskRepo
from ..errors import NotFound
from .attachments import WorkingItem, commit_working_set
from .task_models import Attachment, Task, TaskDraft, TaskPatch, TaskStatus, require_title

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class EditSession:
    """
    An in-progress add or edit.

    task_id is None for a new task until the first successful save step.
    attachments is the working set (persisted Attachments + staged items);
    persisted mirrors what is stored for the task right now.
    """

    task_id: str | None = None
    title: str = ""
    details: str = ""
    assigned_id: str | None = None
    deadline: date | None = None
    status: TaskStatus = TaskStatus.OPEN
    attachments: list[WorkingItem] = field(default_factory=list)
    persisted: list[Attachment] = field(default_factory=list)

    @property
    def is_new(self) -> bool:
        return self.task_id is None

    @property
    def staged_count(self) -> int:
        return sum(1 for a in self.attachments if not isinstance(a, Attachment))


def open_add_session(*, title: str = "", assigned_id: str | None = None) -> EditSession:
    return EditSession(title=title, assigned_id=assigned_id)


async def open_edit_session(tasks: TaskRepo, task_id: str) -> EditSession:
    task: Task | None = await tasks.get(task_id)
    if task is None:
        raise NotFound("Task", task_id)
    return EditSession(
        task_id=task.id,
        title=task.title,
        details=task.details,
        assigned_id=task.assigned_id,
        deadline=task.deadline,
        status=task.status,
        attachments=list(task.attachments),
        persisted=list(task.attachments),
    )


def cancel_session(session: EditSession) -> None:
    """Discard field edits and staged attachments. Nothing is written."""
    logger.debug("Edit session cancelled task=%s staged=%d", session.task_id, session.staged_count)
    session.attachments.clear()
    session.persisted.clear()


async def save_session(
        session: EditSession,
        *,
        tasks: TaskRepo,
        employees: EmployeeRepo,
        materializer: AttachmentMaterializer,
) -> Task:
    """
    Create or update the task, then commit the attachment working set.

    Validation happens before any write. On a storage failure the session is
    left intact (and already-landed steps recorded in it) so the caller can
    retry save_session with the same object.
    """
    title = require_title(session.title)

    assigned_name = ""
    if session.assigned_id:
        emp = await employees.get(session.assigned_id)
        if emp is None:
            logger.warning("Assignee %s not in directory; saving without a name", session.assigned_id)
        else:
            assigned_name = emp.name

    if session.task_id is None:
        task = await tasks.create(
            TaskDraft(
                title=title,
                details=session.details,
                assigned_id=session.assigned_id,
                assigned_name=assigned_name,
                deadline=session.deadline,
                status=session.status,
            )
        )
        # From here on a retry updates this task instead of creating another one.
        session.task_id = task.id
    else:
        await tasks.update(
            session.task_id,
            TaskPatch(
                title=title,
                details=session.details,
                assigned_id=session.assigned_id,
                assigned_name=assigned_name,
                deadline=session.deadline,
                status=session.status,
            ),
        )

    await commit_working_set(session, tasks, materializer)

    saved = await tasks.get(session.task_id)
    if saved is None:
        raise NotFound("Task", session.task_id)
    logger.info("Task saved id=%s attachments=%d", saved.id, len(saved.attachments))
    return saved
