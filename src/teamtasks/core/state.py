# src/teamtasks/core/state.py

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from .ports import AttachmentMaterializer, EmployeeRepo, Subscription, TaskRepo

if TYPE_CHECKING:
    from ..tasks.attachments import AttachmentPolicy
    from ..tasks.edit_session import EditSession


@dataclass
class AppState:
    # Store Settings on the state for easy access in other modules later.
    settings: Any

    employees: EmployeeRepo
    tasks: TaskRepo
    materializer: AttachmentMaterializer
    policy: AttachmentPolicy

    # The one add/edit in progress in this view (None when no form is open).
    session: EditSession | None = None

    # Latest full snapshots pushed by the live subscriptions.
    latest_tasks: list[Any] = field(default_factory=list)
    latest_employees: list[Any] = field(default_factory=list)
    subscriptions: list[Subscription] = field(default_factory=list)

    def cancel_subscriptions(self) -> None:
        for sub in self.subscriptions:
            sub.cancel()
        self.subscriptions.clear()
