# src/teamtasks/cli/commands.py

from __future__ import annotations

import logging
import mimetypes
import shlex
from collections.abc import Awaitable, Callable
from datetime import date
from pathlib import Path

from ..core.state import AppState
from ..errors import ValidationError
from ..tasks.attachments import remove_staged, stage_file, stage_link, validate_upload
from ..tasks.csv_export import format_day, write_export
from ..tasks.edit_session import cancel_session, open_add_session, open_edit_session, save_session
from ..tasks.task_api import reconcile_assignees
from ..tasks.task_filter import TaskFilter, filter_tasks
from ..tasks.task_models import Attachment, Task, TaskStatus

CommandEmitter = Callable[[str], None]
CommandHandler = Callable[[AppState, list[str], CommandEmitter | None], Awaitable[str]]

logger = logging.getLogger(__name__)

NO_SESSION = "No task form is open. Use /add TITLE or /edit TASK_ID first."


class CommandRegistry:
    """Simple slash-command registry used by the console connector (/help, /tasks, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    async def handle(
        self,
        state: AppState,
        line: str,
        emit: CommandEmitter | None = None,
    ) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
        Tracker errors (validation, not found, storage) propagate to the caller.
        """
        if not line.startswith("/"):
            return None

        try:
            parts = shlex.split(line[1:])
        except ValueError as e:
            return f"Cannot parse command: {e}"
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        return await handler(state, args, emit)

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


# ---- formatting ----


def format_task(t: Task) -> str:
    deadline = format_day(t.deadline) or "-"
    att = f" | {len(t.attachments)} att" if t.attachments else ""
    return (
        f"{t.id}  [{t.status.value}]  {t.title}  "
        f"| {t.assigned_name or '-'} | created {format_day(t.created_at)} | due {deadline}{att}"
    )


def format_working_item(item) -> str:
    tag = "saved" if isinstance(item, Attachment) else "staged"
    kind = "link" if item.external else "file"
    return f"{item.id}  ({kind}, {tag})  {item.name}"


async def _current_tasks(state: AppState) -> list[Task]:
    # The live snapshot is authoritative once subscriptions are running.
    if state.subscriptions:
        return list(state.latest_tasks)
    return await state.tasks.list()


async def _resolve_employee_id(state: AppState, ref: str) -> str:
    employees = state.latest_employees if state.subscriptions else await state.employees.list()
    for e in employees:
        if e.id == ref:
            return e.id
    lowered = ref.strip().lower()
    for e in employees:
        if e.name.strip().lower() == lowered:
            return e.id
    raise ValidationError(f"Unknown employee: {ref}")


def _parse_day(raw: str) -> date:
    try:
        return date.fromisoformat(raw)
    except ValueError as e:
        raise ValidationError(f"Expected a date as YYYY-MM-DD, got {raw!r}") from e


async def parse_filter(state: AppState, args: list[str]) -> TaskFilter:
    """key=value tokens (status, assigned, date); everything else is search text."""
    status: TaskStatus | None = None
    assigned_id: str | None = None
    day: date | None = None
    words: list[str] = []
    for arg in args:
        key, sep, value = arg.partition("=")
        key = key.lower()
        if sep and key == "status":
            status = TaskStatus.parse(value)
        elif sep and key in ("assigned", "assignee"):
            assigned_id = await _resolve_employee_id(state, value)
        elif sep and key == "date":
            day = _parse_day(value)
        else:
            words.append(arg)
    return TaskFilter(status=status, assigned_id=assigned_id, date=day, text=" ".join(words))


# ---- handlers ----


async def cmd_help(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    return registry.build_help()


async def cmd_status(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    session = state.session
    if session is None:
        form = "none"
    else:
        form = f"{'new task' if session.is_new else session.task_id} ({session.staged_count} staged)"
    return (
        "Status:\n"
        f"  Storage: {state.settings.storage_mode}\n"
        f"  Upload limit: {state.policy.max_bytes} bytes"
        f"{' (types restricted)' if state.policy.restrict_types else ''}\n"
        f"  Tasks: {len(await _current_tasks(state))}\n"
        f"  Open form: {form}"
    )


async def cmd_tasks(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """
    /tasks                          -> all tasks, newest first
    /tasks status=Open assigned=Adam date=2024-05-01 web design
    """
    flt = await parse_filter(state, args)
    logger.debug("tasks filter=%s", flt)
    visible = filter_tasks(await _current_tasks(state), flt)
    if not visible:
        return "No tasks found."
    lines = [f"{len(visible)} tasks"]
    lines.extend(format_task(t) for t in visible)
    return "\n".join(lines)


async def cmd_employees(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    employees = state.latest_employees if state.subscriptions else await state.employees.list()
    if not employees:
        return "No employees yet. Use /hire NAME."
    return "\n".join(f"{e.id}  {e.name}" for e in employees)


async def cmd_hire(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    emp = await state.employees.add(" ".join(args))
    return f"Added employee {emp.name} ({emp.id})."


async def cmd_add(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    employees = state.latest_employees if state.subscriptions else await state.employees.list()
    default_assignee = employees[0].id if employees else None
    state.session = open_add_session(title=" ".join(args), assigned_id=default_assignee)
    return "New task form opened. Use /set, /attach, /link, then /save or /cancel."


async def cmd_edit(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    if not args:
        return "Usage: /edit TASK_ID"
    state.session = await open_edit_session(state.tasks, args[0])
    return f"Editing {args[0]} ({len(state.session.attachments)} attachment(s))."


async def cmd_set(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """
    /set title TEXT | details TEXT | assignee ID_OR_NAME|- | deadline YYYY-MM-DD|- | status STATUS
    """
    session = state.session
    if session is None:
        return NO_SESSION
    if len(args) < 2:
        return "Usage: /set title|details|assignee|deadline|status VALUE"

    field_name = args[0].lower()
    value = " ".join(args[1:])

    if field_name == "title":
        session.title = value
    elif field_name == "details":
        session.details = value
    elif field_name in ("assignee", "assigned"):
        session.assigned_id = None if value == "-" else await _resolve_employee_id(state, value)
    elif field_name == "deadline":
        session.deadline = None if value == "-" else _parse_day(value)
    elif field_name == "status":
        session.status = TaskStatus.parse(value)
    else:
        return f"Unknown field: {field_name}"
    return f"{field_name} set."


async def cmd_attach(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    session = state.session
    if session is None:
        return NO_SESSION
    if not args:
        return "Usage: /attach PATH [MIME]"

    path = Path(args[0]).expanduser()
    if not path.is_file():
        return f"File not found: {path}"
    mime = args[1] if len(args) > 1 else (mimetypes.guess_type(path.name)[0] or "application/octet-stream")

    # Check the declared size before reading anything into memory.
    validate_upload(path.name, mime, path.stat().st_size, state.policy)
    staged = stage_file(session, state.policy, name=path.name, mime=mime, content=path.read_bytes())
    return f"Staged {staged.name} ({staged.id})."


async def cmd_link(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    session = state.session
    if session is None:
        return NO_SESSION
    if not args:
        return "Usage: /link URL [LABEL]"
    staged = stage_link(session, args[0], " ".join(args[1:]))
    return f"Staged link {staged.name} ({staged.id})."


async def cmd_detach(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    session = state.session
    if session is None:
        return NO_SESSION
    if not args:
        return "Usage: /detach ATTACHMENT_ID"
    if not remove_staged(session, args[0]):
        return f"No attachment {args[0]} in this form."
    return f"Removed {args[0]} (takes effect on /save)."


async def cmd_staged(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    session = state.session
    if session is None:
        return NO_SESSION
    if not session.attachments:
        return "No attachments added."
    return "\n".join(format_working_item(a) for a in session.attachments)


async def cmd_save(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    session = state.session
    if session is None:
        return NO_SESSION
    if emit and session.staged_count:
        emit(f"Saving {session.staged_count} new attachment(s)...")
    # On failure the form stays open with everything staged, ready for another /save.
    task = await save_session(
        session,
        tasks=state.tasks,
        employees=state.employees,
        materializer=state.materializer,
    )
    state.session = None
    return f"Saved: {format_task(task)}"


async def cmd_cancel(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    if state.session is None:
        return "Nothing to cancel."
    cancel_session(state.session)
    state.session = None
    return "Form closed; changes discarded."


async def cmd_delete(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    if not args:
        return "Usage: /delete TASK_ID"
    await state.tasks.delete(args[0])
    return f"Deleted {args[0]}."


async def cmd_export(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    target = Path(args[0]) if args else Path(state.settings.export_path)
    tasks = await state.tasks.list()
    path = write_export(target, tasks)
    return f"Exported {len(tasks)} task(s) to {path}."


async def cmd_reconcile(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    repaired = await reconcile_assignees(state)
    if not repaired:
        return "All assignee names are current."
    return f"Repaired {len(repaired)} task(s): " + ", ".join(t.id for t in repaired)


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("status", cmd_status, help_text="Show storage mode, limits and the open form.")
registry.register(
    "tasks",
    cmd_tasks,
    help_text="List tasks: /tasks [status=S] [assigned=ID|NAME] [date=YYYY-MM-DD] [text].",
    aliases=["ls"],
)
registry.register("employees", cmd_employees, help_text="List employees.", aliases=["emps"])
registry.register("hire", cmd_hire, help_text="Add an employee: /hire NAME.")
registry.register("add", cmd_add, help_text="Open a new task form: /add [TITLE].")
registry.register("edit", cmd_edit, help_text="Open a task for editing: /edit TASK_ID.")
registry.register("set", cmd_set, help_text="Set a form field: /set title|details|assignee|deadline|status VALUE.")
registry.register("attach", cmd_attach, help_text="Stage a file: /attach PATH [MIME].")
registry.register("link", cmd_link, help_text="Stage an external link: /link URL [LABEL].")
registry.register("detach", cmd_detach, help_text="Remove an attachment from the form: /detach ID.")
registry.register("staged", cmd_staged, help_text="Show the form's attachments.")
registry.register("save", cmd_save, help_text="Save the open form.")
registry.register("cancel", cmd_cancel, help_text="Close the form without saving.")
registry.register("delete", cmd_delete, help_text="Delete a task and its attachments: /delete TASK_ID.")
registry.register("export", cmd_export, help_text="Export all tasks to CSV: /export [PATH].")
registry.register("reconcile", cmd_reconcile, help_text="Refresh stale assignee names from the directory.")
