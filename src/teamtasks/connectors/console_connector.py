# src/teamtasks/connectors/console_connector.py

from __future__ import annotations

import asyncio
import logging
import sys
from datetime import datetime

from ..cli.commands import registry as command_registry
from ..core.state import AppState
from ..errors import TaskTrackerError

logger = logging.getLogger(__name__)


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _rewrite_prev_line(line: str) -> None:
    """
    Replace the last terminal line with `line`.
    Best-effort: if not a TTY, just print a new line.
    """
    if sys.stdout.isatty():
        sys.stdout.write("\033[1A\033[2K\r")
        sys.stdout.write(line + "\n")
        sys.stdout.flush()
    else:
        print(line)


def _print_ts(text: str) -> None:
    print(f"[{_ts_local()}] {text}")


def _prompt(state: AppState) -> str:
    session = state.session
    if session is None:
        return ">>> "
    label = "new" if session.is_new else session.task_id
    return f">>> [{label}] "


async def run_console_loop(state: AppState) -> None:
    logger.info("Console connector started (storage=%s).", state.settings.storage_mode)
    _print_ts(f"[CONSOLE] {state.settings.app_name}. Use /help for commands. Use /exit to quit.\n")

    def emit(text: str) -> None:
        # Immediate feedback for slow operations (uploads)
        print(f"[{_ts_local()}] {text}", flush=True)

    while True:
        prompt = _prompt(state)
        try:
            # input() blocks; keep the loop free so snapshots keep arriving
            user_input = (await asyncio.to_thread(input, prompt)).strip()
            _rewrite_prev_line(f"[{_ts_local()}] {prompt}{user_input}")
        except EOFError:
            logger.info("Console EOF received, exiting.")
            break
        except KeyboardInterrupt:
            logger.info("Console KeyboardInterrupt, exiting.")
            print()
            break

        if not user_input:
            continue

        if user_input.lower() in ("/exit", "/quit"):
            logger.info("Console exit command received.")
            break

        try:
            cmd_response = await command_registry.handle(state, user_input, emit=emit)
        except TaskTrackerError as e:
            logger.info("Command rejected: %s", e)
            cmd_response = f"Error: {e}"
        except Exception:
            logger.exception("Command handler crashed.")
            cmd_response = "Internal error while handling a command."

        if cmd_response is None:
            cmd_response = "Commands start with '/'. Use /help to list them."
        _print_ts(cmd_response)

    logger.info("Console connector finished.")
