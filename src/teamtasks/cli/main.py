# src/teamtasks/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState, seeds demo data for a fresh local store,
starts the live subscriptions and runs the console REPL until /exit.
"""

from __future__ import annotations

import asyncio
import logging

from ..cli.bootstrap import create_initial_state, start_realtime
from ..config import get_settings
from ..connectors.console_connector import run_console_loop
from ..core.state import AppState
from ..logging_setup import level_from_name, setup_logging
from ..tasks.task_api import seed_demo_tasks

logger = logging.getLogger(__name__)


async def _run(state: AppState) -> None:
    try:
        if not state.settings.is_remote and state.settings.seed_demo_data:
            await seed_demo_tasks(state)

        await start_realtime(state)
        await run_console_loop(state)
    finally:
        state.cancel_subscriptions()


def main() -> None:
    settings = get_settings()

    log_path = setup_logging(
        log_file=settings.log_file,
        console_level=level_from_name(settings.log_level, logging.INFO),
        file_level=level_from_name(settings.log_file_level, logging.DEBUG),
    )

    logger.info("Starting %s... (log file: %s)", settings.app_name, log_path or "disabled")

    # IMPORTANT: reuse same settings object
    state = create_initial_state(settings=settings)

    try:
        asyncio.run(_run(state))
    except KeyboardInterrupt:
        logger.info("Interrupted.")
    finally:
        logger.info("Bye.")


if __name__ == "__main__":
    main()
