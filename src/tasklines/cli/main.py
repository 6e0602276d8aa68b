# src/tasklines/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState, then runs on one event loop:
- the remote fetch loop (vault -> store),
- the sync dispatcher (store -> vault),
- the console REPL.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging

from ..cli.bootstrap import create_initial_state
from ..config import get_settings
from ..connectors.console_connector import run_console_loop
from ..core.state import AppState
from ..logging_setup import setup_logging
from ..tasks.task_dispatcher import refresh_once, run_remote_fetch_loop

logger = logging.getLogger(__name__)


async def run_app(state: AppState) -> None:
    # First snapshot before the prompt, so /list is meaningful right away.
    try:
        n = await refresh_once(state.store, state.vault)
        logger.info("Loaded %d tasks from the vault", n)
    except Exception:
        logger.exception("Initial vault scan failed.")

    state.dispatcher.attach()
    fetch_task = asyncio.create_task(
        run_remote_fetch_loop(
            state.store,
            state.vault,
            interval_seconds=float(getattr(state.settings, "fetch_interval_seconds", 5.0)),
        ),
        name="remote-fetch",
    )

    try:
        await run_console_loop(state)
    finally:
        fetch_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await fetch_task

        state.dispatcher.close()
        await state.dispatcher.wait_idle()

        pending = state.store.entries_needing_sync()
        if pending:
            logger.warning("Exiting with %d task(s) not written to the vault.", len(pending))


def main() -> None:
    settings = get_settings()

    level_name = str(getattr(settings, "log_level", "INFO")).upper()
    console_level = getattr(logging, level_name, logging.INFO)

    log_dir = getattr(settings, "data_dir", ".local/tasklines")
    log_file = setup_logging(log_dir=log_dir, console_level=console_level)

    logger.info("Starting %s... (log file: %s)", getattr(settings, "app_name", "tasklines"), log_file)

    state = create_initial_state(settings=settings)

    try:
        asyncio.run(run_app(state))
    except KeyboardInterrupt:
        logger.info("Interrupted.")
    finally:
        logger.info("Bye.")


if __name__ == "__main__":
    main()
