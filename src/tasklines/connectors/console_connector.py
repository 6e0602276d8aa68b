# src/tasklines/connectors/console_connector.py

from __future__ import annotations

import asyncio
import inspect
import logging
from datetime import datetime

from ..cli.commands import add_free_text
from ..cli.commands import registry as command_registry
from ..core.state import AppState

logger = logging.getLogger(__name__)


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _print_ts(text: str) -> None:
    print(f"[{_ts_local()}] {text}", flush=True)


async def handle_console_line(state: AppState, user_input: str) -> str:
    """One prompt line -> reply text. Slash commands go to the registry, anything else is a new task."""
    try:
        reply = command_registry.handle(state, user_input, emit=_print_ts)
        if reply is None:
            return add_free_text(state, user_input)
        if inspect.isawaitable(reply):
            reply = await reply
        return str(reply)
    except Exception:
        logger.exception("Command handler crashed.")
        return "Internal error while handling a command."


async def run_console_loop(state: AppState) -> None:
    """
    Read lines from stdin until /exit or EOF.

    input() blocks, so it runs in a worker thread; everything else (store updates,
    dispatcher triggers) stays on the event loop.
    """
    logger.info("Console connector started.")
    _print_ts("[CONSOLE] Type a task to add it. Use /help for commands. Use /exit to quit.\n")

    while True:
        try:
            user_input = (await asyncio.to_thread(input, ">>> ")).strip()
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

        _print_ts(await handle_console_line(state, user_input))

    logger.info("Console connector finished.")
