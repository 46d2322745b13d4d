# src/taskfence/connectors/console_connector.py

from __future__ import annotations

import contextlib
import logging
from datetime import datetime

from ..cli.commands import CommandEmitter
from ..cli.commands import registry as command_registry
from ..core.state import AppState

logger = logging.getLogger(__name__)

EXIT_COMMANDS = ("/exit", "/quit")
NOT_A_COMMAND = "Commands start with '/'. Use /help to list available commands."


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _prompt(state: AppState) -> str:
    flag = "on" if state.monitor.is_monitoring_active() else "off"
    return f"taskfence[monitor:{flag}]> "


def handle_line(state: AppState, line: str, emit: CommandEmitter | None = None) -> str:
    """
    Run one console line through the command registry and return the text to show.

    Commands run under state.lock so they never interleave with each other;
    handler crashes are logged and turned into a generic message.
    """
    lock = getattr(state, "lock", None)
    try:
        with lock if lock is not None else contextlib.nullcontext():
            reply = command_registry.handle(state, line, emit=emit)
    except Exception:
        logger.exception("Command handler crashed (line=%r).", line)
        return "Internal error while handling a command."
    return NOT_A_COMMAND if reply is None else reply


def run_console_loop(state: AppState) -> None:
    logger.info("Console connector started (source=%s).", type(state.position_source).__name__)
    print(f"[{_ts_local()}] [CONSOLE] Use /help for commands, /exit to quit.")

    def emit(text: str) -> None:
        # Immediate feedback for slow commands (e.g., Matrix login on /notify)
        print(f"[{_ts_local()}] {text}", flush=True)

    while True:
        try:
            line = input(_prompt(state)).strip()
        except EOFError:
            logger.info("Console EOF received, exiting.")
            break
        except KeyboardInterrupt:
            logger.info("Console KeyboardInterrupt, exiting.")
            print()
            break

        if not line:
            continue
        if line.lower() in EXIT_COMMANDS:
            logger.info("Console exit command received.")
            break

        print(f"[{_ts_local()}] {handle_line(state, line, emit=emit)}")

    logger.info("Console connector finished.")
