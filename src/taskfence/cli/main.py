# src/taskfence/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState, then:
- asks the notification sink for permission,
- starts location monitoring,
- runs the console REPL in the main thread (optional) or waits for a signal.
"""

from __future__ import annotations

import asyncio
import logging
import signal
import threading

from ..cli.bootstrap import create_initial_state
from ..config import get_settings
from ..connectors.console_connector import run_console_loop
from ..logging_setup import setup_logging

logger = logging.getLogger(__name__)


def _shutdown(state) -> None:
    """Best-effort shutdown (no exceptions should escape)."""
    try:
        state.monitor.stop_monitoring()
    except Exception:
        logger.exception("Failed to stop location monitoring.")

    # TaskStore uses short-lived sqlite connections per call; no explicit close required.
    try:
        notifier = getattr(state, "notifier", None)
        if notifier is not None and hasattr(notifier, "close"):
            notifier.close()
    except Exception:
        logger.debug("Notifier close failed.", exc_info=True)

    background = getattr(state, "background", None)
    if background is not None:
        background.stop()
        background.join(timeout=10.0)


def main() -> None:
    settings = get_settings()

    # choose console log level from settings.log_level
    level_name = str(getattr(settings, "log_level", "INFO")).upper()
    console_level = getattr(logging, level_name, logging.INFO)

    log_dir = getattr(settings, "data_dir", ".local/taskfence")
    log_file = setup_logging(log_dir=log_dir, console_level=console_level)

    logger.info("Starting %s (log file: %s)...", getattr(settings, "app_name", "taskfence"), log_file)

    # IMPORTANT: reuse same settings object
    state = create_initial_state(settings=settings)

    try:
        permission = asyncio.run(state.notifier.request_permission())
        logger.info("Notification permission: %s", permission.value)
    except Exception:
        logger.exception("Notification permission request failed.")

    if state.start_monitoring() is None:
        logger.warning("Location monitoring could not be started.")

    # Use an Event so main can wait without a busy while-loop.
    stop_main = threading.Event()

    def _handle_signal(signum, _frame) -> None:
        logger.info("Signal %s received, shutting down...", signum)
        stop_main.set()

    try:
        # The console REPL handles Ctrl+C itself (KeyboardInterrupt in input()).
        if not settings.console_enabled:
            signal.signal(signal.SIGINT, _handle_signal)
        signal.signal(signal.SIGTERM, _handle_signal)
    except (ValueError, OSError):
        # Not on the main thread, or the platform lacks SIGTERM.
        pass

    try:
        if settings.console_enabled:
            run_console_loop(state)
            stop_main.set()
        else:
            logger.info("Console disabled. Monitoring in the background. Press Ctrl+C to stop.")
            stop_main.wait()
    finally:
        _shutdown(state)
        logger.info("Bye.")


if __name__ == "__main__":
    main()
