# src/taskfence/logging_setup.py

from __future__ import annotations

import logging
import logging.handlers
import sys
from pathlib import Path

# Minimum console level per logger-name prefix. First match wins; unmatched names
# (third-party libraries) fall through to DEFAULT_THIRD_PARTY_LEVEL.
CONSOLE_LEVEL_BY_PREFIX: tuple[tuple[str, int], ...] = (
    # Runs on the background loop; login/sync chatter would interleave with the prompt.
    ("taskfence.connectors.matrix_", logging.WARNING),
    ("taskfence.connectors.background_loop", logging.WARNING),
    ("taskfence.", logging.NOTSET),
    ("py.warnings", logging.ERROR),
)
DEFAULT_THIRD_PARTY_LEVEL = logging.ERROR

# Libraries that log a lot at INFO even into the file.
NOISY_LIBRARIES = ("nio", "aiohttp", "asyncio")


class _ConsoleNoiseFilter(logging.Filter):
    """
    Keep the interactive console readable:
    - taskfence logs pass (subject to the handler level)
    - background components (Matrix, the asyncio loop thread) only from WARNING+
    - third-party libraries and captured Python warnings only from ERROR+
    """

    def filter(self, record: logging.LogRecord) -> bool:
        for prefix, min_level in CONSOLE_LEVEL_BY_PREFIX:
            if record.name.startswith(prefix):
                return record.levelno >= min_level
        return record.levelno >= DEFAULT_THIRD_PARTY_LEVEL


def quiet_libraries(console_level: int) -> None:
    """Cap library loggers so DEBUG file logs are not flooded by sync/HTTP traffic."""
    for name in NOISY_LIBRARIES:
        logging.getLogger(name).setLevel(max(console_level, logging.INFO))


def setup_logging(
    *,
    log_dir: str | Path = ".local/taskfence",
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
    max_bytes: int = 2_000_000,
    backup_count: int = 3,
) -> Path:
    """
    Configure root logging once at startup and return the log file path.

    - console: stderr, filtered for interactive use
    - file: <log_dir>/taskfence.log, size-rotated
    """
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / "taskfence.log"

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    for h in list(root.handlers):
        root.removeHandler(h)

    fmt = logging.Formatter(
        fmt="%(asctime)s.%(msecs)03d %(levelname)s %(name)s [%(threadName)s]: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    console.setFormatter(fmt)
    console.addFilter(_ConsoleNoiseFilter())
    root.addHandler(console)

    file_handler = logging.handlers.RotatingFileHandler(
        log_file, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
    )
    file_handler.setLevel(file_level)
    file_handler.setFormatter(fmt)
    root.addHandler(file_handler)

    logging.captureWarnings(True)
    quiet_libraries(console_level)
    return log_file
