# src/taskfence/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app.
- No secrets required at import time.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

ENV_PREFIX = "TASKFENCE"

NOTIFIER_CHOICES = ("console", "matrix", "none")

load_dotenv(override=False)


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("Invalid value for %s=%r; using default %s", name, raw, default)
        return default


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


def _env_optional_path(name: str) -> Path | None:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return None
    return Path(raw).expanduser()


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str

    # ---- Connector flags ----
    console_enabled: bool

    # ---- Local data paths (ignored by git) ----
    data_dir: Path
    tasks_db_path: Path
    locations_path: Path

    # ---- Positioning ----
    position_high_accuracy: bool
    position_timeout_seconds: float
    position_maximum_age_seconds: float
    position_poll_interval_seconds: float
    position_replay_csv: Path | None
    default_radius_m: float

    # ---- Notifications ----
    notifier: str

    # ---- Matrix ----
    matrix_homeserver: str
    matrix_user_id: str
    matrix_password: str
    matrix_store_path: Path
    matrix_notify_room: str

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "taskfence").strip() or "taskfence"
        log_level = _env(_k("LOG_LEVEL"), "INFO")

        console_enabled = _env_bool(_k("CONSOLE_ENABLED"), True)

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/taskfence"))
        tasks_db_path = _env_path(_k("TASKS_DB_PATH"), data_dir / "tasks.sqlite3")
        locations_path = _env_path(_k("LOCATIONS_PATH"), data_dir / "locations.json")

        position_high_accuracy = _env_bool(_k("POSITION_HIGH_ACCURACY"), True)
        position_timeout_seconds = max(0.1, _env_float(_k("POSITION_TIMEOUT_SECONDS"), 10.0))
        position_maximum_age_seconds = max(0.0, _env_float(_k("POSITION_MAXIMUM_AGE_SECONDS"), 60.0))
        position_poll_interval_seconds = max(0.1, _env_float(_k("POSITION_POLL_INTERVAL_SECONDS"), 5.0))
        position_replay_csv = _env_optional_path(_k("POSITION_REPLAY_CSV"))

        default_radius_m = _env_float(_k("DEFAULT_RADIUS_M"), 100.0)
        if default_radius_m <= 0:
            default_radius_m = 100.0

        matrix_homeserver = _env(_k("MATRIX_HOMESERVER")).strip()
        matrix_user_id = _env(_k("MATRIX_USER_ID")).strip()
        matrix_password = _env(_k("MATRIX_PASSWORD")).strip()
        matrix_store_path = _env_path(_k("MATRIX_STORE_PATH"), data_dir / "matrix_store")
        matrix_notify_room = _env(_k("MATRIX_NOTIFY_ROOM")).strip()

        # Default to Matrix when it is configured, console otherwise.
        default_notifier = "matrix" if (matrix_homeserver and matrix_user_id) else "console"
        notifier = _env(_k("NOTIFIER"), default_notifier).strip().lower()
        if notifier not in NOTIFIER_CHOICES:
            logger.warning("Unknown %s=%r; using %s", _k("NOTIFIER"), notifier, default_notifier)
            notifier = default_notifier

        return Settings(
            app_name=app_name,
            log_level=log_level,
            console_enabled=console_enabled,
            data_dir=data_dir,
            tasks_db_path=tasks_db_path,
            locations_path=locations_path,
            position_high_accuracy=position_high_accuracy,
            position_timeout_seconds=position_timeout_seconds,
            position_maximum_age_seconds=position_maximum_age_seconds,
            position_poll_interval_seconds=position_poll_interval_seconds,
            position_replay_csv=position_replay_csv,
            default_radius_m=default_radius_m,
            notifier=notifier,
            matrix_homeserver=matrix_homeserver,
            matrix_user_id=matrix_user_id,
            matrix_password=matrix_password,
            matrix_store_path=matrix_store_path,
            matrix_notify_room=matrix_notify_room,
        )


SETTINGS = Settings.from_env()


def get_settings() -> Settings:
    return SETTINGS
