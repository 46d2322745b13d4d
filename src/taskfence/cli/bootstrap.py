# src/taskfence/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- picks the position source and notification sink from settings,
- wires concrete implementations into AppState.
"""

from __future__ import annotations

import logging

from ..config import get_settings
from ..connectors.background_loop import BackgroundLoopRunner, start_background_loop
from ..core.ports import NotificationSink, PositionSource
from ..core.state import AppState
from ..geofence.location_store import LocationStore
from ..geofence.monitor import GeofenceMonitor
from ..geofence.notifications import ConsoleNotifier, NullNotifier
from ..geofence.position_sources import (
    CsvTrackFetcher,
    ManualPositionSource,
    PollingPositionSource,
    PositionOptions,
)
from ..tasks.task_store import TaskStore

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.tasks_db_path.parent.mkdir(parents=True, exist_ok=True)
    settings.locations_path.parent.mkdir(parents=True, exist_ok=True)


def position_options_from(settings) -> PositionOptions:
    return PositionOptions(
        high_accuracy=bool(getattr(settings, "position_high_accuracy", True)),
        timeout_seconds=float(getattr(settings, "position_timeout_seconds", 10.0)),
        maximum_age_seconds=float(getattr(settings, "position_maximum_age_seconds", 60.0)),
    )


def build_position_source(settings, background: BackgroundLoopRunner | None) -> PositionSource:
    """
    Replay a CSV track when one is configured, otherwise take fixes from the console (/pos).
    """
    replay = getattr(settings, "position_replay_csv", None)
    if replay is not None and background is not None:
        try:
            fetcher = CsvTrackFetcher(replay)
        except (OSError, KeyError):
            logger.exception("Failed to load position track %s; falling back to manual positions", replay)
        else:
            return PollingPositionSource(
                fetcher,
                options=position_options_from(settings),
                interval_seconds=float(getattr(settings, "position_poll_interval_seconds", 5.0)),
                loop=background.loop,
            )
    return ManualPositionSource()


def build_notifier(settings, background: BackgroundLoopRunner | None) -> NotificationSink:
    kind = str(getattr(settings, "notifier", "console"))
    if kind == "matrix":
        from ..connectors.matrix_notifier import MatrixNotifier

        return MatrixNotifier(settings, background)
    if kind == "none":
        return NullNotifier()
    return ConsoleNotifier()


def create_initial_state(*, settings=None) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings injectable makes the app easier to test and avoids hidden global config reads.
    If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    needs_loop = getattr(settings, "position_replay_csv", None) is not None or getattr(
        settings, "notifier", "console"
    ) == "matrix"
    background = start_background_loop() if needs_loop else None

    position_source = build_position_source(settings, background)
    notifier = build_notifier(settings, background)

    return AppState(
        settings=settings,
        task_store=TaskStore(settings.tasks_db_path),
        location_store=LocationStore(settings.locations_path),
        position_source=position_source,
        notifier=notifier,
        monitor=GeofenceMonitor(position_source, notifier),
        background=background,
    )
