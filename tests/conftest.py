# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from taskfence.core.state import AppState
from taskfence.geofence.location_store import LocationStore
from taskfence.geofence.monitor import GeofenceMonitor
from taskfence.geofence.position_sources import ManualPositionSource
from taskfence.tasks.task_store import TaskStore

from .fakes import RecordingNotifier


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with AppState and the bootstrap helpers.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated from the caller's environment/.env.
    """
    return SimpleNamespace(
        app_name="taskfence-test",
        # Paths (tmp per test run)
        data_dir=tmp_path,
        tasks_db_path=tmp_path / "tasks.sqlite3",
        locations_path=tmp_path / "locations.json",
        # Positioning
        position_high_accuracy=True,
        position_timeout_seconds=10.0,
        position_maximum_age_seconds=60.0,
        position_poll_interval_seconds=5.0,
        position_replay_csv=None,
        default_radius_m=100.0,
        # Notifications
        notifier="console",
        matrix_homeserver="",
        matrix_user_id="",
        matrix_password="",
        matrix_store_path=tmp_path / "matrix_store",
        matrix_notify_room="",
    )


@pytest.fixture()
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture()
def source() -> ManualPositionSource:
    return ManualPositionSource()


@pytest.fixture()
def task_store(settings: SimpleNamespace) -> TaskStore:
    return TaskStore(settings.tasks_db_path)


@pytest.fixture()
def location_store(settings: SimpleNamespace) -> LocationStore:
    return LocationStore(settings.locations_path)


@pytest.fixture()
def state(
    settings: SimpleNamespace,
    task_store: TaskStore,
    location_store: LocationStore,
    source: ManualPositionSource,
    notifier: RecordingNotifier,
) -> AppState:
    """
    AppState wired with a manual position source and a recording notifier.

    NOTE: We keep real stores here (SQLite TaskStore, JSON LocationStore) because
    their correctness is part of what we want to test.
    """
    return AppState(
        settings=settings,
        task_store=task_store,
        location_store=location_store,
        position_source=source,
        notifier=notifier,
        monitor=GeofenceMonitor(source, notifier),
    )
