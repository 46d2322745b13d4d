# src/taskfence/core/state.py

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Any

from ..geofence.monitor import GeofenceMonitor, MonitorSession
from .ports import LocationRepo, NotificationSink, PositionSource, TaskRepo


@dataclass
class AppState:
    # Settings are kept on the state so commands can read them without importing config.
    settings: Any

    task_store: TaskRepo
    location_store: LocationRepo
    position_source: PositionSource
    notifier: NotificationSink
    monitor: GeofenceMonitor

    # Serializes console commands with each other; samples are serialized by MonitorSession itself.
    lock: threading.RLock = field(default_factory=threading.RLock)
    background: Any = None

    def start_monitoring(self) -> MonitorSession | None:
        return self.monitor.start_monitoring(
            self.location_store.list_locations,
            self.task_store.list_tasks,
        )
