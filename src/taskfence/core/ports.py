# src/taskfence/core/ports.py

"""
Ports (interfaces) used by the geofence monitor and the CLI.

The monitor depends on Protocols instead of concrete implementations.
This keeps sensors/notification transports/storage swappable and makes testing easier.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from ..geofence.geo_models import Coordinate, NamedLocation
    from ..geofence.notifications import NotificationOutcome, PermissionResult
    from ..tasks.task_models import LocationReminder, Task

SampleCallback = Callable[["Coordinate"], None]
ErrorCallback = Callable[[Exception], None]
Unsubscribe = Callable[[], None]


class PositionSource(Protocol):
    """
    Push-style position sensor.

    subscribe() starts delivering samples to on_sample (and acquisition failures to
    on_error) until the returned unsubscribe callable is invoked.
    """

    def is_supported(self) -> bool: ...

    def subscribe(self, on_sample: SampleCallback, on_error: ErrorCallback) -> Unsubscribe: ...


class NotificationSink(Protocol):
    """
    Capability-gated notification transport.

    notify() must never raise; it reports what happened instead.
    """

    permission: PermissionResult | None

    def is_supported(self) -> bool: ...

    async def request_permission(self) -> PermissionResult: ...

    def notify(
            self,
            title: str,
            body: str,
            tag: str,
            metadata: dict[str, Any] | None = None,
    ) -> NotificationOutcome: ...


class LocationRepo(Protocol):
    def list_locations(self) -> list[NamedLocation]: ...
    def get_location(self, location_id: str) -> NamedLocation | None: ...
    def save_location(self, location: NamedLocation) -> None: ...
    def add_location(
            self,
            name: str,
            latitude: float,
            longitude: float,
            radius: float = ...,
    ) -> NamedLocation: ...
    def delete_location(self, location_id: str) -> bool: ...


class TaskRepo(Protocol):
    # Monitor API
    def list_tasks(self, *, tag: Any | None = None) -> list[Task]: ...

    # CRUD used by the console
    def get_task(self, task_id: int) -> Task | None: ...
    def list_open_tasks(self) -> list[Task]: ...
    def add_task(
            self,
            *,
            title: str,
            description: str = "",
            due_at: float | None = None,
            priority: Any = ...,
            tag: Any = ...,
            location_reminder: LocationReminder | None = None,
            completed: bool = False,
    ) -> int: ...
    def set_completed(self, task_id: int, completed: bool = True) -> bool: ...
    def toggle_completed(self, task_id: int) -> bool | None: ...
    def set_location_reminder(self, task_id: int, reminder: LocationReminder | None) -> bool: ...
    def delete_task(self, task_id: int) -> bool: ...
    def count_tasks(self) -> int: ...
