# tests/fakes.py

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from taskfence.geofence.geo_models import Coordinate, NamedLocation
from taskfence.geofence.notifications import BaseNotifier, NotificationOutcome, PermissionResult
from taskfence.tasks.task_models import LocationReminder, Task

# Office at 48.8566, 2.3522; one degree of latitude is ~111.2 km, so 0.0009 deg ~ 100 m.
OFFICE = NamedLocation(id="office", name="Office", coordinates=Coordinate(48.8566, 2.3522), radius=100.0)
INSIDE_OFFICE = Coordinate(48.8566, 2.3522)
FAR_FROM_OFFICE = Coordinate(48.8766, 2.3522)


@dataclass(slots=True)
class SentNotification:
    title: str
    body: str
    tag: str
    metadata: dict[str, Any]


class RecordingNotifier(BaseNotifier):
    """
    Notification sink for unit tests.

    - permission starts as GRANTED (tests that care about the gate reset it)
    - captures every delivered notification for assertions
    """

    name = "recording"

    def __init__(self, *, supported: bool = True, grant: bool = True) -> None:
        super().__init__()
        self.supported = supported
        self.grant = grant
        self.permission = PermissionResult.GRANTED if supported and grant else None
        self.sent: list[SentNotification] = []
        self.requests = 0

    def is_supported(self) -> bool:
        return self.supported

    async def _request(self) -> PermissionResult:
        self.requests += 1
        return PermissionResult.GRANTED if self.grant else PermissionResult.DENIED

    def _deliver(self, title: str, body: str, tag: str, metadata: dict[str, Any]) -> None:
        self.sent.append(SentNotification(title=title, body=body, tag=tag, metadata=metadata))

    @property
    def titles(self) -> list[str]:
        return [n.title for n in self.sent]


class ExplodingNotifier:
    """A sink that violates the never-raise contract; the monitor must survive it."""

    permission = PermissionResult.GRANTED

    def __init__(self) -> None:
        self.calls = 0

    def is_supported(self) -> bool:
        return True

    async def request_permission(self) -> PermissionResult:
        return PermissionResult.GRANTED

    def notify(self, title: str, body: str, tag: str, metadata: dict[str, Any] | None = None) -> NotificationOutcome:
        self.calls += 1
        raise RuntimeError("sink exploded")


@dataclass(slots=True)
class MutableSuppliers:
    """In-memory location/task lists handed to the monitor as supplier callables."""

    locations: list[NamedLocation] = field(default_factory=list)
    tasks: list[Task] = field(default_factory=list)

    def list_locations(self) -> list[NamedLocation]:
        return list(self.locations)

    def list_tasks(self) -> list[Task]:
        return list(self.tasks)


def make_task(
    task_id: int,
    title: str = "Buy milk",
    *,
    location_id: str | None = "office",
    enabled: bool = True,
    arrival: bool = True,
    departure: bool = False,
    message: str | None = None,
    completed: bool = False,
    created_at: float = 0.0,
    due_at: float | None = None,
    **kwargs: Any,
) -> Task:
    reminder = None
    if location_id is not None:
        reminder = LocationReminder(
            location_id=location_id,
            enabled=enabled,
            notify_on_arrival=arrival,
            notify_on_departure=departure,
            message=message,
        )
    return Task(
        id=task_id,
        title=title,
        description="",
        completed=completed,
        created_at=created_at,
        updated_at=created_at,
        due_at=due_at,
        location_reminder=reminder,
        **kwargs,
    )


def tags(notifications: Iterable[SentNotification]) -> list[str]:
    return [n.tag for n in notifications]
