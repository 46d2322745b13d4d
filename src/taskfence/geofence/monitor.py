# src/taskfence/geofence/monitor.py

"""
Geofence monitor.

Edge-triggered arrival/departure detection:
- every position sample is tested against every saved location (Haversine, inclusive radius),
- the previous inside/outside flag per location lives in the session's ProximityState,
- a notification fires only when that flag flips.

On the first sample for a location the previous flag is seeded as the opposite of the
current one, so a user who is already inside a zone gets the arrival reminder right away
(and a user outside gets departure reminders). Restarting monitoring resets the state, so
the same catch-up happens after every restart.

Locations and tasks are read through supplier callables on every sample, so edits made
while monitoring is active take effect on the next sample.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable, Sequence

from ..core.ports import ErrorCallback, NotificationSink, PositionSource, Unsubscribe
from ..tasks.task_models import Task
from .distance import is_near
from .geo_models import Coordinate, NamedLocation
from .notifications import NotificationEvent, NotificationOutcome, TransitionKind

logger = logging.getLogger(__name__)

LocationSupplier = Callable[[], Iterable[NamedLocation]]
TaskSupplier = Callable[[], Iterable[Task]]

ProximityState = dict[str, bool]


def _reminder_tasks_for(location_id: str, tasks: Sequence[Task]) -> list[Task]:
    out: list[Task] = []
    for task in tasks:
        reminder = task.location_reminder
        if task.completed or reminder is None or not reminder.enabled:
            continue
        if reminder.location_id == location_id:
            out.append(task)
    return out


def _build_event(kind: TransitionKind, location: NamedLocation, task: Task) -> NotificationEvent:
    reminder = task.location_reminder
    message = (reminder.message if reminder else None) or f"Reminder: {task.title}"
    if kind == TransitionKind.ARRIVAL:
        title = f"Arrived at {location.name}"
    else:
        title = f"Left {location.name}"
    return NotificationEvent(
        kind=kind,
        title=title,
        body=message,
        tag=f"location-{kind.value}-{task.id}",
        metadata={"task_id": task.id, "location_id": location.id},
    )


def evaluate_sample(
    position: Coordinate,
    locations: Iterable[NamedLocation],
    tasks: Iterable[Task],
    state: ProximityState,
) -> list[NotificationEvent]:
    """
    Run one arrival/departure pass and update state in place.

    Pure apart from the state mutation; returns the notifications to dispatch.
    """
    task_list = list(tasks)
    events: list[NotificationEvent] = []

    for location in locations:
        near = is_near(position, location)
        was_near = state.get(location.id, not near)
        state[location.id] = near

        if near == was_near:
            continue

        relevant = _reminder_tasks_for(location.id, task_list)
        if not relevant:
            continue

        if near:
            for task in relevant:
                if task.location_reminder and task.location_reminder.notify_on_arrival:
                    events.append(_build_event(TransitionKind.ARRIVAL, location, task))
        else:
            for task in relevant:
                if task.location_reminder and task.location_reminder.notify_on_departure:
                    events.append(_build_event(TransitionKind.DEPARTURE, location, task))

    return events


def _log_position_error(err: Exception) -> None:
    code = getattr(err, "code", None)
    logger.warning("Location monitoring error (code=%s): %s", code, err)


class MonitorSession:
    """
    One monitoring subscription plus its private ProximityState.

    Samples are handled one at a time (a lock serializes delivery from sources that
    may call back from another thread). After stop() no further samples are processed;
    a sample already being processed is allowed to finish.
    """

    def __init__(
        self,
        *,
        source: PositionSource,
        location_supplier: LocationSupplier,
        task_supplier: TaskSupplier,
        notifier: NotificationSink,
        on_error: ErrorCallback | None = None,
        on_stop: Callable[[MonitorSession], None] | None = None,
    ) -> None:
        self._source = source
        self._location_supplier = location_supplier
        self._task_supplier = task_supplier
        self._notifier = notifier
        self._on_error = on_error or _log_position_error
        self._on_stop = on_stop

        self._sample_lock = threading.Lock()
        self._unsubscribe: Unsubscribe | None = None
        self.proximity: ProximityState = {}

        self.samples_processed = 0
        self.notifications_sent = 0
        self.last_position: Coordinate | None = None

    @property
    def active(self) -> bool:
        return self._unsubscribe is not None

    def start(self) -> None:
        if self._unsubscribe is not None:
            return
        # Set before subscribing: a source may deliver synchronously from subscribe().
        self._unsubscribe = lambda: None
        try:
            self._unsubscribe = self._source.subscribe(self.handle_sample, self.handle_error)
        except Exception:
            self._unsubscribe = None
            raise
        logger.info("Location monitoring started")

    def stop(self) -> None:
        unsubscribe, self._unsubscribe = self._unsubscribe, None
        if unsubscribe is None:
            return
        try:
            unsubscribe()
        except Exception:
            logger.exception("Failed to unsubscribe from position source")
        self.proximity = {}
        logger.info(
            "Location monitoring stopped (samples=%d notifications=%d)",
            self.samples_processed,
            self.notifications_sent,
        )
        if self._on_stop is not None:
            self._on_stop(self)

    def handle_error(self, err: Exception) -> None:
        if not self.active:
            return
        try:
            self._on_error(err)
        except Exception:
            logger.exception("Monitoring error callback crashed")

    def handle_sample(self, position: Coordinate) -> list[NotificationEvent]:
        with self._sample_lock:
            if not self.active:
                return []

            try:
                locations = list(self._location_supplier())
                tasks = list(self._task_supplier())
            except Exception:
                logger.exception("Failed to load locations/tasks; skipping sample")
                return []

            events = evaluate_sample(position, locations, tasks, self.proximity)
            self.samples_processed += 1
            self.last_position = position

            for event in events:
                if self._dispatch(event) == NotificationOutcome.SENT:
                    self.notifications_sent += 1

            if events:
                logger.debug("Sample %s produced %d notifications", position, len(events))
            return events

    def _dispatch(self, event: NotificationEvent) -> NotificationOutcome:
        try:
            outcome = self._notifier.notify(event.title, event.body, event.tag, event.metadata)
        except Exception:
            logger.exception("Notification sink raised (tag=%s)", event.tag)
            return NotificationOutcome.FAILED
        if outcome != NotificationOutcome.SENT:
            logger.info("Notification %s not delivered: %s", event.tag, outcome)
        return outcome


class GeofenceMonitor:
    """
    Owns at most one active MonitorSession for a position source + notification sink.

    start_monitoring() replaces any running session; it returns None when the position
    source has no capability at all, so callers can disable related UI.
    """

    def __init__(
        self,
        source: PositionSource,
        notifier: NotificationSink,
        *,
        on_error: ErrorCallback | None = None,
    ) -> None:
        self.source = source
        self.notifier = notifier
        self._on_error = on_error
        self._session: MonitorSession | None = None
        self._lock = threading.Lock()

    @property
    def session(self) -> MonitorSession | None:
        return self._session

    def start_monitoring(
        self,
        location_supplier: LocationSupplier,
        task_supplier: TaskSupplier,
    ) -> MonitorSession | None:
        self.stop_monitoring()

        if not self.source.is_supported():
            logger.warning("Position source is not supported; location monitoring unavailable")
            return None

        session = MonitorSession(
            source=self.source,
            location_supplier=location_supplier,
            task_supplier=task_supplier,
            notifier=self.notifier,
            on_error=self._on_error,
            on_stop=self._forget,
        )
        with self._lock:
            self._session = session
        try:
            session.start()
        except Exception:
            logger.exception("Failed to subscribe to position source")
            self._forget(session)
            return None
        return session

    def _forget(self, session: MonitorSession) -> None:
        with self._lock:
            if self._session is session:
                self._session = None

    def stop_monitoring(self) -> None:
        with self._lock:
            session = self._session
        if session is not None:
            session.stop()

    def is_monitoring_active(self) -> bool:
        session = self._session
        return session is not None and session.active
