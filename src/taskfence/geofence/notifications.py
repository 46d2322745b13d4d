# src/taskfence/geofence/notifications.py

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any

logger = logging.getLogger(__name__)


class PermissionResult(StrEnum):
    GRANTED = "granted"
    DENIED = "denied"
    UNSUPPORTED = "unsupported"


class NotificationOutcome(StrEnum):
    SENT = "sent"
    UNSUPPORTED = "unsupported"
    FAILED = "failed"


class TransitionKind(StrEnum):
    ARRIVAL = "arrival"
    DEPARTURE = "departure"


@dataclass(slots=True, frozen=True)
class NotificationEvent:
    """
    What the monitor wants to show.

    tag is the dedupe key: one per (kind, task), so the host sink can replace an
    older notification for the same task instead of stacking duplicates.
    """

    kind: TransitionKind
    title: str
    body: str
    tag: str
    metadata: dict[str, Any] = field(default_factory=dict)


class BaseNotifier:
    """
    Shared capability/permission gate for notification sinks.

    Subclasses implement _deliver() (and optionally _request()/is_supported()).
    notify() never raises: failures are logged and reported as FAILED.
    """

    name = "base"

    def __init__(self) -> None:
        self.permission: PermissionResult | None = None

    def is_supported(self) -> bool:
        return True

    async def request_permission(self) -> PermissionResult:
        if not self.is_supported():
            if self.permission is None:
                logger.warning("Notifications are not supported by the %s sink", self.name)
            self.permission = PermissionResult.UNSUPPORTED
            return self.permission

        if self.permission == PermissionResult.GRANTED:
            return self.permission

        try:
            result = await self._request()
        except Exception:
            logger.exception("Notification permission request failed (sink=%s)", self.name)
            result = PermissionResult.DENIED

        self.permission = result
        logger.info("Notification permission (sink=%s): %s", self.name, result.value)
        return result

    async def _request(self) -> PermissionResult:
        return PermissionResult.GRANTED

    def notify(
        self,
        title: str,
        body: str,
        tag: str,
        metadata: dict[str, Any] | None = None,
    ) -> NotificationOutcome:
        if not self.is_supported():
            return NotificationOutcome.UNSUPPORTED
        if self.permission != PermissionResult.GRANTED:
            # Not granted reads the same as no capability; self.permission keeps the reason.
            logger.debug("Notification %s skipped: permission=%s", tag, self.permission)
            return NotificationOutcome.UNSUPPORTED

        try:
            self._deliver(title, body, tag, dict(metadata or {}))
        except Exception:
            logger.exception("Notification dispatch failed (sink=%s tag=%s)", self.name, tag)
            return NotificationOutcome.FAILED

        return NotificationOutcome.SENT

    def _deliver(self, title: str, body: str, tag: str, metadata: dict[str, Any]) -> None:
        raise NotImplementedError


class NullNotifier(BaseNotifier):
    """No notification capability at all (every notify() is a no-op)."""

    name = "none"

    def is_supported(self) -> bool:
        return False

    def _deliver(self, title: str, body: str, tag: str, metadata: dict[str, Any]) -> None:
        return


class ConsoleNotifier(BaseNotifier):
    """
    Prints notifications to the terminal.

    A repeated tag replaces the previous entry in `shown` (same as a desktop
    notification with the same tag would).
    """

    name = "console"

    def __init__(self, emit: Callable[[str], None] | None = None) -> None:
        super().__init__()
        self._emit = emit or print
        self.shown: dict[str, str] = {}

    def _deliver(self, title: str, body: str, tag: str, metadata: dict[str, Any]) -> None:
        ts = datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")
        replaced = tag in self.shown
        self.shown[tag] = body
        self._emit(f"[{ts}] [NOTIFY] {title}: {body}")
        logger.info("Notification shown tag=%s replaced=%s meta=%s", tag, replaced, metadata)
