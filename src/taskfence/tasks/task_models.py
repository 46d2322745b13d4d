# src/taskfence/tasks/task_models.py

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Any


class TaskPriority(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @classmethod
    def from_db(cls, raw: str | None) -> TaskPriority:
        if not raw:
            return cls.MEDIUM
        try:
            return cls(raw.strip().lower())
        except ValueError:
            return cls.MEDIUM


class TaskTag(StrEnum):
    WORK = "Work"
    PERSONAL = "Personal"
    STUDIES = "Studies"
    HOBBIES = "Hobbies"
    MISC = "Misc"

    @classmethod
    def parse(cls, raw: str) -> TaskTag:
        """Case-insensitive lookup; raises ValueError for unknown tags."""
        needle = (raw or "").strip().lower()
        for tag in cls:
            if tag.value.lower() == needle:
                return tag
        raise ValueError(f"unknown tag: {raw!r}")

    @classmethod
    def from_db(cls, raw: str | None) -> TaskTag:
        try:
            return cls.parse(raw or "")
        except ValueError:
            return cls.MISC


@dataclass(slots=True, frozen=True)
class LocationReminder:
    """
    Binds a task to a NamedLocation.

    When enabled is False the monitor ignores the task entirely.
    """

    location_id: str
    enabled: bool = True
    notify_on_arrival: bool = True
    notify_on_departure: bool = False
    message: str | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "locationId": self.location_id,
            "enabled": self.enabled,
            "notifyOnArrival": self.notify_on_arrival,
            "notifyOnDeparture": self.notify_on_departure,
        }
        if self.message:
            out["message"] = self.message
        return out

    @classmethod
    def from_dict(cls, raw: Any) -> LocationReminder:
        if not isinstance(raw, dict):
            raise ValueError("location reminder must be an object")
        location_id = raw.get("locationId")
        if not isinstance(location_id, str) or not location_id.strip():
            raise ValueError("location reminder is missing locationId")

        def flag(key: str, default: bool) -> bool:
            val = raw.get(key, default)
            if not isinstance(val, bool):
                raise ValueError(f"{key} must be a boolean")
            return val

        message = raw.get("message")
        if message is not None and not isinstance(message, str):
            raise ValueError("message must be a string")

        return cls(
            location_id=location_id,
            enabled=flag("enabled", True),
            notify_on_arrival=flag("notifyOnArrival", True),
            notify_on_departure=flag("notifyOnDeparture", False),
            message=(message or "").strip() or None,
        )


@dataclass(slots=True)
class Task:
    id: int
    title: str
    description: str
    completed: bool
    created_at: float
    updated_at: float
    due_at: float | None

    priority: TaskPriority = TaskPriority.MEDIUM
    tag: TaskTag = TaskTag.MISC
    location_reminder: LocationReminder | None = None


@dataclass(slots=True, frozen=True)
class TaskStats:
    completed: int
    pending: int
    overdue: int
    total: int
    completion_rate: float
