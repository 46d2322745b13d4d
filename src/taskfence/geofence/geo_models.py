# src/taskfence/geofence/geo_models.py

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

DEFAULT_RADIUS_M = 100.0


@dataclass(slots=True, frozen=True)
class Coordinate:
    """
    A single position fix.

    accuracy is the reported horizontal accuracy in meters (if the sensor gives one).
    timestamp is epoch seconds of the fix; only used for staleness checks.
    """

    latitude: float
    longitude: float
    accuracy: float | None = None
    timestamp: float | None = None

    def __post_init__(self) -> None:
        if not -90.0 <= self.latitude <= 90.0:
            raise ValueError(f"latitude out of range: {self.latitude}")
        if not -180.0 <= self.longitude <= 180.0:
            raise ValueError(f"longitude out of range: {self.longitude}")
        if self.accuracy is not None and self.accuracy < 0:
            raise ValueError(f"accuracy must be >= 0: {self.accuracy}")

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"latitude": self.latitude, "longitude": self.longitude}
        if self.accuracy is not None:
            out["accuracy"] = self.accuracy
        return out

    @classmethod
    def from_dict(cls, raw: Any) -> Coordinate:
        if not isinstance(raw, dict):
            raise ValueError("coordinates must be an object")
        accuracy = raw.get("accuracy")
        return cls(
            latitude=float(raw["latitude"]),
            longitude=float(raw["longitude"]),
            accuracy=float(accuracy) if accuracy is not None else None,
        )


@dataclass(slots=True, frozen=True)
class NamedLocation:
    """A circular geofence: center coordinates plus radius in meters."""

    id: str
    name: str
    coordinates: Coordinate
    radius: float = DEFAULT_RADIUS_M

    def __post_init__(self) -> None:
        if not self.id or not str(self.id).strip():
            raise ValueError("location id is required")
        if not self.radius > 0:
            raise ValueError(f"radius must be positive: {self.radius}")

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "coordinates": self.coordinates.to_dict(),
            "radius": self.radius,
        }

    @classmethod
    def from_dict(cls, raw: Any) -> NamedLocation:
        """
        Parse a stored location.

        Raises ValueError/KeyError/TypeError on malformed input; callers reading
        from storage are expected to drop the entry and continue.
        """
        if not isinstance(raw, dict):
            raise ValueError("location must be an object")
        radius = raw.get("radius")
        return cls(
            id=str(raw["id"]),
            name=str(raw.get("name") or ""),
            coordinates=Coordinate.from_dict(raw["coordinates"]),
            radius=float(radius) if radius is not None else DEFAULT_RADIUS_M,
        )
