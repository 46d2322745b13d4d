# src/taskfence/geofence/location_store.py

from __future__ import annotations

import contextlib
import json
import logging
import os
import threading
import uuid
from pathlib import Path

from .geo_models import DEFAULT_RADIUS_M, Coordinate, NamedLocation

logger = logging.getLogger(__name__)


class LocationStore:
    """
    Saved named locations, persisted as a JSON list on disk.

    Reads validate every entry and drop malformed ones (logged) instead of failing
    the whole list; a corrupt file reads as empty.
    Writes are atomic (tmp file + os.replace) and the file is kept private.
    """

    def __init__(self, path: str | Path = "locations.json") -> None:
        self._path = Path(path)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        logger.info("LocationStore ready path=%s total=%s", self._path, len(self.list_locations()))

    @property
    def path(self) -> Path:
        return self._path

    # ---- low-level helpers ----

    def _read_raw(self) -> list[object]:
        if not self._path.exists():
            return []
        try:
            data = json.loads(self._path.read_text("utf-8"))
        except (OSError, ValueError):
            logger.exception("Failed to read saved locations from %s", self._path)
            return []
        if not isinstance(data, list):
            logger.error("Saved locations file %s is not a JSON list; ignoring", self._path)
            return []
        return data

    def _write(self, locations: list[NamedLocation]) -> None:
        tmp = self._path.with_suffix(".tmp")
        tmp.write_text(
            json.dumps([loc.to_dict() for loc in locations], ensure_ascii=False, indent=2),
            "utf-8",
        )
        os.replace(tmp, self._path)
        with contextlib.suppress(OSError):
            # Location history is personal data.
            os.chmod(self._path, 0o600)

    # ---- public API ----

    def list_locations(self) -> list[NamedLocation]:
        out: list[NamedLocation] = []
        seen: set[str] = set()
        for i, raw in enumerate(self._read_raw()):
            try:
                loc = NamedLocation.from_dict(raw)
            except (KeyError, TypeError, ValueError) as e:
                logger.warning("Dropping malformed saved location #%d: %s (%r)", i, e, raw)
                continue
            if loc.id in seen:
                logger.warning("Dropping duplicate saved location id=%s", loc.id)
                continue
            seen.add(loc.id)
            out.append(loc)
        return out

    def get_location(self, location_id: str) -> NamedLocation | None:
        for loc in self.list_locations():
            if loc.id == location_id:
                return loc
        return None

    def save_location(self, location: NamedLocation) -> None:
        """Insert or replace (by id)."""
        with self._lock:
            current = [loc for loc in self.list_locations() if loc.id != location.id]
            current.append(location)
            self._write(current)
        logger.debug("Location saved id=%s name=%r radius=%s", location.id, location.name, location.radius)

    def add_location(
        self,
        name: str,
        latitude: float,
        longitude: float,
        radius: float = DEFAULT_RADIUS_M,
    ) -> NamedLocation:
        loc = NamedLocation(
            id=uuid.uuid4().hex[:12],
            name=(name or "").strip(),
            coordinates=Coordinate(latitude=latitude, longitude=longitude),
            radius=radius,
        )
        self.save_location(loc)
        return loc

    def delete_location(self, location_id: str) -> bool:
        with self._lock:
            current = self.list_locations()
            kept = [loc for loc in current if loc.id != location_id]
            if len(kept) == len(current):
                return False
            self._write(kept)
        logger.debug("Location deleted id=%s", location_id)
        return True
