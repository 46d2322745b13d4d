# src/taskfence/geofence/distance.py

"""Great-circle distance and geofence membership (no external dependencies)."""

from __future__ import annotations

import math

from .geo_models import Coordinate, NamedLocation

EARTH_RADIUS_M = 6_371_000.0


def distance_m(a: Coordinate, b: Coordinate) -> float:
    """Haversine distance in meters between two coordinates.

    Args:
        a: First point (degrees).
        b: Second point (degrees).

    Returns:
        Distance in meters.
    """

    phi1 = math.radians(a.latitude)
    phi2 = math.radians(b.latitude)
    d_phi = math.radians(b.latitude - a.latitude)
    d_lambda = math.radians(b.longitude - a.longitude)

    h = math.sin(d_phi / 2.0) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2.0) ** 2
    c = 2.0 * math.atan2(math.sqrt(h), math.sqrt(1.0 - h))
    return EARTH_RADIUS_M * c


def is_near(position: Coordinate, location: NamedLocation) -> bool:
    """True when position is inside or on the boundary of the location's circle."""

    return distance_m(position, location.coordinates) <= location.radius
