"""Great-circle helpers used to gate and guide location-bound interactions."""
from __future__ import annotations

from math import atan2, cos, degrees, radians, sin, sqrt

from .state import Coordinate

EARTH_RADIUS_M = 6_371_000


def distance_m(a: Coordinate, b: Coordinate) -> float:
    """Haversine distance in meters between two coordinates."""
    lat1 = radians(a.latitude)
    lat2 = radians(b.latitude)
    dlat = lat2 - lat1
    dlon = radians(b.longitude - a.longitude)

    h = sin(dlat / 2) ** 2 + cos(lat1) * cos(lat2) * sin(dlon / 2) ** 2
    return 2 * EARTH_RADIUS_M * atan2(sqrt(h), sqrt(max(0.0, 1 - h)))


def bearing_deg(origin: Coordinate, target: Coordinate) -> float:
    """Initial bearing from `origin` to `target`, in degrees within [0, 360).

    Returns 0 when both points coincide.
    """
    if origin == target:
        return 0.0
    lat1 = radians(origin.latitude)
    lat2 = radians(target.latitude)
    dlon = radians(target.longitude - origin.longitude)

    y = sin(dlon) * cos(lat2)
    x = cos(lat1) * sin(lat2) - sin(lat1) * cos(lat2) * cos(dlon)
    return (degrees(atan2(y, x)) + 360.0) % 360.0


def heading_from_magnetometer(x: float, y: float) -> float:
    """Compass heading in [0, 360) from raw magnetometer axes."""
    return (degrees(atan2(y, x)) + 360.0) % 360.0


__all__ = ["EARTH_RADIUS_M", "distance_m", "bearing_deg", "heading_from_magnetometer"]
