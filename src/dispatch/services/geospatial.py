"""Geospatial helper functions."""

from __future__ import annotations

import math
from typing import Optional, Sequence

from shapely.geometry import Point, Polygon

from ..models.domain import Coordinates

EARTH_RADIUS_KM = 6371.0


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Compute distance between two coordinates using the Haversine formula."""

    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def distance_km(a: Optional[Coordinates], b: Optional[Coordinates]) -> Optional[float]:
    """Great-circle distance between two points, or None when either is unknown."""

    if a is None or b is None:
        return None
    return haversine_km(a.lat, a.lng, b.lat, b.lng)


def point_in_polygon(lat: float, lon: float, polygon_coords: Sequence[tuple[float, float]]) -> bool:
    """Return True if the point is inside the polygon denoted by (lat, lon) pairs."""

    polygon = Polygon([(lng, lat) for lat, lng in polygon_coords])
    return polygon.contains(Point(lon, lat))


def destination_point(lat: float, lon: float, bearing: float, distance: float) -> tuple[float, float]:
    """Point reached from (lat, lon) after ``distance`` km on the initial ``bearing`` (degrees)."""

    delta = distance / EARTH_RADIUS_KM
    theta = math.radians(bearing)
    phi1 = math.radians(lat)
    lambda1 = math.radians(lon)

    phi2 = math.asin(math.sin(phi1) * math.cos(delta) + math.cos(phi1) * math.sin(delta) * math.cos(theta))
    lambda2 = lambda1 + math.atan2(
        math.sin(theta) * math.sin(delta) * math.cos(phi1),
        math.cos(delta) - math.sin(phi1) * math.sin(phi2),
    )
    return math.degrees(phi2), (math.degrees(lambda2) + 540) % 360 - 180


def circle_polygon(lat: float, lon: float, radius_km: float, segments: int = 72) -> list[tuple[float, float]]:
    """Approximate a geodesic circle as a closed list of (lat, lon) pairs."""

    step = 360.0 / segments
    ring = [destination_point(lat, lon, index * step, radius_km) for index in range(segments)]
    ring.append(ring[0])
    return ring
