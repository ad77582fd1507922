"""Zone catalog mapping coordinates to dispatch zone codes."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence

from ..config import settings
from ..models.domain import Coordinates
from .geospatial import circle_polygon, point_in_polygon

DEFAULT_ZONE_CODES = ("INTRA_PARIS", "PETITE_COURONNE", "GRANDE_COURONNE")


@dataclass(frozen=True, slots=True)
class ZoneDefinition:
    code: str
    polygon: tuple[tuple[float, float], ...]


class ZoneCatalog:
    """Ordered zone polygons; the first polygon containing a point wins.

    Nested zones must therefore be listed innermost first.
    """

    def __init__(self, zones: Sequence[ZoneDefinition]) -> None:
        self.zones = tuple(zones)

    def zone_for(self, coords: Optional[Coordinates]) -> Optional[str]:
        if coords is None:
            return None
        for zone in self.zones:
            if point_in_polygon(coords.lat, coords.lng, zone.polygon):
                return zone.code
        return None

    @classmethod
    def concentric(
        cls,
        center: tuple[float, float],
        radii_km: Sequence[float],
        codes: Sequence[str] = DEFAULT_ZONE_CODES,
    ) -> "ZoneCatalog":
        if len(radii_km) != len(codes):
            raise ValueError("zone radii and zone codes must have the same length")
        lat, lon = center
        ordered = sorted(zip(radii_km, codes))
        return cls(
            [ZoneDefinition(code=code, polygon=tuple(circle_polygon(lat, lon, radius))) for radius, code in ordered]
        )


def default_zone_catalog() -> ZoneCatalog:
    return ZoneCatalog.concentric(settings.zone_center, settings.zone_radii_km)
