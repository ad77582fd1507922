"""Nearest eligible driver selection for automatic assignment."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from ...models.domain import Coordinates, Driver, DriverStatus
from ...persistence.store import DispatchStore
from ..geospatial import distance_km
from .eligibility import EligibilityEvaluator

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Candidate:
    driver: Driver
    distance_km: float


class NearestDriverSelector:
    def __init__(self, store: DispatchStore, evaluator: EligibilityEvaluator) -> None:
        self.store = store
        self.evaluator = evaluator

    def rank(
        self,
        pickup: Optional[Coordinates],
        window_start: datetime,
        window_end: datetime,
        min_capacity: float = 0.0,
        *,
        zone: str | None = None,
        min_volume: float | None = None,
    ) -> list[Candidate]:
        """Eligible drivers sorted by distance; equal distances keep store order."""

        if pickup is None:
            return []

        ranked: list[tuple[float, int, Driver]] = []
        for index, driver in enumerate(self.store.list_drivers()):
            if not driver.active or driver.status == DriverStatus.PAUSED:
                continue
            if driver.capacity_kg < min_capacity:
                continue
            if min_volume is not None and driver.capacity_m3 is not None and driver.capacity_m3 < min_volume:
                continue
            if driver.last_location is None:
                continue
            verdict = self.evaluator.evaluate_window(driver, window_start, window_end, zone=zone)
            if not verdict.assignable:
                continue
            ranked.append((distance_km(pickup, driver.last_location), index, driver))

        ranked.sort(key=lambda item: (item[0], item[1]))
        return [Candidate(driver=driver, distance_km=dist) for dist, _, driver in ranked]

    def select_nearest(
        self,
        pickup: Optional[Coordinates],
        window_start: datetime,
        window_end: datetime,
        min_capacity: float = 0.0,
        *,
        zone: str | None = None,
        min_volume: float | None = None,
    ) -> Optional[Driver]:
        candidates = self.rank(pickup, window_start, window_end, min_capacity, zone=zone, min_volume=min_volume)
        if not candidates:
            logger.info(f"No eligible driver near {pickup} for window {window_start.isoformat()}")
            return None
        best = candidates[0]
        logger.info(f"Nearest eligible driver {best.driver.id} at {best.distance_km:.2f} km")
        return best.driver
