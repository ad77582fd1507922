"""Driver-facing API schemas."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel

from ..models.domain import Driver, DriverStatus
from ..services.queries import DriverVerdict
from .common import CoordinatesModel


class UnavailabilityModel(BaseModel):
    start: datetime
    end: datetime
    reason: Optional[str] = None


class DriverModel(BaseModel):
    id: str
    name: str
    phone: str
    zone: Optional[str] = None
    vehicle: str
    capacity_kg: float
    capacity_m3: Optional[float] = None
    status: DriverStatus
    active: bool
    last_location: Optional[CoordinatesModel] = None
    unavailabilities: List[UnavailabilityModel] = []

    @classmethod
    def from_domain(cls, driver: Driver) -> "DriverModel":
        return cls(
            id=driver.id,
            name=driver.name,
            phone=driver.phone,
            zone=driver.zone,
            vehicle=driver.vehicle,
            capacity_kg=driver.capacity_kg,
            capacity_m3=driver.capacity_m3,
            status=driver.status,
            active=driver.active,
            last_location=CoordinatesModel.from_domain(driver.last_location),
            unavailabilities=[
                UnavailabilityModel(start=window.start, end=window.end, reason=window.reason)
                for window in driver.unavailabilities
            ],
        )


class EligibleDriverModel(BaseModel):
    driver: DriverModel
    assignable: bool
    reason: Optional[str] = None
    conflict_order_id: Optional[str] = None

    @classmethod
    def from_verdict(cls, verdict: DriverVerdict) -> "EligibleDriverModel":
        return cls(
            driver=DriverModel.from_domain(verdict.driver),
            assignable=verdict.eligibility.assignable,
            reason=verdict.eligibility.reason,
            conflict_order_id=verdict.eligibility.conflict_order_id,
        )


class AvailabilityResponse(BaseModel):
    driver_id: str
    start: datetime
    end: datetime
    available: bool
    reason: Optional[str] = None
    conflict_order_id: Optional[str] = None
