"""Schemas shared by several route groups."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel

from ..models.domain import Coordinates


class CoordinatesModel(BaseModel):
    lat: float
    lng: float

    @classmethod
    def from_domain(cls, coords: Optional[Coordinates]) -> Optional["CoordinatesModel"]:
        if coords is None:
            return None
        return cls(lat=coords.lat, lng=coords.lng)


def ensure_aware(value: datetime) -> datetime:
    """Naive timestamps are taken as UTC."""

    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
