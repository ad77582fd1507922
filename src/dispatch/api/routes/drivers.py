"""Driver endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, status

from ...schemas.common import ensure_aware
from ...schemas.drivers import AvailabilityResponse, DriverModel
from ...schemas.notifications import NotificationModel
from ...schemas.orders import OrderModel
from ...models.domain import NotificationChannel
from ...services.engine import DispatchEngine
from ..deps import get_engine, translate_errors

router = APIRouter(prefix="/drivers", tags=["drivers"])


@router.get("", response_model=List[DriverModel], status_code=status.HTTP_200_OK)
def list_drivers(engine: DispatchEngine = Depends(get_engine)) -> List[DriverModel]:
    return [DriverModel.from_domain(driver) for driver in engine.store.list_drivers()]


@router.get("/{driver_id}/orders", response_model=List[OrderModel], status_code=status.HTTP_200_OK)
def driver_orders(
    driver_id: str,
    include_finished: bool = Query(default=False, description="Include delivered and cancelled missions"),
    engine: DispatchEngine = Depends(get_engine),
) -> List[OrderModel]:
    with translate_errors("load driver orders"):
        orders = engine.queries.driver_orders(driver_id, include_finished=include_finished)
    return [OrderModel.from_domain(order) for order in orders]


@router.get("/{driver_id}/notifications", response_model=List[NotificationModel], status_code=status.HTTP_200_OK)
def driver_notifications(
    driver_id: str,
    unread_only: bool = Query(default=False),
    engine: DispatchEngine = Depends(get_engine),
) -> List[NotificationModel]:
    entries = engine.queries.notifications(NotificationChannel.DRIVER, driver_id=driver_id, unread_only=unread_only)
    return [NotificationModel.from_domain(entry) for entry in entries]


@router.get("/{driver_id}/availability", response_model=AvailabilityResponse, status_code=status.HTTP_200_OK)
def driver_availability(
    driver_id: str,
    start: datetime = Query(..., description="Window start (inclusive)"),
    end: datetime = Query(..., description="Window end (exclusive)"),
    engine: DispatchEngine = Depends(get_engine),
) -> AvailabilityResponse:
    start, end = ensure_aware(start), ensure_aware(end)
    if end <= start:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="end must be after start")
    with translate_errors("check driver availability"):
        conflict = engine.queries.driver_conflict(driver_id, start, end)
    return AvailabilityResponse(
        driver_id=driver_id,
        start=start,
        end=end,
        available=conflict is None,
        reason=conflict.describe() if conflict else None,
        conflict_order_id=conflict.order_id if conflict else None,
    )
