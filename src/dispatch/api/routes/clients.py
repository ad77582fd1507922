"""Client endpoints: own orders, notifications and reordering."""

from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, Query, status

from ...models.domain import NotificationChannel
from ...schemas.common import ensure_aware
from ...schemas.notifications import NotificationModel
from ...schemas.orders import OrderModel, ReorderRequest, ReorderResponse
from ...services.engine import DispatchEngine
from ..deps import get_engine, translate_errors

router = APIRouter(prefix="/clients", tags=["clients"])


@router.get("/{customer_id}/orders", response_model=List[OrderModel], status_code=status.HTTP_200_OK)
def client_orders(customer_id: str, engine: DispatchEngine = Depends(get_engine)) -> List[OrderModel]:
    return [OrderModel.from_domain(order) for order in engine.queries.client_orders(customer_id)]


@router.get("/{customer_id}/notifications", response_model=List[NotificationModel], status_code=status.HTTP_200_OK)
def client_notifications(
    customer_id: str,
    unread_only: bool = Query(default=False),
    engine: DispatchEngine = Depends(get_engine),
) -> List[NotificationModel]:
    entries = engine.queries.notifications(
        NotificationChannel.CLIENT, customer_id=customer_id, unread_only=unread_only
    )
    return [NotificationModel.from_domain(entry) for entry in entries]


@router.post(
    "/{customer_id}/orders/{order_id}/reorder",
    response_model=ReorderResponse,
    status_code=status.HTTP_201_CREATED,
)
def reorder(
    customer_id: str,
    order_id: str,
    payload: ReorderRequest,
    engine: DispatchEngine = Depends(get_engine),
) -> ReorderResponse:
    """Duplicate one of the client's orders for a new pickup window.

    The new order is returned even when no driver could be assigned; ``reason``
    then explains why.
    """
    with translate_errors("reorder"):
        result = engine.reorders.reorder(
            order_id,
            ensure_aware(payload.pickup_start),
            ensure_aware(payload.pickup_end) if payload.pickup_end else None,
            actor=f"client:{customer_id}",
            customer_id=customer_id,
        )
    return ReorderResponse.from_result(result)
