"""Admin endpoints for orders, assignments and scheduled assignments."""

from __future__ import annotations

from datetime import datetime
from typing import List

from fastapi import APIRouter, Depends, Query, status

from ...models.domain import OrderStatus
from ...schemas.common import ensure_aware
from ...schemas.drivers import DriverModel, EligibleDriverModel
from ...schemas.orders import (
    AssignmentModel,
    AssignmentResponse,
    AssignRequest,
    CancelRequest,
    OrderDetailResponse,
    OrderModel,
    ScheduledAssignmentModel,
    ScheduleRequest,
    StatusChangeRequest,
    UnassignRequest,
)
from ...services.assignment import AssignmentResult
from ...services.engine import DispatchEngine
from ..deps import get_engine, translate_errors

router = APIRouter(tags=["orders"])


def _assignment_response(result: AssignmentResult) -> AssignmentResponse:
    return AssignmentResponse(
        order=OrderModel.from_domain(result.order),
        driver=DriverModel.from_domain(result.driver) if result.driver else None,
        assignment=AssignmentModel.from_domain(result.assignment),
    )


@router.get("/orders", response_model=List[OrderModel], status_code=status.HTTP_200_OK)
def list_orders(
    status_filter: OrderStatus | None = Query(default=None, alias="status", description="Optional status filter"),
    customer_id: str | None = Query(default=None),
    driver_id: str | None = Query(default=None),
    engine: DispatchEngine = Depends(get_engine),
) -> List[OrderModel]:
    orders = engine.queries.list_orders(status=status_filter, customer_id=customer_id, driver_id=driver_id)
    return [OrderModel.from_domain(order) for order in orders]


@router.get("/orders/{order_id}", response_model=OrderDetailResponse, status_code=status.HTTP_200_OK)
def get_order(order_id: str, engine: DispatchEngine = Depends(get_engine)) -> OrderDetailResponse:
    with translate_errors("load order"):
        return OrderDetailResponse.from_detail(engine.queries.get_order_detail(order_id))


@router.get(
    "/orders/{order_id}/eligible-drivers",
    response_model=List[EligibleDriverModel],
    status_code=status.HTTP_200_OK,
)
def eligible_drivers(order_id: str, engine: DispatchEngine = Depends(get_engine)) -> List[EligibleDriverModel]:
    """Every driver with its verdict for the order, assignable ones first."""
    with translate_errors("evaluate drivers"):
        verdicts = engine.queries.eligible_drivers(order_id)
    return [EligibleDriverModel.from_verdict(verdict) for verdict in verdicts]


@router.post("/orders/{order_id}/assign", response_model=AssignmentResponse, status_code=status.HTTP_200_OK)
def assign_driver(
    order_id: str, payload: AssignRequest, engine: DispatchEngine = Depends(get_engine)
) -> AssignmentResponse:
    with translate_errors("assign driver"):
        result = engine.assignments.assign(order_id, payload.driver_id, payload.actor)
    return _assignment_response(result)


@router.post("/orders/{order_id}/unassign", response_model=AssignmentResponse, status_code=status.HTTP_200_OK)
def unassign_driver(
    order_id: str, payload: UnassignRequest, engine: DispatchEngine = Depends(get_engine)
) -> AssignmentResponse:
    with translate_errors("unassign driver"):
        result = engine.assignments.unassign(order_id, payload.actor, payload.note)
    return _assignment_response(result)


@router.post("/orders/{order_id}/reassign", response_model=AssignmentResponse, status_code=status.HTTP_200_OK)
def reassign_driver(
    order_id: str, payload: AssignRequest, engine: DispatchEngine = Depends(get_engine)
) -> AssignmentResponse:
    """Move the order to another driver.

    When the new driver is rejected the response is 409 and the order is left
    without a driver.
    """
    with translate_errors("reassign driver"):
        result = engine.assignments.reassign(order_id, payload.driver_id, payload.actor)
    return _assignment_response(result)


@router.post("/orders/{order_id}/status", response_model=OrderModel, status_code=status.HTTP_200_OK)
def change_status(
    order_id: str, payload: StatusChangeRequest, engine: DispatchEngine = Depends(get_engine)
) -> OrderModel:
    with translate_errors("change order status"):
        order = engine.lifecycle.transition(order_id, payload.status, payload.actor, payload.note)
    return OrderModel.from_domain(order)


@router.post("/orders/{order_id}/cancel", response_model=OrderModel, status_code=status.HTTP_200_OK)
def cancel_order(order_id: str, payload: CancelRequest, engine: DispatchEngine = Depends(get_engine)) -> OrderModel:
    with translate_errors("cancel order"):
        order = engine.lifecycle.cancel(order_id, payload.actor, payload.reason, payload.note)
    return OrderModel.from_domain(order)


@router.post(
    "/orders/{order_id}/schedule",
    response_model=ScheduledAssignmentModel,
    status_code=status.HTTP_201_CREATED,
)
def schedule_assignment(
    order_id: str, payload: ScheduleRequest, engine: DispatchEngine = Depends(get_engine)
) -> ScheduledAssignmentModel:
    with translate_errors("schedule assignment"):
        item = engine.assignments.schedule_assignment(
            order_id, payload.driver_id, ensure_aware(payload.execute_at), payload.actor
        )
    return ScheduledAssignmentModel.from_domain(item)


@router.post(
    "/scheduled-assignments/{scheduled_id}/cancel",
    response_model=ScheduledAssignmentModel,
    status_code=status.HTTP_200_OK,
)
def cancel_scheduled_assignment(
    scheduled_id: str,
    actor: str = Query(default="admin"),
    engine: DispatchEngine = Depends(get_engine),
) -> ScheduledAssignmentModel:
    with translate_errors("cancel scheduled assignment"):
        item = engine.assignments.cancel_scheduled_assignment(scheduled_id, actor)
    return ScheduledAssignmentModel.from_domain(item)


@router.post(
    "/scheduled-assignments/process",
    response_model=List[ScheduledAssignmentModel],
    status_code=status.HTTP_200_OK,
)
def process_due_assignments(
    now: datetime | None = Query(default=None, description="Reference time; defaults to the current time."),
    engine: DispatchEngine = Depends(get_engine),
) -> List[ScheduledAssignmentModel]:
    with translate_errors("process scheduled assignments"):
        processed = engine.assignments.process_due_assignments(ensure_aware(now) if now else None)
    return [ScheduledAssignmentModel.from_domain(item) for item in processed]
