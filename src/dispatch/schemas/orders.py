"""Order, assignment and lifecycle API schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, Field, model_validator

from ..models.domain import (
    ActivityLogEntry,
    ActivityType,
    Assignment,
    Order,
    OrderStatus,
    ScheduledAssignment,
    ScheduledStatus,
)
from ..services.lifecycle import CancelReason, TimelineStep
from ..services.queries import OrderDetail
from ..services.reorder import ReorderResult
from .common import CoordinatesModel
from .drivers import DriverModel


class OrderModel(BaseModel):
    id: str
    customer_id: str
    pickup_address: str
    delivery_address: str
    window_start: datetime
    window_end: datetime
    weight_kg: float
    volume_m3: float
    transport_type: str
    zone_requirement: Optional[str] = None
    amount: float
    currency: str
    instructions: Optional[str] = None
    pickup_coords: Optional[CoordinatesModel] = None
    delivery_coords: Optional[CoordinatesModel] = None
    status: OrderStatus
    driver_id: Optional[str] = None
    driver_assigned_at: Optional[datetime] = None
    previous_order_id: Optional[str] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_domain(cls, order: Order) -> "OrderModel":
        return cls(
            id=order.id,
            customer_id=order.customer_id,
            pickup_address=order.pickup_address,
            delivery_address=order.delivery_address,
            window_start=order.window_start,
            window_end=order.window_end,
            weight_kg=order.weight_kg,
            volume_m3=order.volume_m3,
            transport_type=order.transport_type,
            zone_requirement=order.zone_requirement,
            amount=order.amount,
            currency=order.currency,
            instructions=order.instructions,
            pickup_coords=CoordinatesModel.from_domain(order.pickup_coords),
            delivery_coords=CoordinatesModel.from_domain(order.delivery_coords),
            status=order.status,
            driver_id=order.driver_id,
            driver_assigned_at=order.driver_assigned_at,
            previous_order_id=order.previous_order_id,
            created_at=order.created_at,
        )


class AssignmentModel(BaseModel):
    id: str
    order_id: str
    driver_id: str
    window_start: datetime
    window_end: datetime
    created_at: datetime
    ended_at: Optional[datetime] = None

    @classmethod
    def from_domain(cls, assignment: Optional[Assignment]) -> Optional["AssignmentModel"]:
        if assignment is None:
            return None
        return cls(
            id=assignment.id,
            order_id=assignment.order_id,
            driver_id=assignment.driver_id,
            window_start=assignment.window_start,
            window_end=assignment.window_end,
            created_at=assignment.created_at,
            ended_at=assignment.ended_at,
        )


class ScheduledAssignmentModel(BaseModel):
    id: str
    order_id: str
    driver_id: str
    window_start: datetime
    window_end: datetime
    execute_at: datetime
    created_at: datetime
    status: ScheduledStatus
    failure_reason: Optional[str] = None

    @classmethod
    def from_domain(cls, item: ScheduledAssignment) -> "ScheduledAssignmentModel":
        return cls(
            id=item.id,
            order_id=item.order_id,
            driver_id=item.driver_id,
            window_start=item.window_start,
            window_end=item.window_end,
            execute_at=item.execute_at,
            created_at=item.created_at,
            status=item.status,
            failure_reason=item.failure_reason,
        )


class ActivityModel(BaseModel):
    id: str
    type: ActivityType
    order_id: str
    driver_id: Optional[str] = None
    actor: str
    at: datetime
    message: str
    status: Optional[OrderStatus] = None
    note: Optional[str] = None
    meta: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_domain(cls, entry: ActivityLogEntry) -> "ActivityModel":
        return cls(
            id=entry.id,
            type=entry.type,
            order_id=entry.order_id,
            driver_id=entry.driver_id,
            actor=entry.actor,
            at=entry.at,
            message=entry.message,
            status=entry.status,
            note=entry.note,
            meta=dict(entry.meta),
        )


class TimelineStepModel(BaseModel):
    status: OrderStatus
    state: str
    at: Optional[datetime] = None

    @classmethod
    def from_domain(cls, step: TimelineStep) -> "TimelineStepModel":
        return cls(status=step.status, state=step.state, at=step.at)


class OrderDetailResponse(BaseModel):
    order: OrderModel
    derived_status: OrderStatus
    driver: Optional[DriverModel] = None
    assignment: Optional[AssignmentModel] = None
    activity: List[ActivityModel]
    timeline: List[TimelineStepModel]
    scheduled: List[ScheduledAssignmentModel]

    @classmethod
    def from_detail(cls, detail: OrderDetail) -> "OrderDetailResponse":
        return cls(
            order=OrderModel.from_domain(detail.order),
            derived_status=detail.derived_status,
            driver=DriverModel.from_domain(detail.driver) if detail.driver else None,
            assignment=AssignmentModel.from_domain(detail.assignment),
            activity=[ActivityModel.from_domain(entry) for entry in detail.activity],
            timeline=[TimelineStepModel.from_domain(step) for step in detail.timeline],
            scheduled=[ScheduledAssignmentModel.from_domain(item) for item in detail.scheduled],
        )


class AssignmentResponse(BaseModel):
    order: OrderModel
    driver: Optional[DriverModel] = None
    assignment: Optional[AssignmentModel] = None


class AssignRequest(BaseModel):
    driver_id: str = Field(..., min_length=1, description="Driver to bind to the order.")
    actor: str = Field(default="admin", description="Who performs the change (recorded in the activity log).")


class UnassignRequest(BaseModel):
    actor: str = Field(default="admin")
    note: Optional[str] = Field(default=None, description="Optional reason recorded with the removal.")


class StatusChangeRequest(BaseModel):
    status: OrderStatus
    actor: str = Field(default="admin")
    note: Optional[str] = None


class CancelRequest(BaseModel):
    reason: CancelReason
    note: Optional[str] = Field(default=None, description="Required when reason is OTHER.")
    actor: str = Field(default="admin")

    @model_validator(mode="after")
    def _require_note_for_other(self) -> "CancelRequest":
        if self.reason == CancelReason.OTHER and not (self.note and self.note.strip()):
            raise ValueError("A note is required when the cancellation reason is OTHER.")
        return self


class ScheduleRequest(BaseModel):
    driver_id: str = Field(..., min_length=1)
    execute_at: datetime = Field(..., description="When the assignment should be performed (timezone-aware).")
    actor: str = Field(default="admin")


class ReorderRequest(BaseModel):
    pickup_start: datetime
    pickup_end: Optional[datetime] = Field(
        default=None,
        description="End of the pickup window; defaults to pickup_start plus the configured reorder window.",
    )


class ReorderResponse(BaseModel):
    order: OrderModel
    driver: Optional[DriverModel] = None
    distance_km: Optional[float] = None
    reason: Optional[str] = None

    @classmethod
    def from_result(cls, result: ReorderResult) -> "ReorderResponse":
        return cls(
            order=OrderModel.from_domain(result.order),
            driver=DriverModel.from_domain(result.driver) if result.driver else None,
            distance_km=result.distance_km,
            reason=result.reason,
        )
