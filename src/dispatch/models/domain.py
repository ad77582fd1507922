"""Domain models for orders, drivers, assignments and the audit trail."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional


class OrderStatus(str, Enum):
    PENDING_ASSIGNMENT = "PendingAssignment"
    PENDING_PICKUP = "PendingPickup"
    PICKED_UP = "PickedUp"
    IN_TRANSIT = "InTransit"
    DELIVERED = "Delivered"
    CANCELLED = "Cancelled"
    INCIDENT = "Incident"


class DriverStatus(str, Enum):
    AVAILABLE = "Available"
    ON_TRIP = "OnTrip"
    PAUSED = "Paused"


class ActivityType(str, Enum):
    CREATE = "Create"
    ASSIGN = "Assign"
    UNASSIGN = "Unassign"
    REASSIGN = "Reassign"
    INCIDENT = "Incident"
    STATUS_CHANGE = "StatusChange"
    AUTO_ASSIGN = "AutoAssign"
    SCHEDULE = "Schedule"


class NotificationChannel(str, Enum):
    CLIENT = "Client"
    ADMIN = "Admin"
    DRIVER = "Driver"


class ScheduledStatus(str, Enum):
    PENDING = "Pending"
    PROCESSING = "Processing"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"
    FAILED = "Failed"


BLOCKING_SCHEDULED_STATUSES = frozenset({ScheduledStatus.PENDING, ScheduledStatus.PROCESSING})


@dataclass(frozen=True, slots=True)
class Coordinates:
    lat: float
    lng: float


@dataclass(frozen=True, slots=True)
class UnavailabilityWindow:
    start: datetime
    end: datetime
    reason: Optional[str] = None


@dataclass(frozen=True, slots=True)
class Driver:
    """Delivery agent. Read-only from the engine's point of view."""

    id: str
    name: str
    phone: str
    zone: Optional[str]
    vehicle: str
    capacity_kg: float
    status: DriverStatus = DriverStatus.AVAILABLE
    active: bool = True
    capacity_m3: Optional[float] = None
    last_location: Optional[Coordinates] = None
    unavailabilities: tuple[UnavailabilityWindow, ...] = ()


@dataclass(frozen=True, slots=True)
class Order:
    """A delivery request.

    ``driver_id`` is set exactly when an active assignment for the order exists,
    except for delivered orders which keep the driver that completed them.
    """

    id: str
    customer_id: str
    pickup_address: str
    delivery_address: str
    window_start: datetime
    window_end: datetime
    weight_kg: float
    volume_m3: float
    transport_type: str
    zone_requirement: Optional[str]
    amount: float
    currency: str = "EUR"
    instructions: Optional[str] = None
    pickup_coords: Optional[Coordinates] = None
    delivery_coords: Optional[Coordinates] = None
    status: OrderStatus = OrderStatus.PENDING_ASSIGNMENT
    driver_id: Optional[str] = None
    driver_assigned_at: Optional[datetime] = None
    previous_order_id: Optional[str] = None
    created_at: Optional[datetime] = None


@dataclass(frozen=True, slots=True)
class Assignment:
    """Binding of one driver to one order for the ``[window_start, window_end)`` window."""

    id: str
    order_id: str
    driver_id: str
    window_start: datetime
    window_end: datetime
    created_at: datetime
    ended_at: Optional[datetime] = None

    @property
    def is_active(self) -> bool:
        return self.ended_at is None


@dataclass(frozen=True, slots=True)
class ScheduledAssignment:
    id: str
    order_id: str
    driver_id: str
    window_start: datetime
    window_end: datetime
    execute_at: datetime
    created_at: datetime
    status: ScheduledStatus = ScheduledStatus.PENDING
    failure_reason: Optional[str] = None

    @property
    def is_blocking(self) -> bool:
        return self.status in BLOCKING_SCHEDULED_STATUSES


@dataclass(frozen=True, slots=True)
class ActivityLogEntry:
    id: str
    type: ActivityType
    order_id: str
    actor: str
    at: datetime
    message: str
    driver_id: Optional[str] = None
    status: Optional[OrderStatus] = None
    note: Optional[str] = None
    meta: dict = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class NotificationEntry:
    id: str
    channel: NotificationChannel
    order_id: str
    message: str
    created_at: datetime
    driver_id: Optional[str] = None
    read: bool = False
