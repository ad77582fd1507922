"""Duplicate a past order for a new pickup window and auto-assign the nearest driver."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import Optional

from ..config import settings
from ..errors import NotAssignable, OrderNotFound
from ..models.domain import ActivityType, Driver, Order, OrderStatus
from ..persistence.locks import LockManager
from ..persistence.store import DispatchStore
from .assignment import AssignmentService
from .audit import AuditEmitter, Clock, utcnow
from .geocoding import Geocoder
from .scheduling.conflicts import validate_window
from .scheduling.selector import NearestDriverSelector
from .zones import ZoneCatalog

logger = logging.getLogger(__name__)

AUTO_ASSIGN_ACTOR = "system:auto-assign"


@dataclass(frozen=True, slots=True)
class ReorderResult:
    order: Order
    driver: Optional[Driver] = None
    distance_km: Optional[float] = None
    reason: Optional[str] = None


def new_order_id() -> str:
    return f"ORD-{uuid.uuid4().hex[:10].upper()}"


class ReorderService:
    def __init__(
        self,
        store: DispatchStore,
        locks: LockManager,
        geocoder: Geocoder,
        selector: NearestDriverSelector,
        assignments: AssignmentService,
        audit: AuditEmitter,
        zones: ZoneCatalog | None = None,
        clock: Clock = utcnow,
        window_minutes: int | None = None,
    ) -> None:
        self.store = store
        self.locks = locks
        self.geocoder = geocoder
        self.selector = selector
        self.assignments = assignments
        self.audit = audit
        self.zones = zones
        self.clock = clock
        self.window_minutes = window_minutes if window_minutes is not None else settings.reorder_window_minutes

    def _allocate_id(self) -> str:
        order_id = new_order_id()
        while self.store.get_order(order_id) is not None:
            order_id = new_order_id()
        return order_id

    def reorder(
        self,
        source_order_id: str,
        pickup_start: datetime,
        pickup_end: datetime | None = None,
        *,
        actor: str = "client",
        customer_id: str | None = None,
    ) -> ReorderResult:
        """Create a copy of ``source_order_id`` and try to hand it to the nearest driver.

        The new order is always created. When no driver qualifies it stays in
        PendingAssignment and the result carries the reason.
        """

        source = self.store.get_order(source_order_id)
        if source is None or (customer_id is not None and source.customer_id != customer_id):
            raise OrderNotFound(source_order_id)

        pickup_end = pickup_end or pickup_start + timedelta(minutes=self.window_minutes)
        validate_window(pickup_start, pickup_end)

        pickup = source.pickup_coords or self.geocoder.resolve(source.pickup_address)
        delivery = source.delivery_coords or self.geocoder.resolve(source.delivery_address)
        zone = source.zone_requirement
        if zone is None and self.zones is not None:
            zone = self.zones.zone_for(pickup)

        order = replace(
            source,
            id=self._allocate_id(),
            customer_id=customer_id or source.customer_id,
            window_start=pickup_start,
            window_end=pickup_end,
            pickup_coords=pickup,
            delivery_coords=delivery,
            zone_requirement=zone,
            status=OrderStatus.PENDING_ASSIGNMENT,
            driver_id=None,
            driver_assigned_at=None,
            previous_order_id=source.id,
            created_at=self.clock(),
        )
        with self.locks.order(order.id):
            self.store.commit(orders=[order])
        logger.info(f"Order {order.id} created from {source.id} for {pickup_start.isoformat()}")
        self.audit.emit_order_event(
            ActivityType.CREATE,
            order,
            actor=actor,
            status=OrderStatus.PENDING_ASSIGNMENT,
            meta={"source_order_id": source.id},
        )

        if pickup is None:
            return self._unassigned(order, "pickup address could not be located")

        candidates = self.selector.rank(
            pickup, pickup_start, pickup_end, order.weight_kg, zone=zone, min_volume=order.volume_m3
        )
        for candidate in candidates:
            try:
                result = self.assignments.assign(order.id, candidate.driver.id, AUTO_ASSIGN_ACTOR)
            except NotAssignable as exc:
                # lost a race for this driver; the next candidate may still fit
                logger.info(f"Auto-assign skipped driver {candidate.driver.id} for {order.id}: {exc.reason}")
                continue
            return ReorderResult(order=result.order, driver=result.driver, distance_km=candidate.distance_km)

        return self._unassigned(order, "no eligible driver")

    def _unassigned(self, order: Order, reason: str) -> ReorderResult:
        logger.warning(f"Order {order.id} left without driver: {reason}")
        self.audit.emit_order_event(ActivityType.AUTO_ASSIGN, order, actor=AUTO_ASSIGN_ACTOR, note=reason)
        return ReorderResult(order=order, reason=reason)
