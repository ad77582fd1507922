"""Read-only views over orders, drivers and notifications."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from ..errors import DriverNotFound, OrderNotFound
from ..models.domain import (
    ActivityLogEntry,
    Assignment,
    Driver,
    NotificationChannel,
    NotificationEntry,
    Order,
    OrderStatus,
    ScheduledAssignment,
)
from ..persistence.store import DispatchStore
from .lifecycle import TimelineStep, build_timeline, derive_status
from .scheduling.conflicts import Conflict, ConflictChecker
from .scheduling.eligibility import Eligibility, EligibilityEvaluator


@dataclass(frozen=True, slots=True)
class OrderDetail:
    order: Order
    derived_status: OrderStatus
    driver: Optional[Driver] = None
    assignment: Optional[Assignment] = None
    activity: list[ActivityLogEntry] = field(default_factory=list)
    timeline: list[TimelineStep] = field(default_factory=list)
    scheduled: list[ScheduledAssignment] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class DriverVerdict:
    driver: Driver
    eligibility: Eligibility


class DispatchQueries:
    def __init__(self, store: DispatchStore, checker: ConflictChecker, evaluator: EligibilityEvaluator) -> None:
        self.store = store
        self.checker = checker
        self.evaluator = evaluator

    def _order(self, order_id: str) -> Order:
        order = self.store.get_order(order_id)
        if order is None:
            raise OrderNotFound(order_id)
        return order

    def _driver(self, driver_id: str) -> Driver:
        driver = self.store.get_driver(driver_id)
        if driver is None:
            raise DriverNotFound(driver_id)
        return driver

    def list_orders(
        self,
        status: OrderStatus | None = None,
        customer_id: str | None = None,
        driver_id: str | None = None,
    ) -> list[Order]:
        orders = self.store.list_orders()
        if status is not None:
            orders = [order for order in orders if order.status == status]
        if customer_id is not None:
            orders = [order for order in orders if order.customer_id == customer_id]
        if driver_id is not None:
            orders = [order for order in orders if order.driver_id == driver_id]
        return sorted(orders, key=lambda order: (order.window_start, order.id))

    def get_order_detail(self, order_id: str) -> OrderDetail:
        order = self._order(order_id)
        activity = self.store.list_activity(order_id)
        return OrderDetail(
            order=order,
            derived_status=derive_status(activity, default=order.status),
            driver=self.store.get_driver(order.driver_id) if order.driver_id else None,
            assignment=self.store.get_active_assignment(order_id),
            activity=activity,
            timeline=build_timeline(order, activity),
            scheduled=[item for item in self.store.list_scheduled() if item.order_id == order_id],
        )

    def eligible_drivers(self, order_id: str) -> list[DriverVerdict]:
        """Every driver with its verdict for the order; eligible drivers first."""

        order = self._order(order_id)
        verdicts = [DriverVerdict(driver, self.evaluator.evaluate(driver, order)) for driver in self.store.list_drivers()]
        return sorted(verdicts, key=lambda item: not item.eligibility.assignable)

    def driver_conflict(self, driver_id: str, start: datetime, end: datetime) -> Optional[Conflict]:
        driver = self._driver(driver_id)
        return self.checker.find_conflict(driver_id, start, end, driver=driver)

    def driver_orders(self, driver_id: str, include_finished: bool = False) -> list[Order]:
        self._driver(driver_id)
        orders = self.list_orders(driver_id=driver_id)
        if include_finished:
            return orders
        return [order for order in orders if order.status not in (OrderStatus.DELIVERED, OrderStatus.CANCELLED)]

    def client_orders(self, customer_id: str) -> list[Order]:
        return sorted(
            self.list_orders(customer_id=customer_id),
            key=lambda order: order.created_at or order.window_start,
            reverse=True,
        )

    def notifications(
        self,
        channel: NotificationChannel | None = None,
        *,
        customer_id: str | None = None,
        driver_id: str | None = None,
        order_id: str | None = None,
        unread_only: bool = False,
    ) -> list[NotificationEntry]:
        entries = self.store.list_notifications(channel=channel, order_id=order_id, driver_id=driver_id)
        if customer_id is not None:
            owned = {order.id for order in self.store.list_orders() if order.customer_id == customer_id}
            entries = [entry for entry in entries if entry.order_id in owned]
        if unread_only:
            entries = [entry for entry in entries if not entry.read]
        return entries
