"""Record store contract and the in-memory implementation."""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from typing import Iterable, Optional

from ..models.domain import (
    ActivityLogEntry,
    Assignment,
    Driver,
    NotificationChannel,
    NotificationEntry,
    Order,
    ScheduledAssignment,
    ScheduledStatus,
)


class DispatchStore(ABC):
    """Keyed collections for orders, drivers, assignments and the audit trail.

    ``commit`` must make every record it receives visible to readers at once.
    Referential and temporal invariants are enforced by the services, not here.
    """

    @abstractmethod
    def get_order(self, order_id: str) -> Optional[Order]:
        raise NotImplementedError

    @abstractmethod
    def list_orders(self) -> list[Order]:
        raise NotImplementedError

    @abstractmethod
    def get_driver(self, driver_id: str) -> Optional[Driver]:
        raise NotImplementedError

    @abstractmethod
    def list_drivers(self) -> list[Driver]:
        """Drivers in a stable order (insertion order or id order)."""
        raise NotImplementedError

    @abstractmethod
    def save_driver(self, driver: Driver) -> None:
        raise NotImplementedError

    @abstractmethod
    def list_assignments(self, driver_id: str | None = None, *, include_ended: bool = False) -> list[Assignment]:
        raise NotImplementedError

    @abstractmethod
    def get_active_assignment(self, order_id: str) -> Optional[Assignment]:
        raise NotImplementedError

    @abstractmethod
    def get_scheduled(self, scheduled_id: str) -> Optional[ScheduledAssignment]:
        raise NotImplementedError

    @abstractmethod
    def list_scheduled(
        self, driver_id: str | None = None, status: ScheduledStatus | None = None
    ) -> list[ScheduledAssignment]:
        raise NotImplementedError

    @abstractmethod
    def commit(
        self,
        *,
        orders: Iterable[Order] = (),
        assignments: Iterable[Assignment] = (),
        scheduled: Iterable[ScheduledAssignment] = (),
    ) -> None:
        raise NotImplementedError

    @abstractmethod
    def append_activity(self, entries: Iterable[ActivityLogEntry]) -> None:
        raise NotImplementedError

    @abstractmethod
    def list_activity(self, order_id: str | None = None) -> list[ActivityLogEntry]:
        """Entries newest first."""
        raise NotImplementedError

    @abstractmethod
    def append_notifications(self, entries: Iterable[NotificationEntry]) -> None:
        raise NotImplementedError

    @abstractmethod
    def get_notification(self, notification_id: str) -> Optional[NotificationEntry]:
        raise NotImplementedError

    @abstractmethod
    def save_notification(self, entry: NotificationEntry) -> None:
        raise NotImplementedError

    @abstractmethod
    def list_notifications(
        self,
        channel: NotificationChannel | None = None,
        order_id: str | None = None,
        driver_id: str | None = None,
    ) -> list[NotificationEntry]:
        """Entries newest first."""
        raise NotImplementedError


class InMemoryStore(DispatchStore):
    """Dict-backed store; one ``RLock`` guards every collection."""

    def __init__(
        self,
        *,
        orders: Iterable[Order] = (),
        drivers: Iterable[Driver] = (),
        assignments: Iterable[Assignment] = (),
    ) -> None:
        self._lock = threading.RLock()
        self._orders: dict[str, Order] = {order.id: order for order in orders}
        self._drivers: dict[str, Driver] = {driver.id: driver for driver in drivers}
        self._assignments: dict[str, Assignment] = {assignment.id: assignment for assignment in assignments}
        self._scheduled: dict[str, ScheduledAssignment] = {}
        self._activity: list[ActivityLogEntry] = []
        self._notifications: dict[str, NotificationEntry] = {}

    def get_order(self, order_id: str) -> Optional[Order]:
        with self._lock:
            return self._orders.get(order_id)

    def list_orders(self) -> list[Order]:
        with self._lock:
            return list(self._orders.values())

    def get_driver(self, driver_id: str) -> Optional[Driver]:
        with self._lock:
            return self._drivers.get(driver_id)

    def list_drivers(self) -> list[Driver]:
        with self._lock:
            return list(self._drivers.values())

    def save_driver(self, driver: Driver) -> None:
        with self._lock:
            self._drivers[driver.id] = driver

    def list_assignments(self, driver_id: str | None = None, *, include_ended: bool = False) -> list[Assignment]:
        with self._lock:
            return [
                assignment
                for assignment in self._assignments.values()
                if (driver_id is None or assignment.driver_id == driver_id)
                and (include_ended or assignment.is_active)
            ]

    def get_active_assignment(self, order_id: str) -> Optional[Assignment]:
        with self._lock:
            for assignment in self._assignments.values():
                if assignment.order_id == order_id and assignment.is_active:
                    return assignment
        return None

    def get_scheduled(self, scheduled_id: str) -> Optional[ScheduledAssignment]:
        with self._lock:
            return self._scheduled.get(scheduled_id)

    def list_scheduled(
        self, driver_id: str | None = None, status: ScheduledStatus | None = None
    ) -> list[ScheduledAssignment]:
        with self._lock:
            return [
                item
                for item in self._scheduled.values()
                if (driver_id is None or item.driver_id == driver_id) and (status is None or item.status == status)
            ]

    def commit(
        self,
        *,
        orders: Iterable[Order] = (),
        assignments: Iterable[Assignment] = (),
        scheduled: Iterable[ScheduledAssignment] = (),
    ) -> None:
        staged_orders = list(orders)
        staged_assignments = list(assignments)
        staged_scheduled = list(scheduled)
        with self._lock:
            for order in staged_orders:
                self._orders[order.id] = order
            for assignment in staged_assignments:
                self._assignments[assignment.id] = assignment
            for item in staged_scheduled:
                self._scheduled[item.id] = item

    def append_activity(self, entries: Iterable[ActivityLogEntry]) -> None:
        with self._lock:
            self._activity.extend(entries)

    def list_activity(self, order_id: str | None = None) -> list[ActivityLogEntry]:
        with self._lock:
            selected = [entry for entry in self._activity if order_id is None or entry.order_id == order_id]
        # stable sort keeps append order for equal timestamps
        return sorted(reversed(selected), key=lambda entry: entry.at, reverse=True)

    def append_notifications(self, entries: Iterable[NotificationEntry]) -> None:
        with self._lock:
            for entry in entries:
                self._notifications[entry.id] = entry

    def get_notification(self, notification_id: str) -> Optional[NotificationEntry]:
        with self._lock:
            return self._notifications.get(notification_id)

    def save_notification(self, entry: NotificationEntry) -> None:
        with self._lock:
            self._notifications[entry.id] = entry

    def list_notifications(
        self,
        channel: NotificationChannel | None = None,
        order_id: str | None = None,
        driver_id: str | None = None,
    ) -> list[NotificationEntry]:
        with self._lock:
            selected = [
                entry
                for entry in self._notifications.values()
                if (channel is None or entry.channel == channel)
                and (order_id is None or entry.order_id == order_id)
                and (driver_id is None or entry.driver_id == driver_id)
            ]
        return sorted(reversed(selected), key=lambda entry: entry.created_at, reverse=True)
