"""Assign, unassign, reassign and deferred assignment of drivers to orders."""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Optional

from ..errors import (
    DispatchError,
    DriverNotFound,
    InvalidSchedule,
    InvalidTransition,
    NoActiveAssignment,
    NotAssignable,
    OrderNotFound,
    ScheduledAssignmentNotFound,
)
from ..models.domain import (
    ActivityType,
    Assignment,
    Driver,
    Order,
    OrderStatus,
    ScheduledAssignment,
    ScheduledStatus,
)
from ..persistence.locks import LockManager
from ..persistence.store import DispatchStore
from .audit import AuditEmitter, Clock, new_id, utcnow
from .lifecycle import is_assignable, is_releasable, is_terminal
from .scheduling.eligibility import EligibilityEvaluator

logger = logging.getLogger(__name__)

SCHEDULER_ACTOR = "system:scheduler"


@dataclass(frozen=True, slots=True)
class AssignmentResult:
    order: Order
    driver: Optional[Driver]
    assignment: Optional[Assignment]


class AssignmentService:
    """Mutates orders and assignments inside per-order/per-driver regions.

    Every check runs inside the same region as the write it guards. Audit
    records are emitted once the region is released.
    """

    def __init__(
        self,
        store: DispatchStore,
        locks: LockManager,
        evaluator: EligibilityEvaluator,
        audit: AuditEmitter,
        clock: Clock = utcnow,
    ) -> None:
        self.store = store
        self.locks = locks
        self.evaluator = evaluator
        self.audit = audit
        self.clock = clock

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

    @staticmethod
    def _ensure_assignable(order: Order) -> None:
        if not is_assignable(order.status):
            raise InvalidTransition(
                order.status,
                "assign",
                f"Order {order.id} is {order.status.value}; only PendingAssignment orders accept a driver.",
            )

    def _check(self, driver: Driver, order: Order, ignore_scheduled_id: str | None = None) -> None:
        if order.window_end <= order.window_start:
            raise NotAssignable(f"invalid window for order {order.id}: end must be after start")
        verdict = self.evaluator.evaluate(driver, order, ignore_scheduled_id=ignore_scheduled_id)
        if not verdict.assignable:
            logger.info(f"Driver {driver.id} not assignable to order {order.id}: {verdict.reason}")
            raise NotAssignable(verdict.reason or "not assignable", verdict.conflict_order_id)

    def _bind(self, order: Order, driver: Driver, now: datetime) -> tuple[Order, list[Assignment]]:
        """Updated order plus the assignment rows to commit (ended previous + new)."""

        rows: list[Assignment] = []
        previous = self.store.get_active_assignment(order.id)
        if previous is not None:
            rows.append(replace(previous, ended_at=now))
        rows.append(
            Assignment(
                id=new_id(),
                order_id=order.id,
                driver_id=driver.id,
                window_start=order.window_start,
                window_end=order.window_end,
                created_at=now,
            )
        )
        return replace(order, driver_id=driver.id, driver_assigned_at=now), rows

    def _release(self, order: Order, now: datetime) -> tuple[Order, list[Assignment]]:
        previous = self.store.get_active_assignment(order.id)
        rows = [replace(previous, ended_at=now)] if previous is not None else []
        return replace(order, driver_id=None, driver_assigned_at=None), rows

    def assign(
        self,
        order_id: str,
        driver_id: str,
        actor: str,
        *,
        ignore_scheduled_id: str | None = None,
    ) -> AssignmentResult:
        with self.locks.order(order_id):
            order = self._order(order_id)
            self._driver(driver_id)
            self._ensure_assignable(order)
            with self.locks.drivers([driver_id, order.driver_id]):
                order = self._order(order_id)
                driver = self._driver(driver_id)
                self._check(driver, order, ignore_scheduled_id)
                updated, rows = self._bind(order, driver, self.clock())
                self.store.commit(orders=[updated], assignments=rows)

        logger.info(f"Assigned driver {driver.id} to order {order_id} by {actor}")
        self.audit.emit_order_event(ActivityType.ASSIGN, updated, driver, actor)
        return AssignmentResult(order=updated, driver=driver, assignment=rows[-1])

    def unassign(self, order_id: str, actor: str, note: str | None = None) -> AssignmentResult:
        with self.locks.order(order_id):
            order = self._order(order_id)
            if is_terminal(order.status):
                raise InvalidTransition(order.status, "unassign", f"Order {order_id} is {order.status.value}.")
            if not is_releasable(order.status):
                raise InvalidTransition(
                    order.status,
                    "unassign",
                    f"Order {order_id} is {order.status.value}; its driver can only be removed before pickup.",
                )
            if order.driver_id is None:
                raise NoActiveAssignment(order_id)
            with self.locks.drivers([order.driver_id]):
                order = self._order(order_id)
                previous_driver_id = order.driver_id
                updated, rows = self._release(order, self.clock())
                # a PendingPickup order without a driver goes back to the assignment queue
                if order.status == OrderStatus.PENDING_PICKUP:
                    updated = replace(updated, status=OrderStatus.PENDING_ASSIGNMENT)
                self.store.commit(orders=[updated], assignments=rows)

        driver = self.store.get_driver(previous_driver_id)
        logger.info(f"Unassigned driver {previous_driver_id} from order {order_id} by {actor}")
        self.audit.emit_order_event(
            ActivityType.UNASSIGN, updated, driver, actor, note=note, meta={"driver_id": previous_driver_id}
        )
        if updated.status != order.status:
            self.audit.emit_order_event(
                ActivityType.STATUS_CHANGE,
                updated,
                None,
                actor,
                status=updated.status,
                note="driver removed before pickup",
                meta={"previous_status": order.status.value},
            )
        return AssignmentResult(order=updated, driver=driver, assignment=rows[0] if rows else None)

    def reassign(self, order_id: str, new_driver_id: str, actor: str) -> AssignmentResult:
        """Unassign then assign to ``new_driver_id``.

        If the new driver is not eligible the order keeps no driver at all; the
        previous driver is never restored.
        """

        failure: NotAssignable | None = None
        with self.locks.order(order_id):
            order = self._order(order_id)
            self._driver(new_driver_id)
            self._ensure_assignable(order)
            previous_driver_id = order.driver_id
            with self.locks.drivers([new_driver_id, previous_driver_id]):
                order = self._order(order_id)
                driver = self._driver(new_driver_id)
                now = self.clock()
                try:
                    self._check(driver, order)
                except NotAssignable as exc:
                    failure = exc
                if failure is None:
                    updated, rows = self._bind(order, driver, now)
                    self.store.commit(orders=[updated], assignments=rows)
                elif previous_driver_id is not None:
                    updated, rows = self._release(order, now)
                    self.store.commit(orders=[updated], assignments=rows)

        if failure is not None:
            if previous_driver_id is not None:
                logger.warning(
                    f"Reassignment of order {order_id} to {new_driver_id} failed after releasing "
                    f"{previous_driver_id}: {failure.reason}"
                )
                self.audit.emit_order_event(
                    ActivityType.UNASSIGN,
                    updated,
                    self.store.get_driver(previous_driver_id),
                    actor,
                    note=f"reassignment to {new_driver_id} failed: {failure.reason}",
                    meta={"driver_id": previous_driver_id, "attempted_driver_id": new_driver_id},
                )
            raise failure

        logger.info(f"Reassigned order {order_id} from {previous_driver_id} to {new_driver_id} by {actor}")
        if previous_driver_id is None:
            self.audit.emit_order_event(ActivityType.ASSIGN, updated, driver, actor)
        else:
            self.audit.emit_order_event(
                ActivityType.REASSIGN, updated, driver, actor, meta={"previous_driver_id": previous_driver_id}
            )
        return AssignmentResult(order=updated, driver=driver, assignment=rows[-1])

    def schedule_assignment(
        self, order_id: str, driver_id: str, execute_at: datetime, actor: str
    ) -> ScheduledAssignment:
        now = self.clock()
        if execute_at <= now:
            raise InvalidSchedule("A scheduled assignment must execute in the future.")

        with self.locks.order(order_id):
            order = self._order(order_id)
            self._driver(driver_id)
            self._ensure_assignable(order)
            pending = [item for item in self.store.list_scheduled() if item.order_id == order_id and item.is_blocking]
            if pending:
                raise InvalidSchedule(f"Order {order_id} already has a pending scheduled assignment ({pending[0].id}).")
            with self.locks.drivers([driver_id]):
                driver = self._driver(driver_id)
                self._check(driver, order)
                scheduled = ScheduledAssignment(
                    id=new_id(),
                    order_id=order.id,
                    driver_id=driver.id,
                    window_start=order.window_start,
                    window_end=order.window_end,
                    execute_at=execute_at,
                    created_at=now,
                )
                self.store.commit(scheduled=[scheduled])

        logger.info(f"Scheduled driver {driver_id} for order {order_id} at {execute_at.isoformat()}")
        self.audit.emit_order_event(
            ActivityType.SCHEDULE, order, driver, actor, note=f"scheduled for {execute_at:%Y-%m-%d %H:%M}"
        )
        return scheduled

    def cancel_scheduled_assignment(self, scheduled_id: str, actor: str) -> ScheduledAssignment:
        item = self.store.get_scheduled(scheduled_id)
        if item is None:
            raise ScheduledAssignmentNotFound(scheduled_id)
        with self.locks.order(item.order_id):
            item = self.store.get_scheduled(scheduled_id)
            if not item.is_blocking:
                raise InvalidSchedule(f"Scheduled assignment {scheduled_id} is {item.status.value} and cannot be cancelled.")
            cancelled = replace(item, status=ScheduledStatus.CANCELLED, failure_reason=None)
            self.store.commit(scheduled=[cancelled])

        order = self.store.get_order(item.order_id)
        if order is not None:
            self.audit.emit_order_event(
                ActivityType.SCHEDULE,
                order,
                self.store.get_driver(item.driver_id),
                actor,
                note="cancelled",
                meta={"driver_id": item.driver_id, "scheduled_id": scheduled_id},
            )
        return cancelled

    def process_due_assignments(self, now: datetime | None = None) -> list[ScheduledAssignment]:
        """Execute every pending scheduled assignment whose time has come."""

        now = now or self.clock()
        due = sorted(
            (item for item in self.store.list_scheduled(status=ScheduledStatus.PENDING) if item.execute_at <= now),
            key=lambda item: item.execute_at,
        )
        processed: list[ScheduledAssignment] = []
        for item in due:
            with self.locks.order(item.order_id):
                current = self.store.get_scheduled(item.id)
                if current is None or current.status != ScheduledStatus.PENDING:
                    continue
                self.store.commit(scheduled=[replace(current, status=ScheduledStatus.PROCESSING)])

            try:
                self.assign(item.order_id, item.driver_id, SCHEDULER_ACTOR, ignore_scheduled_id=item.id)
            except DispatchError as exc:
                outcome = replace(current, status=ScheduledStatus.FAILED, failure_reason=str(exc))
                logger.warning(f"Scheduled assignment {item.id} failed: {exc}")
            else:
                outcome = replace(current, status=ScheduledStatus.COMPLETED, failure_reason=None)

            with self.locks.order(item.order_id):
                self.store.commit(scheduled=[outcome])
            processed.append(outcome)
        return processed
