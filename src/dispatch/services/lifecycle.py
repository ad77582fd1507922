"""Order lifecycle state machine, status history and timeline derivation."""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Iterable, Literal, Optional, Sequence

from ..errors import InvalidTransition, OrderNotFound
from ..models.domain import ActivityLogEntry, ActivityType, Order, OrderStatus
from ..persistence.locks import LockManager
from ..persistence.store import DispatchStore
from .audit import AuditEmitter, Clock, utcnow

logger = logging.getLogger(__name__)

_S = OrderStatus

TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    _S.PENDING_ASSIGNMENT: frozenset({_S.PENDING_PICKUP, _S.CANCELLED, _S.INCIDENT}),
    _S.PENDING_PICKUP: frozenset({_S.PICKED_UP, _S.CANCELLED, _S.INCIDENT}),
    _S.PICKED_UP: frozenset({_S.IN_TRANSIT, _S.INCIDENT}),
    _S.IN_TRANSIT: frozenset({_S.DELIVERED, _S.INCIDENT}),
    # resolved against the pre-incident status, see allowed_transitions
    _S.INCIDENT: frozenset(),
    _S.DELIVERED: frozenset(),
    _S.CANCELLED: frozenset(),
}

TERMINAL_STATUSES = frozenset({_S.DELIVERED, _S.CANCELLED})
DRIVER_REQUIRED = frozenset({_S.PENDING_PICKUP, _S.PICKED_UP, _S.IN_TRANSIT, _S.DELIVERED})
MILESTONES = (_S.PENDING_ASSIGNMENT, _S.PENDING_PICKUP, _S.PICKED_UP, _S.IN_TRANSIT, _S.DELIVERED)

StepState = Literal["done", "current", "pending", "cancelled"]


class CancelReason(str, Enum):
    CHANGED_MIND = "CHANGED_MIND"
    WRONG_DETAILS = "WRONG_DETAILS"
    DELAY = "DELAY"
    OTHER = "OTHER"


CANCEL_REASON_LABELS = {
    CancelReason.CHANGED_MIND: "no longer needed",
    CancelReason.WRONG_DETAILS: "wrong details",
    CancelReason.DELAY: "lead time too long",
    CancelReason.OTHER: "other",
}


def is_terminal(status: OrderStatus) -> bool:
    return status in TERMINAL_STATUSES


def is_assignable(status: OrderStatus) -> bool:
    return status == _S.PENDING_ASSIGNMENT


def is_cancellable(status: OrderStatus) -> bool:
    return status in (_S.PENDING_ASSIGNMENT, _S.PENDING_PICKUP)


def is_releasable(status: OrderStatus) -> bool:
    """Statuses whose driver may be removed without stranding the order."""

    return status in (_S.PENDING_ASSIGNMENT, _S.PENDING_PICKUP)


def allowed_transitions(status: OrderStatus, resume_status: OrderStatus | None = None) -> frozenset[OrderStatus]:
    """Legal targets from ``status``.

    An incident can only be resolved back to the status held before it, or
    straight to Delivered once the goods were picked up.
    """

    if status == _S.INCIDENT:
        targets = set()
        if resume_status in (_S.PICKED_UP, _S.IN_TRANSIT):
            targets.add(_S.DELIVERED)
        if resume_status is not None and resume_status != _S.INCIDENT:
            targets.add(resume_status)
        return frozenset(targets)
    return TRANSITIONS[status]


def _chronological(entries: Iterable[ActivityLogEntry]) -> list[ActivityLogEntry]:
    """Oldest first. Input is newest first, as the store returns it; ties keep append order."""

    return sorted(reversed(list(entries)), key=lambda entry: entry.at)


def status_history(entries: Iterable[ActivityLogEntry]) -> list[tuple[OrderStatus, datetime]]:
    """Status-bearing entries, oldest first."""

    return [
        (entry.status, entry.at)
        for entry in _chronological(entries)
        if entry.status is not None and entry.type in (ActivityType.STATUS_CHANGE, ActivityType.INCIDENT, ActivityType.CREATE)
    ]


def derive_status(entries: Iterable[ActivityLogEntry], default: OrderStatus = _S.PENDING_ASSIGNMENT) -> OrderStatus:
    history = status_history(entries)
    return history[-1][0] if history else default


def resume_status(entries: Iterable[ActivityLogEntry]) -> Optional[OrderStatus]:
    """Most recent non-incident status, used to resolve an incident."""

    ordered = [entry for entry in _chronological(entries) if entry.status is not None]
    for entry in reversed(ordered):
        if entry.status != _S.INCIDENT:
            return entry.status
        previous = entry.meta.get("previous_status")
        if previous and previous != _S.INCIDENT.value:
            return OrderStatus(previous)
    return None


@dataclass(frozen=True, slots=True)
class TimelineStep:
    status: OrderStatus
    state: StepState
    at: Optional[datetime] = None


def build_timeline(order: Order, entries: Sequence[ActivityLogEntry]) -> list[TimelineStep]:
    """Five canonical milestones with done/current/pending/cancelled markers."""

    reached: dict[OrderStatus, datetime] = {}
    for status, at in status_history(entries):
        reached.setdefault(status, at)
    if _S.PENDING_ASSIGNMENT not in reached and order.created_at is not None:
        reached[_S.PENDING_ASSIGNMENT] = order.created_at

    current = order.status
    if current == _S.DELIVERED:
        return [TimelineStep(status=step, state="done", at=reached.get(step)) for step in MILESTONES]

    if current == _S.CANCELLED:
        return [
            TimelineStep(status=step, state="done", at=reached[step])
            if step in reached
            else TimelineStep(status=step, state="cancelled")
            for step in MILESTONES
        ]

    if current == _S.INCIDENT:
        current = resume_status(entries) or _S.PENDING_ASSIGNMENT

    position = MILESTONES.index(current)
    steps: list[TimelineStep] = []
    for index, step in enumerate(MILESTONES):
        if index < position:
            steps.append(TimelineStep(status=step, state="done", at=reached.get(step)))
        elif index == position:
            steps.append(TimelineStep(status=step, state="current", at=reached.get(step)))
        else:
            steps.append(TimelineStep(status=step, state="pending"))
    return steps


class LifecycleService:
    """Applies status transitions under the order's lock and records them."""

    def __init__(self, store: DispatchStore, locks: LockManager, audit: AuditEmitter, clock: Clock = utcnow) -> None:
        self.store = store
        self.locks = locks
        self.audit = audit
        self.clock = clock

    def _load(self, order_id: str) -> Order:
        order = self.store.get_order(order_id)
        if order is None:
            raise OrderNotFound(order_id)
        return order

    def transition(self, order_id: str, target: OrderStatus, actor: str, note: str | None = None) -> Order:
        if target == _S.CANCELLED:
            return self.cancel(order_id, actor, CancelReason.OTHER, note or "cancelled by operator")
        return self._apply(order_id, target, actor, note=note)

    def cancel(self, order_id: str, actor: str, reason: CancelReason, note: str | None = None) -> Order:
        note = note.strip() if note else None
        if reason == CancelReason.OTHER and not note:
            raise ValueError("A note is required when the cancellation reason is OTHER.")
        detail = CANCEL_REASON_LABELS[reason] if reason != CancelReason.OTHER else note
        return self._apply(order_id, _S.CANCELLED, actor, note=detail, meta={"cancel_reason": reason.value})

    def _apply(
        self,
        order_id: str,
        target: OrderStatus,
        actor: str,
        *,
        note: str | None = None,
        meta: dict | None = None,
    ) -> Order:
        meta = dict(meta or {})
        with self.locks.order(order_id):
            order = self._load(order_id)
            with self.locks.drivers([order.driver_id]):
                order = self._load(order_id)
                history = self.store.list_activity(order_id)
                allowed = allowed_transitions(order.status, resume_status(history))
                if target not in allowed:
                    logger.info(f"Rejected transition {order.status.value} -> {target.value} for order {order_id}")
                    if target == _S.CANCELLED:
                        reason = f"Order {order_id} cannot be cancelled in status {order.status.value}."
                        raise InvalidTransition(order.status, target, reason)
                    raise InvalidTransition(order.status, target)
                if target in DRIVER_REQUIRED and order.driver_id is None:
                    raise InvalidTransition(
                        order.status, target, f"Order {order_id} needs an assigned driver to become {target.value}."
                    )

                now = self.clock()
                assignment = self.store.get_active_assignment(order_id)
                ended = [replace(assignment, ended_at=now)] if assignment and target in TERMINAL_STATUSES else []
                updated = replace(order, status=target)
                if target == _S.CANCELLED and order.driver_id is not None:
                    meta["released_driver_id"] = order.driver_id
                    updated = replace(updated, driver_id=None, driver_assigned_at=None)
                self.store.commit(orders=[updated], assignments=ended)

        logger.info(f"Order {order_id}: {order.status.value} -> {target.value} by {actor}")
        kind = ActivityType.INCIDENT if target == _S.INCIDENT else ActivityType.STATUS_CHANGE
        meta["previous_status"] = order.status.value
        self.audit.emit_order_event(kind, updated, None, actor, status=target, note=note, meta=meta)
        return updated

    def history(self, order_id: str) -> list[ActivityLogEntry]:
        self._load(order_id)
        return self.store.list_activity(order_id)

    def derived_status(self, order_id: str) -> OrderStatus:
        order = self._load(order_id)
        return derive_status(self.store.list_activity(order_id), default=order.status)

    def timeline(self, order_id: str) -> list[TimelineStep]:
        order = self._load(order_id)
        return build_timeline(order, self.store.list_activity(order_id))
