"""Activity log and notification emission for order events."""

from __future__ import annotations

import logging
import uuid
from dataclasses import replace
from datetime import datetime, timezone
from typing import Callable, Optional

from ..models.domain import (
    ActivityLogEntry,
    ActivityType,
    Driver,
    NotificationChannel,
    NotificationEntry,
    Order,
    OrderStatus,
)
from ..persistence.store import DispatchStore

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return uuid.uuid4().hex


def _driver_label(driver: Optional[Driver], driver_id: Optional[str]) -> str:
    if driver is not None:
        return driver.name or driver.id
    return driver_id or "unknown driver"


def _compose(
    kind: ActivityType,
    order: Order,
    driver: Optional[Driver],
    status: Optional[OrderStatus],
    note: Optional[str],
    meta: dict,
) -> tuple[str, dict[NotificationChannel, str]]:
    """Activity message plus one message per notified audience."""

    label = _driver_label(driver, order.driver_id)
    ref = f"#{order.id}"
    match kind:
        case ActivityType.ASSIGN:
            return f"Driver {label} assigned", {
                NotificationChannel.CLIENT: f"A driver has been assigned to your order {ref}",
                NotificationChannel.ADMIN: f"Driver {label} assigned to {ref}",
                NotificationChannel.DRIVER: f"New mission {ref}: {order.pickup_address} -> {order.delivery_address}",
            }
        case ActivityType.UNASSIGN:
            suffix = f" ({note})" if note else ""
            return f"Driver {label} removed{suffix}", {
                NotificationChannel.CLIENT: f"The driver has been removed from your order {ref}",
                NotificationChannel.ADMIN: f"Driver {label} removed from {ref}{suffix}",
            }
        case ActivityType.REASSIGN:
            previous = meta.get("previous_driver_id") or "none"
            return f"Driver reassigned from {previous} to {label}", {
                NotificationChannel.CLIENT: f"A new driver has been assigned to your order {ref}",
                NotificationChannel.ADMIN: f"Order {ref} reassigned from {previous} to {label}",
                NotificationChannel.DRIVER: f"New mission {ref}: {order.pickup_address} -> {order.delivery_address}",
            }
        case ActivityType.STATUS_CHANGE | ActivityType.INCIDENT:
            status_label = status.value if status else order.status.value
            suffix = f" ({note})" if note else ""
            audiences = {
                NotificationChannel.CLIENT: f"Your order {ref} is now {status_label}{suffix}",
                NotificationChannel.ADMIN: f"Order {ref} moved to {status_label}{suffix}",
            }
            if status == OrderStatus.CANCELLED and meta.get("released_driver_id"):
                audiences[NotificationChannel.DRIVER] = f"Mission {ref} cancelled"
            return f"Status updated: {status_label}{suffix}", audiences
        case ActivityType.CREATE:
            source = meta.get("source_order_id")
            if source:
                return f"Order created by duplicating {source}", {
                    NotificationChannel.CLIENT: f"Order {ref} created from {source}",
                    NotificationChannel.ADMIN: f"Order {ref} created from {source}",
                }
            return "Order created", {NotificationChannel.ADMIN: f"Order {ref} created"}
        case ActivityType.AUTO_ASSIGN:
            return f"Automatic assignment: {note or 'no eligible driver'}", {
                NotificationChannel.ADMIN: f"Order {ref} needs a driver: {note or 'no eligible driver'}",
            }
        case ActivityType.SCHEDULE:
            return f"Assignment of {label} {note or 'scheduled'}", {
                NotificationChannel.ADMIN: f"Assignment of {label} to {ref} {note or 'scheduled'}",
            }
    return kind.value, {}


class AuditEmitter:
    """Single entry point for every audit side effect of an order change."""

    def __init__(self, store: DispatchStore, clock: Clock = utcnow) -> None:
        self.store = store
        self.clock = clock

    def emit_order_event(
        self,
        kind: ActivityType,
        order: Order,
        driver: Driver | None = None,
        actor: str = "system",
        *,
        status: OrderStatus | None = None,
        note: str | None = None,
        meta: dict | None = None,
    ) -> Optional[ActivityLogEntry]:
        """Append one activity entry and its notifications.

        Emission runs after the mutation is committed and is best-effort: a
        failure is logged and the committed mutation stands.
        """

        meta = dict(meta or {})
        driver_id = driver.id if driver is not None else meta.get("driver_id", order.driver_id)
        try:
            at = self.clock()
            message, audiences = _compose(kind, order, driver, status, note, meta)
            entry = ActivityLogEntry(
                id=new_id(),
                type=kind,
                order_id=order.id,
                driver_id=driver_id,
                actor=actor,
                at=at,
                message=message,
                status=status,
                note=note,
                meta=meta,
            )
            notifications = [
                NotificationEntry(
                    id=new_id(),
                    channel=channel,
                    order_id=order.id,
                    driver_id=meta.get("released_driver_id", driver_id)
                    if channel == NotificationChannel.DRIVER
                    else driver_id,
                    message=text,
                    created_at=at,
                )
                for channel, text in audiences.items()
            ]
            self.store.append_activity([entry])
            self.store.append_notifications(notifications)
        except Exception:
            logger.exception(f"Failed to emit {kind.value} audit records for order {order.id}")
            return None
        return entry

    def mark_read(self, notification: NotificationEntry) -> NotificationEntry:
        if notification.read:
            return notification
        updated = replace(notification, read=True)
        self.store.save_notification(updated)
        return updated
