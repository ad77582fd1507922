"""Conversion between domain records and JSON-compatible rows."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from ..config import settings
from ..models.domain import (
    ActivityLogEntry,
    ActivityType,
    Assignment,
    Coordinates,
    Driver,
    DriverStatus,
    NotificationChannel,
    NotificationEntry,
    Order,
    OrderStatus,
    ScheduledAssignment,
    ScheduledStatus,
    UnavailabilityWindow,
)


def _ts(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _parse_ts(value: Any) -> Optional[datetime]:
    if value is None or value == "":
        return None
    parsed = value if isinstance(value, datetime) else datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    # stored timestamps without an offset are UTC
    return parsed if parsed.tzinfo is not None else parsed.replace(tzinfo=timezone.utc)


def _coords_to_row(coords: Optional[Coordinates]) -> Optional[dict]:
    if coords is None:
        return None
    return {"lat": coords.lat, "lng": coords.lng}


def _coords_from_row(value: Any) -> Optional[Coordinates]:
    if not isinstance(value, dict):
        return None
    try:
        return Coordinates(lat=float(value["lat"]), lng=float(value["lng"]))
    except (KeyError, TypeError, ValueError):
        return None


def order_to_row(order: Order) -> dict[str, Any]:
    return {
        "id": order.id,
        "customer_id": order.customer_id,
        "pickup_address": order.pickup_address,
        "delivery_address": order.delivery_address,
        "window_start": _ts(order.window_start),
        "window_end": _ts(order.window_end),
        "weight_kg": order.weight_kg,
        "volume_m3": order.volume_m3,
        "transport_type": order.transport_type,
        "zone_requirement": order.zone_requirement,
        "amount": order.amount,
        "currency": order.currency,
        "instructions": order.instructions,
        "pickup_coords": _coords_to_row(order.pickup_coords),
        "delivery_coords": _coords_to_row(order.delivery_coords),
        "status": order.status.value,
        "driver_id": order.driver_id,
        "driver_assigned_at": _ts(order.driver_assigned_at),
        "previous_order_id": order.previous_order_id,
        "created_at": _ts(order.created_at),
    }


def order_from_row(row: dict[str, Any]) -> Order:
    window_start = _parse_ts(row["window_start"])
    window_end = _parse_ts(row.get("window_end"))
    if window_end is None:
        window_end = window_start + timedelta(minutes=settings.default_window_minutes)
    return Order(
        id=str(row["id"]),
        customer_id=str(row["customer_id"]),
        pickup_address=row.get("pickup_address") or "",
        delivery_address=row.get("delivery_address") or "",
        window_start=window_start,
        window_end=window_end,
        weight_kg=float(row.get("weight_kg") or 0.0),
        volume_m3=float(row.get("volume_m3") or 0.0),
        transport_type=row.get("transport_type") or "Standard",
        zone_requirement=row.get("zone_requirement"),
        amount=float(row.get("amount") or 0.0),
        currency=row.get("currency") or "EUR",
        instructions=row.get("instructions"),
        pickup_coords=_coords_from_row(row.get("pickup_coords")),
        delivery_coords=_coords_from_row(row.get("delivery_coords")),
        status=OrderStatus(row.get("status") or OrderStatus.PENDING_ASSIGNMENT.value),
        driver_id=row.get("driver_id"),
        driver_assigned_at=_parse_ts(row.get("driver_assigned_at")),
        previous_order_id=row.get("previous_order_id"),
        created_at=_parse_ts(row.get("created_at")),
    )


def driver_to_row(driver: Driver) -> dict[str, Any]:
    return {
        "id": driver.id,
        "name": driver.name,
        "phone": driver.phone,
        "zone": driver.zone,
        "vehicle": driver.vehicle,
        "capacity_kg": driver.capacity_kg,
        "capacity_m3": driver.capacity_m3,
        "status": driver.status.value,
        "active": driver.active,
        "last_location": _coords_to_row(driver.last_location),
        "unavailabilities": [
            {"start": _ts(window.start), "end": _ts(window.end), "reason": window.reason}
            for window in driver.unavailabilities
        ],
    }


def driver_from_row(row: dict[str, Any]) -> Driver:
    windows = tuple(
        UnavailabilityWindow(
            start=_parse_ts(item["start"]),
            end=_parse_ts(item["end"]),
            reason=item.get("reason"),
        )
        for item in row.get("unavailabilities") or []
    )
    capacity_m3 = row.get("capacity_m3")
    return Driver(
        id=str(row["id"]),
        name=row.get("name") or "",
        phone=row.get("phone") or "",
        zone=row.get("zone"),
        vehicle=row.get("vehicle") or "",
        capacity_kg=float(row.get("capacity_kg") or 0.0),
        capacity_m3=float(capacity_m3) if capacity_m3 is not None else None,
        status=DriverStatus(row.get("status") or DriverStatus.AVAILABLE.value),
        active=bool(row.get("active", True)),
        last_location=_coords_from_row(row.get("last_location")),
        unavailabilities=windows,
    )


def assignment_to_row(assignment: Assignment) -> dict[str, Any]:
    return {
        "id": assignment.id,
        "order_id": assignment.order_id,
        "driver_id": assignment.driver_id,
        "window_start": _ts(assignment.window_start),
        "window_end": _ts(assignment.window_end),
        "created_at": _ts(assignment.created_at),
        "ended_at": _ts(assignment.ended_at),
    }


def assignment_from_row(row: dict[str, Any]) -> Assignment:
    return Assignment(
        id=str(row["id"]),
        order_id=str(row["order_id"]),
        driver_id=str(row["driver_id"]),
        window_start=_parse_ts(row["window_start"]),
        window_end=_parse_ts(row["window_end"]),
        created_at=_parse_ts(row["created_at"]),
        ended_at=_parse_ts(row.get("ended_at")),
    )


def scheduled_to_row(item: ScheduledAssignment) -> dict[str, Any]:
    return {
        "id": item.id,
        "order_id": item.order_id,
        "driver_id": item.driver_id,
        "window_start": _ts(item.window_start),
        "window_end": _ts(item.window_end),
        "execute_at": _ts(item.execute_at),
        "created_at": _ts(item.created_at),
        "status": item.status.value,
        "failure_reason": item.failure_reason,
    }


def scheduled_from_row(row: dict[str, Any]) -> ScheduledAssignment:
    return ScheduledAssignment(
        id=str(row["id"]),
        order_id=str(row["order_id"]),
        driver_id=str(row["driver_id"]),
        window_start=_parse_ts(row["window_start"]),
        window_end=_parse_ts(row["window_end"]),
        execute_at=_parse_ts(row["execute_at"]),
        created_at=_parse_ts(row["created_at"]),
        status=ScheduledStatus(row.get("status") or ScheduledStatus.PENDING.value),
        failure_reason=row.get("failure_reason"),
    )


def activity_to_row(entry: ActivityLogEntry) -> dict[str, Any]:
    return {
        "id": entry.id,
        "type": entry.type.value,
        "order_id": entry.order_id,
        "driver_id": entry.driver_id,
        "actor": entry.actor,
        "at": _ts(entry.at),
        "message": entry.message,
        "status": entry.status.value if entry.status else None,
        "note": entry.note,
        "meta": dict(entry.meta),
    }


def activity_from_row(row: dict[str, Any]) -> ActivityLogEntry:
    status = row.get("status")
    return ActivityLogEntry(
        id=str(row["id"]),
        type=ActivityType(row["type"]),
        order_id=str(row["order_id"]),
        driver_id=row.get("driver_id"),
        actor=row.get("actor") or "system",
        at=_parse_ts(row["at"]),
        message=row.get("message") or "",
        status=OrderStatus(status) if status else None,
        note=row.get("note"),
        meta=dict(row.get("meta") or {}),
    )


def notification_to_row(entry: NotificationEntry) -> dict[str, Any]:
    return {
        "id": entry.id,
        "channel": entry.channel.value,
        "order_id": entry.order_id,
        "driver_id": entry.driver_id,
        "message": entry.message,
        "created_at": _ts(entry.created_at),
        "read": entry.read,
    }


def notification_from_row(row: dict[str, Any]) -> NotificationEntry:
    return NotificationEntry(
        id=str(row["id"]),
        channel=NotificationChannel(row["channel"]),
        order_id=str(row["order_id"]),
        driver_id=row.get("driver_id"),
        message=row.get("message") or "",
        created_at=_parse_ts(row["created_at"]),
        read=bool(row.get("read", False)),
    )
