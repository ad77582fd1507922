"""Supabase-backed record store."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Iterable, Optional

from supabase import Client

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
from .records import (
    activity_from_row,
    activity_to_row,
    assignment_from_row,
    assignment_to_row,
    driver_from_row,
    driver_to_row,
    notification_from_row,
    notification_to_row,
    order_from_row,
    order_to_row,
    scheduled_from_row,
    scheduled_to_row,
)
from .store import DispatchStore

logger = logging.getLogger(__name__)

TABLES = {
    "orders": "orders",
    "drivers": "drivers",
    "assignments": "assignments",
    "scheduled": "scheduled_assignments",
    "activity": "activity_log",
    "notifications": "notifications",
}

# Postgres function applying all staged rows in one transaction:
#   dispatch_commit(orders jsonb, assignments jsonb, scheduled jsonb)
COMMIT_RPC = "dispatch_commit"
# tables plus the commit function, to run once against the Supabase database
SCHEMA_SQL = Path(__file__).with_name("sql") / "dispatch_commit.sql"


class SupabaseStore(DispatchStore):
    """Store backed by Supabase tables, one per record type.

    Multi-record commits go through the ``dispatch_commit`` RPC so the database
    applies them in a single transaction. The function and tables are defined
    in ``sql/dispatch_commit.sql`` (:data:`SCHEMA_SQL`).
    """

    def __init__(self, client: Client) -> None:
        self.client = client

    def _select(self, table: str, **filters: Any) -> list[dict[str, Any]]:
        query = self.client.table(TABLES[table]).select("*")
        for column, value in filters.items():
            if value is None:
                continue
            query = query.eq(column, value)
        response = query.execute()
        return list(response.data or [])

    def _first(self, table: str, **filters: Any) -> Optional[dict[str, Any]]:
        rows = self._select(table, **filters)
        return rows[0] if rows else None

    def get_order(self, order_id: str) -> Optional[Order]:
        row = self._first("orders", id=order_id)
        return order_from_row(row) if row else None

    def list_orders(self) -> list[Order]:
        return [order_from_row(row) for row in self._select("orders")]

    def get_driver(self, driver_id: str) -> Optional[Driver]:
        row = self._first("drivers", id=driver_id)
        return driver_from_row(row) if row else None

    def list_drivers(self) -> list[Driver]:
        rows = sorted(self._select("drivers"), key=lambda row: str(row["id"]))
        return [driver_from_row(row) for row in rows]

    def save_driver(self, driver: Driver) -> None:
        self.client.table(TABLES["drivers"]).upsert(driver_to_row(driver)).execute()

    def list_assignments(self, driver_id: str | None = None, *, include_ended: bool = False) -> list[Assignment]:
        assignments = [assignment_from_row(row) for row in self._select("assignments", driver_id=driver_id)]
        if include_ended:
            return assignments
        return [assignment for assignment in assignments if assignment.is_active]

    def get_active_assignment(self, order_id: str) -> Optional[Assignment]:
        for row in self._select("assignments", order_id=order_id):
            assignment = assignment_from_row(row)
            if assignment.is_active:
                return assignment
        return None

    def get_scheduled(self, scheduled_id: str) -> Optional[ScheduledAssignment]:
        row = self._first("scheduled", id=scheduled_id)
        return scheduled_from_row(row) if row else None

    def list_scheduled(
        self, driver_id: str | None = None, status: ScheduledStatus | None = None
    ) -> list[ScheduledAssignment]:
        rows = self._select("scheduled", driver_id=driver_id, status=status.value if status else None)
        return [scheduled_from_row(row) for row in rows]

    def commit(
        self,
        *,
        orders: Iterable[Order] = (),
        assignments: Iterable[Assignment] = (),
        scheduled: Iterable[ScheduledAssignment] = (),
    ) -> None:
        payload = {
            "orders": [order_to_row(order) for order in orders],
            "assignments": [assignment_to_row(assignment) for assignment in assignments],
            "scheduled": [scheduled_to_row(item) for item in scheduled],
        }
        if not any(payload.values()):
            return
        self.client.rpc(COMMIT_RPC, payload).execute()
        logger.debug(
            f"Committed {len(payload['orders'])} orders, {len(payload['assignments'])} assignments, "
            f"{len(payload['scheduled'])} scheduled assignments"
        )

    def append_activity(self, entries: Iterable[ActivityLogEntry]) -> None:
        rows = [activity_to_row(entry) for entry in entries]
        if rows:
            self.client.table(TABLES["activity"]).insert(rows).execute()

    def list_activity(self, order_id: str | None = None) -> list[ActivityLogEntry]:
        entries = [activity_from_row(row) for row in self._select("activity", order_id=order_id)]
        return sorted(entries, key=lambda entry: entry.at, reverse=True)

    def append_notifications(self, entries: Iterable[NotificationEntry]) -> None:
        rows = [notification_to_row(entry) for entry in entries]
        if rows:
            self.client.table(TABLES["notifications"]).insert(rows).execute()

    def get_notification(self, notification_id: str) -> Optional[NotificationEntry]:
        row = self._first("notifications", id=notification_id)
        return notification_from_row(row) if row else None

    def save_notification(self, entry: NotificationEntry) -> None:
        self.client.table(TABLES["notifications"]).upsert(notification_to_row(entry)).execute()

    def list_notifications(
        self,
        channel: NotificationChannel | None = None,
        order_id: str | None = None,
        driver_id: str | None = None,
    ) -> list[NotificationEntry]:
        rows = self._select(
            "notifications",
            channel=channel.value if channel else None,
            order_id=order_id,
            driver_id=driver_id,
        )
        entries = [notification_from_row(row) for row in rows]
        return sorted(entries, key=lambda entry: entry.created_at, reverse=True)
