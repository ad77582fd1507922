"""Interval conflict detection over driver occupancy."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Literal, Optional

from ...models.domain import Driver
from ...persistence.store import DispatchStore


def has_overlap(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    """Half-open ``[start, end)`` overlap test. Inputs must be well-formed windows."""

    return a_start < b_end and b_start < a_end


def validate_window(start: datetime, end: datetime) -> None:
    if end <= start:
        raise ValueError(f"Invalid window: end ({end.isoformat()}) must be after start ({start.isoformat()}).")


@dataclass(frozen=True, slots=True)
class Conflict:
    kind: Literal["assignment", "scheduled", "unavailability"]
    start: datetime
    end: datetime
    order_id: Optional[str] = None
    note: Optional[str] = None

    def describe(self) -> str:
        span = f"{self.start:%Y-%m-%d %H:%M}-{self.end:%H:%M}"
        if self.order_id:
            prefix = "time conflict with scheduled order" if self.kind == "scheduled" else "time conflict with order"
            return f"{prefix} {self.order_id} ({span})"
        if self.note:
            return f"time conflict: driver unavailable ({self.note}, {span})"
        return f"time conflict ({span})"


class ConflictChecker:
    """Answers whether a driver is free for a window. Pure queries only."""

    def __init__(self, store: DispatchStore) -> None:
        self.store = store

    def find_conflict(
        self,
        driver_id: str,
        start: datetime,
        end: datetime,
        *,
        exclude_order_id: str | None = None,
        ignore_scheduled_id: str | None = None,
        driver: Driver | None = None,
    ) -> Optional[Conflict]:
        """First item occupying ``[start, end)`` for the driver, or None.

        Active assignments are checked first, then the driver's declared
        unavailability windows, then pending scheduled assignments. Records
        belonging to ``exclude_order_id`` never count.
        """

        assignments = sorted(self.store.list_assignments(driver_id), key=lambda item: item.window_start)
        for assignment in assignments:
            if assignment.order_id == exclude_order_id:
                continue
            if has_overlap(start, end, assignment.window_start, assignment.window_end):
                return Conflict(
                    kind="assignment",
                    start=assignment.window_start,
                    end=assignment.window_end,
                    order_id=assignment.order_id,
                )

        driver = driver or self.store.get_driver(driver_id)
        if driver is not None:
            for window in driver.unavailabilities:
                if window.end <= window.start:
                    continue
                if has_overlap(start, end, window.start, window.end):
                    return Conflict(kind="unavailability", start=window.start, end=window.end, note=window.reason)

        scheduled = sorted(self.store.list_scheduled(driver_id), key=lambda item: item.window_start)
        for item in scheduled:
            if not item.is_blocking or item.id == ignore_scheduled_id or item.order_id == exclude_order_id:
                continue
            if has_overlap(start, end, item.window_start, item.window_end):
                return Conflict(kind="scheduled", start=item.window_start, end=item.window_end, order_id=item.order_id)
        return None

    def is_driver_available(self, driver_id: str, start: datetime, end: datetime, **options) -> bool:
        return self.find_conflict(driver_id, start, end, **options) is None
