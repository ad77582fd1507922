"""Load drivers and orders from a JSON seed file into a store."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from ..config import settings
from ..models.domain import Assignment, Order, OrderStatus
from ..persistence.filesystem import FileStorage
from ..persistence.records import assignment_from_row, driver_from_row, order_from_row
from ..persistence.store import DispatchStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class SeedSummary:
    drivers: int
    orders: int
    assignments: int


def _implied_assignments(orders: list[Order], listed: list[Assignment]) -> list[Assignment]:
    """Active assignments for live orders that carry a driver but have none listed."""

    covered = {assignment.order_id for assignment in listed if assignment.is_active}
    implied: list[Assignment] = []
    for order in orders:
        if order.driver_id is None or order.id in covered:
            continue
        if order.status in (OrderStatus.DELIVERED, OrderStatus.CANCELLED):
            continue
        implied.append(
            Assignment(
                id=f"seed-{order.id}",
                order_id=order.id,
                driver_id=order.driver_id,
                window_start=order.window_start,
                window_end=order.window_end,
                created_at=order.driver_assigned_at or order.created_at or order.window_start,
            )
        )
    return implied


def load_seed(store: DispatchStore, source: Optional[Path] = None, storage: FileStorage | None = None) -> SeedSummary:
    """Read ``{"drivers": [...], "orders": [...], "assignments": [...]}`` into ``store``."""

    seed_path = source or settings.seed_file
    if seed_path is None:
        raise ValueError("No seed file configured.")
    storage = storage or FileStorage(root=seed_path.parent)
    payload: dict[str, Any] = storage.read_json(seed_path, default=None)
    if payload is None:
        raise FileNotFoundError(f"Seed file not found: {seed_path}")
    if not isinstance(payload, dict):
        raise ValueError(f"Seed file '{seed_path}' must contain a JSON object.")

    drivers = [driver_from_row(row) for row in payload.get("drivers") or []]
    orders = [order_from_row(row) for row in payload.get("orders") or []]
    assignments = [assignment_from_row(row) for row in payload.get("assignments") or []]
    assignments.extend(_implied_assignments(orders, assignments))

    for driver in drivers:
        store.save_driver(driver)
    store.commit(orders=orders, assignments=assignments)

    summary = SeedSummary(drivers=len(drivers), orders=len(orders), assignments=len(assignments))
    logger.info(
        f"Seeded {summary.drivers} drivers, {summary.orders} orders and {summary.assignments} assignments "
        f"from {seed_path}"
    )
    return summary
