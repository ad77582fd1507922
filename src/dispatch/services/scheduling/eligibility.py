"""Single-verdict driver eligibility for an order window."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from ...models.domain import Driver, DriverStatus, Order
from .conflicts import ConflictChecker

REASON_UNAVAILABLE = "driver unavailable/paused"
REASON_ZONE_MISMATCH = "zone mismatch"


@dataclass(frozen=True, slots=True)
class Eligibility:
    assignable: bool
    reason: Optional[str] = None
    conflict_order_id: Optional[str] = None


ELIGIBLE = Eligibility(assignable=True)


class EligibilityEvaluator:
    """Checks, first failure wins: driver state, zone, then time availability."""

    def __init__(self, checker: ConflictChecker) -> None:
        self.checker = checker

    def evaluate(self, driver: Driver, order: Order, *, ignore_scheduled_id: str | None = None) -> Eligibility:
        return self.evaluate_window(
            driver,
            order.window_start,
            order.window_end,
            zone=order.zone_requirement,
            exclude_order_id=order.id,
            ignore_scheduled_id=ignore_scheduled_id,
        )

    def evaluate_window(
        self,
        driver: Driver,
        start: datetime,
        end: datetime,
        *,
        zone: str | None = None,
        exclude_order_id: str | None = None,
        ignore_scheduled_id: str | None = None,
    ) -> Eligibility:
        if not driver.active or driver.status == DriverStatus.PAUSED:
            return Eligibility(assignable=False, reason=REASON_UNAVAILABLE)

        # orders without a zone requirement accept any driver
        if zone is not None and driver.zone != zone:
            return Eligibility(
                assignable=False,
                reason=f"{REASON_ZONE_MISMATCH}: driver zone {driver.zone or 'none'}, order requires {zone}",
            )

        conflict = self.checker.find_conflict(
            driver.id,
            start,
            end,
            exclude_order_id=exclude_order_id,
            ignore_scheduled_id=ignore_scheduled_id,
            driver=driver,
        )
        if conflict is not None:
            return Eligibility(assignable=False, reason=conflict.describe(), conflict_order_id=conflict.order_id)
        return ELIGIBLE
