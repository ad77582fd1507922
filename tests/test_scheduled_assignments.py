from dataclasses import replace
from datetime import datetime, timedelta, timezone

import pytest

from src.dispatch.errors import InvalidSchedule, NotAssignable, ScheduledAssignmentNotFound
from src.dispatch.models.domain import ActivityType, Driver, DriverStatus, Order, ScheduledStatus
from src.dispatch.persistence.store import InMemoryStore
from src.dispatch.services.engine import DispatchEngine, build_engine
from src.dispatch.services.geocoding import Geocoder
from src.dispatch.services.zones import ZoneCatalog

T0 = datetime(2025, 3, 10, 9, 0, tzinfo=timezone.utc)
NOW = T0 - timedelta(days=1)


class TickingClock:
    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        self.now += timedelta(seconds=1)
        return self.now


def _driver(driver_id: str, **overrides) -> Driver:
    values = dict(id=driver_id, name=f"Driver {driver_id}", phone="0600000000", zone="INTRA_PARIS", vehicle="Van", capacity_kg=500.0)
    values.update(overrides)
    return Driver(**values)


def _order(order_id: str, start: float = 0, end: float = 1) -> Order:
    return Order(
        id=order_id,
        customer_id="C1",
        pickup_address="10 rue de la Paix, Paris",
        delivery_address="20 boulevard Haussmann, Paris",
        window_start=T0 + timedelta(hours=start),
        window_end=T0 + timedelta(hours=end),
        weight_kg=12.0,
        volume_m3=0.3,
        transport_type="Standard",
        zone_requirement="INTRA_PARIS",
        amount=30.0,
    )


def _engine() -> DispatchEngine:
    store = InMemoryStore(orders=[_order("O1"), _order("O2", 0.5, 1.5)], drivers=[_driver("D1"), _driver("D2")])
    return build_engine(
        store,
        geocoder=Geocoder(),
        zones=ZoneCatalog.concentric((48.8566, 2.3522), (6.0, 15.0, 45.0)),
        clock=TickingClock(NOW),
    )


def test_schedule_must_be_in_the_future() -> None:
    engine = _engine()

    with pytest.raises(InvalidSchedule):
        engine.assignments.schedule_assignment("O1", "D1", NOW - timedelta(minutes=5), "admin")


def test_pending_schedule_blocks_the_driver_window() -> None:
    engine = _engine()
    scheduled = engine.assignments.schedule_assignment("O1", "D1", NOW + timedelta(hours=2), "admin")

    with pytest.raises(NotAssignable) as excinfo:
        engine.assignments.assign("O2", "D1", "admin")

    assert scheduled.status == ScheduledStatus.PENDING
    assert excinfo.value.conflict_order_id == "O1"
    assert "scheduled order O1" in excinfo.value.reason
    assert engine.store.list_activity("O1")[0].type == ActivityType.SCHEDULE


def test_second_schedule_for_same_order_is_rejected() -> None:
    engine = _engine()
    engine.assignments.schedule_assignment("O1", "D1", NOW + timedelta(hours=2), "admin")

    with pytest.raises(InvalidSchedule):
        engine.assignments.schedule_assignment("O1", "D2", NOW + timedelta(hours=3), "admin")


def test_process_due_assignments_performs_the_assignment() -> None:
    engine = _engine()
    scheduled = engine.assignments.schedule_assignment("O1", "D1", NOW + timedelta(hours=2), "admin")

    assert engine.assignments.process_due_assignments(now=NOW + timedelta(hours=1)) == []

    processed = engine.assignments.process_due_assignments(now=NOW + timedelta(hours=3))

    assert [item.id for item in processed] == [scheduled.id]
    assert processed[0].status == ScheduledStatus.COMPLETED
    assert engine.store.get_scheduled(scheduled.id).status == ScheduledStatus.COMPLETED
    assert engine.store.get_order("O1").driver_id == "D1"
    assert engine.store.list_activity("O1")[0].actor == "system:scheduler"


def test_due_assignment_fails_when_driver_became_unavailable() -> None:
    engine = _engine()
    scheduled = engine.assignments.schedule_assignment("O1", "D1", NOW + timedelta(hours=2), "admin")
    engine.store.save_driver(replace(engine.store.get_driver("D1"), status=DriverStatus.PAUSED))

    processed = engine.assignments.process_due_assignments(now=NOW + timedelta(hours=3))

    assert processed[0].status == ScheduledStatus.FAILED
    assert processed[0].failure_reason == "driver unavailable/paused"
    assert engine.store.get_scheduled(scheduled.id).status == ScheduledStatus.FAILED
    assert engine.store.get_order("O1").driver_id is None


def test_cancel_scheduled_assignment_frees_the_driver() -> None:
    engine = _engine()
    scheduled = engine.assignments.schedule_assignment("O1", "D1", NOW + timedelta(hours=2), "admin")

    cancelled = engine.assignments.cancel_scheduled_assignment(scheduled.id, "admin")
    engine.assignments.assign("O2", "D1", "admin")

    assert cancelled.status == ScheduledStatus.CANCELLED
    assert engine.store.get_order("O2").driver_id == "D1"
    with pytest.raises(InvalidSchedule):
        engine.assignments.cancel_scheduled_assignment(scheduled.id, "admin")
    with pytest.raises(ScheduledAssignmentNotFound):
        engine.assignments.cancel_scheduled_assignment("missing", "admin")
