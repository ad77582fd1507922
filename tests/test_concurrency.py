from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone

import pytest

from src.dispatch.errors import NotAssignable
from src.dispatch.models.domain import Driver, Order
from src.dispatch.persistence.store import InMemoryStore
from src.dispatch.services.engine import DispatchEngine, build_engine
from src.dispatch.services.geocoding import Geocoder
from src.dispatch.services.zones import ZoneCatalog

T0 = datetime(2025, 3, 10, 9, 0, tzinfo=timezone.utc)


def _driver(driver_id: str) -> Driver:
    return Driver(id=driver_id, name=f"Driver {driver_id}", phone="0600000000", zone="INTRA_PARIS", vehicle="Van", capacity_kg=500.0)


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


def _engine(orders, drivers, lock_strategy: str) -> DispatchEngine:
    return build_engine(
        InMemoryStore(orders=orders, drivers=drivers),
        geocoder=Geocoder(),
        zones=ZoneCatalog.concentric((48.8566, 2.3522), (6.0, 15.0, 45.0)),
        lock_strategy=lock_strategy,
    )


@pytest.mark.parametrize("lock_strategy", ["striped", "global"])
def test_concurrent_assignments_never_double_book_a_driver(lock_strategy: str) -> None:
    orders = [_order(f"O{index}", 0, 1) for index in range(16)]
    engine = _engine(orders, [_driver("D1")], lock_strategy)

    def attempt(order_id: str) -> bool:
        try:
            engine.assignments.assign(order_id, "D1", "admin")
        except NotAssignable:
            return False
        return True

    with ThreadPoolExecutor(max_workers=8) as pool:
        outcomes = list(pool.map(attempt, [order.id for order in orders]))

    assert outcomes.count(True) == 1
    assert len(engine.store.list_assignments("D1")) == 1
    assigned = [order for order in engine.store.list_orders() if order.driver_id is not None]
    assert len(assigned) == 1


@pytest.mark.parametrize("lock_strategy", ["striped", "global"])
def test_crossing_reassignments_finish_without_deadlock(lock_strategy: str) -> None:
    orders = [_order("OA", 0, 1), _order("OB", 2, 3)]
    engine = _engine(orders, [_driver("D1"), _driver("D2")], lock_strategy)
    engine.assignments.assign("OA", "D1", "admin")
    engine.assignments.assign("OB", "D2", "admin")

    def swap(step: int) -> None:
        order_id, target = (("OA", "D2"), ("OB", "D1"))[step % 2]
        if step % 4 >= 2:
            target = "D1" if target == "D2" else "D2"
        engine.assignments.reassign(order_id, target, "admin")

    with ThreadPoolExecutor(max_workers=4) as pool:
        futures = [pool.submit(swap, step) for step in range(40)]
        for future in futures:
            future.result(timeout=10)

    for driver_id in ("D1", "D2"):
        active = sorted(engine.store.list_assignments(driver_id), key=lambda item: item.window_start)
        for first, second in zip(active, active[1:]):
            assert first.window_end <= second.window_start
    for order in engine.store.list_orders():
        active = engine.store.get_active_assignment(order.id)
        assert (active.driver_id if active else None) == order.driver_id
