from datetime import datetime, timedelta, timezone

import pytest

from src.dispatch.errors import OrderNotFound
from src.dispatch.models.domain import (
    ActivityType,
    Coordinates,
    Driver,
    NotificationChannel,
    Order,
    OrderStatus,
)
from src.dispatch.persistence.store import InMemoryStore
from src.dispatch.services.engine import DispatchEngine, build_engine
from src.dispatch.services.geocoding import Geocoder
from src.dispatch.services.geospatial import destination_point
from src.dispatch.services.zones import ZoneCatalog

T0 = datetime(2025, 3, 10, 9, 0, tzinfo=timezone.utc)
PARIS = Coordinates(lat=48.8566, lng=2.3522)


class TickingClock:
    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        self.now += timedelta(seconds=1)
        return self.now


def _near_paris(km: float) -> Coordinates:
    lat, lon = destination_point(PARIS.lat, PARIS.lng, 45.0, km)
    return Coordinates(lat=lat, lng=lon)


def _driver(driver_id: str, km: float, zone: str = "INTRA_PARIS", **overrides) -> Driver:
    values = dict(
        id=driver_id,
        name=f"Driver {driver_id}",
        phone="0600000000",
        zone=zone,
        vehicle="Van",
        capacity_kg=500.0,
        last_location=_near_paris(km),
    )
    values.update(overrides)
    return Driver(**values)


def _source(**overrides) -> Order:
    values = dict(
        id="O-SRC",
        customer_id="C1",
        pickup_address="10 rue de la Paix, Paris",
        delivery_address="20 boulevard Haussmann, Paris",
        window_start=T0 - timedelta(days=7),
        window_end=T0 - timedelta(days=7) + timedelta(hours=2),
        weight_kg=80.0,
        volume_m3=0.8,
        transport_type="Standard",
        zone_requirement="INTRA_PARIS",
        amount=45.0,
        pickup_coords=PARIS,
        status=OrderStatus.DELIVERED,
        driver_id="D-old",
    )
    values.update(overrides)
    return Order(**values)


def _engine(source: Order, drivers) -> DispatchEngine:
    store = InMemoryStore(orders=[source], drivers=drivers)
    return build_engine(
        store,
        geocoder=Geocoder(),
        zones=ZoneCatalog.concentric((PARIS.lat, PARIS.lng), (6.0, 15.0, 45.0)),
        clock=TickingClock(T0 - timedelta(days=1)),
    )


def test_reorder_copies_order_and_assigns_nearest_driver() -> None:
    engine = _engine(_source(), [_driver("D-far", 4.0), _driver("D-near", 1.0)])

    result = engine.reorders.reorder("O-SRC", T0)

    order = result.order
    assert order.id != "O-SRC"
    assert order.previous_order_id == "O-SRC"
    assert order.status == OrderStatus.PENDING_ASSIGNMENT
    assert order.window_start == T0
    assert order.window_end == T0 + timedelta(minutes=120)
    assert order.pickup_address == "10 rue de la Paix, Paris"
    assert order.driver_id == "D-near"
    assert result.driver.id == "D-near"
    assert result.distance_km == pytest.approx(1.0, abs=0.05)

    types = [entry.type for entry in engine.store.list_activity(order.id)]
    assert types == [ActivityType.ASSIGN, ActivityType.CREATE]
    client_feed = engine.store.list_notifications(channel=NotificationChannel.CLIENT, order_id=order.id)
    assert any("O-SRC" in entry.message for entry in client_feed)
    assert engine.store.get_order("O-SRC").status == OrderStatus.DELIVERED


def test_reorder_skips_drivers_without_capacity() -> None:
    engine = _engine(_source(), [_driver("D-small", 1.0, capacity_kg=50.0), _driver("D-big", 3.0)])

    result = engine.reorders.reorder("O-SRC", T0)

    assert result.driver.id == "D-big"


def test_reorder_derives_zone_from_pickup_coordinates() -> None:
    source = _source(zone_requirement=None)
    engine = _engine(source, [_driver("D-suburb", 0.5, zone="PETITE_COURONNE"), _driver("D-city", 2.0)])

    result = engine.reorders.reorder("O-SRC", T0)

    assert result.order.zone_requirement == "INTRA_PARIS"
    assert result.driver.id == "D-city"


def test_reorder_without_eligible_driver_leaves_order_pending() -> None:
    engine = _engine(_source(), [_driver("D-suburb", 0.5, zone="PETITE_COURONNE")])

    result = engine.reorders.reorder("O-SRC", T0, T0 + timedelta(hours=1))

    assert result.driver is None
    assert result.reason == "no eligible driver"
    stored = engine.store.get_order(result.order.id)
    assert stored.driver_id is None
    assert stored.window_end == T0 + timedelta(hours=1)
    latest = engine.store.list_activity(stored.id)[0]
    assert latest.type == ActivityType.AUTO_ASSIGN


def test_reorder_with_unlocatable_pickup_creates_unassigned_order() -> None:
    source = _source(pickup_coords=None, pickup_address="   ")
    engine = _engine(source, [_driver("D-near", 1.0)])

    result = engine.reorders.reorder("O-SRC", T0)

    assert result.driver is None
    assert result.reason == "pickup address could not be located"
    assert result.order.pickup_coords is None


def test_reorder_geocodes_pickup_when_source_has_no_coordinates() -> None:
    source = _source(pickup_coords=None, zone_requirement=None)
    engine = _engine(source, [])

    result = engine.reorders.reorder("O-SRC", T0)

    assert result.order.pickup_coords == engine.geocoder.resolve(source.pickup_address)
    assert result.order.pickup_coords is not None


def test_reorder_is_scoped_to_the_owning_client() -> None:
    engine = _engine(_source(), [_driver("D-near", 1.0)])

    with pytest.raises(OrderNotFound):
        engine.reorders.reorder("O-SRC", T0, customer_id="someone-else")
    with pytest.raises(OrderNotFound):
        engine.reorders.reorder("missing", T0)


def test_reorder_rejects_inverted_window() -> None:
    engine = _engine(_source(), [_driver("D-near", 1.0)])

    with pytest.raises(ValueError):
        engine.reorders.reorder("O-SRC", T0, T0 - timedelta(hours=1))
    assert len(engine.store.list_orders()) == 1
