from datetime import datetime, timedelta, timezone

from src.dispatch.models.domain import Assignment, Coordinates, Driver, DriverStatus
from src.dispatch.persistence.store import InMemoryStore
from src.dispatch.services.geospatial import destination_point
from src.dispatch.services.scheduling import ConflictChecker, EligibilityEvaluator, NearestDriverSelector

T0 = datetime(2025, 3, 10, 9, 0, tzinfo=timezone.utc)
PICKUP = Coordinates(lat=48.85, lng=2.35)


def _at_distance(km: float, bearing: float = 0.0) -> Coordinates:
    lat, lon = destination_point(PICKUP.lat, PICKUP.lng, bearing, km)
    return Coordinates(lat=lat, lng=lon)


def _driver(driver_id: str, km: float, **overrides) -> Driver:
    values = dict(
        id=driver_id,
        name=f"Driver {driver_id}",
        phone="0600000000",
        zone="INTRA_PARIS",
        vehicle="Van",
        capacity_kg=500.0,
        last_location=_at_distance(km),
    )
    values.update(overrides)
    return Driver(**values)


def _selector(store: InMemoryStore) -> NearestDriverSelector:
    return NearestDriverSelector(store, EligibilityEvaluator(ConflictChecker(store)))


def test_closer_paused_driver_is_skipped_for_farther_eligible_one() -> None:
    store = InMemoryStore(
        drivers=[
            _driver("D-near", 5.0, status=DriverStatus.PAUSED),
            _driver("D-far", 12.0),
        ]
    )

    chosen = _selector(store).select_nearest(PICKUP, T0, T0 + timedelta(hours=1))

    assert chosen is not None
    assert chosen.id == "D-far"


def test_rank_orders_by_distance() -> None:
    store = InMemoryStore(drivers=[_driver("D3", 9.0), _driver("D1", 2.0), _driver("D2", 4.0)])

    ranked = _selector(store).rank(PICKUP, T0, T0 + timedelta(hours=1))

    assert [candidate.driver.id for candidate in ranked] == ["D1", "D2", "D3"]
    assert abs(ranked[0].distance_km - 2.0) < 0.05


def test_equal_distances_keep_store_order() -> None:
    store = InMemoryStore(drivers=[_driver("B", 3.0), _driver("A", 3.0)])

    ranked = _selector(store).rank(PICKUP, T0, T0 + timedelta(hours=1))

    assert [candidate.driver.id for candidate in ranked] == ["B", "A"]


def test_capacity_filter_excludes_small_vehicles() -> None:
    store = InMemoryStore(drivers=[_driver("scooter", 1.0, capacity_kg=20.0), _driver("truck", 8.0, capacity_kg=900.0)])

    chosen = _selector(store).select_nearest(PICKUP, T0, T0 + timedelta(hours=1), min_capacity=150.0)

    assert chosen.id == "truck"


def test_busy_and_out_of_zone_drivers_are_excluded() -> None:
    busy = Assignment(
        id="A1",
        order_id="O1",
        driver_id="busy",
        window_start=T0,
        window_end=T0 + timedelta(hours=2),
        created_at=T0 - timedelta(days=1),
    )
    store = InMemoryStore(
        drivers=[
            _driver("busy", 1.0),
            _driver("elsewhere", 2.0, zone="GRANDE_COURONNE"),
            _driver("free", 6.0),
        ],
        assignments=[busy],
    )

    chosen = _selector(store).select_nearest(PICKUP, T0 + timedelta(hours=1), T0 + timedelta(hours=3), zone="INTRA_PARIS")

    assert chosen.id == "free"


def test_no_pickup_or_no_candidates_returns_none() -> None:
    store = InMemoryStore(drivers=[_driver("D1", 1.0, status=DriverStatus.PAUSED)])
    selector = _selector(store)

    assert selector.select_nearest(None, T0, T0 + timedelta(hours=1)) is None
    assert selector.select_nearest(PICKUP, T0, T0 + timedelta(hours=1)) is None


def test_drivers_without_location_are_not_ranked() -> None:
    store = InMemoryStore(drivers=[_driver("ghost", 1.0, last_location=None), _driver("D1", 4.0)])

    ranked = _selector(store).rank(PICKUP, T0, T0 + timedelta(hours=1))

    assert [candidate.driver.id for candidate in ranked] == ["D1"]
