from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from src.dispatch.main import create_app
from src.dispatch.models.domain import Coordinates, Driver, Order, OrderStatus
from src.dispatch.persistence.store import InMemoryStore
from src.dispatch.services.engine import DispatchEngine, build_engine
from src.dispatch.services.geocoding import Geocoder
from src.dispatch.services.zones import ZoneCatalog

T0 = datetime(2030, 3, 10, 9, 0, tzinfo=timezone.utc)
PARIS = Coordinates(lat=48.8566, lng=2.3522)


def _driver(driver_id: str, **overrides) -> Driver:
    values = dict(
        id=driver_id,
        name=f"Driver {driver_id}",
        phone="0600000000",
        zone="INTRA_PARIS",
        vehicle="Van",
        capacity_kg=500.0,
        last_location=PARIS,
    )
    values.update(overrides)
    return Driver(**values)


def _order(order_id: str, start: float = 0, end: float = 1, **overrides) -> Order:
    values = dict(
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
        pickup_coords=PARIS,
    )
    values.update(overrides)
    return Order(**values)


@pytest.fixture
def engine() -> DispatchEngine:
    store = InMemoryStore(
        orders=[_order("O1", 0, 1), _order("O2", 0.5, 1.5), _order("O3", 5, 6, customer_id="C2")],
        drivers=[_driver("D1"), _driver("D2")],
    )
    return build_engine(
        store,
        geocoder=Geocoder(),
        zones=ZoneCatalog.concentric((PARIS.lat, PARIS.lng), (6.0, 15.0, 45.0)),
    )


@pytest.fixture
def api_client(engine: DispatchEngine) -> TestClient:
    return TestClient(create_app(engine))


def test_health(api_client: TestClient) -> None:
    assert api_client.get("/api/health").json() == {"status": "ok"}
    store_health = api_client.get("/api/health/store").json()
    assert store_health["backend"] == "memory"
    assert store_health["orders"] == 3


def test_assign_and_conflict(api_client: TestClient) -> None:
    response = api_client.post("/api/orders/O1/assign", json={"driver_id": "D1"})
    assert response.status_code == 200
    assert response.json()["order"]["driver_id"] == "D1"
    assert response.json()["assignment"]["ended_at"] is None

    conflict = api_client.post("/api/orders/O2/assign", json={"driver_id": "D1"})
    assert conflict.status_code == 409
    detail = conflict.json()["detail"]
    assert detail["reason"].startswith("time conflict")
    assert detail["conflict_order_id"] == "O1"


def test_unknown_records_return_404(api_client: TestClient) -> None:
    assert api_client.get("/api/orders/nope").status_code == 404
    assert api_client.post("/api/orders/O1/assign", json={"driver_id": "nope"}).status_code == 404
    assert api_client.post("/api/notifications/nope/read").status_code == 404


def test_list_orders_filters(api_client: TestClient) -> None:
    everything = api_client.get("/api/orders").json()
    for_c2 = api_client.get("/api/orders", params={"customer_id": "C2"}).json()
    pending = api_client.get("/api/orders", params={"status": "PendingAssignment"}).json()

    assert [order["id"] for order in everything] == ["O1", "O2", "O3"]
    assert [order["id"] for order in for_c2] == ["O3"]
    assert len(pending) == 3


def test_order_detail_includes_timeline_and_activity(api_client: TestClient) -> None:
    api_client.post("/api/orders/O1/assign", json={"driver_id": "D1"})
    api_client.post("/api/orders/O1/status", json={"status": "PendingPickup"})

    detail = api_client.get("/api/orders/O1").json()

    assert detail["order"]["status"] == "PendingPickup"
    assert detail["derived_status"] == "PendingPickup"
    assert detail["driver"]["id"] == "D1"
    assert [step["state"] for step in detail["timeline"]] == ["done", "current", "pending", "pending", "pending"]
    assert [entry["type"] for entry in detail["activity"]] == ["StatusChange", "Assign"]


def test_invalid_transition_returns_409(api_client: TestClient) -> None:
    response = api_client.post("/api/orders/O1/status", json={"status": "Delivered"})

    assert response.status_code == 409


def test_cancel_with_other_reason_needs_note(api_client: TestClient) -> None:
    missing_note = api_client.post("/api/orders/O1/cancel", json={"reason": "OTHER"})
    assert missing_note.status_code == 422

    response = api_client.post("/api/orders/O1/cancel", json={"reason": "OTHER", "note": "duplicate booking"})
    assert response.status_code == 200
    assert response.json()["status"] == OrderStatus.CANCELLED.value


def test_eligible_drivers_lists_verdicts(api_client: TestClient) -> None:
    api_client.post("/api/orders/O1/assign", json={"driver_id": "D1"})

    verdicts = api_client.get("/api/orders/O2/eligible-drivers").json()

    assert [item["driver"]["id"] for item in verdicts] == ["D2", "D1"]
    assert verdicts[0]["assignable"] is True
    assert verdicts[1]["conflict_order_id"] == "O1"


def test_reassign_failure_leaves_order_without_driver(api_client: TestClient) -> None:
    api_client.post("/api/orders/O1/assign", json={"driver_id": "D1"})
    api_client.post("/api/orders/O2/assign", json={"driver_id": "D2"})

    response = api_client.post("/api/orders/O1/reassign", json={"driver_id": "D2"})

    assert response.status_code == 409
    assert api_client.get("/api/orders/O1").json()["order"]["driver_id"] is None


def test_driver_views(api_client: TestClient) -> None:
    api_client.post("/api/orders/O1/assign", json={"driver_id": "D1"})

    orders = api_client.get("/api/drivers/D1/orders").json()
    notifications = api_client.get("/api/drivers/D1/notifications").json()
    busy = api_client.get(
        "/api/drivers/D1/availability",
        params={"start": (T0 + timedelta(minutes=30)).isoformat(), "end": (T0 + timedelta(hours=2)).isoformat()},
    ).json()

    assert [order["id"] for order in orders] == ["O1"]
    assert len(notifications) == 1 and notifications[0]["channel"] == "Driver"
    assert busy["available"] is False
    assert busy["conflict_order_id"] == "O1"
    assert api_client.get("/api/drivers/nope/orders").status_code == 404


def test_client_reorder_and_notifications(api_client: TestClient) -> None:
    response = api_client.post(
        "/api/clients/C1/orders/O1/reorder",
        json={"pickup_start": (T0 + timedelta(days=1)).isoformat()},
    )

    assert response.status_code == 201
    body = response.json()
    assert body["order"]["previous_order_id"] == "O1"
    assert body["driver"]["id"] == "D1"

    feed = api_client.get("/api/clients/C1/notifications", params={"unread_only": True}).json()
    assert feed and all(item["channel"] == "Client" for item in feed)
    marked = api_client.post(f"/api/notifications/{feed[0]['id']}/read").json()
    assert marked["read"] is True
    remaining = api_client.get("/api/clients/C1/notifications", params={"unread_only": True}).json()
    assert len(remaining) == len(feed) - 1

    assert api_client.post(
        "/api/clients/C2/orders/O1/reorder",
        json={"pickup_start": (T0 + timedelta(days=1)).isoformat()},
    ).status_code == 404


def test_schedule_and_process(api_client: TestClient) -> None:
    execute_at = datetime.now(timezone.utc) + timedelta(hours=1)
    created = api_client.post(
        "/api/orders/O1/schedule",
        json={"driver_id": "D2", "execute_at": execute_at.isoformat()},
    )
    assert created.status_code == 201
    assert created.json()["status"] == "Pending"

    processed = api_client.post(
        "/api/scheduled-assignments/process",
        params={"now": (execute_at + timedelta(minutes=1)).isoformat()},
    ).json()

    assert [item["status"] for item in processed] == ["Completed"]
    assert api_client.get("/api/orders/O1").json()["order"]["driver_id"] == "D2"


def test_unassign_on_cancelled_order_returns_409(api_client: TestClient) -> None:
    api_client.post("/api/orders/O1/assign", json={"driver_id": "D1"})
    api_client.post("/api/orders/O1/cancel", json={"reason": "DELAY"})

    response = api_client.post("/api/orders/O1/unassign", json={})

    assert response.status_code == 409
    assert api_client.get("/api/orders/O1").json()["order"]["status"] == "Cancelled"
