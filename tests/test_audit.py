import logging
from datetime import datetime, timedelta, timezone

import pytest

from src.dispatch.models.domain import ActivityType, Driver, NotificationChannel, Order
from src.dispatch.persistence.locks import LockManager
from src.dispatch.persistence.store import InMemoryStore
from src.dispatch.services.assignment import AssignmentService
from src.dispatch.services.audit import AuditEmitter
from src.dispatch.services.scheduling import ConflictChecker, EligibilityEvaluator

T0 = datetime(2025, 3, 10, 9, 0, tzinfo=timezone.utc)


class BrokenAuditStore(InMemoryStore):
    def append_activity(self, entries) -> None:
        raise RuntimeError("activity table unavailable")


def _driver(driver_id: str) -> Driver:
    return Driver(id=driver_id, name="Alice Martin", phone="0600000000", zone="INTRA_PARIS", vehicle="Van", capacity_kg=500.0)


def _order(order_id: str) -> Order:
    return Order(
        id=order_id,
        customer_id="C1",
        pickup_address="10 rue de la Paix, Paris",
        delivery_address="20 boulevard Haussmann, Paris",
        window_start=T0,
        window_end=T0 + timedelta(hours=1),
        weight_kg=12.0,
        volume_m3=0.3,
        transport_type="Standard",
        zone_requirement="INTRA_PARIS",
        amount=30.0,
    )


def _service(store: InMemoryStore) -> AssignmentService:
    return AssignmentService(
        store,
        LockManager(),
        EligibilityEvaluator(ConflictChecker(store)),
        AuditEmitter(store, clock=lambda: T0),
        clock=lambda: T0,
    )


def test_assign_emits_one_entry_and_three_notifications() -> None:
    store = InMemoryStore(orders=[_order("O1")], drivers=[_driver("D1")])

    _service(store).assign("O1", "D1", "admin")

    [entry] = store.list_activity("O1")
    assert entry.type == ActivityType.ASSIGN
    assert entry.message == "Driver Alice Martin assigned"
    assert entry.driver_id == "D1"
    notifications = store.list_notifications(order_id="O1")
    assert sorted(item.channel.value for item in notifications) == ["Admin", "Client", "Driver"]
    assert all(item.created_at == entry.at for item in notifications)
    driver_note = store.list_notifications(channel=NotificationChannel.DRIVER)[0]
    assert driver_note.driver_id == "D1"
    assert "10 rue de la Paix" in driver_note.message


def test_audit_failure_does_not_undo_the_mutation(caplog: pytest.LogCaptureFixture) -> None:
    store = BrokenAuditStore(orders=[_order("O1")], drivers=[_driver("D1")])

    with caplog.at_level(logging.ERROR):
        result = _service(store).assign("O1", "D1", "admin")

    assert result.order.driver_id == "D1"
    assert store.get_order("O1").driver_id == "D1"
    assert store.get_active_assignment("O1") is not None
    assert "Failed to emit Assign audit records for order O1" in caplog.text


def test_mark_read_is_idempotent() -> None:
    store = InMemoryStore(orders=[_order("O1")], drivers=[_driver("D1")])
    _service(store).assign("O1", "D1", "admin")
    audit = AuditEmitter(store)
    notification = store.list_notifications(channel=NotificationChannel.CLIENT)[0]

    updated = audit.mark_read(notification)
    again = audit.mark_read(updated)

    assert updated.read and again.read
    assert store.get_notification(notification.id).read


def test_unassign_notifies_client_and_admin_only() -> None:
    store = InMemoryStore(orders=[_order("O1")], drivers=[_driver("D1")])
    service = _service(store)
    service.assign("O1", "D1", "admin")

    service.unassign("O1", "admin")

    latest = store.list_activity("O1")[0]
    unassign_notes = [item for item in store.list_notifications(order_id="O1") if "removed" in item.message]
    assert latest.type == ActivityType.UNASSIGN
    assert sorted(item.channel.value for item in unassign_notes) == ["Admin", "Client"]
