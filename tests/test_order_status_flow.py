"""Order status machine tests."""

import threading
from datetime import datetime, timezone

import pytest
from sqlalchemy.orm import Session, sessionmaker

from app.core.config import settings
from app.core.errors import ConcurrencyConflict, InvalidTransition, NotFound, Unauthorized, ValidationError
from app.models import Order, User
from app.services.locks import run_with_retry
from app.services.order_service import place_order
from app.services.order_status import ALLOWED_TRANSITIONS, can_transition, cancel_order, transition_order_status


@pytest.fixture()
def order_setup(db: Session, make_user, make_product):
    customer = make_user("CUSTOMER")
    vendor_user = make_user("VENDOR", business_name="Mama Put")
    admin = make_user("ADMIN")
    product = make_product(vendor_user.vendor_profile, price="1500.00")
    order = place_order(
        db,
        customer=customer,
        vendor_id=vendor_user.vendor_profile.id,
        items=[(product.id, 2)],
        delivery_type="pickup",
        payment_method="cash_on_delivery",
    )
    return {"customer": customer, "vendor_user": vendor_user, "admin": admin, "order": order}


def test_allowed_graph_shape() -> None:
    assert can_transition("pending", "confirmed")
    assert can_transition("preparing", "ready_for_pickup")
    assert can_transition("preparing", "out_for_delivery")
    assert not can_transition("pending", "delivered")
    assert not can_transition("confirmed", "pending")
    for status in ("pending", "confirmed", "preparing", "ready_for_pickup", "out_for_delivery"):
        assert can_transition(status, "cancelled")
    assert ALLOWED_TRANSITIONS["delivered"] == set()
    assert ALLOWED_TRANSITIONS["cancelled"] == set()


def test_vendor_walks_order_to_delivered_and_stamps_each_status(db: Session, order_setup) -> None:
    order_id = order_setup["order"].id
    vendor_user = order_setup["vendor_user"]

    for status in ("confirmed", "preparing", "out_for_delivery", "delivered"):
        order = transition_order_status(db, order_id=order_id, new_status=status, actor=vendor_user)
        assert order.status == status

    stamps = order.status_timestamps
    assert set(stamps) == {"pending", "confirmed", "preparing", "out_for_delivery", "delivered"}
    assert order.version == 4


def test_pending_to_delivered_is_rejected(db: Session, order_setup) -> None:
    order_id = order_setup["order"].id

    with pytest.raises(InvalidTransition):
        transition_order_status(db, order_id=order_id, new_status="delivered", actor=order_setup["admin"])

    db.expire_all()
    order = db.get(Order, order_id)
    assert order.status == "pending"
    assert "delivered" not in order.status_timestamps


def test_terminal_status_cannot_be_left(db: Session, order_setup) -> None:
    order_id = order_setup["order"].id
    admin = order_setup["admin"]
    transition_order_status(db, order_id=order_id, new_status="cancelled", actor=admin)

    with pytest.raises(InvalidTransition):
        transition_order_status(db, order_id=order_id, new_status="confirmed", actor=admin)


def test_reentering_current_status_is_a_no_op(db: Session, order_setup) -> None:
    order_id = order_setup["order"].id
    vendor_user = order_setup["vendor_user"]
    first = transition_order_status(db, order_id=order_id, new_status="confirmed", actor=vendor_user)
    stamped_at = first.status_timestamps["confirmed"]
    version = first.version

    again = transition_order_status(
        db,
        order_id=order_id,
        new_status="confirmed",
        actor=vendor_user,
        now=datetime(2030, 1, 1, tzinfo=timezone.utc),
    )

    assert again.status == "confirmed"
    assert again.version == version
    assert again.status_timestamps["confirmed"] == stamped_at


def test_unknown_status_is_a_validation_error(db: Session, order_setup) -> None:
    with pytest.raises(ValidationError):
        transition_order_status(
            db, order_id=order_setup["order"].id, new_status="teleported", actor=order_setup["admin"]
        )


def test_missing_order_is_not_found(db: Session, order_setup) -> None:
    with pytest.raises(NotFound):
        transition_order_status(db, order_id=9999, new_status="confirmed", actor=order_setup["admin"])


def test_customer_and_foreign_vendor_cannot_drive_status(db: Session, order_setup, make_user) -> None:
    order_id = order_setup["order"].id
    other_vendor = make_user("VENDOR", business_name="Competitor")

    with pytest.raises(Unauthorized):
        transition_order_status(db, order_id=order_id, new_status="confirmed", actor=order_setup["customer"])
    with pytest.raises(Unauthorized):
        transition_order_status(db, order_id=order_id, new_status="confirmed", actor=other_vendor)


def test_cancel_order_is_admin_only(db: Session, order_setup) -> None:
    order_id = order_setup["order"].id

    with pytest.raises(Unauthorized):
        cancel_order(db, order_id=order_id, actor=order_setup["vendor_user"])

    cancelled = cancel_order(db, order_id=order_id, actor=order_setup["admin"])
    assert cancelled.status == "cancelled"
    assert "cancelled" in cancelled.status_timestamps


def test_run_with_retry_reapplies_after_conflict(db: Session) -> None:
    calls: list[int] = []

    def flaky() -> str:
        calls.append(1)
        if len(calls) < 3:
            raise ConcurrencyConflict()
        return "done"

    assert run_with_retry(db, flaky, attempts=5) == "done"
    assert len(calls) == 3


def test_run_with_retry_gives_up_after_configured_attempts(db: Session, monkeypatch) -> None:
    monkeypatch.setattr(settings, "concurrency_retry_attempts", 2)
    calls: list[int] = []

    def always_conflicts() -> None:
        calls.append(1)
        raise ConcurrencyConflict()

    with pytest.raises(ConcurrencyConflict):
        run_with_retry(db, always_conflicts)
    assert len(calls) == 2


def test_status_api_maps_invalid_transition_to_409(client, login, session_factory) -> None:
    vendor_headers = login(client, "vendor-api@example.com", role="VENDOR", business_name="API Kitchen")
    customer_headers = login(client, "customer-api@example.com")

    product = client.post("/api/v1/products", json={"name": "Suya", "price": "800"}, headers=vendor_headers)
    assert product.status_code == 201
    vendor_id = product.json()["vendor_id"]

    placed = client.post(
        "/api/v1/orders",
        json={
            "vendor_id": vendor_id,
            "items": [{"product_id": product.json()["id"], "quantity": 1}],
            "delivery_type": "pickup",
            "payment_method": "cash_on_delivery",
        },
        headers=customer_headers,
    )
    assert placed.status_code == 201
    order_id = placed.json()["id"]

    skipped = client.post(f"/api/v1/orders/{order_id}/status", json={"status": "delivered"}, headers=vendor_headers)
    assert skipped.status_code == 409
    assert skipped.json()["code"] == "invalid_transition"

    confirmed = client.post(f"/api/v1/orders/{order_id}/status", json={"status": "confirmed"}, headers=vendor_headers)
    assert confirmed.status_code == 200
    assert confirmed.json()["status"] == "confirmed"
    assert "confirmed" in confirmed.json()["status_timestamps"]

    by_customer = client.post(
        f"/api/v1/orders/{order_id}/status", json={"status": "preparing"}, headers=customer_headers
    )
    assert by_customer.status_code == 403
    assert by_customer.json()["code"] == "unauthorized"


def test_racing_transitions_have_a_single_winner(db: Session, session_factory: sessionmaker, order_setup) -> None:
    order_id = order_setup["order"].id
    vendor_user_id = order_setup["vendor_user"].id
    for status in ("confirmed", "preparing"):
        transition_order_status(db, order_id=order_id, new_status=status, actor=order_setup["vendor_user"])

    start = threading.Barrier(2)
    outcomes: dict[str, object] = {}

    def worker(target: str) -> None:
        with session_factory() as session:
            actor = session.get(User, vendor_user_id)
            start.wait()
            try:
                transition_order_status(session, order_id=order_id, new_status=target, actor=actor)
                outcomes[target] = "ok"
            except InvalidTransition as exc:
                outcomes[target] = exc

    threads = [threading.Thread(target=worker, args=(target,)) for target in ("ready_for_pickup", "out_for_delivery")]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    winners = [target for target, outcome in outcomes.items() if outcome == "ok"]
    losers = [outcome for outcome in outcomes.values() if isinstance(outcome, InvalidTransition)]
    assert len(winners) == 1
    assert len(losers) == 1

    db.expire_all()
    order = db.get(Order, order_id)
    assert order.status == winners[0]
    assert order.version == 3
    assert set(order.status_timestamps) == {"pending", "confirmed", "preparing", winners[0]}
