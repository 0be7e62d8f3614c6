"""Review submission and rating roll-up tests."""

from decimal import Decimal

import pytest
from sqlalchemy.orm import Session

from app.core.errors import NotFound, ValidationError
from app.models import Product, Vendor
from app.services.order_service import place_order
from app.services.order_status import transition_order_status
from app.services.review_service import submit_review


@pytest.fixture()
def delivered(db: Session, make_user, make_product):
    customer = make_user("CUSTOMER")
    vendor_user = make_user("VENDOR", business_name="Review Kitchen")
    vendor = vendor_user.vendor_profile
    soup = make_product(vendor, name="Egusi Soup", price="1200")
    swallow = make_product(vendor, name="Pounded Yam", price="600")
    order = place_order(
        db,
        customer=customer,
        vendor_id=vendor.id,
        items=[(soup.id, 1), (swallow.id, 1)],
        delivery_type="pickup",
        payment_method="cash_on_delivery",
    )
    return {"customer": customer, "vendor_user": vendor_user, "vendor": vendor, "soup": soup, "swallow": swallow, "order": order}


def _deliver(db: Session, order_id: int, actor) -> None:
    for status in ("confirmed", "preparing", "ready_for_pickup", "delivered"):
        transition_order_status(db, order_id=order_id, new_status=status, actor=actor)


def test_review_requires_delivered_order(db: Session, delivered) -> None:
    with pytest.raises(ValidationError):
        submit_review(
            db, customer=delivered["customer"], order_id=delivered["order"].id, product_id=delivered["soup"].id, rating=5
        )


def test_review_updates_product_and_vendor_ratings(db: Session, delivered, make_user) -> None:
    order_id = delivered["order"].id
    _deliver(db, order_id, delivered["vendor_user"])

    review = submit_review(
        db, customer=delivered["customer"], order_id=order_id, product_id=delivered["soup"].id, rating=5, comment="Great"
    )
    assert review.verified_purchase is True

    submit_review(db, customer=delivered["customer"], order_id=order_id, product_id=delivered["swallow"].id, rating=2)

    db.expire_all()
    soup = db.get(Product, delivered["soup"].id)
    assert soup.rating == Decimal("5.00")
    assert soup.total_reviews == 1
    assert db.get(Vendor, delivered["vendor"].id).rating == Decimal("3.50")


def test_one_review_per_product(db: Session, delivered) -> None:
    order_id = delivered["order"].id
    _deliver(db, order_id, delivered["vendor_user"])
    kwargs = {"customer": delivered["customer"], "order_id": order_id, "product_id": delivered["soup"].id}

    submit_review(db, rating=4, **kwargs)
    with pytest.raises(ValidationError):
        submit_review(db, rating=1, **kwargs)


def test_review_checks_ownership_product_and_rating(db: Session, delivered, make_user, make_product) -> None:
    order_id = delivered["order"].id
    _deliver(db, order_id, delivered["vendor_user"])
    unrelated = make_product(delivered["vendor"], name="Zobo")

    with pytest.raises(NotFound):
        submit_review(db, customer=make_user("CUSTOMER"), order_id=order_id, product_id=delivered["soup"].id, rating=4)
    with pytest.raises(ValidationError):
        submit_review(db, customer=delivered["customer"], order_id=order_id, product_id=unrelated.id, rating=4)
    with pytest.raises(ValidationError):
        submit_review(db, customer=delivered["customer"], order_id=order_id, product_id=delivered["soup"].id, rating=6)


def test_review_api(client, login, session_factory) -> None:
    customer_headers = login(client, "reviewer@example.com")
    response = client.post(
        "/api/v1/reviews", json={"order_id": 1, "product_id": 1, "rating": 5}, headers=customer_headers
    )
    assert response.status_code == 404
    assert response.json()["code"] == "not_found"
