"""Product reviews and the rating roll-ups they drive."""

from __future__ import annotations

import logging
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.errors import NotFound, ValidationError
from app.models import Order, Product, Review, User, Vendor
from app.services.security_guards import ensure_role

logger = logging.getLogger(__name__)

RATING_QUANT = Decimal("0.01")
REVIEWABLE_STATUS = "delivered"


def is_review_eligible(order: Order) -> bool:
    return order.status == REVIEWABLE_STATUS


def recompute_product_rating(db: Session, product_id: int) -> Product:
    """Refresh a product's average rating and review count from its reviews."""
    product: Product | None = db.get(Product, product_id)
    if product is None:
        raise NotFound(f"Product {product_id} not found")
    average, count = db.execute(
        select(func.avg(Review.rating), func.count(Review.id)).where(Review.product_id == product_id)
    ).one()
    product.total_reviews = int(count or 0)
    product.rating = (
        Decimal(str(average)).quantize(RATING_QUANT, rounding=ROUND_HALF_UP) if count else Decimal("0.00")
    )
    db.flush()
    return product


def recompute_vendor_rating(db: Session, vendor_id: int) -> Vendor:
    """Vendor rating is the average over its products that have been rated."""
    vendor: Vendor | None = db.get(Vendor, vendor_id)
    if vendor is None:
        raise NotFound(f"Vendor {vendor_id} not found")
    average = db.scalar(
        select(func.avg(Product.rating)).where(
            Product.vendor_id == vendor_id,
            Product.rating > 0,
            Product.total_reviews > 0,
        )
    )
    vendor.rating = (
        Decimal(str(average)).quantize(RATING_QUANT, rounding=ROUND_HALF_UP) if average is not None else Decimal("0.00")
    )
    db.flush()
    return vendor


def submit_review(
    db: Session,
    *,
    customer: User,
    order_id: int,
    product_id: int,
    rating: int,
    comment: str | None = None,
) -> Review:
    ensure_role(customer, {"CUSTOMER"})
    if isinstance(rating, bool) or not isinstance(rating, int) or not 1 <= rating <= 5:
        raise ValidationError("Rating must be an integer between 1 and 5")

    order: Order | None = db.get(Order, order_id)
    if order is None or order.customer_id != customer.id:
        raise NotFound(f"Order {order_id} not found")
    if not is_review_eligible(order):
        raise ValidationError("Only delivered orders can be reviewed")
    if not any(item.product_id == product_id for item in order.items):
        raise ValidationError(f"Product {product_id} is not part of order {order_id}")

    existing = db.scalar(
        select(Review.id).where(Review.user_id == customer.id, Review.product_id == product_id).limit(1)
    )
    if existing is not None:
        raise ValidationError("You have already reviewed this product")

    review = Review(
        user_id=customer.id,
        product_id=product_id,
        order_id=order_id,
        rating=rating,
        comment=comment,
        verified_purchase=True,
    )
    db.add(review)
    try:
        db.flush()
    except IntegrityError as exc:
        db.rollback()
        raise ValidationError("You have already reviewed this product") from exc

    product = recompute_product_rating(db, product_id)
    recompute_vendor_rating(db, product.vendor_id)
    db.commit()
    db.refresh(review)
    logger.info("[REVIEW] user_id=%s product_id=%s rating=%s", customer.id, product_id, rating)
    return review
