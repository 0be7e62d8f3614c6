"""Order store: placement, lookup and deletion of orders."""

from __future__ import annotations

import logging
import secrets
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from sqlalchemy import or_, select, update
from sqlalchemy.orm import Session

from app.core.errors import DomainError, NotFound, Unauthorized, ValidationError
from app.models import DeliveryLog, Order, OrderItem, Product, Promotion, User, Vendor
from app.models.order import DELIVERY_TYPES, ORDER_STATUSES, PAYMENT_METHODS
from app.services.delivery_pricing import normalize_address
from app.services.audit_service import log_action
from app.services.locks import run_with_retry, wallet_locks
from app.services.order_status import INITIAL_STATUS, stamp_status
from app.services.security_guards import ensure_admin, ensure_can_access_order, ensure_role, vendor_for_user
from app.services.wallet_ledger import debit_wallet
from app.utils.time import utc_now

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def generate_order_number(now: datetime) -> str:
    """Return a human-friendly order number such as ORD-20250101-A1B2C3."""
    return f"ORD-{now:%Y%m%d}-{secrets.token_hex(3).upper()}"


def _money(value: Decimal | int | float | str, field: str) -> Decimal:
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        raise ValidationError(f"{field} must be a number") from exc
    if not amount.is_finite() or amount < 0:
        raise ValidationError(f"{field} must be a non-negative amount")
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def _merge_lines(items: list[tuple[int, int]]) -> dict[int, int]:
    if not items:
        raise ValidationError("Order must contain at least one item")
    quantities: dict[int, int] = {}
    for product_id, quantity in items:
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
            raise ValidationError(f"Quantity for product {product_id} must be a positive integer")
        quantities[product_id] = quantities.get(product_id, 0) + quantity
    return quantities


def _load_products(db: Session, vendor_id: int, quantities: dict[int, int]) -> dict[int, Product]:
    products: dict[int, Product] = {
        product.id: product
        for product in db.scalars(select(Product).where(Product.id.in_(list(quantities))))
    }
    for product_id in quantities:
        product = products.get(product_id)
        if product is None:
            raise NotFound(f"Product {product_id} not found")
        if product.vendor_id != vendor_id:
            raise ValidationError(f"Product {product_id} is not sold by vendor {vendor_id}")
        if not product.is_active:
            raise ValidationError(f"Product {product_id} is not available")
    return products


def _claim_quote(
    db: Session, *, quote_id: int, customer: User, subtotal: Decimal, delivery_address: str
) -> DeliveryLog:
    quote: DeliveryLog | None = db.get(DeliveryLog, quote_id)
    if quote is None:
        raise NotFound(f"Delivery quote {quote_id} not found")
    if quote.user_id != customer.id:
        raise Unauthorized("Delivery quote belongs to another customer")
    if quote.order_id is not None:
        raise ValidationError("Delivery quote has already been used")
    if Decimal(quote.subtotal).quantize(CENT) != subtotal:
        raise ValidationError("Delivery quote was computed for a different subtotal")
    if quote.destination is None or quote.destination != normalize_address(delivery_address):
        raise ValidationError("Delivery quote was computed for a different address")
    return quote


def _consume_promotion(db: Session, promotion_id: int) -> None:
    result = db.execute(
        update(Promotion)
        .where(
            Promotion.id == promotion_id,
            or_(Promotion.usage_limit.is_(None), Promotion.usage_count < Promotion.usage_limit),
        )
        .values(usage_count=Promotion.usage_count + 1)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise ValidationError("Promotion usage limit has been reached")


def place_order(
    db: Session,
    *,
    customer: User,
    vendor_id: int,
    items: list[tuple[int, int]],
    delivery_type: str,
    payment_method: str,
    delivery_quote_id: int | None = None,
    delivery_address: str = "",
    tax: Decimal | int | float | str = 0,
    notes: str = "",
    now: datetime | None = None,
) -> Order:
    """Create an order with its items and pending timestamp in one commit.

    Delivery orders take their fee from a quote produced by the pricing engine
    for the same customer and subtotal. Wallet payments are debited inside the
    same unit of work.
    """
    ensure_role(customer, {"CUSTOMER"})
    if delivery_type not in DELIVERY_TYPES:
        raise ValidationError(f"Unknown delivery type: {delivery_type}")
    if payment_method not in PAYMENT_METHODS:
        raise ValidationError(f"Unknown payment method: {payment_method}")
    if delivery_type == "delivery":
        if delivery_quote_id is None:
            raise ValidationError("Delivery orders require a delivery quote")
        if not delivery_address.strip():
            raise ValidationError("Delivery orders require a delivery address")
    order_tax = _money(tax, "Tax")
    quantities = _merge_lines(items)
    moment = now or utc_now()

    def operation() -> Order:
        vendor: Vendor | None = db.get(Vendor, vendor_id)
        if vendor is None:
            raise NotFound(f"Vendor {vendor_id} not found")
        if not vendor.is_active:
            raise ValidationError(f"Vendor {vendor_id} is not accepting orders")

        products = _load_products(db, vendor_id, quantities)
        lines: list[OrderItem] = []
        subtotal = ZERO
        for product_id, quantity in quantities.items():
            product = products[product_id]
            unit_price = Decimal(product.price).quantize(CENT)
            line_total = unit_price * quantity
            subtotal += line_total
            lines.append(
                OrderItem(
                    product_id=product.id,
                    product_name=product.name,
                    quantity=quantity,
                    unit_price=unit_price,
                    subtotal=line_total,
                )
            )

        delivery_fee = ZERO
        promotion_id: int | None = None
        quote: DeliveryLog | None = None
        if delivery_type == "delivery":
            quote = _claim_quote(
                db,
                quote_id=delivery_quote_id,
                customer=customer,
                subtotal=subtotal,
                delivery_address=delivery_address,
            )
            delivery_fee = Decimal(quote.final_price).quantize(CENT)
            if quote.promotion_id is not None and db.get(Promotion, quote.promotion_id) is not None:
                promotion_id = quote.promotion_id

        order = Order(
            order_number=generate_order_number(moment),
            customer_id=customer.id,
            vendor_id=vendor_id,
            status=INITIAL_STATUS,
            subtotal=subtotal,
            delivery_fee=delivery_fee,
            tax=order_tax,
            total=subtotal + delivery_fee + order_tax,
            delivery_address=delivery_address.strip(),
            delivery_type=delivery_type,
            payment_method=payment_method,
            payment_status="pending",
            promotion_id=promotion_id,
            notes=notes or None,
            created_at=moment,
        )
        order.items = lines
        stamp_status(order, INITIAL_STATUS, moment)
        db.add(order)
        db.flush()

        if quote is not None:
            claimed = db.execute(
                update(DeliveryLog)
                .where(DeliveryLog.id == quote.id, DeliveryLog.order_id.is_(None))
                .values(order_id=order.id)
                .execution_options(synchronize_session=False)
            )
            if claimed.rowcount != 1:
                raise ValidationError("Delivery quote has already been used")
        if promotion_id is not None:
            _consume_promotion(db, promotion_id)

        if payment_method == "wallet":
            if order.total > 0:
                debit_wallet(
                    db,
                    user_id=customer.id,
                    amount=order.total,
                    description=f"Payment for order {order.order_number}",
                    reference_type="order",
                    reference_id=order.order_number,
                    commit=False,
                )
            order.payment_status = "completed"

        db.commit()
        db.refresh(order)
        logger.info(
            "[ORDER] Placed order_id=%s number=%s customer_id=%s vendor_id=%s total=%s",
            order.id,
            order.order_number,
            customer.id,
            vendor_id,
            order.total,
        )
        return order

    try:
        with wallet_locks.hold(customer.id):
            return run_with_retry(db, operation)
    except DomainError:
        db.rollback()
        raise


def get_order(db: Session, *, order_id: int, actor: User) -> Order:
    order: Order | None = db.get(Order, order_id)
    if order is None:
        raise NotFound(f"Order {order_id} not found")
    ensure_can_access_order(db, actor, order)
    return order


def list_orders_for_actor(
    db: Session,
    actor: User,
    *,
    status: str | None = None,
    limit: int = 50,
    offset: int = 0,
) -> list[Order]:
    """Customers see their own orders, vendors their store's, admins everything."""
    if status is not None and status not in ORDER_STATUSES:
        raise ValidationError(f"Unknown order status: {status}")

    query = db.query(Order)
    if actor.role == "CUSTOMER":
        query = query.filter(Order.customer_id == actor.id)
    elif actor.role == "VENDOR":
        vendor = vendor_for_user(db, actor)
        if vendor is None:
            return []
        query = query.filter(Order.vendor_id == vendor.id)
    if status is not None:
        query = query.filter(Order.status == status)
    return query.order_by(Order.created_at.desc(), Order.id.desc()).offset(offset).limit(limit).all()


def _order_snapshot(db: Session, order: Order) -> dict:
    quote_ids = db.scalars(select(DeliveryLog.id).where(DeliveryLog.order_id == order.id)).all()
    return {
        "order_number": order.order_number,
        "delivery_quote_ids": list(quote_ids),
        "customer_id": order.customer_id,
        "vendor_id": order.vendor_id,
        "status": order.status,
        "total": str(order.total),
        "items": [
            {"product_id": item.product_id, "quantity": item.quantity, "unit_price": str(item.unit_price)}
            for item in order.items
        ],
    }


def delete_order(db: Session, *, order_id: int, actor: User) -> None:
    """Admin-only hard delete; items and status timestamps go with the order.

    Quotes and reviews keep their rows; the foreign keys clear their order_id.
    The audit snapshot keeps the quote ids so the link survives.
    """
    ensure_admin(actor)
    order: Order | None = db.get(Order, order_id)
    if order is None:
        raise NotFound(f"Order {order_id} not found")

    log_action(
        db,
        actor=actor,
        action_type="order_deleted",
        order_id=order.id,
        target_user_id=order.customer_id,
        before_snapshot=_order_snapshot(db, order),
    )
    db.delete(order)
    db.commit()
    logger.info("[ORDER] Deleted order_id=%s by user_id=%s", order_id, actor.id)
