"""Order status machine.

Every status change goes through :func:`transition_order_status`. The
operation is serialized per order three ways: an in-process lock for
callers sharing this process, ``SELECT ... FOR UPDATE`` on databases that
support row locks, and a compare-and-swap ``UPDATE`` guarded by the current
status and ``version``. A lost swap raises ``ConcurrencyConflict`` and the
whole operation is re-read and reapplied by ``run_with_retry``.
"""

from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from app.core.errors import ConcurrencyConflict, InvalidTransition, NotFound, ValidationError
from app.models import Order, OrderStatusTimestamp, User
from app.models.order import ORDER_STATUSES
from app.services.locks import order_locks, run_with_retry
from app.services.security_guards import ensure_admin, ensure_can_manage_order
from app.utils.time import utc_now

logger = logging.getLogger(__name__)

INITIAL_STATUS: str = "pending"
TERMINAL_STATUSES: frozenset[str] = frozenset({"delivered", "cancelled"})

ALLOWED_TRANSITIONS: dict[str, set[str]] = {
    "pending": {"confirmed", "cancelled"},
    "confirmed": {"preparing", "cancelled"},
    "preparing": {"ready_for_pickup", "out_for_delivery", "cancelled"},
    "ready_for_pickup": {"delivered", "cancelled"},
    "out_for_delivery": {"delivered", "cancelled"},
    "delivered": set(),
    "cancelled": set(),
}


def can_transition(current: str, new: str) -> bool:
    """Return whether order can move from current to new status."""
    return new in ALLOWED_TRANSITIONS.get(current, set())


def is_terminal(status: str) -> bool:
    return status in TERMINAL_STATUSES


def stamp_status(order: Order, status: str, now: datetime) -> None:
    """Record when the order reached status; an existing stamp is never replaced."""
    if status in order.status_timestamps:
        return
    order.timestamps.append(OrderStatusTimestamp(status=status, reached_at=now))


def _load_for_update(db: Session, order_id: int) -> Order | None:
    return db.scalar(
        select(Order)
        .where(Order.id == order_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )


def _apply_transition(db: Session, order_id: int, new_status: str, actor: User, now: datetime) -> Order:
    order = _load_for_update(db, order_id)
    if order is None:
        raise NotFound(f"Order {order_id} not found")
    ensure_can_manage_order(db, actor, order)

    current_status = order.status
    if current_status == new_status:
        db.rollback()
        return order
    if not can_transition(current_status, new_status):
        logger.info("[ORDER] Rejected transition order_id=%s %s -> %s", order_id, current_status, new_status)
        raise InvalidTransition(f"Cannot transition from {current_status} to {new_status}")

    result = db.execute(
        update(Order)
        .where(Order.id == order_id, Order.status == current_status, Order.version == order.version)
        .values(status=new_status, version=Order.version + 1)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise ConcurrencyConflict(f"Order {order_id} changed while updating status")

    stamp_status(order, new_status, now)
    db.commit()
    db.refresh(order)
    logger.info(
        "[ORDER] order_id=%s %s -> %s by user_id=%s",
        order_id,
        current_status,
        new_status,
        actor.id,
    )
    return order


def transition_order_status(
    db: Session,
    *,
    order_id: int,
    new_status: str,
    actor: User,
    now: datetime | None = None,
) -> Order:
    """Move an order along the status graph.

    Re-entering the current status is a no-op. Raises ``ValidationError`` for
    unknown statuses, ``NotFound``, ``Unauthorized``, ``InvalidTransition`` and,
    once retries are exhausted, ``ConcurrencyConflict``.
    """
    if new_status not in ORDER_STATUSES:
        raise ValidationError(f"Unknown order status: {new_status}")
    moment = now or utc_now()
    with order_locks.hold(order_id):
        return run_with_retry(db, lambda: _apply_transition(db, order_id, new_status, actor, moment))


def cancel_order(db: Session, *, order_id: int, actor: User, now: datetime | None = None) -> Order:
    """Explicit admin cancellation of a non-terminal order."""
    ensure_admin(actor)
    return transition_order_status(db, order_id=order_id, new_status="cancelled", actor=actor, now=now)
