"""Centralized RBAC guards for order, wallet and reference-data operations."""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.errors import NotFound, Unauthorized
from app.models import Order, User, Vendor


def ensure_role(user: User, allowed_roles: set[str]) -> None:
    """Ensure user role is one of allowed roles."""
    if user.role not in allowed_roles:
        raise Unauthorized("Forbidden")


def ensure_admin(user: User) -> None:
    ensure_role(user, {"ADMIN"})


def vendor_for_user(db: Session, user: User) -> Vendor | None:
    return db.scalar(select(Vendor).where(Vendor.user_id == user.id).limit(1))


def is_order_vendor(db: Session, user: User, order: Order) -> bool:
    """Return True when user is the VENDOR account owning the order's vendor."""
    if user.role != "VENDOR":
        return False
    vendor = db.get(Vendor, order.vendor_id)
    return vendor is not None and vendor.user_id == user.id


def ensure_can_manage_order(db: Session, user: User, order: Order) -> None:
    """Only the owning vendor or an admin may drive an order's status."""
    if user.role == "ADMIN":
        return
    if not is_order_vendor(db, user, order):
        raise Unauthorized("Only the order's vendor or an admin can change this order")


def ensure_can_access_order(db: Session, user: User, order: Order) -> None:
    """Apply IDOR-safe ownership checks; report NotFound to avoid leaking."""
    if user.role == "ADMIN":
        return
    if user.role == "CUSTOMER" and order.customer_id == user.id:
        return
    if is_order_vendor(db, user, order):
        return
    raise NotFound("Order not found")
