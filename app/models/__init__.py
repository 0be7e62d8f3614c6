"""Application models package."""

from app.models.audit_log import AuditLog
from app.models.catalog import Product, Vendor
from app.models.delivery import DeliveryLog, DeliveryPricingConfig, DeliveryZone, Promotion
from app.models.order import Order, OrderItem, OrderStatusTimestamp
from app.models.review import Review
from app.models.user import User
from app.models.wallet import WalletTransaction

__all__ = [
    "AuditLog", "User", "Vendor", "Product", "Order", "OrderItem", "OrderStatusTimestamp",
    "DeliveryZone", "DeliveryPricingConfig", "Promotion", "DeliveryLog", "WalletTransaction", "Review",
]
