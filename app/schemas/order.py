"""Order API schemas."""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field


class OrderItemPayload(BaseModel):
    """Single order line."""

    product_id: int
    quantity: int = Field(default=1, ge=1)


class OrderCreate(BaseModel):
    """Checkout payload."""

    vendor_id: int
    items: list[OrderItemPayload] = Field(min_length=1)
    delivery_type: str
    payment_method: str
    delivery_quote_id: int | None = None
    delivery_address: str = ""
    tax: Decimal = Decimal("0")
    notes: str = ""


class OrderStatusUpdate(BaseModel):
    status: str


class OrderItemResponse(BaseModel):
    """Serialized order item snapshot."""

    product_id: int | None
    product_name: str
    quantity: int
    unit_price: Decimal
    subtotal: Decimal

    model_config = ConfigDict(from_attributes=True)


class OrderResponse(BaseModel):
    """Serialized order."""

    id: int
    order_number: str
    customer_id: int
    vendor_id: int
    status: str
    subtotal: Decimal
    delivery_fee: Decimal
    tax: Decimal
    total: Decimal
    delivery_address: str
    delivery_type: str
    payment_method: str
    payment_status: str
    promotion_id: int | None = None
    notes: str | None = None
    created_at: datetime
    items: list[OrderItemResponse]
    status_timestamps: dict[str, datetime]

    model_config = ConfigDict(from_attributes=True)
