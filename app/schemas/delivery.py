"""Delivery pricing schemas: quotes, zones, promotions and config."""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, model_validator


class DeliveryQuoteRequest(BaseModel):
    """Either a known distance or an origin/destination pair for the distance provider."""

    subtotal: Decimal
    distance_km: float | None = None
    origin: str | None = None
    destination: str | None = None
    promo_code: str | None = None

    @model_validator(mode="after")
    def check_distance_source(self) -> "DeliveryQuoteRequest":
        if self.distance_km is None and not self.destination:
            raise ValueError("Provide distance_km or a destination address")
        return self


class DeliveryQuoteResponse(BaseModel):
    quote_id: int = Field(validation_alias="id")
    destination: str | None = None
    distance_km: Decimal
    zone_name: str
    base_price: Decimal
    promo_code: str | None = None
    promotion_discount: Decimal
    threshold_discount: Decimal
    discount_amount: Decimal
    discount_source: str | None = None
    final_price: Decimal
    subtotal: Decimal
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class DeliveryLogRead(BaseModel):
    id: int
    user_id: int | None
    order_id: int | None
    action: str
    destination: str | None
    distance_km: Decimal
    subtotal: Decimal
    zone_id: int | None
    zone_name: str
    base_price: Decimal
    promo_code: str | None
    promotion_id: int | None
    promotion_discount: Decimal
    threshold_discount: Decimal
    discount_amount: Decimal
    discount_source: str | None
    final_price: Decimal
    details: dict | None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ZoneCreate(BaseModel):
    name: str
    description: str | None = None
    min_distance_km: Decimal = Decimal("0")
    max_distance_km: Decimal
    price: Decimal
    is_active: bool = True


class ZoneUpdate(BaseModel):
    name: str | None = None
    description: str | None = None
    min_distance_km: Decimal | None = None
    max_distance_km: Decimal | None = None
    price: Decimal | None = None
    is_active: bool | None = None


class ZoneRead(ZoneCreate):
    id: int

    model_config = ConfigDict(from_attributes=True)


class PromotionCreate(BaseModel):
    code: str
    name: str
    description: str | None = None
    discount_type: str
    discount_value: Decimal
    min_order_amount: Decimal = Decimal("0")
    max_discount_amount: Decimal | None = None
    valid_from: datetime
    valid_until: datetime
    usage_limit: int | None = None
    is_active: bool = True


class PromotionUpdate(BaseModel):
    code: str | None = None
    name: str | None = None
    description: str | None = None
    discount_type: str | None = None
    discount_value: Decimal | None = None
    min_order_amount: Decimal | None = None
    max_discount_amount: Decimal | None = None
    valid_from: datetime | None = None
    valid_until: datetime | None = None
    usage_limit: int | None = None
    is_active: bool | None = None


class PromotionRead(PromotionCreate):
    id: int
    usage_count: int

    model_config = ConfigDict(from_attributes=True)


class PricingConfigUpdate(BaseModel):
    free_delivery_threshold: Decimal | None = None
    max_delivery_distance_km: Decimal | None = None
    use_default_pricing: bool | None = None
    default_base_price: Decimal | None = None
    default_price_per_km: Decimal | None = None
    min_delivery_charge: Decimal | None = None


class PricingConfigRead(BaseModel):
    free_delivery_threshold: Decimal
    max_delivery_distance_km: Decimal
    use_default_pricing: bool
    default_base_price: Decimal
    default_price_per_km: Decimal
    min_delivery_charge: Decimal
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)
