"""Delivery pricing engine.

``calculate_delivery_price`` is a pure function over immutable snapshots of
zones, pricing config and an optional promotion, so identical inputs always
produce an identical breakdown. ``compute_delivery_price`` loads those
snapshots from the database, runs the calculation and stores the result as a
``DeliveryLog`` row.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Union

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from app.core.errors import DistanceUnavailable, NoZoneCoverage, ValidationError
from app.models import DeliveryLog, DeliveryPricingConfig, DeliveryZone, Promotion, User
from app.services.distance import DistanceProvider
from app.utils.time import as_utc, utc_now

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
ZERO = Decimal("0.00")
DEFAULT_ZONE_NAME = "default"
THRESHOLD_SOURCE = "threshold"
PRICING_CONFIG_ID = 1


def to_money(value: Decimal | int | float | str) -> Decimal:
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class ZoneSnapshot:
    id: int | None
    name: str
    min_distance_km: Decimal
    max_distance_km: Decimal
    price: Decimal
    is_active: bool = True

    @classmethod
    def from_model(cls, zone: DeliveryZone) -> "ZoneSnapshot":
        return cls(
            id=zone.id,
            name=zone.name,
            min_distance_km=Decimal(zone.min_distance_km),
            max_distance_km=Decimal(zone.max_distance_km),
            price=to_money(zone.price),
            is_active=zone.is_active,
        )


@dataclass(frozen=True)
class PricingConfigSnapshot:
    free_delivery_threshold: Decimal = ZERO
    max_delivery_distance_km: Decimal = Decimal("50.00")
    use_default_pricing: bool = False
    default_base_price: Decimal = ZERO
    default_price_per_km: Decimal = ZERO
    min_delivery_charge: Decimal = ZERO

    @classmethod
    def from_model(cls, config: DeliveryPricingConfig | None) -> "PricingConfigSnapshot":
        if config is None:
            return cls()
        return cls(
            free_delivery_threshold=to_money(config.free_delivery_threshold),
            max_delivery_distance_km=Decimal(config.max_delivery_distance_km),
            use_default_pricing=config.use_default_pricing,
            default_base_price=to_money(config.default_base_price),
            default_price_per_km=to_money(config.default_price_per_km),
            min_delivery_charge=to_money(config.min_delivery_charge),
        )


@dataclass(frozen=True)
class PromotionSnapshot:
    id: int | None
    code: str
    name: str
    discount_type: str
    discount_value: Decimal
    min_order_amount: Decimal
    valid_from: datetime
    valid_until: datetime
    max_discount_amount: Decimal | None = None
    usage_limit: int | None = None
    usage_count: int = 0
    is_active: bool = True

    @classmethod
    def from_model(cls, promotion: Promotion) -> "PromotionSnapshot":
        return cls(
            id=promotion.id,
            code=promotion.code,
            name=promotion.name,
            discount_type=promotion.discount_type,
            discount_value=Decimal(promotion.discount_value),
            min_order_amount=to_money(promotion.min_order_amount),
            valid_from=as_utc(promotion.valid_from),
            valid_until=as_utc(promotion.valid_until),
            max_discount_amount=(
                None if promotion.max_discount_amount is None else to_money(promotion.max_discount_amount)
            ),
            usage_limit=promotion.usage_limit,
            usage_count=promotion.usage_count,
            is_active=promotion.is_active,
        )


@dataclass(frozen=True)
class FreeDelivery:
    pass


@dataclass(frozen=True)
class Percentage:
    value: Decimal
    cap: Decimal | None = None


@dataclass(frozen=True)
class FixedAmount:
    value: Decimal


Discount = Union[FreeDelivery, Percentage, FixedAmount]


def discount_from_promotion(promotion: PromotionSnapshot) -> Discount | None:
    """Convert a stored discount type into its variant; unknown types yield None."""
    if promotion.discount_type == "free_delivery":
        return FreeDelivery()
    if promotion.discount_type == "percentage":
        return Percentage(value=promotion.discount_value, cap=promotion.max_discount_amount)
    if promotion.discount_type == "fixed_amount":
        return FixedAmount(value=promotion.discount_value)
    return None


def discount_amount(discount: Discount, base_price: Decimal) -> Decimal:
    if isinstance(discount, FreeDelivery):
        return base_price
    if isinstance(discount, Percentage):
        amount = to_money(base_price * discount.value / Decimal(100))
        if discount.cap is not None:
            amount = min(amount, discount.cap)
        return max(min(amount, base_price), ZERO)
    if isinstance(discount, FixedAmount):
        return max(min(to_money(discount.value), base_price), ZERO)
    raise TypeError(f"Unsupported discount variant: {discount!r}")


def promotion_applies(promotion: PromotionSnapshot, subtotal: Decimal, now: datetime) -> bool:
    """Active, inside its validity window, not exhausted, and order large enough."""
    if not promotion.is_active:
        return False
    moment = as_utc(now)
    if not (promotion.valid_from <= moment <= promotion.valid_until):
        return False
    if promotion.usage_limit is not None and promotion.usage_count >= promotion.usage_limit:
        return False
    return subtotal >= promotion.min_order_amount


@dataclass(frozen=True)
class DeliveryBreakdown:
    distance_km: Decimal
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


def _parse_distance(distance_km: Decimal | float | int | str) -> Decimal:
    try:
        distance = Decimal(str(distance_km))
    except (InvalidOperation, ValueError) as exc:
        raise DistanceUnavailable("Distance is not a number") from exc
    if not distance.is_finite() or distance < 0:
        raise DistanceUnavailable("Distance must be a finite, non-negative number")
    return distance


def _parse_subtotal(subtotal: Decimal | float | int | str) -> Decimal:
    try:
        value = Decimal(str(subtotal))
    except (InvalidOperation, ValueError) as exc:
        raise ValidationError("Subtotal is not a number") from exc
    if not value.is_finite() or value < 0:
        raise ValidationError("Subtotal must be a finite, non-negative amount")
    return to_money(value)


def resolve_zone(
    distance: Decimal, zones: list[ZoneSnapshot], config: PricingConfigSnapshot
) -> tuple[int | None, str, Decimal]:
    """Return (zone id, zone name, base price) for distance."""
    if config.max_delivery_distance_km > 0 and distance > config.max_delivery_distance_km:
        raise NoZoneCoverage(
            f"Delivery is not available beyond {config.max_delivery_distance_km} km"
        )

    ordered = sorted(
        (zone for zone in zones if zone.is_active),
        key=lambda zone: (zone.min_distance_km, zone.id if zone.id is not None else 0),
    )
    for zone in ordered:
        if zone.min_distance_km <= distance <= zone.max_distance_km:
            return zone.id, zone.name, zone.price

    if config.use_default_pricing:
        computed = to_money(config.default_base_price + config.default_price_per_km * distance)
        return None, DEFAULT_ZONE_NAME, max(computed, config.min_delivery_charge)

    raise NoZoneCoverage(f"No delivery zone covers {distance} km")


def calculate_delivery_price(
    distance_km: Decimal | float | int | str,
    subtotal: Decimal | float | int | str,
    zones: list[ZoneSnapshot],
    config: PricingConfigSnapshot,
    promotion: PromotionSnapshot | None,
    now: datetime,
    promo_code: str | None = None,
) -> DeliveryBreakdown:
    distance = _parse_distance(distance_km)
    order_subtotal = _parse_subtotal(subtotal)
    zone_id, zone_name, base_price = resolve_zone(distance, zones, config)

    promotion_discount = ZERO
    if promotion is not None and promotion_applies(promotion, order_subtotal, now):
        discount = discount_from_promotion(promotion)
        if discount is not None:
            promotion_discount = discount_amount(discount, base_price)

    threshold_discount = ZERO
    threshold = config.free_delivery_threshold
    if threshold > 0 and order_subtotal >= threshold:
        threshold_discount = base_price

    # Larger discount wins; a tie goes to the promotion.
    applied = ZERO
    source: str | None = None
    promotion_id: int | None = None
    if promotion_discount > 0 and promotion_discount >= threshold_discount:
        applied = promotion_discount
        source = promotion.name if promotion is not None else None
        promotion_id = promotion.id if promotion is not None else None
    elif threshold_discount > 0:
        applied = threshold_discount
        source = THRESHOLD_SOURCE

    if promo_code is None and promotion is not None:
        promo_code = promotion.code

    return DeliveryBreakdown(
        distance_km=to_money(distance),
        zone_id=zone_id,
        zone_name=zone_name,
        base_price=base_price,
        promo_code=promo_code,
        promotion_id=promotion_id,
        promotion_discount=promotion_discount,
        threshold_discount=threshold_discount,
        discount_amount=applied,
        discount_source=source,
        final_price=max(ZERO, base_price - applied),
    )


def normalize_address(address: str | None) -> str | None:
    """Collapse whitespace and case so the same street matches at checkout."""
    if address is None:
        return None
    normalized = " ".join(address.split()).lower()
    return normalized or None


def normalize_promo_code(code: str | None) -> str | None:
    if code is None:
        return None
    normalized = code.strip().upper()
    return normalized or None


def load_pricing_config(db: Session) -> PricingConfigSnapshot:
    return PricingConfigSnapshot.from_model(db.get(DeliveryPricingConfig, PRICING_CONFIG_ID))


def load_zones(db: Session) -> list[ZoneSnapshot]:
    zones: list[DeliveryZone] = list(
        db.scalars(
            select(DeliveryZone)
            .where(DeliveryZone.is_active.is_(True))
            .order_by(DeliveryZone.min_distance_km, DeliveryZone.id)
        )
    )
    return [ZoneSnapshot.from_model(zone) for zone in zones]


def find_promotion(db: Session, code: str) -> Promotion | None:
    return db.scalar(select(Promotion).where(func.upper(Promotion.code) == code).limit(1))


def _json_ready(values: dict) -> dict:
    ready: dict = {}
    for key, value in values.items():
        if isinstance(value, Decimal):
            ready[key] = str(value)
        elif isinstance(value, datetime):
            ready[key] = value.isoformat()
        else:
            ready[key] = value
    return ready


def compute_delivery_price(
    db: Session,
    *,
    distance_km: Decimal | float | int | str,
    subtotal: Decimal | float | int | str,
    promo_code: str | None = None,
    user: User | None = None,
    destination: str | None = None,
    now: datetime | None = None,
    extra_details: dict | None = None,
) -> DeliveryLog:
    """Price a delivery from current zones, config and promotion, and log it.

    destination is the address the quote is valid for; checkout only accepts
    the quote for that same address.
    """
    moment = now or utc_now()
    code = normalize_promo_code(promo_code)
    zones = load_zones(db)
    config = load_pricing_config(db)
    promotion_row = find_promotion(db, code) if code else None
    promotion = PromotionSnapshot.from_model(promotion_row) if promotion_row is not None else None

    try:
        breakdown = calculate_delivery_price(distance_km, subtotal, zones, config, promotion, moment, promo_code=code)
    except NoZoneCoverage as exc:
        logger.info("[DELIVERY] No coverage distance_km=%s: %s", distance_km, exc.message)
        raise

    details: dict = {
        "computed_at": moment.isoformat(),
        "free_delivery_threshold": str(config.free_delivery_threshold),
        "max_delivery_distance_km": str(config.max_delivery_distance_km),
        "use_default_pricing": config.use_default_pricing,
        "promotion_found": promotion is not None,
    }
    if promotion is not None:
        details["promotion"] = _json_ready(asdict(promotion))
    if extra_details:
        details.update(extra_details)

    log = DeliveryLog(
        user_id=user.id if user is not None else None,
        action="quote",
        destination=normalize_address(destination),
        distance_km=breakdown.distance_km,
        subtotal=to_money(subtotal),
        zone_id=breakdown.zone_id,
        zone_name=breakdown.zone_name,
        base_price=breakdown.base_price,
        promo_code=breakdown.promo_code,
        promotion_id=breakdown.promotion_id,
        promotion_discount=breakdown.promotion_discount,
        threshold_discount=breakdown.threshold_discount,
        discount_amount=breakdown.discount_amount,
        discount_source=breakdown.discount_source,
        final_price=breakdown.final_price,
        details=details,
    )
    db.add(log)
    db.commit()
    db.refresh(log)
    logger.info(
        "[DELIVERY] Quote id=%s zone=%s base=%s discount=%s final=%s",
        log.id,
        log.zone_name,
        log.base_price,
        log.discount_amount,
        log.final_price,
    )
    return log


def quote_delivery(
    db: Session,
    provider: DistanceProvider,
    *,
    origin: str,
    destination: str,
    subtotal: Decimal | float | int | str,
    promo_code: str | None = None,
    user: User | None = None,
    now: datetime | None = None,
) -> DeliveryLog:
    """Resolve the distance with the provider, then price it."""
    distance = provider.distance_km(origin, destination)
    return compute_delivery_price(
        db,
        distance_km=distance,
        subtotal=subtotal,
        promo_code=promo_code,
        user=user,
        now=now,
        destination=destination,
        extra_details={"origin": origin},
    )

