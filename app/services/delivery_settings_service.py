"""Admin maintenance of delivery zones, promotions and pricing config."""

from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy.orm import Session

from app.core.errors import NotFound, ValidationError
from app.models import DeliveryLog, DeliveryPricingConfig, DeliveryZone, Promotion, User
from app.models.delivery import DISCOUNT_TYPES
from app.services.audit_service import log_action
from app.services.delivery_pricing import PRICING_CONFIG_ID, normalize_promo_code
from app.services.security_guards import ensure_admin
from app.utils.time import as_utc

logger = logging.getLogger(__name__)


def _check_zone_range(min_distance_km: Decimal, max_distance_km: Decimal, price: Decimal) -> None:
    if min_distance_km < 0:
        raise ValidationError("min_distance_km must be >= 0")
    if max_distance_km < min_distance_km:
        raise ValidationError("max_distance_km must be >= min_distance_km")
    if price < 0:
        raise ValidationError("Zone price must be >= 0")


def list_zones(db: Session, *, include_inactive: bool = True) -> list[DeliveryZone]:
    query = db.query(DeliveryZone)
    if not include_inactive:
        query = query.filter(DeliveryZone.is_active.is_(True))
    return query.order_by(DeliveryZone.min_distance_km.asc(), DeliveryZone.id.asc()).all()


def create_zone(db: Session, *, actor: User, values: dict[str, Any]) -> DeliveryZone:
    ensure_admin(actor)
    zone = DeliveryZone(**values)
    _check_zone_range(Decimal(zone.min_distance_km or 0), Decimal(zone.max_distance_km), Decimal(zone.price))
    db.add(zone)
    db.commit()
    db.refresh(zone)
    logger.info("[ADMIN] Zone created id=%s name=%s", zone.id, zone.name)
    return zone


def update_zone(db: Session, *, actor: User, zone_id: int, values: dict[str, Any]) -> DeliveryZone:
    ensure_admin(actor)
    zone: DeliveryZone | None = db.get(DeliveryZone, zone_id)
    if zone is None:
        raise NotFound(f"Zone {zone_id} not found")
    for field, value in values.items():
        setattr(zone, field, value)
    _check_zone_range(Decimal(zone.min_distance_km), Decimal(zone.max_distance_km), Decimal(zone.price))
    db.commit()
    db.refresh(zone)
    return zone


def delete_zone(db: Session, *, actor: User, zone_id: int) -> None:
    ensure_admin(actor)
    zone: DeliveryZone | None = db.get(DeliveryZone, zone_id)
    if zone is None:
        raise NotFound(f"Zone {zone_id} not found")
    db.delete(zone)
    db.commit()


def _check_promotion(promotion: Promotion) -> None:
    if promotion.discount_type not in DISCOUNT_TYPES:
        raise ValidationError(f"Unknown discount type: {promotion.discount_type}")
    if Decimal(promotion.discount_value) < 0:
        raise ValidationError("discount_value must be >= 0")
    if promotion.discount_type == "percentage" and Decimal(promotion.discount_value) > 100:
        raise ValidationError("Percentage discounts cannot exceed 100")
    valid_from: datetime = as_utc(promotion.valid_from)
    valid_until: datetime = as_utc(promotion.valid_until)
    if valid_until < valid_from:
        raise ValidationError("valid_until must not be before valid_from")
    if promotion.usage_limit is not None and promotion.usage_limit < 0:
        raise ValidationError("usage_limit must be >= 0")


def list_promotions(db: Session) -> list[Promotion]:
    return db.query(Promotion).order_by(Promotion.id.asc()).all()


def create_promotion(db: Session, *, actor: User, values: dict[str, Any]) -> Promotion:
    ensure_admin(actor)
    code = normalize_promo_code(values.get("code"))
    if code is None:
        raise ValidationError("Promotion code is required")
    if db.query(Promotion).filter(Promotion.code == code).first() is not None:
        raise ValidationError(f"Promotion code {code} already exists")
    promotion = Promotion(**{**values, "code": code})
    _check_promotion(promotion)
    db.add(promotion)
    db.commit()
    db.refresh(promotion)
    logger.info("[ADMIN] Promotion created id=%s code=%s", promotion.id, promotion.code)
    return promotion


def update_promotion(db: Session, *, actor: User, promotion_id: int, values: dict[str, Any]) -> Promotion:
    ensure_admin(actor)
    promotion: Promotion | None = db.get(Promotion, promotion_id)
    if promotion is None:
        raise NotFound(f"Promotion {promotion_id} not found")
    if "code" in values:
        code = normalize_promo_code(values["code"])
        if code is None:
            raise ValidationError("Promotion code is required")
        clash = db.query(Promotion).filter(Promotion.code == code, Promotion.id != promotion_id).first()
        if clash is not None:
            raise ValidationError(f"Promotion code {code} already exists")
        values = {**values, "code": code}
    for field, value in values.items():
        setattr(promotion, field, value)
    _check_promotion(promotion)
    db.commit()
    db.refresh(promotion)
    return promotion


def get_pricing_config(db: Session) -> DeliveryPricingConfig:
    """Return the singleton config row, creating it with defaults on first use."""
    config: DeliveryPricingConfig | None = db.get(DeliveryPricingConfig, PRICING_CONFIG_ID)
    if config is None:
        config = DeliveryPricingConfig(id=PRICING_CONFIG_ID)
        db.add(config)
        db.commit()
        db.refresh(config)
    return config


def update_pricing_config(db: Session, *, actor: User, values: dict[str, Any]) -> DeliveryPricingConfig:
    ensure_admin(actor)
    for field, value in values.items():
        if isinstance(value, Decimal) and value < 0:
            raise ValidationError(f"{field} must be >= 0")
    config = get_pricing_config(db)
    before = {field: str(getattr(config, field)) for field in values}
    for field, value in values.items():
        setattr(config, field, value)
    log_action(
        db,
        actor=actor,
        action_type="pricing_config_updated",
        before_snapshot=before,
        after_snapshot={field: str(value) for field, value in values.items()},
    )
    db.commit()
    db.refresh(config)
    logger.info("[ADMIN] Pricing config updated fields=%s", sorted(values))
    return config


def list_delivery_logs(db: Session, *, user_id: int | None = None, limit: int = 100, offset: int = 0) -> list[DeliveryLog]:
    query = db.query(DeliveryLog)
    if user_id is not None:
        query = query.filter(DeliveryLog.user_id == user_id)
    return query.order_by(DeliveryLog.created_at.desc(), DeliveryLog.id.desc()).offset(offset).limit(limit).all()
