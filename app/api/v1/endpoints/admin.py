"""Admin endpoints: delivery reference data, pricing logs and wallet oversight."""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.core.security import require_admin
from app.db.session import get_db
from app.models import DeliveryLog, DeliveryPricingConfig, DeliveryZone, Promotion, User, WalletTransaction
from app.schemas.delivery import (
    DeliveryLogRead,
    PricingConfigRead,
    PricingConfigUpdate,
    PromotionCreate,
    PromotionRead,
    PromotionUpdate,
    ZoneCreate,
    ZoneRead,
    ZoneUpdate,
)
from app.schemas.wallet import WalletAdjustRequest, WalletReconciliationResponse, WalletTransactionRead
from app.services import delivery_settings_service
from app.services.wallet_ledger import WalletReconciliation, adjust_wallet, reconcile_wallet

router = APIRouter()


@router.get("/zones", response_model=list[ZoneRead])
def list_zones(db: Session = Depends(get_db), admin: User = Depends(require_admin)) -> list[DeliveryZone]:
    return delivery_settings_service.list_zones(db)


@router.post("/zones", response_model=ZoneRead, status_code=status.HTTP_201_CREATED)
def create_zone(
    payload: ZoneCreate, db: Session = Depends(get_db), admin: User = Depends(require_admin)
) -> DeliveryZone:
    return delivery_settings_service.create_zone(db, actor=admin, values=payload.model_dump())


@router.patch("/zones/{zone_id}", response_model=ZoneRead)
def update_zone(
    zone_id: int, payload: ZoneUpdate, db: Session = Depends(get_db), admin: User = Depends(require_admin)
) -> DeliveryZone:
    return delivery_settings_service.update_zone(
        db, actor=admin, zone_id=zone_id, values=payload.model_dump(exclude_unset=True)
    )


@router.delete("/zones/{zone_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_zone(zone_id: int, db: Session = Depends(get_db), admin: User = Depends(require_admin)) -> None:
    delivery_settings_service.delete_zone(db, actor=admin, zone_id=zone_id)


@router.get("/promotions", response_model=list[PromotionRead])
def list_promotions(db: Session = Depends(get_db), admin: User = Depends(require_admin)) -> list[Promotion]:
    return delivery_settings_service.list_promotions(db)


@router.post("/promotions", response_model=PromotionRead, status_code=status.HTTP_201_CREATED)
def create_promotion(
    payload: PromotionCreate, db: Session = Depends(get_db), admin: User = Depends(require_admin)
) -> Promotion:
    return delivery_settings_service.create_promotion(db, actor=admin, values=payload.model_dump())


@router.patch("/promotions/{promotion_id}", response_model=PromotionRead)
def update_promotion(
    promotion_id: int,
    payload: PromotionUpdate,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
) -> Promotion:
    return delivery_settings_service.update_promotion(
        db, actor=admin, promotion_id=promotion_id, values=payload.model_dump(exclude_unset=True)
    )


@router.get("/pricing-config", response_model=PricingConfigRead)
def read_pricing_config(
    db: Session = Depends(get_db), admin: User = Depends(require_admin)
) -> DeliveryPricingConfig:
    return delivery_settings_service.get_pricing_config(db)


@router.put("/pricing-config", response_model=PricingConfigRead)
def update_pricing_config(
    payload: PricingConfigUpdate, db: Session = Depends(get_db), admin: User = Depends(require_admin)
) -> DeliveryPricingConfig:
    return delivery_settings_service.update_pricing_config(
        db, actor=admin, values=payload.model_dump(exclude_unset=True, exclude_none=True)
    )


@router.get("/delivery-logs", response_model=list[DeliveryLogRead])
def list_delivery_logs(
    user_id: int | None = None,
    limit: int = Query(default=100, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
) -> list[DeliveryLog]:
    return delivery_settings_service.list_delivery_logs(db, user_id=user_id, limit=limit, offset=offset)


@router.post("/wallet/adjust", response_model=WalletTransactionRead, status_code=status.HTTP_201_CREATED)
def adjust_user_wallet(
    payload: WalletAdjustRequest, db: Session = Depends(get_db), admin: User = Depends(require_admin)
) -> WalletTransaction:
    return adjust_wallet(db, admin=admin, user_id=payload.user_id, amount=payload.amount, reason=payload.reason)


@router.get("/wallet/{user_id}/reconcile", response_model=WalletReconciliationResponse)
def reconcile_user_wallet(
    user_id: int, db: Session = Depends(get_db), admin: User = Depends(require_admin)
) -> WalletReconciliation:
    return reconcile_wallet(db, user_id)
