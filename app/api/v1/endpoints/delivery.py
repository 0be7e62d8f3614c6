"""Delivery quote endpoint."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import Unauthorized
from app.core.security import get_current_user
from app.db.session import get_db
from app.models.delivery import DeliveryLog
from app.models.user import User
from app.schemas.delivery import DeliveryQuoteRequest, DeliveryQuoteResponse
from app.services.delivery_pricing import compute_delivery_price, quote_delivery
from app.services.distance import DistanceProvider, HttpDistanceProvider

router: APIRouter = APIRouter()


def get_distance_provider() -> DistanceProvider:
    return HttpDistanceProvider()


@router.post("/quote", response_model=DeliveryQuoteResponse)
def create_quote(
    payload: DeliveryQuoteRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    provider: DistanceProvider = Depends(get_distance_provider),
) -> DeliveryLog:
    # Only admins may price an arbitrary distance; everyone else goes through the provider.
    if payload.distance_km is not None:
        if current_user.role != "ADMIN":
            raise Unauthorized("Only admins can quote a raw distance")
        return compute_delivery_price(
            db,
            distance_km=payload.distance_km,
            subtotal=payload.subtotal,
            promo_code=payload.promo_code,
            user=current_user,
            destination=payload.destination,
        )
    return quote_delivery(
        db,
        provider,
        origin=payload.origin or settings.store_origin,
        destination=payload.destination or "",
        subtotal=payload.subtotal,
        promo_code=payload.promo_code,
        user=current_user,
    )
