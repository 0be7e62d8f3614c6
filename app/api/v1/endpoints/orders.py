"""Order endpoints."""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.core.security import get_current_user
from app.db.session import get_db
from app.models.order import Order
from app.models.user import User
from app.schemas.order import OrderCreate, OrderResponse, OrderStatusUpdate
from app.services.order_service import delete_order, get_order, list_orders_for_actor, place_order
from app.services.order_status import cancel_order, transition_order_status

router: APIRouter = APIRouter()


@router.post("", response_model=OrderResponse, status_code=status.HTTP_201_CREATED)
def create_order(
    payload: OrderCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> Order:
    return place_order(
        db,
        customer=current_user,
        vendor_id=payload.vendor_id,
        items=[(item.product_id, item.quantity) for item in payload.items],
        delivery_type=payload.delivery_type,
        payment_method=payload.payment_method,
        delivery_quote_id=payload.delivery_quote_id,
        delivery_address=payload.delivery_address,
        tax=payload.tax,
        notes=payload.notes,
    )


@router.get("", response_model=list[OrderResponse])
def list_orders(
    status_filter: str | None = Query(default=None, alias="status"),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> list[Order]:
    return list_orders_for_actor(db, current_user, status=status_filter, limit=limit, offset=offset)


@router.get("/{order_id}", response_model=OrderResponse)
def read_order(
    order_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> Order:
    return get_order(db, order_id=order_id, actor=current_user)


@router.post("/{order_id}/status", response_model=OrderResponse)
def update_order_status(
    order_id: int,
    payload: OrderStatusUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> Order:
    return transition_order_status(db, order_id=order_id, new_status=payload.status, actor=current_user)


@router.post("/{order_id}/cancel", response_model=OrderResponse)
def cancel(
    order_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> Order:
    return cancel_order(db, order_id=order_id, actor=current_user)


@router.delete("/{order_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_order(
    order_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> None:
    delete_order(db, order_id=order_id, actor=current_user)
