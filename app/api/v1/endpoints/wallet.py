"""Wallet endpoints for the current user."""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.security import get_current_user
from app.db.session import get_db
from app.models.user import User
from app.models.wallet import WalletTransaction
from app.schemas.wallet import WalletAmountRequest, WalletResponse, WalletTransactionRead
from app.services.wallet_ledger import get_wallet_balance, list_wallet_transactions, top_up_wallet, withdraw_from_wallet

router: APIRouter = APIRouter()


@router.get("", response_model=WalletResponse)
def read_wallet(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> WalletResponse:
    return WalletResponse(
        user_id=current_user.id,
        balance=get_wallet_balance(db, current_user.id),
        currency=settings.currency_code,
    )


@router.get("/transactions", response_model=list[WalletTransactionRead])
def read_transactions(
    status_filter: str | None = Query(default=None, alias="status"),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> list[WalletTransaction]:
    return list_wallet_transactions(db, current_user.id, status=status_filter, limit=limit, offset=offset)


@router.post("/topup", response_model=WalletTransactionRead, status_code=status.HTTP_201_CREATED)
def topup(
    payload: WalletAmountRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> WalletTransaction:
    return top_up_wallet(db, current_user, payload.amount, reference_id=payload.reference_id)


@router.post("/withdraw", response_model=WalletTransactionRead, status_code=status.HTTP_201_CREATED)
def withdraw(
    payload: WalletAmountRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> WalletTransaction:
    return withdraw_from_wallet(db, current_user, payload.amount, reference_id=payload.reference_id)
