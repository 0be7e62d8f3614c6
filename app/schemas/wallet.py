"""Wallet schemas."""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict


class WalletResponse(BaseModel):
    user_id: int
    balance: Decimal
    currency: str


class WalletAmountRequest(BaseModel):
    amount: Decimal
    reference_id: str | None = None


class WalletAdjustRequest(BaseModel):
    user_id: int
    amount: Decimal
    reason: str


class WalletTransactionRead(BaseModel):
    id: int
    user_id: int
    type: str
    amount: Decimal
    balance_before: Decimal
    balance_after: Decimal
    description: str
    reference_type: str | None
    reference_id: str | None
    status: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class WalletReconciliationResponse(BaseModel):
    user_id: int
    balance: Decimal
    completed_credits: Decimal
    completed_debits: Decimal
    ledger_balance: Decimal
    failed_transactions: int
    is_consistent: bool

    model_config = ConfigDict(from_attributes=True)
