"""Wallet ledger: balance changes and their append-only transaction log.

Every balance change is one unit of work: lock the account (in-process lock
plus ``SELECT ... FOR UPDATE``), compute the new balance, swap it in with an
``UPDATE`` guarded by ``wallet_version``, append the transaction and commit.
A debit that would overdraw the account rolls back whatever the session had
pending, commits a ``failed`` transaction and raises ``InsufficientBalance``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from app.core.errors import ConcurrencyConflict, InsufficientBalance, InvalidAmount, NotFound, ValidationError
from app.models import User, WalletTransaction
from app.models.wallet import REFERENCE_TYPES, TRANSACTION_STATUSES
from app.services.audit_service import log_action
from app.services.locks import run_with_retry, wallet_locks
from app.services.security_guards import ensure_admin

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def normalize_amount(amount: Decimal | int | float | str) -> Decimal:
    """Return amount rounded to cents; it must be finite and positive."""
    try:
        value = Decimal(str(amount))
    except (InvalidOperation, ValueError) as exc:
        raise InvalidAmount("Amount must be a number") from exc
    if not value.is_finite():
        raise InvalidAmount("Amount must be a finite number")
    value = value.quantize(CENT, rounding=ROUND_HALF_UP)
    if value <= 0:
        raise InvalidAmount("Amount must be greater than zero")
    return value


def _check_reference_type(reference_type: str | None) -> None:
    if reference_type is not None and reference_type not in REFERENCE_TYPES:
        raise ValidationError(f"Unknown reference type: {reference_type}")


def _load_account_for_update(db: Session, user_id: int) -> User | None:
    return db.scalar(
        select(User)
        .where(User.id == user_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )


def _record_failed_debit(
    db: Session,
    *,
    user_id: int,
    amount: Decimal,
    balance: Decimal,
    description: str,
    reference_type: str | None,
    reference_id: str | None,
) -> None:
    db.rollback()
    db.add(
        WalletTransaction(
            user_id=user_id,
            type="debit",
            amount=amount,
            balance_before=balance,
            balance_after=balance,
            description=description,
            reference_type=reference_type,
            reference_id=reference_id,
            status="failed",
        )
    )
    db.commit()
    logger.info("[WALLET] Insufficient balance user_id=%s balance=%s amount=%s", user_id, balance, amount)


def _apply_entry(
    db: Session,
    *,
    user_id: int,
    entry_type: str,
    amount: Decimal,
    description: str,
    reference_type: str | None,
    reference_id: str | None,
    commit: bool,
) -> WalletTransaction:
    user = _load_account_for_update(db, user_id)
    if user is None:
        raise NotFound(f"User {user_id} not found")

    balance_before = Decimal(user.wallet_balance).quantize(CENT)
    if entry_type == "debit" and balance_before < amount:
        _record_failed_debit(
            db,
            user_id=user_id,
            amount=amount,
            balance=balance_before,
            description=description,
            reference_type=reference_type,
            reference_id=reference_id,
        )
        raise InsufficientBalance(
            f"Insufficient wallet balance: available {balance_before}, required {amount}"
        )

    balance_after = balance_before + amount if entry_type == "credit" else balance_before - amount
    result = db.execute(
        update(User)
        .where(User.id == user_id, User.wallet_version == user.wallet_version)
        .values(wallet_balance=balance_after, wallet_version=User.wallet_version + 1)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise ConcurrencyConflict(f"Wallet of user {user_id} changed concurrently")
    db.expire(user, ["wallet_balance", "wallet_version"])

    transaction = WalletTransaction(
        user_id=user_id,
        type=entry_type,
        amount=amount,
        balance_before=balance_before,
        balance_after=balance_after,
        description=description,
        reference_type=reference_type,
        reference_id=reference_id,
        status="completed",
    )
    db.add(transaction)
    if commit:
        db.commit()
        db.refresh(transaction)
    else:
        db.flush()

    logger.info(
        "[WALLET] %s user_id=%s amount=%s balance %s -> %s ref=%s:%s",
        entry_type,
        user_id,
        amount,
        balance_before,
        balance_after,
        reference_type,
        reference_id,
    )
    return transaction


def _post_entry(
    db: Session,
    *,
    entry_type: str,
    user_id: int,
    amount: Decimal | int | float | str,
    description: str,
    reference_type: str | None,
    reference_id: str | int | None,
    commit: bool,
) -> WalletTransaction:
    value = normalize_amount(amount)
    _check_reference_type(reference_type)
    reference = None if reference_id is None else str(reference_id)

    def operation() -> WalletTransaction:
        return _apply_entry(
            db,
            user_id=user_id,
            entry_type=entry_type,
            amount=value,
            description=description,
            reference_type=reference_type,
            reference_id=reference,
            commit=commit,
        )

    with wallet_locks.hold(user_id):
        if not commit:
            # The caller owns the unit of work and retries it as a whole.
            return operation()
        return run_with_retry(db, operation)


def credit_wallet(
    db: Session,
    *,
    user_id: int,
    amount: Decimal | int | float | str,
    description: str,
    reference_type: str | None,
    reference_id: str | int | None = None,
    commit: bool = True,
) -> WalletTransaction:
    return _post_entry(
        db,
        entry_type="credit",
        user_id=user_id,
        amount=amount,
        description=description,
        reference_type=reference_type,
        reference_id=reference_id,
        commit=commit,
    )


def debit_wallet(
    db: Session,
    *,
    user_id: int,
    amount: Decimal | int | float | str,
    description: str,
    reference_type: str | None,
    reference_id: str | int | None = None,
    commit: bool = True,
) -> WalletTransaction:
    """Debit the account; overdrawing records a failed entry and raises InsufficientBalance."""
    return _post_entry(
        db,
        entry_type="debit",
        user_id=user_id,
        amount=amount,
        description=description,
        reference_type=reference_type,
        reference_id=reference_id,
        commit=commit,
    )


def get_wallet_balance(db: Session, user_id: int) -> Decimal:
    user: User | None = db.get(User, user_id)
    if user is None:
        raise NotFound(f"User {user_id} not found")
    db.refresh(user, ["wallet_balance"])
    return Decimal(user.wallet_balance).quantize(CENT)


def list_wallet_transactions(
    db: Session,
    user_id: int,
    *,
    status: str | None = None,
    limit: int = 50,
    offset: int = 0,
) -> list[WalletTransaction]:
    if status is not None and status not in TRANSACTION_STATUSES:
        raise ValidationError(f"Unknown transaction status: {status}")
    query = select(WalletTransaction).where(WalletTransaction.user_id == user_id)
    if status is not None:
        query = query.where(WalletTransaction.status == status)
    query = query.order_by(WalletTransaction.created_at.desc(), WalletTransaction.id.desc())
    return list(db.scalars(query.offset(offset).limit(limit)))


@dataclass(frozen=True)
class WalletReconciliation:
    user_id: int
    balance: Decimal
    completed_credits: Decimal
    completed_debits: Decimal
    failed_transactions: int

    @property
    def ledger_balance(self) -> Decimal:
        return self.completed_credits - self.completed_debits

    @property
    def is_consistent(self) -> bool:
        return self.balance >= 0 and self.ledger_balance == self.balance


def _completed_sum(db: Session, user_id: int, entry_type: str) -> Decimal:
    total = db.scalar(
        select(func.coalesce(func.sum(WalletTransaction.amount), 0)).where(
            WalletTransaction.user_id == user_id,
            WalletTransaction.type == entry_type,
            WalletTransaction.status == "completed",
        )
    )
    return Decimal(str(total)).quantize(CENT)


def reconcile_wallet(db: Session, user_id: int) -> WalletReconciliation:
    """Compare the stored balance with the sum of completed ledger entries."""
    balance = get_wallet_balance(db, user_id)
    failed = db.scalar(
        select(func.count(WalletTransaction.id)).where(
            WalletTransaction.user_id == user_id,
            WalletTransaction.status == "failed",
        )
    )
    reconciliation = WalletReconciliation(
        user_id=user_id,
        balance=balance,
        completed_credits=_completed_sum(db, user_id, "credit"),
        completed_debits=_completed_sum(db, user_id, "debit"),
        failed_transactions=int(failed or 0),
    )
    if not reconciliation.is_consistent:
        logger.error(
            "[WALLET] Ledger mismatch user_id=%s balance=%s ledger=%s",
            user_id,
            reconciliation.balance,
            reconciliation.ledger_balance,
        )
    return reconciliation


def top_up_wallet(
    db: Session, user: User, amount: Decimal | int | float | str, reference_id: str | None = None
) -> WalletTransaction:
    return credit_wallet(
        db,
        user_id=user.id,
        amount=amount,
        description="Wallet top-up",
        reference_type="topup",
        reference_id=reference_id,
    )


def withdraw_from_wallet(
    db: Session, user: User, amount: Decimal | int | float | str, reference_id: str | None = None
) -> WalletTransaction:
    return debit_wallet(
        db,
        user_id=user.id,
        amount=amount,
        description="Wallet withdrawal",
        reference_type="withdrawal",
        reference_id=reference_id,
    )


def adjust_wallet(
    db: Session,
    *,
    admin: User,
    user_id: int,
    amount: Decimal | int | float | str,
    reason: str,
) -> WalletTransaction:
    """Admin correction: positive amounts credit, negative amounts debit.

    The ledger entry and its audit record are committed together.
    """
    ensure_admin(admin)
    try:
        signed = Decimal(str(amount))
    except (InvalidOperation, ValueError) as exc:
        raise InvalidAmount("Amount must be a number") from exc
    if not signed.is_finite():
        raise InvalidAmount("Amount must be a finite number")
    entry_type = "credit" if signed > 0 else "debit"
    value = normalize_amount(abs(signed))
    description = reason.strip() or "Admin adjustment"

    def operation() -> WalletTransaction:
        transaction = _apply_entry(
            db,
            user_id=user_id,
            entry_type=entry_type,
            amount=value,
            description=description,
            reference_type="admin_adjustment",
            reference_id=None,
            commit=False,
        )
        log_action(
            db,
            actor=admin,
            action_type="wallet_adjustment",
            target_user_id=user_id,
            before_snapshot={"wallet_balance": str(transaction.balance_before)},
            after_snapshot={
                "wallet_balance": str(transaction.balance_after),
                "transaction_id": transaction.id,
                "reason": description,
            },
        )
        db.commit()
        db.refresh(transaction)
        return transaction

    with wallet_locks.hold(user_id):
        return run_with_retry(db, operation)
