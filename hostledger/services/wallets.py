"""Internal wallet balances and their append-only transaction ledger."""
from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy.orm import Session

from hostledger.core import models
from hostledger.core.logging import get_logger
from hostledger.core.settings import get_settings

logger = get_logger(__name__)

CREDIT_TYPES = frozenset({"cash_in", "payment_received", "refund"})
DEBIT_TYPES = frozenset({"payment", "cash_out", "payout"})

# Statuses whose amount is reflected in the wallet balance. A pending or processing
# cash-out has already been reserved from the balance.
_SETTLED_STATUSES = frozenset({"completed", "pending", "processing"})


class WalletError(ValueError):
    """Base class for wallet validation failures."""


class InvalidAmountError(WalletError):
    pass


class InsufficientFundsError(WalletError):
    pass


class WalletTransactionNotFoundError(LookupError):
    pass


class DuplicatePaymentError(WalletError):
    """The payment reference was already credited to a wallet."""


def _validate_amount(amount: Decimal | int | float | str) -> Decimal:
    value = Decimal(str(amount))
    if value <= 0:
        raise InvalidAmountError("Invalid amount")
    return value


def get_or_create_wallet(db: Session, user_id: uuid.UUID) -> models.Wallet:
    wallet = db.get(models.Wallet, user_id)
    if wallet is None:
        wallet = models.Wallet(
            user_id=user_id,
            balance=Decimal("0"),
            currency=get_settings().currency,
        )
        db.add(wallet)
        db.flush()
    return wallet


def get_balance(db: Session, user_id: uuid.UUID) -> Decimal:
    wallet = db.get(models.Wallet, user_id)
    return wallet.balance if wallet else Decimal("0")


def list_transactions(
    db: Session, user_id: uuid.UUID, limit: int = 50, type_: str | None = None
) -> list[models.WalletTransaction]:
    query = db.query(models.WalletTransaction).filter(models.WalletTransaction.user_id == user_id)
    if type_:
        query = query.filter(models.WalletTransaction.type == type_)
    return query.order_by(models.WalletTransaction.created_at.desc()).limit(limit).all()


def _append(
    db: Session,
    user_id: uuid.UUID,
    type_: str,
    amount: Decimal,
    status: str = "completed",
    **fields: Any,
) -> models.WalletTransaction:
    if type_ not in CREDIT_TYPES and type_ not in DEBIT_TYPES:
        raise WalletError(f"Unknown transaction type '{type_}'")

    wallet = get_or_create_wallet(db, user_id)
    before = wallet.balance or Decimal("0")
    if type_ in DEBIT_TYPES:
        if before < amount:
            raise InsufficientFundsError(
                f"Insufficient wallet balance. Current: {wallet.currency} {before:,.2f}, "
                f"Required: {wallet.currency} {amount:,.2f}"
            )
        after = before - amount
    else:
        after = before + amount

    wallet.balance = after
    wallet.updated_at = datetime.utcnow()
    transaction = models.WalletTransaction(
        user_id=user_id,
        type=type_,
        amount=amount,
        balance_before=before,
        balance_after=after,
        status=status,
        **fields,
    )
    db.add(wallet)
    db.add(transaction)
    db.flush()
    logger.info(
        "wallet_transaction_recorded",
        user_id=str(user_id),
        type=type_,
        amount=str(amount),
        balance_after=str(after),
        status=status,
    )
    return transaction


def cash_in(
    db: Session,
    user_id: uuid.UUID,
    amount: Decimal,
    payment_method: str = "paypal",
    payment_reference: str | None = None,
) -> models.WalletTransaction:
    """Credit a top-up that was paid outside the wallet.

    ``payment_reference`` is the provider capture id. Each reference can be
    credited once.
    """
    value = _validate_amount(amount)
    if payment_reference is not None:
        duplicate = (
            db.query(models.WalletTransaction.id)
            .filter(models.WalletTransaction.payment_reference == payment_reference)
            .first()
        )
        if duplicate is not None:
            raise DuplicatePaymentError(f"Payment {payment_reference} was already credited")
    return _append(
        db,
        user_id,
        "cash_in",
        value,
        payment_method=payment_method,
        payment_reference=payment_reference,
        description=f"Cash in via {payment_method.upper()}",
    )


def pay(
    db: Session,
    user_id: uuid.UUID,
    amount: Decimal,
    description: str = "Payment",
    booking_id: uuid.UUID | None = None,
) -> models.WalletTransaction:
    value = _validate_amount(amount)
    return _append(db, user_id, "payment", value, description=description, booking_id=booking_id)


def refund(
    db: Session,
    user_id: uuid.UUID,
    amount: Decimal,
    description: str = "Funds added",
    booking_id: uuid.UUID | None = None,
) -> models.WalletTransaction:
    value = _validate_amount(amount)
    return _append(db, user_id, "refund", value, description=description, booking_id=booking_id)


def receive_payment(
    db: Session,
    user_id: uuid.UUID,
    amount: Decimal,
    booking_id: uuid.UUID | None = None,
    payout_id: uuid.UUID | None = None,
    description: str = "Payment received",
) -> models.WalletTransaction:
    value = _validate_amount(amount)
    return _append(
        db,
        user_id,
        "payment_received",
        value,
        description=description,
        booking_id=booking_id,
        payout_id=payout_id,
    )


def request_withdrawal(
    db: Session, user_id: uuid.UUID, amount: Decimal, paypal_email: str
) -> models.WalletTransaction:
    """Reserve ``amount`` and queue a cash-out for an administrator to process."""
    value = _validate_amount(amount)
    if not paypal_email or "@" not in paypal_email:
        raise WalletError("Please provide a valid PayPal email address")

    currency = get_settings().currency
    return _append(
        db,
        user_id,
        "cash_out",
        value,
        status="pending",
        paypal_email=paypal_email,
        description=f"{currency} {value:,.2f} withdrawal to PayPal ({paypal_email})",
    )


def admin_deduct(
    db: Session, user_id: uuid.UUID, amount: Decimal, description: str = "Payout processed"
) -> models.WalletTransaction:
    value = _validate_amount(amount)
    return _append(db, user_id, "payout", value, description=description)


def get_withdrawal(db: Session, transaction_id: uuid.UUID) -> models.WalletTransaction:
    transaction = db.get(models.WalletTransaction, transaction_id)
    if transaction is None or transaction.type != "cash_out":
        raise WalletTransactionNotFoundError("Withdrawal not found")
    return transaction


def ledger_balance(db: Session, user_id: uuid.UUID) -> Decimal:
    """Recompute a balance from the transaction ledger for reconciliation."""
    total = Decimal("0")
    transactions = (
        db.query(models.WalletTransaction)
        .filter(models.WalletTransaction.user_id == user_id)
        .filter(models.WalletTransaction.status.in_(sorted(_SETTLED_STATUSES)))
        .all()
    )
    for transaction in transactions:
        if transaction.type in CREDIT_TYPES:
            total += transaction.amount
        else:
            total -= transaction.amount
    return total


__all__ = [
    "CREDIT_TYPES",
    "DEBIT_TYPES",
    "DuplicatePaymentError",
    "InsufficientFundsError",
    "InvalidAmountError",
    "WalletError",
    "WalletTransactionNotFoundError",
    "admin_deduct",
    "cash_in",
    "get_balance",
    "get_or_create_wallet",
    "get_withdrawal",
    "ledger_balance",
    "list_transactions",
    "pay",
    "receive_payment",
    "refund",
    "request_withdrawal",
]
