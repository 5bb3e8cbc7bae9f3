"""Wallet balance, history, cash-in and withdrawal requests."""

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.orm import Session

from hostledger.api import schemas
from hostledger.api.dependencies.auth import get_current_user
from hostledger.api.dependencies.database import get_db
from hostledger.core import models
from hostledger.core.rate_limiter import get_limiter, wallet_limit
from hostledger.services import wallets

router = APIRouter(prefix="/api/v1/wallet", tags=["wallet"])
limiter = get_limiter()


def transaction_response(transaction: models.WalletTransaction) -> schemas.WalletTransactionResponse:
    return schemas.WalletTransactionResponse(
        id=transaction.id,
        user_id=transaction.user_id,
        type=transaction.type,
        amount=transaction.amount,
        balance_before=transaction.balance_before,
        balance_after=transaction.balance_after,
        status=transaction.status,
        description=transaction.description,
        payment_reference=transaction.payment_reference,
        booking_id=transaction.booking_id,
        payout_id=transaction.payout_id,
        paypal_email=transaction.paypal_email,
        payout_batch_id=transaction.payout_batch_id,
        processed_at=transaction.processed_at,
        created_at=transaction.created_at,
    )


@router.get("", response_model=schemas.WalletResponse)
def get_wallet(
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> schemas.WalletResponse:
    wallet = wallets.get_or_create_wallet(db, current_user.id)
    db.commit()
    return schemas.WalletResponse(balance=wallet.balance, currency=wallet.currency)


@router.get("/transactions", response_model=list[schemas.WalletTransactionResponse])
def list_transactions(
    limit: int = Query(default=50, ge=1, le=500),
    type_: str | None = Query(default=None, alias="type"),
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> list[schemas.WalletTransactionResponse]:
    rows = wallets.list_transactions(db, current_user.id, limit=limit, type_=type_)
    return [transaction_response(row) for row in rows]


@router.post("/cash-in", response_model=schemas.WalletTransactionResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(wallet_limit)
def cash_in(
    request: Request,
    payload: schemas.WalletAmountRequest,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> schemas.WalletTransactionResponse:
    try:
        transaction = wallets.cash_in(
            db,
            current_user.id,
            payload.amount,
            payment_method=payload.payment_method,
            payment_reference=payload.payment_reference,
        )
    except wallets.DuplicatePaymentError as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    except wallets.WalletError as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    db.commit()
    return transaction_response(transaction)


@router.post("/withdrawals", response_model=schemas.WalletTransactionResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(wallet_limit)
def request_withdrawal(
    request: Request,
    payload: schemas.WithdrawalRequest,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> schemas.WalletTransactionResponse:
    paypal_email = payload.paypal_email or current_user.paypal_email or ""
    try:
        transaction = wallets.request_withdrawal(db, current_user.id, payload.amount, paypal_email)
    except wallets.InsufficientFundsError as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_402_PAYMENT_REQUIRED, detail=str(exc)) from exc
    except wallets.WalletError as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    db.commit()
    return transaction_response(transaction)
