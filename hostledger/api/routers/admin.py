"""Administrative console: payouts, withdrawals and the platform service fee."""
from __future__ import annotations

import uuid
from typing import Literal

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from hostledger.api import schemas
from hostledger.api.dependencies.auth import get_admin_user
from hostledger.api.dependencies.database import get_db
from hostledger.api.dependencies.ledger import get_payout_ledger
from hostledger.api.routers.wallet import transaction_response
from hostledger.core import models
from hostledger.services import fees
from hostledger.services.payouts import PayoutLedger, PayoutNotFoundError, PayoutStateError
from hostledger.services.paypal import PayPalPayoutError
from hostledger.services.wallets import WalletTransactionNotFoundError

router = APIRouter(prefix="/api/v1/admin", tags=["admin"])


def _payout(payout: models.Payout) -> schemas.PayoutResponse:
    return schemas.PayoutResponse(
        id=payout.id,
        type=payout.type,
        booking_id=payout.booking_id,
        listing_id=payout.listing_id,
        host_id=payout.host_id,
        guest_id=payout.guest_id,
        host_name=payout.host_name,
        guest_name=payout.guest_name,
        amount=payout.amount,
        service_fee=payout.service_fee,
        total_amount=payout.total_amount,
        payment_method=payout.payment_method,
        status=payout.status.value,
        due_date=payout.due_date,
        released_at=payout.released_at,
        refund_amount=payout.refund_amount,
        refunded_at=payout.refunded_at,
        created_at=payout.created_at,
    )


@router.get("/payouts", response_model=list[schemas.PayoutResponse])
def list_payouts(
    status_filter: Literal["all", "pending", "released", "refunded"] = Query(default="all", alias="status"),
    _: models.User = Depends(get_admin_user),
    db: Session = Depends(get_db),
    ledger: PayoutLedger = Depends(get_payout_ledger),
) -> list[schemas.PayoutResponse]:
    return [_payout(payout) for payout in ledger.list_payouts(db, status_filter)]


@router.post("/payouts/{payout_id}/release", response_model=schemas.ReleasePayoutResponse)
def release_payout(
    payout_id: uuid.UUID,
    payload: schemas.ReleasePayoutRequest,
    admin: models.User = Depends(get_admin_user),
    db: Session = Depends(get_db),
    ledger: PayoutLedger = Depends(get_payout_ledger),
) -> schemas.ReleasePayoutResponse:
    if not payload.confirm:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Release must be confirmed")

    try:
        result = ledger.release(db, payout_id, admin.id)
    except PayoutNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except PayoutStateError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc

    return schemas.ReleasePayoutResponse(
        payout=_payout(result.payout),
        wallet_credited=result.wallet_credited,
        booking_updated=result.booking_updated,
        wallet_transaction_id=result.wallet_transaction.id if result.wallet_transaction else None,
    )


@router.post("/payouts/{payout_id}/hold", response_model=schemas.PayoutResponse)
def hold_payout(
    payout_id: uuid.UUID,
    _: models.User = Depends(get_admin_user),
    db: Session = Depends(get_db),
    ledger: PayoutLedger = Depends(get_payout_ledger),
) -> schemas.PayoutResponse:
    try:
        payout = ledger.hold(db, payout_id)
    except PayoutNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except PayoutStateError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    db.commit()
    return _payout(payout)


@router.get("/withdrawals", response_model=list[schemas.WalletTransactionResponse])
def list_withdrawals(
    status_filter: Literal["all", "pending", "completed"] = Query(default="all", alias="status"),
    _: models.User = Depends(get_admin_user),
    db: Session = Depends(get_db),
    ledger: PayoutLedger = Depends(get_payout_ledger),
) -> list[schemas.WalletTransactionResponse]:
    return [transaction_response(row) for row in ledger.list_withdrawals(db, status_filter)]


@router.post("/withdrawals/{transaction_id}/process", response_model=schemas.WalletTransactionResponse)
def process_withdrawal(
    transaction_id: uuid.UUID,
    admin: models.User = Depends(get_admin_user),
    db: Session = Depends(get_db),
    ledger: PayoutLedger = Depends(get_payout_ledger),
) -> schemas.WalletTransactionResponse:
    try:
        transaction = ledger.process_withdrawal(db, transaction_id, admin.id)
    except WalletTransactionNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except PayoutStateError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    except PayPalPayoutError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc
    return transaction_response(transaction)


@router.get("/service-fee", response_model=schemas.ServiceFeeResponse)
def get_service_fee(
    _: models.User = Depends(get_admin_user),
    db: Session = Depends(get_db),
) -> schemas.ServiceFeeResponse:
    return schemas.ServiceFeeResponse(
        percentage=fees.get_service_fee_percentage(db),
        history=fees.service_fee_history(db),
    )


@router.put("/service-fee", response_model=schemas.ServiceFeeResponse)
def update_service_fee(
    payload: schemas.ServiceFeeUpdate,
    admin: models.User = Depends(get_admin_user),
    db: Session = Depends(get_db),
) -> schemas.ServiceFeeResponse:
    try:
        fees.update_service_fee_percentage(db, payload.percentage, updated_by=admin.id)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    db.commit()
    return schemas.ServiceFeeResponse(
        percentage=fees.get_service_fee_percentage(db),
        history=fees.service_fee_history(db),
    )
