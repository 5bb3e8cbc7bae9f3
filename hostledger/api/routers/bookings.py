"""Guest bookings: creation, host confirmation and cancellation with refunds."""
from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from hostledger.api import schemas
from hostledger.api.dependencies.auth import get_current_user
from hostledger.api.dependencies.database import get_db
from hostledger.api.dependencies.ledger import get_payout_ledger
from hostledger.core import models
from hostledger.services import bookings
from hostledger.services.listings import ListingNotFoundError
from hostledger.services.payouts import PayoutLedger, PayoutStateError
from hostledger.services.refunds import RefundQuote
from hostledger.services.wallets import InsufficientFundsError, WalletError

router = APIRouter(prefix="/api/v1/bookings", tags=["bookings"])


def _booking(booking: models.Booking) -> schemas.BookingResponse:
    return schemas.BookingResponse(
        id=booking.id,
        listing_id=booking.listing_id,
        guest_id=booking.guest_id,
        host_id=booking.host_id,
        listing_title=booking.listing_title,
        check_in=booking.check_in,
        check_out=booking.check_out,
        guests=booking.guests,
        total_amount=booking.total_amount,
        service_fee=booking.service_fee,
        payment_method=booking.payment_method,
        cancellation_policy=booking.cancellation_policy,
        status=booking.status,
        payout_status=booking.payout_status,
        refund_amount=booking.refund_amount,
    )


def _refund(quote: RefundQuote) -> schemas.RefundQuoteResponse:
    return schemas.RefundQuoteResponse(
        original_amount=quote.original_amount,
        refund_percentage=quote.refund_percentage,
        refund_amount_before_deduction=quote.refund_amount_before_deduction,
        admin_deduction=quote.admin_deduction,
        cancellation_fee=quote.cancellation_fee,
        final_refund_amount=quote.final_refund_amount,
        days_until_check_in=quote.days_until_check_in,
        cancellation_policy=quote.cancellation_policy,
        policy_description=quote.policy_description,
    )


@router.get("", response_model=list[schemas.BookingResponse])
def my_bookings(
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> list[schemas.BookingResponse]:
    return [_booking(booking) for booking in bookings.list_bookings(db, current_user.id)]


@router.post("", response_model=schemas.BookingResponse, status_code=status.HTTP_201_CREATED)
def create_booking(
    payload: schemas.BookingCreate,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
    ledger: PayoutLedger = Depends(get_payout_ledger),
) -> schemas.BookingResponse:
    try:
        booking = bookings.create_booking(
            db,
            ledger,
            current_user,
            payload.listing_id,
            check_in=payload.check_in,
            check_out=payload.check_out,
            total_amount=payload.total_amount,
            guests=payload.guests,
            payment_method=payload.payment_method,
        )
    except ListingNotFoundError as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except InsufficientFundsError as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_402_PAYMENT_REQUIRED, detail=str(exc)) from exc
    except (bookings.BookingError, WalletError) as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    db.commit()
    return _booking(booking)


@router.post("/{booking_id}/confirm", response_model=schemas.BookingResponse)
def confirm_booking(
    booking_id: uuid.UUID,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
    ledger: PayoutLedger = Depends(get_payout_ledger),
) -> schemas.BookingResponse:
    try:
        booking = bookings.confirm_booking(db, ledger, booking_id, current_user.id)
    except bookings.BookingNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except (bookings.BookingError, PayoutStateError) as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    db.commit()
    return _booking(booking)


@router.post("/{booking_id}/cancel", response_model=schemas.CancellationResponse)
def cancel_booking(
    booking_id: uuid.UUID,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
    ledger: PayoutLedger = Depends(get_payout_ledger),
) -> schemas.CancellationResponse:
    try:
        result = bookings.cancel_booking(db, ledger, booking_id, current_user)
    except bookings.BookingNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except (bookings.BookingError, PayoutStateError) as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    db.commit()
    return schemas.CancellationResponse(booking=_booking(result.booking), refund=_refund(result.quote))
