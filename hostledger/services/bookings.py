"""Guest bookings and the payout records that follow them."""
from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from sqlalchemy import or_
from sqlalchemy.orm import Session

from hostledger.core import models
from hostledger.core.logging import get_logger
from hostledger.core.models import PayoutStatus
from hostledger.services import fees, wallets
from hostledger.services.listings import ListingNotFoundError
from hostledger.services.payouts import PayoutLedger
from hostledger.services.refunds import DEFAULT_POLICY, RefundQuote, calculate_refund

logger = get_logger(__name__)

PAYMENT_METHODS = ("paypal", "wallet")


class BookingNotFoundError(LookupError):
    pass


class BookingError(ValueError):
    pass


@dataclass(slots=True)
class CancellationResult:
    booking: models.Booking
    quote: RefundQuote
    payout: models.Payout | None
    wallet_transaction: models.WalletTransaction | None


def get_booking(db: Session, booking_id: uuid.UUID) -> models.Booking:
    booking = db.get(models.Booking, booking_id)
    if booking is None:
        raise BookingNotFoundError("Booking not found")
    return booking


def list_bookings(db: Session, user_id: uuid.UUID) -> list[models.Booking]:
    return (
        db.query(models.Booking)
        .filter(or_(models.Booking.guest_id == user_id, models.Booking.host_id == user_id))
        .order_by(models.Booking.created_at.desc())
        .all()
    )


def _payout_for(db: Session, booking_id: uuid.UUID) -> models.Payout | None:
    return db.query(models.Payout).filter(models.Payout.booking_id == booking_id).first()


def create_booking(
    db: Session,
    ledger: PayoutLedger,
    guest: models.User,
    listing_id: uuid.UUID,
    check_in: datetime,
    check_out: datetime,
    total_amount: Decimal,
    guests: int = 1,
    payment_method: str = "paypal",
) -> models.Booking:
    """Record a booking, take wallet payment if chosen and open the host payout.

    Nothing is committed here; the caller owns the transaction so a failed wallet
    deduction leaves no booking behind.
    """
    if payment_method not in PAYMENT_METHODS:
        raise BookingError(f"Unsupported payment method '{payment_method}'")
    if check_out <= check_in:
        raise BookingError("Check-out must be after check-in")
    total = Decimal(str(total_amount))
    if total <= 0:
        raise BookingError("Booking total must be positive")

    listing = db.get(models.Listing, listing_id)
    if listing is None or listing.status != "active":
        raise ListingNotFoundError("Listing not found")
    if listing.host_id == guest.id:
        raise BookingError("Hosts cannot book their own listing")

    fee = fees.calculate_service_fee(total, fees.get_service_fee_percentage(db))
    details = listing.details or {}
    booking = models.Booking(
        listing_id=listing.id,
        guest_id=guest.id,
        host_id=listing.host_id,
        guest_name=guest.display_name or guest.email,
        host_name=listing.host.display_name if listing.host else None,
        listing_title=listing.title,
        check_in=check_in,
        check_out=check_out,
        guests=guests,
        total_amount=total,
        service_fee=fee,
        payment_method=payment_method,
        cancellation_policy=details.get("cancellation_policy", DEFAULT_POLICY),
        status="pending",
        payout_status="pending",
    )
    db.add(booking)
    db.flush()

    if payment_method == "wallet":
        wallets.pay(db, guest.id, total, description=f"Booking: {listing.title}", booking_id=booking.id)

    ledger.create_for_booking(db, booking, listing)
    listing.bookings_count = (listing.bookings_count or 0) + 1
    db.add(listing)
    db.flush()
    logger.info(
        "booking_created",
        booking_id=str(booking.id),
        listing_id=str(listing.id),
        total=str(total),
        service_fee=str(fee),
        payment_method=payment_method,
    )
    return booking


def confirm_booking(
    db: Session, ledger: PayoutLedger, booking_id: uuid.UUID, host_id: uuid.UUID
) -> models.Booking:
    booking = get_booking(db, booking_id)
    if booking.host_id != host_id:
        raise BookingNotFoundError("Booking not found")
    if booking.status != "pending":
        raise BookingError(f"Booking is {booking.status}, not pending")

    payout = _payout_for(db, booking.id)
    if payout is not None:
        ledger.hold(db, payout.id)

    booking.status = "confirmed"
    booking.confirmed_at = datetime.utcnow()
    booking.payout_status = "on_hold"
    db.add(booking)
    db.flush()
    logger.info("booking_confirmed", booking_id=str(booking.id))
    return booking


def cancel_booking(
    db: Session,
    ledger: PayoutLedger,
    booking_id: uuid.UUID,
    actor: models.User,
    cancelled_at: datetime | None = None,
) -> CancellationResult:
    booking = get_booking(db, booking_id)
    if not actor.is_admin and actor.id not in (booking.guest_id, booking.host_id):
        raise BookingNotFoundError("Booking not found")
    if booking.status == "cancelled":
        raise BookingError("Booking is already cancelled")

    now = cancelled_at or datetime.utcnow()
    quote = calculate_refund(
        booking.total_amount,
        booking.check_in,
        cancellation_policy=booking.cancellation_policy,
        cancelled_at=now,
    )

    payout = _payout_for(db, booking.id)
    if payout is not None:
        payout = ledger.mark_refunded(
            db, payout.id, quote.final_refund_amount, refunded_by=str(actor.id)
        )
    else:
        payout = models.Payout(
            type="Refund",
            booking_id=booking.id,
            listing_id=booking.listing_id,
            host_id=booking.host_id,
            guest_id=booking.guest_id,
            host_name=booking.host_name,
            guest_name=booking.guest_name,
            amount=quote.final_refund_amount,
            total_amount=booking.total_amount,
            payment_method=booking.payment_method,
            status=PayoutStatus.REFUNDED,
            refund_amount=quote.final_refund_amount,
            refunded_at=now,
            refunded_by=str(actor.id),
        )
        db.add(payout)

    wallet_transaction = None
    if booking.payment_method == "wallet" and quote.final_refund_amount > 0:
        wallet_transaction = wallets.refund(
            db,
            booking.guest_id,
            quote.final_refund_amount,
            description=f"Refund for booking {booking.listing_title or booking.id}",
            booking_id=booking.id,
        )

    booking.status = "cancelled"
    booking.cancelled_at = now
    booking.refund_amount = quote.final_refund_amount
    booking.payout_status = "refunded"
    db.add(booking)
    db.flush()
    logger.info(
        "booking_cancelled",
        booking_id=str(booking.id),
        policy=quote.cancellation_policy,
        refund=str(quote.final_refund_amount),
    )
    return CancellationResult(
        booking=booking, quote=quote, payout=payout, wallet_transaction=wallet_transaction
    )


__all__ = [
    "BookingError",
    "BookingNotFoundError",
    "CancellationResult",
    "PAYMENT_METHODS",
    "cancel_booking",
    "confirm_booking",
    "create_booking",
    "get_booking",
    "list_bookings",
]
