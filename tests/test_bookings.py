"""Bookings open payouts, confirmation holds them and cancellation refunds them."""

from __future__ import annotations

from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from hostledger.core import models
from hostledger.core.models import PayoutStatus
from hostledger.services import bookings, fees, listings, subscriptions, wallets
from hostledger.services.payouts import PayoutStateError


@pytest.fixture
def stay(db, make_user):
    host = make_user("Maria Host", role="host")
    subscriptions.subscribe(db, host.id, "starter")
    listing = listings.create_listing(
        db, host.id, title="Seaside Villa", category="home", price=Decimal("2000"),
        details={"cancellation_policy": "moderate"},
    )
    db.commit()
    return host, listing


def _book(db, ledger, guest, listing, days_ahead=14, total="2000", payment_method="paypal"):
    check_in = datetime.utcnow() + timedelta(days=days_ahead)
    booking = bookings.create_booking(
        db,
        ledger,
        guest,
        listing.id,
        check_in=check_in,
        check_out=check_in + timedelta(days=2),
        total_amount=Decimal(total),
        payment_method=payment_method,
    )
    db.commit()
    return booking


def _payout(db, booking):
    return db.query(models.Payout).filter(models.Payout.booking_id == booking.id).one()


def test_booking_opens_pending_payout_net_of_fee(db, make_user, ledger, stay):
    host, listing = stay
    guest = make_user("Guest")

    booking = _book(db, ledger, guest, listing)
    payout = _payout(db, booking)

    assert booking.service_fee == Decimal("200.00")
    assert payout.status is PayoutStatus.PENDING
    assert payout.amount == Decimal("1800.00")
    assert payout.type == "Place"
    assert payout.host_id == host.id
    assert payout.due_date == booking.check_in + timedelta(days=7)
    assert listing.bookings_count == 1


def test_service_fee_setting_applies(db, make_user, ledger, stay):
    _, listing = stay
    guest = make_user("Guest")
    fees.update_service_fee_percentage(db, Decimal("0.15"))
    db.commit()

    booking = _book(db, ledger, guest, listing)
    assert booking.service_fee == Decimal("300.00")
    assert fees.service_fee_history(db) == []


def test_service_fee_must_be_a_fraction(db):
    with pytest.raises(ValueError):
        fees.update_service_fee_percentage(db, Decimal("1.5"))


def test_wallet_booking_debits_guest(db, make_user, ledger, stay):
    _, listing = stay
    guest = make_user("Guest", balance=Decimal("5000"))

    _book(db, ledger, guest, listing, payment_method="wallet")

    assert wallets.get_balance(db, guest.id) == Decimal("3000")
    payment = wallets.list_transactions(db, guest.id, type_="payment")[0]
    assert payment.amount == Decimal("2000")


def test_wallet_booking_requires_funds(db, make_user, ledger, stay):
    _, listing = stay
    guest = make_user("Guest", balance=Decimal("100"))
    with pytest.raises(wallets.InsufficientFundsError):
        _book(db, ledger, guest, listing, payment_method="wallet")


def test_host_cannot_book_own_listing(db, ledger, stay):
    host, listing = stay
    with pytest.raises(bookings.BookingError):
        _book(db, ledger, host, listing)


def test_confirm_puts_payout_on_hold(db, make_user, ledger, stay):
    host, listing = stay
    guest = make_user("Guest")
    booking = _book(db, ledger, guest, listing)

    confirmed = bookings.confirm_booking(db, ledger, booking.id, host.id)
    db.commit()

    assert confirmed.status == "confirmed"
    assert _payout(db, booking).status is PayoutStatus.ON_HOLD


def test_only_the_host_confirms(db, make_user, ledger, stay):
    _, listing = stay
    guest = make_user("Guest")
    booking = _book(db, ledger, guest, listing)
    with pytest.raises(bookings.BookingNotFoundError):
        bookings.confirm_booking(db, ledger, booking.id, guest.id)


def test_cancellation_refunds_wallet_guest(db, make_user, ledger, stay):
    _, listing = stay
    guest = make_user("Guest", balance=Decimal("2000"))
    booking = _book(db, ledger, guest, listing, days_ahead=2, payment_method="wallet")

    result = bookings.cancel_booking(db, ledger, booking.id, guest)
    db.commit()

    assert result.quote.refund_percentage == Decimal("50")
    assert result.quote.final_refund_amount == Decimal("900.00")
    assert result.booking.status == "cancelled"
    assert result.payout.status is PayoutStatus.REFUNDED
    assert result.payout.refund_amount == Decimal("900.00")
    assert wallets.get_balance(db, guest.id) == Decimal("900.00")


def test_cancelled_booking_payout_cannot_be_released(db, make_user, ledger, stay):
    _, listing = stay
    guest = make_user("Guest")
    admin = make_user("Admin", is_admin=True)
    booking = _book(db, ledger, guest, listing)
    bookings.cancel_booking(db, ledger, booking.id, guest)
    db.commit()

    with pytest.raises(PayoutStateError):
        ledger.release(db, _payout(db, booking).id, admin.id)


def test_released_payout_blocks_cancellation(db, make_user, ledger, stay):
    _, listing = stay
    guest = make_user("Guest")
    admin = make_user("Admin", is_admin=True)
    booking = _book(db, ledger, guest, listing)
    ledger.release(db, _payout(db, booking).id, admin.id)

    with pytest.raises(PayoutStateError):
        bookings.cancel_booking(db, ledger, booking.id, guest)
