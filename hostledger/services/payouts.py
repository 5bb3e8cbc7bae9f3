"""Host payout lifecycle and admin withdrawal processing."""
from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Literal

from sqlalchemy import update
from sqlalchemy.orm import Session

from hostledger.core import models
from hostledger.core.logging import get_logger
from hostledger.core.models import PayoutStatus
from hostledger.core.observability import PAYOUTS_RELEASED, WITHDRAWALS_PROCESSED
from hostledger.core.settings import Settings, get_settings
from hostledger.services import notifications, wallets
from hostledger.services.paypal import PayPalPayoutClient, PayPalPayoutError, get_payout_client

logger = get_logger(__name__)

PayoutFilter = Literal["all", "pending", "released", "refunded"]
WithdrawalFilter = Literal["all", "pending", "completed"]

# Which states a payout may move into from each state. RELEASED and REFUNDED are terminal.
TRANSITIONS: dict[PayoutStatus, frozenset[PayoutStatus]] = {
    PayoutStatus.PENDING: frozenset({PayoutStatus.ON_HOLD, PayoutStatus.RELEASED, PayoutStatus.REFUNDED}),
    PayoutStatus.ON_HOLD: frozenset({PayoutStatus.RELEASED, PayoutStatus.REFUNDED}),
    PayoutStatus.RELEASED: frozenset(),
    PayoutStatus.REFUNDED: frozenset(),
}

LISTING_PAYOUT_TYPES = {"home": "Place", "experience": "Experience", "service": "Service"}


class PayoutNotFoundError(LookupError):
    pass


class PayoutStateError(ValueError):
    """Raised when an action does not apply to the record's current status."""


@dataclass(slots=True)
class ReleaseResult:
    payout: models.Payout
    wallet_transaction: models.WalletTransaction | None
    booking_updated: bool

    @property
    def wallet_credited(self) -> bool:
        return self.wallet_transaction is not None


def _sources_for(target: PayoutStatus) -> list[PayoutStatus]:
    return [source for source, targets in TRANSITIONS.items() if target in targets]


class PayoutLedger:
    """Drive payout records through their lifecycle and settle wallet side effects."""

    def __init__(
        self,
        settings: Settings | None = None,
        transfer_client: PayPalPayoutClient | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.transfer_client = transfer_client or get_payout_client()

    # ------------------------------------------------------------------
    def get(self, db: Session, payout_id: uuid.UUID) -> models.Payout:
        payout = db.get(models.Payout, payout_id)
        if payout is None:
            raise PayoutNotFoundError("Payout not found")
        return payout

    def list_payouts(self, db: Session, status_filter: PayoutFilter = "all") -> list[models.Payout]:
        query = db.query(models.Payout)
        if status_filter == "pending":
            query = query.filter(models.Payout.status.in_([PayoutStatus.PENDING, PayoutStatus.ON_HOLD]))
        elif status_filter == "released":
            query = query.filter(models.Payout.status == PayoutStatus.RELEASED)
        elif status_filter == "refunded":
            query = query.filter(models.Payout.status == PayoutStatus.REFUNDED)
        return query.order_by(models.Payout.created_at.desc()).all()

    def list_withdrawals(
        self, db: Session, status_filter: WithdrawalFilter = "all"
    ) -> list[models.WalletTransaction]:
        query = db.query(models.WalletTransaction).filter(models.WalletTransaction.type == "cash_out")
        if status_filter == "pending":
            query = query.filter(models.WalletTransaction.status.in_(["pending", "processing"]))
        elif status_filter == "completed":
            query = query.filter(models.WalletTransaction.status == "completed")
        return query.order_by(models.WalletTransaction.created_at.desc()).all()

    # ------------------------------------------------------------------
    def create_for_booking(self, db: Session, booking: models.Booking, listing: models.Listing) -> models.Payout:
        """Open a PENDING payout for the host share of a new booking."""
        payout = models.Payout(
            type=LISTING_PAYOUT_TYPES.get(listing.category, "Service"),
            booking_id=booking.id,
            listing_id=listing.id,
            host_id=booking.host_id,
            guest_id=booking.guest_id,
            host_name=booking.host_name or "Host",
            guest_name=booking.guest_name or "Guest",
            host_email=listing.host.email if listing.host else None,
            amount=booking.total_amount - (booking.service_fee or Decimal("0")),
            service_fee=booking.service_fee or Decimal("0"),
            total_amount=booking.total_amount,
            payment_method=booking.payment_method,
            status=PayoutStatus.PENDING,
            due_date=booking.check_in + timedelta(days=self.settings.payout_due_days),
        )
        db.add(payout)
        db.flush()
        logger.info("payout_created", payout_id=str(payout.id), amount=str(payout.amount))
        return payout

    def _transition(
        self, db: Session, payout_id: uuid.UUID, target: PayoutStatus, **values: Any
    ) -> models.Payout:
        payout = self.get(db, payout_id)
        if target not in TRANSITIONS[payout.status]:
            raise PayoutStateError(f"Payout is {payout.status.value} and cannot become {target.value}")

        # Conditional write: a concurrent transition leaves zero matching rows.
        result = db.execute(
            update(models.Payout)
            .where(models.Payout.id == payout_id)
            .where(models.Payout.status.in_(_sources_for(target)))
            .values(status=target, updated_at=datetime.utcnow(), **values)
        )
        if result.rowcount != 1:
            db.rollback()
            raise PayoutStateError(f"Payout changed state before it could become {target.value}")
        db.flush()
        db.refresh(payout)
        return payout

    def hold(self, db: Session, payout_id: uuid.UUID) -> models.Payout:
        payout = self._transition(db, payout_id, PayoutStatus.ON_HOLD)
        logger.info("payout_on_hold", payout_id=str(payout_id))
        return payout

    def mark_refunded(
        self,
        db: Session,
        payout_id: uuid.UUID,
        refund_amount: Decimal,
        refunded_by: str = "system",
    ) -> models.Payout:
        payout = self._transition(
            db,
            payout_id,
            PayoutStatus.REFUNDED,
            refund_amount=refund_amount,
            refunded_at=datetime.utcnow(),
            refunded_by=refunded_by,
        )
        logger.info("payout_refunded", payout_id=str(payout_id), refund_amount=str(refund_amount))
        return payout

    # ------------------------------------------------------------------
    def release(self, db: Session, payout_id: uuid.UUID, actor_id: uuid.UUID) -> ReleaseResult:
        """Release a payout to the host.

        The status write is committed first. Marking the booking and crediting the
        host wallet follow as separate commits; their failures are logged and reported
        on the result rather than undoing the release.
        """
        now = datetime.utcnow()
        payout = self._transition(
            db,
            payout_id,
            PayoutStatus.RELEASED,
            released_at=now,
            released_by=actor_id,
        )
        db.commit()
        logger.info(
            "payout_released",
            payout_id=str(payout.id),
            host_id=str(payout.host_id) if payout.host_id else None,
            amount=str(payout.amount),
        )

        booking_updated = False
        if payout.booking_id:
            try:
                booking = db.get(models.Booking, payout.booking_id)
                if booking is None:
                    logger.warning("payout_booking_missing", payout_id=str(payout.id))
                else:
                    booking.payout_status = "released"
                    booking.payout_released_at = now
                    db.add(booking)
                    db.commit()
                    booking_updated = True
            except Exception as exc:
                db.rollback()
                logger.error("payout_booking_update_failed", payout_id=str(payout.id), error=str(exc))

        wallet_transaction: models.WalletTransaction | None = None
        if payout.host_id:
            try:
                wallet_transaction = wallets.receive_payment(
                    db,
                    payout.host_id,
                    payout.amount,
                    booking_id=payout.booking_id,
                    payout_id=payout.id,
                    description=f"Payout released for booking {payout.booking_id or 'N/A'}",
                )
                db.commit()
            except Exception as exc:
                db.rollback()
                wallet_transaction = None
                logger.error(
                    "payout_wallet_credit_failed",
                    payout_id=str(payout.id),
                    host_id=str(payout.host_id),
                    amount=str(payout.amount),
                    error=str(exc),
                )

        result = ReleaseResult(
            payout=payout,
            wallet_transaction=wallet_transaction,
            booking_updated=booking_updated,
        )
        PAYOUTS_RELEASED.labels(wallet_credited=str(result.wallet_credited).lower()).inc()

        host = db.get(models.User, payout.host_id) if payout.host_id else None
        recipient = host.email if host else payout.host_email
        if recipient:
            notifications.notify(notifications.payout_released_message(payout, recipient))
        return result

    # ------------------------------------------------------------------
    def process_withdrawal(
        self, db: Session, transaction_id: uuid.UUID, actor_id: uuid.UUID
    ) -> models.WalletTransaction:
        """Send a pending cash-out to PayPal and mark it completed.

        If the transfer fails for any reason the transaction goes back to
        ``pending`` and the error propagates to the caller.
        """
        transaction = wallets.get_withdrawal(db, transaction_id)
        if transaction.status != "pending":
            raise PayoutStateError(f"Withdrawal is {transaction.status}, not pending")
        if not transaction.paypal_email:
            raise PayoutStateError("Withdrawal has no PayPal email")

        claimed = db.execute(
            update(models.WalletTransaction)
            .where(models.WalletTransaction.id == transaction_id)
            .where(models.WalletTransaction.status == "pending")
            .values(status="processing", updated_at=datetime.utcnow())
        )
        if claimed.rowcount != 1:
            db.rollback()
            raise PayoutStateError("Withdrawal is already being processed")
        db.commit()
        db.refresh(transaction)

        try:
            transfer = self.transfer_client.send_payout(
                transaction.amount,
                transaction.paypal_email,
                reference=f"withdrawal_{transaction.id.hex}",
            )
        except Exception as exc:
            # Any failure after the claim hands the reserved amount back to the queue.
            db.rollback()
            transaction.status = "pending"
            transaction.updated_at = datetime.utcnow()
            db.add(transaction)
            db.commit()
            WITHDRAWALS_PROCESSED.labels(outcome="failed").inc()
            logger.warning(
                "withdrawal_transfer_failed",
                transaction_id=str(transaction.id),
                error=exc.raw if isinstance(exc, PayPalPayoutError) else repr(exc),
            )
            raise

        now = datetime.utcnow()
        transaction.status = "completed"
        transaction.payout_batch_id = transfer.batch_id
        transaction.processed_at = now
        transaction.processed_by = actor_id
        transaction.updated_at = now
        db.add(transaction)
        db.commit()
        WITHDRAWALS_PROCESSED.labels(outcome="completed").inc()
        logger.info(
            "withdrawal_processed",
            transaction_id=str(transaction.id),
            batch_id=transfer.batch_id,
            simulated=transfer.simulated,
        )

        user = db.get(models.User, transaction.user_id)
        if user:
            notifications.notify(notifications.withdrawal_processed_message(transaction, user.email))
        return transaction


__all__ = [
    "LISTING_PAYOUT_TYPES",
    "PayoutLedger",
    "PayoutNotFoundError",
    "PayoutStateError",
    "ReleaseResult",
    "TRANSITIONS",
]
