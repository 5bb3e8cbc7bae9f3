"""Email notifications for hosts about payouts and withdrawals."""
from __future__ import annotations

import smtplib
from email.message import EmailMessage
from typing import Any

from hostledger.core import models
from hostledger.core.logging import get_logger
from hostledger.core.settings import get_settings
from hostledger.tasks.queue import get_task_queue

logger = get_logger(__name__)


def send_email(message: dict[str, Any]) -> None:
    """Send an email using the configured SMTP server, or log it when none is set."""

    settings = get_settings()
    recipient = message.get("to")
    if not recipient:
        logger.warning("email_missing_recipient", subject=message.get("subject"))
        return

    email = EmailMessage()
    email["Subject"] = message.get("subject", f"{settings.app_name} notification")
    email["From"] = message.get("from") or settings.smtp_from
    email["To"] = recipient
    email.set_content(message.get("body", ""))

    if not settings.smtp_host:
        logger.info("email_logged", recipient=recipient, subject=email["Subject"])
        return

    try:
        with smtplib.SMTP(settings.smtp_host, settings.smtp_port, timeout=10) as smtp:
            if settings.smtp_username and settings.smtp_password:
                smtp.starttls()
                smtp.login(settings.smtp_username, settings.smtp_password)
            smtp.send_message(email)
        logger.info("email_sent", recipient=recipient)
    except (smtplib.SMTPException, OSError) as exc:
        logger.error("email_failed", recipient=recipient, error=str(exc))


def _format_amount(amount: object) -> str:
    return f"{get_settings().currency} {amount:,.2f}"


def payout_released_message(payout: models.Payout, recipient: str | None) -> dict[str, Any]:
    return {
        "to": recipient,
        "subject": "Your payout has been released",
        "body": (
            f"Hi {payout.host_name or 'Host'},\n\n"
            f"A payout of {_format_amount(payout.amount)} has been released to your wallet"
            f" for booking {payout.booking_id or 'N/A'}.\n"
        ),
    }


def withdrawal_processed_message(transaction: models.WalletTransaction, recipient: str | None) -> dict[str, Any]:
    return {
        "to": recipient,
        "subject": "Your withdrawal has been sent",
        "body": (
            f"Your withdrawal of {_format_amount(transaction.amount)} to {transaction.paypal_email}"
            f" was sent. PayPal batch: {transaction.payout_batch_id}.\n"
        ),
    }


def notify(message: dict[str, Any]) -> None:
    """Queue an email. Delivery problems never propagate to the caller."""
    try:
        get_task_queue().enqueue("hostledger.send_email", message)
    except Exception as exc:
        logger.warning("notification_enqueue_failed", error=str(exc), subject=message.get("subject"))


__all__ = [
    "notify",
    "payout_released_message",
    "send_email",
    "withdrawal_processed_message",
]
