"""PayPal Payouts client used for host withdrawals."""
from __future__ import annotations

import secrets
import string
import time
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

import requests

from hostledger.core.logging import get_logger
from hostledger.core.settings import Settings, get_settings

logger = get_logger(__name__)

# Ordered: the first matching substring decides the message shown to the admin.
_ERROR_CATEGORIES: tuple[tuple[tuple[str, ...], str], ...] = (
    (
        ("authentication", "unauthorized", "invalid_client"),
        "PayPal authentication failed. Check the payout API credentials.",
    ),
    (
        ("permission", "not_authorized", "forbidden"),
        "The PayPal account is not permitted to send payouts.",
    ),
    (
        ("not found", "not_found"),
        "The PayPal payout resource was not found.",
    ),
    (
        ("insufficient_funds", "insufficient funds"),
        "The platform PayPal account has insufficient funds for this payout.",
    ),
    (
        ("receiver_unregistered", "invalid recipient", "receiver_invalid", "invalid_email"),
        "The recipient PayPal email address is invalid or not registered.",
    ),
)


class PayPalPayoutError(RuntimeError):
    """Raised when a payout transfer cannot be completed."""

    def __init__(self, message: str, raw: str | None = None) -> None:
        super().__init__(message)
        self.raw = raw or message


def classify_payout_error(message: str) -> str:
    """Map a provider error message to an admin-facing explanation."""
    lowered = message.lower()
    for needles, friendly in _ERROR_CATEGORIES:
        if any(needle in lowered for needle in needles):
            return friendly
    return message


@dataclass(slots=True)
class PayoutTransferResult:
    batch_id: str
    status: str
    amount: Decimal
    amount_converted: Decimal
    currency: str
    recipient: str
    simulated: bool = False


class PayPalPayoutClient:
    """Send money from the platform PayPal account to a recipient email."""

    def __init__(self, settings: Settings | None = None, session: requests.Session | None = None) -> None:
        self.settings = settings or get_settings()
        self.session = session or requests.Session()
        self._access_token: str | None = None
        self._token_expires_at: datetime | None = None

    @property
    def simulated(self) -> bool:
        return (
            self.settings.paypal_simulate
            and self.settings.paypal_environment == "sandbox"
            and not self.settings.paypal_configured
        )

    # ------------------------------------------------------------------
    def convert_amount(self, amount: Decimal) -> Decimal:
        """Convert a wallet amount (marketplace currency) to the payout currency."""
        if self.settings.paypal_payout_currency == self.settings.currency:
            return Decimal(amount).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
        converted = Decimal(amount) / self.settings.paypal_usd_to_php
        return converted.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)

    def _request_kwargs(self) -> dict[str, Any]:
        if self.settings.paypal_timeout_seconds is None:
            return {}
        return {"timeout": self.settings.paypal_timeout_seconds}

    def _get_access_token(self) -> str:
        if self._access_token and self._token_expires_at and datetime.utcnow() < self._token_expires_at:
            return self._access_token

        if not self.settings.paypal_configured:
            raise PayPalPayoutError(
                classify_payout_error("authentication credentials missing"),
                raw="PayPal client credentials are not configured",
            )

        try:
            response = self.session.post(
                f"{self.settings.resolved_paypal_api_base}/v1/oauth2/token",
                auth=(self.settings.paypal_client_id, self.settings.paypal_client_secret),
                headers={"Accept": "application/json"},
                data={"grant_type": "client_credentials"},
                **self._request_kwargs(),
            )
        except requests.RequestException as exc:
            raise PayPalPayoutError(classify_payout_error(str(exc)), raw=str(exc)) from exc

        if not response.ok:
            raw = _describe(response)
            raise PayPalPayoutError(classify_payout_error(raw), raw=raw)

        payload = _json_body(response)
        if not payload.get("access_token"):
            raise PayPalPayoutError(
                classify_payout_error("authentication response without access token"), raw=str(payload)
            )
        self._access_token = payload["access_token"]
        expires_in = int(payload.get("expires_in", 3600)) - 60
        self._token_expires_at = datetime.utcnow() + timedelta(seconds=max(expires_in, 0))
        return self._access_token

    # ------------------------------------------------------------------
    def send_payout(self, amount: Decimal, recipient_email: str, reference: str) -> PayoutTransferResult:
        """Transfer ``amount`` to ``recipient_email``.

        The response must carry a batch identifier for the transfer to count as
        submitted. Any other outcome raises :class:`PayPalPayoutError` with a
        classified message.
        """
        converted = self.convert_amount(amount)
        currency = self.settings.paypal_payout_currency

        if self.simulated:
            batch_id = _simulated_batch_id()
            logger.info(
                "paypal_payout_simulated",
                reference=reference,
                amount=str(amount),
                converted=str(converted),
                batch_id=batch_id,
            )
            return PayoutTransferResult(
                batch_id=batch_id,
                status="SUCCESS",
                amount=Decimal(amount),
                amount_converted=converted,
                currency=currency,
                recipient=recipient_email,
                simulated=True,
            )

        token = self._get_access_token()
        body = {
            "sender_batch_header": {
                "sender_batch_id": reference,
                "email_subject": "You have a payout!",
                "email_message": "You have received a payout from your host wallet.",
            },
            "items": [
                {
                    "recipient_type": "EMAIL",
                    "amount": {"value": f"{converted:.2f}", "currency": currency},
                    "receiver": recipient_email,
                    "sender_item_id": reference,
                    "note": "Wallet withdrawal",
                }
            ],
        }
        try:
            response = self.session.post(
                f"{self.settings.resolved_paypal_api_base}/v1/payments/payouts",
                json=body,
                headers={
                    "Authorization": f"Bearer {token}",
                    "Content-Type": "application/json",
                },
                **self._request_kwargs(),
            )
        except requests.RequestException as exc:
            raise PayPalPayoutError(classify_payout_error(str(exc)), raw=str(exc)) from exc

        if not response.ok:
            raw = _describe(response)
            logger.warning("paypal_payout_rejected", reference=reference, status=response.status_code)
            raise PayPalPayoutError(classify_payout_error(raw), raw=raw)

        payload = _json_body(response)
        header = payload.get("batch_header") or {}
        batch_id = header.get("payout_batch_id")
        if not batch_id:
            raise PayPalPayoutError("PayPal did not return a payout batch identifier", raw=str(payload))

        logger.info("paypal_payout_submitted", reference=reference, batch_id=batch_id)
        return PayoutTransferResult(
            batch_id=batch_id,
            status=header.get("batch_status", "PENDING"),
            amount=Decimal(amount),
            amount_converted=converted,
            currency=currency,
            recipient=recipient_email,
        )

    def check_payout_status(self, batch_id: str) -> dict[str, Any]:
        if self.simulated:
            return {"status": "SUCCESS", "batch_id": batch_id, "simulated": True}

        token = self._get_access_token()
        try:
            response = self.session.get(
                f"{self.settings.resolved_paypal_api_base}/v1/payments/payouts/{batch_id}",
                headers={"Authorization": f"Bearer {token}"},
                **self._request_kwargs(),
            )
        except requests.RequestException as exc:
            raise PayPalPayoutError(classify_payout_error(str(exc)), raw=str(exc)) from exc
        if not response.ok:
            raw = _describe(response)
            raise PayPalPayoutError(classify_payout_error(raw), raw=raw)
        header = _json_body(response).get("batch_header") or {}
        return {"status": header.get("batch_status", "UNKNOWN"), "batch_id": batch_id, "simulated": False}


def _describe(response: requests.Response) -> str:
    return f"{response.status_code} {response.reason or ''}: {response.text}".strip()


def _json_body(response: requests.Response) -> dict[str, Any]:
    try:
        payload = response.json()
    except ValueError as exc:
        raise PayPalPayoutError("PayPal returned a malformed response", raw=_describe(response)) from exc
    if not isinstance(payload, dict):
        raise PayPalPayoutError("PayPal returned a malformed response", raw=str(payload))
    return payload


def _simulated_batch_id() -> str:
    alphabet = string.ascii_uppercase + string.digits
    suffix = "".join(secrets.choice(alphabet) for _ in range(9))
    return f"BATCH-{int(time.time() * 1000)}-{suffix}"


_client: PayPalPayoutClient | None = None


def get_payout_client() -> PayPalPayoutClient:
    global _client
    if _client is None:
        _client = PayPalPayoutClient()
    return _client


__all__ = [
    "PayPalPayoutClient",
    "PayPalPayoutError",
    "PayoutTransferResult",
    "classify_payout_error",
    "get_payout_client",
]
