"""Guest refund amounts under the listing cancellation policies."""
from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal

from hostledger.core.settings import get_settings

_CENT = Decimal("0.01")


@dataclass(frozen=True, slots=True)
class RefundBand:
    min_days: float
    fraction: Decimal
    description: str


@dataclass(frozen=True, slots=True)
class RefundQuote:
    original_amount: Decimal
    refund_percentage: Decimal
    refund_amount_before_deduction: Decimal
    admin_deduction: Decimal
    cancellation_fee: Decimal
    final_refund_amount: Decimal
    days_until_check_in: int
    cancellation_policy: str
    policy_description: str


# Bands are checked in order; the first whose ``min_days`` is met applies.
POLICIES: dict[str, tuple[RefundBand, ...]] = {
    "flexible": (
        RefundBand(1, Decimal("1"), "Full refund (cancelled 24+ hours before check-in)"),
        RefundBand(-math.inf, Decimal("0.5"), "50% refund (cancelled less than 24 hours before check-in)"),
    ),
    "moderate": (
        RefundBand(5, Decimal("1"), "Full refund (cancelled 5+ days before check-in)"),
        RefundBand(1, Decimal("0.5"), "50% refund (cancelled 1-4 days before check-in)"),
        RefundBand(-math.inf, Decimal("0"), "No refund (cancelled less than 24 hours before check-in)"),
    ),
    "strict": (
        RefundBand(14, Decimal("0.5"), "50% refund (cancelled 14+ days before check-in)"),
        RefundBand(7, Decimal("0.25"), "25% refund (cancelled 7-13 days before check-in)"),
        RefundBand(-math.inf, Decimal("0"), "No refund (cancelled less than 7 days before check-in)"),
    ),
}
DEFAULT_POLICY = "moderate"


def days_until(check_in: datetime, moment: datetime) -> int:
    return math.ceil((check_in - moment).total_seconds() / 86400)


def calculate_refund(
    original_amount: Decimal,
    check_in: datetime,
    cancellation_policy: str | None = None,
    cancelled_at: datetime | None = None,
    admin_deduction_rate: Decimal | None = None,
) -> RefundQuote:
    policy = cancellation_policy or DEFAULT_POLICY
    rate = get_settings().refund_admin_deduction if admin_deduction_rate is None else admin_deduction_rate
    days = days_until(check_in, cancelled_at or datetime.utcnow())

    bands = POLICIES.get(policy)
    known = bands is not None
    band = next(b for b in (bands or POLICIES[DEFAULT_POLICY]) if days >= b.min_days)

    amount = Decimal(original_amount)
    before_deduction = (amount * band.fraction).quantize(_CENT, rounding=ROUND_HALF_UP)
    deduction = (before_deduction * rate).quantize(_CENT, rounding=ROUND_HALF_UP)

    return RefundQuote(
        original_amount=amount,
        refund_percentage=band.fraction * 100,
        refund_amount_before_deduction=before_deduction,
        admin_deduction=deduction,
        cancellation_fee=amount - before_deduction,
        final_refund_amount=before_deduction - deduction,
        days_until_check_in=days,
        cancellation_policy=policy,
        policy_description=band.description if known else "Standard cancellation policy applies",
    )


__all__ = ["POLICIES", "RefundQuote", "calculate_refund", "days_until"]
