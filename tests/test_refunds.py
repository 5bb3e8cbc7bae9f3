from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from hostledger.services.refunds import calculate_refund

NOW = datetime(2025, 3, 1, 12, 0, 0)


def _quote(policy, days, amount="1000"):
    return calculate_refund(Decimal(amount), NOW + timedelta(days=days), policy, cancelled_at=NOW)


@pytest.mark.parametrize(
    "policy, days, percentage",
    [
        ("flexible", 3, 100),
        ("flexible", 0, 50),
        ("moderate", 5, 100),
        ("moderate", 2, 50),
        ("moderate", 0, 0),
        ("strict", 20, 50),
        ("strict", 10, 25),
        ("strict", 3, 0),
    ],
)
def test_refund_percentage_by_policy(policy, days, percentage):
    assert _quote(policy, days).refund_percentage == Decimal(percentage)


def test_admin_deduction_is_taken_from_refund():
    quote = _quote("moderate", 10)
    assert quote.refund_amount_before_deduction == Decimal("1000.00")
    assert quote.admin_deduction == Decimal("100.00")
    assert quote.final_refund_amount == Decimal("900.00")
    assert quote.cancellation_fee == Decimal("0.00")
    assert quote.days_until_check_in == 10


def test_partial_refund_amounts():
    quote = _quote("strict", 8, amount="2500")
    assert quote.refund_amount_before_deduction == Decimal("625.00")
    assert quote.admin_deduction == Decimal("62.50")
    assert quote.final_refund_amount == Decimal("562.50")
    assert quote.cancellation_fee == Decimal("1875.00")
    assert quote.policy_description.startswith("25% refund")


def test_unknown_policy_uses_moderate_bands():
    quote = _quote("super-flexible", 6)
    assert quote.refund_percentage == Decimal("100")
    assert quote.policy_description == "Standard cancellation policy applies"


def test_missing_policy_defaults_to_moderate():
    quote = calculate_refund(Decimal("100"), NOW + timedelta(days=2), None, cancelled_at=NOW)
    assert quote.cancellation_policy == "moderate"
    assert quote.refund_percentage == Decimal("50")


def test_partial_days_round_up():
    assert _quote("flexible", 0.5).days_until_check_in == 1
    assert _quote("flexible", 0.5).refund_percentage == Decimal("100")
