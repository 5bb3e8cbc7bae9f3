"""Payout ledger dependency, overridable in tests with a fake transfer client."""
from __future__ import annotations

from hostledger.services.payouts import PayoutLedger


def get_payout_ledger() -> PayoutLedger:
    return PayoutLedger()


__all__ = ["get_payout_ledger"]
