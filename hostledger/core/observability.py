"""Metrics and error reporting for the payout console."""
from __future__ import annotations

import sentry_sdk
from fastapi import FastAPI
from prometheus_client import Counter
from prometheus_fastapi_instrumentator import Instrumentator

from hostledger.core.logging import get_logger
from hostledger.core.settings import get_settings

logger = get_logger(__name__)

PAYOUTS_RELEASED = Counter(
    "hostledger_payouts_released_total",
    "Payouts moved to RELEASED by an administrator",
    ["wallet_credited"],
)
WITHDRAWALS_PROCESSED = Counter(
    "hostledger_withdrawals_processed_total",
    "Wallet cash-out requests sent to the payout provider",
    ["outcome"],
)


def configure_observability(app: FastAPI) -> None:
    settings = get_settings()

    if settings.enable_prometheus:
        Instrumentator().instrument(app, metric_namespace=settings.metrics_namespace).expose(
            app, include_in_schema=False
        )

    if settings.sentry_dsn:
        sentry_sdk.init(
            dsn=settings.sentry_dsn,
            traces_sample_rate=0.2,
            environment=settings.environment,
        )
        logger.info("sentry_initialised", environment=settings.environment)


__all__ = ["PAYOUTS_RELEASED", "WITHDRAWALS_PROCESSED", "configure_observability"]
