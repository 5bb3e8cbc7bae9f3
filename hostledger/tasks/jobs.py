"""Registered background jobs."""
from __future__ import annotations

from typing import Any

from hostledger.core.logging import get_logger
from hostledger.tasks.queue import register_task

logger = get_logger(__name__)


@register_task("hostledger.expire_listings")
def expire_listings_job() -> int:
    from hostledger.core.database import session_scope
    from hostledger.services.listings import expire_listings

    with session_scope() as session:
        expired = expire_listings(session)
    logger.info("listings_expired", count=expired)
    return expired


@register_task("hostledger.send_email")
def send_email_job(message: dict[str, Any]) -> None:
    from hostledger.services import notifications

    notifications.send_email(message)


__all__ = ["expire_listings_job", "send_email_job"]
