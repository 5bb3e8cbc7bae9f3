"""Platform service fee configuration."""
from __future__ import annotations

import uuid
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy.orm import Session

from hostledger.core import models
from hostledger.core.logging import get_logger
from hostledger.core.settings import get_settings

logger = get_logger(__name__)

SERVICE_FEE_KEY = "service_fee"


def get_service_fee_percentage(db: Session) -> Decimal:
    setting = db.get(models.PlatformSetting, SERVICE_FEE_KEY)
    if setting and setting.value.get("percentage") is not None:
        return Decimal(str(setting.value["percentage"]))
    return get_settings().default_service_fee


def update_service_fee_percentage(
    db: Session, percentage: Decimal, updated_by: uuid.UUID | None = None
) -> models.PlatformSetting:
    value = Decimal(str(percentage))
    if value < 0 or value > 1:
        raise ValueError("Service fee must be between 0% and 100%")

    setting = db.get(models.PlatformSetting, SERVICE_FEE_KEY)
    previous = None
    if setting is None:
        setting = models.PlatformSetting(key=SERVICE_FEE_KEY, value={})
    else:
        previous = setting.value.get("percentage")

    history = list(setting.value.get("history", []))
    if previous is not None:
        history.append({"percentage": previous, "replaced_at": datetime.utcnow().isoformat()})
    setting.value = {"percentage": str(value), "history": history}
    setting.updated_by = updated_by
    db.add(setting)
    db.flush()
    logger.info("service_fee_updated", percentage=str(value), previous=previous)
    return setting


def service_fee_history(db: Session) -> list[dict[str, str]]:
    setting = db.get(models.PlatformSetting, SERVICE_FEE_KEY)
    return list(setting.value.get("history", [])) if setting else []


def calculate_service_fee(total_amount: Decimal, percentage: Decimal) -> Decimal:
    return (Decimal(total_amount) * percentage).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


__all__ = [
    "calculate_service_fee",
    "get_service_fee_percentage",
    "service_fee_history",
    "update_service_fee_percentage",
]
