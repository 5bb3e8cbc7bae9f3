"""Host subscription records: plan changes and purchased listing slots."""
from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from sqlalchemy.orm import Session

from hostledger.core import models
from hostledger.core.logging import get_logger
from hostledger.core.plans import (
    BulkSlotQuote,
    SubscriptionPlan,
    bulk_slot_price,
    find_plan,
    upgrade_cost,
)
from hostledger.services.listings import calculate_expiration

logger = get_logger(__name__)


class UnknownPlanError(ValueError):
    pass


class SubscriptionError(ValueError):
    pass


@dataclass(slots=True)
class UpgradeResult:
    profile: models.HostProfile
    previous_plan: str
    amount_due: Decimal


def _require_plan(plan_id: str) -> SubscriptionPlan:
    plan = find_plan(plan_id)
    if plan is None:
        raise UnknownPlanError(f"Unknown subscription plan '{plan_id}'")
    return plan


def get_profile(db: Session, user_id: uuid.UUID) -> models.HostProfile | None:
    return db.get(models.HostProfile, user_id)


def has_active_subscription(profile: models.HostProfile | None, now: datetime | None = None) -> bool:
    if profile is None or profile.subscription_status != "active":
        return False
    if profile.subscription_expires_at is None:
        return True
    return profile.subscription_expires_at > (now or datetime.utcnow())


def subscribe(
    db: Session,
    user_id: uuid.UUID,
    plan_id: str,
    paypal_subscription_id: str | None = None,
) -> models.HostProfile:
    """Start (or restart) a host subscription on ``plan_id``."""
    plan = _require_plan(plan_id)
    now = datetime.utcnow()

    profile = get_profile(db, user_id)
    if profile is None:
        profile = models.HostProfile(user_id=user_id, additional_slots=0)

    profile.subscription_plan = plan.id
    profile.subscription_status = "active"
    profile.subscription_started_at = now
    profile.subscription_expires_at = calculate_expiration(plan, now)
    if paypal_subscription_id:
        profile.paypal_subscription_id = paypal_subscription_id

    user = db.get(models.User, user_id)
    if user is not None and user.role == "guest":
        user.role = "host"
        db.add(user)

    db.add(profile)
    db.flush()
    logger.info("host_subscribed", user_id=str(user_id), plan=plan.id)
    return profile


def upgrade(db: Session, user_id: uuid.UUID, plan_id: str) -> UpgradeResult:
    target = _require_plan(plan_id)
    profile = get_profile(db, user_id)
    if profile is None:
        raise SubscriptionError("Host has no subscription to upgrade")

    current = find_plan(profile.subscription_plan)
    if current is not None and target.tier <= current.tier:
        raise SubscriptionError(f"{target.name} is not an upgrade from {current.name}")

    previous = profile.subscription_plan
    amount_due = upgrade_cost(previous, target.id)
    profile.subscription_plan = target.id
    db.add(profile)
    db.flush()
    logger.info("host_plan_upgraded", user_id=str(user_id), previous=previous, plan=target.id)
    return UpgradeResult(profile=profile, previous_plan=previous, amount_due=amount_due)


def quote_slots(db: Session, user_id: uuid.UUID, quantity: int) -> BulkSlotQuote:
    return bulk_slot_price(quantity, is_existing_host=has_active_subscription(get_profile(db, user_id)))


def purchase_slots(db: Session, user_id: uuid.UUID, quantity: int) -> BulkSlotQuote:
    profile = get_profile(db, user_id)
    if profile is None:
        raise SubscriptionError("Subscribe to a plan before purchasing listing slots")

    quote = quote_slots(db, user_id, quantity)
    profile.additional_slots = (profile.additional_slots or 0) + quantity
    db.add(profile)
    db.flush()
    logger.info(
        "listing_slots_purchased",
        user_id=str(user_id),
        quantity=quantity,
        price=str(quote.price),
        tier=quote.tier,
    )
    return quote


__all__ = [
    "SubscriptionError",
    "UnknownPlanError",
    "UpgradeResult",
    "get_profile",
    "has_active_subscription",
    "purchase_slots",
    "quote_slots",
    "subscribe",
    "upgrade",
]
