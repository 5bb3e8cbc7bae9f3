"""Host onboarding drafts, listing publication and listing expiry."""
from __future__ import annotations

import calendar
import math
import uuid
from datetime import datetime, timedelta
from decimal import Decimal, InvalidOperation
from typing import Any

from sqlalchemy.orm import Session

from hostledger.core import models
from hostledger.core.logging import get_logger
from hostledger.core.plans import (
    ListingQuota,
    SubscriptionPlan,
    can_create_listing,
    get_plan,
    limit_reached_actions,
)

logger = get_logger(__name__)

LISTING_CATEGORIES = ("home", "experience", "service")


class ListingNotFoundError(LookupError):
    pass


class DraftNotFoundError(LookupError):
    pass


class ListingLimitReachedError(Exception):
    """Raised when a host has no listing slots left on their plan."""

    def __init__(self, plan_id: str, quota: ListingQuota) -> None:
        super().__init__(f"Listing limit reached for the {plan_id} plan")
        self.plan_id = plan_id
        self.quota = quota
        self.actions = limit_reached_actions(plan_id)


def _add_months(moment: datetime, months: int) -> datetime:
    month_index = moment.month - 1 + months
    year = moment.year + month_index // 12
    month = month_index % 12 + 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def calculate_expiration(plan: SubscriptionPlan, start: datetime | None = None) -> datetime:
    """Return when a listing posted at ``start`` stops being visible."""
    start = start or datetime.utcnow()
    if plan.posting_duration_unit == "years":
        return _add_months(start, 12 * plan.posting_duration)
    if plan.posting_duration_unit == "months":
        return _add_months(start, plan.posting_duration)
    return start + timedelta(days=plan.posting_duration)


def is_expired(listing: models.Listing, now: datetime | None = None) -> bool:
    if listing.expires_at is None:
        return False
    return listing.expires_at <= (now or datetime.utcnow())


def days_until_expiration(listing: models.Listing, now: datetime | None = None) -> int | None:
    if listing.expires_at is None:
        return None
    remaining = (listing.expires_at - (now or datetime.utcnow())).total_seconds() / 86400
    return max(0, math.ceil(remaining))


# ----------------------------------------------------------------------
def host_plan(db: Session, host_id: uuid.UUID) -> tuple[SubscriptionPlan, int]:
    profile = db.get(models.HostProfile, host_id)
    if profile is None:
        return get_plan(None), 0
    return get_plan(profile.subscription_plan), profile.additional_slots or 0


def host_quota(db: Session, host_id: uuid.UUID) -> ListingQuota:
    plan, additional_slots = host_plan(db, host_id)
    active = (
        db.query(models.Listing)
        .filter(models.Listing.host_id == host_id)
        .filter(models.Listing.status == "active")
        .count()
    )
    return can_create_listing(plan.id, active, additional_slots)


def create_listing(
    db: Session,
    host_id: uuid.UUID,
    title: str,
    category: str = "home",
    price: Decimal = Decimal("0"),
    description: str | None = None,
    location: str | None = None,
    details: dict[str, Any] | None = None,
) -> models.Listing:
    if category not in LISTING_CATEGORIES:
        raise ValueError(f"Unknown listing category '{category}'")

    plan, _ = host_plan(db, host_id)
    quota = host_quota(db, host_id)
    if not quota.allowed:
        raise ListingLimitReachedError(plan.id, quota)

    now = datetime.utcnow()
    listing = models.Listing(
        host_id=host_id,
        category=category,
        title=title,
        description=description,
        location=location,
        price=price,
        details=details,
        status="active",
        published_at=now,
        expires_at=calculate_expiration(plan, now),
    )
    db.add(listing)
    db.flush()
    logger.info("listing_published", listing_id=str(listing.id), host_id=str(host_id), plan=plan.id)
    return listing


def renew_listing(db: Session, listing_id: uuid.UUID, host_id: uuid.UUID) -> models.Listing:
    listing = db.get(models.Listing, listing_id)
    if listing is None or listing.host_id != host_id:
        raise ListingNotFoundError("Listing not found")

    plan, _ = host_plan(db, host_id)
    now = datetime.utcnow()
    base = listing.expires_at if listing.expires_at and listing.expires_at > now else now
    listing.expires_at = calculate_expiration(plan, base)
    listing.status = "active"
    db.add(listing)
    db.flush()
    logger.info("listing_renewed", listing_id=str(listing.id), expires_at=listing.expires_at.isoformat())
    return listing


def expire_listings(db: Session, now: datetime | None = None) -> int:
    now = now or datetime.utcnow()
    listings = (
        db.query(models.Listing)
        .filter(models.Listing.status == "active")
        .filter(models.Listing.expires_at.isnot(None))
        .filter(models.Listing.expires_at <= now)
        .all()
    )
    for listing in listings:
        listing.status = "expired"
        db.add(listing)
    db.flush()
    return len(listings)


# ----------------------------------------------------------------------
def save_draft(
    db: Session,
    host_id: uuid.UUID,
    payload: dict[str, Any],
    current_step: str,
    category: str = "home",
    draft_id: int | None = None,
) -> models.Draft:
    """Create or update the onboarding draft, merging the step payload into it."""
    if draft_id is None:
        draft = models.Draft(host_id=host_id, category=category, current_step=current_step, payload={})
    else:
        draft = get_draft(db, host_id, draft_id)

    draft.payload = {**(draft.payload or {}), **payload}
    draft.current_step = current_step
    draft.category = category
    db.add(draft)
    db.flush()
    return draft


def get_draft(db: Session, host_id: uuid.UUID, draft_id: int) -> models.Draft:
    draft = db.get(models.Draft, draft_id)
    if draft is None or draft.host_id != host_id:
        raise DraftNotFoundError("Draft not found")
    return draft


def publish_draft(db: Session, host_id: uuid.UUID, draft_id: int) -> models.Listing:
    draft = get_draft(db, host_id, draft_id)
    data = dict(draft.payload or {})
    title = data.pop("title", None)
    if not title:
        raise ValueError("Draft is missing a title")

    raw_price = data.pop("price", "0")
    try:
        price = Decimal(str(raw_price))
    except InvalidOperation as exc:
        raise ValueError("Draft price is not a number") from exc
    if not price.is_finite():
        raise ValueError("Draft price is not a number")

    listing = create_listing(
        db,
        host_id,
        title=title,
        category=draft.category,
        price=price,
        description=data.pop("description", None),
        location=data.pop("location", None),
        details=data or None,
    )
    db.delete(draft)
    db.flush()
    return listing


__all__ = [
    "DraftNotFoundError",
    "LISTING_CATEGORIES",
    "ListingLimitReachedError",
    "ListingNotFoundError",
    "calculate_expiration",
    "create_listing",
    "days_until_expiration",
    "expire_listings",
    "get_draft",
    "host_plan",
    "host_quota",
    "is_expired",
    "publish_draft",
    "renew_listing",
    "save_draft",
]
