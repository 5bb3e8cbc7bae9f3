"""Subscription plan catalog, listing quotas and slot pricing."""
from __future__ import annotations

from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Literal, Mapping

from .logging import get_logger

logger = get_logger(__name__)

PlanId = Literal["starter", "pro", "elite"]
DurationUnit = Literal["days", "months", "years"]

UNLIMITED = -1
DEFAULT_PLAN_ID: PlanId = "starter"


@dataclass(frozen=True, slots=True)
class SubscriptionPlan:
    id: str
    name: str
    price: Decimal
    listing_limit: int
    posting_duration: int = 1
    posting_duration_unit: DurationUnit = "years"
    features: tuple[str, ...] = field(default_factory=tuple)
    tier: int = 0

    @property
    def is_unlimited(self) -> bool:
        return self.listing_limit == UNLIMITED


@dataclass(frozen=True, slots=True)
class ListingQuota:
    allowed: bool
    remaining: int
    limit: int


@dataclass(frozen=True, slots=True)
class BulkSlotQuote:
    quantity: int
    price: Decimal
    per_slot: Decimal
    savings: Decimal
    is_bulk: bool
    tier: int
    regular_price: Decimal


SUBSCRIPTION_PLANS: dict[str, SubscriptionPlan] = {
    "starter": SubscriptionPlan(
        id="starter",
        name="Starter",
        price=Decimal("399"),
        listing_limit=3,
        features=(
            "3 Listings Maximum",
            "1 Year Listing Duration",
            "Basic Performance Analytics",
            "Standard Customer Support",
        ),
        tier=0,
    ),
    "pro": SubscriptionPlan(
        id="pro",
        name="Pro",
        price=Decimal("799"),
        listing_limit=10,
        features=(
            "10 Listings Maximum",
            "1 Year Listing Duration",
            "Advanced Performance Analytics",
            "Priority Customer Support",
            "Featured Listing Badge",
        ),
        tier=1,
    ),
    "elite": SubscriptionPlan(
        id="elite",
        name="Elite",
        price=Decimal("1299"),
        listing_limit=15,
        features=(
            "15 Listings Maximum",
            "1 Year Listing Duration",
            "Premium Analytics Dashboard",
            "24/7 Priority Support",
            "Advanced Marketing Tools",
        ),
        tier=2,
    ),
}

# One-time purchase, valid for the posting duration of the host's plan.
ADDITIONAL_SLOT_PRICE = Decimal("199")

# Discounted bundle prices keyed by bundle size. Only offered to existing hosts.
BULK_SLOT_PRICING: dict[int, Decimal] = {
    1: Decimal("199"),
    3: Decimal("529"),
    5: Decimal("849"),
    10: Decimal("1699"),
}


def find_plan(
    plan_id: str | None, catalog: Mapping[str, SubscriptionPlan] = SUBSCRIPTION_PLANS
) -> SubscriptionPlan | None:
    """Return the plan for ``plan_id`` or ``None`` when it is not in the catalog."""
    if not plan_id:
        return None
    return catalog.get(plan_id.lower())


def get_plan(
    plan_id: str | None,
    default: str = DEFAULT_PLAN_ID,
    catalog: Mapping[str, SubscriptionPlan] = SUBSCRIPTION_PLANS,
) -> SubscriptionPlan:
    """Return plan details, falling back to ``default`` for unknown identifiers."""
    plan = find_plan(plan_id, catalog)
    if plan is not None:
        return plan
    if plan_id:
        logger.warning("unknown_plan_fallback", plan_id=plan_id, fallback=default)
    return catalog[default]


def listing_limit(
    plan_id: str | None, catalog: Mapping[str, SubscriptionPlan] = SUBSCRIPTION_PLANS
) -> int:
    return get_plan(plan_id, catalog=catalog).listing_limit


def can_create_listing(
    plan_id: str | None,
    current_count: int,
    additional_slots: int = 0,
    catalog: Mapping[str, SubscriptionPlan] = SUBSCRIPTION_PLANS,
) -> ListingQuota:
    """Decide whether a host may publish one more listing.

    Unlimited plans always answer ``allowed=True`` with ``remaining=-1``. Otherwise the
    remaining quota is the plan limit plus purchased slots minus listings already
    published, clamped at zero.
    """
    limit = listing_limit(plan_id, catalog)
    if limit == UNLIMITED:
        return ListingQuota(allowed=True, remaining=UNLIMITED, limit=UNLIMITED)

    total_slots = limit + additional_slots
    remaining = max(0, total_slots - current_count)
    return ListingQuota(allowed=remaining > 0, remaining=remaining, limit=total_slots)


def _money(value: Decimal) -> Decimal:
    return value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def bulk_slot_price(quantity: int, is_existing_host: bool = False) -> BulkSlotQuote:
    """Price ``quantity`` additional listing slots.

    Existing hosts get the largest bundle that fits, repeated as many times as it fits,
    with the remainder billed at the single-slot rate. New hosts always pay the
    single-slot rate.
    """
    if quantity < 1:
        raise ValueError("Quantity must be at least 1")

    unit_price = BULK_SLOT_PRICING[1] if is_existing_host else ADDITIONAL_SLOT_PRICE
    regular_price = unit_price * quantity

    if not is_existing_host:
        return BulkSlotQuote(
            quantity=quantity,
            price=regular_price,
            per_slot=unit_price,
            savings=Decimal("0"),
            is_bulk=False,
            tier=1,
            regular_price=regular_price,
        )

    tier = max(size for size in BULK_SLOT_PRICING if size <= quantity)
    full_bundles, remainder = divmod(quantity, tier)
    price = BULK_SLOT_PRICING[tier] * full_bundles + unit_price * remainder

    return BulkSlotQuote(
        quantity=quantity,
        price=price,
        per_slot=_money(price / quantity),
        savings=regular_price - price,
        is_bulk=tier > 1,
        tier=tier,
        regular_price=regular_price,
    )


def upgrade_options(
    current_plan_id: str | None, catalog: Mapping[str, SubscriptionPlan] = SUBSCRIPTION_PLANS
) -> list[SubscriptionPlan]:
    current = get_plan(current_plan_id, catalog=catalog)
    return sorted(
        (plan for plan in catalog.values() if plan.tier > current.tier),
        key=lambda plan: plan.tier,
    )


def upgrade_cost(
    from_plan_id: str | None,
    to_plan_id: str | None,
    catalog: Mapping[str, SubscriptionPlan] = SUBSCRIPTION_PLANS,
) -> Decimal:
    current = get_plan(from_plan_id, catalog=catalog)
    target = get_plan(to_plan_id, catalog=catalog)
    return max(Decimal("0"), target.price - current.price)


def limit_reached_actions(
    current_plan_id: str | None, catalog: Mapping[str, SubscriptionPlan] = SUBSCRIPTION_PLANS
) -> list[dict[str, Any]]:
    """Return the choices offered to a host who has used up their quota."""
    current_limit = listing_limit(current_plan_id, catalog)
    actions: list[dict[str, Any]] = []

    options = upgrade_options(current_plan_id, catalog)
    if options:
        actions.append(
            {
                "type": "upgrade",
                "title": "Upgrade Subscription",
                "description": "Get more listings with a higher-tier plan",
                "options": [
                    {
                        "plan_id": plan.id,
                        "name": plan.name,
                        "listing_limit": "Unlimited" if plan.is_unlimited else plan.listing_limit,
                        "price": plan.price,
                        "additional_listings": plan.listing_limit - current_limit,
                    }
                    for plan in options
                ],
            }
        )

    actions.append(
        {
            "type": "add_slots",
            "title": "Purchase Additional Listing Slots",
            "description": "Add more listings without upgrading your plan",
            "options": [
                {
                    "type": "oneTime",
                    "name": "One-Time Purchase",
                    "price": ADDITIONAL_SLOT_PRICE,
                    "description": "Pay once, valid for 1 year",
                }
            ],
        }
    )
    actions.append(
        {
            "type": "renew",
            "title": "Renew Subscription",
            "description": "Extend your current subscription duration",
            "options": [],
        }
    )
    return actions


__all__ = [
    "ADDITIONAL_SLOT_PRICE",
    "BULK_SLOT_PRICING",
    "DEFAULT_PLAN_ID",
    "SUBSCRIPTION_PLANS",
    "UNLIMITED",
    "BulkSlotQuote",
    "ListingQuota",
    "SubscriptionPlan",
    "bulk_slot_price",
    "can_create_listing",
    "find_plan",
    "get_plan",
    "limit_reached_actions",
    "listing_limit",
    "upgrade_cost",
    "upgrade_options",
]
