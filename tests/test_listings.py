"""Listing quota enforcement, expiry, renewal, drafts and host subscriptions."""

from __future__ import annotations

from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from hostledger.core import models
from hostledger.core.plans import SubscriptionPlan
from hostledger.services import listings, subscriptions


def _host(make_user, db, plan="starter", slots=0):
    host = make_user("Host", role="host")
    subscriptions.subscribe(db, host.id, plan)
    if slots:
        subscriptions.purchase_slots(db, host.id, slots)
    db.commit()
    return host


def test_starter_host_is_blocked_after_three_listings(db, make_user):
    host = _host(make_user, db)
    for n in range(3):
        listings.create_listing(db, host.id, title=f"Cabin {n}")

    with pytest.raises(listings.ListingLimitReachedError) as excinfo:
        listings.create_listing(db, host.id, title="Cabin 4")

    assert excinfo.value.quota.remaining == 0
    assert [action["type"] for action in excinfo.value.actions] == ["upgrade", "add_slots", "renew"]


def test_purchased_slots_allow_more_listings(db, make_user):
    host = _host(make_user, db, slots=1)
    for n in range(4):
        listings.create_listing(db, host.id, title=f"Loft {n}")
    assert listings.host_quota(db, host.id).remaining == 0


def test_expired_listings_free_quota(db, make_user):
    host = _host(make_user, db)
    created = [listings.create_listing(db, host.id, title=f"Villa {n}") for n in range(3)]
    created[0].expires_at = datetime.utcnow() - timedelta(days=1)
    db.flush()

    assert listings.expire_listings(db) == 1
    assert created[0].status == "expired"
    assert listings.host_quota(db, host.id).remaining == 1


def test_listing_expires_after_plan_posting_duration(db, make_user):
    host = _host(make_user, db)
    listing = listings.create_listing(db, host.id, title="Condo")
    assert listing.expires_at.year == listing.published_at.year + 1
    assert listings.days_until_expiration(listing) in (365, 366)
    assert listings.is_expired(listing) is False


def test_calculate_expiration_units():
    start = datetime(2024, 1, 31, 9, 0)
    monthly = SubscriptionPlan(id="m", name="M", price=Decimal("0"), listing_limit=1, posting_duration=1, posting_duration_unit="months")
    daily = SubscriptionPlan(id="d", name="D", price=Decimal("0"), listing_limit=1, posting_duration=30, posting_duration_unit="days")
    yearly = SubscriptionPlan(id="y", name="Y", price=Decimal("0"), listing_limit=1)

    assert listings.calculate_expiration(monthly, start) == datetime(2024, 2, 29, 9, 0)
    assert listings.calculate_expiration(daily, start) == datetime(2024, 3, 1, 9, 0)
    assert listings.calculate_expiration(yearly, datetime(2024, 2, 29)) == datetime(2025, 2, 28)


def test_renew_extends_from_current_expiry(db, make_user):
    host = _host(make_user, db)
    listing = listings.create_listing(db, host.id, title="Chalet")
    original_expiry = listing.expires_at

    renewed = listings.renew_listing(db, listing.id, host.id)
    assert renewed.expires_at.year == original_expiry.year + 1


def test_renew_expired_listing_starts_from_now(db, make_user):
    host = _host(make_user, db)
    listing = listings.create_listing(db, host.id, title="Hut")
    listing.expires_at = datetime.utcnow() - timedelta(days=30)
    listing.status = "expired"
    db.flush()

    renewed = listings.renew_listing(db, listing.id, host.id)
    assert renewed.status == "active"
    assert renewed.expires_at > datetime.utcnow() + timedelta(days=360)


def test_renew_rejects_other_hosts(db, make_user):
    owner = _host(make_user, db)
    other = _host(make_user, db)
    listing = listings.create_listing(db, owner.id, title="Barn")
    with pytest.raises(listings.ListingNotFoundError):
        listings.renew_listing(db, listing.id, other.id)


def test_draft_steps_merge_and_publish(db, make_user):
    host = _host(make_user, db)
    draft = listings.save_draft(db, host.id, {"title": "Treehouse"}, "title")
    listings.save_draft(db, host.id, {"price": "2500", "location": "Baguio"}, "pricing", draft_id=draft.id)

    fetched = listings.get_draft(db, host.id, draft.id)
    assert fetched.current_step == "pricing"
    assert fetched.payload == {"title": "Treehouse", "price": "2500", "location": "Baguio"}

    listing = listings.publish_draft(db, host.id, draft.id)
    assert listing.title == "Treehouse"
    assert listing.price == Decimal("2500")
    assert listing.location == "Baguio"
    assert db.get(models.Draft, draft.id) is None


@pytest.mark.parametrize("price", ["abc", None, {"amount": 10}, "NaN"])
def test_publish_draft_rejects_non_numeric_price(db, make_user, price):
    host = _host(make_user, db)
    draft = listings.save_draft(db, host.id, {"title": "Loft", "price": price}, "pricing")

    with pytest.raises(ValueError, match="Draft price is not a number"):
        listings.publish_draft(db, host.id, draft.id)
    assert db.get(models.Draft, draft.id) is not None


def test_publish_draft_enforces_quota(db, make_user):
    host = _host(make_user, db)
    for n in range(3):
        listings.create_listing(db, host.id, title=f"Room {n}")
    draft = listings.save_draft(db, host.id, {"title": "One too many"}, "title")

    with pytest.raises(listings.ListingLimitReachedError):
        listings.publish_draft(db, host.id, draft.id)


def test_drafts_are_private_to_their_host(db, make_user):
    owner = _host(make_user, db)
    other = _host(make_user, db)
    draft = listings.save_draft(db, owner.id, {"title": "Secret"}, "title")
    with pytest.raises(listings.DraftNotFoundError):
        listings.get_draft(db, other.id, draft.id)


def test_subscribe_promotes_guest_to_host(db, make_user):
    user = make_user("New Host")
    profile = subscriptions.subscribe(db, user.id, "pro")
    assert profile.subscription_plan == "pro"
    assert profile.subscription_expires_at > profile.subscription_started_at
    assert user.role == "host"


def test_subscribe_to_unknown_plan(db, make_user):
    user = make_user("New Host")
    with pytest.raises(subscriptions.UnknownPlanError):
        subscriptions.subscribe(db, user.id, "platinum")


def test_upgrade_charges_price_difference(db, make_user):
    host = _host(make_user, db)
    result = subscriptions.upgrade(db, host.id, "elite")
    assert result.amount_due == Decimal("900")
    assert result.previous_plan == "starter"
    assert listings.host_quota(db, host.id).limit == 15


def test_downgrade_is_not_an_upgrade(db, make_user):
    host = _host(make_user, db, plan="elite")
    with pytest.raises(subscriptions.SubscriptionError):
        subscriptions.upgrade(db, host.id, "pro")


def test_existing_hosts_get_bulk_slot_pricing(db, make_user):
    host = _host(make_user, db)
    quote = subscriptions.purchase_slots(db, host.id, 3)
    assert quote.price == Decimal("529")
    assert subscriptions.get_profile(db, host.id).additional_slots == 3


def test_slot_purchase_requires_subscription(db, make_user):
    user = make_user("Guest")
    with pytest.raises(subscriptions.SubscriptionError):
        subscriptions.purchase_slots(db, user.id, 1)
    assert subscriptions.quote_slots(db, user.id, 3).price == Decimal("597")
