"""Host subscription plans, upgrades and additional listing slots."""
from __future__ import annotations

from decimal import Decimal

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from hostledger.api import schemas
from hostledger.api.dependencies.auth import get_current_user
from hostledger.api.dependencies.database import get_db
from hostledger.core import models
from hostledger.core.plans import (
    SUBSCRIPTION_PLANS,
    BulkSlotQuote,
    SubscriptionPlan,
    get_plan,
    limit_reached_actions,
)
from hostledger.services import subscriptions
from hostledger.services.listings import host_quota

router = APIRouter(prefix="/api/v1/subscriptions", tags=["subscriptions"])


def _plan(plan: SubscriptionPlan) -> schemas.PlanResponse:
    return schemas.PlanResponse(
        id=plan.id,
        name=plan.name,
        price=plan.price,
        listing_limit=plan.listing_limit,
        posting_duration=plan.posting_duration,
        posting_duration_unit=plan.posting_duration_unit,
        features=list(plan.features),
    )


def _quote(quote: BulkSlotQuote) -> schemas.SlotQuoteResponse:
    return schemas.SlotQuoteResponse(
        quantity=quote.quantity,
        price=quote.price,
        per_slot=quote.per_slot,
        savings=quote.savings,
        is_bulk=quote.is_bulk,
        tier=quote.tier,
        regular_price=quote.regular_price,
    )


def _subscription(
    db: Session, profile: models.HostProfile, amount_due: Decimal | None = None
) -> schemas.SubscriptionResponse:
    quota = host_quota(db, profile.user_id)
    return schemas.SubscriptionResponse(
        plan=_plan(get_plan(profile.subscription_plan)),
        subscription_status=profile.subscription_status,
        additional_slots=profile.additional_slots or 0,
        started_at=profile.subscription_started_at,
        expires_at=profile.subscription_expires_at,
        quota=schemas.QuotaResponse(allowed=quota.allowed, remaining=quota.remaining, limit=quota.limit),
        amount_due=amount_due,
    )


@router.get("/plans", response_model=list[schemas.PlanResponse])
def list_plans() -> list[schemas.PlanResponse]:
    return [_plan(plan) for plan in sorted(SUBSCRIPTION_PLANS.values(), key=lambda p: p.tier)]


@router.get("/me", response_model=schemas.SubscriptionResponse)
def my_subscription(
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> schemas.SubscriptionResponse:
    profile = subscriptions.get_profile(db, current_user.id)
    if profile is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No active subscription")
    return _subscription(db, profile)


@router.get("/me/limit-actions")
def my_limit_actions(
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> list[dict]:
    profile = subscriptions.get_profile(db, current_user.id)
    return limit_reached_actions(profile.subscription_plan if profile else None)


@router.post("", response_model=schemas.SubscriptionResponse, status_code=status.HTTP_201_CREATED)
def subscribe(
    payload: schemas.SubscribeRequest,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> schemas.SubscriptionResponse:
    try:
        profile = subscriptions.subscribe(
            db, current_user.id, payload.plan_id, paypal_subscription_id=payload.paypal_subscription_id
        )
    except subscriptions.UnknownPlanError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    db.commit()
    return _subscription(db, profile)


@router.post("/upgrade", response_model=schemas.SubscriptionResponse)
def upgrade(
    payload: schemas.UpgradeRequest,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> schemas.SubscriptionResponse:
    try:
        result = subscriptions.upgrade(db, current_user.id, payload.plan_id)
    except subscriptions.SubscriptionError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    except subscriptions.UnknownPlanError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    db.commit()
    return _subscription(db, result.profile, amount_due=result.amount_due)


@router.post("/slots/quote", response_model=schemas.SlotQuoteResponse)
def quote_slots(
    payload: schemas.SlotQuoteRequest,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> schemas.SlotQuoteResponse:
    return _quote(subscriptions.quote_slots(db, current_user.id, payload.quantity))


@router.post("/slots", response_model=schemas.SlotQuoteResponse, status_code=status.HTTP_201_CREATED)
def purchase_slots(
    payload: schemas.SlotQuoteRequest,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> schemas.SlotQuoteResponse:
    try:
        quote = subscriptions.purchase_slots(db, current_user.id, payload.quantity)
    except subscriptions.SubscriptionError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    db.commit()
    return _quote(quote)
