"""Listing publication, renewal and onboarding drafts."""
from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse
from fastapi.encoders import jsonable_encoder
from sqlalchemy.orm import Session

from hostledger.api import schemas
from hostledger.api.dependencies.auth import get_current_user
from hostledger.api.dependencies.database import get_db
from hostledger.core import models
from hostledger.services import listings

router = APIRouter(prefix="/api/v1/listings", tags=["listings"])
drafts_router = APIRouter(prefix="/api/v1/drafts", tags=["drafts"])


def _listing(listing: models.Listing) -> schemas.ListingResponse:
    return schemas.ListingResponse(
        id=listing.id,
        host_id=listing.host_id,
        category=listing.category,
        title=listing.title,
        description=listing.description,
        location=listing.location,
        price=listing.price,
        status=listing.status,
        bookings_count=listing.bookings_count or 0,
        published_at=listing.published_at,
        expires_at=listing.expires_at,
        days_until_expiration=listings.days_until_expiration(listing),
    )


def _draft(draft: models.Draft) -> schemas.DraftResponse:
    return schemas.DraftResponse(
        id=draft.id,
        category=draft.category,
        current_step=draft.current_step,
        payload=draft.payload or {},
        updated_at=draft.updated_at,
    )


def _limit_reached(exc: listings.ListingLimitReachedError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_402_PAYMENT_REQUIRED,
        content=jsonable_encoder(
            {
                "detail": str(exc),
                "plan_id": exc.plan_id,
                "limit": exc.quota.limit,
                "actions": exc.actions,
            }
        ),
    )


@router.get("", response_model=list[schemas.ListingResponse])
def my_listings(
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> list[schemas.ListingResponse]:
    rows = (
        db.query(models.Listing)
        .filter(models.Listing.host_id == current_user.id)
        .order_by(models.Listing.created_at.desc())
        .all()
    )
    return [_listing(listing) for listing in rows]


@router.post("", response_model=schemas.ListingResponse, status_code=status.HTTP_201_CREATED)
def create_listing(
    payload: schemas.ListingCreate,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        listing = listings.create_listing(
            db,
            current_user.id,
            title=payload.title,
            category=payload.category,
            price=payload.price,
            description=payload.description,
            location=payload.location,
            details=payload.details,
        )
    except listings.ListingLimitReachedError as exc:
        db.rollback()
        return _limit_reached(exc)
    db.commit()
    return _listing(listing)


@router.get("/{listing_id}", response_model=schemas.ListingResponse)
def get_listing(listing_id: uuid.UUID, db: Session = Depends(get_db)) -> schemas.ListingResponse:
    listing = db.get(models.Listing, listing_id)
    if listing is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Listing not found")
    return _listing(listing)


@router.post("/{listing_id}/renew", response_model=schemas.ListingResponse)
def renew_listing(
    listing_id: uuid.UUID,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> schemas.ListingResponse:
    try:
        listing = listings.renew_listing(db, listing_id, current_user.id)
    except listings.ListingNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    db.commit()
    return _listing(listing)


# ----------------------------------------------------------------------
@drafts_router.post("", response_model=schemas.DraftResponse, status_code=status.HTTP_201_CREATED)
def create_draft(
    payload: schemas.DraftSaveRequest,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> schemas.DraftResponse:
    draft = listings.save_draft(
        db, current_user.id, payload.payload, payload.current_step, category=payload.category
    )
    db.commit()
    return _draft(draft)


@drafts_router.put("/{draft_id}", response_model=schemas.DraftResponse)
def update_draft(
    draft_id: int,
    payload: schemas.DraftSaveRequest,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> schemas.DraftResponse:
    try:
        draft = listings.save_draft(
            db,
            current_user.id,
            payload.payload,
            payload.current_step,
            category=payload.category,
            draft_id=draft_id,
        )
    except listings.DraftNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    db.commit()
    return _draft(draft)


@drafts_router.get("/{draft_id}", response_model=schemas.DraftResponse)
def get_draft(
    draft_id: int,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> schemas.DraftResponse:
    try:
        return _draft(listings.get_draft(db, current_user.id, draft_id))
    except listings.DraftNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc


@drafts_router.post(
    "/{draft_id}/publish", response_model=schemas.ListingResponse, status_code=status.HTTP_201_CREATED
)
def publish_draft(
    draft_id: int,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        listing = listings.publish_draft(db, current_user.id, draft_id)
    except listings.DraftNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except listings.ListingLimitReachedError as exc:
        db.rollback()
        return _limit_reached(exc)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    db.commit()
    return _listing(listing)
