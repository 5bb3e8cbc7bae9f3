"""Authentication API routes."""
from __future__ import annotations

import uuid
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.orm import Session

from hostledger.api import schemas
from hostledger.api.dependencies.auth import get_current_user
from hostledger.api.dependencies.database import get_db
from hostledger.core import models
from hostledger.core.security import (
    create_access_token,
    create_refresh_token,
    decode_token,
    hash_password,
    verify_password,
)
from hostledger.core.settings import get_settings
from hostledger.services import wallets

router = APIRouter(prefix="/api/v1/auth", tags=["auth"])


def _profile(user: models.User) -> schemas.UserProfile:
    return schemas.UserProfile(
        id=user.id,
        email=user.email,
        display_name=user.display_name,
        role=user.role,
        paypal_email=user.paypal_email,
        is_admin=user.is_admin,
        created_at=user.created_at,
    )


def _issue_tokens(user: models.User) -> schemas.TokenResponse:
    claims = {"sub": str(user.id), "role": user.role}
    return schemas.TokenResponse(
        access_token=create_access_token(claims),
        refresh_token=create_refresh_token(claims),
        expires_in=get_settings().access_token_expire_minutes * 60,
    )


@router.post("/register", response_model=schemas.UserProfile, status_code=status.HTTP_201_CREATED)
def register_user(payload: schemas.RegisterRequest, db: Session = Depends(get_db)) -> schemas.UserProfile:
    if db.query(models.User).filter(models.User.email == payload.email.lower()).first():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Email already registered")

    user = models.User(
        email=payload.email.lower(),
        password_hash=hash_password(payload.password),
        display_name=payload.display_name,
        paypal_email=payload.paypal_email,
    )
    db.add(user)
    db.flush()
    wallets.get_or_create_wallet(db, user.id)
    db.commit()
    db.refresh(user)
    return _profile(user)


@router.post("/login", response_model=schemas.TokenResponse)
def login(form_data: OAuth2PasswordRequestForm = Depends(), db: Session = Depends(get_db)) -> schemas.TokenResponse:
    user = db.query(models.User).filter(models.User.email == form_data.username.lower()).first()
    if not user or not verify_password(form_data.password, user.password_hash):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")

    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account disabled")

    user.last_login_at = datetime.utcnow()
    db.add(user)
    db.commit()
    return _issue_tokens(user)


@router.post("/token/refresh", response_model=schemas.TokenResponse)
def refresh_token(payload: schemas.RefreshRequest, db: Session = Depends(get_db)) -> schemas.TokenResponse:
    try:
        decoded = decode_token(payload.refresh_token)
    except Exception:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid refresh token") from None

    if decoded.get("type") != "refresh":
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token type")

    user = db.query(models.User).filter(models.User.id == _parse_subject(decoded)).first()
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return _issue_tokens(user)


def _parse_subject(decoded: dict) -> uuid.UUID:
    try:
        return uuid.UUID(decoded.get("sub", ""))
    except ValueError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing subject") from None


@router.get("/me", response_model=schemas.UserProfile)
def me(current_user: models.User = Depends(get_current_user)) -> schemas.UserProfile:
    return _profile(current_user)
