"""SQLAlchemy ORM models for HostLedger."""
from __future__ import annotations

import enum
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .database import Base


JSONType = JSONB().with_variant(JSON(), "sqlite")
Money = Numeric(12, 2)


class PayoutStatus(str, enum.Enum):
    PENDING = "PENDING"
    ON_HOLD = "ON_HOLD"
    RELEASED = "RELEASED"
    REFUNDED = "REFUNDED"


class User(Base):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(default=uuid.uuid4, primary_key=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    display_name: Mapped[str | None]
    role: Mapped[str] = mapped_column(String(16), default="guest")
    paypal_email: Mapped[str | None] = mapped_column(String(255))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    is_admin: Mapped[bool] = mapped_column(Boolean, default=False)
    last_login_at: Mapped[datetime | None]
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    wallet: Mapped[Wallet | None] = relationship(back_populates="user", uselist=False)
    host_profile: Mapped[HostProfile | None] = relationship(back_populates="user", uselist=False)
    listings: Mapped[list["Listing"]] = relationship(back_populates="host", cascade="all,delete")
    drafts: Mapped[list["Draft"]] = relationship(back_populates="host", cascade="all,delete")


class HostProfile(Base):
    """Subscription state of a host account."""

    __tablename__ = "hosts"

    user_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("users.id"), primary_key=True)
    subscription_plan: Mapped[str] = mapped_column(String(32), default="starter")
    subscription_status: Mapped[str] = mapped_column(String(32), default="active")
    additional_slots: Mapped[int] = mapped_column(Integer, default=0)
    paypal_subscription_id: Mapped[str | None] = mapped_column(String(128))
    subscription_started_at: Mapped[datetime | None]
    subscription_expires_at: Mapped[datetime | None]
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    user: Mapped["User"] = relationship(back_populates="host_profile")


class Draft(Base):
    """Partially completed onboarding wizard for a new listing."""

    __tablename__ = "drafts"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    host_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    category: Mapped[str] = mapped_column(String(16), default="home")
    current_step: Mapped[str] = mapped_column(String(64), default="property-type")
    payload: Mapped[dict[str, Any]] = mapped_column(JSONType, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    host: Mapped["User"] = relationship(back_populates="drafts")


class Listing(Base):
    __tablename__ = "listings"

    id: Mapped[uuid.UUID] = mapped_column(default=uuid.uuid4, primary_key=True)
    host_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    category: Mapped[str] = mapped_column(String(16), default="home")
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    location: Mapped[str | None] = mapped_column(String(255))
    price: Mapped[Decimal] = mapped_column(Money, default=Decimal("0"))
    details: Mapped[dict[str, Any] | None] = mapped_column(JSONType)
    status: Mapped[str] = mapped_column(String(16), default="active", index=True)
    bookings_count: Mapped[int] = mapped_column(Integer, default=0)
    published_at: Mapped[datetime | None]
    expires_at: Mapped[datetime | None]
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    host: Mapped["User"] = relationship(back_populates="listings")


class Booking(Base):
    __tablename__ = "bookings"

    id: Mapped[uuid.UUID] = mapped_column(default=uuid.uuid4, primary_key=True)
    listing_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("listings.id"), nullable=False, index=True)
    guest_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    host_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    guest_name: Mapped[str | None]
    host_name: Mapped[str | None]
    listing_title: Mapped[str | None]
    check_in: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    check_out: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    guests: Mapped[int] = mapped_column(Integer, default=1)
    total_amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    service_fee: Mapped[Decimal] = mapped_column(Money, default=Decimal("0"))
    payment_method: Mapped[str] = mapped_column(String(16), default="paypal")
    cancellation_policy: Mapped[str] = mapped_column(String(16), default="moderate")
    status: Mapped[str] = mapped_column(String(16), default="pending", index=True)
    payout_status: Mapped[str | None] = mapped_column(String(16))
    payout_released_at: Mapped[datetime | None]
    refund_amount: Mapped[Decimal | None] = mapped_column(Money)
    confirmed_at: Mapped[datetime | None]
    cancelled_at: Mapped[datetime | None]
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    listing: Mapped["Listing"] = relationship()


class Payout(Base):
    __tablename__ = "payouts"

    id: Mapped[uuid.UUID] = mapped_column(default=uuid.uuid4, primary_key=True)
    type: Mapped[str] = mapped_column(String(16), default="Place")
    booking_id: Mapped[uuid.UUID | None] = mapped_column(ForeignKey("bookings.id"), index=True)
    listing_id: Mapped[uuid.UUID | None] = mapped_column(ForeignKey("listings.id"))
    host_id: Mapped[uuid.UUID | None] = mapped_column(ForeignKey("users.id"), index=True)
    guest_id: Mapped[uuid.UUID | None] = mapped_column(ForeignKey("users.id"))
    host_name: Mapped[str | None]
    guest_name: Mapped[str | None]
    host_email: Mapped[str | None]
    amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    service_fee: Mapped[Decimal] = mapped_column(Money, default=Decimal("0"))
    total_amount: Mapped[Decimal | None] = mapped_column(Money)
    payment_method: Mapped[str | None] = mapped_column(String(16))
    status: Mapped[PayoutStatus] = mapped_column(
        Enum(PayoutStatus, native_enum=False, length=16),
        default=PayoutStatus.PENDING,
        index=True,
    )
    due_date: Mapped[datetime | None]
    released_at: Mapped[datetime | None]
    released_by: Mapped[uuid.UUID | None] = mapped_column(ForeignKey("users.id"))
    refund_amount: Mapped[Decimal | None] = mapped_column(Money)
    refunded_at: Mapped[datetime | None]
    refunded_by: Mapped[str | None] = mapped_column(String(64))
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    booking: Mapped[Booking | None] = relationship()


class Wallet(Base):
    __tablename__ = "wallets"

    user_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("users.id"), primary_key=True)
    balance: Mapped[Decimal] = mapped_column(Money, default=Decimal("0"))
    currency: Mapped[str] = mapped_column(String(8), default="PHP")
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    user: Mapped["User"] = relationship(back_populates="wallet")


class WalletTransaction(Base):
    __tablename__ = "wallet_transactions"

    id: Mapped[uuid.UUID] = mapped_column(default=uuid.uuid4, primary_key=True)
    user_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    type: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    balance_before: Mapped[Decimal | None] = mapped_column(Money)
    balance_after: Mapped[Decimal] = mapped_column(Money, nullable=False)
    status: Mapped[str] = mapped_column(String(16), default="completed", index=True)
    description: Mapped[str | None] = mapped_column(String(512))
    payment_method: Mapped[str | None] = mapped_column(String(16))
    payment_reference: Mapped[str | None] = mapped_column(String(128), unique=True)
    booking_id: Mapped[uuid.UUID | None]
    payout_id: Mapped[uuid.UUID | None]
    paypal_email: Mapped[str | None] = mapped_column(String(255))
    payout_batch_id: Mapped[str | None] = mapped_column(String(128))
    processed_at: Mapped[datetime | None]
    processed_by: Mapped[uuid.UUID | None]
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    user: Mapped["User"] = relationship()


class PlatformSetting(Base):
    __tablename__ = "platform_settings"

    key: Mapped[str] = mapped_column(String(64), primary_key=True)
    value: Mapped[dict[str, Any]] = mapped_column(JSONType, default=dict)
    updated_by: Mapped[uuid.UUID | None]
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )


__all__ = [
    "PayoutStatus",
    "User",
    "HostProfile",
    "Draft",
    "Listing",
    "Booking",
    "Payout",
    "Wallet",
    "WalletTransaction",
    "PlatformSetting",
]
