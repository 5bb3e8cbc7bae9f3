"""Pydantic schemas for API requests and responses."""
from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any, Literal

from pydantic import BaseModel, Field


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int


class RefreshRequest(BaseModel):
    refresh_token: str


class RegisterRequest(BaseModel):
    email: str
    password: str = Field(min_length=8)
    display_name: str
    paypal_email: str | None = None


class UserProfile(BaseModel):
    id: uuid.UUID
    email: str
    display_name: str | None = None
    role: str
    paypal_email: str | None = None
    is_admin: bool
    created_at: datetime


# ----------------------------------------------------------------------
# Plans and subscriptions


class PlanResponse(BaseModel):
    id: str
    name: str
    price: Decimal
    listing_limit: int
    posting_duration: int
    posting_duration_unit: str
    features: list[str]


class SubscribeRequest(BaseModel):
    plan_id: str
    paypal_subscription_id: str | None = None


class UpgradeRequest(BaseModel):
    plan_id: str


class SlotQuoteRequest(BaseModel):
    quantity: int = Field(ge=1)


class SlotQuoteResponse(BaseModel):
    quantity: int
    price: Decimal
    per_slot: Decimal
    savings: Decimal
    is_bulk: bool
    tier: int
    regular_price: Decimal


class QuotaResponse(BaseModel):
    allowed: bool
    remaining: int
    limit: int


class SubscriptionResponse(BaseModel):
    plan: PlanResponse
    subscription_status: str
    additional_slots: int
    started_at: datetime | None = None
    expires_at: datetime | None = None
    quota: QuotaResponse
    amount_due: Decimal | None = None


# ----------------------------------------------------------------------
# Listings and drafts


class ListingCreate(BaseModel):
    title: str
    category: Literal["home", "experience", "service"] = "home"
    price: Decimal = Field(default=Decimal("0"), ge=0)
    description: str | None = None
    location: str | None = None
    details: dict[str, Any] | None = None


class ListingResponse(BaseModel):
    id: uuid.UUID
    host_id: uuid.UUID
    category: str
    title: str
    description: str | None = None
    location: str | None = None
    price: Decimal
    status: str
    bookings_count: int
    published_at: datetime | None = None
    expires_at: datetime | None = None
    days_until_expiration: int | None = None


class DraftSaveRequest(BaseModel):
    current_step: str
    category: Literal["home", "experience", "service"] = "home"
    payload: dict[str, Any] = Field(default_factory=dict)


class DraftResponse(BaseModel):
    id: int
    category: str
    current_step: str
    payload: dict[str, Any]
    updated_at: datetime


# ----------------------------------------------------------------------
# Bookings


class BookingCreate(BaseModel):
    listing_id: uuid.UUID
    check_in: datetime
    check_out: datetime
    total_amount: Decimal = Field(gt=0)
    guests: int = Field(default=1, ge=1)
    payment_method: Literal["paypal", "wallet"] = "paypal"


class BookingResponse(BaseModel):
    id: uuid.UUID
    listing_id: uuid.UUID
    guest_id: uuid.UUID
    host_id: uuid.UUID
    listing_title: str | None = None
    check_in: datetime
    check_out: datetime
    guests: int
    total_amount: Decimal
    service_fee: Decimal
    payment_method: str
    cancellation_policy: str
    status: str
    payout_status: str | None = None
    refund_amount: Decimal | None = None


class RefundQuoteResponse(BaseModel):
    original_amount: Decimal
    refund_percentage: Decimal
    refund_amount_before_deduction: Decimal
    admin_deduction: Decimal
    cancellation_fee: Decimal
    final_refund_amount: Decimal
    days_until_check_in: int
    cancellation_policy: str
    policy_description: str


class CancellationResponse(BaseModel):
    booking: BookingResponse
    refund: RefundQuoteResponse


# ----------------------------------------------------------------------
# Wallet


class WalletResponse(BaseModel):
    balance: Decimal
    currency: str


class WalletAmountRequest(BaseModel):
    amount: Decimal = Field(gt=0)
    payment_method: str = "paypal"
    payment_reference: str = Field(min_length=6, max_length=128)


class WithdrawalRequest(BaseModel):
    amount: Decimal = Field(gt=0)
    paypal_email: str | None = None


class WalletTransactionResponse(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    type: str
    amount: Decimal
    balance_before: Decimal | None = None
    balance_after: Decimal
    status: str
    description: str | None = None
    payment_reference: str | None = None
    booking_id: uuid.UUID | None = None
    payout_id: uuid.UUID | None = None
    paypal_email: str | None = None
    payout_batch_id: str | None = None
    processed_at: datetime | None = None
    created_at: datetime


# ----------------------------------------------------------------------
# Admin console


class PayoutResponse(BaseModel):
    id: uuid.UUID
    type: str
    booking_id: uuid.UUID | None = None
    listing_id: uuid.UUID | None = None
    host_id: uuid.UUID | None = None
    guest_id: uuid.UUID | None = None
    host_name: str | None = None
    guest_name: str | None = None
    amount: Decimal
    service_fee: Decimal
    total_amount: Decimal | None = None
    payment_method: str | None = None
    status: str
    due_date: datetime | None = None
    released_at: datetime | None = None
    refund_amount: Decimal | None = None
    refunded_at: datetime | None = None
    created_at: datetime


class ReleasePayoutRequest(BaseModel):
    confirm: bool = False


class ReleasePayoutResponse(BaseModel):
    payout: PayoutResponse
    wallet_credited: bool
    booking_updated: bool
    wallet_transaction_id: uuid.UUID | None = None


class ServiceFeeResponse(BaseModel):
    percentage: Decimal
    history: list[dict[str, Any]] = Field(default_factory=list)


class ServiceFeeUpdate(BaseModel):
    percentage: Decimal = Field(ge=0, le=1)
