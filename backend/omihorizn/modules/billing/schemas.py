"""Pydantic schemas for subscriptions."""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from omihorizn.modules.usage.schemas import FeatureSummaryItem


class SubscriptionCreate(BaseModel):
    """Schema for creating a subscription."""
    tier: str = "free"
    billing_cycle: str = "monthly"
    amount: int = Field(0, ge=0, description="Amount in minor currency units")
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    billing_email: Optional[str] = None
    billing_name: Optional[str] = None
    promo_code: Optional[str] = None
    discount_percentage: float = Field(0.0, ge=0, le=100)


class SubscriptionUpdate(BaseModel):
    """Schema for updating a subscription. Only set fields are applied."""
    tier: Optional[str] = None
    billing_cycle: Optional[str] = None
    amount: Optional[int] = Field(None, ge=0)
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    auto_renew: Optional[bool] = None
    billing_email: Optional[str] = None
    billing_name: Optional[str] = None
    promo_code: Optional[str] = None
    discount_percentage: Optional[float] = Field(None, ge=0, le=100)


class CancelRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=100)
    feedback: Optional[str] = Field(None, max_length=2000)


class SubscriptionResponse(BaseModel):
    """Subscription as returned by the API."""
    id: uuid.UUID
    user_id: uuid.UUID
    tier: str
    billing_cycle: str
    amount: int
    currency: str
    status: str
    start_date: datetime
    renewal_date: datetime
    cancelled_at: Optional[datetime] = None
    paused_at: Optional[datetime] = None
    auto_renew: bool
    features_enabled: Optional[list[str]] = None
    last_payment_id: Optional[uuid.UUID] = None
    failed_payment_attempts: int = 0
    promo_code: Optional[str] = None
    discount_percentage: float = 0.0
    cancellation_reason: Optional[str] = None
    external_sync_pending: bool = False
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ProrationResponse(BaseModel):
    """Prorated delta of a plan change. Positive is owed, negative is credit."""
    amount: int
    days_remaining: float
    old_amount: int
    new_amount: int


class SubscriptionUpdateResponse(BaseModel):
    subscription: SubscriptionResponse
    proration: Optional[ProrationResponse] = None
    usage_reset: bool = False


class SubscriptionWithFeaturesResponse(BaseModel):
    """Subscription with remaining quota per feature."""
    subscription: SubscriptionResponse
    features: list[FeatureSummaryItem]


class PaymentSummary(BaseModel):
    id: uuid.UUID
    amount: int
    currency: str
    status: str
    completed_at: Optional[datetime] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class SubscriptionHistoryResponse(BaseModel):
    subscription: SubscriptionResponse
    payments: list[PaymentSummary]
    total_paid: int
