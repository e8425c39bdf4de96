"""Subscription model and billing enums."""

import uuid
from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import JSON, Boolean, Float, Index, Integer, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from omihorizn.core.database import Base, UTCDateTime, utcnow
from omihorizn.modules.entitlement.models import Tier


class SubscriptionStatus(str, Enum):
    """Subscription status values."""
    ACTIVE = "active"
    PAUSED = "paused"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


class BillingCycle(str, Enum):
    """Billing cycle lengths."""
    MONTHLY = "monthly"
    ANNUAL = "annual"


class ExternalSyncAction(str, Enum):
    """Provider-side changes waiting to be replayed."""
    UPDATE_PLAN = "update_plan"
    CANCEL_PLAN = "cancel_plan"


class Subscription(Base):
    """A user's subscription. One per user, never hard-deleted.

    Amounts are in minor currency units.
    """

    __tablename__ = "subscriptions"
    __table_args__ = (
        Index("ix_subscriptions_status_renewal", "status", "renewal_date"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), nullable=False, unique=True, index=True
    )

    # Plan
    tier: Mapped[str] = mapped_column(String(50), default=Tier.FREE.value, nullable=False)
    billing_cycle: Mapped[str] = mapped_column(
        String(20), default=BillingCycle.MONTHLY.value, nullable=False
    )
    amount: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), default="EUR", nullable=False)
    billing_email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    billing_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    features_enabled: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)

    # Dates
    start_date: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow)
    renewal_date: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    paused_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)

    # Status
    status: Mapped[str] = mapped_column(
        String(20), default=SubscriptionStatus.ACTIVE.value, nullable=False
    )
    auto_renew: Mapped[bool] = mapped_column(Boolean, default=True)
    reminder_7_sent: Mapped[bool] = mapped_column(Boolean, default=False)
    reminder_1_sent: Mapped[bool] = mapped_column(Boolean, default=False)

    # Payments
    last_payment_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), nullable=True
    )
    failed_payment_attempts: Mapped[int] = mapped_column(Integer, default=0)
    external_recurring_charge_id: Mapped[Optional[str]] = mapped_column(
        String(255), nullable=True, unique=True
    )

    # Promotions
    promo_code: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    discount_percentage: Mapped[float] = mapped_column(Float, default=0.0)

    # Cancellation
    cancellation_reason: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    cancellation_feedback: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Pending provider-side change (committed locally, not yet applied remotely)
    external_sync_pending: Mapped[bool] = mapped_column(Boolean, default=False, index=True)
    external_sync_action: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    external_sync_payload: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    external_sync_attempts: Mapped[int] = mapped_column(Integer, default=0)
    external_sync_error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime, default=utcnow, onupdate=utcnow
    )

    def __repr__(self) -> str:
        return f"<Subscription(id={self.id}, user_id={self.user_id}, tier={self.tier}, status={self.status})>"

    def is_active(self) -> bool:
        return self.status == SubscriptionStatus.ACTIVE.value

    def days_until_renewal(self, now: Optional[datetime] = None) -> float:
        now = now or utcnow()
        return (self.renewal_date - now).total_seconds() / 86400
