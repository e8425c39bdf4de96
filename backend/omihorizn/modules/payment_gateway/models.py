"""Payment ledger model.

Payment rows are created before any charge attempt and never deleted.
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import JSON, ForeignKey, Index, Integer, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from omihorizn.core.database import Base, UTCDateTime, utcnow


class PaymentStatus(str, Enum):
    """Payment status values."""
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"


class RefundStatus(str, Enum):
    """Refund progress on a completed payment."""
    PENDING_REFUND = "pending_refund"
    REFUNDED = "refunded"


class PaymentMethodType(str, Enum):
    """Payment method reported by the provider."""
    CARD = "card"
    BANK_TRANSFER = "bank-transfer"
    MOBILE_MONEY = "mobile-money"
    WALLET = "wallet"


class Payment(Base):
    """A single billing attempt. Amounts are in minor currency units."""

    __tablename__ = "payments"
    __table_args__ = (
        Index("ix_payments_user_created", "user_id", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    user_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False, index=True)
    subscription_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("subscriptions.id"),
        nullable=False,
        index=True,
    )

    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), default="EUR", nullable=False)
    description: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    # Provider references
    external_transaction_id: Mapped[Optional[str]] = mapped_column(
        String(255), nullable=True, unique=True
    )
    external_reference: Mapped[Optional[str]] = mapped_column(
        String(255), nullable=True, index=True
    )
    external_status: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    status: Mapped[str] = mapped_column(
        String(20), default=PaymentStatus.PENDING.value, nullable=False, index=True
    )

    # Payment method
    payment_method: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    card_brand: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    card_last4: Mapped[Optional[str]] = mapped_column(String(4), nullable=True)

    # Billing details
    billing_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    billing_email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    billing_phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    # Refund
    refund_status: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    refund_requested_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    refunded_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    refund_amount: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    refund_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    refund_external_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # Retry
    retry_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_retry_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)

    # Request context
    ip_address: Mapped[Optional[str]] = mapped_column(String(45), nullable=True)
    user_agent: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    payment_metadata: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)

    completed_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime, default=utcnow, onupdate=utcnow
    )

    def __repr__(self) -> str:
        return f"<Payment(id={self.id}, amount={self.amount}, status={self.status})>"

    def is_completed(self) -> bool:
        return self.status == PaymentStatus.COMPLETED.value

    def has_refund(self) -> bool:
        return self.refund_status in (
            RefundStatus.PENDING_REFUND.value,
            RefundStatus.REFUNDED.value,
        )
