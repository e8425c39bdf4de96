"""Per-user feature usage counters."""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from omihorizn.core.database import Base, UTCDateTime, utcnow


class PremiumFeatureUsage(Base):
    """Usage counter for one (user, feature) pair.

    ``usage_limit`` is a snapshot of the tier limit taken when the row was
    provisioned. ``None`` means unlimited.
    """

    __tablename__ = "premium_feature_usages"
    __table_args__ = (
        UniqueConstraint("user_id", "feature_id", name="uq_usage_user_feature"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), nullable=False, index=True
    )
    feature_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("premium_features.id", ondelete="CASCADE"),
        nullable=False,
    )
    feature_key: Mapped[str] = mapped_column(String(150), nullable=False, index=True)

    usage_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    usage_limit: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    reset_date: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    last_used_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime, default=utcnow, onupdate=utcnow
    )

    def __repr__(self) -> str:
        return (
            f"<PremiumFeatureUsage(user_id={self.user_id}, feature={self.feature_key}, "
            f"count={self.usage_count}/{self.usage_limit})>"
        )

    @property
    def is_unlimited(self) -> bool:
        return self.usage_limit is None

    @property
    def remaining(self) -> Optional[int]:
        if self.usage_limit is None:
            return None
        return max(0, self.usage_limit - self.usage_count)
