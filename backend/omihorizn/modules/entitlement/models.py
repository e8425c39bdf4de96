"""Premium feature catalog model.

Each feature carries a per-tier access flag and a per-tier usage limit.
A ``None`` or negative limit means unlimited.
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import Boolean, Integer, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from omihorizn.core.database import Base, UTCDateTime, utcnow


class Tier(str, Enum):
    """Subscription tiers."""
    FREE = "free"
    PREMIUM = "premium"
    PROFESSIONAL = "professional"


# Legacy tier names still sent by older clients
TIER_ALIASES = {
    "basic": Tier.PREMIUM.value,
}


class FeatureCategory(str, Enum):
    """Catalog grouping for premium features."""
    AI = "ai"
    ADVISOR = "advisor"
    DOCUMENTS = "documents"
    VISA_ENGINES = "visa-engines"
    SUPPORT = "support"
    OTHER = "other"


class PremiumFeature(Base):
    """Feature catalog entry with tier access flags and limits."""

    __tablename__ = "premium_features"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )

    # Feature key used by metered endpoints
    name: Mapped[str] = mapped_column(String(150), nullable=False, unique=True, index=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    category: Mapped[str] = mapped_column(
        String(50), default=FeatureCategory.OTHER.value, nullable=False
    )

    # Tier access
    free_access: Mapped[bool] = mapped_column(Boolean, default=False)
    premium_access: Mapped[bool] = mapped_column(Boolean, default=True)
    professional_access: Mapped[bool] = mapped_column(Boolean, default=True)

    # Per-tier limits (None or negative = unlimited)
    free_limit: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    premium_limit: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    professional_limit: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime, default=utcnow, onupdate=utcnow
    )

    def __repr__(self) -> str:
        return f"<PremiumFeature(id={self.id}, name={self.name})>"

    def has_access(self, tier: str) -> bool:
        return bool(getattr(self, f"{tier}_access"))

    def limit_for(self, tier: str) -> Optional[int]:
        """Usage limit for a tier, normalized so that unlimited is ``None``."""
        return normalize_limit(getattr(self, f"{tier}_limit"))


def normalize_limit(raw: Optional[int]) -> Optional[int]:
    """Map catalog limit values onto the usage-row convention.

    ``None`` and negative values (the catalog seed uses ``-1``) are unlimited.
    """
    if raw is None or raw < 0:
        return None
    return raw
