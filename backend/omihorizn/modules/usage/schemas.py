"""Pydantic schemas for feature usage."""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class FeatureUsageResponse(BaseModel):
    """Usage row for one feature."""
    id: uuid.UUID
    feature_id: uuid.UUID
    feature_key: str
    usage_count: int
    usage_limit: Optional[int] = None
    reset_date: datetime
    last_used_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class FeatureSummaryItem(BaseModel):
    """Remaining quota for one feature."""
    feature_key: str
    usage_count: int
    usage_limit: Optional[int] = None
    remaining: Optional[int] = Field(None, description="None means unlimited")
    reset_date: datetime
    days_until_reset: int


class UsageHistoryResponse(BaseModel):
    """Paginated usage history."""
    items: list[FeatureUsageResponse]
    total: int
    page: int
    page_size: int
