"""Pydantic schemas for feature entitlements."""

import uuid
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class FeatureEntitlement(BaseModel):
    """A feature a tier is entitled to, with its usage limit."""
    feature_id: uuid.UUID
    feature_key: str
    usage_limit: Optional[int] = Field(None, description="None means unlimited")


class TierAccess(BaseModel):
    """Access flag and limit for a single tier."""
    access: bool
    limit: Optional[int] = None


class CatalogFeatureResponse(BaseModel):
    """Catalog feature with per-tier access, for plan comparison."""
    id: uuid.UUID
    name: str
    description: Optional[str] = None
    category: str
    tiers: dict[str, TierAccess]

    model_config = ConfigDict(from_attributes=True)
