"""Feature entitlement resolution.

Maps a subscription tier onto the catalog features it unlocks and the
usage limit that applies to each of them. Read-only: nothing here writes.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from omihorizn.core.exceptions import ValidationError
from omihorizn.modules.entitlement.catalog import DEFAULT_FEATURE_CATALOG
from omihorizn.modules.entitlement.models import TIER_ALIASES, Tier
from omihorizn.modules.entitlement.repository import PremiumFeatureRepository
from omihorizn.modules.entitlement.schemas import (
    CatalogFeatureResponse,
    FeatureEntitlement,
    TierAccess,
)


def normalize_tier(tier: str) -> str:
    """Resolve aliases and validate a tier name.

    Raises:
        ValidationError: If the tier is not recognized
    """
    value = TIER_ALIASES.get(tier, tier)
    try:
        return Tier(value).value
    except ValueError:
        raise ValidationError(f"Invalid subscription tier: {tier}", tier=tier)


class FeatureEntitlementResolver:
    """Resolves the feature set and per-feature limits for a tier."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.feature_repo = PremiumFeatureRepository(session)

    async def get_features_for_tier(self, tier: str) -> list[FeatureEntitlement]:
        """Project the catalog onto a tier.

        Args:
            tier: Tier name (aliases accepted)

        Returns:
            Entitlements for every feature the tier can access

        Raises:
            ValidationError: If the tier is not recognized
        """
        tier = normalize_tier(tier)
        features = await self.feature_repo.get_for_tier(tier)
        return [
            FeatureEntitlement(
                feature_id=feature.id,
                feature_key=feature.name,
                usage_limit=feature.limit_for(tier),
            )
            for feature in features
        ]

    async def get_feature_catalog(self) -> list[CatalogFeatureResponse]:
        """All catalog features with access and limits for every tier."""
        features = await self.feature_repo.get_all()
        return [
            CatalogFeatureResponse(
                id=feature.id,
                name=feature.name,
                description=feature.description,
                category=feature.category,
                tiers={
                    tier.value: TierAccess(
                        access=feature.has_access(tier.value),
                        limit=feature.limit_for(tier.value),
                    )
                    for tier in Tier
                },
            )
            for feature in features
        ]

    async def seed_default_features(self) -> int:
        """Load the default catalog, updating features that already exist."""
        for entry in DEFAULT_FEATURE_CATALOG:
            fields = dict(entry)
            name = fields.pop("name")
            await self.feature_repo.upsert(name, **fields)
        return len(DEFAULT_FEATURE_CATALOG)
