"""Repository for the premium feature catalog."""

from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from omihorizn.modules.entitlement.models import PremiumFeature


class PremiumFeatureRepository:
    """Repository for premium feature catalog operations."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_all(self) -> list[PremiumFeature]:
        """Get all catalog features ordered by name."""
        result = await self.session.execute(
            select(PremiumFeature).order_by(PremiumFeature.name)
        )
        return list(result.scalars().all())

    async def get_for_tier(self, tier: str) -> list[PremiumFeature]:
        """Get features whose access flag is set for the tier."""
        access_column = getattr(PremiumFeature, f"{tier}_access")
        result = await self.session.execute(
            select(PremiumFeature)
            .where(access_column == True)
            .order_by(PremiumFeature.name)
        )
        return list(result.scalars().all())

    async def get_by_name(self, name: str) -> Optional[PremiumFeature]:
        result = await self.session.execute(
            select(PremiumFeature).where(PremiumFeature.name == name)
        )
        return result.scalar_one_or_none()

    async def upsert(self, name: str, **fields) -> PremiumFeature:
        """Create or update a catalog feature by name."""
        feature = await self.get_by_name(name)
        if feature is None:
            feature = PremiumFeature(name=name, **fields)
            self.session.add(feature)
        else:
            for key, value in fields.items():
                if hasattr(feature, key):
                    setattr(feature, key, value)
        await self.session.commit()
        await self.session.refresh(feature)
        return feature
