"""Repository for feature usage counters."""

import uuid
from datetime import datetime
from typing import Iterable, Optional

from sqlalchemy import and_, delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from omihorizn.modules.usage.models import PremiumFeatureUsage


class UsageRepository:
    """Repository for per-user feature usage rows."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, usage_id: uuid.UUID) -> Optional[PremiumFeatureUsage]:
        result = await self.session.execute(
            select(PremiumFeatureUsage).where(PremiumFeatureUsage.id == usage_id)
        )
        return result.scalar_one_or_none()

    async def get_for_feature(
        self, user_id: uuid.UUID, feature_key: str
    ) -> Optional[PremiumFeatureUsage]:
        """Get the active usage row for a user's feature."""
        result = await self.session.execute(
            select(PremiumFeatureUsage).where(
                and_(
                    PremiumFeatureUsage.user_id == user_id,
                    PremiumFeatureUsage.feature_key == feature_key,
                    PremiumFeatureUsage.is_active == True,
                )
            )
        )
        return result.scalar_one_or_none()

    async def get_all_for_user(self, user_id: uuid.UUID) -> list[PremiumFeatureUsage]:
        result = await self.session.execute(
            select(PremiumFeatureUsage)
            .where(PremiumFeatureUsage.user_id == user_id)
            .order_by(PremiumFeatureUsage.feature_key)
        )
        return list(result.scalars().all())

    async def increment_if_below_limit(
        self, usage_id: uuid.UUID, used_at: datetime
    ) -> bool:
        """Increment the counter in a single conditional UPDATE.

        The limit check and the write happen in the same statement, so
        concurrent callers cannot both take the last remaining slot.

        Returns:
            True if the counter was incremented
        """
        result = await self.session.execute(
            update(PremiumFeatureUsage)
            .where(
                and_(
                    PremiumFeatureUsage.id == usage_id,
                    or_(
                        PremiumFeatureUsage.usage_limit.is_(None),
                        PremiumFeatureUsage.usage_count < PremiumFeatureUsage.usage_limit,
                    ),
                )
            )
            .values(
                usage_count=PremiumFeatureUsage.usage_count + 1,
                last_used_at=used_at,
                updated_at=used_at,
            )
            .execution_options(synchronize_session=False)
        )
        await self.session.commit()
        return result.rowcount == 1

    async def replace_for_user(
        self,
        user_id: uuid.UUID,
        rows: Iterable[dict],
        reset_date: datetime,
    ) -> list[PremiumFeatureUsage]:
        """Replace every usage row of a user with freshly zeroed rows.

        Args:
            user_id: Owner of the rows
            rows: Dicts with feature_id, feature_key and usage_limit
            reset_date: End of the first usage window
        """
        await self.session.execute(
            delete(PremiumFeatureUsage).where(PremiumFeatureUsage.user_id == user_id)
        )
        created = []
        for row in rows:
            usage = PremiumFeatureUsage(
                user_id=user_id,
                feature_id=row["feature_id"],
                feature_key=row["feature_key"],
                usage_count=0,
                usage_limit=row["usage_limit"],
                reset_date=reset_date,
                is_active=True,
            )
            self.session.add(usage)
            created.append(usage)
        await self.session.commit()
        return created

    async def reset_counts(
        self,
        user_ids: list[uuid.UUID],
        next_reset_date: datetime,
        due_before: Optional[datetime] = None,
    ) -> int:
        """Zero counters for the given users and move their reset date.

        Args:
            user_ids: Users whose rows are reset
            next_reset_date: New reset date for every touched row
            due_before: Only reset rows whose reset date is at or before this

        Returns:
            Number of rows reset
        """
        if not user_ids:
            return 0
        conditions = [PremiumFeatureUsage.user_id.in_(user_ids)]
        if due_before is not None:
            conditions.append(PremiumFeatureUsage.reset_date <= due_before)
        result = await self.session.execute(
            update(PremiumFeatureUsage)
            .where(and_(*conditions))
            .values(usage_count=0, reset_date=next_reset_date)
            .execution_options(synchronize_session=False)
        )
        await self.session.commit()
        return result.rowcount

    async def get_history(
        self,
        user_id: uuid.UUID,
        feature_key: Optional[str] = None,
        page: int = 1,
        page_size: int = 20,
    ) -> tuple[list[PremiumFeatureUsage], int]:
        """Get a page of usage rows, most recently used first.

        Returns:
            Tuple of (rows, total count)
        """
        conditions = [PremiumFeatureUsage.user_id == user_id]
        if feature_key:
            conditions.append(PremiumFeatureUsage.feature_key == feature_key)

        count_result = await self.session.execute(
            select(func.count(PremiumFeatureUsage.id)).where(and_(*conditions))
        )
        total = count_result.scalar() or 0

        result = await self.session.execute(
            select(PremiumFeatureUsage)
            .where(and_(*conditions))
            .order_by(
                PremiumFeatureUsage.last_used_at.desc().nulls_last(),
                PremiumFeatureUsage.feature_key,
            )
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        return list(result.scalars().all()), total
