"""Usage metering.

Enforces per-user, per-feature quotas. Counters are only ever changed here
and by the scheduled reset.
"""

import logging
import math
import uuid
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from omihorizn.core.config import settings
from omihorizn.core.database import utcnow
from omihorizn.core.exceptions import NotFoundError, QuotaExceededError, ValidationError
from omihorizn.core.metrics import QUOTA_REJECTIONS_TOTAL
from omihorizn.modules.billing.repository import SubscriptionRepository
from omihorizn.modules.entitlement.service import FeatureEntitlementResolver
from omihorizn.modules.usage.models import PremiumFeatureUsage
from omihorizn.modules.usage.repository import UsageRepository
from omihorizn.modules.usage.schemas import (
    FeatureSummaryItem,
    FeatureUsageResponse,
    UsageHistoryResponse,
)

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100


class UsageMeter:
    """Quota enforcement and usage bookkeeping."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.usage_repo = UsageRepository(session)
        self.subscription_repo = SubscriptionRepository(session)

    async def check_and_increment(
        self, user_id: uuid.UUID, feature_key: str
    ) -> PremiumFeatureUsage:
        """Consume one unit of a feature's quota.

        The increment is a single conditional UPDATE, so two concurrent calls
        against the last remaining slot cannot both succeed.

        Raises:
            NotFoundError: If the user has no subscription or the feature is
                not enabled for them
            QuotaExceededError: If the usage limit is reached
        """
        subscription = await self.subscription_repo.get_by_user_id(user_id)
        if subscription is None:
            raise NotFoundError("No active subscription", user_id=str(user_id))

        usage = await self.usage_repo.get_for_feature(user_id, feature_key)
        if usage is None:
            raise NotFoundError("Feature not enabled for user", feature_key=feature_key)

        if usage.usage_limit is not None and usage.usage_count >= usage.usage_limit:
            self._reject(user_id, feature_key, usage.usage_limit)

        incremented = await self.usage_repo.increment_if_below_limit(usage.id, utcnow())
        if not incremented:
            # Another request took the last slot between the read and the update
            self._reject(user_id, feature_key, usage.usage_limit)

        await self.session.refresh(usage)
        return usage

    def _reject(self, user_id: uuid.UUID, feature_key: str, usage_limit: Optional[int]):
        QUOTA_REJECTIONS_TOTAL.labels(feature=feature_key).inc()
        logger.info(f"Quota exceeded for user {user_id} on feature {feature_key}")
        raise QuotaExceededError(feature_key, usage_limit=usage_limit)

    async def get_usage_history(
        self,
        user_id: uuid.UUID,
        feature: Optional[str] = None,
        page: int = 1,
        page_size: int = 20,
    ) -> UsageHistoryResponse:
        """Get usage rows, most recently used first."""
        if page < 1:
            raise ValidationError("page must be >= 1", page=page)
        if page_size < 1 or page_size > MAX_PAGE_SIZE:
            raise ValidationError(
                f"page_size must be between 1 and {MAX_PAGE_SIZE}", page_size=page_size
            )

        rows, total = await self.usage_repo.get_history(
            user_id, feature_key=feature, page=page, page_size=page_size
        )
        return UsageHistoryResponse(
            items=[FeatureUsageResponse.model_validate(row) for row in rows],
            total=total,
            page=page,
            page_size=page_size,
        )

    async def provision(
        self, user_id: uuid.UUID, tier: str, now: Optional[datetime] = None
    ) -> list[PremiumFeatureUsage]:
        """Replace a user's usage rows with the tier's entitlement set.

        Every counter starts at zero with a fresh reset window.
        """
        now = now or utcnow()
        resolver = FeatureEntitlementResolver(self.session)
        entitlements = await resolver.get_features_for_tier(tier)
        rows = await self.usage_repo.replace_for_user(
            user_id,
            [entitlement.model_dump() for entitlement in entitlements],
            reset_date=now + timedelta(days=settings.USAGE_RESET_WINDOW_DAYS),
        )
        logger.info(f"Provisioned {len(rows)} features for user {user_id} on tier {tier}")
        return rows

    async def reset_users(
        self, user_ids: list[uuid.UUID], now: Optional[datetime] = None
    ) -> int:
        """Zero counters for the given users and start a new window.

        With ``USAGE_RESET_ONLY_DUE`` set, only rows whose window has ended
        are reset.
        """
        now = now or utcnow()
        return await self.usage_repo.reset_counts(
            user_ids,
            next_reset_date=now + timedelta(days=settings.USAGE_RESET_WINDOW_DAYS),
            due_before=now if settings.USAGE_RESET_ONLY_DUE else None,
        )

    async def get_feature_summary(
        self, user_id: uuid.UUID, now: Optional[datetime] = None
    ) -> list[FeatureSummaryItem]:
        """Remaining quota and days until reset for each of the user's features."""
        now = now or utcnow()
        rows = await self.usage_repo.get_all_for_user(user_id)
        return [
            FeatureSummaryItem(
                feature_key=row.feature_key,
                usage_count=row.usage_count,
                usage_limit=row.usage_limit,
                remaining=row.remaining,
                reset_date=row.reset_date,
                days_until_reset=max(
                    0, math.ceil((row.reset_date - now).total_seconds() / 86400)
                ),
            )
            for row in rows
            if row.is_active
        ]
