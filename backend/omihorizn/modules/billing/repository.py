"""Repository for subscription database operations."""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import and_, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from omihorizn.modules.billing.models import Subscription, SubscriptionStatus
from omihorizn.modules.entitlement.models import Tier


class SubscriptionRepository:
    """Repository for subscription operations."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, **kwargs) -> Subscription:
        subscription = Subscription(**kwargs)
        self.session.add(subscription)
        await self.session.commit()
        await self.session.refresh(subscription)
        return subscription

    async def get_by_id(self, subscription_id: uuid.UUID) -> Optional[Subscription]:
        # Reload: reminder flags and sync state are also written by scheduler sessions
        result = await self.session.execute(
            select(Subscription)
            .where(Subscription.id == subscription_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_by_user_id(self, user_id: uuid.UUID) -> Optional[Subscription]:
        result = await self.session.execute(
            select(Subscription).where(Subscription.user_id == user_id)
        )
        return result.scalar_one_or_none()

    async def get_by_external_recurring_charge_id(
        self, external_id: str
    ) -> Optional[Subscription]:
        result = await self.session.execute(
            select(Subscription).where(
                Subscription.external_recurring_charge_id == external_id
            )
        )
        return result.scalar_one_or_none()

    async def save(self, subscription: Subscription) -> Subscription:
        """Commit pending changes on a loaded subscription."""
        await self.session.commit()
        await self.session.refresh(subscription)
        return subscription

    async def get_active_user_ids(self) -> list[uuid.UUID]:
        result = await self.session.execute(
            select(Subscription.user_id).where(
                Subscription.status == SubscriptionStatus.ACTIVE.value
            )
        )
        return list(result.scalars().all())

    async def get_due_for_reminder(
        self, now: datetime, window_end: datetime, flag: str
    ) -> list[Subscription]:
        """Active auto-renewing subscriptions renewing in (now, window_end]
        that have not had the given reminder yet.
        """
        flag_column = getattr(Subscription, flag)
        result = await self.session.execute(
            select(Subscription).where(
                and_(
                    Subscription.status == SubscriptionStatus.ACTIVE.value,
                    Subscription.auto_renew == True,
                    Subscription.renewal_date > now,
                    Subscription.renewal_date <= window_end,
                    flag_column == False,
                )
            )
        )
        return list(result.scalars().all())

    async def mark_reminder_sent(self, subscription_id: uuid.UUID, flag: str) -> bool:
        """Set a reminder flag if it is still unset.

        Returns:
            True if this call set the flag
        """
        flag_column = getattr(Subscription, flag)
        result = await self.session.execute(
            update(Subscription)
            .where(and_(Subscription.id == subscription_id, flag_column == False))
            .values({flag: True})
            .execution_options(synchronize_session=False)
        )
        await self.session.commit()
        return result.rowcount == 1

    async def get_pending_external_sync(self, max_attempts: int) -> list[Subscription]:
        result = await self.session.execute(
            select(Subscription)
            .where(
                and_(
                    Subscription.external_sync_pending == True,
                    Subscription.external_sync_attempts < max_attempts,
                )
            )
            .order_by(Subscription.updated_at)
        )
        return list(result.scalars().all())

    async def count_pending_external_sync(self) -> int:
        result = await self.session.execute(
            select(func.count(Subscription.id)).where(
                Subscription.external_sync_pending == True
            )
        )
        return result.scalar() or 0

    async def get_overdue(self, cutoff: datetime) -> list[Subscription]:
        """Paid active or paused subscriptions whose renewal date is before cutoff."""
        result = await self.session.execute(
            select(Subscription).where(
                and_(
                    or_(
                        Subscription.status == SubscriptionStatus.ACTIVE.value,
                        Subscription.status == SubscriptionStatus.PAUSED.value,
                    ),
                    Subscription.tier != Tier.FREE.value,
                    Subscription.renewal_date < cutoff,
                )
            )
        )
        return list(result.scalars().all())
