"""Repository for payment ledger operations."""

import uuid
from typing import Optional

from sqlalchemy import and_, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from omihorizn.modules.payment_gateway.models import Payment, PaymentStatus


class PaymentRepository:
    """Repository for payment rows."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, **kwargs) -> Payment:
        payment = Payment(**kwargs)
        self.session.add(payment)
        await self.session.commit()
        await self.session.refresh(payment)
        return payment

    async def get_by_id(self, payment_id: uuid.UUID) -> Optional[Payment]:
        result = await self.session.execute(
            select(Payment).where(Payment.id == payment_id)
        )
        return result.scalar_one_or_none()

    async def get_by_external_transaction_id(
        self, external_transaction_id: str
    ) -> Optional[Payment]:
        result = await self.session.execute(
            select(Payment).where(Payment.external_transaction_id == external_transaction_id)
        )
        return result.scalar_one_or_none()

    async def get_user_payments(
        self, user_id: uuid.UUID, status: Optional[str] = None
    ) -> list[Payment]:
        """Get a user's payments, newest first."""
        query = select(Payment).where(Payment.user_id == user_id)
        if status:
            query = query.where(Payment.status == status)
        result = await self.session.execute(query.order_by(Payment.created_at.desc()))
        return list(result.scalars().all())

    async def get_subscription_payments(self, subscription_id: uuid.UUID) -> list[Payment]:
        result = await self.session.execute(
            select(Payment)
            .where(Payment.subscription_id == subscription_id)
            .order_by(Payment.created_at.desc())
        )
        return list(result.scalars().all())

    async def total_completed_amount(self, user_id: uuid.UUID) -> int:
        result = await self.session.execute(
            select(func.coalesce(func.sum(Payment.amount), 0)).where(
                and_(
                    Payment.user_id == user_id,
                    Payment.status == PaymentStatus.COMPLETED.value,
                )
            )
        )
        return int(result.scalar() or 0)

    async def complete_once(self, payment_id: uuid.UUID, **fields) -> bool:
        """Mark a payment completed unless it already is.

        The status check and the write are one conditional UPDATE; exactly
        one concurrent caller sees True.
        """
        result = await self.session.execute(
            update(Payment)
            .where(
                and_(
                    Payment.id == payment_id,
                    Payment.status != PaymentStatus.COMPLETED.value,
                )
            )
            .values(status=PaymentStatus.COMPLETED.value, **fields)
            .execution_options(synchronize_session=False)
        )
        await self.session.commit()
        return result.rowcount == 1

    async def save(self, payment: Payment) -> Payment:
        await self.session.commit()
        await self.session.refresh(payment)
        return payment

    async def get_by_refund_external_id(self, refund_external_id: str) -> Optional[Payment]:
        result = await self.session.execute(
            select(Payment).where(Payment.refund_external_id == refund_external_id)
        )
        return result.scalar_one_or_none()
