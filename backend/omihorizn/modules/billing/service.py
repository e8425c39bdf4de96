"""Subscription ledger.

Owns the subscription state machine: create, update with proration,
cancel, pause/resume, renewal and expiry. Provider-side changes are
applied after the local commit; when the provider call fails the change
is recorded as a pending external sync and replayed by the scheduler.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from omihorizn.core.config import settings
from omihorizn.core.database import utcnow
from omihorizn.core.exceptions import (
    ConflictError,
    ExternalGatewayError,
    NotFoundError,
    ValidationError,
)
from omihorizn.core.metrics import EXTERNAL_SYNC_PENDING
from omihorizn.modules.billing.models import (
    BillingCycle,
    ExternalSyncAction,
    Subscription,
    SubscriptionStatus,
)
from omihorizn.modules.billing.notifications import BillingNotifier
from omihorizn.modules.billing.periods import add_months, advance_renewal_date, cycle_months
from omihorizn.modules.billing.proration import ProrationResult, compute as compute_proration
from omihorizn.modules.billing.repository import SubscriptionRepository
from omihorizn.modules.billing.state import validate_transition
from omihorizn.modules.entitlement.service import normalize_tier
from omihorizn.modules.payment_gateway.gateways import get_payment_provider
from omihorizn.modules.payment_gateway.interface import PaymentProviderInterface
from omihorizn.modules.payment_gateway.models import Payment
from omihorizn.modules.payment_gateway.repository import PaymentRepository
from omihorizn.modules.usage.service import UsageMeter

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = frozenset({
    "tier",
    "billing_cycle",
    "amount",
    "currency",
    "auto_renew",
    "billing_email",
    "billing_name",
    "promo_code",
    "discount_percentage",
})


@dataclass
class SubscriptionUpdateResult:
    """Outcome of a subscription update."""
    subscription: Subscription
    proration: Optional[ProrationResult] = None
    usage_reset: bool = False


class SubscriptionLedger:
    """Subscription state machine and lifecycle operations."""

    def __init__(
        self,
        session: AsyncSession,
        provider: Optional[PaymentProviderInterface] = None,
        notifier: Optional[BillingNotifier] = None,
    ):
        self.session = session
        self.subscription_repo = SubscriptionRepository(session)
        self.payment_repo = PaymentRepository(session)
        self.usage_meter = UsageMeter(session)
        self.provider = provider or get_payment_provider()
        self.notifier = notifier or BillingNotifier()

    # ==================== Lookups ====================

    async def get_by_id(self, subscription_id: uuid.UUID) -> Subscription:
        subscription = await self.subscription_repo.get_by_id(subscription_id)
        if subscription is None:
            raise NotFoundError(
                "Subscription not found", subscription_id=str(subscription_id)
            )
        return subscription

    async def get_subscription(self, user_id: uuid.UUID) -> Subscription:
        subscription = await self.subscription_repo.get_by_user_id(user_id)
        if subscription is None:
            raise NotFoundError("No subscription found", user_id=str(user_id))
        return subscription

    async def get_subscription_history(self, user_id: uuid.UUID) -> dict:
        """Subscription with its payments and the total paid."""
        subscription = await self.get_subscription(user_id)
        payments = await self.payment_repo.get_subscription_payments(subscription.id)
        total_paid = await self.payment_repo.total_completed_amount(user_id)
        return {
            "subscription": subscription,
            "payments": payments,
            "total_paid": total_paid,
        }

    # ==================== Create ====================

    async def create(
        self,
        user_id: uuid.UUID,
        tier: str = "free",
        billing_cycle: str = BillingCycle.MONTHLY.value,
        amount: int = 0,
        currency: Optional[str] = None,
        billing_email: Optional[str] = None,
        billing_name: Optional[str] = None,
        promo_code: Optional[str] = None,
        discount_percentage: float = 0.0,
        now: Optional[datetime] = None,
    ) -> Subscription:
        """Create a user's subscription and provision their usage rows.

        Raises:
            ValidationError: On unknown tier, cycle or a negative amount
            ConflictError: If the user already has a subscription
        """
        now = now or utcnow()
        tier = normalize_tier(tier)
        months = cycle_months(billing_cycle)
        if amount < 0:
            raise ValidationError("amount must be >= 0", amount=amount)

        existing = await self.subscription_repo.get_by_user_id(user_id)
        if existing is not None:
            raise ConflictError(
                "User already has a subscription", subscription_id=str(existing.id)
            )

        try:
            subscription = await self.subscription_repo.create(
                user_id=user_id,
                tier=tier,
                billing_cycle=billing_cycle,
                amount=amount,
                currency=(currency or settings.DEFAULT_CURRENCY).upper(),
                billing_email=billing_email,
                billing_name=billing_name,
                promo_code=promo_code,
                discount_percentage=discount_percentage,
                start_date=now,
                renewal_date=add_months(now, months),
                status=SubscriptionStatus.ACTIVE.value,
                auto_renew=True,
            )
        except IntegrityError:
            await self.session.rollback()
            raise ConflictError("User already has a subscription", user_id=str(user_id))

        rows = await self.usage_meter.provision(user_id, tier, now=now)
        subscription.features_enabled = [row.feature_key for row in rows]
        subscription = await self.subscription_repo.save(subscription)

        logger.info(f"Created {tier} subscription {subscription.id} for user {user_id}")
        await self.notifier.notify_subscription_created(
            user_id, subscription.billing_email, tier, subscription.renewal_date
        )
        return subscription

    # ==================== Update ====================

    async def update(
        self,
        subscription_id: uuid.UUID,
        updates: dict[str, Any],
        now: Optional[datetime] = None,
    ) -> SubscriptionUpdateResult:
        """Apply plan or billing changes.

        A tier change computes proration (informational) and re-provisions
        the user's usage rows for the new tier, zeroing every counter.
        Amount or cycle changes are pushed to the provider when a recurring
        charge exists; a provider failure leaves a pending external sync.

        Raises:
            NotFoundError: If the subscription does not exist
            ValidationError: On unknown fields or invalid values
            ConflictError: If the subscription is cancelled or expired
        """
        now = now or utcnow()
        unknown = set(updates) - UPDATABLE_FIELDS
        if unknown:
            raise ValidationError(
                f"Fields cannot be updated: {', '.join(sorted(unknown))}",
                fields=sorted(unknown),
            )

        subscription = await self.get_by_id(subscription_id)
        if subscription.status not in (
            SubscriptionStatus.ACTIVE.value,
            SubscriptionStatus.PAUSED.value,
        ):
            raise ConflictError(
                f"Cannot update a {subscription.status} subscription",
                status=subscription.status,
            )

        changes = dict(updates)
        if "tier" in changes and changes["tier"] is not None:
            changes["tier"] = normalize_tier(changes["tier"])
        if "billing_cycle" in changes and changes["billing_cycle"] is not None:
            cycle_months(changes["billing_cycle"])
        if changes.get("amount") is not None and changes["amount"] < 0:
            raise ValidationError("amount must be >= 0", amount=changes["amount"])
        if changes.get("currency"):
            changes["currency"] = changes["currency"].upper()

        proration = None
        tier_changed = changes.get("tier") is not None and changes["tier"] != subscription.tier
        if tier_changed:
            new_amount = changes.get("amount")
            proration = compute_proration(
                subscription.amount,
                new_amount if new_amount is not None else subscription.amount,
                subscription.renewal_date,
                now,
            )

        external_changes = {
            key: changes[key]
            for key in ("amount", "billing_cycle")
            if changes.get(key) is not None and changes[key] != getattr(subscription, key)
        }

        for key, value in changes.items():
            if value is not None or key in ("billing_email", "billing_name", "promo_code"):
                setattr(subscription, key, value)
        subscription = await self.subscription_repo.save(subscription)

        if tier_changed:
            rows = await self.usage_meter.provision(subscription.user_id, subscription.tier, now=now)
            subscription.features_enabled = [row.feature_key for row in rows]
            subscription = await self.subscription_repo.save(subscription)
            logger.info(
                f"Subscription {subscription.id} tier changed to {subscription.tier}, "
                f"proration {proration.rounded_amount}"
            )

        if subscription.external_recurring_charge_id and external_changes:
            await self._push_external(
                subscription,
                ExternalSyncAction.UPDATE_PLAN,
                {
                    "external_id": subscription.external_recurring_charge_id,
                    "amount": subscription.amount,
                    "interval": subscription.billing_cycle,
                },
            )

        return SubscriptionUpdateResult(
            subscription=subscription,
            proration=proration,
            usage_reset=tier_changed,
        )

    # ==================== Cancel / pause / resume ====================

    async def cancel(
        self,
        subscription_id: uuid.UUID,
        reason: Optional[str] = None,
        feedback: Optional[str] = None,
        sync_external: bool = True,
        now: Optional[datetime] = None,
    ) -> Subscription:
        """Cancel a subscription and stop its recurring charge.

        Args:
            subscription_id: Subscription to cancel
            reason: Cancellation reason code
            feedback: Free-text feedback
            sync_external: Disable the provider recurring charge. False when
                the provider itself reported the cancellation.

        Raises:
            NotFoundError: If the subscription does not exist
            InvalidTransitionError: If it cannot be cancelled from its status
        """
        now = now or utcnow()
        subscription = await self.get_by_id(subscription_id)
        validate_transition(subscription.status, SubscriptionStatus.CANCELLED)

        subscription.status = SubscriptionStatus.CANCELLED.value
        subscription.cancelled_at = now
        subscription.auto_renew = False
        subscription.cancellation_reason = reason
        if feedback is not None:
            subscription.cancellation_feedback = feedback
        subscription = await self.subscription_repo.save(subscription)
        logger.info(f"Cancelled subscription {subscription.id} ({reason})")

        if sync_external and subscription.external_recurring_charge_id:
            await self._push_external(
                subscription,
                ExternalSyncAction.CANCEL_PLAN,
                {"external_id": subscription.external_recurring_charge_id},
            )

        await self.notifier.notify_subscription_cancelled(
            subscription.user_id, subscription.billing_email, subscription.tier, reason
        )
        return subscription

    async def pause(
        self, subscription_id: uuid.UUID, now: Optional[datetime] = None
    ) -> Subscription:
        now = now or utcnow()
        subscription = await self.get_by_id(subscription_id)
        validate_transition(subscription.status, SubscriptionStatus.PAUSED)

        subscription.status = SubscriptionStatus.PAUSED.value
        subscription.paused_at = now
        logger.info(f"Paused subscription {subscription.id}")
        return await self.subscription_repo.save(subscription)

    async def resume(
        self, subscription_id: uuid.UUID, now: Optional[datetime] = None
    ) -> Subscription:
        """Resume a paused subscription.

        The renewal date moves forward by the time spent paused, so paid
        time is not lost.
        """
        now = now or utcnow()
        subscription = await self.get_by_id(subscription_id)
        if subscription.status != SubscriptionStatus.PAUSED.value:
            raise ConflictError(
                "Only paused subscriptions can be resumed", status=subscription.status
            )
        validate_transition(subscription.status, SubscriptionStatus.ACTIVE)

        if subscription.paused_at is not None:
            subscription.renewal_date = subscription.renewal_date + (now - subscription.paused_at)
        subscription.status = SubscriptionStatus.ACTIVE.value
        subscription.paused_at = None
        logger.info(f"Resumed subscription {subscription.id}")
        return await self.subscription_repo.save(subscription)

    # ==================== Renewal / expiry ====================

    async def renewal_pass(
        self,
        subscription_id: uuid.UUID,
        payment: Payment,
        now: Optional[datetime] = None,
    ) -> Subscription:
        """Extend a subscription after a verified payment.

        The new renewal date is one billing cycle after the later of now
        and the current renewal date. Callers must invoke this exactly once
        per completed payment.
        """
        now = now or utcnow()
        subscription = await self.get_by_id(subscription_id)
        validate_transition(subscription.status, SubscriptionStatus.ACTIVE)

        previous = subscription.renewal_date
        subscription.renewal_date = advance_renewal_date(
            subscription.renewal_date, subscription.billing_cycle, now
        )
        if subscription.status != SubscriptionStatus.ACTIVE.value:
            subscription.cancelled_at = None
            subscription.paused_at = None
            subscription.cancellation_reason = None
            subscription.auto_renew = True
        subscription.status = SubscriptionStatus.ACTIVE.value
        subscription.last_payment_id = payment.id
        subscription.failed_payment_attempts = 0
        subscription.reminder_7_sent = False
        subscription.reminder_1_sent = False
        subscription = await self.subscription_repo.save(subscription)

        logger.info(
            f"Renewed subscription {subscription.id}: {previous.isoformat()} -> "
            f"{subscription.renewal_date.isoformat()}"
        )
        return subscription

    async def record_failed_payment(self, subscription_id: uuid.UUID) -> None:
        subscription = await self.subscription_repo.get_by_id(subscription_id)
        if subscription is None:
            return
        subscription.failed_payment_attempts = (subscription.failed_payment_attempts or 0) + 1
        await self.subscription_repo.save(subscription)

    async def expire(
        self, subscription_id: uuid.UUID, now: Optional[datetime] = None
    ) -> Subscription:
        subscription = await self.get_by_id(subscription_id)
        validate_transition(subscription.status, SubscriptionStatus.EXPIRED)
        subscription.status = SubscriptionStatus.EXPIRED.value
        logger.info(f"Expired subscription {subscription.id}")
        return await self.subscription_repo.save(subscription)

    # ==================== External sync ====================

    async def _apply_external(self, action: str, payload: dict) -> None:
        if action == ExternalSyncAction.UPDATE_PLAN.value:
            await self.provider.update_recurring_charge(
                payload["external_id"], payload["amount"], payload["interval"]
            )
        elif action == ExternalSyncAction.CANCEL_PLAN.value:
            await self.provider.cancel_recurring_charge(payload["external_id"])
        else:
            raise ValidationError(f"Unknown external sync action: {action}", action=action)

    async def _push_external(
        self,
        subscription: Subscription,
        action: ExternalSyncAction,
        payload: dict,
    ) -> bool:
        """Apply a provider-side change after the local commit.

        On provider failure the change is stored on the subscription for
        the reconciliation job instead of being dropped.

        Returns:
            True if the provider accepted the change
        """
        try:
            await self._apply_external(action.value, payload)
        except ExternalGatewayError as e:
            logger.error(
                f"Provider sync {action.value} failed for subscription {subscription.id}, "
                f"queued for reconciliation: {e}",
                exc_info=True,
            )
            if not subscription.external_sync_pending:
                EXTERNAL_SYNC_PENDING.inc()
            subscription.external_sync_pending = True
            subscription.external_sync_action = action.value
            subscription.external_sync_payload = payload
            subscription.external_sync_attempts = 0
            subscription.external_sync_error = str(e)
            await self.subscription_repo.save(subscription)
            return False

        if subscription.external_sync_pending:
            self._clear_external_sync(subscription)
            await self.subscription_repo.save(subscription)
        return True

    def _clear_external_sync(self, subscription: Subscription) -> None:
        if subscription.external_sync_pending:
            EXTERNAL_SYNC_PENDING.dec()
        subscription.external_sync_pending = False
        subscription.external_sync_action = None
        subscription.external_sync_payload = None
        subscription.external_sync_attempts = 0
        subscription.external_sync_error = None

    async def reconcile_external_sync(self, subscription: Subscription) -> bool:
        """Replay a pending provider-side change.

        Returns:
            True if the provider accepted the change
        """
        if not subscription.external_sync_pending:
            return True

        subscription.external_sync_attempts = (subscription.external_sync_attempts or 0) + 1
        try:
            await self._apply_external(
                subscription.external_sync_action, subscription.external_sync_payload or {}
            )
        except ExternalGatewayError as e:
            subscription.external_sync_error = str(e)
            await self.subscription_repo.save(subscription)
            if subscription.external_sync_attempts >= settings.EXTERNAL_SYNC_MAX_ATTEMPTS:
                logger.error(
                    f"Giving up provider sync {subscription.external_sync_action} for "
                    f"subscription {subscription.id} after "
                    f"{subscription.external_sync_attempts} attempts"
                )
            else:
                logger.warning(
                    f"Provider sync retry {subscription.external_sync_attempts} failed for "
                    f"subscription {subscription.id}: {e}"
                )
            return False

        logger.info(
            f"Provider sync {subscription.external_sync_action} applied for "
            f"subscription {subscription.id}"
        )
        self._clear_external_sync(subscription)
        await self.subscription_repo.save(subscription)
        return True
