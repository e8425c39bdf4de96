"""Inbound payment provider webhooks.

Deliveries are at-least-once and may arrive out of order. Every handler
is idempotent: a repeated event finds the payment already completed (or
the subscription already cancelled) and does nothing.
"""

import logging
import uuid
from decimal import InvalidOperation
from typing import Any, Mapping, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from omihorizn.core.exceptions import (
    InvalidTransitionError,
    SignatureError,
    ValidationError,
)
from omihorizn.core.metrics import WEBHOOK_EVENTS_TOTAL
from omihorizn.modules.billing.models import Subscription, SubscriptionStatus
from omihorizn.modules.billing.notifications import BillingNotifier
from omihorizn.modules.billing.repository import SubscriptionRepository
from omihorizn.modules.payment_gateway.gateways import get_payment_provider
from omihorizn.modules.payment_gateway.interface import (
    PaymentProviderInterface,
    to_minor_units,
)
from omihorizn.modules.payment_gateway.models import Payment, PaymentStatus, RefundStatus
from omihorizn.modules.payment_gateway.repository import PaymentRepository
from omihorizn.modules.payment_gateway.service import PaymentGatewayAdapter, parse_reference

logger = logging.getLogger(__name__)

CHARGE_EVENTS = frozenset({"charge.completed", "subscription.charged"})
SUBSCRIPTION_CANCELLED = "subscription.cancelled"
REFUND_COMPLETED = "refund.completed"
PROVIDER_CANCELLATION_REASON = "provider_cancelled"


class WebhookReconciler:
    """Maps provider events onto payment and subscription changes."""

    def __init__(
        self,
        session: AsyncSession,
        provider: Optional[PaymentProviderInterface] = None,
        notifier: Optional[BillingNotifier] = None,
    ):
        self.session = session
        self.provider = provider or get_payment_provider()
        self.adapter = PaymentGatewayAdapter(session, provider=self.provider, notifier=notifier)
        self.payment_repo = PaymentRepository(session)
        self.subscription_repo = SubscriptionRepository(session)

    async def handle_event(self, headers: Mapping[str, str], body: Any) -> dict:
        """Authenticate and apply one webhook delivery.

        The signature is checked before anything is looked up.

        Raises:
            SignatureError: If the signature header is missing or wrong
            ValidationError: If the body is malformed
            ExternalGatewayError: If verification with the provider fails,
                so the provider redelivers
        """
        if not self.provider.verify_webhook_signature(headers):
            WEBHOOK_EVENTS_TOTAL.labels(event="unknown", outcome="rejected").inc()
            logger.warning("Rejected webhook with invalid signature")
            raise SignatureError("Invalid webhook signature")

        if not isinstance(body, dict):
            raise ValidationError("Webhook body must be a JSON object")
        event = body.get("event")
        data = body.get("data")
        if not event or not isinstance(data, dict):
            raise ValidationError("Webhook body requires 'event' and 'data'")

        if event in CHARGE_EVENTS:
            result = await self._handle_charge(data)
        elif event == SUBSCRIPTION_CANCELLED:
            result = await self._handle_subscription_cancelled(data)
        elif event == REFUND_COMPLETED:
            result = await self._handle_refund_completed(data)
        else:
            logger.info(f"Ignoring webhook event {event}")
            result = {"status": "ignored"}

        WEBHOOK_EVENTS_TOTAL.labels(event=event, outcome=result["status"]).inc()
        return {"success": True, "event": event, **result}

    # ==================== Charges ====================

    async def _handle_charge(self, data: dict) -> dict:
        transaction_id = data.get("id")
        if transaction_id is None:
            raise ValidationError("Charge event is missing the transaction id")
        transaction_id = str(transaction_id)

        payment, matched = await self._find_payment(transaction_id, data.get("tx_ref"))
        if payment is None:
            fallback = matched.subscription_id if matched is not None else None
            payment = await self._create_recurring_payment(transaction_id, data, fallback)
        if payment is None:
            logger.warning(f"No payment or subscription matches transaction {transaction_id}")
            return {"status": "unmatched"}

        # A refunded payment stays settled; redelivery must not verify it again
        if payment.external_transaction_id == transaction_id and payment.status in (
            PaymentStatus.COMPLETED.value,
            PaymentStatus.REFUNDED.value,
        ):
            logger.info(f"Duplicate charge event for payment {payment.id}")
            return {"status": "duplicate", "payment_id": str(payment.id)}

        payment = await self.adapter.verify_payment(payment.id, transaction_id)
        return {"status": payment.status, "payment_id": str(payment.id)}

    async def _find_payment(
        self, transaction_id: str, reference: Optional[str]
    ) -> tuple[Optional[Payment], Optional[Payment]]:
        """Return the payment this charge settles, plus any payment its tx_ref names.

        Recurring charges reuse the first payment's tx_ref, so a reference
        match that was already settled by another transaction is not this
        charge. It is still returned so its subscription can be reused.
        """
        payment = await self.payment_repo.get_by_external_transaction_id(transaction_id)
        if payment is not None:
            return payment, payment
        payment_id = parse_reference(reference)
        if payment_id is None:
            return None, None
        matched = await self.payment_repo.get_by_id(payment_id)
        if matched is None:
            return None, None
        settled = matched.is_completed() or matched.status == PaymentStatus.REFUNDED.value
        if not settled and matched.external_transaction_id in (None, transaction_id):
            return matched, matched
        return None, matched

    async def _find_subscription(
        self, data: dict, fallback_id: Optional[uuid.UUID] = None
    ) -> Optional[Subscription]:
        meta = data.get("meta") or {}
        raw_id = meta.get("subscription_id") or meta.get("subscriptionId")
        if raw_id:
            try:
                subscription = await self.subscription_repo.get_by_id(uuid.UUID(str(raw_id)))
            except ValueError:
                subscription = None
            if subscription is not None:
                return subscription

        plan_id = data.get("payment_plan") or data.get("plan")
        if plan_id:
            subscription = await self.subscription_repo.get_by_external_recurring_charge_id(
                str(plan_id)
            )
            if subscription is not None:
                return subscription

        if fallback_id is not None:
            return await self.subscription_repo.get_by_id(fallback_id)
        return None

    async def _create_recurring_payment(
        self,
        transaction_id: str,
        data: dict,
        fallback_subscription_id: Optional[uuid.UUID] = None,
    ) -> Optional[Payment]:
        """Create the payment row for a provider-initiated recurring charge."""
        subscription = await self._find_subscription(data, fallback_subscription_id)
        if subscription is None:
            return None

        raw_amount = data.get("amount")
        try:
            amount = to_minor_units(raw_amount)
        except (InvalidOperation, TypeError, ValueError):
            raise ValidationError(
                "Recurring charge has an invalid amount",
                transaction_id=transaction_id,
                amount=raw_amount,
            )
        if amount <= 0:
            raise ValidationError(
                "Recurring charge has an invalid amount",
                transaction_id=transaction_id,
                amount=raw_amount,
            )

        customer = data.get("customer") or {}
        try:
            payment = await self.payment_repo.create(
                user_id=subscription.user_id,
                subscription_id=subscription.id,
                amount=amount,
                currency=str(data.get("currency") or subscription.currency).upper(),
                description=data.get("narration") or "Recurring subscription charge",
                status=PaymentStatus.PENDING.value,
                external_transaction_id=transaction_id,
                external_reference=data.get("tx_ref"),
                billing_name=customer.get("name"),
                billing_email=customer.get("email") or subscription.billing_email,
                billing_phone=customer.get("phone_number"),
                payment_metadata=data,
            )
        except IntegrityError:
            # A concurrent delivery of the same event created it first
            await self.session.rollback()
            return await self.payment_repo.get_by_external_transaction_id(transaction_id)

        logger.info(f"Created recurring payment {payment.id} for subscription {subscription.id}")
        return payment

    # ==================== Subscription / refund events ====================

    async def _handle_subscription_cancelled(self, data: dict) -> dict:
        external_id = data.get("id")
        if external_id is None:
            raise ValidationError("Cancellation event is missing the subscription id")

        subscription = await self.subscription_repo.get_by_external_recurring_charge_id(
            str(external_id)
        )
        if subscription is None:
            logger.warning(f"No subscription for recurring charge {external_id}")
            return {"status": "unmatched"}
        if subscription.status == SubscriptionStatus.CANCELLED.value:
            return {"status": "duplicate", "subscription_id": str(subscription.id)}

        try:
            await self.adapter.ledger.cancel(
                subscription.id,
                reason=PROVIDER_CANCELLATION_REASON,
                sync_external=False,
            )
        except InvalidTransitionError as e:
            logger.info(f"Ignoring provider cancellation of subscription {subscription.id}: {e}")
            return {"status": "ignored", "subscription_id": str(subscription.id)}
        return {"status": "cancelled", "subscription_id": str(subscription.id)}

    async def _handle_refund_completed(self, data: dict) -> dict:
        payment = None
        transaction_id = data.get("tx_id") or data.get("transaction_id")
        if transaction_id is not None:
            payment = await self.payment_repo.get_by_external_transaction_id(str(transaction_id))
        if payment is None and data.get("id") is not None:
            payment = await self.payment_repo.get_by_refund_external_id(str(data["id"]))
        if payment is None:
            logger.warning(f"No payment matches refund event {data.get('id')}")
            return {"status": "unmatched"}
        if payment.refund_status == RefundStatus.REFUNDED.value:
            return {"status": "duplicate", "payment_id": str(payment.id)}

        amount = data.get("amount_refunded", data.get("amount"))
        payment = await self.adapter.mark_refunded(
            payment,
            refund_amount=to_minor_units(amount) if amount is not None else None,
        )
        return {"status": "refunded", "payment_id": str(payment.id)}
