"""Payment gateway adapter.

Wraps the payment provider for the billing core: creates pending payment
rows, verifies charges, requests refunds and prepares retries. A payment is
completed by one conditional UPDATE, so the renewal and the confirmation
notification run once per payment no matter how often verification is
repeated.
"""

import logging
import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from omihorizn.core.config import settings
from omihorizn.core.database import utcnow
from omihorizn.core.exceptions import (
    ConflictError,
    ExternalGatewayError,
    InvalidTransitionError,
    NotFoundError,
    RetryLimitExceededError,
    ValidationError,
)
from omihorizn.core.metrics import PAYMENTS_TOTAL
from omihorizn.modules.billing.models import Subscription
from omihorizn.modules.billing.notifications import BillingNotifier
from omihorizn.modules.billing.repository import SubscriptionRepository
from omihorizn.modules.billing.service import SubscriptionLedger
from omihorizn.modules.payment_gateway.gateways import get_payment_provider
from omihorizn.modules.payment_gateway.interface import (
    CustomerDetails,
    PaymentProviderInterface,
    TransactionVerification,
    to_major_units,
    to_minor_units,
)
from omihorizn.modules.payment_gateway.models import Payment, PaymentStatus, RefundStatus
from omihorizn.modules.payment_gateway.repository import PaymentRepository

logger = logging.getLogger(__name__)

REFUND_CANCELLATION_REASON = "refund_requested"


def build_reference(payment_id: uuid.UUID) -> str:
    """Reference token sent with the charge, e.g. ``omihorizn_<payment id>``."""
    return f"{settings.PAYMENT_REFERENCE_PREFIX}_{payment_id}"


def parse_reference(reference: Optional[str]) -> Optional[uuid.UUID]:
    """Extract the payment id from a reference token, if it is one of ours."""
    if not reference:
        return None
    prefix, _, raw_id = reference.partition("_")
    if prefix != settings.PAYMENT_REFERENCE_PREFIX or not raw_id:
        return None
    try:
        return uuid.UUID(raw_id)
    except ValueError:
        return None


class PaymentGatewayAdapter:
    """Payment lifecycle on top of a payment provider."""

    def __init__(
        self,
        session: AsyncSession,
        provider: Optional[PaymentProviderInterface] = None,
        notifier: Optional[BillingNotifier] = None,
    ):
        self.session = session
        self.payment_repo = PaymentRepository(session)
        self.subscription_repo = SubscriptionRepository(session)
        self.provider = provider or get_payment_provider()
        self.notifier = notifier or BillingNotifier()
        self.ledger = SubscriptionLedger(session, provider=self.provider, notifier=self.notifier)

    def get_public_credentials(self) -> dict:
        """Public key for client SDKs. The secret key never leaves the server."""
        return {"provider": self.provider.name, "public_key": self.provider.public_key}

    # ==================== Lookups ====================

    async def get_payment(
        self, payment_id: uuid.UUID, user_id: Optional[uuid.UUID] = None
    ) -> Payment:
        """Get a payment, optionally scoped to its owner.

        Raises:
            NotFoundError: If missing or owned by another user
        """
        payment = await self.payment_repo.get_by_id(payment_id)
        if payment is None or (user_id is not None and payment.user_id != user_id):
            raise NotFoundError("Payment not found", payment_id=str(payment_id))
        return payment

    async def list_user_payments(
        self, user_id: uuid.UUID, status: Optional[str] = None
    ) -> list[Payment]:
        if status is not None and status not in {s.value for s in PaymentStatus}:
            raise ValidationError(f"Invalid payment status: {status}", status=status)
        return await self.payment_repo.get_user_payments(user_id, status)

    # ==================== Create ====================

    def _charge_descriptor(self, payment: Payment, description: Optional[str] = None) -> dict:
        return {
            "payment_id": payment.id,
            "external_reference": payment.external_reference,
            "amount": str(to_major_units(payment.amount)),
            "currency": payment.currency,
            "customer": {
                "name": payment.billing_name or "",
                "email": payment.billing_email or "",
                "phone": payment.billing_phone or "",
            },
            "customizations": {
                "title": "OmiHorizn Subscription",
                "description": description or payment.description or "Subscription payment",
            },
            "meta": {"subscription_id": str(payment.subscription_id)},
        }

    async def create_payment_record(
        self,
        user_id: uuid.UUID,
        subscription_id: uuid.UUID,
        amount: int,
        currency: Optional[str] = None,
        description: Optional[str] = None,
        customer: Optional[CustomerDetails] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> dict:
        """Persist a pending payment and return the charge descriptor the
        client completes with the provider.

        Raises:
            ValidationError: If the amount is not positive
            NotFoundError: If the subscription is missing or not the user's
        """
        if amount <= 0:
            raise ValidationError("amount must be > 0", amount=amount)

        subscription = await self.subscription_repo.get_by_id(subscription_id)
        if subscription is None or subscription.user_id != user_id:
            raise NotFoundError("Subscription not found", subscription_id=str(subscription_id))

        customer = customer or CustomerDetails()
        payment_id = uuid.uuid4()
        payment = await self.payment_repo.create(
            id=payment_id,
            user_id=user_id,
            subscription_id=subscription_id,
            amount=amount,
            currency=(currency or subscription.currency or settings.DEFAULT_CURRENCY).upper(),
            description=description,
            status=PaymentStatus.PENDING.value,
            external_reference=build_reference(payment_id),
            billing_name=customer.name or subscription.billing_name,
            billing_email=customer.email or subscription.billing_email,
            billing_phone=customer.phone,
            ip_address=ip_address,
            user_agent=user_agent,
        )
        PAYMENTS_TOTAL.labels(outcome="created").inc()
        logger.info(f"Created payment {payment.id} for subscription {subscription_id}")
        return self._charge_descriptor(payment, description)

    # ==================== Verify ====================

    async def verify_payment(
        self,
        payment_id: uuid.UUID,
        external_transaction_id: str,
        now: Optional[datetime] = None,
    ) -> Payment:
        """Verify a charge with the provider and apply it.

        On success the payment is completed and the subscription renewed.
        On a provider error or an unsuccessful transaction the payment is
        marked failed and the subscription is left untouched, so the call
        is safe to repeat.

        Raises:
            NotFoundError: If the payment does not exist
            ConflictError: If the payment was refunded or completed by a
                different transaction
            ExternalGatewayError: If the provider could not be queried
        """
        now = now or utcnow()
        external_transaction_id = str(external_transaction_id)
        payment = await self.get_payment(payment_id)

        if payment.is_completed():
            if payment.external_transaction_id == external_transaction_id:
                logger.info(f"Payment {payment.id} already completed, skipping")
                return payment
            raise ConflictError(
                "Payment already completed by another transaction",
                payment_id=str(payment.id),
            )
        if payment.status == PaymentStatus.REFUNDED.value:
            raise ConflictError("Payment has been refunded", payment_id=str(payment.id))

        try:
            verification = await self.provider.verify_transaction(external_transaction_id)
        except ExternalGatewayError as e:
            await self._mark_failed(payment, external_status="verification_error", error=str(e))
            raise

        if verification.is_failed:
            return await self._mark_failed(payment, external_status=verification.status)

        if not verification.is_successful:
            payment.external_status = verification.status
            logger.info(f"Payment {payment.id} still {verification.status} at provider")
            return await self.payment_repo.save(payment)

        mismatch = self._amount_mismatch(payment, verification)
        if mismatch:
            return await self._mark_failed(
                payment, external_status=verification.status, error=mismatch
            )

        try:
            completed = await self.payment_repo.complete_once(
                payment.id,
                external_transaction_id=verification.transaction_id,
                external_status=verification.status,
                payment_method=verification.payment_method,
                card_brand=verification.card_brand,
                card_last4=verification.card_last4,
                payment_metadata=verification.meta or payment.payment_metadata,
                completed_at=now,
            )
        except IntegrityError:
            await self.session.rollback()
            raise ConflictError(
                "Transaction already applied to another payment",
                external_transaction_id=external_transaction_id,
            )

        await self.session.refresh(payment)
        if not completed:
            logger.info(f"Payment {payment.id} completed concurrently, skipping side effects")
            return payment

        PAYMENTS_TOTAL.labels(outcome="completed").inc()
        subscription = await self.ledger.renewal_pass(payment.subscription_id, payment, now=now)
        await self._register_recurring_charge(subscription, payment, verification)
        await self.notifier.notify_payment_success(
            payment.user_id,
            payment.billing_email or subscription.billing_email,
            payment.id,
            payment.amount,
            payment.currency,
            subscription.tier,
            subscription.renewal_date,
        )
        return payment

    def _amount_mismatch(
        self, payment: Payment, verification: TransactionVerification
    ) -> Optional[str]:
        reported = to_minor_units(verification.amount)
        if reported != payment.amount:
            return f"amount mismatch: expected {payment.amount}, provider reported {reported}"
        if verification.currency and verification.currency != payment.currency.upper():
            return (
                f"currency mismatch: expected {payment.currency}, "
                f"provider reported {verification.currency}"
            )
        return None

    async def _mark_failed(
        self,
        payment: Payment,
        external_status: Optional[str],
        error: Optional[str] = None,
    ) -> Payment:
        payment.status = PaymentStatus.FAILED.value
        payment.external_status = external_status
        if error:
            metadata = dict(payment.payment_metadata or {})
            metadata["failure_reason"] = error
            payment.payment_metadata = metadata
        payment = await self.payment_repo.save(payment)
        await self.ledger.record_failed_payment(payment.subscription_id)
        PAYMENTS_TOTAL.labels(outcome="failed").inc()
        logger.warning(f"Payment {payment.id} failed ({external_status}) {error or ''}".rstrip())
        return payment

    async def _register_recurring_charge(
        self,
        subscription: Subscription,
        payment: Payment,
        verification: TransactionVerification,
    ) -> None:
        """Set up provider-side recurring billing after the first charge."""
        if subscription.external_recurring_charge_id or not verification.authorization_code:
            return
        try:
            result = await self.provider.create_recurring_charge(
                customer=CustomerDetails(
                    name=payment.billing_name,
                    email=payment.billing_email,
                    phone=payment.billing_phone,
                ),
                amount=payment.amount,
                currency=payment.currency,
                interval=subscription.billing_cycle,
                authorization_code=verification.authorization_code,
                reference=verification.reference or payment.external_reference,
                meta={"subscription_id": str(subscription.id)},
            )
        except ExternalGatewayError as e:
            logger.error(
                f"Failed to create recurring charge for subscription {subscription.id}: {e}"
            )
            return

        subscription.external_recurring_charge_id = result.external_id
        await self.subscription_repo.save(subscription)
        logger.info(
            f"Registered recurring charge {result.external_id} for subscription {subscription.id}"
        )

    # ==================== Refund / retry ====================

    async def request_refund(
        self, payment_id: uuid.UUID, reason: str = "", user_id: Optional[uuid.UUID] = None
    ) -> Payment:
        """Request a refund and cancel the owning subscription.

        The cancellation happens as soon as the provider accepts the refund
        request, before the refund settles.

        Raises:
            NotFoundError: If the payment does not exist
            ConflictError: If the payment is not completed or already refunded
            ExternalGatewayError: If the provider rejects the refund
        """
        payment = await self.get_payment(payment_id, user_id)
        if not payment.is_completed():
            raise ConflictError(
                "Only completed payments can be refunded", status=payment.status
            )
        if payment.has_refund():
            raise ConflictError(
                "This payment has already been refunded or refund is pending",
                refund_status=payment.refund_status,
            )
        if not payment.external_transaction_id:
            raise ConflictError("Payment has no provider transaction to refund")

        result = await self.provider.refund_transaction(payment.external_transaction_id)

        payment.refund_status = RefundStatus.PENDING_REFUND.value
        payment.refund_requested_at = utcnow()
        payment.refund_reason = reason
        payment.refund_external_id = result.refund_id
        payment = await self.payment_repo.save(payment)
        PAYMENTS_TOTAL.labels(outcome="refund_requested").inc()
        logger.info(f"Refund requested for payment {payment.id}")

        try:
            await self.ledger.cancel(payment.subscription_id, reason=REFUND_CANCELLATION_REASON)
        except InvalidTransitionError as e:
            logger.info(f"Subscription {payment.subscription_id} not cancelled on refund: {e}")

        await self.notifier.notify_refund_initiated(
            payment.user_id, payment.billing_email, payment.id, payment.amount, payment.currency
        )
        return payment

    async def mark_refunded(
        self,
        payment: Payment,
        refund_amount: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> Payment:
        """Record a settled refund reported by the provider."""
        payment.status = PaymentStatus.REFUNDED.value
        payment.refund_status = RefundStatus.REFUNDED.value
        payment.refunded_at = now or utcnow()
        payment.refund_amount = refund_amount if refund_amount is not None else payment.amount
        payment = await self.payment_repo.save(payment)
        PAYMENTS_TOTAL.labels(outcome="refunded").inc()
        logger.info(f"Payment {payment.id} refunded ({payment.refund_amount})")
        return payment

    async def retry_payment(
        self, payment_id: uuid.UUID, user_id: Optional[uuid.UUID] = None
    ) -> dict:
        """Reset a payment to pending and return a fresh charge descriptor.

        Raises:
            NotFoundError: If the payment does not exist
            ConflictError: If the payment is completed or refunded
            RetryLimitExceededError: After PAYMENT_MAX_RETRIES retries
        """
        payment = await self.get_payment(payment_id, user_id)
        if payment.is_completed():
            raise ConflictError("This payment has already been completed")
        if payment.status == PaymentStatus.REFUNDED.value:
            raise ConflictError("This payment has been refunded")
        if payment.retry_count >= settings.PAYMENT_MAX_RETRIES:
            raise RetryLimitExceededError(
                f"Maximum retry attempts ({settings.PAYMENT_MAX_RETRIES}) reached for this payment",
                retry_count=payment.retry_count,
            )

        payment.retry_count += 1
        payment.status = PaymentStatus.PENDING.value
        payment.last_retry_at = utcnow()
        payment = await self.payment_repo.save(payment)
        logger.info(f"Payment {payment.id} reset for retry {payment.retry_count}")

        descriptor = self._charge_descriptor(payment)
        descriptor["retry_count"] = payment.retry_count
        return descriptor

    # ==================== Receipt ====================

    async def generate_receipt(
        self, payment_id: uuid.UUID, user_id: Optional[uuid.UUID] = None
    ) -> dict:
        """Receipt for a completed payment.

        Raises:
            NotFoundError: If the payment does not exist
            ConflictError: If the payment is not completed
        """
        payment = await self.get_payment(payment_id, user_id)
        if not payment.is_completed():
            raise ConflictError("Only completed payments have receipts", status=payment.status)

        subscription = await self.subscription_repo.get_by_id(payment.subscription_id)
        return {
            "receipt_number": f"RCP-{payment.id.hex[-8:].upper()}",
            "transaction_date": payment.completed_at,
            "payment_id": payment.id,
            "external_transaction_id": payment.external_transaction_id,
            "customer": {
                "name": payment.billing_name,
                "email": payment.billing_email,
                "phone": payment.billing_phone,
            },
            "subscription": {
                "tier": subscription.tier if subscription else None,
                "billing_cycle": subscription.billing_cycle if subscription else None,
                "renewal_date": subscription.renewal_date if subscription else None,
            },
            "amount": {
                "subtotal": payment.amount,
                "currency": payment.currency,
                "formatted": f"{payment.currency} {to_major_units(payment.amount)}",
            },
            "payment_method": {
                "type": payment.payment_method,
                "brand": payment.card_brand,
                "last4": payment.card_last4,
            },
            "status": payment.status,
            "description": payment.description or "Subscription Payment",
        }
