"""Tests for payment creation, verification, refunds, retries and receipts."""

from datetime import datetime, timezone

import pytest

from omihorizn.core.exceptions import (
    ConflictError,
    ExternalGatewayError,
    NotFoundError,
    RetryLimitExceededError,
    ValidationError,
)
from omihorizn.modules.billing.models import SubscriptionStatus
from omihorizn.modules.payment_gateway.interface import CustomerDetails
from omihorizn.modules.payment_gateway.models import PaymentStatus, RefundStatus
from omihorizn.modules.payment_gateway.service import build_reference, parse_reference


async def create_paid_subscription(ledger, adapter, user_id, now):
    subscription = await ledger.create(
        user_id,
        tier="premium",
        amount=2499,
        billing_email="student@example.com",
        billing_name="Ada Student",
        now=now,
    )
    descriptor = await adapter.create_payment_record(user_id, subscription.id, 2499)
    return subscription, descriptor["payment_id"]


class TestReferences:

    def test_reference_round_trip(self) -> None:
        import uuid

        payment_id = uuid.uuid4()
        assert parse_reference(build_reference(payment_id)) == payment_id

    @pytest.mark.parametrize("reference", [None, "", "other_123", "omihorizn_not-a-uuid", "omihorizn_"])
    def test_foreign_references_are_ignored(self, reference) -> None:
        assert parse_reference(reference) is None


class TestCreatePaymentRecord:

    @pytest.mark.asyncio
    async def test_descriptor_carries_major_units_and_metadata(
        self, seeded, ledger, adapter, user_id, now
    ) -> None:
        subscription = await ledger.create(
            user_id, tier="premium", amount=2499, billing_email="student@example.com", now=now
        )

        descriptor = await adapter.create_payment_record(
            user_id,
            subscription.id,
            2499,
            description="Premium monthly",
            customer=CustomerDetails(name="Ada Student", phone="+4912345"),
        )

        assert descriptor["amount"] == "24.99"
        assert descriptor["currency"] == "EUR"
        assert descriptor["external_reference"] == build_reference(descriptor["payment_id"])
        assert descriptor["customer"] == {
            "name": "Ada Student",
            "email": "student@example.com",
            "phone": "+4912345",
        }
        assert descriptor["meta"] == {"subscription_id": str(subscription.id)}

        payment = await adapter.get_payment(descriptor["payment_id"])
        assert payment.status == PaymentStatus.PENDING.value
        assert payment.amount == 2499

    @pytest.mark.asyncio
    async def test_non_positive_amount_is_rejected(self, seeded, ledger, adapter, user_id) -> None:
        subscription = await ledger.create(user_id)

        with pytest.raises(ValidationError):
            await adapter.create_payment_record(user_id, subscription.id, 0)

    @pytest.mark.asyncio
    async def test_other_users_subscription_is_not_found(self, seeded, ledger, adapter, user_id) -> None:
        import uuid

        subscription = await ledger.create(user_id)

        with pytest.raises(NotFoundError):
            await adapter.create_payment_record(uuid.uuid4(), subscription.id, 2499)

    def test_public_credentials_exclude_secret(self, adapter) -> None:
        assert adapter.get_public_credentials() == {
            "provider": "flutterwave",
            "public_key": "FLWPUBK_TEST-public",
        }


class TestVerifyPayment:

    @pytest.mark.asyncio
    async def test_verify_extends_renewal_by_one_cycle(
        self, seeded, ledger, adapter, sender, events, user_id, now
    ) -> None:
        subscription, payment_id = await create_paid_subscription(ledger, adapter, user_id, now)
        assert subscription.renewal_date == datetime(2026, 2, 15, 12, 0, tzinfo=timezone.utc)

        payment = await adapter.verify_payment(
            payment_id, "tx-1001", now=datetime(2026, 1, 20, tzinfo=timezone.utc)
        )

        assert payment.status == PaymentStatus.COMPLETED.value
        assert payment.external_transaction_id == "tx-1001"
        assert payment.card_last4 == "4242"
        assert payment.completed_at == datetime(2026, 1, 20, tzinfo=timezone.utc)

        renewed = await ledger.get_by_id(subscription.id)
        assert renewed.renewal_date == datetime(2026, 3, 15, 12, 0, tzinfo=timezone.utc)
        assert renewed.last_payment_id == payment.id
        assert len(events(sender, "payment.success")) == 1

    @pytest.mark.asyncio
    async def test_late_payment_counts_from_now(self, seeded, ledger, adapter, user_id, now) -> None:
        subscription, payment_id = await create_paid_subscription(ledger, adapter, user_id, now)
        late = datetime(2026, 2, 20, 9, 30, tzinfo=timezone.utc)

        await adapter.verify_payment(payment_id, "tx-1001", now=late)

        renewed = await ledger.get_by_id(subscription.id)
        assert renewed.renewal_date == datetime(2026, 3, 20, 9, 30, tzinfo=timezone.utc)

    @pytest.mark.asyncio
    async def test_repeated_verification_applies_once(
        self, seeded, ledger, adapter, provider, sender, events, user_id, now
    ) -> None:
        subscription, payment_id = await create_paid_subscription(ledger, adapter, user_id, now)

        await adapter.verify_payment(payment_id, "tx-1001", now=now)
        again = await adapter.verify_payment(payment_id, "tx-1001", now=now)

        assert again.status == PaymentStatus.COMPLETED.value
        renewed = await ledger.get_by_id(subscription.id)
        assert renewed.renewal_date == datetime(2026, 3, 15, 12, 0, tzinfo=timezone.utc)
        assert provider.verify_transaction.await_count == 1
        assert len(events(sender, "payment.success")) == 1

    @pytest.mark.asyncio
    async def test_completed_payment_rejects_other_transaction(
        self, seeded, ledger, adapter, user_id, now
    ) -> None:
        _, payment_id = await create_paid_subscription(ledger, adapter, user_id, now)
        await adapter.verify_payment(payment_id, "tx-1001", now=now)

        with pytest.raises(ConflictError):
            await adapter.verify_payment(payment_id, "tx-9999", now=now)

    @pytest.mark.asyncio
    async def test_amount_mismatch_fails_payment(
        self, session, seeded, ledger, adapter, provider, verification_factory, user_id, now
    ) -> None:
        subscription, payment_id = await create_paid_subscription(ledger, adapter, user_id, now)
        provider.verify_transaction.return_value = verification_factory(amount="19.99")

        payment = await adapter.verify_payment(payment_id, "tx-1001", now=now)

        assert payment.status == PaymentStatus.FAILED.value
        assert "amount mismatch" in payment.payment_metadata["failure_reason"]
        await session.refresh(subscription)
        assert subscription.renewal_date == datetime(2026, 2, 15, 12, 0, tzinfo=timezone.utc)
        assert subscription.failed_payment_attempts == 1

    @pytest.mark.asyncio
    async def test_failed_transaction_marks_payment_failed(
        self, seeded, ledger, adapter, provider, verification_factory, user_id, now
    ) -> None:
        _, payment_id = await create_paid_subscription(ledger, adapter, user_id, now)
        provider.verify_transaction.return_value = verification_factory(status="failed")

        payment = await adapter.verify_payment(payment_id, "tx-1001", now=now)

        assert payment.status == PaymentStatus.FAILED.value
        assert payment.external_status == "failed"

    @pytest.mark.asyncio
    async def test_pending_transaction_stays_pending(
        self, seeded, ledger, adapter, provider, verification_factory, user_id, now
    ) -> None:
        _, payment_id = await create_paid_subscription(ledger, adapter, user_id, now)
        provider.verify_transaction.return_value = verification_factory(status="pending")

        payment = await adapter.verify_payment(payment_id, "tx-1001", now=now)

        assert payment.status == PaymentStatus.PENDING.value
        assert payment.external_status == "pending"

    @pytest.mark.asyncio
    async def test_gateway_error_is_raised_and_payment_failed(
        self, seeded, ledger, adapter, provider, user_id, now
    ) -> None:
        _, payment_id = await create_paid_subscription(ledger, adapter, user_id, now)
        provider.verify_transaction.side_effect = ExternalGatewayError("timeout")

        with pytest.raises(ExternalGatewayError):
            await adapter.verify_payment(payment_id, "tx-1001", now=now)

        payment = await adapter.get_payment(payment_id)
        assert payment.status == PaymentStatus.FAILED.value
        assert payment.external_status == "verification_error"

    @pytest.mark.asyncio
    async def test_authorization_registers_recurring_charge(
        self, seeded, ledger, adapter, provider, verification_factory, user_id, now
    ) -> None:
        subscription, payment_id = await create_paid_subscription(ledger, adapter, user_id, now)
        provider.verify_transaction.return_value = verification_factory(authorization_code="AUTH_1")

        await adapter.verify_payment(payment_id, "tx-1001", now=now)

        provider.create_recurring_charge.assert_awaited_once()
        assert provider.create_recurring_charge.await_args.kwargs["interval"] == "monthly"
        renewed = await ledger.get_by_id(subscription.id)
        assert renewed.external_recurring_charge_id == "plan-1"

    @pytest.mark.asyncio
    async def test_payment_reactivates_cancelled_subscription(
        self, seeded, ledger, adapter, user_id, now
    ) -> None:
        subscription, payment_id = await create_paid_subscription(ledger, adapter, user_id, now)
        await ledger.cancel(subscription.id, reason="too_expensive", now=now)

        await adapter.verify_payment(payment_id, "tx-1001", now=now)

        renewed = await ledger.get_by_id(subscription.id)
        assert renewed.status == SubscriptionStatus.ACTIVE.value
        assert renewed.cancelled_at is None
        assert renewed.auto_renew is True


class TestRefund:

    @pytest.mark.asyncio
    async def test_pending_payment_cannot_be_refunded(self, seeded, ledger, adapter, user_id, now) -> None:
        _, payment_id = await create_paid_subscription(ledger, adapter, user_id, now)

        with pytest.raises(ConflictError):
            await adapter.request_refund(payment_id)

    @pytest.mark.asyncio
    async def test_refund_cancels_subscription(
        self, seeded, ledger, adapter, provider, sender, events, user_id, now
    ) -> None:
        subscription, payment_id = await create_paid_subscription(ledger, adapter, user_id, now)
        await adapter.verify_payment(payment_id, "tx-1001", now=now)

        payment = await adapter.request_refund(payment_id, reason="changed my mind")

        assert payment.refund_status == RefundStatus.PENDING_REFUND.value
        assert payment.refund_external_id == "rf-1"
        assert payment.status == PaymentStatus.COMPLETED.value
        provider.refund_transaction.assert_awaited_once_with("tx-1001")

        cancelled = await ledger.get_by_id(subscription.id)
        assert cancelled.status == SubscriptionStatus.CANCELLED.value
        assert cancelled.cancellation_reason == "refund_requested"
        assert len(events(sender, "payment.refund_initiated")) == 1

    @pytest.mark.asyncio
    async def test_second_refund_conflicts(self, seeded, ledger, adapter, user_id, now) -> None:
        _, payment_id = await create_paid_subscription(ledger, adapter, user_id, now)
        await adapter.verify_payment(payment_id, "tx-1001", now=now)
        await adapter.request_refund(payment_id)

        with pytest.raises(ConflictError):
            await adapter.request_refund(payment_id)

    @pytest.mark.asyncio
    async def test_refund_scoped_to_owner(self, seeded, ledger, adapter, user_id, now) -> None:
        import uuid

        _, payment_id = await create_paid_subscription(ledger, adapter, user_id, now)
        await adapter.verify_payment(payment_id, "tx-1001", now=now)

        with pytest.raises(NotFoundError):
            await adapter.request_refund(payment_id, user_id=uuid.uuid4())


class TestRetry:

    @pytest.mark.asyncio
    async def test_retry_limit(self, seeded, ledger, adapter, provider, verification_factory, user_id, now) -> None:
        _, payment_id = await create_paid_subscription(ledger, adapter, user_id, now)
        provider.verify_transaction.return_value = verification_factory(status="failed")
        await adapter.verify_payment(payment_id, "tx-1001", now=now)

        for expected in (1, 2, 3):
            descriptor = await adapter.retry_payment(payment_id)
            assert descriptor["retry_count"] == expected

        payment = await adapter.get_payment(payment_id)
        assert payment.status == PaymentStatus.PENDING.value

        with pytest.raises(RetryLimitExceededError):
            await adapter.retry_payment(payment_id)

    @pytest.mark.asyncio
    async def test_completed_payment_cannot_be_retried(self, seeded, ledger, adapter, user_id, now) -> None:
        _, payment_id = await create_paid_subscription(ledger, adapter, user_id, now)
        await adapter.verify_payment(payment_id, "tx-1001", now=now)

        with pytest.raises(ConflictError):
            await adapter.retry_payment(payment_id)


class TestReceipt:

    @pytest.mark.asyncio
    async def test_pending_payment_has_no_receipt(self, seeded, ledger, adapter, user_id, now) -> None:
        _, payment_id = await create_paid_subscription(ledger, adapter, user_id, now)

        with pytest.raises(ConflictError):
            await adapter.generate_receipt(payment_id)

    @pytest.mark.asyncio
    async def test_receipt_for_completed_payment(self, seeded, ledger, adapter, user_id, now) -> None:
        _, payment_id = await create_paid_subscription(ledger, adapter, user_id, now)
        await adapter.verify_payment(payment_id, "tx-1001", now=now)

        receipt = await adapter.generate_receipt(payment_id, user_id=user_id)

        assert receipt["receipt_number"] == f"RCP-{payment_id.hex[-8:].upper()}"
        assert receipt["amount"]["formatted"] == "EUR 24.99"
        assert receipt["subscription"]["tier"] == "premium"
        assert receipt["payment_method"]["last4"] == "4242"
        assert receipt["customer"]["email"] == "student@example.com"
