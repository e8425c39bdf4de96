"""Shared fixtures for the billing core tests.

Each test gets its own SQLite database file built from the ORM metadata,
a mocked payment provider and a notifier whose sender records calls.
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./omihorizn_test.db")
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/15")
os.environ.setdefault("SECRET_KEY", "test-secret-key-for-billing-tests")
os.environ.setdefault("FLUTTERWAVE_PUBLIC_KEY", "FLWPUBK_TEST-public")
os.environ.setdefault("FLUTTERWAVE_SECRET_KEY", "FLWSECK_TEST-secret")
os.environ.setdefault("FLUTTERWAVE_WEBHOOK_HASH", "test-webhook-hash")
os.environ.setdefault("NOTIFICATION_BACKEND", "log")

import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from omihorizn.core.database import Base
from omihorizn.modules.billing.models import Subscription  # noqa: F401
from omihorizn.modules.billing.notifications import BillingNotifier
from omihorizn.modules.billing.service import SubscriptionLedger
from omihorizn.modules.entitlement.models import PremiumFeature  # noqa: F401
from omihorizn.modules.entitlement.service import FeatureEntitlementResolver
from omihorizn.modules.notification.service import NotificationSender
from omihorizn.modules.payment_gateway.interface import (
    RecurringChargeResult,
    RefundResult,
    TransactionVerification,
)
from omihorizn.modules.payment_gateway.models import Payment  # noqa: F401
from omihorizn.modules.payment_gateway.service import PaymentGatewayAdapter
from omihorizn.modules.usage.models import PremiumFeatureUsage  # noqa: F401


def make_verification(
    transaction_id: str = "tx-1001",
    status: str = "successful",
    amount: str = "24.99",
    currency: str = "EUR",
    authorization_code: Optional[str] = None,
) -> TransactionVerification:
    return TransactionVerification(
        transaction_id=transaction_id,
        status=status,
        amount=Decimal(amount),
        currency=currency,
        payment_method="card",
        card_brand="VISA",
        card_last4="4242",
        authorization_code=authorization_code,
    )


@pytest.fixture
def verification_factory():
    return make_verification


@pytest.fixture
def now() -> datetime:
    return datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def user_id() -> uuid.UUID:
    return uuid.uuid4()


@pytest.fixture
async def engine(tmp_path):
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'billing.db'}",
        poolclass=NullPool,
        connect_args={"timeout": 30},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
async def seeded(session) -> int:
    """Default feature catalog loaded into the test database."""
    return await FeatureEntitlementResolver(session).seed_default_features()


@pytest.fixture
def provider() -> MagicMock:
    provider = MagicMock()
    provider.name = "flutterwave"
    provider.public_key = "FLWPUBK_TEST-public"
    provider.verify_transaction = AsyncMock(return_value=make_verification())
    provider.refund_transaction = AsyncMock(
        return_value=RefundResult(refund_id="rf-1", status="pending")
    )
    provider.create_recurring_charge = AsyncMock(
        return_value=RecurringChargeResult(external_id="plan-1", status="active")
    )
    provider.update_recurring_charge = AsyncMock(
        return_value=RecurringChargeResult(external_id="plan-1", status="active")
    )
    provider.cancel_recurring_charge = AsyncMock(
        return_value=RecurringChargeResult(external_id="plan-1", status="cancelled")
    )
    provider.verify_webhook_signature = MagicMock(return_value=True)
    return provider


@pytest.fixture
def sender() -> MagicMock:
    sender = MagicMock(spec=NotificationSender)
    sender.send = AsyncMock(return_value=None)
    return sender


@pytest.fixture
def notifier(sender) -> BillingNotifier:
    return BillingNotifier(sender=sender)


@pytest.fixture
def ledger(session, provider, notifier) -> SubscriptionLedger:
    return SubscriptionLedger(session, provider=provider, notifier=notifier)


@pytest.fixture
def adapter(session, provider, notifier) -> PaymentGatewayAdapter:
    return PaymentGatewayAdapter(session, provider=provider, notifier=notifier)


def sent_events(sender: MagicMock, event_type: str) -> list:
    """Calls made to the notification sender for one event type."""
    return [
        call for call in sender.send.await_args_list
        if call.kwargs.get("event_type") == event_type
    ]


@pytest.fixture
def events():
    return sent_events
