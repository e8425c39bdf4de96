"""Tests for notification senders and the billing notifier."""

import uuid
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from omihorizn.modules.billing.notifications import BillingNotifier, format_amount
from omihorizn.modules.notification import tasks as notification_tasks
from omihorizn.modules.notification.channels import EmailChannel
from omihorizn.modules.notification.service import (
    CeleryEmailSender,
    LoggingSender,
    NotificationSender,
    get_notification_sender,
)


class TestSenders:

    def test_log_backend_selected_in_tests(self) -> None:
        assert isinstance(get_notification_sender(), LoggingSender)

    @pytest.mark.asyncio
    async def test_celery_sender_queues_email(self) -> None:
        user_id = uuid.uuid4()
        with patch.object(notification_tasks.send_email_notification, "delay") as delay:
            await CeleryEmailSender().send(
                user_id=user_id,
                recipient="student@example.com",
                event_type="payment.success",
                title="Payment Confirmation",
                message="Thanks",
            )

        delay.assert_called_once_with(
            recipient="student@example.com",
            title="Payment Confirmation",
            message="Thanks",
            event_type="payment.success",
            user_id=str(user_id),
        )

    @pytest.mark.asyncio
    async def test_celery_sender_skips_missing_recipient(self) -> None:
        with patch.object(notification_tasks.send_email_notification, "delay") as delay:
            await CeleryEmailSender().send(
                user_id=uuid.uuid4(),
                recipient=None,
                event_type="payment.success",
                title="t",
                message="m",
            )

        delay.assert_not_called()

    @pytest.mark.asyncio
    async def test_email_channel_reports_missing_smtp(self) -> None:
        result = await EmailChannel().deliver("student@example.com", "t", "m")

        assert result.success is False
        assert result.error == "SMTP not configured"


class TestBillingNotifier:

    @pytest.mark.asyncio
    async def test_sender_failure_is_not_raised(self) -> None:
        sender = MagicMock(spec=NotificationSender)
        sender.send = AsyncMock(side_effect=RuntimeError("broker down"))

        sent = await BillingNotifier(sender).notify_subscription_cancelled(
            uuid.uuid4(), "student@example.com", "premium", "too_expensive"
        )

        assert sent is False
        sender.send.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_one_day_reminder_says_tomorrow(self) -> None:
        sender = MagicMock(spec=NotificationSender)
        sender.send = AsyncMock(return_value=None)

        await BillingNotifier(sender).notify_renewal_reminder(
            uuid.uuid4(),
            "student@example.com",
            "premium",
            datetime(2026, 2, 15, tzinfo=timezone.utc),
            1,
            2499,
            "EUR",
        )

        kwargs = sender.send.await_args.kwargs
        assert kwargs["event_type"] == "subscription.renewal_reminder"
        assert kwargs["title"] == "Your subscription renews tomorrow"
        assert "EUR 24.99" in kwargs["message"]
        assert kwargs["payload"]["days"] == 1

    def test_format_amount(self) -> None:
        assert format_amount(2499, "EUR") == "EUR 24.99"
