"""Billing notifications.

Every method swallows and logs sender failures: a notification problem
must never abort a billing operation.
"""

import logging
import uuid
from datetime import datetime
from typing import Optional

from omihorizn.modules.notification.service import NotificationSender, get_notification_sender

logger = logging.getLogger(__name__)


def format_amount(amount: int, currency: str) -> str:
    """Format a minor-unit amount, e.g. ``EUR 24.99``."""
    return f"{currency} {amount / 100:.2f}"


class BillingNotifier:
    """Sends billing-related notifications."""

    def __init__(self, sender: Optional[NotificationSender] = None):
        self.sender = sender or get_notification_sender()

    async def _send(
        self,
        user_id: uuid.UUID,
        recipient: Optional[str],
        event_type: str,
        title: str,
        message: str,
        payload: dict,
    ) -> bool:
        try:
            await self.sender.send(
                user_id=user_id,
                recipient=recipient,
                event_type=event_type,
                title=title,
                message=message,
                payload=payload,
            )
            return True
        except Exception as e:
            logger.error(f"Failed to send {event_type} notification to user {user_id}: {e}")
            return False

    async def notify_subscription_created(
        self,
        user_id: uuid.UUID,
        recipient: Optional[str],
        tier: str,
        renewal_date: datetime,
    ) -> bool:
        return await self._send(
            user_id,
            recipient,
            "subscription.created",
            "Welcome to OmiHorizn",
            f"Your {tier.capitalize()} subscription is active until "
            f"{renewal_date.strftime('%B %d, %Y')}.",
            {"tier": tier, "renewal_date": renewal_date.isoformat()},
        )

    async def notify_payment_success(
        self,
        user_id: uuid.UUID,
        recipient: Optional[str],
        payment_id: uuid.UUID,
        amount: int,
        currency: str,
        tier: str,
        renewal_date: datetime,
    ) -> bool:
        """Payment confirmation. Sent once per completed payment."""
        return await self._send(
            user_id,
            recipient,
            "payment.success",
            "Payment Confirmation - OmiHorizn",
            f"We received your payment of {format_amount(amount, currency)} for the "
            f"{tier.capitalize()} plan. Your subscription renews on "
            f"{renewal_date.strftime('%B %d, %Y')}.",
            {
                "payment_id": str(payment_id),
                "amount": amount,
                "currency": currency,
                "tier": tier,
                "renewal_date": renewal_date.isoformat(),
            },
        )

    async def notify_renewal_reminder(
        self,
        user_id: uuid.UUID,
        recipient: Optional[str],
        tier: str,
        renewal_date: datetime,
        days: int,
        amount: int,
        currency: str,
    ) -> bool:
        when = "tomorrow" if days == 1 else f"in {days} days"
        return await self._send(
            user_id,
            recipient,
            "subscription.renewal_reminder",
            f"Your subscription renews {when}",
            f"Your {tier.capitalize()} subscription renews on "
            f"{renewal_date.strftime('%B %d, %Y')} for {format_amount(amount, currency)}.",
            {"tier": tier, "renewal_date": renewal_date.isoformat(), "days": days},
        )

    async def notify_refund_initiated(
        self,
        user_id: uuid.UUID,
        recipient: Optional[str],
        payment_id: uuid.UUID,
        amount: int,
        currency: str,
    ) -> bool:
        return await self._send(
            user_id,
            recipient,
            "payment.refund_initiated",
            "Refund Initiated - OmiHorizn",
            f"A refund of {format_amount(amount, currency)} has been requested. "
            "Your subscription has been cancelled.",
            {"payment_id": str(payment_id), "amount": amount, "currency": currency},
        )

    async def notify_subscription_cancelled(
        self,
        user_id: uuid.UUID,
        recipient: Optional[str],
        tier: str,
        reason: Optional[str] = None,
    ) -> bool:
        return await self._send(
            user_id,
            recipient,
            "subscription.cancelled",
            "Subscription Cancelled",
            f"Your {tier.capitalize()} subscription has been cancelled.",
            {"tier": tier, "reason": reason},
        )
