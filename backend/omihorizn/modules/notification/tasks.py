"""Celery tasks for notification delivery."""

import asyncio
import logging

from omihorizn.core.celery_app import celery_app
from omihorizn.modules.notification.channels import EmailChannel

logger = logging.getLogger(__name__)


class EmailDeliveryError(Exception):
    """SMTP delivery failed; the task is retried."""


@celery_app.task(
    bind=True,
    max_retries=3,
    default_retry_delay=30,
    name="notification.send_email",
)
def send_email_notification(
    self,
    recipient: str,
    title: str,
    message: str,
    event_type: str = "",
    user_id: str = "",
) -> dict:
    """Deliver one email, retrying on SMTP failure.

    Returns:
        Delivery result dict
    """
    result = asyncio.run(EmailChannel().deliver(recipient, title, message))
    if not result.success:
        logger.warning(f"Email {event_type} to user {user_id} failed: {result.error}")
        if self.request.retries >= self.max_retries:
            logger.error(f"Giving up on {event_type} email for user {user_id}")
            return {"status": "failed", "error": result.error}
        raise self.retry(exc=EmailDeliveryError(result.error))

    return {
        "status": "delivered",
        "recipient": recipient,
        "event_type": event_type,
        "delivered_at": result.delivered_at.isoformat() if result.delivered_at else None,
    }
