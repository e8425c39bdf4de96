"""Notification senders.

Billing code talks to ``NotificationSender`` only. The default sender
hands the message to a Celery worker so a slow or failing mail server
never holds up a billing request.
"""

import logging
import uuid
from abc import ABC, abstractmethod
from typing import Optional

from omihorizn.core.config import settings

logger = logging.getLogger(__name__)


class NotificationSender(ABC):
    """Fire-and-forget notification collaborator."""

    @abstractmethod
    async def send(
        self,
        user_id: uuid.UUID,
        recipient: Optional[str],
        event_type: str,
        title: str,
        message: str,
        payload: Optional[dict] = None,
    ) -> None:
        """Send a notification. Implementations may raise; callers guard."""


class CeleryEmailSender(NotificationSender):
    """Queues an email for delivery by the notification worker."""

    async def send(
        self,
        user_id: uuid.UUID,
        recipient: Optional[str],
        event_type: str,
        title: str,
        message: str,
        payload: Optional[dict] = None,
    ) -> None:
        if not recipient:
            logger.info(f"No email address for user {user_id}, skipping {event_type}")
            return

        from omihorizn.modules.notification.tasks import send_email_notification

        send_email_notification.delay(
            recipient=recipient,
            title=title,
            message=message,
            event_type=event_type,
            user_id=str(user_id),
        )
        logger.info(f"Queued {event_type} email for user {user_id}")


class LoggingSender(NotificationSender):
    """Writes notifications to the log. For local runs without a broker."""

    async def send(
        self,
        user_id: uuid.UUID,
        recipient: Optional[str],
        event_type: str,
        title: str,
        message: str,
        payload: Optional[dict] = None,
    ) -> None:
        logger.info(f"[{event_type}] to user {user_id} <{recipient}>: {title}")


def get_notification_sender() -> NotificationSender:
    """Sender selected by ``NOTIFICATION_BACKEND``."""
    if settings.NOTIFICATION_BACKEND == "log":
        return LoggingSender()
    return CeleryEmailSender()
