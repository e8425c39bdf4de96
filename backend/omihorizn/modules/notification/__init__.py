"""Notification module.

Outbound user notifications for billing events.
"""

from omihorizn.modules.notification.service import (
    CeleryEmailSender,
    LoggingSender,
    NotificationSender,
    get_notification_sender,
)

__all__ = [
    "CeleryEmailSender",
    "LoggingSender",
    "NotificationSender",
    "get_notification_sender",
]
