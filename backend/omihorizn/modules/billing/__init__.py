"""Billing module.

Subscription ledger, proration, renewal scheduling and billing notifications.
"""

from omihorizn.modules.billing.models import (
    BillingCycle,
    ExternalSyncAction,
    Subscription,
    SubscriptionStatus,
)

__all__ = [
    "BillingCycle",
    "ExternalSyncAction",
    "Subscription",
    "SubscriptionStatus",
]
