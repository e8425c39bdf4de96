"""Billing background tasks.

Scheduled jobs for usage resets, renewal reminders, provider-sync
reconciliation and the overdue-expiry sweep. Each job opens its own
session so it can be run from Celery beat, a script or a test.
"""

import asyncio
import logging
from datetime import timedelta
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from omihorizn.core.celery_app import celery_app
from omihorizn.core.config import settings
from omihorizn.core.database import async_session_maker, utcnow
from omihorizn.core.exceptions import BillingError
from omihorizn.core.metrics import EXTERNAL_SYNC_PENDING, SCHEDULER_JOB_RUNS_TOTAL
from omihorizn.modules.billing.models import Subscription
from omihorizn.modules.billing.notifications import BillingNotifier
from omihorizn.modules.billing.repository import SubscriptionRepository
from omihorizn.modules.billing.service import SubscriptionLedger
from omihorizn.modules.payment_gateway.interface import PaymentProviderInterface
from omihorizn.modules.usage.service import UsageMeter

logger = logging.getLogger(__name__)

SessionFactory = async_sessionmaker[AsyncSession]


async def reset_usage_job(
    session_factory: Optional[SessionFactory] = None,
    now=None,
) -> dict:
    """Zero usage counters for every user with an active subscription.

    Args:
        session_factory: Session factory, defaults to the application one
        now: Reference time, defaults to the current UTC time

    Returns:
        Summary with the number of users and rows reset
    """
    session_factory = session_factory or async_session_maker
    now = now or utcnow()

    async with session_factory() as session:
        user_ids = await SubscriptionRepository(session).get_active_user_ids()
        rows = await UsageMeter(session).reset_users(user_ids, now=now) if user_ids else 0

    summary = {"users": len(user_ids), "rows_reset": rows, "run_at": now.isoformat()}
    SCHEDULER_JOB_RUNS_TOTAL.labels(job="reset_usage", outcome="success").inc()
    logger.info(f"Usage reset completed: {summary}")
    return summary


async def renewal_reminder_job(
    session_factory: Optional[SessionFactory] = None,
    notifier: Optional[BillingNotifier] = None,
    now=None,
) -> dict:
    """Send one reminder per milestone before each renewal.

    For each milestone in ``RENEWAL_REMINDER_DAYS`` the subscription's
    ``reminder_<days>_sent`` flag is claimed with a conditional update
    before the notification goes out, so a reminder is sent at most once
    even when runs overlap.

    Returns:
        Summary keyed ``reminded_<days>`` with the number of reminders sent
    """
    session_factory = session_factory or async_session_maker
    notifier = notifier or BillingNotifier()
    now = now or utcnow()
    summary = {}

    async with session_factory() as session:
        repo = SubscriptionRepository(session)
        for days in settings.RENEWAL_REMINDER_DAYS:
            flag = f"reminder_{days}_sent"
            sent = 0
            if not hasattr(Subscription, flag):
                logger.warning(f"No reminder flag for a {days}-day milestone, skipping")
                continue

            due = await repo.get_due_for_reminder(now, now + timedelta(days=days), flag)
            for subscription in due:
                if not await repo.mark_reminder_sent(subscription.id, flag):
                    logger.info(
                        f"{days}-day reminder for subscription {subscription.id} already claimed"
                    )
                    continue
                await notifier.notify_renewal_reminder(
                    subscription.user_id,
                    subscription.billing_email,
                    subscription.tier,
                    subscription.renewal_date,
                    days,
                    subscription.amount,
                    subscription.currency,
                )
                sent += 1
            summary[f"reminded_{days}"] = sent

    SCHEDULER_JOB_RUNS_TOTAL.labels(job="renewal_reminders", outcome="success").inc()
    logger.info(f"Renewal reminders completed: {summary}")
    return summary


async def reconcile_external_sync_job(
    session_factory: Optional[SessionFactory] = None,
    provider: Optional[PaymentProviderInterface] = None,
) -> dict:
    """Replay provider-side changes that failed after a local commit."""
    session_factory = session_factory or async_session_maker
    synced = failed = 0

    async with session_factory() as session:
        ledger = SubscriptionLedger(session, provider=provider)
        pending = await ledger.subscription_repo.get_pending_external_sync(
            settings.EXTERNAL_SYNC_MAX_ATTEMPTS
        )
        for subscription in pending:
            if await ledger.reconcile_external_sync(subscription):
                synced += 1
            else:
                failed += 1
        remaining = await ledger.subscription_repo.count_pending_external_sync()

    EXTERNAL_SYNC_PENDING.set(remaining)
    summary = {"attempted": len(pending), "synced": synced, "failed": failed, "pending": remaining}
    SCHEDULER_JOB_RUNS_TOTAL.labels(job="reconcile_external_sync", outcome="success").inc()
    logger.info(f"External sync reconciliation completed: {summary}")
    return summary


async def expire_overdue_job(
    session_factory: Optional[SessionFactory] = None,
    provider: Optional[PaymentProviderInterface] = None,
    now=None,
    enabled: Optional[bool] = None,
) -> dict:
    """Expire paid subscriptions whose renewal passed without payment.

    Disabled unless ``SUBSCRIPTION_EXPIRY_SWEEP_ENABLED`` is set. Only
    subscriptions overdue by more than ``SUBSCRIPTION_EXPIRY_GRACE_DAYS``
    are expired.
    """
    enabled = settings.SUBSCRIPTION_EXPIRY_SWEEP_ENABLED if enabled is None else enabled
    if not enabled:
        logger.info("Expiry sweep disabled, skipping")
        SCHEDULER_JOB_RUNS_TOTAL.labels(job="expire_overdue", outcome="skipped").inc()
        return {"enabled": False, "expired": 0}

    session_factory = session_factory or async_session_maker
    now = now or utcnow()
    cutoff = now - timedelta(days=settings.SUBSCRIPTION_EXPIRY_GRACE_DAYS)
    expired = 0

    async with session_factory() as session:
        ledger = SubscriptionLedger(session, provider=provider)
        overdue = await ledger.subscription_repo.get_overdue(cutoff)
        for subscription in overdue:
            try:
                await ledger.expire(subscription.id, now=now)
                expired += 1
            except BillingError as e:
                logger.error(f"Failed to expire subscription {subscription.id}: {e.message}")

    summary = {"enabled": True, "candidates": len(overdue), "expired": expired}
    SCHEDULER_JOB_RUNS_TOTAL.labels(job="expire_overdue", outcome="success").inc()
    logger.info(f"Expiry sweep completed: {summary}")
    return summary


def _run_job(task, job_name: str, coro_factory) -> dict:
    try:
        return asyncio.run(coro_factory())
    except Exception as exc:
        SCHEDULER_JOB_RUNS_TOTAL.labels(job=job_name, outcome="error").inc()
        logger.error(f"Billing job {job_name} failed: {exc}", exc_info=True)
        raise task.retry(exc=exc)


@celery_app.task(
    name="billing.reset_usage",
    bind=True,
    max_retries=3,
    default_retry_delay=300,
)
def reset_usage(self) -> dict:
    """Daily usage counter reset."""
    return _run_job(self, "reset_usage", reset_usage_job)


@celery_app.task(
    name="billing.renewal_reminders",
    bind=True,
    max_retries=3,
    default_retry_delay=120,
)
def send_renewal_reminders(self) -> dict:
    """Hourly 7-day and 1-day renewal reminders."""
    return _run_job(self, "renewal_reminders", renewal_reminder_job)


@celery_app.task(
    name="billing.reconcile_external_sync",
    bind=True,
    max_retries=3,
    default_retry_delay=60,
)
def reconcile_external_sync(self) -> dict:
    return _run_job(self, "reconcile_external_sync", reconcile_external_sync_job)


@celery_app.task(
    name="billing.expire_overdue",
    bind=True,
    max_retries=3,
    default_retry_delay=300,
)
def expire_overdue(self) -> dict:
    return _run_job(self, "expire_overdue", expire_overdue_job)
