"""Celery application configuration."""

from celery import Celery
from celery.schedules import crontab

from omihorizn.core.config import settings

celery_app = Celery(
    "omihorizn_billing",
    broker=settings.CELERY_BROKER_URL or settings.REDIS_URL,
    backend=settings.CELERY_RESULT_BACKEND or settings.REDIS_URL,
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=1800,
    worker_prefetch_multiplier=1,
    task_acks_late=True,
    task_reject_on_worker_lost=True,
)

celery_app.conf.beat_schedule = {
    "billing-reset-usage-daily": {
        "task": "billing.reset_usage",
        "schedule": crontab(hour=0, minute=5),
    },
    "billing-renewal-reminders-hourly": {
        "task": "billing.renewal_reminders",
        "schedule": crontab(minute=15),
    },
    "billing-reconcile-external-sync": {
        "task": "billing.reconcile_external_sync",
        "schedule": crontab(minute="*/15"),
    },
    "billing-expire-overdue-daily": {
        "task": "billing.expire_overdue",
        "schedule": crontab(hour=1, minute=0),
    },
}

celery_app.autodiscover_tasks(["omihorizn.modules.billing", "omihorizn.modules.notification"])
