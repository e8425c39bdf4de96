"""Prometheus metrics for the billing core.

Exposes HTTP metrics plus counters for payments, quota rejections,
webhook deliveries and scheduled jobs.
"""

import os

from prometheus_client import (
    Counter,
    Gauge,
    Histogram,
    Info,
    CollectorRegistry,
    generate_latest,
    CONTENT_TYPE_LATEST,
    multiprocess,
)

# Create a custom registry for our metrics
REGISTRY = CollectorRegistry()

# Check if running in multiprocess mode (e.g., with gunicorn)
if "prometheus_multiproc_dir" in os.environ:
    multiprocess.MultiProcessCollector(REGISTRY)


# ============================================
# Application Info
# ============================================
APP_INFO = Info(
    "omihorizn_billing_app",
    "Application information",
    registry=REGISTRY,
)


# ============================================
# HTTP Request Metrics
# ============================================
HTTP_REQUESTS_TOTAL = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status_code"],
    registry=REGISTRY,
)

HTTP_REQUEST_DURATION_SECONDS = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=[0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
    registry=REGISTRY,
)


# ============================================
# Billing Metrics
# ============================================
PAYMENTS_TOTAL = Counter(
    "billing_payments_total",
    "Payment verifications by outcome",
    ["outcome"],
    registry=REGISTRY,
)

GATEWAY_CALL_DURATION_SECONDS = Histogram(
    "billing_gateway_call_duration_seconds",
    "Payment provider call duration in seconds",
    ["operation"],
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 20.0],
    registry=REGISTRY,
)

QUOTA_REJECTIONS_TOTAL = Counter(
    "billing_quota_rejections_total",
    "Usage checks rejected because the quota was exhausted",
    ["feature"],
    registry=REGISTRY,
)

WEBHOOK_EVENTS_TOTAL = Counter(
    "billing_webhook_events_total",
    "Inbound provider webhook events",
    ["event", "outcome"],
    registry=REGISTRY,
)

SCHEDULER_JOB_RUNS_TOTAL = Counter(
    "billing_scheduler_job_runs_total",
    "Scheduled billing job runs",
    ["job", "outcome"],
    registry=REGISTRY,
)

EXTERNAL_SYNC_PENDING = Gauge(
    "billing_external_sync_pending",
    "Subscriptions waiting for a provider-side sync",
    registry=REGISTRY,
)


def set_app_info(version: str, environment: str = "production") -> None:
    """Set application info metric."""
    APP_INFO.info({
        "version": version,
        "environment": environment,
    })


def get_metrics() -> bytes:
    """Generate Prometheus metrics output."""
    return generate_latest(REGISTRY)


def get_metrics_content_type() -> str:
    """Get Prometheus metrics content type."""
    return CONTENT_TYPE_LATEST
