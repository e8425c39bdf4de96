"""FastAPI application entry point."""

from fastapi import FastAPI, Request, Response
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from omihorizn.core.config import settings
from omihorizn.core.exceptions import BillingError
from omihorizn.core.logging import setup_logging
from omihorizn.core.metrics import get_metrics, get_metrics_content_type, set_app_info
from omihorizn.core.middleware import (
    CorrelationIdMiddleware,
    MetricsMiddleware,
    RequestLoggingMiddleware,
)
from omihorizn.modules.billing.router import router as subscriptions_router
from omihorizn.modules.payment_gateway.router import router as payments_router
from omihorizn.modules.usage.router import router as usage_router

app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
    description="""
## OmiHorizn Billing API

Subscription, payment and feature-entitlement core for the OmiHorizn
study-abroad platform.

* **Subscriptions** - create, upgrade/downgrade with proration, pause, resume, cancel
* **Usage** - per-feature quotas with monthly reset
* **Payments** - Flutterwave checkout, verification, refunds, receipts, webhooks

All endpoints except `/health`, `/metrics`, the feature catalog and the
payment webhook require a JWT Bearer token.
    """,
    openapi_url=f"{settings.API_V1_PREFIX}/openapi.json",
    openapi_tags=[
        {"name": "health", "description": "Health check endpoints"},
        {"name": "subscriptions", "description": "Subscription lifecycle and plan changes"},
        {"name": "usage", "description": "Premium feature usage and history"},
        {"name": "payments", "description": "Payments, refunds, receipts and provider webhooks"},
    ],
)

setup_logging(
    level="DEBUG" if settings.DEBUG else settings.LOG_LEVEL,
    json_format=settings.LOG_JSON,
    include_stack_trace=True,
)

set_app_info(
    version=settings.VERSION,
    environment="development" if settings.DEBUG else "production",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(CorrelationIdMiddleware)
app.add_middleware(MetricsMiddleware)


@app.exception_handler(BillingError)
async def billing_error_handler(request: Request, exc: BillingError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=jsonable_encoder(exc.to_dict()))


@app.get("/health", tags=["health"])
async def health_check() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "healthy"}


@app.get("/metrics", include_in_schema=False)
async def prometheus_metrics() -> Response:
    """Prometheus metrics in text exposition format."""
    return Response(content=get_metrics(), media_type=get_metrics_content_type())


app.include_router(subscriptions_router, prefix=settings.API_V1_PREFIX)
app.include_router(usage_router, prefix=settings.API_V1_PREFIX)
app.include_router(payments_router, prefix=settings.API_V1_PREFIX)
