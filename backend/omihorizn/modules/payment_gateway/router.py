"""API router for payments and provider webhooks."""

import json
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from omihorizn.core.database import get_session
from omihorizn.modules.auth.jwt import CurrentUser, get_current_user
from omihorizn.modules.payment_gateway.interface import CustomerDetails
from omihorizn.modules.payment_gateway.schemas import (
    ChargeDescriptorResponse,
    CreatePaymentRequest,
    CredentialsResponse,
    PaymentListResponse,
    PaymentResponse,
    ReceiptResponse,
    RefundRequest,
    VerifyPaymentRequest,
    WebhookAck,
)
from omihorizn.modules.payment_gateway.service import PaymentGatewayAdapter
from omihorizn.modules.payment_gateway.webhook import WebhookReconciler

router = APIRouter(prefix="/payments", tags=["payments"])


def get_payment_adapter(session: AsyncSession = Depends(get_session)) -> PaymentGatewayAdapter:
    return PaymentGatewayAdapter(session)


def get_webhook_reconciler(session: AsyncSession = Depends(get_session)) -> WebhookReconciler:
    return WebhookReconciler(session)


@router.get("/credentials", response_model=CredentialsResponse)
async def get_credentials(
    current_user: CurrentUser = Depends(get_current_user),
    adapter: PaymentGatewayAdapter = Depends(get_payment_adapter),
):
    """Provider public key for the client SDK."""
    return adapter.get_public_credentials()


@router.post(
    "/create",
    response_model=ChargeDescriptorResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_payment(
    data: CreatePaymentRequest,
    request: Request,
    current_user: CurrentUser = Depends(get_current_user),
    adapter: PaymentGatewayAdapter = Depends(get_payment_adapter),
):
    """Create a pending payment and return the charge descriptor."""
    return await adapter.create_payment_record(
        user_id=current_user.id,
        subscription_id=data.subscription_id,
        amount=data.amount,
        currency=data.currency,
        description=data.description,
        customer=CustomerDetails(
            name=data.customer.name,
            email=data.customer.email,
            phone=data.customer.phone,
        ),
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )


@router.post("/verify", response_model=PaymentResponse)
async def verify_payment(
    data: VerifyPaymentRequest,
    current_user: CurrentUser = Depends(get_current_user),
    adapter: PaymentGatewayAdapter = Depends(get_payment_adapter),
):
    """Verify a charge the client completed with the provider."""
    await adapter.get_payment(data.payment_id, current_user.id)
    return await adapter.verify_payment(data.payment_id, data.external_transaction_id)


@router.get("/history", response_model=PaymentListResponse)
async def get_payment_history(
    payment_status: Optional[str] = Query(None, alias="status"),
    current_user: CurrentUser = Depends(get_current_user),
    adapter: PaymentGatewayAdapter = Depends(get_payment_adapter),
):
    """The caller's payments, newest first."""
    payments = await adapter.list_user_payments(current_user.id, payment_status)
    return PaymentListResponse(
        items=[PaymentResponse.model_validate(p) for p in payments],
        total=len(payments),
    )


@router.get("/{payment_id}/status", response_model=PaymentResponse)
async def get_payment_status(
    payment_id: uuid.UUID,
    current_user: CurrentUser = Depends(get_current_user),
    adapter: PaymentGatewayAdapter = Depends(get_payment_adapter),
):
    return await adapter.get_payment(payment_id, current_user.id)


@router.get("/{payment_id}/receipt", response_model=ReceiptResponse)
async def get_receipt(
    payment_id: uuid.UUID,
    current_user: CurrentUser = Depends(get_current_user),
    adapter: PaymentGatewayAdapter = Depends(get_payment_adapter),
):
    return await adapter.generate_receipt(payment_id, current_user.id)


@router.post("/{payment_id}/refund", response_model=PaymentResponse)
async def request_refund(
    payment_id: uuid.UUID,
    data: RefundRequest,
    current_user: CurrentUser = Depends(get_current_user),
    adapter: PaymentGatewayAdapter = Depends(get_payment_adapter),
):
    """Request a refund. Cancels the subscription immediately."""
    return await adapter.request_refund(payment_id, data.reason, current_user.id)


@router.post("/{payment_id}/retry", response_model=ChargeDescriptorResponse)
async def retry_payment(
    payment_id: uuid.UUID,
    current_user: CurrentUser = Depends(get_current_user),
    adapter: PaymentGatewayAdapter = Depends(get_payment_adapter),
):
    return await adapter.retry_payment(payment_id, current_user.id)


@router.post("/webhook", response_model=WebhookAck)
async def payment_webhook(
    request: Request,
    reconciler: WebhookReconciler = Depends(get_webhook_reconciler),
):
    """Provider webhook. Authenticated by the shared-secret signature header.

    Any failure returns a non-2xx status so the provider redelivers.
    """
    raw = await request.body()
    try:
        body = json.loads(raw) if raw else None
    except ValueError:
        body = None
    return await reconciler.handle_event(request.headers, body)
