"""Pydantic schemas for the payments API.

Field names are snake_case in Python and camelCase on the wire.
"""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class CustomerBlock(CamelModel):
    """Customer block of a charge."""
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None


class CreatePaymentRequest(CamelModel):
    """Request to create a pending payment."""
    subscription_id: uuid.UUID
    amount: int = Field(..., gt=0, description="Amount in minor currency units")
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    description: Optional[str] = Field(None, max_length=500)
    customer: CustomerBlock = Field(default_factory=CustomerBlock)


class ChargeCustomizations(CamelModel):
    title: str
    description: str


class ChargeMeta(CamelModel):
    subscription_id: str


class ChargeDescriptorResponse(CamelModel):
    """Everything the client needs to complete the charge with the provider."""
    payment_id: uuid.UUID
    external_reference: str
    amount: str = Field(..., description="Major units, two decimals")
    currency: str
    customer: CustomerBlock
    customizations: ChargeCustomizations
    meta: ChargeMeta
    retry_count: Optional[int] = None


class VerifyPaymentRequest(CamelModel):
    """Verify a completed charge."""
    payment_id: uuid.UUID
    external_transaction_id: str = Field(..., min_length=1)


class RefundRequest(CamelModel):
    reason: str = Field("", max_length=1000)


class PaymentResponse(CamelModel):
    """Payment ledger row."""
    id: uuid.UUID
    user_id: uuid.UUID
    subscription_id: uuid.UUID
    amount: int
    currency: str
    description: Optional[str] = None
    status: str
    external_transaction_id: Optional[str] = None
    external_reference: Optional[str] = None
    external_status: Optional[str] = None
    payment_method: Optional[str] = None
    card_brand: Optional[str] = None
    card_last4: Optional[str] = None
    refund_status: Optional[str] = None
    refund_requested_at: Optional[datetime] = None
    refunded_at: Optional[datetime] = None
    refund_amount: Optional[int] = None
    retry_count: int = 0
    completed_at: Optional[datetime] = None
    created_at: datetime


class PaymentListResponse(CamelModel):
    items: list[PaymentResponse]
    total: int


class CredentialsResponse(CamelModel):
    provider: str
    public_key: str


class ReceiptAmount(CamelModel):
    subtotal: int
    currency: str
    formatted: str


class ReceiptPaymentMethod(CamelModel):
    type: Optional[str] = None
    brand: Optional[str] = None
    last4: Optional[str] = None


class ReceiptSubscription(CamelModel):
    tier: Optional[str] = None
    billing_cycle: Optional[str] = None
    renewal_date: Optional[datetime] = None


class ReceiptResponse(CamelModel):
    """Receipt for a completed payment."""
    receipt_number: str
    transaction_date: Optional[datetime] = None
    payment_id: uuid.UUID
    external_transaction_id: Optional[str] = None
    customer: CustomerBlock
    subscription: ReceiptSubscription
    amount: ReceiptAmount
    payment_method: ReceiptPaymentMethod
    status: str
    description: str


class WebhookAck(CamelModel):
    success: bool
    event: str
    status: str
    payment_id: Optional[str] = None
    subscription_id: Optional[str] = None
