"""Payment provider interface.

Defines the contract the billing core needs from a payment processor.
Provider implementations raise ``ExternalGatewayError`` on transport
failures and on error envelopes; a well-formed answer that simply says
"not successful" is returned, not raised.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Mapping, Optional


@dataclass
class CustomerDetails:
    """Customer block sent to the provider."""
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None


@dataclass
class TransactionVerification:
    """Provider's view of a transaction.

    ``amount`` is in major units as the provider reports it.
    """
    transaction_id: str
    status: str
    amount: Decimal
    currency: str
    reference: Optional[str] = None
    payment_method: Optional[str] = None
    card_brand: Optional[str] = None
    card_last4: Optional[str] = None
    authorization_code: Optional[str] = None
    meta: Optional[dict] = None
    raw: dict = field(default_factory=dict)

    SUCCESSFUL = "successful"
    FAILED = "failed"

    @property
    def is_successful(self) -> bool:
        return self.status == self.SUCCESSFUL

    @property
    def is_failed(self) -> bool:
        return self.status == self.FAILED


@dataclass
class RefundResult:
    """Result from a refund request."""
    refund_id: Optional[str]
    status: str
    raw: dict = field(default_factory=dict)


@dataclass
class RecurringChargeResult:
    """Result from creating or changing a recurring charge."""
    external_id: str
    status: str
    raw: dict = field(default_factory=dict)


def to_major_units(amount: int) -> Decimal:
    """Convert minor units to a two-decimal major-unit amount (2499 -> 24.99)."""
    return (Decimal(amount) / 100).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def to_minor_units(amount: Any) -> int:
    """Convert a provider amount in major units to minor units (24.99 -> 2499)."""
    return int((Decimal(str(amount)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class PaymentProviderInterface(ABC):
    """Abstract interface for payment provider implementations."""

    name: str = "base"

    @property
    @abstractmethod
    def public_key(self) -> str:
        """Public key handed to client SDKs. Never the secret key."""

    @abstractmethod
    async def verify_transaction(self, transaction_id: str) -> TransactionVerification:
        """Fetch the provider's authoritative status for a transaction."""

    @abstractmethod
    async def refund_transaction(
        self, transaction_id: str, amount: Optional[int] = None
    ) -> RefundResult:
        """Request a full or partial (minor units) refund."""

    @abstractmethod
    async def create_recurring_charge(
        self,
        customer: CustomerDetails,
        amount: int,
        currency: str,
        interval: str,
        authorization_code: str,
        reference: str,
        meta: Optional[dict] = None,
    ) -> RecurringChargeResult:
        """Register a recurring charge against a stored authorization."""

    @abstractmethod
    async def update_recurring_charge(
        self, external_id: str, amount: int, interval: str
    ) -> RecurringChargeResult:
        """Change amount or interval of a recurring charge."""

    @abstractmethod
    async def cancel_recurring_charge(self, external_id: str) -> RecurringChargeResult:
        """Stop a recurring charge."""

    @abstractmethod
    def verify_webhook_signature(self, headers: Mapping[str, str]) -> bool:
        """Check the shared-secret signature of an inbound webhook."""
