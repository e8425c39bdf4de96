"""Payment gateway module.

Payment ledger, provider interface and webhook reconciliation.
"""

from omihorizn.modules.payment_gateway.models import (
    Payment,
    PaymentMethodType,
    PaymentStatus,
    RefundStatus,
)
from omihorizn.modules.payment_gateway.interface import (
    CustomerDetails,
    PaymentProviderInterface,
    RecurringChargeResult,
    RefundResult,
    TransactionVerification,
)

__all__ = [
    "Payment",
    "PaymentMethodType",
    "PaymentStatus",
    "RefundStatus",
    "CustomerDetails",
    "PaymentProviderInterface",
    "RecurringChargeResult",
    "RefundResult",
    "TransactionVerification",
]
