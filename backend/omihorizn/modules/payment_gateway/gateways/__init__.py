"""Payment provider implementations."""

from omihorizn.modules.payment_gateway.gateways.flutterwave import FlutterwaveGateway
from omihorizn.modules.payment_gateway.interface import PaymentProviderInterface

__all__ = ["FlutterwaveGateway", "get_payment_provider"]


def get_payment_provider() -> PaymentProviderInterface:
    """Configured payment provider."""
    return FlutterwaveGateway()
