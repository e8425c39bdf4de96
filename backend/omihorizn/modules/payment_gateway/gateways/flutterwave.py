"""Flutterwave payment provider over the v3 REST API."""

import hmac
import logging
import time
from decimal import Decimal, InvalidOperation
from typing import Any, Mapping, Optional

import httpx

from omihorizn.core.config import settings
from omihorizn.core.exceptions import ExternalGatewayError
from omihorizn.core.metrics import GATEWAY_CALL_DURATION_SECONDS
from omihorizn.modules.payment_gateway.interface import (
    CustomerDetails,
    PaymentProviderInterface,
    RecurringChargeResult,
    RefundResult,
    TransactionVerification,
    to_major_units,
)

logger = logging.getLogger(__name__)

SIGNATURE_HEADERS = ("verif-hash", "verif_hash")

INTERVALS = {
    "monthly": "monthly",
    "annual": "yearly",
}


class FlutterwaveGateway(PaymentProviderInterface):
    """Flutterwave implementation.

    Recurring charges are Flutterwave payment plans; the plan id is the
    recurring-charge handle stored on the subscription.
    """

    name = "flutterwave"

    def __init__(
        self,
        public_key: Optional[str] = None,
        secret_key: Optional[str] = None,
        webhook_hash: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._public_key = public_key if public_key is not None else settings.FLUTTERWAVE_PUBLIC_KEY
        self._secret_key = secret_key if secret_key is not None else settings.FLUTTERWAVE_SECRET_KEY
        self._webhook_hash = (
            webhook_hash if webhook_hash is not None else settings.FLUTTERWAVE_WEBHOOK_HASH
        )
        self.base_url = (base_url or settings.FLUTTERWAVE_BASE_URL).rstrip("/")
        self.timeout = timeout or settings.FLUTTERWAVE_TIMEOUT_SECONDS
        self._transport = transport

    @property
    def public_key(self) -> str:
        return self._public_key

    async def _make_request(
        self,
        method: str,
        path: str,
        operation: str,
        data: Optional[dict] = None,
    ) -> dict:
        """Make an authenticated request and unwrap the response envelope.

        Raises:
            ExternalGatewayError: On transport errors, non-2xx responses and
                envelopes whose ``status`` is not ``success``
        """
        started = time.perf_counter()
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport
            ) as client:
                response = await client.request(
                    method=method,
                    url=f"{self.base_url}{path}",
                    headers={
                        "Authorization": f"Bearer {self._secret_key}",
                        "Content-Type": "application/json",
                        "Accept": "application/json",
                    },
                    json=data,
                )
        except httpx.HTTPError as e:
            logger.error(f"Flutterwave {operation} transport error: {e}")
            raise ExternalGatewayError(f"Payment provider unreachable during {operation}")
        finally:
            GATEWAY_CALL_DURATION_SECONDS.labels(operation=operation).observe(
                time.perf_counter() - started
            )

        try:
            body = response.json() if response.content else {}
        except ValueError:
            body = {"raw": response.text}

        if response.status_code >= 400 or body.get("status") != "success":
            message = body.get("message") or f"HTTP {response.status_code}"
            logger.warning(f"Flutterwave {operation} rejected: {message}")
            raise ExternalGatewayError(
                f"Payment provider rejected {operation}: {message}",
                provider_response=body,
            )
        return body

    async def verify_transaction(self, transaction_id: str) -> TransactionVerification:
        body = await self._make_request(
            "GET", f"/transactions/{transaction_id}/verify", "verify"
        )
        data = body.get("data") or {}
        card = data.get("card") or {}
        meta = data.get("meta") or {}
        authorization = data.get("authorization") or meta.get("authorization") or {}

        return TransactionVerification(
            transaction_id=str(data.get("id", transaction_id)),
            status=str(data.get("status", "")).lower(),
            amount=_parse_amount(data.get("amount")),
            currency=str(data.get("currency", "")).upper(),
            reference=data.get("tx_ref"),
            payment_method=data.get("payment_type"),
            card_brand=card.get("type") or card.get("issuer"),
            card_last4=card.get("last_4digits") or card.get("last_4chars"),
            authorization_code=(
                authorization.get("authorization_code")
                or card.get("token")
                or meta.get("authorization_code")
            ),
            meta=meta,
            raw=data,
        )

    async def refund_transaction(
        self, transaction_id: str, amount: Optional[int] = None
    ) -> RefundResult:
        payload = {}
        if amount is not None:
            payload["amount"] = str(to_major_units(amount))
        body = await self._make_request(
            "POST", f"/transactions/{transaction_id}/refund", "refund", payload
        )
        data = body.get("data") or {}
        refund_id = data.get("id")
        return RefundResult(
            refund_id=str(refund_id) if refund_id is not None else None,
            status=str(data.get("status", "pending")),
            raw=data,
        )

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
        body = await self._make_request(
            "POST",
            "/payment-plans",
            "create_plan",
            {
                "name": f"{reference}-{interval}",
                "amount": str(to_major_units(amount)),
                "currency": currency,
                "interval": INTERVALS.get(interval, interval),
                "authorization": authorization_code,
                "customer": {
                    "email": customer.email or "",
                    "phonenumber": customer.phone or "",
                    "name": customer.name or "",
                },
                "tx_ref": reference,
                "meta": meta or {},
            },
        )
        return self._plan_result(body)

    async def update_recurring_charge(
        self, external_id: str, amount: int, interval: str
    ) -> RecurringChargeResult:
        body = await self._make_request(
            "PUT",
            f"/payment-plans/{external_id}",
            "update_plan",
            {
                "amount": str(to_major_units(amount)),
                "interval": INTERVALS.get(interval, interval),
                "status": "active",
            },
        )
        return self._plan_result(body, external_id)

    async def cancel_recurring_charge(self, external_id: str) -> RecurringChargeResult:
        body = await self._make_request(
            "PUT", f"/payment-plans/{external_id}/cancel", "cancel_plan"
        )
        return self._plan_result(body, external_id)

    def _plan_result(self, body: dict, external_id: Optional[str] = None) -> RecurringChargeResult:
        data = body.get("data") or {}
        plan_id = data.get("id", external_id)
        if plan_id is None:
            raise ExternalGatewayError(
                "Payment provider returned no payment plan id", provider_response=body
            )
        return RecurringChargeResult(
            external_id=str(plan_id),
            status=str(data.get("status", "active")),
            raw=data,
        )

    def verify_webhook_signature(self, headers: Mapping[str, str]) -> bool:
        """Compare the ``verif-hash`` header with the configured secret hash."""
        if not self._webhook_hash:
            return False
        normalized = {str(key).lower(): value for key, value in headers.items()}
        for header in SIGNATURE_HEADERS:
            signature = normalized.get(header)
            if signature:
                return hmac.compare_digest(
                    signature.encode("utf-8"), self._webhook_hash.encode("utf-8")
                )
        return False


def _parse_amount(value: Any) -> Decimal:
    try:
        return Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        return Decimal("0")
