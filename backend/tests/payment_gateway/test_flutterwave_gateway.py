"""Tests for the Flutterwave provider using a mocked HTTP transport."""

import json
from decimal import Decimal

import httpx
import pytest
from hypothesis import given, settings, strategies as st

from omihorizn.core.exceptions import ExternalGatewayError
from omihorizn.modules.payment_gateway.gateways.flutterwave import FlutterwaveGateway
from omihorizn.modules.payment_gateway.interface import CustomerDetails

BASE_URL = "https://flutterwave.test/v3"


def make_gateway(handler, webhook_hash: str = "secret-hash") -> FlutterwaveGateway:
    return FlutterwaveGateway(
        public_key="FLWPUBK_TEST-abc",
        secret_key="FLWSECK_TEST-xyz",
        webhook_hash=webhook_hash,
        base_url=BASE_URL,
        timeout=5,
        transport=httpx.MockTransport(handler),
    )


class TestVerifyTransaction:

    @pytest.mark.asyncio
    async def test_parses_verification_envelope(self) -> None:
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(
                200,
                json={
                    "status": "success",
                    "message": "Transaction fetched successfully",
                    "data": {
                        "id": 4242,
                        "tx_ref": "omihorizn_abc",
                        "amount": 24.99,
                        "currency": "eur",
                        "status": "successful",
                        "payment_type": "card",
                        "card": {"type": "VISA", "last_4digits": "4081", "token": "flw-t1"},
                        "meta": {"subscription_id": "s-1"},
                    },
                },
            )

        verification = await make_gateway(handler).verify_transaction("4242")

        request = seen[0]
        assert request.method == "GET"
        assert str(request.url) == f"{BASE_URL}/transactions/4242/verify"
        assert request.headers["Authorization"] == "Bearer FLWSECK_TEST-xyz"

        assert verification.transaction_id == "4242"
        assert verification.is_successful
        assert verification.amount == Decimal("24.99")
        assert verification.currency == "EUR"
        assert verification.reference == "omihorizn_abc"
        assert verification.card_brand == "VISA"
        assert verification.card_last4 == "4081"
        assert verification.authorization_code == "flw-t1"
        assert verification.meta == {"subscription_id": "s-1"}

    @pytest.mark.asyncio
    async def test_error_envelope_raises(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(400, json={"status": "error", "message": "No transaction found"})

        with pytest.raises(ExternalGatewayError) as exc_info:
            await make_gateway(handler).verify_transaction("1")

        assert "No transaction found" in exc_info.value.message
        assert exc_info.value.provider_response["status"] == "error"
        assert exc_info.value.status_code == 502

    @pytest.mark.asyncio
    async def test_error_status_in_ok_response_raises(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"status": "error", "message": "Invalid key"})

        with pytest.raises(ExternalGatewayError):
            await make_gateway(handler).verify_transaction("1")

    @pytest.mark.asyncio
    async def test_transport_error_raises(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(ExternalGatewayError):
            await make_gateway(handler).verify_transaction("1")


class TestRefundAndPlans:

    @pytest.mark.asyncio
    async def test_partial_refund_sends_major_units(self) -> None:
        payloads = []

        def handler(request: httpx.Request) -> httpx.Response:
            payloads.append(json.loads(request.content))
            return httpx.Response(
                200, json={"status": "success", "data": {"id": 77, "status": "completed"}}
            )

        result = await make_gateway(handler).refund_transaction("4242", amount=1250)

        assert payloads == [{"amount": "12.50"}]
        assert result.refund_id == "77"
        assert result.status == "completed"

    @pytest.mark.asyncio
    async def test_create_plan_maps_annual_interval(self) -> None:
        payloads = []

        def handler(request: httpx.Request) -> httpx.Response:
            payloads.append(json.loads(request.content))
            return httpx.Response(200, json={"status": "success", "data": {"id": 9001}})

        result = await make_gateway(handler).create_recurring_charge(
            customer=CustomerDetails(name="Ada", email="ada@example.com"),
            amount=29999,
            currency="EUR",
            interval="annual",
            authorization_code="flw-t1",
            reference="omihorizn_abc",
        )

        assert result.external_id == "9001"
        assert payloads[0]["interval"] == "yearly"
        assert payloads[0]["amount"] == "299.99"
        assert payloads[0]["customer"]["email"] == "ada@example.com"

    @pytest.mark.asyncio
    async def test_cancel_plan_keeps_known_id(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.method == "PUT"
            assert request.url.path.endswith("/payment-plans/plan-5/cancel")
            return httpx.Response(200, json={"status": "success", "data": {"status": "cancelled"}})

        result = await make_gateway(handler).cancel_recurring_charge("plan-5")

        assert result.external_id == "plan-5"
        assert result.status == "cancelled"


def _unused(request: httpx.Request) -> httpx.Response:
    raise AssertionError("no HTTP call expected")


class TestWebhookSignature:

    def test_matching_hash_is_accepted(self) -> None:
        assert make_gateway(_unused).verify_webhook_signature({"verif-hash": "secret-hash"})

    def test_header_name_is_case_insensitive(self) -> None:
        assert make_gateway(_unused).verify_webhook_signature({"Verif-Hash": "secret-hash"})

    def test_wrong_or_missing_hash_is_rejected(self) -> None:
        gateway = make_gateway(_unused)
        assert not gateway.verify_webhook_signature({"verif-hash": "guess"})
        assert not gateway.verify_webhook_signature({})

    def test_unconfigured_hash_rejects_everything(self) -> None:
        gateway = make_gateway(_unused, webhook_hash="")
        assert not gateway.verify_webhook_signature({"verif-hash": ""})
        assert not gateway.verify_webhook_signature({"verif-hash": "anything"})

    @given(signature=st.text(min_size=1, max_size=64))
    @settings(max_examples=100)
    def test_only_exact_hash_is_accepted(self, signature: str) -> None:
        gateway = make_gateway(_unused)
        assert gateway.verify_webhook_signature({"verif-hash": signature}) is (
            signature == "secret-hash"
        )
