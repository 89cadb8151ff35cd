"""
Tests for the Mercado Pago client and webhook signature checks.

HTTP is served by httpx.MockTransport; nothing leaves the process.
"""
import json
from decimal import Decimal

import httpx
import pytest

from config import settings
from domain.errors import GatewayError
from services.payment_gateway import (
    MercadoPagoGateway,
    SimulatedGateway,
    sign_manifest,
    signature_manifest,
    verify_webhook_signature,
)

ITEMS = [{"id": 1, "title": "Air Runner", "quantity": 2, "unit_price": Decimal("50.00"), "currency_id": "BRL"}]


def _gateway(handler) -> MercadoPagoGateway:
    return MercadoPagoGateway(
        access_token="TEST-token",
        base_url="https://mp.test",
        transport=httpx.MockTransport(handler),
    )


async def _create(gw) -> str:
    return await gw.create_preference(
        items=ITEMS,
        payer={"email": "ana@example.com"},
        external_reference="ord_20260101000000_abcdef0123456789",
        callback_urls=settings.callback_urls,
        notification_url=settings.webhook_url,
    )


class TestMercadoPagoGateway:

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_create_preference_sends_reference(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["headers"] = request.headers
            seen["body"] = json.loads(request.content)
            return httpx.Response(201, json={"id": "pref-123"})

        preference_id = await _create(_gateway(handler))

        assert preference_id == "pref-123"
        assert seen["path"] == "/checkout/preferences"
        assert seen["headers"]["authorization"] == "Bearer TEST-token"
        assert seen["headers"]["x-idempotency-key"] == "ord_20260101000000_abcdef0123456789"
        assert seen["body"]["external_reference"] == "ord_20260101000000_abcdef0123456789"
        assert seen["body"]["items"][0]["unit_price"] == 50.0
        assert seen["body"]["notification_url"].endswith("/payment/webhook")

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_upstream_error_becomes_gateway_error(self):
        gw = _gateway(lambda request: httpx.Response(400, json={"message": "invalid items"}))
        with pytest.raises(GatewayError) as exc_info:
            await _create(gw)
        assert exc_info.value.details["upstream_status"] == 400
        assert exc_info.value.details["retryable"] is True

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_transport_error_becomes_gateway_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(GatewayError):
            await _create(_gateway(handler))

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_missing_token_is_gateway_error(self):
        gw = MercadoPagoGateway(access_token="", transport=httpx.MockTransport(lambda r: httpx.Response(200)))
        with pytest.raises(GatewayError):
            await _create(gw)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_get_payment(self):
        def handler(request):
            assert request.url.path == "/v1/payments/987"
            return httpx.Response(
                200,
                json={"id": 987, "status": "approved", "external_reference": "ord_x", "transaction_amount": 100},
            )

        payment = await _gateway(handler).get_payment("987")
        assert payment == {"id": "987", "status": "approved", "external_reference": "ord_x"}


class TestSimulatedGateway:

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_round_trip(self):
        gw = SimulatedGateway()
        pref = await _create(gw)
        assert pref.startswith("sim-pref-")

        gw.record_payment(42, "ord_x", "approved")
        assert (await gw.get_payment("42"))["status"] == "approved"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_unknown_payment(self):
        with pytest.raises(GatewayError):
            await SimulatedGateway().get_payment("nope")


class TestWebhookSignature:

    @pytest.mark.unit
    def test_manifest_format(self):
        assert signature_manifest("ABC123", "req-1", "1700") == "id:abc123;request-id:req-1;ts:1700;"
        assert signature_manifest("123", None, "1700") == "id:123;ts:1700;"

    @pytest.mark.unit
    def test_valid_signature(self):
        v1 = sign_manifest(signature_manifest("555", "req-1", "1700"), settings.mp_webhook_secret)
        assert verify_webhook_signature(f"ts=1700,v1={v1}", "req-1", "555") is True

    @pytest.mark.unit
    def test_tampered_data_id(self):
        v1 = sign_manifest(signature_manifest("555", "req-1", "1700"), settings.mp_webhook_secret)
        assert verify_webhook_signature(f"ts=1700,v1={v1}", "req-1", "556") is False

    @pytest.mark.unit
    @pytest.mark.parametrize("header", [None, "", "v1=abc", "ts=1700", "garbage"])
    def test_malformed_header(self, header):
        assert verify_webhook_signature(header, "req-1", "555") is False

    @pytest.mark.unit
    def test_fails_closed_without_secret(self, monkeypatch):
        v1 = sign_manifest(signature_manifest("555", "req-1", "1700"), settings.mp_webhook_secret)
        monkeypatch.setattr(settings, "mp_webhook_secret", "")
        assert verify_webhook_signature(f"ts=1700,v1={v1}", "req-1", "555") is False
