"""
Payment gateway — Mercado Pago Checkout Pro client.

Handles:
    1. Preference creation (items + payer + external_reference + callback URLs)
    2. Payment lookup for webhook notifications (status, external_reference)
    3. Webhook signature verification (x-signature / x-request-id)

Every transport or API failure is re-raised as GatewayError so no httpx
exception leaves this module.

SIMULATION_MODE uses SimulatedGateway: preferences are minted locally and
payments are looked up from an in-memory table filled by tests/demos.
"""
import hashlib
import hmac
import logging
import uuid
from typing import Optional

import httpx

from config import settings
from domain.errors import GatewayError

logger = logging.getLogger(__name__)


# ════════════════════════════════════════════════════════════════════
# Mercado Pago REST client
# ════════════════════════════════════════════════════════════════════


class MercadoPagoGateway:
    """Thin async wrapper around the Mercado Pago REST API."""

    def __init__(
        self,
        access_token: str,
        base_url: str = "https://api.mercadopago.com",
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._access_token = access_token
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport

    def _headers(self, idempotency_key: str | None = None) -> dict:
        if not self._access_token:
            raise GatewayError("Payment gateway is not configured (MP_ACCESS_TOKEN missing)")
        headers = {
            "Authorization": f"Bearer {self._access_token}",
            "Content-Type": "application/json",
        }
        if idempotency_key:
            headers["X-Idempotency-Key"] = idempotency_key
        return headers

    async def _request(self, method: str, path: str, **kwargs) -> dict:
        try:
            async with httpx.AsyncClient(
                base_url=self._base_url,
                timeout=self._timeout,
                transport=self._transport,
            ) as client:
                response = await client.request(method, path, **kwargs)
                response.raise_for_status()
                return response.json()
        except httpx.HTTPStatusError as e:
            logger.error(
                f"Mercado Pago {method} {path} failed: "
                f"{e.response.status_code} {e.response.text[:200]}"
            )
            raise GatewayError(
                "Payment gateway rejected the request",
                details={"upstream_status": e.response.status_code},
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Mercado Pago {method} {path} unreachable: {e}")
            raise GatewayError("Payment gateway unavailable") from e

    async def create_preference(
        self,
        *,
        items: list[dict],
        payer: dict,
        external_reference: str,
        callback_urls: dict,
        notification_url: str,
    ) -> str:
        """
        Create a Checkout Pro preference and return its id.

        items: [{id, title, quantity, unit_price (Decimal), currency_id}]
        """
        body = {
            "items": [
                {
                    "id": str(i["id"]),
                    "title": i["title"],
                    "quantity": int(i["quantity"]),
                    "unit_price": float(i["unit_price"]),
                    "currency_id": i["currency_id"],
                }
                for i in items
            ],
            "payer": payer,
            "back_urls": callback_urls,
            "auto_return": "approved",
            "notification_url": notification_url,
            "external_reference": external_reference,
        }
        data = await self._request(
            "POST",
            "/checkout/preferences",
            json=body,
            headers=self._headers(idempotency_key=external_reference),
        )
        preference_id = data.get("id")
        if not preference_id:
            raise GatewayError("Payment gateway returned no preference id")

        logger.info(f"  💳 Preference {preference_id} created for {external_reference}")
        return str(preference_id)

    async def get_payment(self, payment_id: str) -> dict:
        """Fetch a payment: {id, status, external_reference}."""
        data = await self._request("GET", f"/v1/payments/{payment_id}", headers=self._headers())
        return {
            "id": str(data.get("id", payment_id)),
            "status": str(data.get("status", "")),
            "external_reference": data.get("external_reference"),
        }


# ════════════════════════════════════════════════════════════════════
# Simulation gateway
# ════════════════════════════════════════════════════════════════════


class SimulatedGateway:
    """Offline stand-in used when SIMULATION_MODE is on."""

    def __init__(self):
        self.preferences: dict[str, dict] = {}
        self.payments: dict[str, dict] = {}

    async def create_preference(
        self,
        *,
        items: list[dict],
        payer: dict,
        external_reference: str,
        callback_urls: dict,
        notification_url: str,
    ) -> str:
        preference_id = f"sim-pref-{uuid.uuid4().hex[:12]}"
        self.preferences[preference_id] = {
            "external_reference": external_reference,
            "items": items,
            "payer": payer,
        }
        logger.info(f"  🎮 Simulated preference {preference_id} for {external_reference}")
        return preference_id

    def record_payment(self, payment_id: str, external_reference: str, status: str) -> None:
        self.payments[str(payment_id)] = {
            "id": str(payment_id),
            "status": status,
            "external_reference": external_reference,
        }

    async def get_payment(self, payment_id: str) -> dict:
        payment = self.payments.get(str(payment_id))
        if not payment:
            raise GatewayError(f"Simulated payment {payment_id} not found")
        return dict(payment)


_simulated_gateway = SimulatedGateway()


def get_payment_gateway():
    """FastAPI dependency — the configured gateway client."""
    if settings.simulation_mode:
        return _simulated_gateway
    return MercadoPagoGateway(
        access_token=settings.mp_access_token,
        base_url=settings.mp_api_base,
        timeout=settings.mp_timeout_seconds,
    )


# ════════════════════════════════════════════════════════════════════
# Webhook Verification
# ════════════════════════════════════════════════════════════════════


def _parse_signature_header(signature: str) -> tuple[str | None, str | None]:
    ts = v1 = None
    for part in signature.split(","):
        key, _, value = part.strip().partition("=")
        if key == "ts":
            ts = value
        elif key == "v1":
            v1 = value
    return ts, v1


def signature_manifest(data_id: str, request_id: str | None, ts: str) -> str:
    """The string Mercado Pago signs: id:<data.id>;request-id:<x-request-id>;ts:<ts>;"""
    parts = []
    if data_id:
        parts.append(f"id:{data_id.lower() if data_id.isalnum() else data_id};")
    if request_id:
        parts.append(f"request-id:{request_id};")
    parts.append(f"ts:{ts};")
    return "".join(parts)


def sign_manifest(manifest: str, secret: str) -> str:
    return hmac.new(secret.encode("utf-8"), manifest.encode("utf-8"), hashlib.sha256).hexdigest()


def verify_webhook_signature(signature: str | None, request_id: str | None, data_id: str) -> bool:
    """
    Verify a Mercado Pago webhook x-signature header.

    FAILS CLOSED when the secret is not configured.
    """
    if not settings.mp_webhook_secret:
        logger.error(
            "MP_WEBHOOK_SECRET not configured — rejecting webhook. "
            "Set MP_WEBHOOK_SECRET in .env to accept payment notifications."
        )
        return False

    if not signature:
        logger.warning("Webhook received without x-signature header")
        return False

    ts, v1 = _parse_signature_header(signature)
    if not ts or not v1:
        logger.warning("Webhook x-signature header is malformed")
        return False

    expected = sign_manifest(signature_manifest(data_id, request_id, ts), settings.mp_webhook_secret)
    return hmac.compare_digest(expected, v1)
