"""
Payment webhook — Mercado Pago notifications.

    POST /payment/webhook?type=payment&data.id=<payment id>

Mercado Pago retries until it gets a 2xx. Responses:
    200  processed, duplicate, stale or irrelevant topic
    401  bad or missing signature
    404  order not committed yet (retryable, redelivery wanted)
    502  payment lookup at the gateway failed (retryable)
    503  storage unavailable (retryable)

SIMULATION_MODE adds POST /simulate/payment, which settles an order through
the same reconcile path without a real payment.
"""
import logging
import uuid

from fastapi import APIRouter, Depends, Header, HTTPException, Request
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from deps import get_db, get_payment_gateway
from domain.constants import WEBHOOK_PAYMENT_TOPIC
from domain.enums import ReconcileOutcome
from domain.responses import success_response
from middleware.rate_limit import rate_limit
from models import SimulatePaymentRequest, WebhookNotification
from services import payment_gateway, webhook_reconciler

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payment", tags=["payment"])
sim_router = APIRouter(prefix="/simulate", tags=["simulation"])


async def _read_notification(request: Request) -> WebhookNotification:
    try:
        body = await request.json()
    except ValueError:
        body = {}
    if not isinstance(body, dict):
        body = {}
    try:
        return WebhookNotification.model_validate(body)
    except PydanticValidationError:
        logger.warning("Unparseable webhook body; falling back to query parameters")
        return WebhookNotification()


def _ignored(reason: str) -> dict:
    return success_response(data={"outcome": ReconcileOutcome.IGNORED.value, "reason": reason})


@router.post("/webhook")
async def payment_webhook(
    request: Request,
    x_signature: str | None = Header(None, alias="x-signature"),
    x_request_id: str | None = Header(None, alias="x-request-id"),
    gateway=Depends(get_payment_gateway),
    db: AsyncSession = Depends(get_db),
):
    notification = await _read_notification(request)
    params = request.query_params

    topic = notification.type or params.get("type") or params.get("topic")
    if topic != WEBHOOK_PAYMENT_TOPIC:
        logger.info(f"Webhook topic '{topic}' ignored")
        return _ignored("topic")

    data_id = params.get("data.id") or (str(notification.data.id) if notification.data else None)
    if not data_id:
        logger.warning("Payment webhook without data.id; acknowledging")
        return _ignored("missing_payment_id")

    if not payment_gateway.verify_webhook_signature(x_signature, x_request_id, data_id):
        raise HTTPException(status_code=401, detail="Invalid webhook signature")

    payment = await gateway.get_payment(data_id)
    external_reference = payment.get("external_reference")
    if not external_reference:
        logger.warning(f"Payment {data_id} carries no external_reference; acknowledging")
        return _ignored("missing_external_reference")

    ack = await webhook_reconciler.reconcile(
        db,
        payment_id=payment["id"],
        external_reference=external_reference,
        gateway_status=payment["status"],
    )
    return success_response(data=ack)


# ════════════════════════════════════════════════════════════════════
# Simulation
# ════════════════════════════════════════════════════════════════════


@sim_router.post("/payment")
async def simulate_payment(
    req: SimulatePaymentRequest,
    _rate=Depends(rate_limit(max_requests=30, window_seconds=60)),
    gateway=Depends(get_payment_gateway),
    db: AsyncSession = Depends(get_db),
):
    """
    Pretend the buyer paid (or was declined) at the gateway.

    Records the payment on the simulated gateway and applies it exactly
    as a webhook would. Double-guarded: simulation mode on and not a
    production environment.
    """
    if not settings.simulation_mode or settings.environment == "production":
        raise HTTPException(status_code=403, detail="Simulation endpoint disabled")
    if not isinstance(gateway, payment_gateway.SimulatedGateway):
        raise HTTPException(status_code=403, detail="Simulation endpoint requires the simulated gateway")

    payment_id = req.payment_id or f"sim-pay-{uuid.uuid4().hex[:12]}"
    gateway.record_payment(payment_id, req.external_reference, req.status)
    payment = await gateway.get_payment(payment_id)
    logger.info(f"  🎮 Simulated payment {payment_id} ({req.status}) for {req.external_reference}")

    ack = await webhook_reconciler.reconcile(
        db,
        payment_id=payment["id"],
        external_reference=payment["external_reference"],
        gateway_status=payment["status"],
    )
    return success_response(data={**ack, "paymentId": payment_id})
