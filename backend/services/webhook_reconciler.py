"""
Webhook reconciler — applies payment notifications to the order ledger.

Mercado Pago delivers notifications at least once and in no particular
order. reconcile() therefore:

    - maps the gateway status onto an order status (pure, total)
    - treats a repeat of the current status as a duplicate (ack)
    - treats a status the order has already moved past as stale (ack)
    - raises OrderNotVisibleError (retryable) for an unknown reference,
      since the order may simply not be committed yet
    - raises PersistenceError (retryable) when the database fails

Business outcomes are always acknowledged; only transient failures make
the gateway redeliver.
"""
import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from domain.enums import OrderStatus, ReconcileOutcome
from domain.errors import InvalidTransitionError, OrderNotVisibleError, PersistenceError
from services import order_ledger

logger = logging.getLogger(__name__)


_STATUS_MAP = {
    "approved": OrderStatus.APPROVED,
    "rejected": OrderStatus.REJECTED,
    "cancelled": OrderStatus.REJECTED,
}


def map_gateway_status(gateway_status: str | None) -> OrderStatus:
    """approved→approved, rejected|cancelled→rejected, anything else→pending."""
    return _STATUS_MAP.get((gateway_status or "").strip().lower(), OrderStatus.PENDING)


def _ack(outcome: ReconcileOutcome, external_reference: str, status: str) -> dict:
    return {
        "outcome": outcome.value,
        "externalReference": external_reference,
        "orderStatus": status,
    }


async def reconcile(
    db: AsyncSession,
    *,
    payment_id: str,
    external_reference: str,
    gateway_status: str,
) -> dict:
    """
    Apply one payment notification. Commits on success.

    Returns an ack: {outcome: applied|duplicate|stale|ignored,
    externalReference, orderStatus}.
    """
    target = map_gateway_status(gateway_status)
    logger.info(
        f"  📩 Payment notification: payment={payment_id} ref={external_reference} "
        f"status={gateway_status} → {target.value}"
    )

    try:
        order = await order_ledger.find(db, external_reference)
        if not order:
            logger.warning(f"  Payment {payment_id} for unknown order {external_reference}; asking for redelivery")
            raise OrderNotVisibleError(external_reference)

        current = OrderStatus(order.status)

        if target == OrderStatus.PENDING:
            return _ack(ReconcileOutcome.IGNORED, external_reference, current.value)

        if current == target:
            logger.info(f"  🔁 Duplicate notification for {external_reference} ({current.value})")
            return _ack(ReconcileOutcome.DUPLICATE, external_reference, current.value)

        if not order_ledger.can_transition(current, target) and order_ledger.is_behind(current, target):
            logger.warning(
                f"  ⏮️  Stale notification for {external_reference}: "
                f"order is {current.value}, gateway says {gateway_status}"
            )
            return _ack(ReconcileOutcome.STALE, external_reference, current.value)

        try:
            result = await order_ledger.transition(
                db,
                external_reference,
                target,
                causation_id=f"payment:{payment_id}",
                payment_id=payment_id,
            )
        except InvalidTransitionError as e:
            # Another delivery moved the order between our read and the swap
            await db.rollback()
            if order_ledger.is_behind(OrderStatus(e.current), target):
                logger.warning(f"  ⏮️  Notification for {external_reference} overtaken (now {e.current})")
                return _ack(ReconcileOutcome.STALE, external_reference, e.current)
            raise
        await db.commit()

    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(f"Reconcile of {external_reference} failed in storage: {e}")
        raise PersistenceError("Could not record payment notification") from e

    outcome = ReconcileOutcome.APPLIED if result.applied else ReconcileOutcome.DUPLICATE
    return _ack(outcome, external_reference, result.order.status)
