"""
Checkout service — cart → reservation → pending order → gateway preference.

Flow:
    1. Validate the cart against the visible catalog
    2. Hold stock for every line (all or nothing)
    3. Freeze current catalog prices into line items and total them
    4. Persist the order `pending` under a fresh external reference, commit
    5. Ask the gateway for a payment preference carrying that reference

If step 5 fails the order is moved to `rejected`, which releases the
reservation, and the GatewayError is surfaced. No reservation outlives a
failed checkout.
"""
import logging
import secrets
from datetime import datetime, timezone

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from domain.constants import CAUSATION_GATEWAY_FAILURE, EXTERNAL_REFERENCE_PREFIX
from domain.enums import OrderStatus
from domain.errors import DomainError, GatewayError, PersistenceError, ValidationError
from services import catalog_service, inventory_guard, order_ledger
from utils.money import from_cents

logger = logging.getLogger(__name__)


def new_external_reference() -> str:
    """ord_<UTC yyyymmddHHMMSS>_<64 random bits as hex>."""
    stamp = datetime.now(timezone.utc).strftime("%Y%m%d%H%M%S")
    return f"{EXTERNAL_REFERENCE_PREFIX}_{stamp}_{secrets.token_hex(8)}"


def _validate_cart(cart_items: list[dict]) -> None:
    if not cart_items:
        raise ValidationError("Cart is empty")
    if len(cart_items) > settings.checkout_max_line_items:
        raise ValidationError(f"Cart exceeds {settings.checkout_max_line_items} lines")
    for item in cart_items:
        if int(item.get("quantity", 0)) <= 0:
            raise ValidationError("Quantity must be positive", field="quantity")


async def _place_order(
    db: AsyncSession,
    *,
    cart_items: list[dict],
    buyer_contact: dict,
    shipping_details: dict,
    buyer_id: str | None,
):
    """Reserve, freeze prices and persist. Caller commits or rolls back."""
    products = await catalog_service.lookup_for_checkout(
        db, [int(i["product_id"]) for i in cart_items]
    )
    for item in cart_items:
        if int(item["product_id"]) not in products:
            raise ValidationError(f"Product {item['product_id']} not available", field="product_id")

    reservation_id = await inventory_guard.reserve(
        db,
        [{"product_id": i["product_id"], "quantity": i["quantity"]} for i in cart_items],
    )

    line_items = []
    for item in cart_items:
        p = products[int(item["product_id"])]
        line_items.append(
            {
                "product_id": p.id,
                "product_name": p.name,
                "quantity": int(item["quantity"]),
                "unit_price_cents": p.price_cents,
                "size": item.get("size"),
                "color": item.get("color"),
            }
        )

    return await order_ledger.create(
        db,
        line_items=line_items,
        total_amount=order_ledger.order_total(line_items),
        shipping_snapshot=shipping_details,
        external_reference=new_external_reference(),
        buyer_email=buyer_contact["email"],
        buyer_name=buyer_contact.get("name"),
        buyer_id=buyer_id,
        reservation_id=reservation_id,
        currency=settings.currency,
    )


async def checkout(
    db: AsyncSession,
    gateway,
    *,
    cart_items: list[dict],
    buyer_contact: dict,
    shipping_details: dict,
    buyer_id: str | None = None,
) -> dict:
    """
    Turn a cart into a durable pending order with a gateway preference.

    cart_items: [{product_id:int, quantity:int, size?:str, color?:str}]
    buyer_contact: {email, name?}

    Returns {externalReference, preferenceId, orderId, totalAmount, currency}.
    Raises ValidationError, OutOfStockError, GatewayError or PersistenceError.
    """
    _validate_cart(cart_items)

    try:
        order = await _place_order(
            db,
            cart_items=cart_items,
            buyer_contact=buyer_contact,
            shipping_details=shipping_details,
            buyer_id=buyer_id,
        )
        await db.commit()
    except DomainError:
        await db.rollback()
        raise
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(f"Checkout persistence failed: {e}")
        raise PersistenceError("Could not place the order") from e

    external_reference = order.external_reference
    gateway_items = [
        {
            "id": it.product_id,
            "title": it.product_name,
            "quantity": it.quantity,
            "unit_price": from_cents(it.unit_price_cents),
            "currency_id": order.currency,
        }
        for it in order.items
    ]

    try:
        preference_id = await gateway.create_preference(
            items=gateway_items,
            payer={k: v for k, v in buyer_contact.items() if v},
            external_reference=external_reference,
            callback_urls=settings.callback_urls,
            notification_url=settings.webhook_url,
        )
    except GatewayError:
        logger.warning(f"  ❌ Gateway failed for {external_reference}; rejecting order and releasing stock")
        await _abandon(db, external_reference)
        raise

    try:
        order.preference_id = preference_id
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(f"Could not store preference {preference_id} on {external_reference}: {e}")
        raise PersistenceError("Could not finalize the order") from e

    logger.info(
        f"  🛒 Checkout complete: {external_reference} "
        f"({from_cents(order.total_amount_cents)} {order.currency}, preference {preference_id})"
    )
    return {
        "externalReference": external_reference,
        "preferenceId": preference_id,
        "orderId": order.id,
        "totalAmount": str(from_cents(order.total_amount_cents)),
        "currency": order.currency,
    }


async def _abandon(db: AsyncSession, external_reference: str) -> None:
    """Compensate a checkout whose gateway call failed."""
    try:
        await order_ledger.transition(
            db, external_reference, OrderStatus.REJECTED, CAUSATION_GATEWAY_FAILURE
        )
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(f"Could not release reservation for {external_reference}: {e}")
        raise PersistenceError("Could not release the reservation") from e
