"""
Order endpoints — buyer lookup plus the admin order desk.

    GET  /orders/{external_reference}              — order with frozen line items
    GET  /admin/orders                             — paginated order listing
    POST /admin/orders/{external_reference}/ship   — operator: approved → shipped
"""
import json
import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from deps import Pagination, get_db, get_optional_buyer, pagination_params, require_admin
from domain.constants import CAUSATION_OPERATOR_SHIP
from domain.enums import OrderStatus
from domain.errors import ConflictError, PermissionDeniedError
from domain.responses import paginated_response, success_response
from services import order_ledger
from utils.money import from_cents

logger = logging.getLogger(__name__)

router = APIRouter(tags=["orders"])
admin_router = APIRouter(prefix="/admin/orders", tags=["admin"])


def order_payload(order, *, include_events: list | None = None) -> dict:
    payload = {
        "id": order.id,
        "externalReference": order.external_reference,
        "status": order.status,
        "totalAmount": str(from_cents(order.total_amount_cents)),
        "currency": order.currency,
        "buyerEmail": order.buyer_email,
        "buyerName": order.buyer_name,
        "paymentId": order.payment_id,
        "preferenceId": order.preference_id,
        "shipping": json.loads(order.shipping_snapshot or "{}"),
        "createdAt": order.created_at.isoformat() if order.created_at else None,
        "items": [
            {
                "lineNo": it.line_no,
                "productId": it.product_id,
                "productName": it.product_name,
                "quantity": it.quantity,
                "unitPriceAtPurchase": str(from_cents(it.unit_price_cents)),
                "size": it.size,
                "color": it.color,
            }
            for it in order.items
        ],
    }
    if include_events is not None:
        payload["history"] = [
            {
                "from": e.from_status,
                "to": e.to_status,
                "cause": e.causation_id,
                "at": e.created_at.isoformat() if e.created_at else None,
            }
            for e in include_events
        ]
    return payload


@router.get("/orders/{external_reference}")
async def get_order(
    external_reference: str,
    buyer_id: str | None = Depends(get_optional_buyer),
    db: AsyncSession = Depends(get_db),
):
    order = await order_ledger.get(db, external_reference)
    if order.buyer_id and order.buyer_id != buyer_id:
        raise PermissionDeniedError("This order belongs to another account.")
    return success_response(data=order_payload(order))


@admin_router.get("")
async def list_orders(
    status: OrderStatus | None = Query(None),
    page: Pagination = Depends(pagination_params),
    _admin: str = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    orders, total = await order_ledger.list_orders(
        db, status=status, limit=page["limit"], offset=page["offset"]
    )
    return paginated_response(
        [order_payload(o) for o in orders],
        limit=page["limit"],
        offset=page["offset"],
        total=total,
    )


@admin_router.get("/{external_reference}")
async def get_order_admin(
    external_reference: str,
    _admin: str = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    order = await order_ledger.get(db, external_reference)
    events = await order_ledger.list_events(db, order)
    return success_response(data=order_payload(order, include_events=events))


@admin_router.post("/{external_reference}/ship")
async def ship_order(
    external_reference: str,
    admin: str = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    order = await order_ledger.get(db, external_reference)
    current = OrderStatus(order.status)
    if current != OrderStatus.SHIPPED and not order_ledger.can_transition(current, OrderStatus.SHIPPED):
        raise ConflictError(f"Order {external_reference} is {current.value}; only approved orders can ship")

    result = await order_ledger.transition(
        db,
        external_reference,
        OrderStatus.SHIPPED,
        causation_id=f"{CAUSATION_OPERATOR_SHIP}:{admin}",
    )
    await db.commit()
    logger.info(f"Order {external_reference} marked shipped by {admin} (applied={result.applied})")
    return success_response(
        data={**order_payload(result.order), "applied": result.applied},
    )
