"""
Order ledger — the canonical order state machine.

    pending  → approved | rejected
    approved → shipped
    rejected, shipped are terminal

transition() is the only writer of Order.status. It is idempotent (asking
for the status the order already has is a no-op success) and serialized
per order by a compare-and-swap on the current status, so two concurrent
notifications for the same order cannot both apply.

Every applied transition appends an OrderStatusEvent and is handed to the
inventory guard in the same database transaction.
"""
import json
import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from db_models import Order, OrderItem, OrderStatusEvent
from domain.enums import OrderStatus
from domain.errors import InvalidTransitionError, NotFoundError, PersistenceError, ValidationError
from utils.money import from_cents, to_cents, within_tolerance

logger = logging.getLogger(__name__)


TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.APPROVED, OrderStatus.REJECTED}),
    OrderStatus.APPROVED: frozenset({OrderStatus.SHIPPED}),
    OrderStatus.REJECTED: frozenset(),
    OrderStatus.SHIPPED: frozenset(),
}

TERMINAL = frozenset(s for s, targets in TRANSITIONS.items() if not targets)

# Position along the lifecycle; rejected and approved sit at the same depth.
_DEPTH = {
    OrderStatus.PENDING: 0,
    OrderStatus.APPROVED: 1,
    OrderStatus.REJECTED: 1,
    OrderStatus.SHIPPED: 2,
}

_MAX_CAS_ATTEMPTS = 3


@dataclass
class TransitionResult:
    order: Order
    applied: bool
    from_status: OrderStatus


def can_transition(current: OrderStatus, target: OrderStatus) -> bool:
    return target in TRANSITIONS[current]


def is_behind(current: OrderStatus, target: OrderStatus) -> bool:
    """True when `target` describes a state the order has already moved past."""
    return current in TERMINAL or _DEPTH[current] >= _DEPTH[target]


def order_total(line_items: list[dict]) -> Decimal:
    return sum(
        (from_cents(i["unit_price_cents"]) * int(i["quantity"]) for i in line_items),
        Decimal("0.00"),
    )


# ════════════════════════════════════════════════════════════════════
# Create / read
# ════════════════════════════════════════════════════════════════════


async def create(
    db: AsyncSession,
    *,
    line_items: list[dict],
    total_amount: Decimal,
    shipping_snapshot: dict,
    external_reference: str,
    buyer_email: str,
    buyer_name: str | None = None,
    buyer_id: str | None = None,
    reservation_id: str | None = None,
    currency: str = "BRL",
) -> Order:
    """
    Persist a new `pending` order with its line items.

    line_items: [{product_id, product_name, quantity, unit_price_cents, size?, color?}]

    Raises ValidationError if there are no line items, a quantity is not
    positive, or `total_amount` does not match the line item sum.
    """
    if not line_items:
        raise ValidationError("Order must contain at least one line item")
    for i in line_items:
        if int(i["quantity"]) <= 0:
            raise ValidationError("Quantity must be positive", field="quantity")

    expected = order_total(line_items)
    if not within_tolerance(total_amount, expected):
        raise ValidationError(
            f"Total {total_amount} does not match line items ({expected})",
            field="total_amount",
        )

    order = Order(
        external_reference=external_reference,
        status=OrderStatus.PENDING.value,
        total_amount_cents=to_cents(expected),
        currency=currency,
        buyer_id=buyer_id,
        buyer_email=buyer_email,
        buyer_name=buyer_name,
        shipping_snapshot=json.dumps(shipping_snapshot or {}, sort_keys=True),
        reservation_id=reservation_id,
        created_at=datetime.utcnow(),
        items=[
            OrderItem(
                line_no=n,
                product_id=int(i["product_id"]),
                product_name=i["product_name"],
                quantity=int(i["quantity"]),
                unit_price_cents=int(i["unit_price_cents"]),
                size=i.get("size"),
                color=i.get("color"),
            )
            for n, i in enumerate(line_items, start=1)
        ],
    )
    db.add(order)
    await db.flush()

    logger.info(f"  🧾 Order {external_reference} created ({expected} {currency}, {len(line_items)} lines)")
    return order


async def _load(db: AsyncSession, external_reference: str, *, for_update: bool = False) -> Order | None:
    stmt = select(Order).where(Order.external_reference == external_reference)
    if for_update:
        # Row lock where the backend has one; the status CAS below covers SQLite
        stmt = stmt.with_for_update()
    res = await db.execute(stmt.execution_options(populate_existing=True))
    return res.scalar_one_or_none()


async def find(db: AsyncSession, external_reference: str) -> Order | None:
    return await _load(db, external_reference)


async def get(db: AsyncSession, external_reference: str) -> Order:
    order = await _load(db, external_reference)
    if not order:
        raise NotFoundError("Order", external_reference)
    return order


async def list_orders(
    db: AsyncSession,
    *,
    status: OrderStatus | None = None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[Order], int]:
    stmt = select(Order)
    count_stmt = select(func.count(Order.id))
    if status is not None:
        stmt = stmt.where(Order.status == status.value)
        count_stmt = count_stmt.where(Order.status == status.value)

    res = await db.execute(
        stmt.order_by(Order.created_at.desc(), Order.id.desc()).limit(limit).offset(offset)
    )
    total = (await db.execute(count_stmt)).scalar_one()
    return list(res.scalars().all()), int(total)


async def list_events(db: AsyncSession, order: Order) -> list[OrderStatusEvent]:
    res = await db.execute(
        select(OrderStatusEvent)
        .where(OrderStatusEvent.order_id == order.id)
        .order_by(OrderStatusEvent.id)
    )
    return list(res.scalars().all())


# ════════════════════════════════════════════════════════════════════
# Transition
# ════════════════════════════════════════════════════════════════════


async def transition(
    db: AsyncSession,
    external_reference: str,
    target: OrderStatus,
    causation_id: str | None = None,
    *,
    payment_id: str | None = None,
) -> TransitionResult:
    """
    Move an order to `target`.

    - Already at `target`: no-op, `applied=False`.
    - `target` not reachable from the current status: InvalidTransitionError,
      nothing written.
    - Otherwise the status is swapped only if it is still the one just read;
      losing that race re-reads and re-evaluates.

    `payment_id` is recorded the first time a gateway payment moves the order.
    The caller owns the transaction (flush only, no commit).
    """
    target = OrderStatus(target)

    for _ in range(_MAX_CAS_ATTEMPTS):
        order = await _load(db, external_reference, for_update=True)
        if not order:
            raise NotFoundError("Order", external_reference)

        current = OrderStatus(order.status)
        if current == target:
            logger.info(f"  🔁 Order {external_reference} already {target.value}; no-op")
            return TransitionResult(order=order, applied=False, from_status=current)

        if not can_transition(current, target):
            logger.error(
                f"Rejected transition for order {external_reference}: "
                f"{current.value} → {target.value} (cause={causation_id})"
            )
            raise InvalidTransitionError(external_reference, current.value, target.value)

        values = {"status": target.value, "updated_at": datetime.utcnow()}
        if payment_id and not order.payment_id:
            values["payment_id"] = payment_id

        res = await db.execute(
            update(Order)
            .where(Order.id == order.id, Order.status == current.value)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if res.rowcount != 1:
            logger.warning(f"Order {external_reference} changed concurrently; re-reading")
            continue

        db.add(
            OrderStatusEvent(
                order_id=order.id,
                from_status=current.value,
                to_status=target.value,
                causation_id=causation_id,
            )
        )

        from services import inventory_guard

        await inventory_guard.handle_order_event(
            db, reservation_id=order.reservation_id, to_status=target
        )
        await db.flush()

        order = await _load(db, external_reference)
        logger.info(
            f"  ➡️  Order {external_reference}: {current.value} → {target.value} (cause={causation_id})"
        )
        return TransitionResult(order=order, applied=True, from_status=current)

    raise PersistenceError(f"Order {external_reference} is being updated concurrently")
