"""
Inventory guard — soft reservations in front of durable stock.

Two counters per product:
    stock     durable on-hand units, decremented only by commit()
    reserved  units held by in-flight checkouts

reserve() raises `reserved` with a conditional UPDATE
(`WHERE stock - reserved >= :qty`) so concurrent checkouts for the last
unit cannot both succeed. commit() and release() flip the reservation row
with a compare-and-swap on its status, so repeating either is a no-op.
"""
import logging
import uuid
from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from db_models import Product, StockReservation, ReservationLine
from domain.enums import OrderStatus, ReservationStatus
from domain.errors import OutOfStockError, ValidationError

logger = logging.getLogger(__name__)


def _aggregate(items: list[dict]) -> dict[int, int]:
    """Sum quantities per product: [{product_id, quantity}] -> {product_id: qty}."""
    totals: dict[int, int] = {}
    for item in items:
        qty = int(item["quantity"])
        if qty <= 0:
            raise ValidationError("Quantity must be positive", field="quantity")
        pid = int(item["product_id"])
        totals[pid] = totals.get(pid, 0) + qty
    return totals


async def available(db: AsyncSession, product_id: int) -> int:
    res = await db.execute(
        select(Product.stock - Product.reserved).where(Product.id == product_id)
    )
    value = res.scalar_one_or_none()
    return int(value) if value is not None else 0


async def _hold(db: AsyncSession, product_id: int, quantity: int) -> bool:
    res = await db.execute(
        update(Product)
        .where(Product.id == product_id, Product.stock - Product.reserved >= quantity)
        .values(reserved=Product.reserved + quantity)
        .execution_options(synchronize_session=False)
    )
    return res.rowcount == 1


async def _unhold(db: AsyncSession, product_id: int, quantity: int) -> None:
    await db.execute(
        update(Product)
        .where(Product.id == product_id)
        .values(reserved=Product.reserved - quantity)
        .execution_options(synchronize_session=False)
    )


async def reserve(db: AsyncSession, items: list[dict]) -> str:
    """
    Hold stock for every cart line, all or nothing.

    items: [{product_id:int, quantity:int}] (repeated products are summed)

    Returns the reservation id. Raises OutOfStockError naming the first
    product that cannot be held; lines already held are given back first.
    """
    totals = _aggregate(items)
    if not totals:
        raise ValidationError("Cart is empty")

    held: list[tuple[int, int]] = []
    # Fixed product order keeps row locks acquired in the same sequence everywhere
    for product_id in sorted(totals):
        qty = totals[product_id]
        if await _hold(db, product_id, qty):
            held.append((product_id, qty))
            continue

        for pid, q in held:
            await _unhold(db, pid, q)
        left = await available(db, product_id)
        logger.info(f"  ⛔ Reservation refused: product {product_id} wants {qty}, {left} available")
        raise OutOfStockError(product_id, qty, available=left)

    reservation = StockReservation(
        id=uuid.uuid4().hex,
        status=ReservationStatus.HELD.value,
        lines=[ReservationLine(product_id=pid, quantity=q) for pid, q in held],
    )
    db.add(reservation)
    await db.flush()

    logger.info(f"  📦 Reservation {reservation.id} held: {dict(held)}")
    return reservation.id


async def _settle(db: AsyncSession, reservation_id: str, target: ReservationStatus) -> bool:
    """Move a held reservation to `target`. False if it was not held."""
    res = await db.execute(
        update(StockReservation)
        .where(
            StockReservation.id == reservation_id,
            StockReservation.status == ReservationStatus.HELD.value,
        )
        .values(status=target.value, settled_at=datetime.utcnow())
        .execution_options(synchronize_session=False)
    )
    return res.rowcount == 1


async def _lines(db: AsyncSession, reservation_id: str) -> list[ReservationLine]:
    res = await db.execute(
        select(ReservationLine).where(ReservationLine.reservation_id == reservation_id)
    )
    return list(res.scalars().all())


async def commit(db: AsyncSession, reservation_id: str) -> bool:
    """
    Turn a held reservation into a durable stock decrement.

    Idempotent: returns False (no change) if the reservation is already
    committed or released.
    """
    if not await _settle(db, reservation_id, ReservationStatus.COMMITTED):
        logger.debug(f"Reservation {reservation_id} not held; commit is a no-op")
        return False

    for line in await _lines(db, reservation_id):
        await db.execute(
            update(Product)
            .where(Product.id == line.product_id)
            .values(
                stock=Product.stock - line.quantity,
                reserved=Product.reserved - line.quantity,
            )
            .execution_options(synchronize_session=False)
        )

    logger.info(f"  ✅ Reservation {reservation_id} committed")
    return True


async def release(db: AsyncSession, reservation_id: str) -> bool:
    """
    Give held units back to the available pool.

    Idempotent: returns False if the reservation is not held (already
    released, or committed — committed stock is never handed back here).
    """
    if not await _settle(db, reservation_id, ReservationStatus.RELEASED):
        logger.debug(f"Reservation {reservation_id} not held; release is a no-op")
        return False

    for line in await _lines(db, reservation_id):
        await _unhold(db, line.product_id, line.quantity)

    logger.info(f"  ↩️  Reservation {reservation_id} released")
    return True


async def handle_order_event(db: AsyncSession, *, reservation_id: str | None, to_status: OrderStatus) -> None:
    """Consume an order ledger transition: approved commits, rejected releases."""
    if not reservation_id:
        return
    if to_status == OrderStatus.APPROVED:
        await commit(db, reservation_id)
    elif to_status == OrderStatus.REJECTED:
        await release(db, reservation_id)
