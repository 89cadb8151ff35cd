"""
Concurrency tests against a file-backed SQLite database.

Each checkout runs on its own session/connection so the conditional
reservation UPDATE is what decides the winner.
"""
import asyncio

import pytest
from sqlalchemy import select

from database import Base
from db_models import Order, Product
from domain.enums import OrderStatus
from domain.errors import OutOfStockError
from services import catalog_service, checkout_service, order_ledger, webhook_reconciler
from services.payment_gateway import SimulatedGateway

BUYER = {"email": "rush@example.com", "name": "Rush Buyer"}
SHIPPING = {"full_name": "Rush Buyer", "address_line": "Av. Paulista, 1000", "city": "São Paulo",
            "state": "SP", "zip_code": "01310-100", "country": "BR"}


@pytest.fixture
async def shared_db(file_db_sessionmaker):
    engine, sessionmaker = file_db_sessionmaker
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield sessionmaker
    await engine.dispose()


async def _seed(sessionmaker, stock: int) -> int:
    async with sessionmaker() as db:
        product = await catalog_service.create_product(db, name="Last Pair", price="199.90", stock=stock)
        await db.commit()
        return product.id


async def _attempt(sessionmaker, gateway, product_id: int):
    async with sessionmaker() as db:
        try:
            return await checkout_service.checkout(
                db,
                gateway,
                cart_items=[{"product_id": product_id, "quantity": 1}],
                buyer_contact=BUYER,
                shipping_details=SHIPPING,
            )
        except OutOfStockError as e:
            return e


@pytest.mark.integration
@pytest.mark.asyncio
async def test_last_unit_sold_once(shared_db):
    product_id = await _seed(shared_db, stock=1)
    gateway = SimulatedGateway()

    results = await asyncio.gather(*(_attempt(shared_db, gateway, product_id) for _ in range(8)))

    winners = [r for r in results if isinstance(r, dict)]
    losers = [r for r in results if isinstance(r, OutOfStockError)]
    assert len(winners) == 1
    assert len(losers) == 7

    async with shared_db() as db:
        product = await db.get(Product, product_id)
        assert (product.stock, product.reserved) == (1, 1)
        orders = (await db.execute(select(Order))).scalars().all()
        assert len(orders) == 1

        # Payment rejected: the unit returns to the pool, never below zero
        await webhook_reconciler.reconcile(
            db,
            payment_id="77",
            external_reference=winners[0]["externalReference"],
            gateway_status="rejected",
        )
        await db.refresh(product)
        assert (product.stock, product.reserved) == (1, 0)


@pytest.mark.integration
@pytest.mark.asyncio
async def test_concurrent_duplicate_notifications_apply_once(shared_db):
    product_id = await _seed(shared_db, stock=3)
    gateway = SimulatedGateway()
    placed = await _attempt(shared_db, gateway, product_id)
    ref = placed["externalReference"]

    async def deliver():
        async with shared_db() as db:
            return await webhook_reconciler.reconcile(
                db, payment_id="555", external_reference=ref, gateway_status="approved"
            )

    acks = await asyncio.gather(*(deliver() for _ in range(5)))
    outcomes = sorted(a["outcome"] for a in acks)
    assert outcomes.count("applied") == 1
    assert set(outcomes) <= {"applied", "duplicate"}

    async with shared_db() as db:
        product = await db.get(Product, product_id)
        assert (product.stock, product.reserved) == (2, 0)
        order = await order_ledger.get(db, ref)
        assert order.status == OrderStatus.APPROVED.value
        assert len(await order_ledger.list_events(db, order)) == 1
