"""
Catalog service — products as seen by the storefront and by checkout.

Checkout only reads from here (price, stock, visibility). Stock counters
are written exclusively by the inventory guard; admin edits may replace
`stock` but never touch `reserved`.
"""

import json
from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from db_models import Product
from domain.errors import NotFoundError, ValidationError
from utils.money import from_cents, to_cents


def product_to_dict(p: Product) -> dict:
    return {
        "id": p.id,
        "name": p.name,
        "description": p.description,
        "brand": p.brand,
        "gender": p.gender,
        "price": str(from_cents(p.price_cents)),
        "old_price": str(from_cents(p.old_price_cents)) if p.old_price_cents is not None else None,
        "image_url": p.image_url,
        "sizes": json.loads(p.sizes) if p.sizes else [],
        "stock": p.stock,
        "available": p.stock - p.reserved,
        "visible": p.visible,
    }


async def create_product(
    db: AsyncSession,
    *,
    name: str,
    price,
    stock: int = 0,
    description: str | None = None,
    brand: str | None = None,
    gender: str = "Unisex",
    old_price=None,
    image_url: str | None = None,
    sizes: list[str] | None = None,
    visible: bool = True,
) -> Product:
    if stock < 0:
        raise ValidationError("Stock cannot be negative", field="stock")
    product = Product(
        name=name,
        description=description,
        brand=brand,
        gender=gender,
        price_cents=to_cents(price),
        old_price_cents=to_cents(old_price) if old_price is not None else None,
        image_url=image_url,
        sizes=json.dumps(sizes or []),
        stock=stock,
        reserved=0,
        visible=visible,
    )
    db.add(product)
    await db.flush()
    return product


async def get_product(db: AsyncSession, product_id: int, *, include_hidden: bool = False) -> Product:
    stmt = select(Product).where(Product.id == product_id)
    if not include_hidden:
        stmt = stmt.where(Product.visible == True)  # noqa: E712
    res = await db.execute(stmt.execution_options(populate_existing=True))
    product = res.scalar_one_or_none()
    if not product:
        raise NotFoundError("Product", str(product_id))
    return product


async def list_products(db: AsyncSession, *, limit: int = 20, offset: int = 0) -> tuple[list[Product], int]:
    res = await db.execute(
        select(Product)
        .where(Product.visible == True)  # noqa: E712
        .order_by(Product.created_at.desc(), Product.id.desc())
        .limit(limit)
        .offset(offset)
    )
    total = (
        await db.execute(select(func.count(Product.id)).where(Product.visible == True))  # noqa: E712
    ).scalar_one()
    return list(res.scalars().all()), int(total)


async def lookup_for_checkout(db: AsyncSession, product_ids: list[int]) -> dict[int, Product]:
    """Visible products by id; missing or hidden ids are simply absent."""
    if not product_ids:
        return {}
    res = await db.execute(
        select(Product)
        .where(Product.id.in_(set(product_ids)), Product.visible == True)  # noqa: E712
        .execution_options(populate_existing=True)
    )
    return {p.id: p for p in res.scalars().all()}


async def update_product(
    db: AsyncSession,
    *,
    product_id: int,
    name: str | None = None,
    description: str | None = None,
    brand: str | None = None,
    price=None,
    old_price=None,
    clear_old_price: bool = False,
    stock: int | None = None,
    image_url: str | None = None,
    sizes: list[str] | None = None,
    visible: bool | None = None,
) -> Product:
    """
    Update a product's fields. Only provided fields are updated;
    `clear_old_price` ends a promotion.

    Price edits apply to future checkouts only; placed orders keep the
    unit price frozen on their line items.
    """
    product = await get_product(db, product_id, include_hidden=True)

    if stock is not None:
        if stock < product.reserved:
            raise ValidationError(
                f"Stock cannot drop below the {product.reserved} units currently reserved",
                field="stock",
            )
        product.stock = stock
    if name is not None:
        product.name = name
    if description is not None:
        product.description = description
    if brand is not None:
        product.brand = brand
    if price is not None:
        product.price_cents = to_cents(price)
    if old_price is not None:
        product.old_price_cents = to_cents(old_price)
    elif clear_old_price:
        product.old_price_cents = None
    if image_url is not None:
        product.image_url = image_url
    if sizes is not None:
        product.sizes = json.dumps(sizes)
    if visible is not None:
        product.visible = visible

    product.updated_at = datetime.utcnow()
    await db.flush()
    return product


async def hide_product(db: AsyncSession, product_id: int) -> Product:
    """
    Take a product off the storefront.

    Rows are never deleted: placed orders and open reservations reference
    them. Hidden products cannot be checked out.
    """
    product = await get_product(db, product_id, include_hidden=True)
    product.visible = False
    product.updated_at = datetime.utcnow()
    await db.flush()
    return product
