"""
SQLAlchemy ORM models for the storefront API.

Tables:
    products             — catalog items with durable stock and reserved counters
    stock_reservations   — one soft reservation per checkout (held/committed/released)
    reservation_lines    — per-product quantities held by a reservation
    orders               — buyer orders, keyed by a unique external reference
    order_items          — price-frozen line items owned by an order
    order_status_events  — append-only audit trail of applied status transitions
    site_config          — versioned storefront theming records
    banners              — home page banners
    coupons              — percentage discount codes

Money columns hold integer minor units (cents).
"""
from datetime import datetime

from sqlalchemy import (
    Column, Integer, String, Boolean, DateTime, Text, ForeignKey,
    UniqueConstraint, CheckConstraint, Index,
)
from sqlalchemy.orm import relationship

from database import Base


# ════════════════════════════════════════════════════════════════════
# Catalog
# ════════════════════════════════════════════════════════════════════

class Product(Base):
    """
    Catalog product.

    `stock` is the durable on-hand count, decremented only when a reservation
    is committed. `reserved` counts units held by in-flight checkouts.
    Available-to-sell is `stock - reserved`.
    """
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    brand = Column(String(100), nullable=True)
    gender = Column(String(10), nullable=False, default="Unisex")  # Men | Women | Kids | Unisex
    price_cents = Column(Integer, nullable=False)
    old_price_cents = Column(Integer, nullable=True)  # > price_cents => shown as a promotion
    image_url = Column(String(500), nullable=True)
    sizes = Column(Text, nullable=True)  # JSON list, e.g. ["38", "39"]
    stock = Column(Integer, nullable=False, default=0)
    reserved = Column(Integer, nullable=False, default=0)
    visible = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        CheckConstraint("stock >= 0", name="ck_products_stock_non_negative"),
        CheckConstraint("reserved >= 0", name="ck_products_reserved_non_negative"),
        CheckConstraint("reserved <= stock", name="ck_products_reserved_within_stock"),
        CheckConstraint("price_cents >= 0", name="ck_products_price_non_negative"),
    )


# ════════════════════════════════════════════════════════════════════
# Inventory reservations
# ════════════════════════════════════════════════════════════════════

class StockReservation(Base):
    """Soft hold on stock made at checkout, settled by the order lifecycle."""
    __tablename__ = "stock_reservations"

    id = Column(String(32), primary_key=True)  # uuid4 hex
    status = Column(String(20), nullable=False, default="held")  # held | committed | released
    created_at = Column(DateTime, default=datetime.utcnow)
    settled_at = Column(DateTime, nullable=True)

    lines = relationship(
        "ReservationLine",
        back_populates="reservation",
        cascade="all, delete-orphan",
        lazy="selectin",
    )


class ReservationLine(Base):
    __tablename__ = "reservation_lines"

    id = Column(Integer, primary_key=True, autoincrement=True)
    reservation_id = Column(
        String(32), ForeignKey("stock_reservations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False)
    quantity = Column(Integer, nullable=False)

    reservation = relationship("StockReservation", back_populates="lines")

    __table_args__ = (
        UniqueConstraint("reservation_id", "product_id", name="uq_reservation_product"),
        CheckConstraint("quantity > 0", name="ck_reservation_lines_quantity_positive"),
    )


# ════════════════════════════════════════════════════════════════════
# Orders
# ════════════════════════════════════════════════════════════════════

class Order(Base):
    """
    Buyer order.

    Created `pending` by checkout; moved to approved/rejected by payment
    notifications and to shipped by an operator. Never deleted.
    """
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, autoincrement=True)
    external_reference = Column(String(64), unique=True, nullable=False, index=True)
    status = Column(String(20), nullable=False, default="pending", index=True)
    total_amount_cents = Column(Integer, nullable=False)
    currency = Column(String(3), nullable=False, default="BRL")
    buyer_id = Column(String(100), nullable=True, index=True)  # null => guest checkout
    buyer_email = Column(String(255), nullable=False)
    buyer_name = Column(String(255), nullable=True)
    shipping_snapshot = Column(Text, nullable=False, default="{}")  # JSON, immutable
    reservation_id = Column(String(32), ForeignKey("stock_reservations.id"), nullable=True)
    preference_id = Column(String(255), nullable=True)  # Mercado Pago preference
    payment_id = Column(String(255), nullable=True)  # Mercado Pago payment, set once
    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    items = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItem.line_no",
        lazy="selectin",
    )
    events = relationship(
        "OrderStatusEvent",
        back_populates="order",
        order_by="OrderStatusEvent.id",
        lazy="select",
    )

    __table_args__ = (
        CheckConstraint("total_amount_cents >= 0", name="ck_orders_total_non_negative"),
    )


class OrderItem(Base):
    """Line item with the unit price frozen at checkout."""
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False)
    line_no = Column(Integer, nullable=False)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)
    product_name = Column(String(255), nullable=False)
    quantity = Column(Integer, nullable=False)
    unit_price_cents = Column(Integer, nullable=False)
    size = Column(String(20), nullable=True)
    color = Column(String(50), nullable=True)

    order = relationship("Order", back_populates="items")

    __table_args__ = (
        UniqueConstraint("order_id", "line_no", name="uq_order_item_line"),
        CheckConstraint("quantity > 0", name="ck_order_items_quantity_positive"),
    )


class OrderStatusEvent(Base):
    """One row per applied transition. Duplicate notifications add nothing."""
    __tablename__ = "order_status_events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False)
    from_status = Column(String(20), nullable=False)
    to_status = Column(String(20), nullable=False)
    causation_id = Column(String(255), nullable=True)  # gateway payment id or operator marker
    created_at = Column(DateTime, default=datetime.utcnow)

    order = relationship("Order", back_populates="events")

    __table_args__ = (
        Index("ix_order_status_events_order_created", "order_id", "created_at"),
    )


# ════════════════════════════════════════════════════════════════════
# Site configuration
# ════════════════════════════════════════════════════════════════════

class SiteConfig(Base):
    """
    Storefront theming. Each update appends a new version; the highest
    version is current.
    """
    __tablename__ = "site_config"

    version = Column(Integer, primary_key=True, autoincrement=False)
    site_name = Column(String(100), nullable=False)
    primary_color = Column(String(20), nullable=False)
    secondary_color = Column(String(20), nullable=False)
    bg_light = Column(String(20), nullable=False)
    bg_dark = Column(String(20), nullable=False)
    updated_by = Column(String(100), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)


# ════════════════════════════════════════════════════════════════════
# Marketing
# ════════════════════════════════════════════════════════════════════

class Banner(Base):
    """Home page banner; only active ones are served to the storefront."""
    __tablename__ = "banners"

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(String(255), nullable=True)
    image_url = Column(String(500), nullable=False)
    link_url = Column(String(500), nullable=True)
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)


class Coupon(Base):
    """Percentage discount code. Codes are stored upper-cased."""
    __tablename__ = "coupons"

    id = Column(Integer, primary_key=True, autoincrement=True)
    code = Column(String(50), unique=True, nullable=False, index=True)
    discount_percent = Column(Integer, nullable=False)
    expiration_date = Column(DateTime, nullable=True)  # naive UTC; null => never expires
    active = Column(Boolean, nullable=False, default=True)
    created_by = Column(String(100), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        CheckConstraint(
            "discount_percent > 0 AND discount_percent <= 100",
            name="ck_coupons_discount_range",
        ),
    )
