"""
Domain enums shared by the ledger, the inventory guard and the routes.
"""

from enum import Enum


class OrderStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    SHIPPED = "shipped"


class ReservationStatus(str, Enum):
    HELD = "held"
    COMMITTED = "committed"
    RELEASED = "released"


class ReconcileOutcome(str, Enum):
    APPLIED = "applied"
    DUPLICATE = "duplicate"
    STALE = "stale"
    IGNORED = "ignored"
