"""
Shared FastAPI dependencies.

Routers import from here so tests can override a single object
(DB session, payment gateway, admin guard, pagination).
"""

from __future__ import annotations

from typing import TypedDict

from fastapi import Query

from database import get_db  # noqa: F401
from middleware.auth import get_optional_buyer, require_admin  # noqa: F401
from services.payment_gateway import get_payment_gateway  # noqa: F401


class Pagination(TypedDict):
    limit: int
    offset: int


def pagination_params(
    limit: int = Query(20, ge=1, le=200),
    offset: int = Query(0, ge=0, le=100_000),
) -> Pagination:
    return {"limit": limit, "offset": offset}
