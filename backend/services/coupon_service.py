"""
Coupon service — percentage discount codes managed by the admin.

Codes are case-insensitive: they are upper-cased on the way in, both when
created and when validated.
"""
import logging
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from db_models import Coupon
from domain.errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)


def normalize_code(code: str) -> str:
    return (code or "").strip().upper()


def _naive_utc(value: datetime | None) -> datetime | None:
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def coupon_to_dict(c: Coupon) -> dict:
    return {
        "id": c.id,
        "code": c.code,
        "discount_percent": c.discount_percent,
        "expiration_date": c.expiration_date.isoformat() if c.expiration_date else None,
        "active": c.active,
    }


async def create_coupon(
    db: AsyncSession,
    *,
    code: str,
    discount_percent: int,
    expiration_date: datetime | None = None,
    created_by: str | None = None,
) -> Coupon:
    """
    Create a coupon. Raises ValidationError for a bad percentage or a code
    that already exists.
    """
    code = normalize_code(code)
    if not code:
        raise ValidationError("Coupon code is required", field="code")
    if not 0 < int(discount_percent) <= 100:
        raise ValidationError("Discount must be between 1 and 100 percent", field="discount_percent")

    existing = await db.execute(select(Coupon.id).where(Coupon.code == code))
    if existing.scalar_one_or_none() is not None:
        raise ValidationError(f"Coupon {code} already exists", field="code")

    coupon = Coupon(
        code=code,
        discount_percent=int(discount_percent),
        expiration_date=_naive_utc(expiration_date),
        created_by=created_by,
    )
    db.add(coupon)
    try:
        await db.flush()
    except IntegrityError as e:
        # Same code created concurrently
        raise ValidationError(f"Coupon {code} already exists", field="code") from e

    logger.info(f"  🏷️  Coupon {code} created ({coupon.discount_percent}% off)")
    return coupon


async def list_coupons(db: AsyncSession) -> list[Coupon]:
    res = await db.execute(select(Coupon).order_by(Coupon.created_at.desc(), Coupon.id.desc()))
    return list(res.scalars().all())


async def validate_coupon(db: AsyncSession, code: str, *, now: datetime | None = None) -> dict:
    """
    Check a code typed at checkout.

    Returns {valid: True, code, discount_percent}. Raises NotFoundError for an
    unknown or inactive code and ValidationError once it has expired.
    """
    normalized = normalize_code(code)
    res = await db.execute(
        select(Coupon).where(Coupon.code == normalized, Coupon.active == True)  # noqa: E712
    )
    coupon = res.scalar_one_or_none()
    if not coupon:
        raise NotFoundError("Coupon", normalized)

    now = _naive_utc(now) or datetime.utcnow()
    if coupon.expiration_date and coupon.expiration_date < now:
        raise ValidationError(f"Coupon {normalized} has expired", field="code")

    return {"valid": True, "code": coupon.code, "discount_percent": coupon.discount_percent}
