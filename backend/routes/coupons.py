"""
Coupon endpoints.

    POST /coupons/validate    — public, used by the cart page
    GET  /admin/coupons       — admin
    POST /admin/coupons       — admin, code is upper-cased
"""
import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from deps import get_db, require_admin
from domain.responses import success_response
from middleware.rate_limit import rate_limit
from models import CouponCreateRequest, CouponValidateRequest
from services import coupon_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/coupons", tags=["coupons"])
admin_router = APIRouter(prefix="/admin/coupons", tags=["admin"])


@router.post("/validate", dependencies=[Depends(rate_limit(max_requests=30, window_seconds=60))])
async def validate_coupon(request: CouponValidateRequest, db: AsyncSession = Depends(get_db)):
    return success_response(data=await coupon_service.validate_coupon(db, request.code))


@admin_router.get("")
async def list_coupons(
    _admin: str = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    coupons = await coupon_service.list_coupons(db)
    return success_response(data=[coupon_service.coupon_to_dict(c) for c in coupons])


@admin_router.post("", status_code=201)
async def create_coupon(
    request: CouponCreateRequest,
    admin: str = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    coupon = await coupon_service.create_coupon(
        db,
        code=request.code,
        discount_percent=request.discount_percent,
        expiration_date=request.expiration_date,
        created_by=admin,
    )
    await db.commit()
    return success_response(data=coupon_service.coupon_to_dict(coupon))
