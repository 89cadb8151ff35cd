"""
Checkout endpoint — turns a cart into a pending order and a payment preference.

    POST /checkout   — guests allowed; a bearer token attaches the buyer id
"""
import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from deps import get_db, get_optional_buyer, get_payment_gateway
from domain.responses import success_response
from middleware.rate_limit import rate_limit
from models import CheckoutRequest, CheckoutResponse
from services import checkout_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=["checkout"])


@router.post(
    "/checkout",
    status_code=201,
    dependencies=[Depends(rate_limit(lambda: settings.checkout_rate_limit, 60))],
)
async def create_checkout(
    req: CheckoutRequest,
    buyer_id: str | None = Depends(get_optional_buyer),
    gateway=Depends(get_payment_gateway),
    db: AsyncSession = Depends(get_db),
):
    """
    Reserve stock, persist a pending order with frozen prices and request a
    Mercado Pago preference. The frontend renders the wallet brick with the
    returned preferenceId.
    """
    result = await checkout_service.checkout(
        db,
        gateway,
        cart_items=[item.model_dump() for item in req.items],
        buyer_contact=req.buyer.model_dump(),
        shipping_details=req.shipping.model_dump(),
        buyer_id=buyer_id,
    )
    return success_response(
        data=CheckoutResponse(**result).model_dump(by_alias=True),
    )
