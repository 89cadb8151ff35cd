"""
Catalog endpoints — public storefront listing plus admin product editing.
"""

import logging
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from deps import Pagination, get_db, pagination_params, require_admin
from domain.responses import paginated_response, success_response
from models import ProductCreateRequest, ProductUpdateRequest
from services import catalog_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/products", tags=["products"])
admin_router = APIRouter(prefix="/admin/products", tags=["admin"])


@router.get("")
async def list_products(
    page: Pagination = Depends(pagination_params),
    db: AsyncSession = Depends(get_db),
):
    products, total = await catalog_service.list_products(db, limit=page["limit"], offset=page["offset"])
    return paginated_response(
        [catalog_service.product_to_dict(p) for p in products],
        limit=page["limit"],
        offset=page["offset"],
        total=total,
    )


@router.get("/{product_id}")
async def get_product(product_id: int, db: AsyncSession = Depends(get_db)):
    product = await catalog_service.get_product(db, product_id)
    return success_response(data=catalog_service.product_to_dict(product))


@admin_router.post("", status_code=201)
async def create_product(
    request: ProductCreateRequest,
    admin: str = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    product = await catalog_service.create_product(
        db,
        name=request.name,
        description=request.description,
        brand=request.brand,
        gender=request.gender,
        price=request.price,
        old_price=request.old_price,
        image_url=request.image_url,
        sizes=request.sizes,
        stock=request.stock,
        visible=request.visible,
    )
    await db.commit()
    await db.refresh(product)
    logger.info(f"Product {product.id} created by {admin}")
    return success_response(data=catalog_service.product_to_dict(product))


@admin_router.put("/{product_id}")
async def update_product(
    product_id: int,
    request: ProductUpdateRequest,
    admin: str = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    product = await catalog_service.update_product(
        db,
        product_id=product_id,
        name=request.name,
        description=request.description,
        brand=request.brand,
        price=request.price,
        old_price=request.old_price,
        clear_old_price="old_price" in request.model_fields_set and request.old_price is None,
        stock=request.stock,
        image_url=request.image_url,
        sizes=request.sizes,
        visible=request.visible,
    )
    await db.commit()
    await db.refresh(product)
    logger.info(f"Product {product_id} updated by {admin}")
    return success_response(data=catalog_service.product_to_dict(product))


@admin_router.delete("/{product_id}")
async def delete_product(
    product_id: int,
    admin: str = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Hide the product; order history keeps pointing at it."""
    product = await catalog_service.hide_product(db, product_id)
    await db.commit()
    logger.info(f"Product {product_id} removed from the storefront by {admin}")
    return success_response(data={"id": product.id, "visible": product.visible})
