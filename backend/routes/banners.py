"""
Banner endpoints.

    GET    /banners               — public, active banners
    POST   /admin/banners         — admin
    DELETE /admin/banners/{id}    — admin
"""
import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from deps import get_db, require_admin
from domain.responses import success_response
from models import BannerCreateRequest
from services import banner_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/banners", tags=["banners"])
admin_router = APIRouter(prefix="/admin/banners", tags=["admin"])


@router.get("")
async def list_banners(db: AsyncSession = Depends(get_db)):
    banners = await banner_service.list_active(db)
    return success_response(data=[banner_service.banner_to_dict(b) for b in banners])


@admin_router.post("", status_code=201)
async def create_banner(
    request: BannerCreateRequest,
    admin: str = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    banner = await banner_service.create_banner(
        db, image_url=request.image_url, link_url=request.link_url, title=request.title
    )
    await db.commit()
    logger.info(f"Banner {banner.id} added by {admin}")
    return success_response(data=banner_service.banner_to_dict(banner))


@admin_router.delete("/{banner_id}")
async def delete_banner(
    banner_id: int,
    admin: str = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    await banner_service.delete_banner(db, banner_id)
    await db.commit()
    logger.info(f"Banner {banner_id} removed by {admin}")
    return success_response(data={"id": banner_id, "deleted": True})
