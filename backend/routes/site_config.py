"""
Site configuration endpoints — storefront name and theme colors.

    GET /settings   — public, current version (defaults if never saved)
    PUT /settings   — admin, appends a new version
"""
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from deps import get_db, require_admin
from domain.responses import success_response
from models import SiteConfigUpdateRequest
from services import site_config_service

router = APIRouter(prefix="/settings", tags=["settings"])


@router.get("")
async def get_settings(db: AsyncSession = Depends(get_db)):
    return success_response(data=await site_config_service.get_current(db))


@router.put("")
async def update_settings(
    request: SiteConfigUpdateRequest,
    admin: str = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    cfg = await site_config_service.update(
        db,
        changes=request.model_dump(exclude={"expected_version"}, exclude_none=True),
        updated_by=admin,
        expected_version=request.expected_version,
    )
    await db.commit()
    return success_response(data=cfg)
