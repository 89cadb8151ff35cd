"""
Banner service — home page banners.
"""
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from db_models import Banner
from domain.errors import NotFoundError


def banner_to_dict(b: Banner) -> dict:
    return {
        "id": b.id,
        "title": b.title,
        "image_url": b.image_url,
        "link_url": b.link_url,
        "active": b.active,
    }


async def list_active(db: AsyncSession) -> list[Banner]:
    res = await db.execute(
        select(Banner).where(Banner.active == True).order_by(Banner.id)  # noqa: E712
    )
    return list(res.scalars().all())


async def create_banner(
    db: AsyncSession,
    *,
    image_url: str,
    link_url: str | None = None,
    title: str | None = None,
) -> Banner:
    banner = Banner(image_url=image_url, link_url=link_url, title=title, active=True)
    db.add(banner)
    await db.flush()
    return banner


async def delete_banner(db: AsyncSession, banner_id: int) -> None:
    banner = await db.get(Banner, banner_id)
    if not banner:
        raise NotFoundError("Banner", str(banner_id))
    await db.delete(banner)
    await db.flush()
