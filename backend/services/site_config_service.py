"""
Site configuration — versioned storefront theming.

Read per request; every update appends a new version row instead of
mutating shared state, so concurrent readers always see a complete record.
"""
import logging

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from db_models import SiteConfig
from domain.errors import ConflictError

logger = logging.getLogger(__name__)

DEFAULTS = {
    "site_name": "SoleMates",
    "primary_color": "#e94c20",
    "secondary_color": "#FF69B4",
    "bg_light": "#f8f6f6",
    "bg_dark": "#1A1A1A",
}


def _to_dict(cfg: SiteConfig) -> dict:
    return {
        "version": cfg.version,
        "site_name": cfg.site_name,
        "primary_color": cfg.primary_color,
        "secondary_color": cfg.secondary_color,
        "bg_light": cfg.bg_light,
        "bg_dark": cfg.bg_dark,
    }


async def get_current(db: AsyncSession) -> dict:
    """Latest configuration, or the defaults at version 0."""
    res = await db.execute(select(SiteConfig).order_by(SiteConfig.version.desc()).limit(1))
    cfg = res.scalar_one_or_none()
    if not cfg:
        return {"version": 0, **DEFAULTS}
    return _to_dict(cfg)


async def update(
    db: AsyncSession,
    *,
    changes: dict,
    updated_by: str | None = None,
    expected_version: int | None = None,
) -> dict:
    """
    Append a new version built from the current one plus `changes`.

    If `expected_version` is given and is no longer current, ConflictError.
    """
    current = await get_current(db)
    if expected_version is not None and expected_version != current["version"]:
        raise ConflictError(
            f"Site config is at version {current['version']}, not {expected_version}"
        )

    max_version = (await db.execute(select(func.max(SiteConfig.version)))).scalar_one()
    merged = {k: current[k] for k in DEFAULTS}
    merged.update({k: v for k, v in changes.items() if k in DEFAULTS and v is not None})

    cfg = SiteConfig(version=(max_version or 0) + 1, updated_by=updated_by, **merged)
    db.add(cfg)
    try:
        await db.flush()
    except IntegrityError as e:
        # Another writer took this version number first
        raise ConflictError("Site config was updated concurrently") from e

    logger.info(f"Site config v{cfg.version} saved by {updated_by or 'unknown'}")
    return _to_dict(cfg)
