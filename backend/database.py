"""
Database engine and session management for the storefront API.

One async engine per process (aiosqlite by default). Services never commit
on their own except at the end of a checkout or reconcile unit; routes own
the rest. Tables are auto-created on server startup via init_db().
"""
import logging

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase

from config import settings

logger = logging.getLogger(__name__)

# Seconds a writer waits for SQLite's write lock before giving up
SQLITE_BUSY_TIMEOUT = 30


class Base(DeclarativeBase):
    """Declarative base for all ORM models."""
    pass


# ── Engine ──────────────────────────────────────────────────────────

def to_async_url(url: str) -> str:
    """sqlite:///... → sqlite+aiosqlite:///...; other URLs pass through."""
    if url.startswith("sqlite:///"):
        return url.replace("sqlite:///", "sqlite+aiosqlite:///", 1)
    return url


def make_engine(url: str, **kwargs) -> AsyncEngine:
    url = to_async_url(url)
    if url.startswith("sqlite"):
        # Concurrent checkouts queue on the write lock instead of failing fast
        kwargs.setdefault("connect_args", {"timeout": SQLITE_BUSY_TIMEOUT})
    return create_async_engine(url, **kwargs)


engine = make_engine(settings.database_url, echo=False)

async_session = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False
)


# ── Helpers ─────────────────────────────────────────────────────────

async def init_db() -> None:
    """Create all tables. Called once on server startup."""
    import db_models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    logger.info("Database tables ready")


async def get_db() -> AsyncSession:
    """FastAPI dependency — one session per request, closed afterwards."""
    async with async_session() as session:
        yield session
