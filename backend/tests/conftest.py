"""
Pytest configuration and shared fixtures for storefront tests.

Provides an in-memory SQLite session, an httpx client bound to the app,
a simulated payment gateway and small catalog factories.
"""
import jwt
import pytest
import pytest_asyncio
from typing import AsyncGenerator
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from main import app
from config import settings
from database import Base, get_db, make_engine
from middleware.rate_limit import limiter
from services import catalog_service
from services.payment_gateway import SimulatedGateway, get_payment_gateway

# ── Test Configuration ───────────────────────────────────────────────
# Set test-only values for settings that would normally come from .env
if not settings.jwt_secret:
    settings.jwt_secret = "test-jwt-secret-for-pytest-only"
if not settings.mp_webhook_secret:
    settings.mp_webhook_secret = "test-webhook-secret"
settings.simulation_mode = True


# ── Database Fixtures ────────────────────────────────────────────────


@pytest.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Create an in-memory SQLite database session for each test.

    Uses StaticPool to allow in-memory SQLite with async SQLAlchemy.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async_session_maker = async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False
    )

    async with async_session_maker() as session:
        yield session

    await engine.dispose()


@pytest.fixture
def file_db_sessionmaker(tmp_path):
    """
    Session factory over a file-backed SQLite database.

    Each session gets its own connection, so concurrent checkouts really
    compete for the same rows.
    """
    engine = make_engine(f"sqlite:///{tmp_path / 'concurrency.db'}")
    return engine, async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


# ── Gateway Fixtures ─────────────────────────────────────────────────


@pytest.fixture
def gateway() -> SimulatedGateway:
    """A fresh offline gateway per test."""
    return SimulatedGateway()


class FailingGateway:
    """Gateway whose preference call always fails."""

    def __init__(self):
        self.calls = 0

    async def create_preference(self, **kwargs) -> str:
        from domain.errors import GatewayError
        self.calls += 1
        raise GatewayError("Payment gateway unavailable")

    async def get_payment(self, payment_id: str) -> dict:
        from domain.errors import GatewayError
        raise GatewayError("Payment gateway unavailable")


@pytest.fixture
def failing_gateway() -> FailingGateway:
    return FailingGateway()


# ── App Client ───────────────────────────────────────────────────────


@pytest_asyncio.fixture(scope="function")
async def client(db_session: AsyncSession, gateway: SimulatedGateway):
    """
    httpx client against the app, sharing the test DB session.

    Overrides get_db and get_payment_gateway.
    """
    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_payment_gateway] = lambda: gateway
    limiter.reset()

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c

    app.dependency_overrides.clear()
    limiter.reset()


@pytest.fixture
def make_token():
    """
    Mint HS256 access tokens the way the external identity service does.
    The API itself only verifies them.
    """
    def _make(subject: str, role: str = "customer", ttl_minutes: int = 60) -> str:
        now = datetime.now(timezone.utc).replace(microsecond=0)
        payload = {
            "sub": subject,
            "role": role,
            "iss": settings.jwt_issuer,
            "iat": int(now.timestamp()),
            "exp": int((now + timedelta(minutes=ttl_minutes)).timestamp()),
        }
        return jwt.encode(payload, settings.jwt_secret, algorithm="HS256")
    return _make


@pytest.fixture
def admin_headers(make_token) -> dict:
    token = make_token("admin-1", role="admin")
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def customer_headers(make_token) -> dict:
    token = make_token("buyer-42")
    return {"Authorization": f"Bearer {token}"}


# ── Test Data Fixtures ────────────────────────────────────────────────


@pytest.fixture
def make_product(db_session: AsyncSession):
    """Factory: await make_product(price="50.00", stock=5) -> committed Product."""
    async def _make(name: str = "Air Runner", price="50.00", stock: int = 5, **kwargs):
        product = await catalog_service.create_product(
            db_session, name=name, price=Decimal(str(price)), stock=stock, **kwargs
        )
        await db_session.commit()
        await db_session.refresh(product)
        return product

    return _make


@pytest.fixture
def buyer_contact() -> dict:
    return {"email": "ana@example.com", "name": "Ana Souza", "phone": "11999990000"}


@pytest.fixture
def shipping_details() -> dict:
    return {
        "full_name": "Ana Souza",
        "address_line": "Rua das Flores, 123",
        "city": "São Paulo",
        "state": "SP",
        "zip_code": "01000-000",
        "country": "BR",
    }
