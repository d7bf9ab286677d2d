"""Pytest configuration and fixtures."""

import os
import time
from collections.abc import AsyncGenerator, Callable, Generator
from decimal import Decimal
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, MagicMock, patch
from uuid import UUID

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from jose import jwt
from sqlalchemy import create_engine, select
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import sessionmaker

# Set test environment variables before importing application modules
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("SUPABASE_JWT_SECRET", "test-jwt-secret-with-at-least-32-bytes")
os.environ.setdefault("STRIPE_SECRET_KEY", "sk_test_stripe_secret_key")
os.environ.setdefault("PAYMENT_CALLBACK_TOKEN", "test-callback-token")

from src.core.config import get_settings  # noqa: E402
from src.models import Base, Order, OrderItem, OrderStatus, Product  # noqa: E402

BUYER_ID = UUID("550e8400-e29b-41d4-a716-446655440000")
OTHER_BUYER_ID = UUID("660e8400-e29b-41d4-a716-446655440000")
ADMIN_ID = UUID("770e8400-e29b-41d4-a716-446655440000")

PIX_INTENT = {
    "id": "pi_test_pix_123",
    "status": "requires_action",
    "client_secret": "pi_test_pix_123_secret_abc",
    "next_action": {
        "type": "pix_display_qr_code",
        "pix_display_qr_code": {
            "data": "00020101021226880014br.gov.bcb.pix",
            "expires_at": 1760000000,
            "hosted_instructions_url": "https://payments.stripe.com/pix/instructions/test",
            "image_url_png": "https://qr.stripe.com/test.png",
        },
    },
}

CARD_INTENT = {
    "id": "pi_test_card_456",
    "status": "requires_payment_method",
    "client_secret": "pi_test_card_456_secret_def",
    "next_action": None,
}


def create_test_token(
    sub: UUID = BUYER_ID,
    email: str | None = "buyer@example.com",
    app_metadata: dict[str, Any] | None = None,
    exp_offset: int = 3600,
) -> str:
    """Mint an HS256 access token shaped like a Supabase one."""
    now = int(time.time())
    payload = {
        "sub": str(sub),
        "email": email,
        "role": "authenticated",
        "aud": "authenticated",
        "exp": now + exp_offset,
        "iat": now,
        "app_metadata": app_metadata or {"provider": "email"},
    }
    return jwt.encode(payload, os.environ["SUPABASE_JWT_SECRET"], algorithm="HS256")


@pytest.fixture
def buyer_headers() -> dict[str, str]:
    """Authorization header for a regular buyer."""
    return {"Authorization": f"Bearer {create_test_token()}"}


@pytest.fixture
def other_buyer_headers() -> dict[str, str]:
    """Authorization header for a second buyer."""
    return {"Authorization": f"Bearer {create_test_token(sub=OTHER_BUYER_ID, email='other@example.com')}"}


@pytest.fixture
def admin_headers() -> dict[str, str]:
    """Authorization header for an administrator."""
    token = create_test_token(sub=ADMIN_ID, email="admin@example.com", app_metadata={"role": "admin"})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def callback_headers() -> dict[str, str]:
    """Shared-secret header sent by the payment provider."""
    return {"X-Payment-Token": os.environ["PAYMENT_CALLBACK_TOKEN"]}


@pytest.fixture(scope="session")
def test_settings() -> Generator[Any, None, None]:
    """Provide test settings with cleared cache.

    Yields:
        Settings: Test configuration settings.
    """
    get_settings.cache_clear()
    settings = get_settings()
    yield settings
    get_settings.cache_clear()


@pytest.fixture
def mock_stripe() -> Generator[MagicMock, None, None]:
    """Provide a mocked Stripe module answering with a pix intent.

    Yields:
        MagicMock: Stripe stand-in whose PaymentIntent.create_async is an AsyncMock.
    """
    stripe_mock = MagicMock()
    stripe_mock.PaymentIntent.create_async = AsyncMock(return_value=PIX_INTENT)
    with patch("src.services.payment_service.get_stripe", return_value=stripe_mock):
        yield stripe_mock


# Service-level database fixtures


@pytest_asyncio.fixture
async def db_engine(tmp_path: Path) -> AsyncGenerator[AsyncEngine, None]:
    """Provide an async engine on a fresh SQLite file with all tables."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'unit.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory configured like the application's."""
    return async_sessionmaker(db_engine, expire_on_commit=False)


@pytest_asyncio.fixture
async def seed_product(
    session_factory: async_sessionmaker[AsyncSession],
) -> Callable[..., Any]:
    """Factory inserting a product and returning its id."""

    async def _seed(product_id: int, price: str | None, stock: int, name: str | None = None) -> int:
        async with session_factory() as session, session.begin():
            session.add(
                Product(
                    id=product_id,
                    name=name or f"Product {product_id}",
                    price=Decimal(price) if price is not None else None,
                    stock_quantity=stock,
                )
            )
        return product_id

    return _seed


@pytest_asyncio.fixture
async def stock_of(session_factory: async_sessionmaker[AsyncSession]) -> Callable[..., Any]:
    """Factory reading a product's committed stock level."""

    async def _stock_of(product_id: int) -> int:
        async with session_factory() as session:
            return await session.scalar(select(Product.stock_quantity).where(Product.id == product_id))

    return _stock_of


@pytest_asyncio.fixture
async def seed_order(session_factory: async_sessionmaker[AsyncSession]) -> Callable[..., Any]:
    """Factory inserting an order directly, bypassing checkout."""

    async def _seed(
        lines: list[tuple[int, int, str]],
        status: OrderStatus = OrderStatus.PENDING,
        user_id: UUID = BUYER_ID,
        payment_method: str = "pix",
    ) -> int:
        subtotal = sum((Decimal(price) * quantity for _, quantity, price in lines), Decimal("0.00"))
        async with session_factory() as session, session.begin():
            order = Order(
                user_id=user_id,
                subtotal=subtotal,
                discount=Decimal("0.00"),
                shipping_cost=Decimal("0.00"),
                total_amount=subtotal,
                payment_method=payment_method,
                status=status.value,
                shipping_address={"street": "Rua A, 1", "city": "Sao Paulo"},
                items=[
                    OrderItem(product_id=product_id, quantity=quantity, unit_price=Decimal(price))
                    for product_id, quantity, price in lines
                ],
            )
            session.add(order)
            await session.flush()
            return order.id

    return _seed


# Application-level fixtures


class StoreDatabase:
    """Synchronous view of the application's SQLite file for seeding and assertions."""

    def __init__(self, path: Path) -> None:
        self.engine = create_engine(f"sqlite:///{path}")
        self.sessions = sessionmaker(self.engine, expire_on_commit=False)

    def add_product(self, product_id: int, price: str | None, stock: int) -> None:
        with self.sessions.begin() as session:
            session.add(
                Product(
                    id=product_id,
                    name=f"Product {product_id}",
                    price=Decimal(price) if price is not None else None,
                    stock_quantity=stock,
                )
            )

    def set_stock(self, product_id: int, stock: int) -> None:
        with self.sessions.begin() as session:
            session.get(Product, product_id).stock_quantity = stock

    def set_price(self, product_id: int, price: str) -> None:
        with self.sessions.begin() as session:
            session.get(Product, product_id).price = Decimal(price)

    def stock_of(self, product_id: int) -> int:
        with self.sessions() as session:
            return session.scalar(select(Product.stock_quantity).where(Product.id == product_id))

    def order(self, order_id: int) -> Order | None:
        with self.sessions() as session:
            return session.get(Order, order_id)

    def set_order_status(self, order_id: int, status: OrderStatus) -> None:
        with self.sessions.begin() as session:
            session.get(Order, order_id).status = status.value

    def order_count(self) -> int:
        with self.sessions() as session:
            return len(session.scalars(select(Order.id)).all())

    def close(self) -> None:
        self.engine.dispose()


@pytest.fixture
def database_path(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Generator[Path, None, None]:
    """Point the application at a fresh SQLite file created at startup."""
    path = tmp_path / "storefront.db"
    monkeypatch.setenv("DATABASE_URL", f"sqlite+aiosqlite:///{path}")
    monkeypatch.setenv("DATABASE_CREATE_TABLES", "true")
    get_settings.cache_clear()
    yield path
    get_settings.cache_clear()


@pytest.fixture
def client(database_path: Path) -> Generator[TestClient, None, None]:
    """Provide a test client for the FastAPI application.

    Yields:
        TestClient: FastAPI test client with the lifespan started.
    """
    from src.main import create_app

    with TestClient(create_app()) as test_client:
        yield test_client


@pytest.fixture
def store(client: TestClient, database_path: Path) -> Generator[StoreDatabase, None, None]:
    """Provide direct access to the application database."""
    database = StoreDatabase(database_path)
    yield database
    database.close()
