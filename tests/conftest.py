"""
Cozy Cove — Shared pytest Fixtures & Configuration

Provides common fixtures for all test modules:
- In-memory async database session (aiosqlite)
- Mock AliExpress API response data
- Fixed clock and a Product factory
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path
from typing import Any, AsyncGenerator

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

import src.models  # noqa: F401  (registers every table on Base.metadata)
from src.catalog.schemas import Product
from src.models.base import Base


# ---------------------------------------------------------------------------
# Mock Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
async def mock_db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Async database session on in-memory SQLite.

    Creates a fresh database for each test, ensuring isolation.
    """
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with session_factory() as session:
        yield session

    await engine.dispose()


# ---------------------------------------------------------------------------
# Fixture Loaders
# ---------------------------------------------------------------------------


@pytest.fixture(scope="session")
def load_mock_aliexpress_query() -> dict:
    """Load mock product.query response from fixtures/mock_aliexpress_query.json."""
    fixture_path = Path(__file__).parent / "fixtures" / "mock_aliexpress_query.json"
    with open(fixture_path) as f:
        return json.load(f)


# ---------------------------------------------------------------------------
# Utility Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def now() -> datetime:
    """Fixed, timezone-aware reference time for tests."""
    return datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


def _build_product(product_id: str = "p-1", **overrides: Any) -> Product:
    """Build a Product with sensible defaults; keyword overrides win."""
    fields: dict[str, Any] = {
        "id": product_id,
        "title": f"Product {product_id}",
        "image": f"https://img.example/{product_id}.jpg",
        "url": f"https://s.click.aliexpress.com/e/{product_id}",
        "price": Decimal("25.00"),
        "orders": 0,
        "category": "Home & Garden",
    }
    fields.update(overrides)
    return Product(**fields)


@pytest.fixture
def make_product():
    """Product factory: make_product("id", rating=4.5, ...)."""
    return _build_product
