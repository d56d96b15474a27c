"""
Tests for the Catalog Repository (src/catalog/repository.py)

Runs against the in-memory SQLite session from conftest. Covers:
- upsert_products: insert, update in place, provenance kept by the caller
- load_cached_products / load_catalog round trips
- record_click / record_save counters and the click log
- reset_recent_clicks window close
- fetch_stats_map lookups
"""

from __future__ import annotations

from datetime import timedelta
from decimal import Decimal

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from src.catalog.repository import (
    fetch_stats_map,
    load_cached_products,
    load_catalog,
    record_click,
    record_save,
    reset_recent_clicks,
    upsert_products,
)
from src.models.base import Base
from src.models.product_click import ProductClick


# ---------------------------------------------------------------------------
# Products
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_upsert_inserts_new_products(
    mock_db_session: AsyncSession, make_product, now
) -> None:
    """New products are inserted and read back unchanged."""
    product = make_product(
        "1005001",
        price=Decimal("24.99"),
        old_price=Decimal("49.99"),
        discount_percent=50,
        rating=4.8,
        orders=15420,
        tags=("biggest-savings", "top-rated", "popular"),
        first_seen_at=now,
        updated_at=now,
    )

    written = await upsert_products(mock_db_session, [product])
    cached = await load_cached_products(mock_db_session, ["1005001"])

    assert written == 1
    stored = cached["1005001"]
    assert stored.price == Decimal("24.99")
    assert stored.old_price == Decimal("49.99")
    assert stored.rating == pytest.approx(4.8)
    assert stored.tags == ("biggest-savings", "top-rated", "popular")
    assert stored.first_seen_at == now


@pytest.mark.asyncio
async def test_upsert_updates_existing_row(
    mock_db_session: AsyncSession, make_product, now
) -> None:
    """A second upsert overwrites fields of the existing row."""
    await upsert_products(
        mock_db_session,
        [make_product("a", price=Decimal("30.00"), first_seen_at=now, updated_at=now)],
    )

    later = now + timedelta(hours=6)
    await upsert_products(
        mock_db_session,
        [make_product("a", price=Decimal("25.00"), first_seen_at=now, updated_at=later)],
    )

    catalog = await load_catalog(mock_db_session)
    assert len(catalog) == 1
    assert catalog[0].price == Decimal("25.00")
    assert catalog[0].first_seen_at == now
    assert catalog[0].updated_at == later


@pytest.mark.asyncio
async def test_upsert_empty_batch(mock_db_session: AsyncSession) -> None:
    assert await upsert_products(mock_db_session, []) == 0


@pytest.mark.asyncio
async def test_load_cached_products_unknown_ids(
    mock_db_session: AsyncSession, make_product, now
) -> None:
    """Only known ids come back; an empty id list skips the query."""
    await upsert_products(mock_db_session, [make_product("known", first_seen_at=now)])

    cached = await load_cached_products(mock_db_session, ["known", "missing"])

    assert set(cached) == {"known"}
    assert await load_cached_products(mock_db_session, []) == {}


@pytest.mark.asyncio
async def test_load_catalog_oldest_first(
    mock_db_session: AsyncSession, make_product, now
) -> None:
    await upsert_products(
        mock_db_session,
        [
            make_product("new", first_seen_at=now),
            make_product("old", first_seen_at=now - timedelta(days=4)),
        ],
    )

    catalog = await load_catalog(mock_db_session)

    assert [p.id for p in catalog] == ["old", "new"]
    assert catalog[0].first_seen_at.tzinfo is not None


# ---------------------------------------------------------------------------
# Engagement stats
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_record_click_creates_stats(mock_db_session: AsyncSession, now) -> None:
    """First click creates the stats row and logs the click."""
    stats = await record_click(mock_db_session, "1005001", user_id="user-1", now=now)

    assert stats.total_clicks == 1
    assert stats.recent_clicks == 1
    assert stats.last_click_at == now

    click_count = await mock_db_session.scalar(
        select(func.count()).select_from(ProductClick)
    )
    assert click_count == 1


@pytest.mark.asyncio
async def test_record_click_anonymous_increments(mock_db_session: AsyncSession, now) -> None:
    await record_click(mock_db_session, "1005001", now=now)
    stats = await record_click(mock_db_session, "1005001", now=now + timedelta(minutes=5))

    assert stats.total_clicks == 2
    assert stats.recent_clicks == 2
    assert stats.last_click_at == now + timedelta(minutes=5)

    result = await mock_db_session.execute(select(ProductClick.user_id))
    assert result.scalars().all() == [None, None]


@pytest.mark.asyncio
async def test_record_click_from_two_sessions(tmp_path, now) -> None:
    """Clicks from separate sessions add up instead of overwriting each other."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'stats.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    session_factory = async_sessionmaker(engine, expire_on_commit=False)

    async with session_factory() as first, session_factory() as second:
        await record_click(first, "1005001", now=now)
        stats = await record_click(second, "1005001", now=now)
        assert stats.total_clicks == 2
        assert stats.recent_clicks == 2

        # first still holds its stale view of the row
        await fetch_stats_map(first, ["1005001"])
        await record_click(second, "1005001", now=now)
        stats = await record_click(first, "1005001", now=now)
        assert stats.total_clicks == 4

    await engine.dispose()


@pytest.mark.asyncio
async def test_record_save(mock_db_session: AsyncSession, now) -> None:
    await record_save(mock_db_session, "1005001", now=now)
    stats = await record_save(mock_db_session, "1005001", now=now)

    assert stats.total_saves == 2
    assert stats.total_clicks == 0
    assert stats.last_save_at == now


@pytest.mark.asyncio
async def test_reset_recent_clicks(mock_db_session: AsyncSession, now) -> None:
    """Window reset zeroes recent_clicks but keeps totals."""
    await record_click(mock_db_session, "a", now=now)
    await record_click(mock_db_session, "a", now=now)
    await record_click(mock_db_session, "b", now=now)
    await record_save(mock_db_session, "c", now=now)

    rowcount = await reset_recent_clicks(mock_db_session)
    mock_db_session.expire_all()
    stats = await fetch_stats_map(mock_db_session)

    assert rowcount == 2
    assert stats["a"].recent_clicks == 0
    assert stats["a"].total_clicks == 2
    assert stats["c"].total_saves == 1


@pytest.mark.asyncio
async def test_fetch_stats_map_filtered(mock_db_session: AsyncSession, now) -> None:
    await record_click(mock_db_session, "a", now=now)
    await record_click(mock_db_session, "b", now=now)

    stats = await fetch_stats_map(mock_db_session, ["a", "zzz"])

    assert set(stats) == {"a"}
    assert stats["a"].product_id == "a"
    assert await fetch_stats_map(mock_db_session, []) == {}
