"""
Cozy Cove — Catalog Repository

Async persistence helpers around the products, product_stats and
product_clicks tables. The ranking core never touches the database; these
functions load its inputs (cached products, stats map) and store the
normalizer's output.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import datetime

import structlog
from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from src.catalog.schemas import Product, ProductStats
from src.models.product import ProductRecord
from src.models.product_click import ProductClick
from src.models.product_stats import ProductStatsRecord
from src.utils.timeutils import utc_now

logger = structlog.get_logger(__name__)


# ---------------------------------------------------------------------------
# Products
# ---------------------------------------------------------------------------


async def load_cached_products(
    session: AsyncSession,
    product_ids: Iterable[str],
) -> dict[str, Product]:
    """Fetch cached products by id. Unknown ids are simply absent."""
    ids = list(dict.fromkeys(product_ids))
    if not ids:
        return {}

    result = await session.execute(
        select(ProductRecord).where(ProductRecord.id.in_(ids))
    )
    cached = {record.id: record.to_product() for record in result.scalars()}

    logger.debug("products_cache_loaded", requested=len(ids), found=len(cached))
    return cached


async def upsert_products(
    session: AsyncSession,
    products: Sequence[Product],
) -> int:
    """
    Insert new products and overwrite existing rows.

    Callers are expected to have merged each product with its cached row
    first, so the first_seen_at written here is already the original one.

    Returns:
        Number of products written.
    """
    if not products:
        return 0

    existing = await session.execute(
        select(ProductRecord).where(ProductRecord.id.in_([p.id for p in products]))
    )
    records = {record.id: record for record in existing.scalars()}

    inserted = 0
    for product in products:
        record = records.get(product.id)
        if record is None:
            record = ProductRecord.from_product(product)
            session.add(record)
            records[product.id] = record
            inserted += 1
        else:
            record.apply(product)

    await session.commit()

    logger.info(
        "products_upserted",
        count=len(products),
        inserted=inserted,
        updated=len(products) - inserted,
    )
    return len(products)


async def load_catalog(session: AsyncSession) -> list[Product]:
    """All cached products, oldest sighting first (ties by id)."""
    result = await session.execute(
        select(ProductRecord).order_by(ProductRecord.first_seen_at, ProductRecord.id)
    )
    products = [record.to_product() for record in result.scalars()]
    logger.debug("catalog_loaded", count=len(products))
    return products


# ---------------------------------------------------------------------------
# Engagement stats
# ---------------------------------------------------------------------------


async def fetch_stats_map(
    session: AsyncSession,
    product_ids: Iterable[str] | None = None,
) -> dict[str, ProductStats]:
    """
    Build the product_id -> ProductStats lookup used by the trending ranker.

    Args:
        session: Async DB session.
        product_ids: Restrict to these ids (default: every row).
    """
    stmt = select(ProductStatsRecord)
    if product_ids is not None:
        ids = list(product_ids)
        if not ids:
            return {}
        stmt = stmt.where(ProductStatsRecord.product_id.in_(ids))

    result = await session.execute(stmt)
    return {record.product_id: record.to_stats() for record in result.scalars()}


async def _bump_stats(
    session: AsyncSession,
    product_id: str,
    counters: dict[str, int],
    timestamps: dict[str, datetime],
) -> ProductStats:
    """
    Atomically add `counters` to a product's stats row, creating it if needed.

    Single INSERT ... ON CONFLICT DO UPDATE with column arithmetic: the
    increment happens in the database, never in Python.
    """
    if session.get_bind().dialect.name == "postgresql":
        insert = postgresql_insert
    else:
        insert = sqlite_insert

    initial = {"total_clicks": 0, "recent_clicks": 0, "total_saves": 0}
    initial.update(counters)

    stmt = insert(ProductStatsRecord).values(
        product_id=product_id, **initial, **timestamps
    )
    increments = {
        name: getattr(ProductStatsRecord, name) + amount
        for name, amount in counters.items()
    }
    stmt = stmt.on_conflict_do_update(
        index_elements=[ProductStatsRecord.product_id],
        set_={**increments, **timestamps},
    )

    await session.execute(stmt)
    await session.commit()

    record = await session.get(
        ProductStatsRecord, product_id, populate_existing=True
    )
    return record.to_stats()


async def record_click(
    session: AsyncSession,
    product_id: str,
    user_id: str | None = None,
    now: datetime | None = None,
) -> ProductStats:
    """
    Log an affiliate click and bump the product's click counters.

    Clicks may be anonymous (user_id=None).
    """
    now = now or utc_now()

    session.add(ProductClick(product_id=product_id, user_id=user_id, clicked_at=now))

    stats = await _bump_stats(
        session,
        product_id,
        counters={"total_clicks": 1, "recent_clicks": 1},
        timestamps={"last_click_at": now, "updated_at": now},
    )

    logger.info(
        "product_click_recorded",
        product_id=product_id,
        anonymous=user_id is None,
        recent_clicks=stats.recent_clicks,
    )
    return stats


async def record_save(
    session: AsyncSession,
    product_id: str,
    now: datetime | None = None,
) -> ProductStats:
    """Bump the save counter when a product is added to favorites."""
    now = now or utc_now()

    stats = await _bump_stats(
        session,
        product_id,
        counters={"total_saves": 1},
        timestamps={"last_save_at": now, "updated_at": now},
    )

    logger.info(
        "product_save_recorded",
        product_id=product_id,
        total_saves=stats.total_saves,
    )
    return stats


async def reset_recent_clicks(session: AsyncSession) -> int:
    """
    Close the current recent-clicks window.

    Returns:
        Number of stats rows that had a non-zero window.
    """
    result = await session.execute(
        update(ProductStatsRecord)
        .where(ProductStatsRecord.recent_clicks > 0)
        .values(recent_clicks=0)
    )
    await session.commit()

    rowcount = result.rowcount or 0
    logger.info("recent_clicks_window_reset", rowcount=rowcount)
    return rowcount
