"""
Cozy Cove — Catalog Refresh

fetch -> normalize -> merge with cache -> upsert, once per curated category.

The merge step is what keeps first_seen_at stable: a product that was already
cached keeps its original first sighting no matter how often it reappears in
the feed.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from src.catalog.normalize import merge_with_cached, normalize_all
from src.catalog.repository import load_cached_products, upsert_products
from src.config import settings
from src.pipeline.aliexpress import AliExpressClient
from src.utils.timeutils import utc_now

logger = structlog.get_logger(__name__)


async def refresh_category(
    client: AliExpressClient,
    session: AsyncSession,
    category_key: str,
    now: datetime | None = None,
) -> int:
    """
    Refresh one curated category.

    Returns:
        Number of products written.
    """
    now = now or utc_now()

    page = await client.search_category(category_key)
    products = normalize_all(page.products, now=now)
    cached = await load_cached_products(session, [p.id for p in products])

    merged = [merge_with_cached(p, cached.get(p.id), now=now) for p in products]
    stored = await upsert_products(session, merged)

    logger.info(
        "catalog_category_refreshed",
        category=category_key,
        fetched=len(page.products),
        new_products=len(products) - len(cached),
        stored=stored,
    )
    return stored


async def refresh_catalog(
    client: AliExpressClient,
    session: AsyncSession,
    categories: Iterable[str] | None = None,
    now: datetime | None = None,
) -> int:
    """
    Refresh every curated category. A failing category is logged and skipped.

    Args:
        client: Entered AliExpressClient.
        session: Async DB session.
        categories: Category keys to refresh (default: all CATALOG_CATEGORIES).
        now: Refresh timestamp shared by the whole run (default: utc now).

    Returns:
        Total number of products written across categories.
    """
    if not client.is_configured:
        logger.warning("catalog_refresh_skipped_no_credentials")
        return 0

    now = now or utc_now()
    keys = list(categories) if categories is not None else list(settings.CATALOG_CATEGORIES)

    logger.info("catalog_refresh_start", categories=keys)
    rowcount = 0

    for key in keys:
        try:
            rowcount += await refresh_category(client, session, key, now=now)
        except Exception as e:
            await session.rollback()
            logger.error(
                "catalog_category_refresh_failed",
                category=key,
                error=str(e),
                error_type=type(e).__name__,
            )

    logger.info("catalog_refresh_complete", rowcount=rowcount)
    return rowcount
