"""
Cozy Cove — Catalog Query Engine

filter -> sort -> paginate over an in-memory product list.

Filters (all optional, AND-combined):
- search: case-insensitive substring of title OR category
- category: case-insensitive substring of category ("all" disables it)
- min_price / max_price: inclusive
- min_rating: inclusive, missing rating counts as 0
- min_discount: inclusive, missing discount counts as 0
- free_shipping_only: price > FREE_SHIPPING_PROXY_MIN_PRICE, or an explicit
  free_shipping=True on the record

Every sort is stable. Unknown sort keys fall back to trending instead of
failing; an empty result is a normal page with total=0.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from datetime import datetime

import structlog

from src.catalog.schemas import Product, ProductFilters, ProductStats, QueryResult
from src.config import ProductSortOption, settings
from src.engine.trending_score import sort_by_trending_score
from src.utils.timeutils import ensure_utc

logger = structlog.get_logger(__name__)

_ALL_CATEGORIES = "all"


# ---------------------------------------------------------------------------
# Filtering
# ---------------------------------------------------------------------------


def is_free_shipping(product: Product) -> bool:
    """Price above the proxy threshold, or an explicit free-shipping flag."""
    return (
        product.price > settings.FREE_SHIPPING_PROXY_MIN_PRICE
        or product.free_shipping is True
    )


def _matches(product: Product, filters: ProductFilters) -> bool:
    category = (product.category or "").lower()

    if filters.search:
        needle = filters.search.lower()
        if needle not in product.title.lower() and needle not in category:
            return False

    if filters.category and filters.category.lower() != _ALL_CATEGORIES:
        if filters.category.lower() not in category:
            return False

    if filters.min_price is not None and product.price < filters.min_price:
        return False
    if filters.max_price is not None and product.price > filters.max_price:
        return False

    if filters.min_rating is not None and (product.rating or 0.0) < filters.min_rating:
        return False
    if filters.min_discount is not None and (product.discount_percent or 0) < filters.min_discount:
        return False

    if filters.free_shipping_only and not is_free_shipping(product):
        return False

    return True


def filter_products(
    products: Sequence[Product],
    filters: ProductFilters | None = None,
) -> list[Product]:
    """Return the products matching every set filter, in input order."""
    if filters is None:
        return list(products)
    return [product for product in products if _matches(product, filters)]


# ---------------------------------------------------------------------------
# Sorting
# ---------------------------------------------------------------------------


def resolve_sort_option(sort: ProductSortOption | str | None) -> ProductSortOption:
    """Map a raw sort key onto ProductSortOption, defaulting to trending."""
    if sort is None:
        return ProductSortOption.TRENDING
    try:
        return ProductSortOption(sort)
    except ValueError:
        logger.warning("query_sort_unrecognized", sort=str(sort), fallback="trending")
        return ProductSortOption.TRENDING


def _first_seen_key(product: Product) -> float:
    seen = ensure_utc(product.first_seen_at)
    return seen.timestamp() if seen is not None else float("-inf")


def sort_products(
    products: Sequence[Product],
    sort: ProductSortOption | str | None = ProductSortOption.TRENDING,
    stats_by_product_id: Mapping[str, ProductStats] | None = None,
    now: datetime | None = None,
) -> list[Product]:
    """
    Order products for the shop page. Returns a new list.

    trending uses the trending ranker when a stats map is supplied and keeps
    the incoming order when none is.
    """
    option = resolve_sort_option(sort)

    if option is ProductSortOption.PRICE_LOW:
        return sorted(products, key=lambda p: p.price)
    if option is ProductSortOption.PRICE_HIGH:
        return sorted(products, key=lambda p: p.price, reverse=True)
    if option is ProductSortOption.TOP_RATED:
        return sorted(products, key=lambda p: p.rating or 0.0, reverse=True)
    if option is ProductSortOption.BIGGEST_SAVINGS:
        return sorted(products, key=lambda p: p.discount_percent or 0, reverse=True)
    if option is ProductSortOption.NEWEST:
        return sorted(products, key=_first_seen_key, reverse=True)

    if stats_by_product_id is None:
        return list(products)
    return sort_by_trending_score(products, stats_by_product_id, now=now)


# ---------------------------------------------------------------------------
# Query
# ---------------------------------------------------------------------------


def _clamp_page_size(page_size: int | None) -> int:
    if page_size is None:
        return settings.DEFAULT_PAGE_SIZE
    return max(1, min(page_size, settings.MAX_PAGE_SIZE))


def query_products(
    products: Sequence[Product],
    filters: ProductFilters | None = None,
    sort: ProductSortOption | str | None = ProductSortOption.TRENDING,
    page: int = 1,
    page_size: int | None = None,
    stats_by_product_id: Mapping[str, ProductStats] | None = None,
    now: datetime | None = None,
) -> QueryResult:
    """
    Filter, sort and paginate a product collection.

    Args:
        products: Catalog snapshot. Never mutated.
        filters: Shop filters (default: none).
        sort: ProductSortOption or its string value. Unknown keys -> trending.
        page: 1-indexed page number; values below 1 are treated as 1.
        page_size: Items per page (default DEFAULT_PAGE_SIZE, capped at MAX_PAGE_SIZE).
        stats_by_product_id: Engagement stats for the trending sort.
        now: Reference time for freshness in the trending sort.

    Returns:
        QueryResult with the page items, the filtered total and has_more.
    """
    page = max(page, 1)
    size = _clamp_page_size(page_size)
    option = resolve_sort_option(sort)

    filtered = filter_products(products, filters)
    ordered = sort_products(filtered, option, stats_by_product_id=stats_by_product_id, now=now)

    total = len(ordered)
    start = (page - 1) * size
    end = start + size

    logger.debug(
        "catalog_query_complete",
        input_count=len(products),
        total=total,
        page=page,
        page_size=size,
        sort=option.value,
    )
    return QueryResult(
        items=ordered[start:end],
        total=total,
        has_more=end < total,
        page=page,
        page_size=size,
    )
