"""
Cozy Cove — Trending Products Score

Engagement/freshness composite driven by on-site click and save statistics:

    score = (clicks_w × recent_clicks) + (saves_w × saves)
          + (discount_w × discount%) + (fresh_w × freshness_factor)

A product with no recorded engagement still scores through discount and
freshness, so new discounted arrivals can out-rank stale high-engagement
items.

Example (default weights):
    50 recent clicks, 20 saves, 40% discount, first seen 2 days ago
    3.0 × 50 + 2.0 × 20 + 0.3 × 40 + 1.5 × 7.14 = 150 + 40 + 12 + 10.71 = 212.71
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from datetime import datetime

import structlog

from src.catalog.schemas import Product, ProductStats, ScoredProduct
from src.config import settings
from src.engine.freshness import calculate_freshness_factor
from src.engine.weights import FreshnessConfig, TrendingScoreWeights
from src.utils.timeutils import utc_now

logger = structlog.get_logger(__name__)


def calculate_trending_score(
    product: Product,
    stats: ProductStats | None = None,
    now: datetime | None = None,
    weights: TrendingScoreWeights | None = None,
    freshness: FreshnessConfig | None = None,
) -> float:
    """
    Score one product.

    Args:
        product: Product to score.
        stats: Engagement counters; None means no recorded engagement.
        now: Reference time for the freshness factor (default: utc now).
        weights: Weight set (default: from settings).
        freshness: Freshness decay config (default: from settings).
    """
    weights = weights or TrendingScoreWeights.from_settings()

    recent_clicks = stats.recent_clicks if stats is not None else 0
    saves = stats.total_saves if stats is not None else 0
    discount = product.discount_percent or 0
    freshness_factor = calculate_freshness_factor(product.first_seen_at, now=now, config=freshness)

    clicks_score = weights.clicks * recent_clicks
    saves_score = weights.saves * saves
    discount_score = weights.discount * discount
    freshness_score = weights.freshness * freshness_factor

    return clicks_score + saves_score + discount_score + freshness_score


def sort_by_trending_score(
    products: Sequence[Product],
    stats_by_product_id: Mapping[str, ProductStats],
    now: datetime | None = None,
    weights: TrendingScoreWeights | None = None,
    freshness: FreshnessConfig | None = None,
) -> list[Product]:
    """
    Sort products by trending score, highest first.

    Stats are looked up by product id; absent entries score as zero
    engagement. The reference time is fixed once so every product is scored
    against the same clock. Returns a new list, stable for ties.
    """
    now = now or utc_now()
    weights = weights or TrendingScoreWeights.from_settings()
    freshness = freshness or FreshnessConfig.from_settings()

    ranked = sorted(
        products,
        key=lambda product: calculate_trending_score(
            product,
            stats_by_product_id.get(product.id),
            now=now,
            weights=weights,
            freshness=freshness,
        ),
        reverse=True,
    )
    logger.debug(
        "trending_score_sorted",
        product_count=len(ranked),
        stats_count=len(stats_by_product_id),
    )
    return ranked


def add_trending_scores(
    products: Sequence[Product],
    stats_by_product_id: Mapping[str, ProductStats],
    now: datetime | None = None,
    weights: TrendingScoreWeights | None = None,
    freshness: FreshnessConfig | None = None,
) -> list[ScoredProduct]:
    """Attach trending_score to each product, preserving order."""
    now = now or utc_now()
    scored: list[ScoredProduct] = []
    for product in products:
        fields = product.model_dump()
        fields["trending_score"] = calculate_trending_score(
            product,
            stats_by_product_id.get(product.id),
            now=now,
            weights=weights,
            freshness=freshness,
        )
        scored.append(ScoredProduct(**fields))
    return scored


def get_trending_products(
    products: Sequence[Product],
    stats_by_product_id: Mapping[str, ProductStats],
    limit: int | None = None,
    now: datetime | None = None,
    weights: TrendingScoreWeights | None = None,
    freshness: FreshnessConfig | None = None,
) -> list[Product]:
    """Top N trending products."""
    if limit is None:
        limit = settings.DEFAULT_TOP_LIMIT
    if limit <= 0:
        return []
    ranked = sort_by_trending_score(
        products, stats_by_product_id, now=now, weights=weights, freshness=freshness
    )
    return ranked[:limit]
