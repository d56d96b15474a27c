"""
Cozy Cove — Top Products Score

Quality/popularity/value composite, independent of on-site engagement:

    score = (rating_w × rating) + (orders_w × ln(orders + 1)) + (discount_w × discount%)

Orders are log-compressed so a few viral listings with six-figure volumes
cannot permanently crowd out everything else.

Example (default weights):
    rating=4.8, orders=1000, discount=30%
    2.0 × 4.8 + 1.5 × ln(1001) + 0.5 × 30 = 9.6 + 10.36 + 15 = 34.96
"""

from __future__ import annotations

import math
from collections.abc import Sequence

import structlog

from src.catalog.schemas import Product, ScoredProduct
from src.config import settings
from src.engine.weights import TopScoreWeights

logger = structlog.get_logger(__name__)


def calculate_top_score(
    product: Product,
    weights: TopScoreWeights | None = None,
) -> float:
    """Score one product. Missing rating/discount count as 0."""
    weights = weights or TopScoreWeights.from_settings()

    rating = product.rating or 0.0
    orders = max(product.orders or 0, 0)
    discount = product.discount_percent or 0

    rating_score = weights.rating * rating
    orders_score = weights.orders * math.log(orders + 1)
    discount_score = weights.discount * discount

    return rating_score + orders_score + discount_score


def sort_by_top_score(
    products: Sequence[Product],
    weights: TopScoreWeights | None = None,
) -> list[Product]:
    """
    Sort products by top score, highest first.

    Returns a new list; the input is never mutated. Ties keep their input
    order (sorted() is stable, including with reverse=True).
    """
    weights = weights or TopScoreWeights.from_settings()
    ranked = sorted(
        products,
        key=lambda product: calculate_top_score(product, weights),
        reverse=True,
    )
    logger.debug("top_score_sorted", product_count=len(ranked))
    return ranked


def add_top_scores(
    products: Sequence[Product],
    weights: TopScoreWeights | None = None,
) -> list[ScoredProduct]:
    """Attach top_score to each product, preserving order."""
    weights = weights or TopScoreWeights.from_settings()
    scored: list[ScoredProduct] = []
    for product in products:
        fields = product.model_dump()
        fields["top_score"] = calculate_top_score(product, weights)
        scored.append(ScoredProduct(**fields))
    return scored


def get_top_products(
    products: Sequence[Product],
    limit: int | None = None,
    weights: TopScoreWeights | None = None,
) -> list[Product]:
    """
    Top N products by top score.

    A limit larger than the input returns everything; a non-positive limit
    returns an empty list.
    """
    if limit is None:
        limit = settings.DEFAULT_TOP_LIMIT
    if limit <= 0:
        return []
    return sort_by_top_score(products, weights)[:limit]
