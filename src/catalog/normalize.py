"""
Cozy Cove — Product Normalizer

Converts raw AliExpress affiliate records into the internal Product schema and
merges fresh snapshots with previously cached ones.

Tolerance policy: the marketplace feed is not schema-guaranteed. A malformed
price, rating, volume or discount string never raises; it degrades to 0 or to
an absent value and is logged at debug level.

Discount priority:
    1. explicit "discount" field ("42%" -> 42)
    2. computed from original/sale price when original > sale
    3. absent

Provenance: normalize_product() stamps first_seen_at with the current time.
Callers must run merge_with_cached() against the cached record so that a
product's first sighting survives repeated ingestion.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

import structlog
from pydantic import ValidationError

from src.catalog.schemas import AliExpressProductRaw, Product
from src.config import ProductTag, settings
from src.utils.timeutils import utc_now

logger = structlog.get_logger(__name__)

_ZERO = Decimal("0")
_HUNDRED = Decimal("100")
_FIVE = Decimal("5")
_WHOLE = Decimal("1")

# Leading numeric prefix, so "19.99 USD" parses and "abc" does not
_DECIMAL_PREFIX = re.compile(r"^\s*([+-]?(?:\d+\.?\d*|\.\d+))")
_INT_PREFIX = re.compile(r"^\s*(\d+)")


# ---------------------------------------------------------------------------
# Field parsers
# ---------------------------------------------------------------------------


def parse_decimal(value: Any) -> Decimal | None:
    """Parse the leading decimal number of a string. None when there is none."""
    if value is None:
        return None
    match = _DECIMAL_PREFIX.match(str(value))
    if not match:
        return None
    try:
        return Decimal(match.group(1))
    except InvalidOperation:
        return None


def parse_int(value: Any) -> int | None:
    """Parse the leading unsigned integer of a string. None when there is none."""
    if value is None:
        return None
    match = _INT_PREFIX.match(str(value))
    if not match:
        return None
    return int(match.group(1))


def derive_discount_percent(
    explicit: str | None,
    price: Decimal,
    old_price: Decimal | None,
) -> int | None:
    """Explicit discount wins; otherwise compute it from the two prices."""
    if explicit:
        parsed = parse_int(explicit)
        if parsed is not None:
            return parsed
        logger.debug("normalize_discount_unparsable", discount=explicit)

    if old_price is not None and old_price > price:
        ratio = (old_price - price) / old_price * _HUNDRED
        return int(ratio.quantize(_WHOLE, rounding=ROUND_HALF_UP))

    return None


def normalize_rating(evaluate_rate: str | None) -> float | None:
    """
    Bring a rating onto the 0-5 scale.

    The API reports either a star value ("4.8") or a positive-feedback
    percentage ("97%"). Anything above 5 is treated as a percentage.
    """
    if not evaluate_rate:
        return None
    value = parse_decimal(evaluate_rate.replace("%", ""))
    if value is None:
        logger.debug("normalize_rating_unparsable", evaluate_rate=evaluate_rate)
        return None
    if value > _FIVE:
        value = value / _HUNDRED * _FIVE
    return float(value)


def derive_tags(
    price: Decimal,
    discount_percent: int | None,
    rating: float | None,
    orders: int,
) -> tuple[str, ...]:
    """Badges are independent; a product can carry all four."""
    tags: list[str] = []
    if discount_percent is not None and discount_percent >= settings.BIGGEST_SAVINGS_THRESHOLD:
        tags.append(ProductTag.BIGGEST_SAVINGS.value)
    if rating is not None and rating >= settings.TOP_RATED_THRESHOLD:
        tags.append(ProductTag.TOP_RATED.value)
    if price < settings.UNDER_20_THRESHOLD:
        tags.append(ProductTag.UNDER_20.value)
    if orders > settings.POPULAR_ORDERS_THRESHOLD:
        tags.append(ProductTag.POPULAR.value)
    return tuple(tags)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def normalize_product(
    raw: AliExpressProductRaw | Mapping[str, Any],
    now: datetime | None = None,
) -> Product:
    """
    Normalize one raw AliExpress record.

    Args:
        raw: Raw record, either already validated or a plain dict.
        now: Timestamp used for first_seen_at/updated_at (default: utc now).

    Returns:
        Product with derived discount, rating, category and tags.

    Raises:
        pydantic.ValidationError: if the record has no product_id.
    """
    if not isinstance(raw, AliExpressProductRaw):
        raw = AliExpressProductRaw.model_validate(raw)
    if now is None:
        now = utc_now()

    price = parse_decimal(raw.target_sale_price)
    if price is None or price < _ZERO:
        logger.debug(
            "normalize_price_defaulted",
            product_id=raw.product_id,
            target_sale_price=raw.target_sale_price,
        )
        price = _ZERO

    # Zero or unparsable original price means "no reference price"
    old_price = parse_decimal(raw.target_original_price)
    if old_price is not None and old_price <= _ZERO:
        old_price = None

    discount_percent = derive_discount_percent(raw.discount, price, old_price)
    rating = normalize_rating(raw.evaluate_rate)
    orders = parse_int(raw.lastest_volume) or 0

    category = (
        raw.second_level_category_name
        or raw.first_level_category_name
        or settings.DEFAULT_CATEGORY_LABEL
    )

    return Product(
        id=raw.product_id,
        title=raw.product_title,
        image=raw.product_main_image_url,
        url=raw.promotion_link,
        price=price,
        old_price=old_price,
        discount_percent=discount_percent,
        rating=rating,
        orders=orders,
        category=category,
        tags=derive_tags(price, discount_percent, rating, orders),
        first_seen_at=now,
        updated_at=now,
    )


def normalize_all(
    raws: Iterable[AliExpressProductRaw | Mapping[str, Any]],
    now: datetime | None = None,
) -> list[Product]:
    """
    Normalize a batch of raw records with a single shared timestamp.

    Records that cannot be validated at all (no product_id) are skipped and
    logged; the rest of the batch still goes through.
    """
    if now is None:
        now = utc_now()

    products: list[Product] = []
    for raw in raws:
        try:
            products.append(normalize_product(raw, now=now))
        except ValidationError as e:
            logger.warning(
                "normalize_record_skipped",
                error=str(e),
                raw=str(raw)[:100],
            )

    logger.debug("normalize_batch_complete", count=len(products))
    return products


def merge_with_cached(
    new_product: Product,
    cached_product: Product | None = None,
    now: datetime | None = None,
) -> Product:
    """
    Combine a freshly normalized product with its cached predecessor.

    - No cached product: first-ever sighting, new_product is returned as-is.
    - Cached product: every field comes from new_product except first_seen_at,
      which is carried over from the cache; updated_at is set to now.

    A cached record without first_seen_at (legacy rows) keeps the new value.
    """
    if cached_product is None:
        return new_product
    if now is None:
        now = utc_now()

    first_seen_at = cached_product.first_seen_at or new_product.first_seen_at
    return new_product.model_copy(
        update={"first_seen_at": first_seen_at, "updated_at": now}
    )
