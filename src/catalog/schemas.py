"""
Cozy Cove — Catalog Schemas

Pydantic models shared by the normalizer, the rankers, the query engine and the
AliExpress client:

- AliExpressProductRaw: one raw affiliate record, numerics still as strings
- Product: the internal normalized product (immutable)
- ScoredProduct: Product plus transient top/trending scores
- ProductStats: engagement counters supplied by the stats store
- ProductFilters / QueryResult: query engine input and output
"""

from __future__ import annotations

import math
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator


# ---------------------------------------------------------------------------
# Raw marketplace record
# ---------------------------------------------------------------------------


class AliExpressProductRaw(BaseModel):
    """
    Raw product from aliexpress.affiliate.product.query / productdetail.get.

    The feed is not schema-guaranteed: every numeric arrives as a string (or
    sometimes a bare JSON number, which is coerced to a string here) and any
    of them may be missing or malformed.
    """

    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)

    product_id: str
    product_title: str = ""
    product_main_image_url: str = ""
    promotion_link: str = ""
    target_sale_price: str | None = None
    target_sale_price_currency: str | None = None
    target_original_price: str | None = None
    target_original_price_currency: str | None = None
    discount: str | None = None
    evaluate_rate: str | None = None
    lastest_volume: str | None = None
    first_level_category_id: str | None = None
    first_level_category_name: str | None = None
    second_level_category_id: str | None = None
    second_level_category_name: str | None = None
    shop_id: str | None = None
    shop_url: str | None = None

    @field_validator(
        "product_title", "product_main_image_url", "promotion_link", mode="before"
    )
    @classmethod
    def _null_to_empty(cls, value: object) -> object:
        """JSON null in a display field means empty, not an invalid record."""
        return "" if value is None else value


# ---------------------------------------------------------------------------
# Internal product
# ---------------------------------------------------------------------------


class Product(BaseModel):
    """Normalized product. Only re-normalization produces a new version."""

    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    image: str = ""
    url: str = ""
    price: Decimal = Decimal("0")
    old_price: Decimal | None = None
    discount_percent: int | None = None
    rating: float | None = None
    orders: int = 0
    category: str | None = None
    tags: tuple[str, ...] = ()
    free_shipping: bool | None = None
    first_seen_at: datetime | None = None
    updated_at: datetime | None = None


class ScoredProduct(Product):
    """Product with calculated scores for display. Never persisted."""

    top_score: float | None = None
    trending_score: float | None = None


class ProductStats(BaseModel):
    """Click and save counters for one product, read-only to the rankers."""

    model_config = ConfigDict(frozen=True)

    product_id: str
    total_clicks: int = Field(default=0, ge=0)
    recent_clicks: int = Field(default=0, ge=0)
    total_saves: int = Field(default=0, ge=0)
    last_click_at: datetime | None = None
    last_save_at: datetime | None = None
    updated_at: datetime | None = None


# ---------------------------------------------------------------------------
# Query engine input / output
# ---------------------------------------------------------------------------


class ProductFilters(BaseModel):
    """Shop page filters. Every field is optional; set fields are AND-combined."""

    search: str | None = None
    category: str | None = None
    min_price: Decimal | None = None
    max_price: Decimal | None = None
    min_rating: float | None = None
    min_discount: int | None = None
    free_shipping_only: bool = False


class QueryResult(BaseModel):
    """One page of filtered, sorted products."""

    items: list[Product] = Field(default_factory=list)
    total: int = 0
    has_more: bool = False
    page: int = 1
    page_size: int = 0

    @computed_field  # type: ignore[prop-decorator]
    @property
    def total_pages(self) -> int:
        if self.page_size <= 0:
            return 0
        return math.ceil(self.total / self.page_size)
