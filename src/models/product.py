"""
Cozy Cove — Product Cache Model

Last normalized snapshot of every product seen in the AliExpress feed.
first_seen_at is written once, on the first sighting, and carried forward by
the normalizer's merge step on every later refresh.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import BOOLEAN, DECIMAL, FLOAT, INTEGER, JSON, TIMESTAMP, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from src.catalog.schemas import Product
from src.models.base import Base
from src.utils.timeutils import ensure_utc


class ProductRecord(Base):
    """
    Cached normalized product.

    Primary key is the AliExpress product_id. Rows are upserted by the
    catalog refresh job; nothing else writes here.
    """

    __tablename__ = "products"

    id: Mapped[str] = mapped_column(
        String, primary_key=True, comment="AliExpress product_id"
    )
    title: Mapped[str] = mapped_column(String, nullable=False)
    image: Mapped[str] = mapped_column(String, nullable=False, default="")
    url: Mapped[str] = mapped_column(
        String, nullable=False, default="", comment="Affiliate promotion link"
    )
    price: Mapped[Decimal] = mapped_column(
        DECIMAL(10, 2), nullable=False, comment="Current sale price"
    )
    old_price: Mapped[Decimal | None] = mapped_column(
        DECIMAL(10, 2), nullable=True, comment="Pre-discount reference price"
    )
    discount_percent: Mapped[int | None] = mapped_column(INTEGER, nullable=True)
    rating: Mapped[float | None] = mapped_column(
        FLOAT, nullable=True, comment="0-5 star scale"
    )
    orders: Mapped[int] = mapped_column(INTEGER, nullable=False, default=0)
    category: Mapped[str | None] = mapped_column(String, nullable=True)
    tags: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    free_shipping: Mapped[bool | None] = mapped_column(BOOLEAN, nullable=True)
    first_seen_at: Mapped[datetime | None] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=True,
        comment="First time this product was observed, never overwritten",
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=True,
        comment="Last refresh of this snapshot",
    )

    __table_args__ = (
        Index("ix_products_first_seen_at", "first_seen_at"),
    )

    def to_product(self) -> Product:
        return Product(
            id=self.id,
            title=self.title,
            image=self.image or "",
            url=self.url or "",
            price=self.price,
            old_price=self.old_price,
            discount_percent=self.discount_percent,
            rating=self.rating,
            orders=self.orders or 0,
            category=self.category,
            tags=tuple(self.tags or ()),
            free_shipping=self.free_shipping,
            first_seen_at=ensure_utc(self.first_seen_at),
            updated_at=ensure_utc(self.updated_at),
        )

    def apply(self, product: Product) -> None:
        """Copy a normalized product onto this row."""
        self.title = product.title
        self.image = product.image
        self.url = product.url
        self.price = product.price
        self.old_price = product.old_price
        self.discount_percent = product.discount_percent
        self.rating = product.rating
        self.orders = product.orders
        self.category = product.category
        self.tags = list(product.tags)
        self.free_shipping = product.free_shipping
        self.first_seen_at = product.first_seen_at
        self.updated_at = product.updated_at

    @classmethod
    def from_product(cls, product: Product) -> ProductRecord:
        record = cls(id=product.id)
        record.apply(product)
        return record

    def __repr__(self) -> str:
        return (
            f"<ProductRecord id={self.id!r} price={self.price} "
            f"first_seen_at={self.first_seen_at}>"
        )
