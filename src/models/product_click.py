"""
Cozy Cove — Product Click Log

Append-only record of outbound affiliate clicks. Clicks may be anonymous;
user_id is the auth provider's opaque identifier when the visitor is signed in.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import INTEGER, TIMESTAMP, Index, String, func
from sqlalchemy.orm import Mapped, mapped_column

from src.models.base import Base


class ProductClick(Base):
    """A single click on a product's affiliate link."""

    __tablename__ = "product_clicks"

    id: Mapped[int] = mapped_column(INTEGER, primary_key=True, autoincrement=True)
    product_id: Mapped[str] = mapped_column(String, nullable=False)
    user_id: Mapped[str | None] = mapped_column(
        String, nullable=True, comment="Null for anonymous visitors"
    )
    clicked_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    __table_args__ = (
        Index("ix_product_clicks_product_id", "product_id"),
    )

    def __repr__(self) -> str:
        return f"<ProductClick product_id={self.product_id!r} user_id={self.user_id!r}>"
