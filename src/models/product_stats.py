"""
Cozy Cove — Product Engagement Stats Model

Per-product click and save counters that feed the trending score.

recent_clicks is a tumbling-window counter: every click increments it and the
scheduler zeroes it once per RECENT_CLICKS_WINDOW_HOURS.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import INTEGER, TIMESTAMP, String
from sqlalchemy.orm import Mapped, mapped_column

from src.catalog.schemas import ProductStats
from src.models.base import Base
from src.utils.timeutils import ensure_utc


class ProductStatsRecord(Base):
    """One row per product that has ever been clicked or saved."""

    __tablename__ = "product_stats"

    product_id: Mapped[str] = mapped_column(
        String, primary_key=True, comment="AliExpress product_id"
    )
    total_clicks: Mapped[int] = mapped_column(INTEGER, nullable=False, default=0)
    recent_clicks: Mapped[int] = mapped_column(
        INTEGER, nullable=False, default=0, comment="Clicks in the current window"
    )
    total_saves: Mapped[int] = mapped_column(INTEGER, nullable=False, default=0)
    last_click_at: Mapped[datetime | None] = mapped_column(
        TIMESTAMP(timezone=True), nullable=True
    )
    last_save_at: Mapped[datetime | None] = mapped_column(
        TIMESTAMP(timezone=True), nullable=True
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        TIMESTAMP(timezone=True), nullable=True
    )

    def to_stats(self) -> ProductStats:
        return ProductStats(
            product_id=self.product_id,
            total_clicks=self.total_clicks or 0,
            recent_clicks=self.recent_clicks or 0,
            total_saves=self.total_saves or 0,
            last_click_at=ensure_utc(self.last_click_at),
            last_save_at=ensure_utc(self.last_save_at),
            updated_at=ensure_utc(self.updated_at),
        )

    def __repr__(self) -> str:
        return (
            f"<ProductStatsRecord product_id={self.product_id!r} "
            f"recent_clicks={self.recent_clicks} saves={self.total_saves}>"
        )
