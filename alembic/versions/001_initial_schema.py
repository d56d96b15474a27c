"""Initial schema — products, product_stats, product_clicks

Revision ID: 001_initial_schema
Revises: None
Create Date: 2026-10-19
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers
revision: str = "001_initial_schema"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # --- products (normalized AliExpress snapshot cache) ---
    op.create_table(
        "products",
        sa.Column("id", sa.String(), nullable=False, comment="AliExpress product_id"),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("image", sa.String(), nullable=False, server_default=""),
        sa.Column("url", sa.String(), nullable=False, server_default="", comment="Affiliate promotion link"),
        sa.Column("price", sa.DECIMAL(10, 2), nullable=False),
        sa.Column("old_price", sa.DECIMAL(10, 2), nullable=True),
        sa.Column("discount_percent", sa.INTEGER(), nullable=True),
        sa.Column("rating", sa.FLOAT(), nullable=True, comment="0-5 star scale"),
        sa.Column("orders", sa.INTEGER(), nullable=False, server_default="0"),
        sa.Column("category", sa.String(), nullable=True),
        sa.Column("tags", sa.JSON(), nullable=False),
        sa.Column("free_shipping", sa.BOOLEAN(), nullable=True),
        sa.Column("first_seen_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("updated_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_products_first_seen_at", "products", ["first_seen_at"])

    # --- product_stats (engagement counters for trending) ---
    op.create_table(
        "product_stats",
        sa.Column("product_id", sa.String(), nullable=False),
        sa.Column("total_clicks", sa.INTEGER(), nullable=False, server_default="0"),
        sa.Column("recent_clicks", sa.INTEGER(), nullable=False, server_default="0"),
        sa.Column("total_saves", sa.INTEGER(), nullable=False, server_default="0"),
        sa.Column("last_click_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("last_save_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("updated_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("product_id"),
    )

    # --- product_clicks (append-only click log) ---
    op.create_table(
        "product_clicks",
        sa.Column("id", sa.INTEGER(), autoincrement=True, nullable=False),
        sa.Column("product_id", sa.String(), nullable=False),
        sa.Column("user_id", sa.String(), nullable=True, comment="Null for anonymous visitors"),
        sa.Column(
            "clicked_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_product_clicks_product_id", "product_clicks", ["product_id"])


def downgrade() -> None:
    op.drop_index("ix_product_clicks_product_id", table_name="product_clicks")
    op.drop_table("product_clicks")
    op.drop_table("product_stats")
    op.drop_index("ix_products_first_seen_at", table_name="products")
    op.drop_table("products")
