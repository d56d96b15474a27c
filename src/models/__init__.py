"""
Models package — export all SQLAlchemy models.
"""

from src.models.base import Base
from src.models.product import ProductRecord
from src.models.product_click import ProductClick
from src.models.product_stats import ProductStatsRecord

__all__ = ["Base", "ProductClick", "ProductRecord", "ProductStatsRecord"]
