"""
SQLAlchemy 2.0 async DeclarativeBase for Cozy Cove.

All models inherit from this Base. Money maps to DECIMAL(10, 2) and every
datetime column is timezone-aware unless a model says otherwise.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import DECIMAL, TIMESTAMP
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class for the products, product_stats and product_clicks models."""

    type_annotation_map = {
        Decimal: DECIMAL(10, 2),
        datetime: TIMESTAMP(timezone=True),
    }
