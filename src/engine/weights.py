"""
Cozy Cove — Scoring Weight Sets

Each ranker takes an explicit, immutable weight object. Callers that pass
nothing get the values from settings; tests pass their own instances instead
of patching module globals.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from src.config import settings


class TopScoreWeights(BaseModel):
    """score = rating × rating + orders × ln(orders + 1) + discount × discount%"""

    model_config = ConfigDict(frozen=True)

    rating: float
    orders: float
    discount: float

    @classmethod
    def from_settings(cls) -> TopScoreWeights:
        return cls(
            rating=settings.TOP_RATING_WEIGHT,
            orders=settings.TOP_ORDERS_WEIGHT,
            discount=settings.TOP_DISCOUNT_WEIGHT,
        )


class TrendingScoreWeights(BaseModel):
    """score = clicks × recent_clicks + saves × saves + discount × discount% + freshness × factor"""

    model_config = ConfigDict(frozen=True)

    clicks: float
    saves: float
    discount: float
    freshness: float

    @classmethod
    def from_settings(cls) -> TrendingScoreWeights:
        return cls(
            clicks=settings.TRENDING_CLICKS_WEIGHT,
            saves=settings.TRENDING_SAVES_WEIGHT,
            discount=settings.TRENDING_DISCOUNT_WEIGHT,
            freshness=settings.TRENDING_FRESH_WEIGHT,
        )


class FreshnessConfig(BaseModel):
    """Linear decay from max_score (just seen) to 0 (decay_days old)."""

    model_config = ConfigDict(frozen=True)

    decay_days: float = Field(gt=0)
    max_score: float = Field(ge=0)

    @classmethod
    def from_settings(cls) -> FreshnessConfig:
        return cls(
            decay_days=settings.FRESHNESS_DECAY_DAYS,
            max_score=settings.MAX_FRESHNESS_SCORE,
        )
