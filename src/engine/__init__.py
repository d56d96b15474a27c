from src.engine.freshness import calculate_freshness_factor
from src.engine.top_score import (
    add_top_scores,
    calculate_top_score,
    get_top_products,
    sort_by_top_score,
)
from src.engine.trending_score import (
    add_trending_scores,
    calculate_trending_score,
    get_trending_products,
    sort_by_trending_score,
)
from src.engine.weights import FreshnessConfig, TopScoreWeights, TrendingScoreWeights

__all__ = [
    "FreshnessConfig",
    "TopScoreWeights",
    "TrendingScoreWeights",
    "add_top_scores",
    "add_trending_scores",
    "calculate_freshness_factor",
    "calculate_top_score",
    "calculate_trending_score",
    "get_top_products",
    "get_trending_products",
    "sort_by_top_score",
    "sort_by_trending_score",
]
