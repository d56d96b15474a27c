"""
Cozy Cove — Freshness Factor

Rewards recently discovered products in the trending ranking. The factor
decays linearly from MAX_FRESHNESS_SCORE on the day a product is first seen
down to 0 after FRESHNESS_DECAY_DAYS:

- seen today:       10
- seen 3.5 days ago: 5
- seen 7+ days ago:  0

Not memoized: the result depends on the wall clock, so a fixed first_seen_at
yields a non-increasing factor as time passes.
"""

from __future__ import annotations

from datetime import datetime, timedelta

import structlog

from src.engine.weights import FreshnessConfig
from src.utils.timeutils import ensure_utc, utc_now

logger = structlog.get_logger(__name__)

_ONE_DAY_SECONDS = timedelta(days=1).total_seconds()


def calculate_freshness_factor(
    first_seen_at: datetime | None,
    now: datetime | None = None,
    config: FreshnessConfig | None = None,
) -> float:
    """
    Calculate the freshness factor for a product.

    Args:
        first_seen_at: When the product was first observed. None scores 0.
        now: Reference time (default: utc now). Allows testing with fixed clocks.
        config: Decay window and ceiling (default: from settings).

    Returns:
        Float in [0, config.max_score].
    """
    if first_seen_at is None:
        return 0.0

    config = config or FreshnessConfig.from_settings()
    reference = ensure_utc(now) if now is not None else utc_now()
    days_since_seen = (reference - ensure_utc(first_seen_at)).total_seconds() / _ONE_DAY_SECONDS

    # Clock skew can put first sightings slightly in the future
    if days_since_seen < 0:
        days_since_seen = 0.0

    if days_since_seen >= config.decay_days:
        return 0.0

    return config.max_score * (1 - days_since_seen / config.decay_days)
