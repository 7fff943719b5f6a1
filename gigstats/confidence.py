"""
Confidence scoring and trend classification shared by the forecasters.

confidence = 0.40·volume + 0.30·fit + 0.30·consistency, where
  volume       = clamp(log(n/10) / log(9), 0, 1)   (0 at 10 days, 1 at 90)
  fit          = clamp(R², 0, 1)
  consistency  = clamp(1 − CV, 0, 1)
"""

from __future__ import annotations

import math

from .regression import RegressionResult
from .stats import is_zero
from .types import Trend

VOLUME_WEIGHT = 0.40
FIT_WEIGHT = 0.30
CONSISTENCY_WEIGHT = 0.30

# Trend classification cut points.
VOLATILE_CV = 1.0
WEAK_FIT_R2 = 0.05
WEAK_FIT_VOLATILE_CV = 0.6
FLAT_RELATIVE_SLOPE = 0.01


def _clamp(x: float, lo: float = 0.0, hi: float = 1.0) -> float:
    if math.isnan(x):
        return lo
    return min(max(x, lo), hi)


def volume_factor(n: int) -> float:
    if n <= 0:
        return 0.0
    return _clamp(math.log(n / 10.0) / math.log(9.0))


def compute_confidence(
    n: int,
    regression: RegressionResult | None,
    cv: float,
) -> float:
    """Blend data volume, goodness of fit and consistency into [0, 1]."""
    if n <= 0 or regression is None:
        return 0.0
    consistency = 0.0 if math.isinf(cv) else _clamp(1.0 - cv)
    score = (
        VOLUME_WEIGHT * volume_factor(n)
        + FIT_WEIGHT * _clamp(regression.r_squared)
        + CONSISTENCY_WEIGHT * consistency
    )
    return _clamp(score)


def classify_trend(
    regression: RegressionResult | None,
    series_mean: float,
    cv: float,
) -> Trend:
    """
    Volatile series first, then weak fits, then flat slopes; whatever is
    left follows the sign of the slope.
    """
    if regression is None:
        return Trend.INSUFFICIENT
    if cv > VOLATILE_CV:
        return Trend.VOLATILE
    if regression.r_squared < WEAK_FIT_R2:
        return Trend.VOLATILE if cv > WEAK_FIT_VOLATILE_CV else Trend.STEADY
    scale = max(abs(series_mean), 1e-6)
    if is_zero(regression.slope) or abs(regression.slope) / scale < FLAT_RELATIVE_SLOPE:
        return Trend.STEADY
    return Trend.ACCELERATING if regression.slope > 0 else Trend.DECELERATING
