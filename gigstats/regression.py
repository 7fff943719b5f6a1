"""
Regression & smoothing — OLS trend lines and moving averages.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

# |n·Σx² − (Σx)²| at or below this means x carries no variance.
_DEGENERATE_DENOM = 1e-12


@dataclass(frozen=True)
class RegressionResult:
    slope: float
    intercept: float
    r_squared: float

    def predict(self, x: float) -> float:
        return self.slope * x + self.intercept


def linear_regression(x: list[float], y: list[float]) -> RegressionResult | None:
    """
    Closed-form ordinary least squares fit of y = slope·x + intercept.

    R² is clamped at 0 and defined as 1 when every y is identical.
    Returns None for fewer than two points, mismatched lengths, or x
    without variance.
    """
    n = len(x)
    if n < 2 or n != len(y):
        return None
    sx = math.fsum(x)
    sy = math.fsum(y)
    sxy = math.fsum(a * b for a, b in zip(x, y))
    sxx = math.fsum(a * a for a in x)
    denom = n * sxx - sx * sx
    if abs(denom) <= _DEGENERATE_DENOM:
        return None

    slope = (n * sxy - sx * sy) / denom
    intercept = sy / n - slope * sx / n

    y_mean = sy / n
    ss_tot = math.fsum((b - y_mean) ** 2 for b in y)
    if ss_tot < _DEGENERATE_DENOM:
        r2 = 1.0
    else:
        ss_res = math.fsum((b - (slope * a + intercept)) ** 2 for a, b in zip(x, y))
        r2 = max(0.0, 1.0 - ss_res / ss_tot)
    return RegressionResult(slope=slope, intercept=intercept, r_squared=r2)


def regress_on_index(values: list[float]) -> RegressionResult | None:
    """Fit values against their position 0..n-1."""
    return linear_regression([float(i) for i in range(len(values))], values)


def ema(values: list[float], span: int) -> list[float]:
    """
    Exponential moving average with α = 2/(span+1), seeded with the
    first value. Same length as the input.
    """
    if not values:
        return []
    alpha = 2.0 / (max(span, 1) + 1.0)
    out = [values[0]]
    for x in values[1:]:
        out.append(alpha * x + (1.0 - alpha) * out[-1])
    return out


def last_ema(values: list[float], span: int) -> float:
    smoothed = ema(values, span)
    return smoothed[-1] if smoothed else 0.0


def sma(values: list[float], window: int) -> list[float]:
    """
    Simple moving average. The first window-1 points are expanding
    averages; after that each point averages the trailing `window` values.
    """
    window = max(window, 1)
    out: list[float] = []
    running = 0.0
    for i, x in enumerate(values):
        running += x
        if i >= window:
            running -= values[i - window]
        out.append(running / min(i + 1, window))
    return out


def blend(regression: RegressionResult | None, ema_value: float, x: float) -> float:
    """
    R²-weighted mix of a regression projection at `x` and an EMA level.
    Negative projections are floored at 0 before blending; without a fit
    the EMA is used alone.
    """
    if regression is None:
        return ema_value
    w = min(max(regression.r_squared, 0.0), 1.0)
    projected = max(regression.predict(x), 0.0)
    return w * projected + (1.0 - w) * ema_value
