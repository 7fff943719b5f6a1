"""
Trend helpers — level shifts, momentum, weekday seasonality, additive
decomposition and cross-series correlation over daily series.

Usage::

    from gigstats.trends import change_points, momentum

    for cp in change_points(earnings, label="earnings"):
        print(cp.description)
"""

from __future__ import annotations

import logging
import math
from datetime import date
from typing import Iterable

from .regression import last_ema
from .series import to_day, zero_filled
from .stats import is_zero, mean, stddev
from .types import ChangePoint, EarningsEntry, ExpenseEntry, SeasonalDecomposition

logger = logging.getLogger("gigstats.trends")

# Two-tailed p < 0.01 for large samples.
CHANGE_POINT_CRITICAL_T = 2.576
MIN_SEGMENT = 7


def welch_t_statistic(a: list[float], b: list[float]) -> float:
    """Welch's t for two samples with possibly unequal variances."""
    if len(a) < 2 or len(b) < 2:
        return 0.0
    denom = math.sqrt(stddev(a) ** 2 / len(a) + stddev(b) ** 2 / len(b))
    if is_zero(denom):
        return 0.0
    return (mean(a) - mean(b)) / denom


def detect_change_points(
    values: list[float],
    min_segment: int = MIN_SEGMENT,
    critical: float = CHANGE_POINT_CRITICAL_T,
) -> list[int]:
    """
    Binary segmentation: split each segment where Welch's |t| between the
    two sides is largest, keep the split if |t| > critical, recurse.
    Both sides of every split hold at least `min_segment` values.
    """
    found: list[int] = []
    stack = [(0, len(values))]
    while stack:
        start, end = stack.pop()
        if end - start < 2 * min_segment:
            continue
        best_t, best_split = 0.0, -1
        for split in range(start + min_segment, end - min_segment + 1):
            t = welch_t_statistic(values[start:split], values[split:end])
            if abs(t) > abs(best_t):
                best_t, best_split = t, split
        if best_split < 0 or abs(best_t) <= critical:
            continue
        found.append(best_split)
        stack.append((start, best_split))
        stack.append((best_split, end))
    return sorted(found)


def change_points(
    earnings: Iterable[EarningsEntry],
    label: str = "earnings",
    min_segment: int = MIN_SEGMENT,
) -> list[ChangePoint]:
    """Level shifts in the zero-filled daily series of `earnings`."""
    days, values = zero_filled((e.date, e.amount) for e in earnings)
    return change_points_in_series(days, values, label=label, min_segment=min_segment)


def change_points_in_series(
    days: list[date],
    values: list[float],
    label: str = "earnings",
    min_segment: int = MIN_SEGMENT,
) -> list[ChangePoint]:
    out: list[ChangePoint] = []
    for idx in detect_change_points(values, min_segment=min_segment):
        before = mean(values[:idx])
        after = mean(values[idx:])
        if before <= 0:
            continue
        pct = (after - before) / before * 100.0
        d = days[idx]
        direction = "jumped" if pct > 0 else "dropped"
        out.append(ChangePoint(
            date=d,
            before_avg=before,
            after_avg=after,
            percent_change=pct,
            description=f"{label.capitalize()} {direction} {abs(pct):.0f}% around {d:%b} {d.day}, {d.year}",
        ))
    if out:
        logger.debug(f"{label}: {len(out)} change points")
    return out


def momentum(values: list[float], short: int = 7, long: int = 30) -> float:
    """
    Relative gap between a short and a long EMA on the latest point.
    Positive means recent activity runs above the longer-term level.
    """
    if len(values) < long:
        return 0.0
    long_level = last_ema(values, long)
    if is_zero(long_level):
        return 0.0
    return (last_ema(values, short) - long_level) / long_level


def pearson_correlation(x: list[float], y: list[float]) -> float | None:
    """
    Correlation over the common prefix of x and y. None with fewer than
    three points or when either side is constant.
    """
    n = min(len(x), len(y))
    if n < 3:
        return None
    xs, ys = x[:n], y[:n]
    mx, my = mean(xs), mean(ys)
    sxy = math.fsum((a - mx) * (b - my) for a, b in zip(xs, ys))
    sxx = math.fsum((a - mx) ** 2 for a in xs)
    syy = math.fsum((b - my) ** 2 for b in ys)
    denom = math.sqrt(sxx * syy)
    if is_zero(denom):
        return None
    return sxy / denom


def seasonal_factors(days: list[date], values: list[float]) -> dict[int, float]:
    """
    Weekday (Monday=0) mean divided by the overall mean. Weekdays absent
    from the series get 1.0; all factors are 1.0 when the mean is ~0.
    """
    overall = mean(values)
    buckets: dict[int, list[float]] = {wd: [] for wd in range(7)}
    for d, v in zip(days, values):
        buckets[to_day(d).weekday()].append(v)
    if is_zero(overall):
        return {wd: 1.0 for wd in range(7)}
    scale = max(overall, 1e-6)
    return {
        wd: (mean(vs) / scale if vs else 1.0)
        for wd, vs in buckets.items()
    }


def earnings_expense_correlation(
    earnings: Iterable[EarningsEntry],
    expenses: Iterable[ExpenseEntry],
) -> float | None:
    """
    Pearson correlation of daily earnings and daily expenses over the days
    both zero-filled series cover. None when the ranges overlap on fewer
    than three days or either side is flat there.
    """
    e_days, e_values = zero_filled((e.date, e.amount) for e in earnings)
    x_days, x_values = zero_filled((e.date, e.amount) for e in expenses)
    if not e_days or not x_days:
        return None
    start, end = max(e_days[0], x_days[0]), min(e_days[-1], x_days[-1])
    if start > end:
        return None
    e_by_day = dict(zip(e_days, e_values))
    x_by_day = dict(zip(x_days, x_values))
    overlap = [d for d in e_days if start <= d <= end]
    return pearson_correlation(
        [e_by_day[d] for d in overlap],
        [x_by_day[d] for d in overlap],
    )


def _centered_average(values: list[float], window: int) -> list[float | None]:
    n = len(values)
    half = window // 2
    out: list[float | None] = [None] * n
    for i in range(half, n - half):
        out[i] = mean(values[i - half:i + half + 1])
    return out


def decompose_seasonal(values: list[float], period: int = 7) -> SeasonalDecomposition:
    """
    Additive decomposition. The trend is a centered moving average of
    width `period` (edges carry the nearest defined value), the seasonal
    part is the mean detrended value per position mod `period`, shifted to
    sum to zero, and the residual is whatever is left.

    Series too short for a single centered window keep their values as
    the trend.
    """
    n = len(values)
    raw = _centered_average(values, period) if n >= period >= 2 else []
    defined = [i for i, v in enumerate(raw) if v is not None]
    if defined:
        first, last = defined[0], defined[-1]
        trend = [
            raw[first] if i < first else raw[last] if i > last else raw[i]
            for i in range(n)
        ]
    else:
        trend = list(values)

    detrended = [y - t for y, t in zip(values, trend)]
    buckets: list[list[float]] = [[] for _ in range(max(period, 1))]
    for i, v in enumerate(detrended):
        buckets[i % len(buckets)].append(v)
    pattern = [mean(b) if b else 0.0 for b in buckets]
    shift = mean(pattern)
    pattern = [p - shift for p in pattern]

    seasonal = [pattern[i % len(pattern)] for i in range(n)]
    residual = [y - t - s for y, t, s in zip(values, trend, seasonal)]

    var_detrended = stddev(detrended) ** 2 if n >= 2 else 0.0
    if var_detrended > 1e-10:
        strength = max(0.0, min(1.0, 1.0 - stddev(residual) ** 2 / var_detrended))
    else:
        strength = 0.0

    return SeasonalDecomposition(
        trend=tuple(trend),
        seasonal=tuple(seasonal),
        residual=tuple(residual),
        seasonal_strength=strength,
    )
