"""
Calendar-day bucketing.

Every statistic in the engine runs on per-day totals: entries sharing a
local date are summed first, and for forecasting the span between the
first and last day is filled with explicit zeros (a day with nothing
recorded earned or spent nothing).
"""

from __future__ import annotations

from collections import defaultdict
from datetime import date, datetime, timedelta
from typing import Iterable


def to_day(d: date | datetime) -> date:
    """Strip the time component. Timezone is whatever the caller used."""
    if isinstance(d, datetime):
        return d.date()
    return d


def daily_totals(points: Iterable[tuple[date | datetime, float]]) -> dict[date, float]:
    """Sum amounts per calendar day, keys in ascending date order."""
    totals: dict[date, float] = defaultdict(float)
    for d, amount in points:
        totals[to_day(d)] += amount
    return dict(sorted(totals.items()))


def zero_filled(
    points: Iterable[tuple[date | datetime, float]],
    start: date | None = None,
    end: date | None = None,
) -> tuple[list[date], list[float]]:
    """
    Contiguous daily series from `start` to `end` (defaulting to the
    first/last observed day) with missing days as 0.0.
    """
    totals = daily_totals(points)
    if not totals and (start is None or end is None):
        return [], []
    first = start if start is not None else next(iter(totals))
    last = end if end is not None else next(reversed(totals))
    if last < first:
        return [], []
    days: list[date] = []
    values: list[float] = []
    d = first
    while d <= last:
        days.append(d)
        values.append(totals.get(d, 0.0))
        d += timedelta(days=1)
    return days, values


def week_start(d: date | datetime) -> date:
    """Monday of the ISO week containing `d`."""
    day = to_day(d)
    return day - timedelta(days=day.weekday())


def weekly_counts(dates: Iterable[date | datetime]) -> dict[date, int]:
    """Number of entries per ISO week, keyed by week start, ascending."""
    counts: dict[date, int] = defaultdict(int)
    for d in dates:
        counts[week_start(d)] += 1
    return dict(sorted(counts.items()))


def is_weekend(d: date) -> bool:
    return d.weekday() >= 5
