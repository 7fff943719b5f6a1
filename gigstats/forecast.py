"""
Forecasting — earnings and expense projections, and income velocity.

All three work on the zero-filled daily series: an OLS line over the day
index supplies the trend, an EMA supplies the recent level, and the two
are mixed per future day with weight R² on the regression. Each returns
None when the series is shorter than its minimum.

Usage::

    from gigstats.forecast import forecast_earnings, forecast_expenses

    fc = forecast_earnings(earnings)
    if fc is not None:
        print(f"next 30 days: ${fc.predicted_next_month:.2f} ({fc.trend.value})")

    exp = forecast_expenses(expenses, monthly_budget=1500.0)
"""

from __future__ import annotations

import logging
import math
from datetime import date, timedelta

from .confidence import classify_trend, compute_confidence
from .regression import blend, ema, last_ema, regress_on_index
from .series import to_day, zero_filled
from .stats import coefficient_of_variation, is_zero, mean
from .trends import seasonal_factors
from .types import (
    CategoryForecast,
    EarningsEntry,
    EarningsForecast,
    ExpenseEntry,
    ExpenseForecast,
    IncomeVelocity,
    Trend,
)

logger = logging.getLogger("gigstats.forecast")

MIN_EARNINGS_DAYS = 14
MIN_EXPENSE_DAYS = 7
MIN_VELOCITY_DAYS = 10

EARNINGS_EMA_SPAN = 7
EXPENSE_EMA_SPAN = 14
VELOCITY_MAX_SPAN = 14

HORIZON_WEEK = 7
HORIZON_MONTH = 30

MAX_DAYS_TO_TARGET = 100_000


def _project(values: list[float], span: int, horizon: int) -> float:
    """Sum of `horizon` blended daily projections past the end of `values`."""
    reg = regress_on_index(values)
    level = last_ema(values, span)
    n = len(values)
    return sum(blend(reg, level, n + d) for d in range(horizon))


# ── Earnings ────────────────────────────────────────────────────────


def forecast_earnings(
    earnings: list[EarningsEntry],
    as_of: date | None = None,
) -> EarningsForecast | None:
    """
    Project the next 7 and 30 days of earnings.

    `seasonal_adjustment` is the weekday factor for `as_of`, which
    defaults to the day after the last observation.
    """
    days, values = zero_filled((e.date, e.amount) for e in earnings)
    n = len(values)
    if n < MIN_EARNINGS_DAYS:
        logger.debug(f"forecast_earnings: {n} days < {MIN_EARNINGS_DAYS}, no forecast")
        return None

    reg = regress_on_index(values)
    level = last_ema(values, EARNINGS_EMA_SPAN)
    factors = seasonal_factors(days, values)
    last_day = days[-1]

    week_total = 0.0
    month_total = 0.0
    for d in range(HORIZON_MONTH):
        target = last_day + timedelta(days=d + 1)
        value = blend(reg, level, n + d) * factors[target.weekday()]
        month_total += value
        if d < HORIZON_WEEK:
            week_total += value

    cv = coefficient_of_variation(values)
    series_mean = mean(values)
    when = to_day(as_of) if as_of is not None else last_day + timedelta(days=1)

    return EarningsForecast(
        predicted_next_week=max(week_total, 0.0),
        predicted_next_month=max(month_total, 0.0),
        confidence=compute_confidence(n, reg, cv),
        trend=classify_trend(reg, series_mean, cv),
        seasonal_adjustment=factors[when.weekday()],
        forecast_basis=f"Based on {n} days of earnings data",
    )


# ── Expenses ────────────────────────────────────────────────────────


def forecast_expenses(
    expenses: list[ExpenseEntry],
    monthly_budget: float | None = None,
    as_of: date | None = None,
) -> ExpenseForecast | None:
    """
    Project 30 days of spending overall and per category, with the days
    until `monthly_budget` runs out at the current burn rate.

    "This month" is the calendar month of `as_of`, defaulting to the day
    of the latest expense; only spending on or before that day counts.
    """
    days, values = zero_filled((e.date, e.amount) for e in expenses)
    n = len(values)
    if n < MIN_EXPENSE_DAYS:
        logger.debug(f"forecast_expenses: {n} days < {MIN_EXPENSE_DAYS}, no forecast")
        return None

    burn = max(last_ema(values, EXPENSE_EMA_SPAN), 0.0)
    monthly = max(_project(values, EXPENSE_EMA_SPAN, HORIZON_MONTH), 0.0)

    by_category: dict[str, list[ExpenseEntry]] = {}
    for e in expenses:
        by_category.setdefault(e.category, []).append(e)

    categories: list[CategoryForecast] = []
    for category, entries in by_category.items():
        _, series = zero_filled(
            ((e.date, e.amount) for e in entries), start=days[0], end=days[-1]
        )
        active_days = {to_day(e.date) for e in entries}
        if len(active_days) < 2:
            categories.append(CategoryForecast(
                category=category,
                predicted_amount=max(mean(series) * HORIZON_MONTH, 0.0),
                trend=Trend.INSUFFICIENT,
            ))
            continue
        reg = regress_on_index(series)
        categories.append(CategoryForecast(
            category=category,
            predicted_amount=max(_project(series, EXPENSE_EMA_SPAN, HORIZON_MONTH), 0.0),
            trend=classify_trend(reg, mean(series), coefficient_of_variation(series)),
        ))
    categories.sort(key=lambda c: -c.predicted_amount)

    exhausted: float | None = None
    if monthly_budget is not None and burn > 1e-6:
        when = to_day(as_of) if as_of is not None else days[-1]
        month_start = when.replace(day=1)
        spent = sum(
            e.amount for e in expenses
            if month_start <= to_day(e.date) <= when
        )
        exhausted = max(monthly_budget - spent, 0.0) / burn

    return ExpenseForecast(
        predicted_monthly_expenses=monthly,
        category_forecasts=tuple(categories),
        burn_rate_per_day=burn,
        days_until_budget_exhausted=exhausted,
    )


# ── Velocity ────────────────────────────────────────────────────────


def calculate_velocity(
    earnings: list[EarningsEntry],
    target: float | None = None,
) -> IncomeVelocity | None:
    """
    Compare the smoothed daily rate of the second half of the series with
    the first half, and estimate days to reach `target` at today's rate.
    """
    _, values = zero_filled((e.date, e.amount) for e in earnings)
    n = len(values)
    if n < MIN_VELOCITY_DAYS:
        logger.debug(f"calculate_velocity: {n} days < {MIN_VELOCITY_DAYS}, no velocity")
        return None

    mid = n // 2
    prior_half, current_half = values[:mid], values[mid:]
    prior = ema(prior_half, min(len(prior_half), VELOCITY_MAX_SPAN))[-1]
    current = ema(current_half, min(len(current_half), VELOCITY_MAX_SPAN))[-1]

    if not is_zero(prior, 1e-6):
        acceleration = (current - prior) / abs(prior)
    elif current > 1e-6:
        acceleration = 1.0
    else:
        acceleration = 0.0

    days_to_target: int | None = None
    if target is not None and target > 0 and current > 1e-6:
        ratio = target / current
        # ratio may be inf for huge targets
        if ratio < MAX_DAYS_TO_TARGET:
            days = math.ceil(ratio)
            if 0 < days < MAX_DAYS_TO_TARGET:
                days_to_target = days

    return IncomeVelocity(
        current_daily_rate=current,
        prior_daily_rate=prior,
        acceleration=acceleration,
        days_to_target=days_to_target,
    )
