"""
Core data types for gigstats.

Inputs are read-only snapshots handed over by whatever layer owns
persistence; outputs are fresh value objects built on every call. Both
sides are frozen dataclasses so a result can be shared freely.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Any


def _iso(d: date | datetime) -> str:
    return d.isoformat()


class AnomalyType(str, Enum):
    EARNINGS_SPIKE = "earnings_spike"
    EARNINGS_DROP = "earnings_drop"
    FEE_INCREASE = "fee_increase"
    EXPENSE_SPIKE = "expense_spike"
    INCOME_GAP = "income_gap"
    CATEGORY_OUTLIER = "category_outlier"


class Severity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        """Ordering key, higher is more severe."""
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {Severity.INFO: 0, Severity.WARNING: 1, Severity.CRITICAL: 2}


class Trend(str, Enum):
    ACCELERATING = "accelerating"
    STEADY = "steady"
    DECELERATING = "decelerating"
    VOLATILE = "volatile"
    INSUFFICIENT = "insufficient"


# ── Inputs ──────────────────────────────────────────────────────────


@dataclass(frozen=True)
class EarningsEntry:
    """Money received from a platform. `date` may be a date or a datetime."""
    date: date | datetime
    amount: float
    platform: str = ""


@dataclass(frozen=True)
class ExpenseEntry:
    date: date | datetime
    amount: float
    category: str = ""


@dataclass(frozen=True)
class FeeEntry:
    """Platform fees withheld from a gross payout."""
    date: date | datetime
    gross_amount: float
    fees: float
    platform: str = ""


# ── Outputs ─────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Anomaly:
    """
    A single flagged observation.

    `z_score` is whatever z-like score the analyzer graded severity on
    (plain, modified, or robust); `expected_range` is the (low, high)
    band the observation was compared against.
    """
    type: AnomalyType
    severity: Severity
    metric: str
    observed_value: float
    expected_range: tuple[float, float]
    z_score: float
    description: str
    recommendation: str
    detected_at: date

    def to_dict(self) -> dict[str, Any]:
        low, high = self.expected_range
        return {
            "type": self.type.value,
            "severity": self.severity.value,
            "metric": self.metric,
            "observed_value": round(self.observed_value, 4),
            "expected_range": [round(low, 4), round(high, 4)],
            "z_score": round(self.z_score, 4),
            "description": self.description,
            "recommendation": self.recommendation,
            "detected_at": _iso(self.detected_at),
        }


@dataclass(frozen=True)
class EarningsForecast:
    predicted_next_week: float
    predicted_next_month: float
    confidence: float
    trend: Trend
    seasonal_adjustment: float
    forecast_basis: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "predicted_next_week": round(self.predicted_next_week, 2),
            "predicted_next_month": round(self.predicted_next_month, 2),
            "confidence": round(self.confidence, 4),
            "trend": self.trend.value,
            "seasonal_adjustment": round(self.seasonal_adjustment, 4),
            "forecast_basis": self.forecast_basis,
        }


@dataclass(frozen=True)
class CategoryForecast:
    category: str
    predicted_amount: float
    trend: Trend

    def to_dict(self) -> dict[str, Any]:
        return {
            "category": self.category,
            "predicted_amount": round(self.predicted_amount, 2),
            "trend": self.trend.value,
        }


@dataclass(frozen=True)
class ExpenseForecast:
    predicted_monthly_expenses: float
    category_forecasts: tuple[CategoryForecast, ...] = ()
    burn_rate_per_day: float = 0.0
    days_until_budget_exhausted: float | None = None

    def to_dict(self) -> dict[str, Any]:
        days = self.days_until_budget_exhausted
        return {
            "predicted_monthly_expenses": round(self.predicted_monthly_expenses, 2),
            "category_forecasts": [c.to_dict() for c in self.category_forecasts],
            "burn_rate_per_day": round(self.burn_rate_per_day, 2),
            "days_until_budget_exhausted": round(days, 1) if days is not None else None,
        }


@dataclass(frozen=True)
class IncomeVelocity:
    current_daily_rate: float
    prior_daily_rate: float
    acceleration: float
    days_to_target: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "current_daily_rate": round(self.current_daily_rate, 2),
            "prior_daily_rate": round(self.prior_daily_rate, 2),
            "acceleration": round(self.acceleration, 4),
            "days_to_target": self.days_to_target,
        }


@dataclass(frozen=True)
class ChangePoint:
    """A date where the level of a daily series shifted significantly."""
    date: date
    before_avg: float
    after_avg: float
    percent_change: float
    description: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "date": _iso(self.date),
            "before_avg": round(self.before_avg, 2),
            "after_avg": round(self.after_avg, 2),
            "percent_change": round(self.percent_change, 2),
            "description": self.description,
        }


@dataclass(frozen=True)
class SeasonalDecomposition:
    """
    Additive split of a daily series into trend + seasonal + residual.
    `seasonal_strength` is the share of detrended variance the weekly
    pattern explains, in [0, 1].
    """
    trend: tuple[float, ...]
    seasonal: tuple[float, ...]
    residual: tuple[float, ...]
    seasonal_strength: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "trend": [round(v, 2) for v in self.trend],
            "seasonal": [round(v, 2) for v in self.seasonal],
            "residual": [round(v, 2) for v in self.residual],
            "seasonal_strength": round(self.seasonal_strength, 4),
        }
