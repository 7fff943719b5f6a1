"""
gigstats — on-device statistical analytics for gig-worker finances

Turns plain lists of earnings, expenses and platform fees into ranked
statistical anomalies and trend-aware forecasts with a confidence score.
Everything is a pure function over in-memory lists: no storage, no
clock, no background threads.

Quick start::

    from datetime import date
    from gigstats import EarningsEntry, analyze_all, forecast_earnings, build_report

    earnings = [
        EarningsEntry(date=date(2026, 3, d), amount=120.0, platform="uber")
        for d in range(1, 29)
    ]

    for anomaly in analyze_all(earnings, expenses=[], fees=[]):
        print(anomaly.severity.value, anomaly.description)

    forecast = forecast_earnings(earnings)

    # Or everything at once
    report = build_report(earnings, expenses, fees, monthly_budget=1500.0)
    print(report.to_dict())
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Any

from .types import (
    Anomaly,
    AnomalyType,
    CategoryForecast,
    ChangePoint,
    EarningsEntry,
    EarningsForecast,
    ExpenseEntry,
    ExpenseForecast,
    FeeEntry,
    IncomeVelocity,
    SeasonalDecomposition,
    Severity,
    Trend,
)
from .anomaly import (
    analyze_all,
    analyze_earnings,
    analyze_expenses,
    analyze_fees,
    detect_by_iqr,
    detect_by_zscore,
)
from .forecast import calculate_velocity, forecast_earnings, forecast_expenses
from .regression import ema, linear_regression, sma
from .stats import grubbs_test
from .trends import change_points, decompose_seasonal, earnings_expense_correlation, momentum
from .series import zero_filled
from .exporters import (
    BaseExporter,
    ConsoleExporter,
    JsonlExporter,
    MultiExporter,
    WebhookExporter,
)
from .config import Settings, load_settings

__version__ = "0.1.0"


@dataclass
class Report:
    """Everything the engine can say about one set of snapshots."""
    anomalies: list[Anomaly] = field(default_factory=list)
    earnings_forecast: EarningsForecast | None = None
    expense_forecast: ExpenseForecast | None = None
    velocity: IncomeVelocity | None = None
    change_points: list[ChangePoint] = field(default_factory=list)
    momentum: float = 0.0
    seasonal_strength: float = 0.0
    earnings_expense_correlation: float | None = None

    def to_dict(self) -> dict[str, Any]:
        def opt(x):
            return x.to_dict() if x is not None else None

        return {
            "anomalies": [a.to_dict() for a in self.anomalies],
            "earnings_forecast": opt(self.earnings_forecast),
            "expense_forecast": opt(self.expense_forecast),
            "velocity": opt(self.velocity),
            "change_points": [c.to_dict() for c in self.change_points],
            "momentum": round(self.momentum, 4),
            "seasonal_strength": round(self.seasonal_strength, 4),
            "earnings_expense_correlation": (
                round(self.earnings_expense_correlation, 4)
                if self.earnings_expense_correlation is not None else None
            ),
        }


def build_report(
    earnings: list[EarningsEntry],
    expenses: list[ExpenseEntry],
    fees: list[FeeEntry],
    monthly_budget: float | None = None,
    target: float | None = None,
    as_of: date | None = None,
) -> Report:
    """
    Run every analyzer and forecaster over the same snapshots.

    `as_of` is passed to both forecasters; see their docs for the
    defaults used when it is omitted.
    """
    _, daily = zero_filled((e.date, e.amount) for e in earnings)
    return Report(
        anomalies=analyze_all(earnings, expenses, fees),
        earnings_forecast=forecast_earnings(earnings, as_of=as_of),
        expense_forecast=forecast_expenses(expenses, monthly_budget=monthly_budget, as_of=as_of),
        velocity=calculate_velocity(earnings, target=target),
        change_points=change_points(earnings),
        momentum=momentum(daily),
        seasonal_strength=decompose_seasonal(daily).seasonal_strength,
        earnings_expense_correlation=earnings_expense_correlation(earnings, expenses),
    )


__all__ = [
    # Types
    "Anomaly",
    "AnomalyType",
    "CategoryForecast",
    "ChangePoint",
    "EarningsEntry",
    "EarningsForecast",
    "ExpenseEntry",
    "ExpenseForecast",
    "FeeEntry",
    "IncomeVelocity",
    "SeasonalDecomposition",
    "Severity",
    "Trend",
    # Anomalies
    "analyze_all",
    "analyze_earnings",
    "analyze_expenses",
    "analyze_fees",
    "detect_by_iqr",
    "detect_by_zscore",
    "grubbs_test",
    # Forecasts
    "calculate_velocity",
    "forecast_earnings",
    "forecast_expenses",
    # Smoothing & trends
    "ema",
    "sma",
    "linear_regression",
    "change_points",
    "momentum",
    "decompose_seasonal",
    "earnings_expense_correlation",
    # Reports & export
    "Report",
    "build_report",
    "BaseExporter",
    "ConsoleExporter",
    "JsonlExporter",
    "MultiExporter",
    "WebhookExporter",
    # Config
    "Settings",
    "load_settings",
]
