"""
gigstats quickstart — anomalies, forecasts and a report from two months
of simulated gig income.

Run:
    python examples/quickstart.py
"""

import random
from datetime import date, timedelta

from gigstats import (
    ConsoleExporter,
    EarningsEntry,
    ExpenseEntry,
    FeeEntry,
    JsonlExporter,
    MultiExporter,
    analyze_all,
    build_report,
    calculate_velocity,
    forecast_earnings,
    forecast_expenses,
)


def main():
    # 1. Simulate 60 days of activity
    start = date(2026, 2, 2)
    earnings, expenses, fees = [], [], []
    for i in range(60):
        day = start + timedelta(days=i)
        gross = round(random.uniform(80, 160), 2)
        if i == 40:
            gross = 900.0  # one exceptional day
        earnings.append(EarningsEntry(date=day, amount=gross, platform="delivery"))
        fees.append(FeeEntry(date=day, gross_amount=gross, fees=round(gross * 0.15, 2), platform="delivery"))
        if i % 2 == 0:
            expenses.append(ExpenseEntry(date=day, amount=round(random.uniform(20, 45), 2), category="Fuel"))

    # 2. Anomalies, ranked
    print("=" * 50)
    print("ANOMALIES")
    print("=" * 50)
    for a in analyze_all(earnings, expenses, fees):
        print(f"  [{a.severity.value}] {a.description}")

    # 3. Forecasts
    fc = forecast_earnings(earnings)
    exp = forecast_expenses(expenses, monthly_budget=600.0)
    vel = calculate_velocity(earnings, target=3000.0)
    print("\n" + "=" * 50)
    print("FORECAST")
    print("=" * 50)
    if fc:
        print(f"  Next week:   ${fc.predicted_next_week:.2f}")
        print(f"  Next month:  ${fc.predicted_next_month:.2f} ({fc.trend.value}, {fc.confidence:.0%} confidence)")
    if exp:
        print(f"  Expenses:    ${exp.predicted_monthly_expenses:.2f}/mo at ${exp.burn_rate_per_day:.2f}/day")
        if exp.days_until_budget_exhausted is not None:
            print(f"  Budget left: {exp.days_until_budget_exhausted:.1f} days")
    if vel and vel.days_to_target:
        print(f"  $3000 in:    {vel.days_to_target} days")

    # 4. Ship the full report
    report = build_report(earnings, expenses, fees, monthly_budget=600.0, target=3000.0)
    exporter = MultiExporter([
        ConsoleExporter(),
        JsonlExporter("data/anomalies.jsonl"),
    ])
    print()
    exporter.export_report(report)
    exporter.close()


if __name__ == "__main__":
    main()
