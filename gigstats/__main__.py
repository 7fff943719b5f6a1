"""
CLI entry point — run with `python -m gigstats`.

Reads earnings/expense/fee snapshots from JSONL files and prints
anomalies, forecasts or a full report.
"""

from __future__ import annotations

import argparse
import json
import logging
import random
import sys
from datetime import date, datetime, timedelta

from .config import Settings, load_settings
from .types import EarningsEntry, ExpenseEntry, FeeEntry

logger = logging.getLogger("gigstats.cli")


# ── Loading ─────────────────────────────────────────────────────────


def parse_date(value: str) -> date | datetime:
    if len(value) == 10:
        return date.fromisoformat(value)
    return datetime.fromisoformat(value)


def _earnings(d: dict) -> EarningsEntry:
    return EarningsEntry(
        date=parse_date(d["date"]),
        amount=float(d["amount"]),
        platform=d.get("platform", ""),
    )


def _expense(d: dict) -> ExpenseEntry:
    return ExpenseEntry(
        date=parse_date(d["date"]),
        amount=float(d["amount"]),
        category=d.get("category", ""),
    )


def _fee(d: dict) -> FeeEntry:
    return FeeEntry(
        date=parse_date(d["date"]),
        gross_amount=float(d["gross_amount"]),
        fees=float(d["fees"]),
        platform=d.get("platform", ""),
    )


def load_jsonl(path: str | None, parse) -> list:
    """
    Parse one entry per line with `parse`. Blank and malformed lines are
    skipped; a missing file raises FileNotFoundError. No path, no entries.
    """
    if not path:
        return []
    entries = []
    # Undecodable bytes become U+FFFD rather than aborting the whole file
    with open(path, encoding="utf-8", errors="replace") as f:
        for lineno, line in enumerate(f, 1):
            line = line.strip()
            if not line:
                continue
            try:
                entries.append(parse(json.loads(line)))
            except (ValueError, KeyError, TypeError) as e:
                logger.warning(f"{path}:{lineno}: skipping malformed entry ({e})")
    return entries


def _load_inputs(args):
    return (
        load_jsonl(getattr(args, "earnings", None), _earnings),
        load_jsonl(getattr(args, "expenses", None), _expense),
        load_jsonl(getattr(args, "fees", None), _fee),
    )


# ── Commands ────────────────────────────────────────────────────────


def cmd_anomalies(args, settings: Settings):
    """Print ranked anomalies across earnings, expenses and fees."""
    from .anomaly import analyze_all

    earnings, expenses, fees = _load_inputs(args)
    anomalies = analyze_all(earnings, expenses, fees)

    if args.json:
        print(json.dumps([a.to_dict() for a in anomalies], indent=2))
        return 0
    if not anomalies:
        print("No anomalies found.")
        return 0

    print(f"=== gigstats anomalies ({len(anomalies)}) ===")
    for a in anomalies:
        print(f"[{a.severity.value.upper():8s}] {a.detected_at.isoformat()}  {a.metric}")
        print(f"    {a.description}")
        print(f"    -> {a.recommendation}")
    return 0


def cmd_detect(args, settings: Settings):
    """Run the generic detectors and Grubbs' test on daily earnings."""
    from .anomaly import detect_by_iqr, detect_by_zscore
    from .series import daily_totals
    from .stats import grubbs_test

    earnings = load_jsonl(args.earnings, _earnings)
    totals = daily_totals((e.date, e.amount) for e in earnings)
    days = list(totals)
    values = list(totals.values())
    labels = [f"Earnings on {d.isoformat()}" for d in days]

    threshold = args.threshold if args.threshold is not None else settings.zscore_threshold
    multiplier = args.multiplier if args.multiplier is not None else settings.iqr_multiplier
    alpha = args.alpha if args.alpha is not None else settings.grubbs_alpha

    by_z = detect_by_zscore(values, labels, days, "Daily Earnings", threshold=threshold)
    by_iqr = detect_by_iqr(values, labels, days, "Daily Earnings", multiplier=multiplier)
    outlier = grubbs_test(values, alpha=alpha)

    if args.json:
        print(json.dumps({
            "zscore": [a.to_dict() for a in by_z],
            "iqr": [a.to_dict() for a in by_iqr],
            "grubbs": days[outlier].isoformat() if outlier is not None else None,
        }, indent=2))
        return 0

    print(f"=== gigstats detect ({len(values)} days) ===")
    print(f"z-score (>{threshold}): {len(by_z)} flagged")
    for a in by_z:
        print(f"  {a.detected_at.isoformat()}  ${a.observed_value:.2f}  z={a.z_score:+.2f}")
    print(f"IQR (k={multiplier}): {len(by_iqr)} flagged")
    for a in by_iqr:
        print(f"  {a.detected_at.isoformat()}  ${a.observed_value:.2f}  z={a.z_score:+.2f}")
    if outlier is not None:
        print(f"Grubbs (alpha={alpha}): outlier on {days[outlier].isoformat()} (${values[outlier]:.2f})")
    else:
        print(f"Grubbs (alpha={alpha}): no outlier")
    return 0


def cmd_forecast(args, settings: Settings):
    """Print earnings/expense forecasts and income velocity."""
    from .forecast import calculate_velocity, forecast_earnings, forecast_expenses

    earnings, expenses, _ = _load_inputs(args)
    budget = args.budget if args.budget is not None else settings.monthly_budget
    target = args.target if args.target is not None else settings.velocity_target

    fc = forecast_earnings(earnings)
    exp = forecast_expenses(expenses, monthly_budget=budget)
    vel = calculate_velocity(earnings, target=target)

    if args.json:
        print(json.dumps({
            "earnings_forecast": fc.to_dict() if fc else None,
            "expense_forecast": exp.to_dict() if exp else None,
            "velocity": vel.to_dict() if vel else None,
        }, indent=2))
        return 0

    print("=== gigstats forecast ===")
    if fc is None:
        print("Earnings:     not enough data (need 14 days)")
    else:
        print(f"Next week:    ${fc.predicted_next_week:.2f}")
        print(f"Next month:   ${fc.predicted_next_month:.2f}")
        print(f"Trend:        {fc.trend.value}")
        print(f"Confidence:   {fc.confidence:.0%}")
        print(f"Basis:        {fc.forecast_basis}")

    if exp is None:
        print("Expenses:     not enough data (need 7 days)")
    else:
        print(f"Expenses/mo:  ${exp.predicted_monthly_expenses:.2f}")
        print(f"Burn rate:    ${exp.burn_rate_per_day:.2f}/day")
        if exp.days_until_budget_exhausted is not None:
            print(f"Budget lasts: {exp.days_until_budget_exhausted:.1f} days")
        if exp.category_forecasts:
            print(f"\n--- Expenses by Category ---")
            for c in exp.category_forecasts:
                print(f"  {c.category:24s} ${c.predicted_amount:10.2f}  {c.trend.value}")

    if vel is not None:
        print(f"\nDaily rate:   ${vel.current_daily_rate:.2f} (was ${vel.prior_daily_rate:.2f}, {vel.acceleration:+.0%})")
        if vel.days_to_target is not None:
            print(f"Target in:    {vel.days_to_target} days")
    return 0


def cmd_report(args, settings: Settings):
    """Full report, optionally appended to a JSONL file."""
    from . import build_report
    from .exporters import ConsoleExporter, JsonlExporter, MultiExporter, WebhookExporter

    earnings, expenses, fees = _load_inputs(args)
    report = build_report(
        earnings,
        expenses,
        fees,
        monthly_budget=args.budget if args.budget is not None else settings.monthly_budget,
        target=args.target if args.target is not None else settings.velocity_target,
    )

    exporters = []
    if args.json:
        print(json.dumps(report.to_dict(), indent=2))
    else:
        exporters.append(ConsoleExporter(color=True))
    if args.out:
        exporters.append(JsonlExporter(args.out))
    if settings.webhook_url:
        exporters.append(WebhookExporter(settings.webhook_url))

    multi = MultiExporter(exporters)
    multi.export_report(report)
    multi.close()
    return 0


def _demo_data(seed: int):
    rng = random.Random(seed)
    start = date(2026, 1, 5)
    earnings, expenses, fees = [], [], []
    for i in range(60):
        d = start + timedelta(days=i)
        if rng.random() < 0.85:
            base = 140.0 if d.weekday() >= 5 else 95.0
            gross = round(base + i * 0.8 + rng.gauss(0, 15), 2)
            if i == 45:
                gross *= 4
            earnings.append(EarningsEntry(date=d, amount=gross, platform="rideshare"))
            rate = 0.30 if i >= 57 else 0.20 + rng.uniform(-0.01, 0.01)
            fees.append(FeeEntry(date=d, gross_amount=gross, fees=round(gross * rate, 2), platform="rideshare"))
        if rng.random() < 0.6:
            expenses.append(ExpenseEntry(date=d, amount=round(rng.uniform(25, 55), 2), category="Fuel"))
    expenses.append(ExpenseEntry(date=start + timedelta(days=56), amount=420.0, category="Equipment"))
    return earnings, expenses, fees


def cmd_demo(args, settings: Settings):
    """Run every analyzer over generated sample data."""
    from . import build_report
    from .exporters import ConsoleExporter

    print("=== gigstats demo ===\n")
    earnings, expenses, fees = _demo_data(args.seed)
    print(f"Generated {len(earnings)} earnings, {len(expenses)} expenses, {len(fees)} fee entries\n")

    report = build_report(earnings, expenses, fees, monthly_budget=1200.0, target=5000.0)
    ConsoleExporter(color=True).export_report(report)
    for cp in report.change_points:
        print(f"[gigstats] CHANGE: {cp.description}")
    print(f"[gigstats] MOMENTUM: {report.momentum:+.1%}")
    print(f"[gigstats] SEASONALITY: {report.seasonal_strength:.0%} of daily swings follow the weekday")
    if report.earnings_expense_correlation is not None:
        print(f"[gigstats] CORRELATION: earnings vs expenses r={report.earnings_expense_correlation:+.2f}")
    return 0


def cmd_version(args, settings: Settings):
    from . import __version__
    print(f"gigstats {__version__}")
    return 0


def _add_inputs(p: argparse.ArgumentParser, fees: bool = True):
    p.add_argument("--earnings", help="Earnings JSONL (date, amount, platform)")
    p.add_argument("--expenses", help="Expenses JSONL (date, amount, category)")
    if fees:
        p.add_argument("--fees", help="Fees JSONL (date, gross_amount, fees, platform)")
    p.add_argument("--json", action="store_true", help="Print JSON instead of text")


def main(argv: list[str] | None = None):
    parser = argparse.ArgumentParser(
        prog="gigstats",
        description="Statistical anomalies and forecasts for gig-worker finances",
    )
    sub = parser.add_subparsers(dest="command")

    p_anom = sub.add_parser("anomalies", help="List ranked anomalies")
    _add_inputs(p_anom)
    p_anom.set_defaults(func=cmd_anomalies)

    p_detect = sub.add_parser("detect", help="Generic outlier tests on daily earnings")
    p_detect.add_argument("--earnings", required=True, help="Earnings JSONL")
    p_detect.add_argument("--threshold", type=float, default=None, help="z-score threshold")
    p_detect.add_argument("--multiplier", type=float, default=None, help="IQR fence multiplier")
    p_detect.add_argument("--alpha", type=float, default=None, help="Grubbs' significance level")
    p_detect.add_argument("--json", action="store_true", help="Print JSON instead of text")
    p_detect.set_defaults(func=cmd_detect)

    p_fc = sub.add_parser("forecast", help="Earnings/expense forecasts and velocity")
    _add_inputs(p_fc, fees=False)
    p_fc.add_argument("--budget", type=float, default=None, help="Monthly expense budget")
    p_fc.add_argument("--target", type=float, default=None, help="Earnings target")
    p_fc.set_defaults(func=cmd_forecast)

    p_rep = sub.add_parser("report", help="Everything, optionally written to JSONL")
    _add_inputs(p_rep)
    p_rep.add_argument("--budget", type=float, default=None, help="Monthly expense budget")
    p_rep.add_argument("--target", type=float, default=None, help="Earnings target")
    p_rep.add_argument("--out", default=None, help="Append anomalies/report to this JSONL file")
    p_rep.set_defaults(func=cmd_report)

    p_demo = sub.add_parser("demo", help="Run on generated sample data")
    p_demo.add_argument("--seed", type=int, default=7, help="Random seed")
    p_demo.set_defaults(func=cmd_demo)

    p_ver = sub.add_parser("version", help="Show version")
    p_ver.set_defaults(func=cmd_version)

    args = parser.parse_args(argv)
    if not args.command:
        parser.print_help()
        return 0

    settings = load_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(levelname)s %(name)s: %(message)s",
    )
    try:
        return args.func(args, settings)
    except FileNotFoundError as e:
        print(f"File not found: {e.filename}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
