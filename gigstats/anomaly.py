"""
Anomaly detection — statistical outlier flags over earnings, expenses and
platform fees.

Two generic detectors (plain z-score, IQR/Tukey fences) plus the domain
analyzers, which all work on robust statistics (median/MAD) so that the
outlier being hunted cannot drag the baseline toward itself. Every
function is pure and returns a fresh, ranked list; too little data gives
an empty list.

Usage::

    from gigstats.anomaly import analyze_all

    for a in analyze_all(earnings, expenses, fees):
        print(a.severity.value, a.description)
"""

from __future__ import annotations

import logging
from collections import defaultdict
from datetime import date, timedelta
from typing import Callable, Iterable, TypeVar

from .series import daily_totals, is_weekend, to_day, week_start, weekly_counts
from .stats import (
    MODIFIED_Z_CONSTANT,
    is_zero,
    mad,
    mean,
    median,
    modified_z,
    modified_z_scores,
    quartiles,
    robust_sigma,
    severity_from_z,
    stddev,
)
from .types import (
    Anomaly,
    AnomalyType,
    EarningsEntry,
    ExpenseEntry,
    FeeEntry,
    Severity,
)

logger = logging.getLogger("gigstats.anomaly")

T = TypeVar("T")

MIN_SAMPLES = 10

# Modified-z cut points used by the domain analyzers.
EARNINGS_MODZ = 1.5
GAP_MODZ = 1.5
FEE_MODZ = 1.5
SEGMENT_MODZ = 2.0
FREQUENCY_MODZ = 2.0

# Most recent points per weekday/weekend segment tested against the rest.
RECENT_POINTS = 3

NEW_CATEGORY_WINDOW_DAYS = 30
NEW_CATEGORY_Z = 2.0


def _money(x: float) -> str:
    return f"${x:,.2f}"


def _pct(x: float) -> str:
    return f"{x * 100:.1f}%"


def _day(d: date) -> str:
    return f"{d:%b} {d.day}, {d.year}"


def _group(items: Iterable[T], key: Callable[[T], str]) -> dict[str, list[T]]:
    groups: dict[str, list[T]] = defaultdict(list)
    for item in items:
        groups[key(item)].append(item)
    return dict(groups)


def _robust_band(med: float, mad_value: float, low_factor: float, high_factor: float) -> tuple[float, float]:
    """med ± 2 robust sigmas, or a multiplicative band when MAD is ~0."""
    if is_zero(mad_value):
        return med * low_factor, med * high_factor
    width = 2.0 * robust_sigma(mad_value)
    return med - width, med + width


def rank(anomalies: list[Anomaly]) -> list[Anomaly]:
    """Severity descending, then |z| descending; stable for ties."""
    return sorted(anomalies, key=lambda a: (-a.severity.rank, -abs(a.z_score)))


# ── Generic detectors ───────────────────────────────────────────────


def detect_by_zscore(
    values: list[float],
    labels: list[str],
    dates: list[date],
    metric: str,
    threshold: float = 2.0,
    spike_type: AnomalyType = AnomalyType.EARNINGS_SPIKE,
    drop_type: AnomalyType = AnomalyType.EARNINGS_DROP,
) -> list[Anomaly]:
    """
    Flag values more than `threshold` sample standard deviations from the
    mean. The sign of z decides between `spike_type` and `drop_type`.
    """
    n = len(values)
    if n < MIN_SAMPLES or n != len(labels) or n != len(dates):
        return []
    m = mean(values)
    sd = stddev(values)
    if is_zero(sd):
        logger.debug(f"z-score: {metric} has no spread, skipping")
        return []

    low, high = m - threshold * sd, m + threshold * sd
    out: list[Anomaly] = []
    for value, label, d in zip(values, labels, dates):
        z = (value - m) / sd
        if abs(z) <= threshold:
            continue
        high_side = z > 0
        out.append(Anomaly(
            type=spike_type if high_side else drop_type,
            severity=severity_from_z(z),
            metric=metric,
            observed_value=value,
            expected_range=(low, high),
            z_score=z,
            description=(
                f"{label} of {_money(value)} is {abs(z):.1f} standard deviations "
                f"{'above' if high_side else 'below'} the mean of {_money(m)}."
            ),
            recommendation=(
                "Unusually high. Find out what drove it and whether it can be repeated."
                if high_side else
                "Unusually low. Check for outages, low demand or fewer hours worked."
            ),
            detected_at=to_day(d),
        ))
    return rank(out)


def detect_by_iqr(
    values: list[float],
    labels: list[str],
    dates: list[date],
    metric: str,
    multiplier: float = 1.5,
    spike_type: AnomalyType = AnomalyType.EARNINGS_SPIKE,
    drop_type: AnomalyType = AnomalyType.EARNINGS_DROP,
) -> list[Anomaly]:
    """
    Flag values outside the Tukey fences Q1 − k·IQR and Q3 + k·IQR.

    Severity is graded on the MAD-based robust z so it lines up with the
    other detectors; when MAD is ~0 the distance past the fence in IQR
    units (plus k) stands in for it.
    """
    n = len(values)
    if n < MIN_SAMPLES or n != len(labels) or n != len(dates):
        return []
    q1, med, q3 = quartiles(values)
    spread = q3 - q1
    if is_zero(spread):
        logger.debug(f"IQR: {metric} is too tightly clustered, skipping")
        return []

    lower = q1 - multiplier * spread
    upper = q3 + multiplier * spread
    mad_value = mad(values)

    out: list[Anomaly] = []
    for value, label, d in zip(values, labels, dates):
        if lower <= value <= upper:
            continue
        high_side = value > upper
        if is_zero(mad_value):
            past = (value - upper) if high_side else (lower - value)
            z = past / spread + multiplier
            z = z if high_side else -z
        else:
            z = MODIFIED_Z_CONSTANT * (value - med) / mad_value
        out.append(Anomaly(
            type=spike_type if high_side else drop_type,
            severity=severity_from_z(z),
            metric=metric,
            observed_value=value,
            expected_range=(lower, upper),
            z_score=z,
            description=(
                f"{label} of {_money(value)} is outside the IQR fence "
                f"[{_money(lower)} .. {_money(upper)}]."
            ),
            recommendation=(
                "Unusually high for this metric. Identify what drove the spike."
                if high_side else
                "Unusually low for this metric. Review whether external factors were at play."
            ),
            detected_at=to_day(d),
        ))
    return rank(out)


# ── Earnings ────────────────────────────────────────────────────────


def analyze_earnings(earnings: list[EarningsEntry]) -> list[Anomaly]:
    """
    Daily-total spikes and drops, unusually long gaps between earning
    days, and recent weekday/weekend deviations.
    """
    if len(earnings) < MIN_SAMPLES:
        return []
    totals = daily_totals((e.date, e.amount) for e in earnings)
    if len(totals) < MIN_SAMPLES:
        logger.debug(f"earnings: only {len(totals)} distinct days, skipping")
        return []

    days = list(totals)
    amounts = list(totals.values())
    scores = modified_z_scores(amounts)
    med = median(amounts)
    low, high = _robust_band(med, mad(amounts), 0.5, 1.5)

    out: list[Anomaly] = []
    for d, amount, z in zip(days, amounts, scores):
        if abs(z) <= EARNINGS_MODZ:
            continue
        high_side = z > 0
        out.append(Anomaly(
            type=AnomalyType.EARNINGS_SPIKE if high_side else AnomalyType.EARNINGS_DROP,
            severity=severity_from_z(z),
            metric="Daily Earnings",
            observed_value=amount,
            expected_range=(max(0.0, low), high),
            z_score=z,
            description=(
                f"{_day(d)}: {_money(amount)} is {abs(z):.1f} MAD-adjusted deviations "
                f"{'above' if high_side else 'below'} your median of {_money(med)}."
            ),
            recommendation=(
                "Exceptional earnings day. Note what you did differently (platform, "
                "hours, area) and try to replicate it."
                if high_side else
                "Below your typical earnings. Consider whether demand was low, or if "
                "you worked fewer hours."
            ),
            detected_at=d,
        ))

    out.extend(detect_income_gaps(days))
    out.extend(detect_segment_deviation(totals))
    logger.debug(f"earnings: {len(out)} anomalies over {len(days)} days")
    return rank(out)


def detect_income_gaps(earning_days: list[date]) -> list[Anomaly]:
    """Flag intervals between consecutive earning days that are unusually long."""
    days = sorted(set(earning_days))
    gaps = [
        (start, end, float((end - start).days))
        for start, end in zip(days, days[1:])
    ]
    if len(gaps) < MIN_SAMPLES:
        return []

    lengths = [g[2] for g in gaps]
    med = median(lengths)
    mad_value = mad(lengths)
    _, high = _robust_band(med, mad_value, 0.0, 2.0)

    out: list[Anomaly] = []
    for start, end, length in gaps:
        z = modified_z(length, med, mad_value)
        if z <= GAP_MODZ:
            continue
        out.append(Anomaly(
            type=AnomalyType.INCOME_GAP,
            severity=severity_from_z(z),
            metric="Earning Gap",
            observed_value=length,
            expected_range=(1.0, high),
            z_score=z,
            description=(
                f"{int(length)}-day gap between {_day(start)} and {_day(end)}. "
                f"Your typical gap is {med:.0f} days."
            ),
            recommendation=(
                "This is an unusually long break from earning. If unplanned, consider "
                "setting up income alerts to stay on track with your goals."
            ),
            detected_at=end,
        ))
    return out


def detect_segment_deviation(totals: dict[date, float]) -> list[Anomaly]:
    """
    Split daily totals into weekdays and weekends and test each segment's
    most recent days against that segment's own history.
    """
    weekday = [(d, v) for d, v in totals.items() if not is_weekend(d)]
    weekend = [(d, v) for d, v in totals.items() if is_weekend(d)]
    out = _recent_deviation(weekday, "Weekday")
    out.extend(_recent_deviation(weekend, "Weekend"))
    return out


def _recent_deviation(points: list[tuple[date, float]], label: str) -> list[Anomaly]:
    if len(points) < MIN_SAMPLES + RECENT_POINTS:
        return []
    history = [v for _, v in points[:-RECENT_POINTS]]
    med = median(history)
    mad_value = mad(history)
    if is_zero(mad_value):
        return []
    width = 2.0 * robust_sigma(mad_value)
    low, high = med - width, med + width
    noun = label.lower()

    out: list[Anomaly] = []
    for d, amount in points[-RECENT_POINTS:]:
        z = MODIFIED_Z_CONSTANT * (amount - med) / mad_value
        if abs(z) <= SEGMENT_MODZ:
            continue
        high_side = z > 0
        out.append(Anomaly(
            type=AnomalyType.EARNINGS_SPIKE if high_side else AnomalyType.EARNINGS_DROP,
            severity=severity_from_z(z),
            metric=f"{label} Earnings",
            observed_value=amount,
            expected_range=(max(0.0, low), high),
            z_score=z,
            description=(
                f"{label} earnings of {_money(amount)} on {_day(d)} is "
                f"{'above' if high_side else 'below'} your typical {noun} of {_money(med)}."
            ),
            recommendation=(
                f"Your recent {noun} earnings are higher than usual. Keep it up!"
                if high_side else
                f"Your recent {noun} earnings are below typical. Consider adjusting "
                "your schedule or trying different platforms."
            ),
            detected_at=d,
        ))
    return out


# ── Expenses ────────────────────────────────────────────────────────


def analyze_expenses(expenses: list[ExpenseEntry]) -> list[Anomaly]:
    """
    Per-category spikes above the upper Tukey fence, recently appeared
    categories with a noteworthy total, and weeks with unusually many
    expenses.
    """
    if len(expenses) < MIN_SAMPLES:
        return []
    ordered = sorted(expenses, key=lambda e: to_day(e.date))
    out: list[Anomaly] = []

    for category, entries in _group(ordered, lambda e: e.category).items():
        amounts = [e.amount for e in entries]
        if len(amounts) < MIN_SAMPLES:
            continue
        q1, med, q3 = quartiles(amounts)
        spread = q3 - q1
        if is_zero(spread):
            continue
        upper = q3 + 1.5 * spread
        lower = q1 - 1.5 * spread
        mad_value = mad(amounts)

        for entry in entries:
            if entry.amount <= upper:
                continue
            if is_zero(mad_value):
                z = (entry.amount - upper) / spread + 1.5
            else:
                z = MODIFIED_Z_CONSTANT * (entry.amount - med) / mad_value
            out.append(Anomaly(
                type=AnomalyType.EXPENSE_SPIKE,
                severity=severity_from_z(z),
                metric=f"{category} Expenses",
                observed_value=entry.amount,
                expected_range=(max(0.0, lower), upper),
                z_score=z,
                description=(
                    f"{category} expense of {_money(entry.amount)} on "
                    f"{_day(to_day(entry.date))} exceeds the IQR fence of {_money(upper)}."
                ),
                recommendation=(
                    f"This {category} expense is unusually high. Verify it's correct and "
                    "consider whether a cheaper alternative exists."
                ),
                detected_at=to_day(entry.date),
            ))

    out.extend(detect_new_categories(ordered))
    out.extend(detect_frequency_spikes(ordered))
    logger.debug(f"expenses: {len(out)} anomalies over {len(expenses)} entries")
    return rank(out)


def detect_new_categories(expenses: list[ExpenseEntry]) -> list[Anomaly]:
    """
    Categories whose first entry falls within the 30 days before the
    latest expense and whose total exceeds the median expense amount.
    """
    if len(expenses) < MIN_SAMPLES:
        return []
    latest = max(to_day(e.date) for e in expenses)
    cutoff = latest - timedelta(days=NEW_CATEGORY_WINDOW_DAYS)
    overall_median = median([e.amount for e in expenses])

    out: list[Anomaly] = []
    for category, entries in _group(expenses, lambda e: e.category).items():
        first = min(to_day(e.date) for e in entries)
        if first < cutoff:
            continue
        total = sum(e.amount for e in entries)
        if total <= overall_median:
            continue
        out.append(Anomaly(
            type=AnomalyType.CATEGORY_OUTLIER,
            severity=Severity.WARNING,
            metric="New Expense Category",
            observed_value=total,
            expected_range=(0.0, overall_median),
            z_score=NEW_CATEGORY_Z,
            description=(
                f'New expense category "{category}" appeared on {_day(first)} with '
                f"{_money(total)} total across {len(entries)} entries."
            ),
            recommendation=(
                "A new expense category has appeared. If this is a recurring cost, make "
                "sure to track it for tax deductions. If unexpected, verify these charges."
            ),
            detected_at=first,
        ))
    return out


def detect_frequency_spikes(expenses: list[ExpenseEntry]) -> list[Anomaly]:
    """Weeks (Monday start) with an unusually high number of expenses."""
    counts = weekly_counts(e.date for e in expenses)
    if len(counts) < MIN_SAMPLES:
        return []
    week_totals: dict[date, float] = defaultdict(float)
    for e in expenses:
        week_totals[week_start(e.date)] += e.amount

    values = [float(c) for c in counts.values()]
    scores = modified_z_scores(values)
    med = median(values)
    _, high = _robust_band(med, mad(values), 0.0, 2.0)

    out: list[Anomaly] = []
    for (start, count), z in zip(counts.items(), scores):
        if z <= FREQUENCY_MODZ:
            continue
        out.append(Anomaly(
            type=AnomalyType.EXPENSE_SPIKE,
            severity=severity_from_z(z),
            metric="Expense Frequency",
            observed_value=float(count),
            expected_range=(1.0, high),
            z_score=z,
            description=(
                f"Week of {_day(start)}: {count} expenses totaling "
                f"{_money(week_totals[start])}. You typically have {med:.0f} expenses per week."
            ),
            recommendation=(
                "Unusually high number of expenses this week. Review them to ensure "
                "nothing is duplicated or unexpected."
            ),
            detected_at=start,
        ))
    return out


# ── Fees ────────────────────────────────────────────────────────────


def analyze_fees(entries: list[FeeEntry]) -> list[Anomaly]:
    """
    Per-platform fee rate (fees / gross) increases. Entries without a
    positive gross are skipped; fee decreases are never reported.
    """
    if len(entries) < MIN_SAMPLES:
        return []
    ordered = sorted(entries, key=lambda e: to_day(e.date))
    out: list[Anomaly] = []

    for platform, group in _group(ordered, lambda e: e.platform).items():
        rated = [(e.fees / e.gross_amount, e) for e in group if e.gross_amount > 1e-10]
        if len(rated) < MIN_SAMPLES:
            continue
        rates = [r for r, _ in rated]
        scores = modified_z_scores(rates)
        med = median(rates)
        low, high = _robust_band(med, mad(rates), 0.9, 1.1)

        for (rate, entry), z in zip(rated, scores):
            if z <= FEE_MODZ:
                continue
            d = to_day(entry.date)
            out.append(Anomaly(
                type=AnomalyType.FEE_INCREASE,
                severity=severity_from_z(z),
                metric=f"{platform} Fee Rate",
                observed_value=rate,
                expected_range=(max(0.0, low), high),
                z_score=z,
                description=(
                    f"{platform} charged {_pct(rate)} on {_day(d)}, compared to your "
                    f"typical rate of {_pct(med)}."
                ),
                recommendation=(
                    f"This {platform} fee rate is higher than your historical average. "
                    "Check if the platform changed its fee structure or if this job type "
                    "has different rates."
                ),
                detected_at=d,
            ))

    logger.debug(f"fees: {len(out)} anomalies over {len(entries)} entries")
    return rank(out)


# ── Merge ───────────────────────────────────────────────────────────


def _outranks(a: Anomaly, b: Anomaly) -> bool:
    if a.severity.rank != b.severity.rank:
        return a.severity.rank > b.severity.rank
    return abs(a.z_score) > abs(b.z_score)


def merge(anomalies: Iterable[Anomaly]) -> list[Anomaly]:
    """
    Keep one anomaly per (type, metric, calendar day), preferring the
    higher severity and then the larger |z|; return them ranked.
    """
    kept: dict[tuple[AnomalyType, str, date], Anomaly] = {}
    for a in anomalies:
        key = (a.type, a.metric, to_day(a.detected_at))
        existing = kept.get(key)
        if existing is None or _outranks(a, existing):
            kept[key] = a
    return rank(list(kept.values()))


def analyze_all(
    earnings: list[EarningsEntry],
    expenses: list[ExpenseEntry],
    fees: list[FeeEntry],
) -> list[Anomaly]:
    """Run every domain analyzer, then deduplicate and rank the union."""
    combined = analyze_earnings(earnings) + analyze_expenses(expenses) + analyze_fees(fees)
    merged = merge(combined)
    if merged:
        logger.debug(f"analyze_all: {len(combined)} raw -> {len(merged)} after dedup")
    return merged
