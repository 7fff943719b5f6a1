"""
Tests for the anomaly detectors, domain analyzers and merge stage.
"""

import unittest
from datetime import date, timedelta

from gigstats import (
    Anomaly,
    AnomalyType,
    EarningsEntry,
    ExpenseEntry,
    FeeEntry,
    Severity,
    analyze_all,
    analyze_earnings,
    analyze_expenses,
    analyze_fees,
    detect_by_iqr,
    detect_by_zscore,
)
from gigstats.anomaly import merge, rank

MONDAY = date(2026, 3, 2)


def days(n, start=MONDAY):
    return [start + timedelta(days=i) for i in range(n)]


def spike_earnings():
    """14 consecutive days at $100 with day 10 at $900."""
    return [
        EarningsEntry(date=d, amount=900.0 if i == 9 else 100.0, platform="uber")
        for i, d in enumerate(days(14))
    ]


def fee_entries(rates, platform="uber"):
    return [
        FeeEntry(date=d, gross_amount=100.0, fees=round(rate * 100, 2), platform=platform)
        for d, rate in zip(days(len(rates)), rates)
    ]


def make_anomaly(severity, z, metric="Daily Earnings", day=MONDAY, type=AnomalyType.EARNINGS_SPIKE):
    return Anomaly(
        type=type,
        severity=severity,
        metric=metric,
        observed_value=1.0,
        expected_range=(0.0, 1.0),
        z_score=z,
        description="",
        recommendation="",
        detected_at=day,
    )


class TestZScoreDetector(unittest.TestCase):
    def setUp(self):
        self.values = [100.0] * 9 + [500.0]
        self.dates = days(10)
        self.labels = [f"Day {i}" for i in range(10)]

    def test_flags_spike(self):
        out = detect_by_zscore(self.values, self.labels, self.dates, "Daily Earnings")
        self.assertEqual(len(out), 1)
        a = out[0]
        self.assertEqual(a.type, AnomalyType.EARNINGS_SPIKE)
        self.assertEqual(a.severity, Severity.WARNING)
        self.assertAlmostEqual(a.z_score, 360 / 126.49110640673517, places=6)
        self.assertEqual(a.detected_at, self.dates[-1])
        self.assertIn("Day 9", a.description)

    def test_custom_types_and_threshold(self):
        out = detect_by_zscore(
            self.values, self.labels, self.dates, "Fuel",
            threshold=3.0,
            spike_type=AnomalyType.EXPENSE_SPIKE,
        )
        self.assertEqual(out, [])
        out = detect_by_zscore(
            self.values, self.labels, self.dates, "Fuel",
            spike_type=AnomalyType.EXPENSE_SPIKE,
        )
        self.assertEqual(out[0].type, AnomalyType.EXPENSE_SPIKE)

    def test_flags_drop(self):
        values = [100.0] * 9 + [-300.0]
        out = detect_by_zscore(values, self.labels, self.dates, "Daily Earnings")
        self.assertEqual(out[0].type, AnomalyType.EARNINGS_DROP)
        self.assertLess(out[0].z_score, 0)

    def test_preconditions(self):
        self.assertEqual(detect_by_zscore(self.values[:9], self.labels[:9], self.dates[:9], "m"), [])
        self.assertEqual(detect_by_zscore(self.values, self.labels[:5], self.dates, "m"), [])
        self.assertEqual(detect_by_zscore([7.0] * 10, self.labels, self.dates, "m"), [])


class TestIQRDetector(unittest.TestCase):
    def test_flags_outside_fences(self):
        values = [10, 11, 12, 13, 14, 15, 16, 17, 18, 100]
        out = detect_by_iqr(values, [str(v) for v in values], days(10), "Daily Earnings")
        self.assertEqual(len(out), 1)
        a = out[0]
        self.assertEqual(a.observed_value, 100)
        self.assertEqual(a.expected_range, (4.5, 24.5))
        self.assertAlmostEqual(a.z_score, 0.6745 * 85.5 / 2.5)
        self.assertEqual(a.severity, Severity.CRITICAL)

    def test_low_side_is_drop(self):
        values = [-100, 11, 12, 13, 14, 15, 16, 17, 18, 19]
        out = detect_by_iqr(values, [str(v) for v in values], days(10), "Daily Earnings")
        self.assertEqual(len(out), 1)
        self.assertEqual(out[0].type, AnomalyType.EARNINGS_DROP)
        self.assertLess(out[0].z_score, 0)

    def test_tight_cluster_or_short(self):
        self.assertEqual(detect_by_iqr([5.0] * 12, ["x"] * 12, days(12), "m"), [])
        self.assertEqual(detect_by_iqr([1.0] * 9, ["x"] * 9, days(9), "m"), [])


class TestAnalyzeEarnings(unittest.TestCase):
    def test_spike_scenario(self):
        out = analyze_earnings(spike_earnings())
        self.assertEqual(len(out), 1)
        a = out[0]
        self.assertEqual(a.type, AnomalyType.EARNINGS_SPIKE)
        self.assertIn(a.severity, (Severity.WARNING, Severity.CRITICAL))
        self.assertEqual(a.metric, "Daily Earnings")
        self.assertEqual(a.detected_at, MONDAY + timedelta(days=9))
        self.assertEqual(a.expected_range, (50.0, 150.0))

    def test_minimum_sample_boundary(self):
        entries = spike_earnings()
        self.assertEqual(analyze_earnings(entries[:9]), [])
        at_min = [
            EarningsEntry(date=d, amount=900.0 if i == 4 else 100.0)
            for i, d in enumerate(days(10))
        ]
        self.assertEqual(len(analyze_earnings(at_min)), 1)

    def test_counts_distinct_days(self):
        # 10 entries but only 5 calendar days
        entries = [EarningsEntry(date=d, amount=50.0) for d in days(5) for _ in range(2)]
        self.assertEqual(analyze_earnings(entries), [])

    def test_income_gap(self):
        earning_days = days(11) + [MONDAY + timedelta(days=20)]
        entries = [EarningsEntry(date=d, amount=100.0) for d in earning_days]
        out = analyze_earnings(entries)
        self.assertEqual(len(out), 1)
        gap = out[0]
        self.assertEqual(gap.type, AnomalyType.INCOME_GAP)
        self.assertEqual(gap.metric, "Earning Gap")
        self.assertEqual(gap.observed_value, 10.0)
        self.assertEqual(gap.detected_at, MONDAY + timedelta(days=20))
        self.assertEqual(gap.severity, Severity.CRITICAL)

    def test_weekday_recent_deviation(self):
        weekdays = [d for d in days(26) if d.weekday() < 5]  # 20 weekdays
        cycle = [100.0, 110.0, 120.0]
        amounts = [cycle[i % 3] for i in range(17)] + [200.0] * 3
        entries = [EarningsEntry(date=d, amount=a) for d, a in zip(weekdays, amounts)]

        out = analyze_earnings(entries)
        segment = [a for a in out if a.metric == "Weekday Earnings"]
        self.assertEqual(len(segment), 3)
        self.assertEqual({a.detected_at for a in segment}, set(weekdays[-3:]))
        for a in segment:
            self.assertEqual(a.type, AnomalyType.EARNINGS_SPIKE)
            self.assertAlmostEqual(a.z_score, 0.6745 * 90 / 10)

    def test_sorted_by_severity_then_z(self):
        weekdays = [d for d in days(26) if d.weekday() < 5]
        cycle = [100.0, 110.0, 120.0]
        amounts = [cycle[i % 3] for i in range(17)] + [200.0] * 3
        out = analyze_earnings([EarningsEntry(date=d, amount=a) for d, a in zip(weekdays, amounts)])
        keys = [(-a.severity.rank, -abs(a.z_score)) for a in out]
        self.assertEqual(keys, sorted(keys))


class TestAnalyzeExpenses(unittest.TestCase):
    def test_category_spike_upper_fence_only(self):
        amounts = [40, 42, 38, 41, 39, 40, 43, 37, 41, 40, 39, 250]
        entries = [
            ExpenseEntry(date=d, amount=a, category="Fuel")
            for d, a in zip(days(12), amounts)
        ]
        out = analyze_expenses(entries)
        spikes = [a for a in out if a.metric == "Fuel Expenses"]
        self.assertEqual(len(spikes), 1)
        self.assertEqual(spikes[0].type, AnomalyType.EXPENSE_SPIKE)
        self.assertEqual(spikes[0].observed_value, 250)
        self.assertEqual(spikes[0].expected_range[1], 41.5 + 1.5 * 2.5)
        self.assertEqual(spikes[0].severity, Severity.CRITICAL)

    def test_low_amounts_not_reported(self):
        amounts = [40, 42, 38, 41, 39, 40, 43, 37, 41, 40, 39, 1]
        entries = [
            ExpenseEntry(date=d, amount=a, category="Fuel")
            for d, a in zip(days(12), amounts)
        ]
        out = analyze_expenses(entries)
        self.assertEqual([a for a in out if a.metric == "Fuel Expenses"], [])

    def test_new_category_scenario(self):
        start = date(2026, 1, 5)
        gas = [
            ExpenseEntry(date=start + timedelta(days=6 * k), amount=50.0, category="Gas")
            for k in range(11)
        ]
        latest = gas[-1].date
        equipment = ExpenseEntry(date=latest - timedelta(days=5), amount=400.0, category="Equipment")

        out = analyze_expenses(gas + [equipment])
        self.assertEqual(len(out), 1)
        a = out[0]
        self.assertEqual(a.type, AnomalyType.CATEGORY_OUTLIER)
        self.assertEqual(a.severity, Severity.WARNING)
        self.assertEqual(a.metric, "New Expense Category")
        self.assertEqual(a.observed_value, 400.0)
        self.assertEqual(a.expected_range, (0.0, 50.0))
        self.assertEqual(a.z_score, 2.0)
        self.assertIn("Equipment", a.description)

    def test_frequency_spike(self):
        start = date(2026, 1, 5)
        entries = [
            ExpenseEntry(date=start + timedelta(weeks=k), amount=20.0, category="Food")
            for k in range(12)
        ]
        busy_week = start + timedelta(weeks=11)
        entries += [
            ExpenseEntry(date=busy_week + timedelta(days=i), amount=20.0, category="Food")
            for i in range(1, 6)
        ]
        out = analyze_expenses(entries)
        self.assertEqual(len(out), 1)
        a = out[0]
        self.assertEqual(a.metric, "Expense Frequency")
        self.assertEqual(a.type, AnomalyType.EXPENSE_SPIKE)
        self.assertEqual(a.observed_value, 6.0)
        self.assertEqual(a.detected_at, busy_week)

    def test_minimum_sample_boundary(self):
        entries = [ExpenseEntry(date=d, amount=30.0, category="Fuel") for d in days(9)]
        self.assertEqual(analyze_expenses(entries), [])

        amounts = [20.0, 22.0, 24.0, 26.0, 28.0, 30.0, 32.0, 34.0, 36.0, 200.0]
        at_min = [
            ExpenseEntry(date=d, amount=a, category="Fuel")
            for d, a in zip(days(10), amounts)
        ]
        out = analyze_expenses(at_min)
        # Short history, so Fuel is also reported as a new category
        self.assertEqual([a.metric for a in out], ["Fuel Expenses", "New Expense Category"])
        self.assertEqual(out[0].observed_value, 200.0)
        self.assertEqual(analyze_expenses(at_min[:9]), [])


class TestAnalyzeFees(unittest.TestCase):
    def test_fee_increase_scenario(self):
        entries = fee_entries([0.15] * 10 + [0.30] * 3)
        out = analyze_fees(entries)
        self.assertEqual(len(out), 3)
        self.assertEqual(
            sorted(a.detected_at for a in out),
            [e.date for e in entries[-3:]],
        )
        for a in out:
            self.assertEqual(a.type, AnomalyType.FEE_INCREASE)
            self.assertEqual(a.metric, "uber Fee Rate")
            self.assertAlmostEqual(a.observed_value, 0.30)

    def test_fee_decrease_never_reported(self):
        self.assertEqual(analyze_fees(fee_entries([0.15] * 10 + [0.05] * 3)), [])

    def test_skips_non_positive_gross(self):
        entries = fee_entries([0.15] * 8 + [0.30])
        entries += [
            FeeEntry(date=MONDAY, gross_amount=0.0, fees=5.0, platform="uber"),
            FeeEntry(date=MONDAY, gross_amount=-10.0, fees=5.0, platform="uber"),
        ]
        self.assertEqual(analyze_fees(entries), [])

    def test_platforms_are_independent(self):
        entries = fee_entries([0.15] * 10 + [0.30] * 3, platform="uber")
        entries += fee_entries([0.20] * 12, platform="lyft")
        out = analyze_fees(entries)
        self.assertEqual({a.metric for a in out}, {"uber Fee Rate"})

    def test_minimum_sample_boundary(self):
        self.assertEqual(analyze_fees(fee_entries([0.15] * 8 + [0.5])), [])
        out = analyze_fees(fee_entries([0.15] * 9 + [0.5]))
        self.assertEqual(len(out), 1)
        self.assertEqual(out[0].type, AnomalyType.FEE_INCREASE)
        self.assertAlmostEqual(out[0].observed_value, 0.5)


class TestMerge(unittest.TestCase):
    def test_keeps_higher_severity_per_key(self):
        low = make_anomaly(Severity.WARNING, 2.5)
        high = make_anomaly(Severity.CRITICAL, 3.2)
        self.assertEqual(merge([low, high]), [high])
        self.assertEqual(merge([high, low]), [high])

    def test_tie_breaks_on_abs_z(self):
        a = make_anomaly(Severity.WARNING, 2.1)
        b = make_anomaly(Severity.WARNING, -2.8)
        self.assertEqual(merge([a, b]), [b])

    def test_distinct_keys_survive(self):
        a = make_anomaly(Severity.WARNING, 2.5)
        b = make_anomaly(Severity.WARNING, 2.5, day=MONDAY + timedelta(days=1))
        c = make_anomaly(Severity.WARNING, 2.5, metric="Weekday Earnings")
        d = make_anomaly(Severity.WARNING, 2.5, type=AnomalyType.EARNINGS_DROP)
        self.assertEqual(len(merge([a, b, c, d])), 4)

    def test_rank_order(self):
        info = make_anomaly(Severity.INFO, 1.8, metric="a")
        warn = make_anomaly(Severity.WARNING, 2.2, metric="b")
        crit_small = make_anomaly(Severity.CRITICAL, 3.1, metric="c")
        crit_big = make_anomaly(Severity.CRITICAL, -9.0, metric="d")
        self.assertEqual(rank([info, crit_small, warn, crit_big]), [crit_big, crit_small, warn, info])


class TestAnalyzeAll(unittest.TestCase):
    def test_combines_all_analyzers(self):
        out = analyze_all(
            spike_earnings(),
            expenses=[],
            fees=fee_entries([0.15] * 10 + [0.30] * 3),
        )
        self.assertEqual(len(out), 4)
        types = [a.type for a in out]
        self.assertEqual(types.count(AnomalyType.FEE_INCREASE), 3)
        self.assertEqual(types.count(AnomalyType.EARNINGS_SPIKE), 1)

    def test_idempotent(self):
        earnings = spike_earnings()
        fees = fee_entries([0.15] * 10 + [0.30] * 3)
        first = analyze_all(earnings, [], fees)
        second = analyze_all(earnings, [], fees)
        self.assertEqual(first, second)
        self.assertEqual([a.to_dict() for a in first], [a.to_dict() for a in second])

    def test_empty_inputs(self):
        self.assertEqual(analyze_all([], [], []), [])


if __name__ == "__main__":
    unittest.main()
