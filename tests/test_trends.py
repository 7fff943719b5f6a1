"""
Tests for change-point detection, momentum, correlation and seasonality.
"""

import unittest
from datetime import date, timedelta

from gigstats import EarningsEntry, ExpenseEntry, change_points, momentum
from gigstats.trends import (
    decompose_seasonal,
    detect_change_points,
    earnings_expense_correlation,
    pearson_correlation,
    seasonal_factors,
    welch_t_statistic,
)

MONDAY = date(2026, 3, 2)


def step_series():
    """20 days around 11, then 20 days around 31."""
    low = [10.0 if i % 2 == 0 else 12.0 for i in range(20)]
    high = [30.0 if i % 2 == 0 else 32.0 for i in range(20)]
    return low + high


class TestWelch(unittest.TestCase):
    def test_degenerate(self):
        self.assertEqual(welch_t_statistic([1.0], [1.0, 2.0]), 0.0)
        self.assertEqual(welch_t_statistic([5.0, 5.0, 5.0], [7.0, 7.0]), 0.0)

    def test_sign(self):
        t = welch_t_statistic([1.0, 2.0, 3.0], [11.0, 12.0, 13.0])
        self.assertLess(t, 0)
        # (2 − 12) / sqrt(1/3 + 1/3)
        self.assertAlmostEqual(t, -10 / (2 / 3) ** 0.5)


class TestChangePoints(unittest.TestCase):
    def test_detects_level_shift(self):
        self.assertEqual(detect_change_points(step_series()), [20])

    def test_stationary_series(self):
        values = [10.0 if i % 2 == 0 else 12.0 for i in range(40)]
        self.assertEqual(detect_change_points(values), [])

    def test_short_series(self):
        self.assertEqual(detect_change_points([1.0] * 10 + [50.0] * 3), [])

    def test_change_points_from_entries(self):
        entries = [
            EarningsEntry(date=MONDAY + timedelta(days=i), amount=v)
            for i, v in enumerate(step_series())
        ]
        found = change_points(entries)
        self.assertEqual(len(found), 1)
        cp = found[0]
        self.assertEqual(cp.date, MONDAY + timedelta(days=20))
        self.assertAlmostEqual(cp.before_avg, 11.0)
        self.assertAlmostEqual(cp.after_avg, 31.0)
        self.assertAlmostEqual(cp.percent_change, 20 / 11 * 100)
        self.assertTrue(cp.description.startswith("Earnings jumped 182%"))


class TestMomentum(unittest.TestCase):
    def test_needs_long_window(self):
        self.assertEqual(momentum([100.0] * 29), 0.0)

    def test_flat_and_zero(self):
        self.assertAlmostEqual(momentum([100.0] * 40), 0.0)
        self.assertEqual(momentum([0.0] * 40), 0.0)

    def test_direction(self):
        self.assertGreater(momentum([float(i) for i in range(1, 41)]), 0)
        self.assertLess(momentum([float(i) for i in range(40, 0, -1)]), 0)


class TestCorrelation(unittest.TestCase):
    def test_perfect(self):
        self.assertAlmostEqual(pearson_correlation([1, 2, 3, 4], [2, 4, 6, 8]), 1.0)
        self.assertAlmostEqual(pearson_correlation([1, 2, 3, 4], [8, 6, 4, 2]), -1.0)

    def test_common_prefix(self):
        self.assertAlmostEqual(pearson_correlation([1, 2, 3], [1, 2, 3, 100, -5]), 1.0)

    def test_undefined(self):
        self.assertIsNone(pearson_correlation([1, 2], [1, 2]))
        self.assertIsNone(pearson_correlation([1, 2, 3], [5, 5, 5]))


class TestSeasonalFactors(unittest.TestCase):
    def test_weekend_pattern(self):
        days = [MONDAY + timedelta(days=i) for i in range(14)]
        values = [200.0 if d.weekday() >= 5 else 100.0 for d in days]
        overall = (10 * 100.0 + 4 * 200.0) / 14
        factors = seasonal_factors(days, values)
        self.assertAlmostEqual(factors[0], 100.0 / overall)
        self.assertAlmostEqual(factors[6], 200.0 / overall)

    def test_zero_series_is_uniform(self):
        days = [MONDAY + timedelta(days=i) for i in range(7)]
        self.assertEqual(seasonal_factors(days, [0.0] * 7), {wd: 1.0 for wd in range(7)})

    def test_missing_weekday_defaults_to_one(self):
        days = [MONDAY, MONDAY + timedelta(days=1)]
        factors = seasonal_factors(days, [10.0, 30.0])
        self.assertEqual(factors[4], 1.0)
        self.assertAlmostEqual(factors[0], 0.5)


class TestEarningsExpenseCorrelation(unittest.TestCase):
    def test_aligned_on_overlapping_days(self):
        earnings = [EarningsEntry(date=MONDAY + timedelta(days=i), amount=100.0 + 10 * i) for i in range(14)]
        # Expenses start two days later; only the shared days count
        expenses = [
            ExpenseEntry(date=MONDAY + timedelta(days=i), amount=20.0 + 2 * i, category="Fuel")
            for i in range(2, 20)
        ]
        self.assertAlmostEqual(earnings_expense_correlation(earnings, expenses), 1.0)

    def test_gap_days_count_as_zero(self):
        earnings = [EarningsEntry(date=MONDAY + timedelta(days=i), amount=100.0) for i in (0, 2, 4, 6)]
        expenses = [ExpenseEntry(date=MONDAY + timedelta(days=i), amount=10.0) for i in (0, 2, 4, 6)]
        self.assertAlmostEqual(earnings_expense_correlation(earnings, expenses), 1.0)

    def test_undefined(self):
        earnings = [EarningsEntry(date=MONDAY + timedelta(days=i), amount=100.0 + i) for i in range(5)]
        later = [ExpenseEntry(date=MONDAY + timedelta(days=30 + i), amount=10.0 + i) for i in range(5)]
        self.assertIsNone(earnings_expense_correlation(earnings, later))
        self.assertIsNone(earnings_expense_correlation(earnings, []))
        self.assertIsNone(earnings_expense_correlation([], []))


class TestDecomposeSeasonal(unittest.TestCase):
    def test_pure_weekly_pattern(self):
        pattern = [100.0, 100.0, 100.0, 100.0, 100.0, 200.0, 200.0]
        values = pattern * 4
        result = decompose_seasonal(values)
        for t in result.trend:
            self.assertAlmostEqual(t, 900.0 / 7)
        for s, v in zip(result.seasonal, values):
            self.assertAlmostEqual(s, v - 900.0 / 7)
        for r in result.residual:
            self.assertAlmostEqual(r, 0.0)
        self.assertAlmostEqual(result.seasonal_strength, 1.0)
        self.assertAlmostEqual(sum(result.seasonal[:7]), 0.0)

    def test_components_add_up(self):
        values = [float((i * 37) % 11 + i) for i in range(20)]
        result = decompose_seasonal(values)
        self.assertEqual(len(result.trend), 20)
        for y, t, s, r in zip(values, result.trend, result.seasonal, result.residual):
            self.assertAlmostEqual(t + s + r, y)
        self.assertGreaterEqual(result.seasonal_strength, 0.0)
        self.assertLessEqual(result.seasonal_strength, 1.0)

    def test_flat_and_short_series(self):
        flat = decompose_seasonal([50.0] * 14)
        self.assertEqual(flat.seasonal_strength, 0.0)
        self.assertEqual(decompose_seasonal([]).trend, ())
        short = decompose_seasonal([1.0, 2.0, 3.0])
        self.assertEqual(short.trend, (1.0, 2.0, 3.0))
        self.assertEqual(short.seasonal_strength, 0.0)


if __name__ == "__main__":
    unittest.main()
