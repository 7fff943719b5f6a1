"""
Statistical primitives — the leaves every analyzer is built from.

Plain functions over lists of floats. Nothing here raises on short or
degenerate input: empty input yields 0.0 (or None where a result can be
genuinely absent), and divisions by a near-zero spread are guarded.

Conventions:
  - Standard deviation is the *sample* deviation (n−1) everywhere.
  - Percentiles use linear interpolation (R type 7 / PERCENTILE.INC).
  - Quartiles are Tukey's hinges.

Usage::

    from gigstats.stats import median, modified_z_scores, grubbs_test

    scores = modified_z_scores(daily_totals)
    idx = grubbs_test(daily_totals, alpha=0.05)
"""

from __future__ import annotations

import math

from .types import Severity

# Inverse of the 75th percentile of the standard normal. Converts a MAD
# into a sigma-comparable scale; every MAD-based score uses this value.
MODIFIED_Z_CONSTANT = 0.6745

# Score assigned to values off the median when MAD collapses to zero.
MODIFIED_Z_FALLBACK = 3.5

# Anything with a magnitude below this is treated as zero.
EPSILON = 1e-10

# Severity cut points on |z|.
CRITICAL_Z = 3.0
WARNING_Z = 2.0

# Abramowitz & Stegun 26.2.23 rational approximation, |error| < 4.5e-4.
_AS_C0 = 2.515517
_AS_C1 = 0.802853
_AS_C2 = 0.010328
_AS_D1 = 1.432788
_AS_D2 = 0.189269
_AS_D3 = 0.001308

# Above this many degrees of freedom the t distribution is taken as normal.
T_NORMAL_DF = 120

GRUBBS_MIN_SAMPLES = 10


def is_zero(x: float, eps: float = EPSILON) -> bool:
    return abs(x) < eps


# ── Location & spread ───────────────────────────────────────────────


def mean(values: list[float]) -> float:
    if not values:
        return 0.0
    return math.fsum(values) / len(values)


def stddev(values: list[float], ddof: int = 1) -> float:
    """
    Standard deviation. `ddof=1` (the default, used engine-wide) gives the
    sample deviation; `ddof=0` gives the population deviation.
    Returns 0.0 when there are not enough values.
    """
    n = len(values)
    if n <= ddof:
        return 0.0
    m = mean(values)
    ss = math.fsum((x - m) ** 2 for x in values)
    return math.sqrt(ss / (n - ddof))


def median(values: list[float]) -> float:
    if not values:
        return 0.0
    s = sorted(values)
    n = len(s)
    mid = n // 2
    if n % 2:
        return s[mid]
    return (s[mid - 1] + s[mid]) / 2


def quartiles(values: list[float]) -> tuple[float, float, float]:
    """
    Tukey's hinges as (Q1, median, Q3).

    The sorted series is split into a lower and upper half; with an odd
    count the median element belongs to neither half.
    """
    if not values:
        return 0.0, 0.0, 0.0
    s = sorted(values)
    n = len(s)
    med = median(s)
    half = n // 2
    lower = s[:half]
    upper = s[half + 1:] if n % 2 else s[half:]
    q1 = median(lower) if lower else med
    q3 = median(upper) if upper else med
    return q1, med, q3


def mad(values: list[float]) -> float:
    """Median absolute deviation from the median."""
    if not values:
        return 0.0
    med = median(values)
    return median([abs(x - med) for x in values])


def percentile(values: list[float], p: float) -> float:
    """
    Linear-interpolated percentile, `p` in [0, 1].

    >>> percentile([1, 2, 3, 4], 0.5)
    2.5
    """
    if not values:
        return 0.0
    s = sorted(values)
    p = min(max(p, 0.0), 1.0)
    rank = p * (len(s) - 1)
    lo = math.floor(rank)
    hi = math.ceil(rank)
    if lo == hi:
        return s[lo]
    frac = rank - lo
    return s[lo] + (s[hi] - s[lo]) * frac


def coefficient_of_variation(values: list[float]) -> float:
    """stddev / |mean|; infinite when the mean is zero."""
    m = mean(values)
    if is_zero(m):
        return math.inf
    return stddev(values) / abs(m)


# ── Z-like scores ───────────────────────────────────────────────────


def z_scores(values: list[float]) -> list[float]:
    """Plain z-scores; all zero when the series has no spread."""
    m = mean(values)
    sd = stddev(values)
    if is_zero(sd):
        return [0.0] * len(values)
    return [(x - m) / sd for x in values]


def modified_z(x: float, med: float, mad_value: float) -> float:
    """
    Modified z-score of a single value against a (median, MAD) baseline.

    When MAD is ~0 the baseline has no robust spread, so any value off the
    median scores ±MODIFIED_Z_FALLBACK and a value on it scores 0.
    """
    if is_zero(mad_value):
        diff = x - med
        if is_zero(diff):
            return 0.0
        return MODIFIED_Z_FALLBACK if diff > 0 else -MODIFIED_Z_FALLBACK
    return MODIFIED_Z_CONSTANT * (x - med) / mad_value


def modified_z_scores(values: list[float]) -> list[float]:
    med = median(values)
    spread = mad(values)
    return [modified_z(x, med, spread) for x in values]


def robust_sigma(mad_value: float) -> float:
    """MAD rescaled to a standard-deviation equivalent."""
    return mad_value / MODIFIED_Z_CONSTANT


def severity_from_z(z: float) -> Severity:
    """The single grading rule shared by every detector."""
    a = abs(z)
    if a > CRITICAL_Z:
        return Severity.CRITICAL
    if a > WARNING_Z:
        return Severity.WARNING
    return Severity.INFO


# ── Distribution quantiles ──────────────────────────────────────────


def normal_quantile(p: float) -> float:
    """
    Inverse standard normal CDF (probit) via Abramowitz & Stegun 26.2.23.

    Symmetric about p = 0.5. Returns ±inf at the boundaries.
    """
    if p <= 0.0:
        return -math.inf
    if p >= 1.0:
        return math.inf
    q = p if p < 0.5 else 1.0 - p
    t = math.sqrt(-2.0 * math.log(q))
    num = _AS_C0 + _AS_C1 * t + _AS_C2 * t * t
    den = 1.0 + _AS_D1 * t + _AS_D2 * t * t + _AS_D3 * t ** 3
    x = t - num / den
    return -x if p < 0.5 else x


def t_quantile(p: float, df: float) -> float:
    """
    Inverse Student t CDF via the Cornish-Fisher expansion around the
    normal quantile (terms through v^-3). Exact normal for df >= 120.

    Good to ~0.01 for df >= 5 in the tails used by Grubbs' test.
    """
    z = normal_quantile(p)
    if df >= T_NORMAL_DF or math.isinf(z):
        return z
    if df <= 0:
        return math.nan
    z2 = z * z
    g1 = (z2 + 1.0) * z / 4.0
    g2 = ((5.0 * z2 + 16.0) * z2 + 3.0) * z / 96.0
    g3 = (((3.0 * z2 + 19.0) * z2 + 17.0) * z2 - 15.0) * z / 384.0
    return z + g1 / df + g2 / df ** 2 + g3 / df ** 3


def grubbs_critical_value(n: int, alpha: float = 0.05) -> float:
    """Two-sided Grubbs' critical value for a sample of size n."""
    if n < 3:
        return math.inf
    t = abs(t_quantile(alpha / (2 * n), n - 2))
    t2 = t * t
    return ((n - 1) / math.sqrt(n)) * math.sqrt(t2 / (n - 2 + t2))


def grubbs_test(values: list[float], alpha: float = 0.05) -> int | None:
    """
    Index of the single most extreme value if Grubbs' test rejects it as
    an outlier at `alpha`, else None. Needs at least 10 values and a
    non-zero spread.
    """
    n = len(values)
    if n < GRUBBS_MIN_SAMPLES:
        return None
    sd = stddev(values)
    if is_zero(sd):
        return None
    m = mean(values)
    idx, max_dev = 0, -1.0
    for i, x in enumerate(values):
        dev = abs(x - m)
        if dev > max_dev:
            idx, max_dev = i, dev
    g = max_dev / sd
    if g > grubbs_critical_value(n, alpha):
        return idx
    return None
