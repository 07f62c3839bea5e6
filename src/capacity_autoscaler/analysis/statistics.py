#!/usr/bin/env python3
"""
Shared numeric helpers for trend analysis and confidence scoring
"""

import math
from typing import Dict, Optional, Sequence

import numpy as np

from ..models.trends import TrendDirection, TrendStatistics

PERCENTILES = (10, 25, 50, 75, 90, 95, 99)
STABLE_SLOPE = 0.01


def as_array(values: Sequence[float]) -> np.ndarray:
    return np.asarray(values, dtype=float)


def mean(values: Sequence[float]) -> float:
    arr = as_array(values)
    return float(arr.mean()) if arr.size else 0.0


def std(values: Sequence[float]) -> float:
    """Population standard deviation"""
    arr = as_array(values)
    return float(arr.std()) if arr.size else 0.0


def linear_slope(values: Sequence[float]) -> float:
    """Ordinary least-squares slope of values against their index"""
    y = as_array(values)
    n = y.size
    if n < 2:
        return 0.0
    x = np.arange(n, dtype=float)
    x_centered = x - x.mean()
    return float(np.dot(x_centered, y - y.mean()) / np.dot(x_centered, x_centered))


def correlation(x: Sequence[float], y: Sequence[float]) -> float:
    """Pearson correlation over the common prefix; 0.0 when undefined"""
    n = min(len(x), len(y))
    if n < 2:
        return 0.0
    a = as_array(x[:n])
    b = as_array(y[:n])
    if a.std() == 0 or b.std() == 0:
        return 0.0
    value = float(np.corrcoef(a, b)[0, 1])
    return 0.0 if math.isnan(value) else value


def coefficient_of_variation(values: Sequence[float]) -> Optional[float]:
    """std / mean, or None when the mean is zero or there are no values"""
    arr = as_array(values)
    if not arr.size:
        return None
    m = float(arr.mean())
    if m == 0:
        return None
    return float(arr.std()) / m


def clamp(value: float, lower: float, upper: float) -> float:
    return max(lower, min(upper, value))


def percentile_at(sorted_values: Sequence[float], p: float) -> float:
    """Index-based percentile: sorted[floor(p/100 * (n-1))]"""
    index = int(math.floor((p / 100.0) * (len(sorted_values) - 1)))
    return float(sorted_values[index])


def describe(values: Sequence[float]) -> TrendStatistics:
    arr = as_array(values)
    if not arr.size:
        return TrendStatistics(mean=0.0, median=0.0, std_dev=0.0, min=0.0, max=0.0, percentiles={})

    ordered = np.sort(arr)
    percentiles: Dict[int, float] = {p: percentile_at(ordered, p) for p in PERCENTILES}
    return TrendStatistics(
        mean=float(arr.mean()),
        median=float(ordered[arr.size // 2]),
        std_dev=float(arr.std()),
        min=float(ordered[0]),
        max=float(ordered[-1]),
        percentiles=percentiles,
    )


def trend_direction(slope: float, stable_threshold: float = STABLE_SLOPE) -> TrendDirection:
    if abs(slope) < stable_threshold:
        return TrendDirection.STABLE
    return TrendDirection.INCREASING if slope > 0 else TrendDirection.DECREASING


def zscore_confidence(value: float, window: Sequence[float]) -> float:
    """
    Confidence that ``value`` is a genuine reading rather than a spike

    1 - |z|/3 clamped to [0.1, 1.0], where z is taken against the window's
    mean and population std. A constant window gives 1.0 when the value
    matches it and 0.1 otherwise.
    """
    arr = as_array(window)
    if not arr.size:
        return 1.0
    m = float(arr.mean())
    s = float(arr.std())
    if s == 0:
        return 1.0 if value == m else 0.1
    z = abs(value - m) / s
    return clamp(1.0 - z / 3.0, 0.1, 1.0)
