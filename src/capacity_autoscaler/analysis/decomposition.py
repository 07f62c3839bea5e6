#!/usr/bin/env python3
"""
Additive time-series decomposition into trend, seasonal and residual parts
"""

import numpy as np

from ..models.metrics import TimeSeries
from ..models.trends import TrendComponents
from .statistics import as_array


class TimeSeriesDecomposer:
    """
    Split a series so that ``trend + seasonal + residual == original``

    The trend is a centred moving average whose window is ``min(24, n // 4)``;
    windows shrink at the edges instead of padding. The seasonal part is the
    per-phase mean of the detrended series for a fixed period, and is all zeros
    until two full periods are available.
    """

    def __init__(self, seasonal_period: int = 24, max_window: int = 24):
        self.seasonal_period = seasonal_period
        self.max_window = max_window

    def window_size(self, n: int) -> int:
        return min(self.max_window, n // 4)

    @staticmethod
    def moving_average(values: np.ndarray, window: int) -> np.ndarray:
        n = values.size
        half = window // 2
        idx = np.arange(n)
        lo = np.maximum(0, idx - half)
        hi = np.minimum(n, idx + half + 1)
        cumulative = np.concatenate(([0.0], np.cumsum(values)))
        return (cumulative[hi] - cumulative[lo]) / (hi - lo)

    def seasonal_component(self, detrended: np.ndarray) -> np.ndarray:
        n = detrended.size
        period = self.seasonal_period
        if n < period * 2:
            return np.zeros(n)

        phase = np.arange(n) % period
        sums = np.bincount(phase, weights=detrended, minlength=period)
        counts = np.bincount(phase, minlength=period)
        return (sums / counts)[phase]

    def decompose(self, series: TimeSeries) -> TrendComponents:
        values = as_array(series.values)
        trend = self.moving_average(values, self.window_size(values.size))
        detrended = values - trend
        seasonal = self.seasonal_component(detrended)
        residual = detrended - seasonal

        return TrendComponents(
            trend=tuple(trend.tolist()),
            seasonal=tuple(seasonal.tolist()),
            residual=tuple(residual.tolist()),
            original_values=tuple(values.tolist()),
            timestamps=tuple(series.timestamps),
        )
