#!/usr/bin/env python3
"""
Seasonality detection over hourly, weekly and monthly candidate periods
"""

import logging
from typing import Optional, Sequence

import numpy as np

from ..models.metrics import TimeSeries
from ..models.trends import SeasonalPattern
from .statistics import as_array

logger = logging.getLogger(__name__)

# Daily, weekly and 30-day cycles for hourly samples
CANDIDATE_PERIODS = (24, 168, 720)


class SeasonalityDetector:
    """Pick the strongest candidate period whose strength exceeds a threshold"""

    def __init__(self, threshold: float = 0.1, periods: Sequence[int] = CANDIDATE_PERIODS, min_points: int = 48):
        self.threshold = threshold
        self.periods = tuple(sorted(periods))
        self.min_points = min_points

    def detect(self, series: TimeSeries) -> Optional[SeasonalPattern]:
        values = as_array(series.values)
        if values.size < self.min_points:
            return None

        best: Optional[SeasonalPattern] = None
        for period in self.periods:
            if values.size < period * 2:
                continue

            pattern = self.analyze_pattern(values, period)
            # Strict comparison keeps the shorter period on ties
            if pattern.strength > self.threshold and (best is None or pattern.strength > best.strength):
                best = pattern

        if best is not None:
            logger.debug(f"Detected seasonality with period {best.period} (strength {best.strength:.3f})")
        return best

    @staticmethod
    def analyze_pattern(values: np.ndarray, period: int) -> SeasonalPattern:
        phase = np.arange(values.size) % period
        sums = np.bincount(phase, weights=values, minlength=period)
        counts = np.bincount(phase, minlength=period)
        averages = np.divide(sums, counts, out=np.zeros(period), where=counts > 0)

        avg_mean = float(averages.mean())
        avg_std = float(averages.std())
        strength = min(1.0, avg_std / avg_mean) if avg_mean != 0 else 0.0

        cycles = values.size // period
        return SeasonalPattern(
            period=period,
            strength=strength,
            confidence=0.8 if cycles >= 2 else 0.5,
            peaks=tuple(int(i) for i in np.flatnonzero(averages > avg_mean + avg_std)),
            troughs=tuple(int(i) for i in np.flatnonzero(averages < avg_mean - avg_std)),
        )
