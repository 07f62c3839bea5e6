#!/usr/bin/env python3
"""
Linear forecast with optional seasonal modulation
"""

from typing import Optional, Sequence

import numpy as np

from ..models.metrics import TimeSeries
from ..models.trends import Forecast, SeasonalPattern
from .statistics import as_array, clamp, coefficient_of_variation, linear_slope

SHORT_TERM_STEPS = 24
MIN_HISTORY = 5
SEASONAL_STRENGTH_CUTOFF = 0.3


class ForecastEngine:
    """Project ``horizon`` steps ahead from the last value along the OLS slope"""

    def __init__(self, horizon: int = 168):
        self.horizon = horizon

    def generate(self, series: TimeSeries, seasonality: Optional[SeasonalPattern] = None) -> Forecast:
        values = as_array(series.values)
        n = values.size
        if n < MIN_HISTORY:
            return Forecast(short_term=(), long_term=(), uncertainty=1.0)

        slope = linear_slope(values)
        steps = np.arange(1, self.horizon + 1)
        projected = values[-1] + slope * steps

        if seasonality is not None and seasonality.strength > SEASONAL_STRENGTH_CUTOFF:
            phase = (n + steps - 1) % seasonality.period
            projected = projected * self.seasonal_factor(seasonality, phase)

        return Forecast(
            short_term=tuple(projected[:SHORT_TERM_STEPS].tolist()),
            long_term=tuple(projected[SHORT_TERM_STEPS:].tolist()),
            uncertainty=self.calculate_uncertainty(values),
        )

    @staticmethod
    def seasonal_factor(seasonality: SeasonalPattern, phase):
        return 1.0 + np.sin(2 * np.pi * phase / seasonality.period) * seasonality.strength * 0.1

    @staticmethod
    def calculate_uncertainty(historical: Sequence[float]) -> float:
        """Coefficient of variation of the history, clamped to [0.1, 1.0]"""
        if len(historical) < 10:
            return 0.5
        cv = coefficient_of_variation(historical)
        if cv is None:
            return 1.0
        return clamp(cv, 0.1, 1.0)
