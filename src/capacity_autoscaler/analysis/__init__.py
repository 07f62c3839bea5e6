"""
Time-series analysis for capacity trends
"""

from .decomposition import TimeSeriesDecomposer
from .seasonality import SeasonalityDetector
from .change_points import ChangePointDetector
from .forecasting import ForecastEngine
from .trend_analyzer import TrendAnalyzer

__all__ = [
    "TimeSeriesDecomposer",
    "SeasonalityDetector",
    "ChangePointDetector",
    "ForecastEngine",
    "TrendAnalyzer",
]
