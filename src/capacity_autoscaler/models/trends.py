#!/usr/bin/env python3
"""
Trend analysis models

All result types are frozen; a CapacityTrend is an immutable snapshot of one
analysis run.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, Tuple


class TrendDirection(str, Enum):
    INCREASING = "increasing"
    DECREASING = "decreasing"
    STABLE = "stable"


class ChangePointType(str, Enum):
    INCREASE = "increase"
    DECREASE = "decrease"
    LEVEL_SHIFT = "level_shift"
    VARIANCE_CHANGE = "variance_change"


class RecommendationType(str, Enum):
    SCALE_UP = "scale_up"
    SCALE_DOWN = "scale_down"
    OPTIMIZE = "optimize"
    INVESTIGATE = "investigate"


class RecommendationPriority(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        return {"high": 3, "medium": 2, "low": 1}[self.value]


class AnomalySeverity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


@dataclass(frozen=True)
class TimeRange:
    start: datetime
    end: datetime

    @property
    def duration(self) -> float:
        return (self.end - self.start).total_seconds()


@dataclass(frozen=True)
class TrendComponents:
    """Additive decomposition: original == trend + seasonal + residual"""
    trend: Tuple[float, ...]
    seasonal: Tuple[float, ...]
    residual: Tuple[float, ...]
    original_values: Tuple[float, ...]
    timestamps: Tuple[datetime, ...] = ()


@dataclass(frozen=True)
class SeasonalPattern:
    period: int
    strength: float
    confidence: float
    peaks: Tuple[int, ...] = ()
    troughs: Tuple[int, ...] = ()


@dataclass(frozen=True)
class Seasonality:
    """Seasonality descriptor attached to a trend"""
    detected: bool = False
    period: Optional[int] = None
    strength: float = 0.0
    pattern: Optional[SeasonalPattern] = None

    @classmethod
    def from_pattern(cls, pattern: Optional[SeasonalPattern]) -> 'Seasonality':
        if pattern is None:
            return cls()
        return cls(detected=True, period=pattern.period, strength=pattern.strength, pattern=pattern)


@dataclass(frozen=True)
class ChangePoint:
    index: int
    timestamp: Optional[datetime]
    before_value: float
    after_value: float
    change_percent: float
    significance: float
    type: ChangePointType


@dataclass(frozen=True)
class Forecast:
    short_term: Tuple[float, ...] = ()
    long_term: Tuple[float, ...] = ()
    uncertainty: float = 1.0

    @property
    def values(self) -> Tuple[float, ...]:
        return self.short_term + self.long_term


@dataclass(frozen=True)
class TrendStatistics:
    mean: float
    median: float
    std_dev: float
    min: float
    max: float
    percentiles: Dict[int, float] = field(default_factory=dict)


@dataclass(frozen=True)
class TrendRecommendation:
    type: RecommendationType
    priority: RecommendationPriority
    message: str
    expected_impact: str = ""
    timeframe: str = ""
    confidence: float = 0.8


@dataclass(frozen=True)
class CapacityTrend:
    """Immutable result of one trend analysis"""
    id: str
    resource_id: str
    metric: str
    time_range: TimeRange
    direction: TrendDirection
    slope: float
    correlation: float
    seasonality: Seasonality
    statistics: TrendStatistics
    change_points: Tuple[ChangePoint, ...]
    forecast: Forecast
    recommendations: Tuple[TrendRecommendation, ...]
    data_points: int
    calculated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "resource_id": self.resource_id,
            "metric": self.metric,
            "time_range": {
                "start": self.time_range.start.isoformat(),
                "end": self.time_range.end.isoformat(),
            },
            "trend": {
                "direction": self.direction.value,
                "slope": self.slope,
                "correlation": self.correlation,
                "seasonality": {
                    "detected": self.seasonality.detected,
                    "period": self.seasonality.period,
                    "strength": self.seasonality.strength,
                },
            },
            "statistics": {
                "mean": self.statistics.mean,
                "median": self.statistics.median,
                "std_dev": self.statistics.std_dev,
                "min": self.statistics.min,
                "max": self.statistics.max,
                "percentiles": dict(self.statistics.percentiles),
            },
            "change_points": [
                {
                    "index": cp.index,
                    "timestamp": cp.timestamp.isoformat() if cp.timestamp else None,
                    "before_value": cp.before_value,
                    "after_value": cp.after_value,
                    "change_percent": cp.change_percent,
                    "significance": cp.significance,
                    "type": cp.type.value,
                }
                for cp in self.change_points
            ],
            "forecast": {
                "short_term": list(self.forecast.short_term),
                "long_term": list(self.forecast.long_term),
                "uncertainty": self.forecast.uncertainty,
            },
            "recommendations": [
                {"type": r.type.value, "priority": r.priority.value, "message": r.message}
                for r in self.recommendations
            ],
            "data_points": self.data_points,
            "calculated_at": self.calculated_at.isoformat(),
        }


@dataclass
class AnalysisOptions:
    include_seasonality: bool = True
    include_change_points: bool = True
    include_forecast: bool = True


@dataclass
class TrendAnalysisRequest:
    resource_id: str
    metric: str
    start: datetime
    end: datetime
    options: AnalysisOptions = field(default_factory=AnalysisOptions)

    @property
    def time_range(self) -> TimeRange:
        return TimeRange(self.start, self.end)


@dataclass(frozen=True)
class Anomaly:
    """A sample more than two standard deviations from the window mean"""
    index: int
    timestamp: Optional[datetime]
    value: float
    expected_value: float
    deviation: float
    severity: AnomalySeverity
    type: str = "outlier"
