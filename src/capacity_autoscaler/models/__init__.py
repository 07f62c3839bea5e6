"""
Data models for metrics, thresholds, alerts, scaling decisions and trends
"""

from .metrics import (
    CpuMetrics,
    MemoryMetrics,
    DiskMetrics,
    NetworkMetrics,
    ResourceMetrics,
    TimeSeries,
)
from .thresholds import (
    ThresholdOperator,
    ScalingDirection,
    ScalingPolicyType,
    ThresholdCondition,
    ThresholdConditions,
    ScalingPolicy,
    ScalingThreshold,
    ThresholdState,
    ThresholdEvaluation,
)
from .alerts import (
    AlertType,
    AlertSeverity,
    AlertStatus,
    AlertActionType,
    AlertCondition,
    AlertAction,
    EscalationRule,
    CapacityAlert,
)
from .scaling import (
    ScalingAction,
    ScalingOutcomeStatus,
    ScalingStep,
    ScalingImpact,
    ScalingDecision,
    ScalingOutcome,
)
from .trends import (
    TrendDirection,
    ChangePointType,
    RecommendationType,
    RecommendationPriority,
    AnomalySeverity,
    TimeRange,
    TrendComponents,
    SeasonalPattern,
    Seasonality,
    ChangePoint,
    Forecast,
    TrendStatistics,
    TrendRecommendation,
    CapacityTrend,
    AnalysisOptions,
    TrendAnalysisRequest,
    Anomaly,
)

__all__ = [
    "CpuMetrics",
    "MemoryMetrics",
    "DiskMetrics",
    "NetworkMetrics",
    "ResourceMetrics",
    "TimeSeries",
    "ThresholdOperator",
    "ScalingDirection",
    "ScalingPolicyType",
    "ThresholdCondition",
    "ThresholdConditions",
    "ScalingPolicy",
    "ScalingThreshold",
    "ThresholdState",
    "ThresholdEvaluation",
    "AlertType",
    "AlertSeverity",
    "AlertStatus",
    "AlertActionType",
    "AlertCondition",
    "AlertAction",
    "EscalationRule",
    "CapacityAlert",
    "ScalingAction",
    "ScalingOutcomeStatus",
    "ScalingStep",
    "ScalingImpact",
    "ScalingDecision",
    "ScalingOutcome",
    "TrendDirection",
    "ChangePointType",
    "RecommendationType",
    "RecommendationPriority",
    "AnomalySeverity",
    "TimeRange",
    "TrendComponents",
    "SeasonalPattern",
    "Seasonality",
    "ChangePoint",
    "Forecast",
    "TrendStatistics",
    "TrendRecommendation",
    "CapacityTrend",
    "AnalysisOptions",
    "TrendAnalysisRequest",
    "Anomaly",
]
