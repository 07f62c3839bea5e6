#!/usr/bin/env python3
"""
Events module for the capacity autoscaler
"""

from .base import Event, EventType, EventHandler, CallbackHandler
from .core_events import (
    ThresholdCreated,
    ThresholdUpdated,
    ThresholdDeactivated,
    AlertCreated,
    AlertEscalated,
    AlertAcknowledged,
    AlertResolved,
    AlertSuppressed,
    ScalingDecisionMade,
    ScalingExecuted,
    ScalingFailed,
    ScalingSkipped,
    RollbackFailed,
    AnalysisStarted,
    AnalysisCompleted,
    AnalysisFailed,
    BatchAnalysisStarted,
    BatchAnalysisCompleted,
    EvaluationError,
    ScheduledAnalysisError,
    Shutdown,
    EVENT_CLASSES,
)
from .event_bus import EventBus
from .event_metrics import EventMetricsCollector, EventMetricsHandler
from .redis_sink import RedisStreamPublisher

__all__ = [
    "Event",
    "EventType",
    "EventHandler",
    "CallbackHandler",
    "ThresholdCreated",
    "ThresholdUpdated",
    "ThresholdDeactivated",
    "AlertCreated",
    "AlertEscalated",
    "AlertAcknowledged",
    "AlertResolved",
    "AlertSuppressed",
    "ScalingDecisionMade",
    "ScalingExecuted",
    "ScalingFailed",
    "ScalingSkipped",
    "RollbackFailed",
    "AnalysisStarted",
    "AnalysisCompleted",
    "AnalysisFailed",
    "BatchAnalysisStarted",
    "BatchAnalysisCompleted",
    "EvaluationError",
    "ScheduledAnalysisError",
    "Shutdown",
    "EVENT_CLASSES",
    "EventBus",
    "EventMetricsCollector",
    "EventMetricsHandler",
    "RedisStreamPublisher",
]
