#!/usr/bin/env python3
"""
Typed events with their required payload keys
"""

from dataclasses import dataclass
from typing import ClassVar, Dict, Tuple, Type

from .base import Event, EventType


@dataclass
class ThresholdCreated(Event):
    event_type: EventType = EventType.THRESHOLD_CREATED
    required_fields: ClassVar[Tuple[str, ...]] = ("thresholdId", "resourceId")


@dataclass
class ThresholdUpdated(Event):
    event_type: EventType = EventType.THRESHOLD_UPDATED
    required_fields: ClassVar[Tuple[str, ...]] = ("thresholdId", "changes")


@dataclass
class ThresholdDeactivated(Event):
    event_type: EventType = EventType.THRESHOLD_DEACTIVATED
    required_fields: ClassVar[Tuple[str, ...]] = ("thresholdId", "resourceId")


@dataclass
class AlertCreated(Event):
    """Raised once per sustained violation that passes the cooldown gate"""
    event_type: EventType = EventType.ALERT_CREATED
    required_fields: ClassVar[Tuple[str, ...]] = ("alertId", "resourceId", "severity")


@dataclass
class AlertEscalated(Event):
    event_type: EventType = EventType.ALERT_ESCALATED
    required_fields: ClassVar[Tuple[str, ...]] = ("alertId", "escalationLevel")


@dataclass
class AlertAcknowledged(Event):
    event_type: EventType = EventType.ALERT_ACKNOWLEDGED
    required_fields: ClassVar[Tuple[str, ...]] = ("alertId", "userId")


@dataclass
class AlertResolved(Event):
    event_type: EventType = EventType.ALERT_RESOLVED
    required_fields: ClassVar[Tuple[str, ...]] = ("alertId", "resolution")


@dataclass
class AlertSuppressed(Event):
    event_type: EventType = EventType.ALERT_SUPPRESSED
    required_fields: ClassVar[Tuple[str, ...]] = ("alertId", "duration")


@dataclass
class ScalingDecisionMade(Event):
    event_type: EventType = EventType.SCALING_DECISION_MADE
    required_fields: ClassVar[Tuple[str, ...]] = ("resourceId", "action", "confidence")


@dataclass
class ScalingExecuted(Event):
    event_type: EventType = EventType.SCALING_EXECUTED
    required_fields: ClassVar[Tuple[str, ...]] = ("resourceId", "action", "targetCapacity")


@dataclass
class ScalingFailed(Event):
    event_type: EventType = EventType.SCALING_FAILED
    required_fields: ClassVar[Tuple[str, ...]] = ("resourceId", "action", "error")


@dataclass
class ScalingSkipped(Event):
    """Decision confidence was below the execution minimum"""
    event_type: EventType = EventType.SCALING_SKIPPED
    required_fields: ClassVar[Tuple[str, ...]] = ("resourceId", "reason", "confidence")


@dataclass
class RollbackFailed(Event):
    event_type: EventType = EventType.ROLLBACK_FAILED
    required_fields: ClassVar[Tuple[str, ...]] = ("resourceId", "error")


@dataclass
class AnalysisStarted(Event):
    event_type: EventType = EventType.ANALYSIS_STARTED
    required_fields: ClassVar[Tuple[str, ...]] = ("trendId", "resourceId", "metric")


@dataclass
class AnalysisCompleted(Event):
    event_type: EventType = EventType.ANALYSIS_COMPLETED
    required_fields: ClassVar[Tuple[str, ...]] = ("trendId", "resourceId", "metric", "analysisTime", "dataPoints")


@dataclass
class AnalysisFailed(Event):
    event_type: EventType = EventType.ANALYSIS_FAILED
    required_fields: ClassVar[Tuple[str, ...]] = ("trendId", "resourceId", "metric", "error")


@dataclass
class BatchAnalysisStarted(Event):
    event_type: EventType = EventType.BATCH_ANALYSIS_STARTED
    required_fields: ClassVar[Tuple[str, ...]] = ("batchId", "requests")


@dataclass
class BatchAnalysisCompleted(Event):
    event_type: EventType = EventType.BATCH_ANALYSIS_COMPLETED
    required_fields: ClassVar[Tuple[str, ...]] = ("batchId", "results", "failures")


@dataclass
class EvaluationError(Event):
    event_type: EventType = EventType.EVALUATION_ERROR
    required_fields: ClassVar[Tuple[str, ...]] = ("error",)


@dataclass
class ScheduledAnalysisError(Event):
    event_type: EventType = EventType.SCHEDULED_ANALYSIS_ERROR
    required_fields: ClassVar[Tuple[str, ...]] = ("error",)


@dataclass
class Shutdown(Event):
    event_type: EventType = EventType.SHUTDOWN
    required_fields: ClassVar[Tuple[str, ...]] = ("component",)


EVENT_CLASSES: Dict[EventType, Type[Event]] = {
    cls.event_type: cls
    for cls in (
        ThresholdCreated, ThresholdUpdated, ThresholdDeactivated,
        AlertCreated, AlertEscalated, AlertAcknowledged, AlertResolved, AlertSuppressed,
        ScalingDecisionMade, ScalingExecuted, ScalingFailed, ScalingSkipped, RollbackFailed,
        AnalysisStarted, AnalysisCompleted, AnalysisFailed,
        BatchAnalysisStarted, BatchAnalysisCompleted,
        EvaluationError, ScheduledAnalysisError, Shutdown,
    )
}
