#!/usr/bin/env python3
"""
Base event classes for the capacity autoscaler event stream
"""

import json
import uuid
from datetime import datetime, timezone
from typing import Any, ClassVar, Dict, Optional, Set, Tuple
from dataclasses import dataclass, field
from enum import Enum


class EventType(str, Enum):
    """Event names published by the capacity autoscaler"""

    # Threshold registry
    THRESHOLD_CREATED = "thresholdCreated"
    THRESHOLD_UPDATED = "thresholdUpdated"
    THRESHOLD_DEACTIVATED = "thresholdDeactivated"

    # Alert lifecycle
    ALERT_CREATED = "alertCreated"
    ALERT_ESCALATED = "alertEscalated"
    ALERT_ACKNOWLEDGED = "alertAcknowledged"
    ALERT_RESOLVED = "alertResolved"
    ALERT_SUPPRESSED = "alertSuppressed"

    # Scaling
    SCALING_DECISION_MADE = "scalingDecisionMade"
    SCALING_EXECUTED = "scalingExecuted"
    SCALING_FAILED = "scalingFailed"
    SCALING_SKIPPED = "scalingSkipped"
    ROLLBACK_FAILED = "rollbackFailed"

    # Trend analysis
    ANALYSIS_STARTED = "analysisStarted"
    ANALYSIS_COMPLETED = "analysisCompleted"
    ANALYSIS_FAILED = "analysisFailed"
    BATCH_ANALYSIS_STARTED = "batchAnalysisStarted"
    BATCH_ANALYSIS_COMPLETED = "batchAnalysisCompleted"

    # Loop errors and lifecycle
    EVALUATION_ERROR = "evaluationError"
    SCHEDULED_ANALYSIS_ERROR = "scheduledAnalysisError"
    SHUTDOWN = "shutdown"


@dataclass
class Event:
    """Base class for all capacity autoscaler events"""

    event_type: Optional[EventType] = None
    data: Dict[str, Any] = field(default_factory=dict)
    source: str = "capacity-autoscaler"
    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    metadata: Dict[str, Any] = field(default_factory=dict)

    # Payload keys every instance of the event must carry
    required_fields: ClassVar[Tuple[str, ...]] = ()

    def __post_init__(self):
        if self.event_type is None:
            raise ValueError("event_type is required")
        self.event_type = EventType(self.event_type)
        for key in self.required_fields:
            if key not in self.data:
                raise ValueError(f"{key} is required for {self.event_type.value}")

    @property
    def name(self) -> str:
        return self.event_type.value

    def to_dict(self) -> Dict[str, Any]:
        """Wire form: camelCase event name, ISO timestamp, metadata only when set"""
        payload: Dict[str, Any] = {
            "event_id": self.event_id,
            "event_type": self.name,
            "source": self.source,
            "timestamp": self.timestamp.isoformat(),
            "data": dict(self.data),
        }
        if self.metadata:
            payload["metadata"] = dict(self.metadata)
        return payload

    def to_json(self) -> str:
        # Enums and datetimes inside payloads serialise through str()
        return json.dumps(self.to_dict(), default=str)

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> 'Event':
        """Rebuild an untyped event; required payload keys are not re-checked"""
        timestamp = payload.get("timestamp")
        return Event(
            event_type=EventType(payload["event_type"]),
            data=dict(payload.get("data") or {}),
            source=payload.get("source", "capacity-autoscaler"),
            event_id=payload.get("event_id") or str(uuid.uuid4()),
            timestamp=datetime.fromisoformat(timestamp) if timestamp else datetime.now(timezone.utc),
            metadata=dict(payload.get("metadata") or {}),
        )


class EventHandler:
    """
    Receives events from the bus

    ``handle`` returning False marks the delivery as failed in the bus
    metrics without raising.
    """

    def __init__(self, name: str):
        self.name = name
        self.event_types: Set[EventType] = set()

    async def handle(self, event: Event) -> bool:
        raise NotImplementedError(f"{type(self).__name__} does not implement handle()")

    def subscribe(self, event_type: EventType):
        self.event_types.add(EventType(event_type))

    def unsubscribe(self, event_type: EventType):
        self.event_types.discard(EventType(event_type))

    def is_subscribed(self, event_type: EventType) -> bool:
        return event_type in self.event_types


class CallbackHandler(EventHandler):
    """Adapts a plain sync or async callable to the handler interface"""

    def __init__(self, name: str, callback):
        super().__init__(name)
        self.callback = callback

    async def handle(self, event: Event) -> bool:
        result = self.callback(event)
        if hasattr(result, "__await__"):
            result = await result
        return result is not False
