#!/usr/bin/env python3
"""
Capacity alert models and escalation rules
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from .thresholds import ScalingDirection, ThresholdOperator


class AlertType(str, Enum):
    THRESHOLD_BREACH = "threshold_breach"
    UNDERUTILIZATION = "underutilization"


class AlertSeverity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class AlertStatus(str, Enum):
    """Alert lifecycle; only ACTIVE alerts escalate or block new alerts"""
    ACTIVE = "active"
    ACKNOWLEDGED = "acknowledged"
    RESOLVED = "resolved"
    SUPPRESSED = "suppressed"


class AlertActionType(str, Enum):
    EMAIL = "email"
    SLACK = "slack"
    PAGERDUTY = "pagerduty"
    WEBHOOK = "webhook"
    LOG = "log"
    AUTO_SCALE = "auto_scale"


@dataclass
class AlertCondition:
    """The threshold condition that produced an alert"""
    metric: str
    operator: ThresholdOperator
    threshold_value: float
    current_value: float
    duration: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "metric": self.metric,
            "operator": self.operator.value,
            "threshold_value": self.threshold_value,
            "current_value": self.current_value,
            "duration": self.duration,
        }


@dataclass
class AlertAction:
    type: AlertActionType
    configuration: Dict[str, Any] = field(default_factory=dict)
    order: int = 1

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type.value, "configuration": dict(self.configuration), "order": self.order}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'AlertAction':
        return cls(
            type=AlertActionType(data["type"]),
            configuration=dict(data.get("configuration") or {}),
            order=int(data.get("order", 1)),
        )


@dataclass
class EscalationRule:
    """Raise an alert to ``escalation_level`` after ``delay`` seconds and run ``actions``"""
    escalation_level: int
    delay: float
    actions: List[AlertAction] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'EscalationRule':
        return cls(
            escalation_level=int(data["escalation_level"]),
            delay=float(data.get("delay", 0.0)),
            actions=[AlertAction.from_dict(a) for a in data.get("actions", [])],
        )


@dataclass
class CapacityAlert:
    """An alert raised when a threshold stays violated for its required duration"""
    resource_id: str
    threshold_id: str
    type: AlertType
    severity: AlertSeverity
    title: str
    description: str
    direction: ScalingDirection
    conditions: List[AlertCondition]
    triggered_at: datetime
    actions: List[AlertAction] = field(default_factory=list)
    status: AlertStatus = AlertStatus.ACTIVE
    escalation_level: int = 0
    id: str = field(default_factory=lambda: f"alert_{uuid.uuid4().hex[:12]}")
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    acknowledged_at: Optional[datetime] = None
    acknowledged_by: Optional[str] = None
    resolved_at: Optional[datetime] = None
    resolution: Optional[str] = None
    suppressed_until: Optional[datetime] = None

    @property
    def is_active(self) -> bool:
        return self.status is AlertStatus.ACTIVE

    @property
    def metric(self) -> str:
        return self.conditions[0].metric if self.conditions else ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "resource_id": self.resource_id,
            "threshold_id": self.threshold_id,
            "type": self.type.value,
            "severity": self.severity.value,
            "title": self.title,
            "description": self.description,
            "direction": self.direction.value,
            "conditions": [c.to_dict() for c in self.conditions],
            "actions": [a.to_dict() for a in self.actions],
            "status": self.status.value,
            "escalation_level": self.escalation_level,
            "created_at": self.created_at.isoformat(),
            "triggered_at": self.triggered_at.isoformat(),
            "acknowledged_at": self.acknowledged_at.isoformat() if self.acknowledged_at else None,
            "acknowledged_by": self.acknowledged_by,
            "resolved_at": self.resolved_at.isoformat() if self.resolved_at else None,
            "resolution": self.resolution,
            "suppressed_until": self.suppressed_until.isoformat() if self.suppressed_until else None,
        }
