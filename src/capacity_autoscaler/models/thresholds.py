#!/usr/bin/env python3
"""
Threshold definitions, per-threshold trigger state and evaluation results
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ThresholdOperator(str, Enum):
    """Comparison applied between an observed value and a threshold value"""
    GREATER_THAN = ">"
    GREATER_THAN_OR_EQUAL = ">="
    LESS_THAN = "<"
    LESS_THAN_OR_EQUAL = "<="
    EQUAL = "=="
    NOT_EQUAL = "!="

    def compare(self, value: float, threshold: float) -> bool:
        if self is ThresholdOperator.GREATER_THAN:
            return value > threshold
        elif self is ThresholdOperator.GREATER_THAN_OR_EQUAL:
            return value >= threshold
        elif self is ThresholdOperator.LESS_THAN:
            return value < threshold
        elif self is ThresholdOperator.LESS_THAN_OR_EQUAL:
            return value <= threshold
        elif self is ThresholdOperator.EQUAL:
            return value == threshold
        return value != threshold


class ScalingDirection(str, Enum):
    SCALE_UP = "scale_up"
    SCALE_DOWN = "scale_down"


class ScalingPolicyType(str, Enum):
    HORIZONTAL = "horizontal"
    VERTICAL = "vertical"
    HYBRID = "hybrid"


@dataclass
class ThresholdCondition:
    """One side of a threshold: value, operator, required duration and cooldown (seconds)"""
    value: float
    operator: ThresholdOperator
    duration: float = 300.0
    cooldown: float = 900.0

    def is_met(self, observed: float) -> bool:
        return self.operator.compare(observed, self.value)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "value": self.value,
            "operator": self.operator.value,
            "duration": self.duration,
            "cooldown": self.cooldown,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ThresholdCondition':
        return cls(
            value=float(data["value"]),
            operator=ThresholdOperator(data.get("operator", ">")),
            duration=float(data.get("duration", 300.0)),
            cooldown=float(data.get("cooldown", 900.0)),
        )


def default_scale_up() -> ThresholdCondition:
    return ThresholdCondition(80.0, ThresholdOperator.GREATER_THAN, duration=300.0, cooldown=900.0)


def default_scale_down() -> ThresholdCondition:
    return ThresholdCondition(30.0, ThresholdOperator.LESS_THAN, duration=600.0, cooldown=600.0)


@dataclass
class ThresholdConditions:
    scale_up: ThresholdCondition = field(default_factory=default_scale_up)
    scale_down: ThresholdCondition = field(default_factory=default_scale_down)

    def for_direction(self, direction: ScalingDirection) -> ThresholdCondition:
        return self.scale_up if direction is ScalingDirection.SCALE_UP else self.scale_down

    def to_dict(self) -> Dict[str, Any]:
        return {"scale_up": self.scale_up.to_dict(), "scale_down": self.scale_down.to_dict()}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ThresholdConditions':
        scale_up = data.get("scale_up")
        scale_down = data.get("scale_down")
        return cls(
            scale_up=ThresholdCondition.from_dict(scale_up) if scale_up else default_scale_up(),
            scale_down=ThresholdCondition.from_dict(scale_down) if scale_down else default_scale_down(),
        )


@dataclass
class ScalingPolicy:
    """Capacity bounds and step sizes applied when a threshold triggers"""
    type: ScalingPolicyType = ScalingPolicyType.HORIZONTAL
    min_instances: int = 1
    max_instances: int = 10
    scale_up_by: int = 1
    scale_down_by: int = 1
    scale_up_cooldown: float = 900.0
    scale_down_cooldown: float = 600.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type.value,
            "min_instances": self.min_instances,
            "max_instances": self.max_instances,
            "scale_up_by": self.scale_up_by,
            "scale_down_by": self.scale_down_by,
            "scale_up_cooldown": self.scale_up_cooldown,
            "scale_down_cooldown": self.scale_down_cooldown,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ScalingPolicy':
        return cls(
            type=ScalingPolicyType(data.get("type", "horizontal")),
            min_instances=int(data.get("min_instances", 1)),
            max_instances=int(data.get("max_instances", 10)),
            scale_up_by=int(data.get("scale_up_by", 1)),
            scale_down_by=int(data.get("scale_down_by", 1)),
            scale_up_cooldown=float(data.get("scale_up_cooldown", 900.0)),
            scale_down_cooldown=float(data.get("scale_down_cooldown", 600.0)),
        )


@dataclass
class ScalingThreshold:
    """A monitored metric for one resource with its scale-up/scale-down rules"""
    resource_id: str
    metric: str
    resource_type: str = "server"
    thresholds: ThresholdConditions = field(default_factory=ThresholdConditions)
    scaling_policy: ScalingPolicy = field(default_factory=ScalingPolicy)
    is_active: bool = True
    id: str = field(default_factory=lambda: f"threshold_{uuid.uuid4().hex[:12]}")
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "resource_id": self.resource_id,
            "resource_type": self.resource_type,
            "metric": self.metric,
            "thresholds": self.thresholds.to_dict(),
            "scaling_policy": self.scaling_policy.to_dict(),
            "is_active": self.is_active,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }


@dataclass
class ThresholdState:
    """Sustained-trigger bookkeeping for one threshold"""
    threshold_id: str
    scale_up_start_time: Optional[datetime] = None
    scale_down_start_time: Optional[datetime] = None
    last_evaluation: Optional[datetime] = None
    consecutive_violations: int = 0
    fired: bool = False

    @property
    def is_violating(self) -> bool:
        return self.scale_up_start_time is not None or self.scale_down_start_time is not None

    def reset(self):
        self.scale_up_start_time = None
        self.scale_down_start_time = None
        self.consecutive_violations = 0
        self.fired = False


@dataclass
class ThresholdEvaluation:
    """Result of evaluating one threshold against the latest sample"""
    threshold_id: str
    resource_id: str
    metric: str
    current_value: float
    threshold_value: float
    operator: ThresholdOperator
    direction: Optional[ScalingDirection]
    is_triggered: bool
    duration: float
    confidence: float
    evaluated_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "threshold_id": self.threshold_id,
            "resource_id": self.resource_id,
            "metric": self.metric,
            "current_value": self.current_value,
            "threshold_value": self.threshold_value,
            "operator": self.operator.value,
            "direction": self.direction.value if self.direction else None,
            "is_triggered": self.is_triggered,
            "duration": self.duration,
            "confidence": self.confidence,
            "evaluated_at": self.evaluated_at.isoformat(),
        }
