#!/usr/bin/env python3
"""
Scaling decision, execution plan and outcome models
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


class ScalingAction(str, Enum):
    SCALE_UP = "scale_up"
    SCALE_DOWN = "scale_down"
    NO_ACTION = "no_action"


class ScalingOutcomeStatus(str, Enum):
    NO_ACTION = "no_action"
    SKIPPED = "skipped"
    EXECUTED = "executed"
    ROLLED_BACK = "rolled_back"


@dataclass
class ScalingStep:
    """One ordered step of an execution or rollback plan"""
    order: int
    action: str
    parameters: Dict[str, Any] = field(default_factory=dict)
    estimated_duration: float = 0.0
    dependencies: List[int] = field(default_factory=list)
    validation_checks: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "order": self.order,
            "action": self.action,
            "parameters": dict(self.parameters),
            "estimated_duration": self.estimated_duration,
            "dependencies": list(self.dependencies),
            "validation_checks": list(self.validation_checks),
        }


@dataclass
class ScalingImpact:
    current_capacity: int
    target_capacity: int
    estimated_cost: float
    performance_impact: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "current_capacity": self.current_capacity,
            "target_capacity": self.target_capacity,
            "estimated_cost": self.estimated_cost,
            "performance_impact": self.performance_impact,
        }


@dataclass
class ScalingDecision:
    """What to do for a resource, why, and how to undo it"""
    resource_id: str
    action: ScalingAction
    reasoning: str
    impact: ScalingImpact
    confidence: float
    execution_plan: List[ScalingStep] = field(default_factory=list)
    rollback_plan: List[ScalingStep] = field(default_factory=list)
    alert_id: Optional[str] = None
    threshold_id: Optional[str] = None
    id: str = field(default_factory=lambda: f"decision_{uuid.uuid4().hex[:12]}")
    decided_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "resource_id": self.resource_id,
            "alert_id": self.alert_id,
            "threshold_id": self.threshold_id,
            "action": self.action.value,
            "reasoning": self.reasoning,
            "impact": self.impact.to_dict(),
            "confidence": self.confidence,
            "execution_plan": [s.to_dict() for s in self.execution_plan],
            "rollback_plan": [s.to_dict() for s in self.rollback_plan],
            "decided_at": self.decided_at.isoformat(),
        }


@dataclass
class ScalingOutcome:
    decision: ScalingDecision
    status: ScalingOutcomeStatus
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.status is ScalingOutcomeStatus.EXECUTED
