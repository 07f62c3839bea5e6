"""
Core capacity autoscaler modules
"""

from .scheduler import Clock, SystemClock, ManualClock, TaskScheduler, TimerHandle
from .registry import ThresholdRegistry
from .alerts import AlertManager
from .escalation import EscalationManager
from .scaling import ScalingDecisionEngine
from .evaluator import ThresholdEvaluator

__all__ = [
    "Clock",
    "SystemClock",
    "ManualClock",
    "TaskScheduler",
    "TimerHandle",
    "ThresholdRegistry",
    "AlertManager",
    "EscalationManager",
    "ScalingDecisionEngine",
    "ThresholdEvaluator",
]
