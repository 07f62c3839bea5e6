#!/usr/bin/env python3
"""
Scaling engine module for turning capacity alerts into scaling decisions
"""

import logging
from typing import List, Optional, Sequence

from ..analysis.statistics import clamp, coefficient_of_variation
from ..config.settings import ScalingSettings
from ..events.core_events import (
    RollbackFailed,
    ScalingDecisionMade,
    ScalingExecuted,
    ScalingFailed,
    ScalingSkipped,
)
from ..events.event_bus import EventBus
from ..models.alerts import CapacityAlert
from ..models.metrics import ResourceMetrics
from ..models.scaling import (
    ScalingAction,
    ScalingDecision,
    ScalingImpact,
    ScalingOutcome,
    ScalingOutcomeStatus,
    ScalingStep,
)
from ..models.thresholds import ScalingDirection, ScalingPolicy, ScalingThreshold
from .exceptions import RollbackFailedError
from .interfaces import CapacityProvider, DryRunScalingExecutor, ScalingExecutor
from .scheduler import Clock, SystemClock

logger = logging.getLogger(__name__)

# Hourly cost of one instance, used for a rough monthly estimate
INSTANCE_HOURLY_COST = 0.15


def calculate_trend_score(values: Sequence[float]) -> float:
    """Fraction of consecutive pairs that increase"""
    if len(values) < 2:
        return 0.5
    increases = sum(1 for prev, cur in zip(values, values[1:]) if cur > prev)
    return increases / (len(values) - 1)


def calculate_stability(values: Sequence[float]) -> float:
    """1 - coefficient of variation, clamped to [0.1, 1.0]"""
    if len(values) < 2:
        return 0.5
    cv = coefficient_of_variation(values)
    if cv is None:
        return 0.1
    return clamp(1.0 - cv, 0.1, 1.0)


class ScalingDecisionEngine:
    """Makes and executes scaling decisions for capacity alerts"""

    def __init__(
        self,
        executor: Optional[ScalingExecutor] = None,
        event_bus: Optional[EventBus] = None,
        capacity_provider: Optional[CapacityProvider] = None,
        settings: Optional[ScalingSettings] = None,
        clock: Optional[Clock] = None,
    ):
        """
        Initialize scaling engine

        Args:
            executor: Actuator applying decisions; dry run when omitted
            event_bus: Bus receiving scaling events
            capacity_provider: Source of current instance counts
            settings: Confidence window and execution minimum
            clock: Time source for decision timestamps
        """
        self.executor = executor or DryRunScalingExecutor()
        self.event_bus = event_bus or EventBus()
        self.capacity_provider = capacity_provider
        self.settings = settings or ScalingSettings()
        self.clock = clock or SystemClock()

    async def decide(
        self,
        alert: CapacityAlert,
        threshold: ScalingThreshold,
        recent_metrics: Sequence[ResourceMetrics],
        current_capacity: Optional[int] = None,
    ) -> ScalingDecision:
        """
        Build a scaling decision for an alert

        Args:
            alert: The alert that triggered the decision; its direction picks scale up or down
            threshold: Threshold whose scaling policy bounds the target
            recent_metrics: Recent samples of the resource used for confidence scoring
            current_capacity: Known instance count; looked up when omitted

        Returns:
            ScalingDecision with execution and rollback plans
        """
        policy = threshold.scaling_policy
        if current_capacity is None:
            current_capacity = await self._current_capacity(alert.resource_id, policy)

        target_capacity = self.calculate_target_capacity(alert.direction, policy, current_capacity)
        action = self.determine_action(current_capacity, target_capacity)

        values = self._recent_values(recent_metrics, threshold.metric)
        confidence = self.calculate_confidence(values)

        decision = ScalingDecision(
            resource_id=alert.resource_id,
            alert_id=alert.id,
            threshold_id=threshold.id,
            action=action,
            reasoning=self._reasoning(alert, threshold, action, current_capacity, target_capacity),
            impact=ScalingImpact(
                current_capacity=current_capacity,
                target_capacity=target_capacity,
                estimated_cost=self.estimate_cost(current_capacity, target_capacity),
                performance_impact=self.estimate_performance_impact(action, current_capacity, target_capacity),
            ),
            confidence=confidence,
            execution_plan=self.build_execution_plan(action, current_capacity, target_capacity),
            rollback_plan=self.build_rollback_plan(action, current_capacity),
            decided_at=self.clock.now(),
        )

        logger.info(
            f"Scaling decision for {decision.resource_id}: {action.value} "
            f"{current_capacity} -> {target_capacity} (confidence {confidence:.2f})"
        )
        await self.event_bus.emit(
            ScalingDecisionMade, "scaling_engine",
            resourceId=decision.resource_id,
            action=action.value,
            confidence=confidence,
        )
        return decision

    async def execute(self, decision: ScalingDecision) -> ScalingOutcome:
        """
        Execute a decision, rolling back once on failure

        Raises:
            RollbackFailedError: both the execution and its rollback failed
        """
        if decision.action is ScalingAction.NO_ACTION:
            logger.info(f"No scaling needed for {decision.resource_id}")
            return ScalingOutcome(decision, ScalingOutcomeStatus.NO_ACTION)

        if decision.confidence < self.settings.min_confidence:
            logger.info(
                f"Skipping {decision.action.value} for {decision.resource_id}: "
                f"confidence {decision.confidence:.2f} below {self.settings.min_confidence}"
            )
            await self.event_bus.emit(
                ScalingSkipped, "scaling_engine",
                resourceId=decision.resource_id,
                reason="Low confidence",
                confidence=decision.confidence,
            )
            return ScalingOutcome(decision, ScalingOutcomeStatus.SKIPPED)

        try:
            await self.executor.execute(decision)
        except Exception as e:
            logger.error(f"Scaling {decision.action.value} failed for {decision.resource_id}: {e}")
            await self.event_bus.emit(
                ScalingFailed, "scaling_engine",
                resourceId=decision.resource_id,
                action=decision.action.value,
                error=str(e),
            )
            await self._rollback(decision, e)
            return ScalingOutcome(decision, ScalingOutcomeStatus.ROLLED_BACK, error=str(e))

        logger.info(f"Executed {decision.action.value} for {decision.resource_id}")
        await self.event_bus.emit(
            ScalingExecuted, "scaling_engine",
            resourceId=decision.resource_id,
            action=decision.action.value,
            targetCapacity=decision.impact.target_capacity,
        )
        return ScalingOutcome(decision, ScalingOutcomeStatus.EXECUTED)

    async def _rollback(self, decision: ScalingDecision, original_error: Exception):
        try:
            await self.executor.rollback(decision)
            logger.info(f"Rolled back {decision.resource_id} to {decision.impact.current_capacity}")
        except Exception as rollback_error:
            logger.error(f"Rollback failed for {decision.resource_id}: {rollback_error}")
            await self.event_bus.emit(
                RollbackFailed, "scaling_engine",
                resourceId=decision.resource_id,
                error=str(rollback_error),
            )
            raise RollbackFailedError(decision.resource_id, rollback_error, original_error) from rollback_error

    @staticmethod
    def calculate_target_capacity(direction: ScalingDirection, policy: ScalingPolicy, current: int) -> int:
        if direction is ScalingDirection.SCALE_UP:
            return min(current + policy.scale_up_by, policy.max_instances)
        return max(current - policy.scale_down_by, policy.min_instances)

    @staticmethod
    def determine_action(current: int, target: int) -> ScalingAction:
        if target > current:
            return ScalingAction.SCALE_UP
        elif target < current:
            return ScalingAction.SCALE_DOWN
        return ScalingAction.NO_ACTION

    @staticmethod
    def calculate_confidence(values: Sequence[float]) -> float:
        """0.6 * trend score + 0.4 * stability, capped at 1.0"""
        return min(1.0, 0.6 * calculate_trend_score(values) + 0.4 * calculate_stability(values))

    @staticmethod
    def estimate_cost(current: int, target: int) -> float:
        return abs(target - current) * INSTANCE_HOURLY_COST * 24 * 30

    @staticmethod
    def estimate_performance_impact(action: ScalingAction, current: int, target: int) -> float:
        if action is ScalingAction.NO_ACTION:
            return 0.0
        if current <= 0:
            return 50.0 if action is ScalingAction.SCALE_UP else 0.0
        ratio = target / current
        if action is ScalingAction.SCALE_UP:
            return min(50.0, (ratio - 1) * 100)
        return max(-30.0, (1 - ratio) * -100)

    @staticmethod
    def build_execution_plan(action: ScalingAction, current: int, target: int) -> List[ScalingStep]:
        if action is ScalingAction.NO_ACTION:
            return []
        return [
            ScalingStep(
                order=1,
                action="validate_prerequisites",
                parameters={"current_capacity": current},
                estimated_duration=30.0,
                validation_checks=["health_check", "resource_availability"],
            ),
            ScalingStep(
                order=2,
                action=action.value,
                parameters={"from": current, "to": target},
                estimated_duration=300.0,
                dependencies=[1],
                validation_checks=["scaling_success", "health_check"],
            ),
            ScalingStep(
                order=3,
                action="verify_scaling",
                parameters={"expected_capacity": target},
                estimated_duration=60.0,
                dependencies=[2],
                validation_checks=["capacity_verification", "performance_check"],
            ),
        ]

    @staticmethod
    def build_rollback_plan(action: ScalingAction, original_capacity: int) -> List[ScalingStep]:
        if action is ScalingAction.NO_ACTION:
            return []
        inverse = ScalingAction.SCALE_DOWN if action is ScalingAction.SCALE_UP else ScalingAction.SCALE_UP
        return [
            ScalingStep(
                order=1,
                action=inverse.value,
                parameters={"to": original_capacity},
                estimated_duration=300.0,
                validation_checks=["rollback_success", "health_check"],
            ),
        ]

    async def _current_capacity(self, resource_id: str, policy: ScalingPolicy) -> int:
        if self.capacity_provider is not None:
            capacity = await self.capacity_provider.current_capacity(resource_id)
            if capacity is not None:
                return capacity
        return policy.min_instances

    def _recent_values(self, metrics: Sequence[ResourceMetrics], metric: str) -> List[float]:
        ordered = sorted(metrics, key=lambda m: m.timestamp)
        return [m.value_of(metric) for m in ordered][-self.settings.confidence_window:]

    @staticmethod
    def _reasoning(
        alert: CapacityAlert,
        threshold: ScalingThreshold,
        action: ScalingAction,
        current: int,
        target: int,
    ) -> str:
        condition = alert.conditions[0] if alert.conditions else None
        observed = f"{condition.current_value:.2f}" if condition else "n/a"
        limit = condition.threshold_value if condition else threshold.thresholds.for_direction(alert.direction).value
        if action is ScalingAction.NO_ACTION:
            return (
                f"{threshold.metric} ({observed}) crossed threshold ({limit}) for resource {alert.resource_id}, "
                f"but capacity {current} is already at the policy limit"
            )
        return (
            f"{threshold.metric} ({observed}) crossed threshold ({limit}) for resource {alert.resource_id}. "
            f"Sustained {alert.direction.value.replace('_', ' ')} pressure: {action.value} from {current} to {target}"
        )
