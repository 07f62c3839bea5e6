#!/usr/bin/env python3
"""
Tests for scaling decisions, confidence gating and rollback
"""

from datetime import timedelta
from unittest.mock import AsyncMock, Mock

import pytest

from capacity_autoscaler.config.settings import ScalingSettings
from capacity_autoscaler.core.exceptions import RollbackFailedError
from capacity_autoscaler.core.interfaces import DryRunScalingExecutor
from capacity_autoscaler.core.scaling import (
    ScalingDecisionEngine,
    calculate_stability,
    calculate_trend_score,
)
from capacity_autoscaler.events.base import EventType
from capacity_autoscaler.models.alerts import AlertCondition, AlertSeverity, AlertType, CapacityAlert
from capacity_autoscaler.models.scaling import ScalingAction, ScalingOutcomeStatus
from capacity_autoscaler.models.thresholds import (
    ScalingDirection,
    ScalingPolicy,
    ScalingThreshold,
    ThresholdOperator,
)
from tests.helpers import START, make_sample


def make_alert(direction=ScalingDirection.SCALE_UP, value=90.0, threshold_value=80.0):
    return CapacityAlert(
        resource_id="web-1",
        threshold_id="threshold_1",
        type=AlertType.THRESHOLD_BREACH,
        severity=AlertSeverity.MEDIUM,
        title="cpu_usage high",
        description="cpu_usage above threshold",
        direction=direction,
        conditions=[AlertCondition("cpu_usage", ThresholdOperator.GREATER_THAN, threshold_value, value, 300.0)],
        triggered_at=START,
    )


def rising(values):
    return [make_sample("web-1", v, START + timedelta(minutes=i)) for i, v in enumerate(values)]


class TestConfidence:
    """Trend score, stability and their blend"""

    def test_trend_score(self):
        assert calculate_trend_score([1, 2, 3, 4, 5]) == 1.0
        assert calculate_trend_score([5, 4, 3, 2, 1]) == 0.0
        assert calculate_trend_score([1, 2, 1, 2, 1]) == 0.5
        assert calculate_trend_score([7]) == 0.5

    def test_stability(self):
        assert calculate_stability([50, 50, 50]) == 1.0
        assert calculate_stability([0, 0, 0]) == 0.1
        assert calculate_stability([1]) == 0.5
        assert 0.1 <= calculate_stability([1, 100, 1, 100]) <= 1.0

    def test_confidence_blend(self):
        assert ScalingDecisionEngine.calculate_confidence([50, 50, 50, 50, 50]) == pytest.approx(0.4)
        assert ScalingDecisionEngine.calculate_confidence([1, 2, 3, 4, 5]) == pytest.approx(
            0.6 + 0.4 * (1 - (2 ** 0.5) / 3)
        )


class TestDecision:
    """Target capacity, action and plans"""

    @pytest.fixture
    def engine(self, event_bus, clock):
        executor = DryRunScalingExecutor({"web-1": 2})
        return ScalingDecisionEngine(
            executor=executor,
            event_bus=event_bus,
            capacity_provider=executor,
            settings=ScalingSettings(min_confidence=0.7, confidence_window=5),
            clock=clock,
        )

    def test_target_capacity_respects_bounds(self):
        policy = ScalingPolicy(min_instances=2, max_instances=5, scale_up_by=2, scale_down_by=1)

        assert ScalingDecisionEngine.calculate_target_capacity(ScalingDirection.SCALE_UP, policy, 2) == 4
        assert ScalingDecisionEngine.calculate_target_capacity(ScalingDirection.SCALE_UP, policy, 4) == 5
        assert ScalingDecisionEngine.calculate_target_capacity(ScalingDirection.SCALE_DOWN, policy, 3) == 2
        assert ScalingDecisionEngine.calculate_target_capacity(ScalingDirection.SCALE_DOWN, policy, 2) == 2

    def test_action_follows_target(self):
        assert ScalingDecisionEngine.determine_action(2, 3) is ScalingAction.SCALE_UP
        assert ScalingDecisionEngine.determine_action(3, 2) is ScalingAction.SCALE_DOWN
        assert ScalingDecisionEngine.determine_action(3, 3) is ScalingAction.NO_ACTION

    def test_cost_estimate(self):
        assert ScalingDecisionEngine.estimate_cost(2, 3) == pytest.approx(108.0)
        assert ScalingDecisionEngine.estimate_cost(4, 2) == pytest.approx(216.0)

    def test_performance_impact_is_capped(self):
        assert ScalingDecisionEngine.estimate_performance_impact(ScalingAction.SCALE_UP, 1, 4) == 50.0
        assert ScalingDecisionEngine.estimate_performance_impact(ScalingAction.SCALE_UP, 4, 5) == pytest.approx(25.0)
        assert ScalingDecisionEngine.estimate_performance_impact(ScalingAction.SCALE_DOWN, 10, 2) == -30.0
        assert ScalingDecisionEngine.estimate_performance_impact(ScalingAction.NO_ACTION, 3, 3) == 0.0

    def test_plans(self):
        plan = ScalingDecisionEngine.build_execution_plan(ScalingAction.SCALE_UP, 2, 3)
        rollback = ScalingDecisionEngine.build_rollback_plan(ScalingAction.SCALE_UP, 2)

        assert [s.action for s in plan] == ["validate_prerequisites", "scale_up", "verify_scaling"]
        assert plan[1].parameters == {"from": 2, "to": 3}
        assert plan[2].dependencies == [2]
        assert len(rollback) == 1
        assert rollback[0].action == "scale_down"
        assert rollback[0].parameters == {"to": 2}

    def test_no_action_has_empty_plans(self):
        assert ScalingDecisionEngine.build_execution_plan(ScalingAction.NO_ACTION, 3, 3) == []
        assert ScalingDecisionEngine.build_rollback_plan(ScalingAction.NO_ACTION, 3) == []

    @pytest.mark.asyncio
    async def test_decide_uses_provider_capacity(self, engine, event_bus):
        threshold = ScalingThreshold(resource_id="web-1", metric="cpu_usage")

        decision = await engine.decide(make_alert(), threshold, rising([84, 85, 86, 87, 88, 89, 90]))

        assert decision.action is ScalingAction.SCALE_UP
        assert decision.impact.current_capacity == 2
        assert decision.impact.target_capacity == 3
        assert decision.alert_id is not None
        assert decision.threshold_id == threshold.id
        assert decision.confidence > 0.9
        assert "cpu_usage" in decision.reasoning
        event = event_bus.get_events_by_type(EventType.SCALING_DECISION_MADE)[0]
        assert event.data["action"] == "scale_up"
        assert event.data["resourceId"] == "web-1"

    @pytest.mark.asyncio
    async def test_scale_down_direction_comes_from_alert(self, engine):
        threshold = ScalingThreshold(resource_id="web-1", metric="cpu_usage")
        alert = make_alert(direction=ScalingDirection.SCALE_DOWN, value=20.0, threshold_value=30.0)

        decision = await engine.decide(alert, threshold, rising([20] * 5))

        assert decision.action is ScalingAction.SCALE_DOWN
        assert decision.impact.target_capacity == 1

    @pytest.mark.asyncio
    async def test_unknown_capacity_defaults_to_policy_minimum(self, event_bus, clock):
        engine = ScalingDecisionEngine(event_bus=event_bus, clock=clock)
        threshold = ScalingThreshold(resource_id="web-1", metric="cpu_usage")

        decision = await engine.decide(make_alert(), threshold, [])

        assert decision.impact.current_capacity == 1
        assert decision.impact.target_capacity == 2


class TestExecution:
    """Confidence gate, execution and rollback"""

    @pytest.fixture
    def threshold(self):
        return ScalingThreshold(resource_id="web-1", metric="cpu_usage")

    def make_engine(self, executor, event_bus, clock):
        return ScalingDecisionEngine(
            executor=executor,
            event_bus=event_bus,
            settings=ScalingSettings(min_confidence=0.7),
            clock=clock,
        )

    @pytest.mark.asyncio
    async def test_confident_decision_executes(self, event_bus, clock, threshold):
        executor = DryRunScalingExecutor({"web-1": 2})
        engine = self.make_engine(executor, event_bus, clock)
        decision = await engine.decide(make_alert(), threshold, rising([85, 86, 87, 88, 89]), current_capacity=2)

        outcome = await engine.execute(decision)

        assert outcome.status is ScalingOutcomeStatus.EXECUTED
        assert outcome.succeeded
        assert executor.capacities["web-1"] == 3
        event = event_bus.get_events_by_type(EventType.SCALING_EXECUTED)[0]
        assert event.data == {"resourceId": "web-1", "action": "scale_up", "targetCapacity": 3}

    @pytest.mark.asyncio
    async def test_low_confidence_is_skipped(self, event_bus, clock, threshold):
        executor = DryRunScalingExecutor({"web-1": 2})
        engine = self.make_engine(executor, event_bus, clock)
        decision = await engine.decide(make_alert(), threshold, rising([90] * 5), current_capacity=2)

        outcome = await engine.execute(decision)

        assert outcome.status is ScalingOutcomeStatus.SKIPPED
        assert executor.executed == []
        event = event_bus.get_events_by_type(EventType.SCALING_SKIPPED)[0]
        assert event.data["reason"] == "Low confidence"
        assert event.data["confidence"] == pytest.approx(0.4)

    @pytest.mark.asyncio
    async def test_no_action_does_nothing(self, event_bus, clock, threshold):
        executor = Mock(execute=AsyncMock(), rollback=AsyncMock())
        engine = self.make_engine(executor, event_bus, clock)
        decision = await engine.decide(make_alert(), threshold, rising([85, 86, 87, 88, 89]), current_capacity=10)

        outcome = await engine.execute(decision)

        assert decision.action is ScalingAction.NO_ACTION
        assert outcome.status is ScalingOutcomeStatus.NO_ACTION
        executor.execute.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_failure_rolls_back(self, event_bus, clock, threshold):
        executor = Mock(execute=AsyncMock(side_effect=RuntimeError("api down")), rollback=AsyncMock())
        engine = self.make_engine(executor, event_bus, clock)
        decision = await engine.decide(make_alert(), threshold, rising([85, 86, 87, 88, 89]), current_capacity=2)

        outcome = await engine.execute(decision)

        assert outcome.status is ScalingOutcomeStatus.ROLLED_BACK
        assert outcome.error == "api down"
        executor.rollback.assert_awaited_once_with(decision)
        failed = event_bus.get_events_by_type(EventType.SCALING_FAILED)[0]
        assert failed.data == {"resourceId": "web-1", "action": "scale_up", "error": "api down"}
        assert event_bus.get_events_by_type(EventType.ROLLBACK_FAILED) == []

    @pytest.mark.asyncio
    async def test_failed_rollback_raises(self, event_bus, clock, threshold):
        executor = Mock(
            execute=AsyncMock(side_effect=RuntimeError("api down")),
            rollback=AsyncMock(side_effect=RuntimeError("still down")),
        )
        engine = self.make_engine(executor, event_bus, clock)
        decision = await engine.decide(make_alert(), threshold, rising([85, 86, 87, 88, 89]), current_capacity=2)

        with pytest.raises(RollbackFailedError) as exc_info:
            await engine.execute(decision)

        assert str(exc_info.value.original_error) == "api down"
        rollback_failed = event_bus.get_events_by_type(EventType.ROLLBACK_FAILED)[0]
        assert rollback_failed.data == {"resourceId": "web-1", "error": "still down"}

    @pytest.mark.asyncio
    async def test_dry_run_rollback_restores_capacity(self, event_bus, clock, threshold):
        executor = DryRunScalingExecutor({"web-1": 2})
        engine = self.make_engine(executor, event_bus, clock)
        decision = await engine.decide(make_alert(), threshold, rising([85, 86, 87, 88, 89]), current_capacity=2)
        await engine.execute(decision)

        await executor.rollback(decision)

        assert executor.capacities["web-1"] == 2
        assert executor.rolled_back == [decision]
