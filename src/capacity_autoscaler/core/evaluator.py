#!/usr/bin/env python3
"""
Threshold evaluation: sustained-trigger state machine, alert lifecycle and the
periodic evaluation loop
"""

import asyncio
import logging
from collections import OrderedDict, deque
from datetime import timedelta
from typing import Deque, Dict, List, Optional, Sequence

from ..analysis.statistics import zscore_confidence
from ..config.settings import EvaluatorSettings
from ..events.core_events import (
    AlertAcknowledged,
    AlertCreated,
    AlertResolved,
    AlertSuppressed,
    EvaluationError,
    ScalingFailed,
    Shutdown,
)
from ..events.event_bus import EventBus
from ..models.alerts import (
    AlertAction,
    AlertActionType,
    AlertCondition,
    AlertSeverity,
    AlertStatus,
    AlertType,
    CapacityAlert,
    EscalationRule,
)
from ..models.metrics import ResourceMetrics
from ..models.thresholds import (
    ScalingDirection,
    ScalingPolicyType,
    ScalingThreshold,
    ThresholdEvaluation,
    ThresholdState,
)
from .alerts import AlertManager
from .escalation import EscalationManager
from .exceptions import AlertNotFoundError, RollbackFailedError
from .interfaces import MetricsSampler
from .registry import ThresholdRegistry
from .scaling import ScalingDecisionEngine
from .scheduler import TaskScheduler, TimerHandle

logger = logging.getLogger(__name__)

EVALUATION_TAG = "evaluation"
SOURCE = "threshold_evaluator"


def calculate_severity(current_value: float, threshold_value: float) -> AlertSeverity:
    """Severity from the relative deviation |current - threshold| / threshold"""
    if threshold_value == 0:
        return AlertSeverity.LOW if current_value == 0 else AlertSeverity.CRITICAL

    deviation = abs(current_value - threshold_value) / abs(threshold_value)
    if deviation > 0.5:
        return AlertSeverity.CRITICAL
    if deviation > 0.3:
        return AlertSeverity.HIGH
    if deviation > 0.1:
        return AlertSeverity.MEDIUM
    return AlertSeverity.LOW


class ThresholdEvaluator:
    """
    Evaluates active thresholds against incoming samples and manages alerts

    A threshold only triggers once its condition has held continuously for the
    configured duration, and each continuous run triggers at most once. The
    timestamp of the newest sample is used as the evaluation time.
    """

    def __init__(
        self,
        registry: ThresholdRegistry,
        scheduler: Optional[TaskScheduler] = None,
        event_bus: Optional[EventBus] = None,
        alert_manager: Optional[AlertManager] = None,
        decision_engine: Optional[ScalingDecisionEngine] = None,
        sampler: Optional[MetricsSampler] = None,
        settings: Optional[EvaluatorSettings] = None,
    ):
        self.registry = registry
        self.scheduler = scheduler or TaskScheduler()
        self.event_bus = event_bus or registry.event_bus
        self.alert_manager = alert_manager or AlertManager()
        self.decision_engine = decision_engine
        self.sampler = sampler
        self.settings = settings or EvaluatorSettings()

        self.states: Dict[str, ThresholdState] = {}
        self.alerts: Dict[str, CapacityAlert] = OrderedDict()
        self.resolved_alerts: Deque[CapacityAlert] = deque(maxlen=1000)
        self.history: Dict[str, Deque[ResourceMetrics]] = {}
        self._ticker: Optional[TimerHandle] = None

        self.escalation = EscalationManager(
            scheduler=self.scheduler,
            alert_manager=self.alert_manager,
            event_bus=self.event_bus,
            alert_lookup=self.alerts.get,
            rules=[EscalationRule.from_dict(r) for r in self.settings.escalation_rules],
        )
        registry.add_deactivation_listener(self._on_threshold_deactivated)

    # ------------------------------------------------------------------
    # Evaluation
    # ------------------------------------------------------------------

    async def evaluate(self, metrics: Sequence[ResourceMetrics]) -> List[ThresholdEvaluation]:
        """
        Evaluate every active threshold for the resources present in a batch

        Resources are processed concurrently in chunks of ``batch_size``. A
        resource whose evaluation fails is logged, reported with an
        ``evaluationError`` event and left out of the result.
        """
        grouped: Dict[str, List[ResourceMetrics]] = OrderedDict()
        for sample in metrics:
            grouped.setdefault(sample.resource_id, []).append(sample)

        for resource_id, samples in grouped.items():
            self._record_history(resource_id, samples)

        resource_ids = list(grouped.keys())
        results: List[ThresholdEvaluation] = []
        batch_size = self.settings.batch_size
        for i in range(0, len(resource_ids), batch_size):
            chunk = resource_ids[i:i + batch_size]
            chunk_results = await asyncio.gather(
                *(self._evaluate_resource_safely(rid, grouped[rid]) for rid in chunk)
            )
            for evaluations in chunk_results:
                results.extend(evaluations)
        return results

    def evaluate_threshold(
        self,
        threshold: ScalingThreshold,
        latest: ResourceMetrics,
        history: Sequence[ResourceMetrics] = (),
    ) -> ThresholdEvaluation:
        """Advance the threshold's state machine with one sample"""
        now = latest.timestamp
        state = self.states.setdefault(threshold.id, ThresholdState(threshold.id))
        scale_up = threshold.thresholds.scale_up
        scale_down = threshold.thresholds.scale_down
        value = latest.value_of(threshold.metric)

        direction: Optional[ScalingDirection] = None
        condition = scale_up
        duration = 0.0
        triggered = False

        if scale_up.is_met(value):
            direction = ScalingDirection.SCALE_UP
            state.scale_down_start_time = None
            if state.scale_up_start_time is None:
                state.scale_up_start_time = now
                state.consecutive_violations = 0
                state.fired = False
            state.consecutive_violations += 1
            duration = max(0.0, (now - state.scale_up_start_time).total_seconds())
        elif scale_down.is_met(value):
            direction = ScalingDirection.SCALE_DOWN
            condition = scale_down
            state.scale_up_start_time = None
            if state.scale_down_start_time is None:
                state.scale_down_start_time = now
                state.consecutive_violations = 0
                state.fired = False
            state.consecutive_violations += 1
            duration = max(0.0, (now - state.scale_down_start_time).total_seconds())
        else:
            state.reset()

        if direction is not None and duration >= condition.duration and not state.fired:
            triggered = True
            state.fired = True

        state.last_evaluation = now

        window = [m.value_of(threshold.metric) for m in history][-self.settings.confidence_window:]
        if not window:
            window = [value]

        return ThresholdEvaluation(
            threshold_id=threshold.id,
            resource_id=threshold.resource_id,
            metric=threshold.metric,
            current_value=value,
            threshold_value=condition.value,
            operator=condition.operator,
            direction=direction,
            is_triggered=triggered,
            duration=duration,
            confidence=zscore_confidence(value, window),
            evaluated_at=now,
        )

    async def _evaluate_resource_safely(self, resource_id: str, samples: List[ResourceMetrics]) -> List[ThresholdEvaluation]:
        try:
            return await self._evaluate_resource(resource_id, samples)
        except Exception as e:
            logger.error(f"Failed to evaluate thresholds for {resource_id}: {e}")
            await self.event_bus.emit(EvaluationError, SOURCE, error=str(e), resourceId=resource_id)
            return []

    async def _evaluate_resource(self, resource_id: str, samples: List[ResourceMetrics]) -> List[ThresholdEvaluation]:
        latest = max(samples, key=lambda m: m.timestamp)
        history = list(self.history.get(resource_id, ()))

        evaluations = []
        for threshold in self.registry.thresholds_for_resource(resource_id):
            evaluation = self.evaluate_threshold(threshold, latest, history)
            evaluations.append(evaluation)
            if evaluation.is_triggered:
                logger.info(
                    f"Threshold {threshold.id} triggered for {resource_id}: {threshold.metric}="
                    f"{evaluation.current_value:.2f} {evaluation.operator.value} {evaluation.threshold_value} "
                    f"for {evaluation.duration:.0f}s"
                )
                await self._process_trigger(evaluation, threshold)
        return evaluations

    def _record_history(self, resource_id: str, samples: List[ResourceMetrics]):
        history = self.history.get(resource_id)
        if history is None:
            history = self.history[resource_id] = deque(maxlen=self.settings.history_size)
        history.extend(sorted(samples, key=lambda m: m.timestamp))

    # ------------------------------------------------------------------
    # Alerts
    # ------------------------------------------------------------------

    async def _process_trigger(self, evaluation: ThresholdEvaluation, threshold: ScalingThreshold) -> Optional[CapacityAlert]:
        existing = self._find_active_alert(evaluation.resource_id, evaluation.metric)
        if existing is not None and self._in_cooldown(existing, threshold, evaluation):
            logger.info(f"Alert {existing.id} still in cooldown, not raising a new alert for {evaluation.resource_id}")
            return None

        alert = await self._create_alert(evaluation, threshold)
        await self._process_alert(alert, threshold)
        return alert

    def _find_active_alert(self, resource_id: str, metric: str) -> Optional[CapacityAlert]:
        for alert in self.alerts.values():
            if alert.is_active and alert.resource_id == resource_id and alert.metric == metric:
                return alert
        return None

    @staticmethod
    def _in_cooldown(alert: CapacityAlert, threshold: ScalingThreshold, evaluation: ThresholdEvaluation) -> bool:
        cooldown = timedelta(seconds=threshold.thresholds.scale_up.cooldown)
        return evaluation.evaluated_at - alert.triggered_at < cooldown

    async def _create_alert(self, evaluation: ThresholdEvaluation, threshold: ScalingThreshold) -> CapacityAlert:
        severity = calculate_severity(evaluation.current_value, evaluation.threshold_value)
        scale_up = evaluation.direction is ScalingDirection.SCALE_UP
        action = "Scale Up" if scale_up else "Scale Down"
        relation = "exceeded" if scale_up else "below"

        alert = CapacityAlert(
            resource_id=evaluation.resource_id,
            threshold_id=threshold.id,
            type=AlertType.THRESHOLD_BREACH if scale_up else AlertType.UNDERUTILIZATION,
            severity=severity,
            title=f"{action} Alert: {threshold.metric} threshold {relation} for {evaluation.resource_id}",
            description=(
                f"Resource {evaluation.resource_id} has {threshold.metric} of {evaluation.current_value:.2f} "
                f"which is {evaluation.operator.value} threshold of {evaluation.threshold_value} "
                f"for {evaluation.duration:.0f}s"
            ),
            direction=evaluation.direction,
            conditions=[AlertCondition(
                metric=evaluation.metric,
                operator=evaluation.operator,
                threshold_value=evaluation.threshold_value,
                current_value=evaluation.current_value,
                duration=evaluation.duration,
            )],
            actions=self._alert_actions(severity, threshold),
            triggered_at=evaluation.evaluated_at,
            created_at=self.scheduler.now(),
        )
        self.alerts[alert.id] = alert

        logger.warning(f"Created {severity.value} alert {alert.id}: {alert.title}")
        await self.event_bus.emit(
            AlertCreated, SOURCE,
            alertId=alert.id,
            resourceId=alert.resource_id,
            severity=severity.value,
        )
        return alert

    def _alert_actions(self, severity: AlertSeverity, threshold: ScalingThreshold) -> List[AlertAction]:
        actions = [AlertAction(AlertActionType.EMAIL, {"priority": severity.value}, order=1)]
        if severity in (AlertSeverity.CRITICAL, AlertSeverity.HIGH):
            actions.append(AlertAction(AlertActionType.SLACK, {"priority": severity.value}, order=2))
        if self.settings.enable_auto_scaling:
            actions.append(AlertAction(AlertActionType.AUTO_SCALE, {"policy": threshold.scaling_policy.to_dict()}, order=3))
        return actions

    async def _process_alert(self, alert: CapacityAlert, threshold: ScalingThreshold):
        await self.alert_manager.send_alert(alert)
        try:
            if self.decision_engine is not None and self.should_auto_scale(alert, threshold):
                await self._auto_scale(alert, threshold)
        finally:
            # Escalation is scheduled even when auto-scaling fails
            self.escalation.schedule(alert)

    async def _auto_scale(self, alert: CapacityAlert, threshold: ScalingThreshold):
        recent = list(self.history.get(alert.resource_id, ()))
        try:
            decision = await self.decision_engine.decide(alert, threshold, recent)
            await self.decision_engine.execute(decision)
        except RollbackFailedError as e:
            logger.error(f"Auto-scaling for alert {alert.id} left {alert.resource_id} in an unknown state: {e}")
        except Exception as e:
            logger.error(f"Auto-scaling for alert {alert.id} failed: {e}")
            await self.event_bus.emit(
                ScalingFailed, SOURCE,
                resourceId=alert.resource_id,
                action=alert.direction.value,
                error=str(e),
            )

    def should_auto_scale(self, alert: CapacityAlert, threshold: ScalingThreshold) -> bool:
        return (
            self.settings.enable_auto_scaling
            and threshold.scaling_policy.type is not ScalingPolicyType.HYBRID
            and alert.severity is not AlertSeverity.LOW
            and len(self.get_active_alerts()) < self.settings.max_concurrent_alerts
        )

    async def acknowledge_alert(self, alert_id: str, user_id: str) -> CapacityAlert:
        alert = self._require_alert(alert_id)
        alert.status = AlertStatus.ACKNOWLEDGED
        alert.acknowledged_at = self.scheduler.now()
        alert.acknowledged_by = user_id
        self.escalation.cancel(alert_id)

        logger.info(f"Alert {alert_id} acknowledged by {user_id}")
        await self.event_bus.emit(AlertAcknowledged, SOURCE, alertId=alert_id, userId=user_id)
        return alert

    async def resolve_alert(self, alert_id: str, resolution: str) -> CapacityAlert:
        alert = self._require_alert(alert_id)
        alert.status = AlertStatus.RESOLVED
        alert.resolved_at = self.scheduler.now()
        alert.resolution = resolution
        self.escalation.cancel(alert_id)
        del self.alerts[alert_id]
        self.resolved_alerts.append(alert)

        logger.info(f"Alert {alert_id} resolved: {resolution}")
        await self.event_bus.emit(AlertResolved, SOURCE, alertId=alert_id, resolution=resolution)
        return alert

    async def suppress_alert(self, alert_id: str, duration: float) -> CapacityAlert:
        """Suppress an alert for ``duration`` seconds"""
        alert = self._require_alert(alert_id)
        alert.status = AlertStatus.SUPPRESSED
        alert.suppressed_until = self.scheduler.now() + timedelta(seconds=duration)
        self.escalation.cancel(alert_id)

        logger.info(f"Alert {alert_id} suppressed until {alert.suppressed_until.isoformat()}")
        await self.event_bus.emit(AlertSuppressed, SOURCE, alertId=alert_id, duration=duration)
        return alert

    def get_alert(self, alert_id: str) -> Optional[CapacityAlert]:
        alert = self.alerts.get(alert_id)
        if alert is not None:
            return alert
        for resolved in self.resolved_alerts:
            if resolved.id == alert_id:
                return resolved
        return None

    def get_active_alerts(self, resource_id: Optional[str] = None) -> List[CapacityAlert]:
        return [
            a for a in self.alerts.values()
            if a.is_active and (resource_id is None or a.resource_id == resource_id)
        ]

    def _require_alert(self, alert_id: str) -> CapacityAlert:
        alert = self.alerts.get(alert_id)
        if alert is None:
            raise AlertNotFoundError(alert_id)
        return alert

    # ------------------------------------------------------------------
    # Thresholds
    # ------------------------------------------------------------------

    async def deactivate_threshold(self, threshold_id: str) -> ScalingThreshold:
        """
        Deactivate a threshold through the registry

        Raises:
            ThresholdNotFoundError: unknown id
        """
        return await self.registry.deactivate_threshold(threshold_id)

    def _on_threshold_deactivated(self, threshold: ScalingThreshold):
        # Also fires for deactivation through registry.update_threshold
        cancelled = self.escalation.cancel_for_threshold(threshold.id)
        self.states.pop(threshold.id, None)
        if cancelled:
            logger.info(f"Cancelled {cancelled} pending escalation(s) for threshold {threshold.id}")

    def get_threshold_metrics(self) -> Dict[str, int]:
        thresholds = self.registry.get_thresholds()
        return {
            "total_thresholds": len(thresholds),
            "active_thresholds": sum(1 for t in thresholds if t.is_active),
            "triggered_thresholds": sum(1 for s in self.states.values() if s.is_violating),
            "active_alerts": len(self.get_active_alerts()),
            "pending_escalations": len(self.escalation.handles),
            "longest_violation_streak": max((s.consecutive_violations for s in self.states.values()), default=0),
        }

    # ------------------------------------------------------------------
    # Loop
    # ------------------------------------------------------------------

    def start(self) -> Optional[TimerHandle]:
        """Register the periodic evaluation tick with the scheduler"""
        if self._ticker is not None and not self._ticker.cancelled:
            logger.warning("Threshold evaluator already running")
            return self._ticker
        if self.sampler is None:
            logger.warning("No metrics sampler configured, periodic evaluation disabled")
            return None

        self._ticker = self.scheduler.call_every(
            self.settings.evaluation_interval, self.run_evaluation_cycle, tags=(EVALUATION_TAG,)
        )
        logger.info(f"Threshold evaluation started with {self.settings.evaluation_interval}s interval")
        return self._ticker

    def stop(self):
        if self._ticker is not None:
            self._ticker.cancel()
            self._ticker = None
            logger.info("Threshold evaluation stopped")

    async def run_evaluation_cycle(self) -> List[ThresholdEvaluation]:
        """One tick: pull a batch from the sampler and evaluate it; errors never escape"""
        try:
            metrics = await self.sampler.collect()
            return await self.evaluate(metrics)
        except Exception as e:
            logger.error(f"Evaluation cycle failed: {e}")
            await self.event_bus.emit(EvaluationError, SOURCE, error=str(e))
            return []

    async def shutdown(self):
        self.stop()
        self.escalation.cancel_all()
        self.states.clear()
        self.alerts.clear()
        self.history.clear()
        logger.info("Threshold evaluator shut down")
        await self.event_bus.emit(Shutdown, SOURCE, component=SOURCE)
