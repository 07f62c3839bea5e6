#!/usr/bin/env python3
"""
Collaborator capabilities: metric sources, actuators and notification channels

The concrete integrations live outside this package; the implementations here
cover in-memory use, dry runs and logging.
"""

import logging
from collections import defaultdict, deque
from datetime import datetime
from typing import Deque, Dict, Iterable, List, Optional

from ..models.alerts import CapacityAlert
from ..models.metrics import ResourceMetrics
from ..models.scaling import ScalingAction, ScalingDecision

logger = logging.getLogger(__name__)


class MetricsSampler:
    """Supplies the batch of current samples evaluated on each tick"""

    async def collect(self) -> List[ResourceMetrics]:
        raise NotImplementedError("Subclasses must implement collect() method")


class MetricsHistoryProvider:
    """Supplies historical samples for a resource over a time range"""

    async def fetch(self, resource_id: str, start: datetime, end: datetime) -> List[ResourceMetrics]:
        raise NotImplementedError("Subclasses must implement fetch() method")


class CapacityProvider:
    """Reports the current instance count of a resource"""

    async def current_capacity(self, resource_id: str) -> Optional[int]:
        raise NotImplementedError("Subclasses must implement current_capacity() method")


class ScalingExecutor:
    """Applies and reverts scaling decisions"""

    async def execute(self, decision: ScalingDecision) -> None:
        raise NotImplementedError("Subclasses must implement execute() method")

    async def rollback(self, decision: ScalingDecision) -> None:
        raise NotImplementedError("Subclasses must implement rollback() method")


class NotificationChannel:
    """
    Delivers alerts to one destination

    Channels with a lower ``priority`` value are notified first.
    """

    def __init__(self, channel_type: str, priority: int = 100, is_active: bool = True):
        self.channel_type = channel_type
        self.priority = priority
        self.is_active = is_active

    async def send(self, alert: CapacityAlert) -> None:
        raise NotImplementedError("Subclasses must implement send() method")


class LoggingNotificationChannel(NotificationChannel):
    """Writes alerts to the application log"""

    def __init__(self, channel_type: str = "log", priority: int = 100):
        super().__init__(channel_type, priority)
        self.sent: List[str] = []

    async def send(self, alert: CapacityAlert) -> None:
        self.sent.append(alert.id)
        logger.warning(
            f"[{alert.severity.value.upper()}] {alert.title} "
            f"(alert={alert.id}, level={alert.escalation_level})"
        )


class InMemoryMetricsStore(MetricsSampler, MetricsHistoryProvider):
    """
    Bounded per-resource sample store

    ``record`` buffers samples for the next ``collect`` call and keeps them as
    history for ``fetch``.
    """

    def __init__(self, max_samples_per_resource: int = 10000):
        self.max_samples = max_samples_per_resource
        self._pending: List[ResourceMetrics] = []
        self._history: Dict[str, Deque[ResourceMetrics]] = defaultdict(
            lambda: deque(maxlen=self.max_samples)
        )

    def record(self, metrics: Iterable[ResourceMetrics]):
        for sample in metrics:
            self._pending.append(sample)
            self._history[sample.resource_id].append(sample)

    async def collect(self) -> List[ResourceMetrics]:
        batch, self._pending = self._pending, []
        return batch

    async def fetch(self, resource_id: str, start: datetime, end: datetime) -> List[ResourceMetrics]:
        samples = self._history.get(resource_id, ())
        return sorted(
            (m for m in samples if start <= m.timestamp <= end),
            key=lambda m: m.timestamp,
        )

    def resource_ids(self) -> List[str]:
        return list(self._history.keys())


class DryRunScalingExecutor(ScalingExecutor, CapacityProvider):
    """Logs execution plans instead of resizing anything and tracks the resulting capacity"""

    def __init__(self, initial_capacity: Optional[Dict[str, int]] = None):
        self.capacities: Dict[str, int] = dict(initial_capacity or {})
        self.executed: List[ScalingDecision] = []
        self.rolled_back: List[ScalingDecision] = []

    async def current_capacity(self, resource_id: str) -> Optional[int]:
        return self.capacities.get(resource_id)

    async def execute(self, decision: ScalingDecision) -> None:
        logger.info(
            f"DRY RUN: would {decision.action.value} {decision.resource_id} "
            f"from {decision.impact.current_capacity} to {decision.impact.target_capacity}"
        )
        for step in decision.execution_plan:
            logger.info(f"DRY RUN:   step {step.order}: {step.action} {step.parameters}")
        self.executed.append(decision)
        if decision.action is not ScalingAction.NO_ACTION:
            self.capacities[decision.resource_id] = decision.impact.target_capacity

    async def rollback(self, decision: ScalingDecision) -> None:
        logger.info(f"DRY RUN: would roll back {decision.resource_id} to {decision.impact.current_capacity}")
        self.rolled_back.append(decision)
        self.capacities[decision.resource_id] = decision.impact.current_capacity
