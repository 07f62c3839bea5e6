#!/usr/bin/env python3
"""
Threshold registry: validated create/update/deactivate of scaling thresholds
"""

import copy
import logging
from typing import Any, Callable, Dict, List, Optional, Union

from ..events.core_events import ThresholdCreated, ThresholdDeactivated, ThresholdUpdated
from ..events.event_bus import EventBus
from ..models.thresholds import (
    ScalingPolicy,
    ScalingThreshold,
    ThresholdConditions,
    ThresholdOperator,
)
from .exceptions import ThresholdNotFoundError, ThresholdValidationError
from .scheduler import Clock, SystemClock

logger = logging.getLogger(__name__)

# Metric name, scale-up value, scale-down value
DEFAULT_THRESHOLDS = (
    ("cpu_usage", 80.0, 30.0),
    ("memory_usage", 85.0, 40.0),
)


def _deep_merge(base: Dict[str, Any], updates: Dict[str, Any]) -> Dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in updates.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _as_dict(value: Any) -> Any:
    if hasattr(value, "to_dict"):
        return value.to_dict()
    return value


def validate_threshold(threshold: ScalingThreshold) -> List[str]:
    """Return every invariant the threshold violates"""
    errors = []
    if not threshold.resource_id:
        errors.append("Resource ID is required")
    if not threshold.metric:
        errors.append("Metric is required")

    for name, condition in (("Scale up", threshold.thresholds.scale_up), ("Scale down", threshold.thresholds.scale_down)):
        if condition.duration < 0:
            errors.append(f"{name} duration must be non-negative")
        if condition.cooldown < 0:
            errors.append(f"{name} cooldown must be non-negative")

    policy = threshold.scaling_policy
    if policy.min_instances < 0:
        errors.append("Minimum instances must be non-negative")
    if policy.max_instances < policy.min_instances:
        errors.append("Maximum instances must be greater than or equal to minimum instances")
    if policy.scale_up_by < 1 or policy.scale_down_by < 1:
        errors.append("Scaling step sizes must be at least 1")
    if policy.scale_up_cooldown < 0 or policy.scale_down_cooldown < 0:
        errors.append("Scaling cooldowns must be non-negative")
    return errors


class ThresholdRegistry:
    """
    In-memory store of scaling thresholds keyed by id

    Thresholds are never deleted; deactivation flips ``is_active`` so the
    evaluator stops considering them.
    """

    def __init__(self, event_bus: Optional[EventBus] = None, clock: Optional[Clock] = None):
        self.event_bus = event_bus or EventBus()
        self.clock = clock or SystemClock()
        self.thresholds: Dict[str, ScalingThreshold] = {}
        self._deactivation_listeners: List[Callable[[ScalingThreshold], None]] = []

    def add_deactivation_listener(self, listener: Callable[[ScalingThreshold], None]):
        """Call ``listener`` whenever a threshold goes from active to inactive through update or deactivation"""
        self._deactivation_listeners.append(listener)

    def _notify_deactivated(self, threshold: ScalingThreshold):
        for listener in self._deactivation_listeners:
            listener(threshold)

    def __len__(self) -> int:
        return len(self.thresholds)

    def __contains__(self, threshold_id: str) -> bool:
        return threshold_id in self.thresholds

    async def create_threshold(self, config: Union[Dict[str, Any], ScalingThreshold]) -> ScalingThreshold:
        """
        Create a threshold from a full or partial configuration

        Missing sections are filled with the default scale-up/scale-down
        conditions and scaling policy.

        Raises:
            ThresholdValidationError: the resulting threshold is invalid
        """
        if isinstance(config, ScalingThreshold):
            threshold = config
        else:
            threshold = self._build(config)

        self._validate(threshold)
        now = self.clock.now()
        threshold.created_at = now
        threshold.updated_at = now
        self.thresholds[threshold.id] = threshold

        logger.info(f"Created threshold {threshold.id} for {threshold.resource_id}/{threshold.metric}")
        await self.event_bus.emit(
            ThresholdCreated, "threshold_registry",
            thresholdId=threshold.id,
            resourceId=threshold.resource_id,
        )
        return threshold

    async def update_threshold(self, threshold_id: str, updates: Dict[str, Any]) -> ScalingThreshold:
        """
        Apply a partial update; nested sections are merged, not replaced

        Raises:
            ThresholdNotFoundError: unknown id
            ThresholdValidationError: the updated threshold is invalid
        """
        existing = self.get_threshold(threshold_id)
        if existing is None:
            raise ThresholdNotFoundError(threshold_id)

        base = existing.to_dict()
        merged = _deep_merge(base, {k: _as_dict(v) for k, v in updates.items() if k not in ("id", "created_at")})
        updated = self._build(merged)
        updated.id = existing.id
        updated.created_at = existing.created_at
        self._validate(updated)

        updated.updated_at = self.clock.now()
        self.thresholds[threshold_id] = updated
        if existing.is_active and not updated.is_active:
            self._notify_deactivated(updated)

        logger.info(f"Updated threshold {threshold_id}: {', '.join(updates.keys())}")
        await self.event_bus.emit(
            ThresholdUpdated, "threshold_registry",
            thresholdId=threshold_id,
            changes=list(updates.keys()),
        )
        return updated

    async def deactivate_threshold(self, threshold_id: str) -> ScalingThreshold:
        threshold = self.get_threshold(threshold_id)
        if threshold is None:
            raise ThresholdNotFoundError(threshold_id)

        was_active = threshold.is_active
        threshold.is_active = False
        threshold.updated_at = self.clock.now()
        if was_active:
            self._notify_deactivated(threshold)
        logger.info(f"Deactivated threshold {threshold_id}")
        await self.event_bus.emit(
            ThresholdDeactivated, "threshold_registry",
            thresholdId=threshold_id,
            resourceId=threshold.resource_id,
        )
        return threshold

    def get_threshold(self, threshold_id: str) -> Optional[ScalingThreshold]:
        return self.thresholds.get(threshold_id)

    def get_thresholds(
        self,
        resource_id: Optional[str] = None,
        resource_type: Optional[str] = None,
        active_only: bool = False,
    ) -> List[ScalingThreshold]:
        thresholds = list(self.thresholds.values())
        if resource_id is not None:
            thresholds = [t for t in thresholds if t.resource_id == resource_id]
        if resource_type is not None:
            thresholds = [t for t in thresholds if t.resource_type == resource_type]
        if active_only:
            thresholds = [t for t in thresholds if t.is_active]
        return thresholds

    def thresholds_for_resource(self, resource_id: str) -> List[ScalingThreshold]:
        return self.get_thresholds(resource_id=resource_id, active_only=True)

    async def register_defaults(self, resource_id: str = "default", resource_type: str = "server") -> List[ScalingThreshold]:
        """Create the default CPU and memory thresholds for a resource"""
        created = []
        for metric, scale_up, scale_down in DEFAULT_THRESHOLDS:
            created.append(await self.create_threshold({
                "resource_id": resource_id,
                "resource_type": resource_type,
                "metric": metric,
                "thresholds": {
                    "scale_up": {"value": scale_up, "operator": ThresholdOperator.GREATER_THAN.value},
                    "scale_down": {"value": scale_down, "operator": ThresholdOperator.LESS_THAN.value},
                },
            }))
        return created

    def _validate(self, threshold: ScalingThreshold):
        errors = validate_threshold(threshold)
        if errors:
            logger.error(f"Invalid threshold for {threshold.resource_id or '<missing>'}: {'; '.join(errors)}")
            raise ThresholdValidationError(errors)

    @staticmethod
    def _build(config: Dict[str, Any]) -> ScalingThreshold:
        defaults = ThresholdConditions().to_dict()
        try:
            thresholds = config.get("thresholds")
            if isinstance(thresholds, ThresholdConditions):
                conditions = thresholds
            else:
                conditions = ThresholdConditions.from_dict(_deep_merge(defaults, thresholds or {}))

            policy = config.get("scaling_policy")
            if not isinstance(policy, ScalingPolicy):
                policy = ScalingPolicy.from_dict(policy or {})

            threshold = ScalingThreshold(
                resource_id=config.get("resource_id") or "",
                metric=config.get("metric") or "",
                resource_type=config.get("resource_type", "server"),
                thresholds=conditions,
                scaling_policy=policy,
                is_active=config.get("is_active", True),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise ThresholdValidationError([f"Malformed threshold configuration: {e}"]) from e

        if config.get("id"):
            threshold.id = config["id"]
        return threshold
