#!/usr/bin/env python3
"""
Tests for threshold creation, update, deactivation and queries
"""

import pytest

from capacity_autoscaler.core.exceptions import ThresholdNotFoundError, ThresholdValidationError
from capacity_autoscaler.events.base import EventType
from capacity_autoscaler.models.thresholds import ScalingThreshold, ThresholdOperator


class TestThresholdRegistry:
    """CRUD and validation of scaling thresholds"""

    @pytest.mark.asyncio
    async def test_partial_config_gets_defaults(self, registry, event_bus):
        threshold = await registry.create_threshold({"resource_id": "web-1", "metric": "cpu_usage"})

        assert threshold.thresholds.scale_up.value == 80.0
        assert threshold.thresholds.scale_up.operator is ThresholdOperator.GREATER_THAN
        assert threshold.thresholds.scale_up.duration == 300.0
        assert threshold.thresholds.scale_down.value == 30.0
        assert threshold.thresholds.scale_down.duration == 600.0
        assert threshold.scaling_policy.min_instances == 1
        assert threshold.scaling_policy.max_instances == 10
        assert threshold.is_active
        assert threshold.id in registry

        events = event_bus.get_events_by_type(EventType.THRESHOLD_CREATED)
        assert len(events) == 1
        assert events[0].data == {"thresholdId": threshold.id, "resourceId": "web-1"}

    @pytest.mark.asyncio
    async def test_nested_override_keeps_sibling_defaults(self, registry):
        threshold = await registry.create_threshold({
            "resource_id": "db-1",
            "metric": "memory_usage",
            "thresholds": {"scale_up": {"value": 90, "duration": 120}},
        })

        assert threshold.thresholds.scale_up.value == 90.0
        assert threshold.thresholds.scale_up.duration == 120.0
        assert threshold.thresholds.scale_up.cooldown == 900.0
        assert threshold.thresholds.scale_down.value == 30.0

    @pytest.mark.asyncio
    async def test_missing_resource_id_is_rejected(self, registry, event_bus):
        with pytest.raises(ThresholdValidationError) as exc_info:
            await registry.create_threshold({"metric": "cpu_usage"})

        assert "Resource ID is required" in exc_info.value.errors
        assert len(registry) == 0
        assert event_bus.get_recent_events() == []

    @pytest.mark.asyncio
    async def test_max_below_min_is_rejected(self, registry):
        with pytest.raises(ThresholdValidationError) as exc_info:
            await registry.create_threshold({
                "resource_id": "web-1",
                "metric": "cpu_usage",
                "scaling_policy": {"min_instances": 5, "max_instances": 2},
            })

        assert any("Maximum instances" in e for e in exc_info.value.errors)

    @pytest.mark.asyncio
    async def test_negative_duration_is_rejected(self, registry):
        with pytest.raises(ThresholdValidationError):
            await registry.create_threshold({
                "resource_id": "web-1",
                "metric": "cpu_usage",
                "thresholds": {"scale_down": {"value": 10, "duration": -5}},
            })

    @pytest.mark.asyncio
    async def test_unknown_operator_is_a_validation_error(self, registry):
        with pytest.raises(ThresholdValidationError):
            await registry.create_threshold({
                "resource_id": "web-1",
                "metric": "cpu_usage",
                "thresholds": {"scale_up": {"value": 80, "operator": "=>"}},
            })

    @pytest.mark.asyncio
    async def test_validation_error_is_a_value_error(self, registry):
        with pytest.raises(ValueError):
            await registry.create_threshold({"resource_id": "web-1"})

    @pytest.mark.asyncio
    async def test_accepts_threshold_instance(self, registry):
        threshold = await registry.create_threshold(ScalingThreshold(resource_id="web-1", metric="disk_usage"))

        assert registry.get_threshold(threshold.id) is threshold

    @pytest.mark.asyncio
    async def test_update_merges_and_emits_changes(self, registry, event_bus, clock):
        threshold = await registry.create_threshold({"resource_id": "web-1", "metric": "cpu_usage"})
        created_at = threshold.created_at
        clock.advance(60)

        updated = await registry.update_threshold(threshold.id, {
            "thresholds": {"scale_up": {"value": 75}},
            "scaling_policy": {"max_instances": 20},
        })

        assert updated.id == threshold.id
        assert updated.thresholds.scale_up.value == 75.0
        assert updated.thresholds.scale_up.duration == 300.0
        assert updated.scaling_policy.max_instances == 20
        assert updated.scaling_policy.min_instances == 1
        assert updated.created_at == created_at
        assert updated.updated_at > created_at
        assert registry.get_threshold(threshold.id) is updated

        event = event_bus.get_events_by_type(EventType.THRESHOLD_UPDATED)[-1]
        assert event.data["thresholdId"] == threshold.id
        assert set(event.data["changes"]) == {"thresholds", "scaling_policy"}

    @pytest.mark.asyncio
    async def test_invalid_update_leaves_threshold_untouched(self, registry):
        threshold = await registry.create_threshold({"resource_id": "web-1", "metric": "cpu_usage"})

        with pytest.raises(ThresholdValidationError):
            await registry.update_threshold(threshold.id, {"scaling_policy": {"min_instances": -1}})

        assert registry.get_threshold(threshold.id) is threshold
        assert threshold.scaling_policy.min_instances == 1

    @pytest.mark.asyncio
    async def test_update_unknown_threshold(self, registry):
        with pytest.raises(ThresholdNotFoundError):
            await registry.update_threshold("threshold_missing", {"is_active": False})

    @pytest.mark.asyncio
    async def test_deactivate_keeps_threshold_but_hides_it(self, registry, event_bus):
        threshold = await registry.create_threshold({"resource_id": "web-1", "metric": "cpu_usage"})

        await registry.deactivate_threshold(threshold.id)

        assert threshold.id in registry
        assert registry.thresholds_for_resource("web-1") == []
        assert registry.get_thresholds(resource_id="web-1") == [threshold]
        assert event_bus.get_events_by_type(EventType.THRESHOLD_DEACTIVATED)[0].data["thresholdId"] == threshold.id

    @pytest.mark.asyncio
    async def test_deactivate_unknown_threshold(self, registry):
        with pytest.raises(ThresholdNotFoundError):
            await registry.deactivate_threshold("threshold_missing")

    @pytest.mark.asyncio
    async def test_queries_filter_by_resource_and_type(self, registry):
        await registry.create_threshold({"resource_id": "web-1", "metric": "cpu_usage"})
        await registry.create_threshold({"resource_id": "db-1", "metric": "cpu_usage", "resource_type": "database"})

        assert len(registry.get_thresholds()) == 2
        assert [t.resource_id for t in registry.get_thresholds(resource_type="database")] == ["db-1"]
        assert [t.resource_id for t in registry.thresholds_for_resource("web-1")] == ["web-1"]

    @pytest.mark.asyncio
    async def test_register_defaults(self, registry):
        created = await registry.register_defaults("web-1")

        assert {t.metric for t in created} == {"cpu_usage", "memory_usage"}
        memory = next(t for t in created if t.metric == "memory_usage")
        assert memory.thresholds.scale_up.value == 85.0
        assert memory.thresholds.scale_down.value == 40.0
