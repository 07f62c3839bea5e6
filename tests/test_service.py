#!/usr/bin/env python3
"""
Integration tests wiring the whole service on a manual clock
"""

from datetime import timedelta
from unittest.mock import AsyncMock, Mock

import pytest
import pytest_asyncio

from capacity_autoscaler.config.settings import MetricsSettings, ScalingSettings, Settings
from capacity_autoscaler.core.interfaces import DryRunScalingExecutor, ScalingExecutor
from capacity_autoscaler.core.scheduler import ManualClock
from capacity_autoscaler.events.base import EventType
from capacity_autoscaler.service import CapacityMonitorService
from tests.helpers import START, make_sample


@pytest_asyncio.fixture
async def service():
    service = CapacityMonitorService(
        settings=Settings(metrics=MetricsSettings(enabled=False)),
        clock=ManualClock(START),
        configure_logging=False,
    )
    await service.start(resource_ids=("web-1",))
    yield service
    await service.shutdown()


@pytest.mark.integration
class TestCapacityMonitorService:
    """End to end flow from samples to alerts and decisions"""

    @pytest.mark.asyncio
    async def test_start_registers_defaults(self, service):
        thresholds = service.registry.thresholds_for_resource("web-1")

        assert sorted(t.metric for t in thresholds) == ["cpu_usage", "memory_usage"]
        assert set(service.analyzer.watched) == {("web-1", "cpu_usage"), ("web-1", "memory_usage")}
        assert service.running
        assert isinstance(service.executor, DryRunScalingExecutor)

    @pytest.mark.asyncio
    async def test_sustained_breach_raises_alert(self, service):
        for minute in range(6):
            service.ingest([make_sample("web-1", 85.0 + minute, START + timedelta(minutes=minute))])
            await service.scheduler.advance(60)

        alerts = service.evaluator.get_active_alerts("web-1")
        assert len(alerts) == 1
        assert alerts[0].conditions[0].metric == "cpu_usage"
        bus = service.event_bus
        assert len(bus.get_events_by_type(EventType.ALERT_CREATED)) == 1
        assert bus.get_events_by_type(EventType.SCALING_DECISION_MADE)
        assert service.metrics_handler.active_alert_ids == {alerts[0].id}

    @pytest.mark.asyncio
    async def test_shutdown_cancels_everything(self, service):
        service.ingest([make_sample("web-1", 90.0, START)])
        await service.scheduler.advance(60)

        await service.shutdown()

        assert service.scheduler.pending() == []
        assert not service.running
        components = [e.data["component"] for e in service.event_bus.get_events_by_type(EventType.SHUTDOWN)]
        assert components == ["threshold_evaluator", "trend_analyzer"]
        assert service.metrics_handler.active_alert_ids == set()


@pytest.mark.integration
class TestDryRun:
    """Dry-run mode never calls the supplied executor"""

    @pytest.fixture
    def executor(self):
        executor = Mock(spec=ScalingExecutor)
        executor.execute = AsyncMock()
        executor.rollback = AsyncMock()
        return executor

    def build(self, executor, dry_run):
        return CapacityMonitorService(
            settings=Settings(
                metrics=MetricsSettings(enabled=False),
                scaling=ScalingSettings(dry_run=dry_run),
            ),
            executor=executor,
            clock=ManualClock(START),
            configure_logging=False,
        )

    @pytest.mark.asyncio
    async def test_dry_run_replaces_supplied_executor(self, executor):
        service = self.build(executor, dry_run=True)
        await service.start(resource_ids=("web-1",))

        for minute in range(6):
            service.ingest([make_sample("web-1", 85.0 + minute, START + timedelta(minutes=minute))])
            await service.scheduler.advance(60)
        await service.shutdown()

        assert isinstance(service.executor, DryRunScalingExecutor)
        assert service.decision_engine.executor is service.executor
        assert service.event_bus.get_events_by_type(EventType.SCALING_DECISION_MADE)
        executor.execute.assert_not_awaited()

    def test_dry_run_keeps_supplied_capacity_source(self):
        inventory = DryRunScalingExecutor({"web-1": 4})

        service = self.build(inventory, dry_run=True)

        assert service.executor is not inventory
        assert service.capacity_provider is inventory

    def test_live_mode_uses_supplied_executor(self, executor):
        service = self.build(executor, dry_run=False)

        assert service.executor is executor
        assert service.decision_engine.executor is executor

    def test_live_mode_without_executor_falls_back(self):
        service = self.build(None, dry_run=False)

        assert isinstance(service.executor, DryRunScalingExecutor)
