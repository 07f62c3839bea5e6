#!/usr/bin/env python3
"""
Tests for the event bus, typed events, Prometheus handler and Redis export
"""

from unittest.mock import AsyncMock, Mock, patch

import pytest
import redis.asyncio as aioredis
from prometheus_client import REGISTRY

from capacity_autoscaler.events.base import CallbackHandler, Event, EventType
from capacity_autoscaler.events.core_events import (
    EVENT_CLASSES,
    AlertCreated,
    AlertResolved,
    AnalysisCompleted,
    ScalingExecuted,
    Shutdown,
    ThresholdCreated,
)
from capacity_autoscaler.events.event_bus import EventBus
from capacity_autoscaler.events.event_metrics import EventMetricsCollector, EventMetricsHandler
from capacity_autoscaler.events.redis_sink import RedisStreamPublisher, flatten_event


def sample_value(name, labels=None):
    return REGISTRY.get_sample_value(name, labels or {}) or 0.0


class TestEvents:
    """Typed event construction"""

    def test_every_event_type_has_a_class(self):
        assert set(EVENT_CLASSES) == set(EventType)
        assert len(EventType) == 21

    def test_wire_names(self):
        event = ThresholdCreated(data={"thresholdId": "t1", "resourceId": "web-1"})

        assert event.name == "thresholdCreated"
        assert event.to_dict()["event_type"] == "thresholdCreated"

    def test_missing_required_field(self):
        with pytest.raises(ValueError):
            AlertCreated(data={"alertId": "a1", "resourceId": "web-1"})

    def test_untyped_event_rejected(self):
        with pytest.raises(ValueError):
            Event(data={})

    def test_from_dict_restores_type(self):
        event = Event.from_dict(ScalingExecuted(
            data={"resourceId": "web-1", "action": "scale_up", "targetCapacity": 3},
            source="scaling_engine",
        ).to_dict())

        assert event.event_type is EventType.SCALING_EXECUTED
        assert event.source == "scaling_engine"
        assert event.data["targetCapacity"] == 3


class TestEventBus:
    """Dispatch, isolation and history"""

    @pytest.mark.asyncio
    async def test_typed_subscription(self, event_bus):
        received = []
        handler = CallbackHandler("collector", received.append)
        await event_bus.subscribe(EventType.ALERT_CREATED, handler)

        await event_bus.emit(AlertCreated, "test", alertId="a1", resourceId="web-1", severity="high")
        await event_bus.emit(ThresholdCreated, "test", thresholdId="t1", resourceId="web-1")

        assert [e.name for e in received] == ["alertCreated"]
        assert received[0].source == "test"

    @pytest.mark.asyncio
    async def test_async_callback(self, event_bus):
        callback = AsyncMock(return_value=True)
        await event_bus.subscribe_all(CallbackHandler("async", callback))

        event = await event_bus.emit(ThresholdCreated, "test", thresholdId="t1", resourceId="web-1")

        callback.assert_awaited_once_with(event)

    @pytest.mark.asyncio
    async def test_failing_handler_is_isolated(self, event_bus):
        received = []
        await event_bus.subscribe_all(CallbackHandler("broken", Mock(side_effect=RuntimeError("boom"))))
        await event_bus.subscribe_all(CallbackHandler("healthy", received.append))

        event = ThresholdCreated(data={"thresholdId": "t1", "resourceId": "web-1"})
        ok = await event_bus.publish(event)

        assert ok is False
        assert received == [event]

    @pytest.mark.asyncio
    async def test_unsubscribe(self, event_bus):
        callback = Mock()
        handler = CallbackHandler("collector", callback)
        await event_bus.subscribe(EventType.ALERT_RESOLVED, handler)
        await event_bus.unsubscribe(EventType.ALERT_RESOLVED, handler)

        await event_bus.emit(AlertResolved, "test", alertId="a1", resolution="done")

        callback.assert_not_called()
        assert event_bus.handlers_for(EventType.ALERT_RESOLVED) == []

    @pytest.mark.asyncio
    async def test_unsubscribe_all(self, event_bus):
        callback = Mock()
        handler = CallbackHandler("collector", callback)
        await event_bus.subscribe_all(handler)
        await event_bus.unsubscribe_all(handler)

        await event_bus.emit(AlertResolved, "test", alertId="a1", resolution="done")

        callback.assert_not_called()

    @pytest.mark.asyncio
    async def test_history_is_bounded(self):
        bus = EventBus(history_size=3)
        for i in range(5):
            await bus.emit(ThresholdCreated, "test", thresholdId=f"t{i}", resourceId="web-1")

        recent = bus.get_recent_events()
        assert [e.data["thresholdId"] for e in recent] == ["t2", "t3", "t4"]
        assert len(bus.get_recent_events(limit=1)) == 1
        assert bus.get_events_by_type(EventType.ALERT_CREATED) == []

        bus.clear_history()
        assert bus.get_recent_events() == []

    @pytest.mark.asyncio
    async def test_publish_is_counted(self):
        bus = EventBus(metrics=EventMetricsCollector())
        before = sample_value('capacity_autoscaler_events_published_total', {'event_type': 'thresholdCreated'})

        await bus.emit(ThresholdCreated, "test", thresholdId="t1", resourceId="web-1")

        after = sample_value('capacity_autoscaler_events_published_total', {'event_type': 'thresholdCreated'})
        assert after - before == 1


class TestEventMetricsHandler:
    """Prometheus metrics derived from events"""

    @pytest.mark.asyncio
    async def test_active_alert_gauge(self, event_bus):
        handler = EventMetricsHandler()
        await event_bus.subscribe_all(handler)

        await event_bus.emit(AlertCreated, "test", alertId="a1", resourceId="web-1", severity="high")
        await event_bus.emit(AlertCreated, "test", alertId="a2", resourceId="web-2", severity="low")
        assert sample_value('capacity_autoscaler_active_alerts') == 2

        await event_bus.emit(AlertResolved, "test", alertId="a1", resolution="done")
        assert sample_value('capacity_autoscaler_active_alerts') == 1

    @pytest.mark.asyncio
    async def test_evaluator_shutdown_clears_active_alerts(self, event_bus):
        handler = EventMetricsHandler()
        await event_bus.subscribe_all(handler)
        await event_bus.emit(AlertCreated, "test", alertId="a1", resourceId="web-1", severity="high")

        await event_bus.emit(Shutdown, "test", component="trend_analyzer")
        assert handler.active_alert_ids == {"a1"}

        await event_bus.emit(Shutdown, "test", component="threshold_evaluator")
        assert handler.active_alert_ids == set()
        assert sample_value('capacity_autoscaler_active_alerts') == 0

    @pytest.mark.asyncio
    async def test_counters(self, event_bus):
        await event_bus.subscribe_all(EventMetricsHandler())
        created_before = sample_value('capacity_autoscaler_alerts_created_total', {'severity': 'critical'})
        analyses_before = sample_value('capacity_autoscaler_trend_analyses_total', {'status': 'completed'})
        outcomes_before = sample_value('capacity_autoscaler_scaling_outcomes_total', {'outcome': 'executed'})

        await event_bus.emit(AlertCreated, "test", alertId="a9", resourceId="web-1", severity="critical")
        await event_bus.emit(
            AnalysisCompleted, "test",
            trendId="t1", resourceId="web-1", metric="cpu_usage", analysisTime=0.02, dataPoints=48,
        )
        await event_bus.emit(ScalingExecuted, "test", resourceId="web-1", action="scale_up", targetCapacity=3)

        assert sample_value('capacity_autoscaler_alerts_created_total', {'severity': 'critical'}) - created_before == 1
        assert sample_value('capacity_autoscaler_trend_analyses_total', {'status': 'completed'}) - analyses_before == 1
        assert sample_value('capacity_autoscaler_scaling_outcomes_total', {'outcome': 'executed'}) - outcomes_before == 1


class TestRedisStreamPublisher:
    """Redis stream export"""

    def test_flatten_event(self):
        event = AlertCreated(data={"alertId": "a1", "resourceId": "web-1", "severity": "high"})

        fields = flatten_event(event)

        assert fields["event_type"] == "alertCreated"
        assert fields["data.alertId"] == "a1"
        assert fields["data.severity"] == "high"
        assert all(isinstance(v, str) for v in fields.values())

    @pytest.mark.asyncio
    async def test_handle_appends_to_stream(self):
        client = AsyncMock()
        publisher = RedisStreamPublisher(stream_name="capacity_events", maxlen=500, client=client)
        event = AlertCreated(data={"alertId": "a1", "resourceId": "web-1", "severity": "high"})

        assert await publisher.handle(event) is True

        client.xadd.assert_awaited_once_with("capacity_events", flatten_event(event), maxlen=500)

    @pytest.mark.asyncio
    async def test_handle_without_connection(self):
        publisher = RedisStreamPublisher()
        event = AlertCreated(data={"alertId": "a1", "resourceId": "web-1", "severity": "high"})

        assert await publisher.handle(event) is False

    @pytest.mark.asyncio
    async def test_reconnects_after_connection_error(self):
        client = AsyncMock()
        client.xadd.side_effect = [aioredis.ConnectionError("reset"), "1-0"]
        publisher = RedisStreamPublisher(client=client)
        event = AlertCreated(data={"alertId": "a1", "resourceId": "web-1", "severity": "high"})

        with patch("capacity_autoscaler.events.redis_sink.aioredis.from_url", return_value=client):
            assert await publisher.handle(event) is True

        assert client.xadd.await_count == 2
        client.ping.assert_awaited()

    @pytest.mark.asyncio
    async def test_gives_up_after_retries(self):
        client = AsyncMock()
        client.xadd.side_effect = aioredis.ConnectionError("down")
        publisher = RedisStreamPublisher(max_retries=1, client=client)
        event = AlertCreated(data={"alertId": "a1", "resourceId": "web-1", "severity": "high"})

        with patch("capacity_autoscaler.events.redis_sink.aioredis.from_url", return_value=client):
            assert await publisher.handle(event) is False

        assert client.xadd.await_count == 2
