#!/usr/bin/env python3
"""
Prometheus metrics for the event bus and the capacity events flowing through it
"""

import logging
from typing import Set

from prometheus_client import Counter, Histogram, Gauge

from .base import Event, EventHandler, EventType

logger = logging.getLogger(__name__)

# Event bus metrics
EVENT_BUS_PUBLISHED_TOTAL = Counter(
    'capacity_autoscaler_events_published_total',
    'Total events published to the event bus',
    ['event_type']
)

EVENT_BUS_PROCESSED_TOTAL = Counter(
    'capacity_autoscaler_events_processed_total',
    'Total events processed by handlers',
    ['event_type', 'handler', 'status']
)

EVENT_BUS_HANDLER_DURATION = Histogram(
    'capacity_autoscaler_event_handler_duration_seconds',
    'Time taken by handlers to process events',
    ['event_type', 'handler'],
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0]
)

EVENT_BUS_SUBSCRIBERS = Gauge(
    'capacity_autoscaler_event_subscribers',
    'Number of subscribers per event type',
    ['event_type']
)

# Capacity metrics
ALERTS_CREATED_TOTAL = Counter(
    'capacity_autoscaler_alerts_created_total',
    'Capacity alerts created',
    ['severity']
)

ALERT_ESCALATIONS_TOTAL = Counter(
    'capacity_autoscaler_alert_escalations_total',
    'Alert escalations fired',
    ['level']
)

ACTIVE_ALERTS = Gauge(
    'capacity_autoscaler_active_alerts',
    'Alerts currently in the ACTIVE state'
)

SCALING_DECISIONS_TOTAL = Counter(
    'capacity_autoscaler_scaling_decisions_total',
    'Scaling decisions made',
    ['action']
)

SCALING_OUTCOMES_TOTAL = Counter(
    'capacity_autoscaler_scaling_outcomes_total',
    'Scaling execution outcomes',
    ['outcome']
)

TREND_ANALYSES_TOTAL = Counter(
    'capacity_autoscaler_trend_analyses_total',
    'Trend analyses by status',
    ['status']
)

TREND_ANALYSIS_DURATION = Histogram(
    'capacity_autoscaler_trend_analysis_duration_seconds',
    'Time taken by a single trend analysis',
    buckets=[0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 5.0]
)

LOOP_ERRORS_TOTAL = Counter(
    'capacity_autoscaler_loop_errors_total',
    'Errors raised inside periodic loops',
    ['loop']
)


class EventMetricsCollector:
    """Records event bus activity"""

    def record_event_published(self, event_type: str):
        EVENT_BUS_PUBLISHED_TOTAL.labels(event_type=event_type).inc()

    def record_event_processed(self, event_type: str, handler: str, success: bool, duration: float):
        status = 'success' if success else 'failed'
        EVENT_BUS_PROCESSED_TOTAL.labels(event_type=event_type, handler=handler, status=status).inc()
        EVENT_BUS_HANDLER_DURATION.labels(event_type=event_type, handler=handler).observe(duration)

    def update_subscriber_count(self, event_type: str, count: int):
        EVENT_BUS_SUBSCRIBERS.labels(event_type=event_type).set(count)


class EventMetricsHandler(EventHandler):
    """Turns capacity events into Prometheus counters and gauges"""

    SCALING_OUTCOMES = {
        EventType.SCALING_EXECUTED: 'executed',
        EventType.SCALING_FAILED: 'failed',
        EventType.SCALING_SKIPPED: 'skipped',
        EventType.ROLLBACK_FAILED: 'rollback_failed',
    }

    def __init__(self):
        super().__init__("event_metrics")
        self.active_alert_ids: Set[str] = set()

    async def handle(self, event: Event) -> bool:
        event_type = event.event_type
        data = event.data

        if event_type == EventType.ALERT_CREATED:
            ALERTS_CREATED_TOTAL.labels(severity=str(data["severity"])).inc()
            self.active_alert_ids.add(data["alertId"])
        elif event_type in (EventType.ALERT_ACKNOWLEDGED, EventType.ALERT_RESOLVED, EventType.ALERT_SUPPRESSED):
            self.active_alert_ids.discard(data["alertId"])
        elif event_type == EventType.ALERT_ESCALATED:
            ALERT_ESCALATIONS_TOTAL.labels(level=str(data["escalationLevel"])).inc()
        elif event_type == EventType.SCALING_DECISION_MADE:
            SCALING_DECISIONS_TOTAL.labels(action=str(data["action"])).inc()
        elif event_type in self.SCALING_OUTCOMES:
            SCALING_OUTCOMES_TOTAL.labels(outcome=self.SCALING_OUTCOMES[event_type]).inc()
        elif event_type == EventType.ANALYSIS_COMPLETED:
            TREND_ANALYSES_TOTAL.labels(status='completed').inc()
            TREND_ANALYSIS_DURATION.observe(float(data["analysisTime"]))
        elif event_type == EventType.ANALYSIS_FAILED:
            TREND_ANALYSES_TOTAL.labels(status='failed').inc()
        elif event_type == EventType.EVALUATION_ERROR:
            LOOP_ERRORS_TOTAL.labels(loop='evaluation').inc()
        elif event_type == EventType.SCHEDULED_ANALYSIS_ERROR:
            LOOP_ERRORS_TOTAL.labels(loop='trend_analysis').inc()
        elif event_type == EventType.SHUTDOWN and data.get("component") == "threshold_evaluator":
            self.active_alert_ids.clear()

        ACTIVE_ALERTS.set(len(self.active_alert_ids))
        return True
