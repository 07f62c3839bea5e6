#!/usr/bin/env python3
"""
Shared fixtures for the capacity autoscaler test suite
"""

import pytest

from capacity_autoscaler.config.settings import EvaluatorSettings
from capacity_autoscaler.core.alerts import AlertManager
from capacity_autoscaler.core.evaluator import ThresholdEvaluator
from capacity_autoscaler.core.interfaces import LoggingNotificationChannel
from capacity_autoscaler.core.registry import ThresholdRegistry
from capacity_autoscaler.core.scheduler import ManualClock, TaskScheduler
from capacity_autoscaler.events.event_bus import EventBus
from tests.helpers import START


@pytest.fixture
def clock():
    return ManualClock(START)


@pytest.fixture
def scheduler(clock):
    return TaskScheduler(clock)


@pytest.fixture
def event_bus():
    return EventBus()


@pytest.fixture
def registry(event_bus, clock):
    return ThresholdRegistry(event_bus, clock)


@pytest.fixture
def log_channel():
    return LoggingNotificationChannel()


@pytest.fixture
def alert_manager(log_channel):
    return AlertManager([log_channel])


@pytest.fixture
def evaluator_settings():
    return EvaluatorSettings(enable_auto_scaling=False)


@pytest.fixture
def evaluator(registry, scheduler, event_bus, alert_manager, evaluator_settings):
    return ThresholdEvaluator(
        registry,
        scheduler=scheduler,
        event_bus=event_bus,
        alert_manager=alert_manager,
        settings=evaluator_settings,
    )
