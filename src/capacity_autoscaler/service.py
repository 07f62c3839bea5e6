#!/usr/bin/env python3
"""
Capacity Autoscaler - Main Entry Point
Evaluates scaling thresholds, raises and escalates alerts, makes scaling
decisions and analyses capacity trends
"""

import asyncio
import os
import signal
import sys
from typing import Iterable, Optional

from prometheus_client import start_http_server

from .analysis.trend_analyzer import TrendAnalyzer
from .config.settings import Settings
from .core.alerts import AlertManager
from .core.evaluator import ThresholdEvaluator
from .core.interfaces import (
    CapacityProvider,
    DryRunScalingExecutor,
    InMemoryMetricsStore,
    MetricsHistoryProvider,
    MetricsSampler,
    NotificationChannel,
    ScalingExecutor,
)
from .core.logging_config import get_logger, setup_logging
from .core.registry import ThresholdRegistry
from .core.scaling import ScalingDecisionEngine
from .core.scheduler import Clock, TaskScheduler
from .events.event_bus import EventBus
from .events.event_metrics import EventMetricsCollector, EventMetricsHandler
from .events.redis_sink import RedisStreamPublisher
from .models.metrics import ResourceMetrics


class CapacityMonitorService:
    """Main service that wires and coordinates all components"""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        config_path: Optional[str] = None,
        sampler: Optional[MetricsSampler] = None,
        history_provider: Optional[MetricsHistoryProvider] = None,
        executor: Optional[ScalingExecutor] = None,
        channels: Optional[Iterable[NotificationChannel]] = None,
        clock: Optional[Clock] = None,
        configure_logging: bool = True,
    ):
        """
        Initialize the capacity monitor service

        Args:
            settings: Explicit settings; loaded from ``config_path`` or the environment when omitted
            config_path: Optional YAML configuration file
            sampler: Source of metric batches; an in-memory store when omitted
            history_provider: Source of metric history for trend analysis
            executor: Scaling actuator; only called when ``scaling.dry_run`` is off
            channels: Notification channels for alerts
            clock: Time source, a ManualClock in tests
            configure_logging: Whether to install the root logging handlers
        """
        if settings is not None:
            self.settings = settings
        elif config_path and os.path.exists(config_path):
            self.settings = Settings.load_from_yaml_with_env_override(config_path)
        else:
            self.settings = Settings()

        if configure_logging:
            setup_logging(
                level=self.settings.logging.level,
                log_file=self.settings.logging.file,
                enable_colors=self.settings.logging.enable_colors,
            )
        self.logger = get_logger(__name__)
        self.running = False

        self.store = InMemoryMetricsStore()
        self.sampler = sampler or self.store
        self.history_provider = history_provider or self.store

        # A supplied executor may still report capacity in dry-run mode; it is never asked to act
        capacity_provider = executor if isinstance(executor, CapacityProvider) else None
        if self.settings.scaling.dry_run:
            if executor is not None:
                self.logger.info("Dry-run mode: the supplied scaling executor will not be called")
            executor = DryRunScalingExecutor()
        elif executor is None:
            self.logger.warning("No scaling executor supplied, falling back to dry run")
            executor = DryRunScalingExecutor()
        self.executor = executor
        if capacity_provider is None and isinstance(executor, CapacityProvider):
            capacity_provider = executor
        self.capacity_provider = capacity_provider

        self.scheduler = TaskScheduler(clock)
        self.metrics_collector = EventMetricsCollector()
        self.event_bus = EventBus(metrics=self.metrics_collector)
        self.metrics_handler = EventMetricsHandler()
        self.redis_publisher: Optional[RedisStreamPublisher] = None
        if self.settings.redis.enabled:
            self.redis_publisher = RedisStreamPublisher(
                url=self.settings.redis.url,
                stream_name=self.settings.redis.stream_name,
                maxlen=self.settings.redis.maxlen,
            )

        self.registry = ThresholdRegistry(self.event_bus, self.scheduler.clock)
        self.alert_manager = AlertManager(channels)
        self.decision_engine = ScalingDecisionEngine(
            executor=self.executor,
            event_bus=self.event_bus,
            capacity_provider=self.capacity_provider,
            settings=self.settings.scaling,
            clock=self.scheduler.clock,
        )
        self.evaluator = ThresholdEvaluator(
            self.registry,
            scheduler=self.scheduler,
            event_bus=self.event_bus,
            alert_manager=self.alert_manager,
            decision_engine=self.decision_engine,
            sampler=self.sampler,
            settings=self.settings.evaluator,
        )
        self.analyzer = TrendAnalyzer(
            history_provider=self.history_provider,
            event_bus=self.event_bus,
            scheduler=self.scheduler,
            settings=self.settings.trend,
        )

        self.logger.info("Capacity monitor service initialized")
        if self.settings.debug:
            self.logger.info(f"Debug mode enabled. Settings: {self.settings.get_config_dict()}")

    def ingest(self, metrics: Iterable[ResourceMetrics]):
        """Buffer samples for the next evaluation tick and for trend history"""
        self.store.record(metrics)

    async def start(self, resource_ids: Iterable[str] = ("default",)):
        """Subscribe handlers, register default thresholds and start the periodic tasks"""
        await self.event_bus.subscribe_all(self.metrics_handler)
        if self.redis_publisher is not None:
            try:
                await self.redis_publisher.connect()
                await self.event_bus.subscribe_all(self.redis_publisher)
            except Exception as e:
                self.logger.error(f"Redis export disabled: {e}")
                self.redis_publisher = None

        if self.settings.metrics.enabled:
            start_http_server(self.settings.metrics.port)
            self.logger.info(f"Prometheus metrics server started on :{self.settings.metrics.port}")

        for resource_id in resource_ids:
            for threshold in await self.registry.register_defaults(resource_id):
                self.analyzer.watch(threshold.resource_id, threshold.metric)

        self.evaluator.start()
        self.analyzer.start()
        self.running = True
        self.logger.info("Capacity monitor service started")

    async def run(self):
        """Start the service and run the scheduler until stopped"""
        await self.start()
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, self._signal_handler, sig)
            except NotImplementedError:
                self.logger.warning(f"Signal handler for {sig.name} not supported on this platform")

        try:
            await self.scheduler.run_forever()
        finally:
            await self.shutdown()

    def _signal_handler(self, signum):
        """Handle shutdown signals"""
        self.logger.info(f"Received signal {signum}, shutting down...")
        self.stop()

    def stop(self):
        self.running = False
        self.scheduler.stop()

    async def shutdown(self):
        """Cancel every scheduled task and release external connections"""
        self.stop()
        await self.evaluator.shutdown()
        await self.analyzer.shutdown()
        cancelled = self.scheduler.cancel_all()
        if self.redis_publisher is not None:
            await self.event_bus.unsubscribe_all(self.redis_publisher)
            await self.redis_publisher.disconnect()
        self.logger.info(f"Capacity monitor service stopped ({cancelled} pending tasks cancelled)")


def main():
    """Entry point"""
    import argparse

    parser = argparse.ArgumentParser(description='Capacity Autoscaler')
    parser.add_argument(
        '--config',
        default=os.getenv('CONFIG_PATH', 'config/config.yaml'),
        help='Path to configuration file'
    )
    parser.add_argument(
        '--dry-run',
        action='store_true',
        help='Run in dry-run mode (no actual scaling)'
    )
    parser.add_argument(
        '--log-level',
        default=None,
        help='Override the configured log level'
    )

    args = parser.parse_args()

    if args.config and os.path.exists(args.config):
        settings = Settings.load_from_yaml_with_env_override(args.config)
    else:
        settings = Settings()
    if args.dry_run:
        settings.scaling.dry_run = True
    if args.log_level:
        settings.logging.level = args.log_level

    service = CapacityMonitorService(settings=settings)
    if args.dry_run:
        service.logger.info("Dry-run mode enabled")

    try:
        asyncio.run(service.run())
    except KeyboardInterrupt:
        service.logger.info("Received keyboard interrupt")
    except Exception as e:
        service.logger.error(f"Fatal error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
