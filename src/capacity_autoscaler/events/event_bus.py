#!/usr/bin/env python3
"""
In-process asynchronous event bus
"""

import asyncio
import logging
import time
from collections import defaultdict, deque
from typing import Any, Deque, Dict, List, Optional, Type

from .base import Event, EventHandler, EventType
from .event_metrics import EventMetricsCollector

logger = logging.getLogger(__name__)


class EventBus:
    """Dispatches published events to subscribed handlers and keeps a bounded history"""

    def __init__(self, history_size: int = 1000, metrics: Optional[EventMetricsCollector] = None):
        """
        Args:
            history_size: Recent events kept for get_recent_events and get_events_by_type
            metrics: Collector for publish counts, handler outcomes and latency
        """
        self.subscribers: Dict[EventType, List[EventHandler]] = defaultdict(list)
        self.wildcard_subscribers: List[EventHandler] = []
        self.history: Deque[Event] = deque(maxlen=history_size)
        self.metrics = metrics

    async def subscribe(self, event_type: EventType, handler: EventHandler):
        """Deliver ``event_type`` to ``handler``; subscribing twice is a no-op"""
        handler.subscribe(event_type)
        if handler not in self.subscribers[event_type]:
            self.subscribers[event_type].append(handler)
        self._update_subscriber_metric(event_type)
        logger.debug(f"{handler.name} subscribed to {event_type.value}")

    async def subscribe_all(self, handler: EventHandler):
        """Deliver every event type to ``handler`` (metrics and stream export)"""
        for event_type in EventType:
            handler.subscribe(event_type)
        if handler not in self.wildcard_subscribers:
            self.wildcard_subscribers.append(handler)
        logger.debug(f"{handler.name} subscribed to all events")

    async def unsubscribe(self, event_type: EventType, handler: EventHandler):
        if handler not in self.subscribers[event_type]:
            return
        self.subscribers[event_type].remove(handler)
        handler.unsubscribe(event_type)
        self._update_subscriber_metric(event_type)
        logger.debug(f"{handler.name} unsubscribed from {event_type.value}")

    async def unsubscribe_all(self, handler: EventHandler):
        if handler in self.wildcard_subscribers:
            self.wildcard_subscribers.remove(handler)
        for event_type in EventType:
            if handler in self.subscribers.get(event_type, []):
                self.subscribers[event_type].remove(handler)
                self._update_subscriber_metric(event_type)
            handler.unsubscribe(event_type)
        logger.debug(f"{handler.name} unsubscribed from all events")

    def handlers_for(self, event_type: EventType) -> List[EventHandler]:
        handlers = list(self.subscribers.get(event_type, []))
        for handler in self.wildcard_subscribers:
            if handler not in handlers and handler.is_subscribed(event_type):
                handlers.append(handler)
        return handlers

    async def publish(self, event: Event) -> bool:
        """
        Publish an event to every subscribed handler

        Handlers run concurrently; a failing handler is logged and never
        affects the publisher or the other handlers.

        Returns:
            True if every handler succeeded, False otherwise
        """
        self.history.append(event)
        if self.metrics:
            self.metrics.record_event_published(event.event_type.value)

        handlers = self.handlers_for(event.event_type)
        if not handlers:
            return True

        results = await asyncio.gather(
            *(self._run_handler(handler, event) for handler in handlers),
            return_exceptions=True
        )

        success = True
        for handler, result in zip(handlers, results):
            if isinstance(result, Exception):
                logger.error(f"Handler {handler.name} failed for event {event.event_type.value}: {result}")
                success = False
            elif result is False:
                success = False
        return success

    async def emit(self, event_cls: Type[Event], source: str, **data: Any) -> Event:
        """Build an event of ``event_cls`` from keyword payload and publish it"""
        event = event_cls(data=data, source=source)
        await self.publish(event)
        return event

    async def _run_handler(self, handler: EventHandler, event: Event):
        start = time.perf_counter()
        success = False
        try:
            result = await handler.handle(event)
            success = result is not False
            return result
        finally:
            if self.metrics:
                self.metrics.record_event_processed(
                    event.event_type.value, handler.name, success, time.perf_counter() - start
                )

    def get_recent_events(self, limit: int = 100) -> List[Event]:
        """Most recent events, newest last"""
        if limit <= 0:
            return []
        return list(self.history)[-limit:]

    def get_events_by_type(self, event_type: EventType, limit: int = 100) -> List[Event]:
        matching = [event for event in self.history if event.event_type == event_type]
        return matching[-limit:] if limit > 0 else []

    def clear_history(self):
        self.history.clear()

    def _update_subscriber_metric(self, event_type: EventType):
        if self.metrics:
            self.metrics.update_subscriber_count(event_type.value, len(self.subscribers[event_type]))
