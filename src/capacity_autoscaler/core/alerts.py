#!/usr/bin/env python3
"""
Alert notification fan-out
"""

import logging
from typing import Iterable, List, Optional

from ..models.alerts import AlertAction, AlertActionType, CapacityAlert
from .interfaces import LoggingNotificationChannel, NotificationChannel

logger = logging.getLogger(__name__)


class AlertManager:
    """
    Sends alerts to notification channels

    Delivery is best effort: a failing channel is logged and the remaining
    channels are still notified. Nothing raised by a channel reaches the caller.
    """

    def __init__(self, channels: Optional[Iterable[NotificationChannel]] = None):
        self.channels: List[NotificationChannel] = list(channels) if channels is not None else [LoggingNotificationChannel()]

    def add_channel(self, channel: NotificationChannel):
        self.channels.append(channel)

    def remove_channel(self, channel_type: str) -> int:
        before = len(self.channels)
        self.channels = [c for c in self.channels if c.channel_type != channel_type]
        return before - len(self.channels)

    def active_channels(self, channel_type: Optional[str] = None) -> List[NotificationChannel]:
        channels = [c for c in self.channels if c.is_active]
        if channel_type is not None:
            channels = [c for c in channels if c.channel_type == channel_type]
        return sorted(channels, key=lambda c: c.priority)

    async def send_alert(self, alert: CapacityAlert) -> int:
        """Notify every active channel; returns the number of successful deliveries"""
        return await self._deliver(alert, self.active_channels())

    async def execute_actions(self, alert: CapacityAlert, actions: Iterable[AlertAction]) -> int:
        """Run escalation actions in order by delivering to channels of the matching type"""
        delivered = 0
        for action in sorted(actions, key=lambda a: a.order):
            if action.type is AlertActionType.AUTO_SCALE:
                # Scaling is owned by the decision engine
                continue
            channels = self.active_channels(action.type.value)
            if not channels:
                logger.warning(f"No active {action.type.value} channel for alert {alert.id}, falling back to log")
                channels = self.active_channels(AlertActionType.LOG.value)
            delivered += await self._deliver(alert, channels)
        return delivered

    async def _deliver(self, alert: CapacityAlert, channels: List[NotificationChannel]) -> int:
        delivered = 0
        for channel in channels:
            try:
                await channel.send(alert)
                delivered += 1
            except Exception as e:
                logger.error(f"Failed to send alert {alert.id} via {channel.channel_type}: {e}")
        return delivered
