#!/usr/bin/env python3
"""
Escalation chains for active alerts, driven by the task scheduler
"""

import logging
from typing import Callable, Dict, Iterable, List, Optional

from ..events.core_events import AlertEscalated
from ..events.event_bus import EventBus
from ..models.alerts import CapacityAlert, EscalationRule
from .alerts import AlertManager
from .scheduler import TaskScheduler, TimerHandle

logger = logging.getLogger(__name__)

ESCALATION_TAG = "escalation"


class EscalationManager:
    """
    Schedules the next escalation rule for each alert

    Each rule's delay counts from the moment it is scheduled, i.e. from alert
    creation for the first rule and from the previous escalation afterwards.
    When a timer fires the alert is looked up again and only escalated if it
    is still ACTIVE.
    """

    def __init__(
        self,
        scheduler: TaskScheduler,
        alert_manager: AlertManager,
        event_bus: EventBus,
        alert_lookup: Callable[[str], Optional[CapacityAlert]],
        rules: Iterable[EscalationRule] = (),
    ):
        self.scheduler = scheduler
        self.alert_manager = alert_manager
        self.event_bus = event_bus
        self.alert_lookup = alert_lookup
        self.rules: List[EscalationRule] = sorted(rules, key=lambda r: r.escalation_level)
        self.handles: Dict[str, TimerHandle] = {}

    def next_rule(self, current_level: int) -> Optional[EscalationRule]:
        for rule in self.rules:
            if rule.escalation_level > current_level:
                return rule
        return None

    def schedule(self, alert: CapacityAlert) -> Optional[TimerHandle]:
        rule = self.next_rule(alert.escalation_level)
        if rule is None:
            return None

        self.cancel(alert.id)
        handle = self.scheduler.call_later(
            rule.delay,
            self._escalate,
            alert.id,
            rule,
            tags=(ESCALATION_TAG, alert.id, alert.threshold_id),
        )
        self.handles[alert.id] = handle
        logger.debug(f"Escalation to level {rule.escalation_level} for alert {alert.id} in {rule.delay}s")
        return handle

    def cancel(self, alert_id: str) -> bool:
        handle = self.handles.pop(alert_id, None)
        return handle.cancel() if handle else False

    def cancel_for_threshold(self, threshold_id: str) -> int:
        cancelled = self.scheduler.cancel_tagged(threshold_id)
        self.handles = {aid: h for aid, h in self.handles.items() if not h.cancelled}
        return cancelled

    def cancel_all(self) -> int:
        cancelled = self.scheduler.cancel_tagged(ESCALATION_TAG)
        self.handles.clear()
        return cancelled

    async def _escalate(self, alert_id: str, rule: EscalationRule):
        self.handles.pop(alert_id, None)
        alert = self.alert_lookup(alert_id)
        if alert is None or not alert.is_active:
            logger.debug(f"Skipping escalation of alert {alert_id}: no longer active")
            return

        alert.escalation_level = rule.escalation_level
        logger.warning(f"Escalating alert {alert.id} to level {rule.escalation_level}")
        await self.alert_manager.execute_actions(alert, rule.actions)
        await self.event_bus.emit(
            AlertEscalated, "threshold_evaluator",
            alertId=alert.id,
            escalationLevel=alert.escalation_level,
        )
        self.schedule(alert)
