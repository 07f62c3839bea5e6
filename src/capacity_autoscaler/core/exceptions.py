#!/usr/bin/env python3
"""
Exception hierarchy for the capacity autoscaler
"""

from typing import List, Optional


class CapacityAutoscalerError(Exception):
    """Base class for all capacity autoscaler errors"""


class ThresholdValidationError(CapacityAutoscalerError, ValueError):
    """A threshold definition violates one of its invariants"""

    def __init__(self, errors: List[str]):
        self.errors = list(errors)
        super().__init__("; ".join(self.errors))


class ThresholdNotFoundError(CapacityAutoscalerError, KeyError):
    """No threshold is registered under the given id"""

    def __init__(self, threshold_id: str):
        self.threshold_id = threshold_id
        super().__init__(f"Threshold {threshold_id} not found")

    def __str__(self):
        return self.args[0]


class AlertNotFoundError(CapacityAutoscalerError, KeyError):
    """No alert is known under the given id"""

    def __init__(self, alert_id: str):
        self.alert_id = alert_id
        super().__init__(f"Alert {alert_id} not found")

    def __str__(self):
        return self.args[0]


class InsufficientDataError(CapacityAutoscalerError):
    """Not enough data points to run an analysis"""

    def __init__(self, available: int, required: int, resource_id: Optional[str] = None):
        self.available = available
        self.required = required
        self.resource_id = resource_id
        target = f" for {resource_id}" if resource_id else ""
        super().__init__(
            f"Insufficient data points{target}: {available} available, {required} required"
        )


class ScalingExecutionError(CapacityAutoscalerError):
    """The actuator failed to apply a scaling decision"""


class RollbackFailedError(ScalingExecutionError):
    """Rolling back a failed scaling execution also failed"""

    def __init__(self, resource_id: str, error: Exception, original_error: Optional[Exception] = None):
        self.resource_id = resource_id
        self.error = error
        self.original_error = original_error
        super().__init__(f"Rollback failed for {resource_id}: {error}")
