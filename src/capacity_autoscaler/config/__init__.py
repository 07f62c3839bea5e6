"""
Configuration module for capacity autoscaler settings
"""

from .settings import (
    Settings,
    EvaluatorSettings,
    ScalingSettings,
    TrendSettings,
    LoggingSettings,
    MetricsSettings,
    RedisSettings,
)

__all__ = [
    "Settings",
    "EvaluatorSettings",
    "ScalingSettings",
    "TrendSettings",
    "LoggingSettings",
    "MetricsSettings",
    "RedisSettings",
]
