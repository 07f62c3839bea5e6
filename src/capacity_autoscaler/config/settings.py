#!/usr/bin/env python3
"""
Configuration settings using Pydantic for environment variable loading
"""

import os
from typing import Optional, Dict, Any, List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _default_escalation_rules() -> List[Dict[str, Any]]:
    return [
        {
            "escalation_level": 1,
            "delay": 900.0,
            "actions": [{"type": "email", "configuration": {"priority": "high"}, "order": 1}],
        },
        {
            "escalation_level": 2,
            "delay": 1800.0,
            "actions": [
                {"type": "slack", "configuration": {"channel": "#capacity-alerts"}, "order": 1},
                {"type": "pagerduty", "configuration": {"urgency": "high"}, "order": 2},
            ],
        },
    ]


class EvaluatorSettings(BaseSettings):
    """Threshold evaluation and alerting settings"""
    model_config = SettingsConfigDict(env_prefix="CAPACITY_EVALUATOR_", extra="ignore")

    evaluation_interval: float = Field(60.0, gt=0, description="Seconds between evaluation ticks")
    max_concurrent_alerts: int = Field(50, ge=1)
    enable_auto_scaling: bool = True
    batch_size: int = Field(5, ge=1, description="Resources evaluated concurrently per chunk")
    history_size: int = Field(60, ge=1, description="Samples kept per resource for look-back")
    confidence_window: int = Field(10, ge=1)
    escalation_rules: List[Dict[str, Any]] = Field(default_factory=_default_escalation_rules)


class ScalingSettings(BaseSettings):
    """Scaling decision and execution settings"""
    model_config = SettingsConfigDict(env_prefix="CAPACITY_SCALING_", extra="ignore")

    min_confidence: float = Field(0.7, ge=0, le=1)
    confidence_window: int = Field(5, ge=1)
    dry_run: bool = True


class TrendSettings(BaseSettings):
    """Trend analysis settings"""
    model_config = SettingsConfigDict(env_prefix="CAPACITY_TREND_", extra="ignore")

    analysis_interval: float = Field(3600.0, gt=0)
    min_data_points: int = Field(24, ge=1)
    seasonality_detection_threshold: float = Field(0.1, ge=0)
    change_point_sensitivity: float = Field(2.0, ge=0)
    forecast_horizon: int = Field(168, ge=1)
    enable_seasonality_detection: bool = True
    enable_change_point_detection: bool = True
    enable_forecast_generation: bool = True
    batch_size: int = Field(5, ge=1)
    lookback: float = Field(7 * 24 * 3600.0, gt=0, description="Window of history used by scheduled sweeps")
    max_stored_trends: int = Field(1000, ge=1, description="Completed trends kept for queries, oldest evicted first")


class LoggingSettings(BaseSettings):
    """Logging configuration settings"""
    model_config = SettingsConfigDict(env_prefix="LOG_", extra="ignore")

    level: str = "INFO"
    file: Optional[str] = None
    enable_colors: bool = True


class MetricsSettings(BaseSettings):
    """Prometheus exporter settings"""
    model_config = SettingsConfigDict(env_prefix="CAPACITY_METRICS_", extra="ignore")

    enabled: bool = True
    port: int = 9091


class RedisSettings(BaseSettings):
    """Redis stream export settings"""
    model_config = SettingsConfigDict(env_prefix="REDIS_", extra="ignore")

    enabled: bool = False
    host: str = "localhost"
    port: int = 6379
    db: int = 0
    password: Optional[str] = None
    stream_name: str = "capacity_events"
    maxlen: int = 10000

    @property
    def url(self) -> str:
        if self.password:
            return f"redis://:{self.password}@{self.host}:{self.port}/{self.db}"
        return f"redis://{self.host}:{self.port}/{self.db}"


class Settings(BaseSettings):
    """Main settings class that includes all sub-settings"""
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    environment: str = "development"
    debug: bool = False

    evaluator: EvaluatorSettings = Field(default_factory=EvaluatorSettings)
    scaling: ScalingSettings = Field(default_factory=ScalingSettings)
    trend: TrendSettings = Field(default_factory=TrendSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    metrics: MetricsSettings = Field(default_factory=MetricsSettings)
    redis: RedisSettings = Field(default_factory=RedisSettings)

    def get_config_dict(self) -> Dict[str, Any]:
        """Flatten settings into a plain dictionary, e.g. for startup logging"""
        return {
            "environment": self.environment,
            "debug": self.debug,
            "evaluator": self.evaluator.model_dump(),
            "scaling": self.scaling.model_dump(),
            "trend": self.trend.model_dump(),
            "logging": self.logging.model_dump(),
            "metrics": self.metrics.model_dump(),
            "redis": self.redis.model_dump(exclude={"password"}),
        }

    @classmethod
    def load_from_yaml_with_env_override(cls, yaml_path: str) -> "Settings":
        """Load settings from a YAML file, substituting ${VAR} references from the environment"""
        import yaml

        yaml_config: Dict[str, Any] = {}
        if os.path.exists(yaml_path):
            with open(yaml_path, 'r') as f:
                yaml_content = f.read()
                for key, value in os.environ.items():
                    yaml_content = yaml_content.replace(f"${{{key}}}", value)
                yaml_config = yaml.safe_load(yaml_content) or {}

        return cls(
            environment=yaml_config.get("environment", "development"),
            debug=yaml_config.get("debug", False),
            evaluator=EvaluatorSettings(**(yaml_config.get("evaluator") or {})),
            scaling=ScalingSettings(**(yaml_config.get("scaling") or {})),
            trend=TrendSettings(**(yaml_config.get("trend") or {})),
            logging=LoggingSettings(**(yaml_config.get("logging") or {})),
            metrics=MetricsSettings(**(yaml_config.get("metrics") or {})),
            redis=RedisSettings(**(yaml_config.get("redis") or {})),
        )
