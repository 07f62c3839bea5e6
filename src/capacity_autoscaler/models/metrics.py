#!/usr/bin/env python3
"""
Pydantic models for resource metric samples and time series
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Iterable

from pydantic import BaseModel, ConfigDict, Field


class CpuMetrics(BaseModel):
    """CPU reading for a single sample"""
    model_config = ConfigDict(frozen=True)

    usage: float = Field(0.0, ge=0, description="CPU usage percentage")
    cores: int = Field(0, ge=0, description="Number of cores")


class MemoryMetrics(BaseModel):
    """Memory reading for a single sample"""
    model_config = ConfigDict(frozen=True)

    usage: float = Field(0.0, ge=0, description="Memory usage percentage")
    total: float = Field(0.0, ge=0, description="Total memory in megabytes")


class DiskMetrics(BaseModel):
    """Disk reading for a single sample"""
    model_config = ConfigDict(frozen=True)

    usage: float = Field(0.0, ge=0, description="Disk usage percentage")
    iops: float = Field(0.0, ge=0, description="I/O operations per second")


class NetworkMetrics(BaseModel):
    """Network reading for a single sample"""
    model_config = ConfigDict(frozen=True)

    bytes_in: float = Field(0.0, ge=0, description="Inbound bytes per interval")
    bytes_out: float = Field(0.0, ge=0, description="Outbound bytes per interval")
    latency: float = Field(0.0, ge=0, description="Latency in milliseconds")


class ResourceMetrics(BaseModel):
    """One immutable metric sample for a resource"""
    model_config = ConfigDict(frozen=True)

    resource_id: str = Field(..., min_length=1, description="Identifier of the sampled resource")
    resource_type: str = Field("server", description="Kind of resource (server, database, ...)")
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    cpu: CpuMetrics = Field(default_factory=CpuMetrics)
    memory: MemoryMetrics = Field(default_factory=MemoryMetrics)
    disk: DiskMetrics = Field(default_factory=DiskMetrics)
    network: NetworkMetrics = Field(default_factory=NetworkMetrics)
    custom: Dict[str, float] = Field(default_factory=dict, description="Free-form named metrics")

    def value_of(self, metric: str) -> float:
        """
        Extract a named metric from this sample

        Unknown names are looked up in ``custom`` and default to 0.0.
        """
        if metric in ("cpu_usage", "cpu.usage"):
            return self.cpu.usage
        elif metric in ("memory_usage", "memory.usage"):
            return self.memory.usage
        elif metric in ("disk_usage", "disk.usage"):
            return self.disk.usage
        elif metric in ("network_in", "network.in"):
            return self.network.bytes_in
        elif metric in ("network_out", "network.out"):
            return self.network.bytes_out
        return float(self.custom.get(metric, 0.0))


@dataclass
class TimeSeries:
    """Parallel values/timestamps for one metric of one resource"""
    values: List[float] = field(default_factory=list)
    timestamps: List[datetime] = field(default_factory=list)

    def __post_init__(self):
        if len(self.values) != len(self.timestamps):
            raise ValueError("values and timestamps must have the same length")

    def __len__(self) -> int:
        return len(self.values)

    @classmethod
    def from_metrics(cls, metrics: Iterable[ResourceMetrics], metric: str) -> "TimeSeries":
        ordered = sorted(metrics, key=lambda m: m.timestamp)
        return cls(
            values=[m.value_of(metric) for m in ordered],
            timestamps=[m.timestamp for m in ordered],
        )
