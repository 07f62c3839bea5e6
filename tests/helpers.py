"""
Sample builders shared by the test modules
"""

from datetime import datetime, timedelta, timezone

from capacity_autoscaler.models.metrics import CpuMetrics, MemoryMetrics, ResourceMetrics

START = datetime(2024, 1, 1, tzinfo=timezone.utc)


def make_sample(resource_id: str, cpu: float, at: datetime, memory: float = 50.0) -> ResourceMetrics:
    return ResourceMetrics(
        resource_id=resource_id,
        timestamp=at,
        cpu=CpuMetrics(usage=cpu, cores=4),
        memory=MemoryMetrics(usage=memory, total=8192),
    )


def hourly_series(resource_id: str, values, end: datetime = START):
    """Hourly CPU samples whose last point lands on ``end``"""
    first = end - timedelta(hours=len(values) - 1)
    return [make_sample(resource_id, value, first + timedelta(hours=i)) for i, value in enumerate(values)]
