#!/usr/bin/env python3
"""
Capacity trend analysis: decomposition, seasonality, change points, forecasts
and recommendations for one resource metric at a time
"""

import asyncio
import logging
import time
import uuid
from collections import Counter, OrderedDict
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ..config.settings import TrendSettings
from ..core.exceptions import InsufficientDataError
from ..core.interfaces import MetricsHistoryProvider
from ..core.scheduler import TaskScheduler, TimerHandle
from ..events.core_events import (
    AnalysisCompleted,
    AnalysisFailed,
    AnalysisStarted,
    BatchAnalysisCompleted,
    BatchAnalysisStarted,
    ScheduledAnalysisError,
    Shutdown,
)
from ..events.event_bus import EventBus
from ..models.metrics import ResourceMetrics, TimeSeries
from ..models.trends import (
    Anomaly,
    AnomalySeverity,
    CapacityTrend,
    ChangePoint,
    Forecast,
    RecommendationPriority,
    RecommendationType,
    SeasonalPattern,
    Seasonality,
    TimeRange,
    TrendAnalysisRequest,
    TrendComponents,
    TrendRecommendation,
)
from .change_points import ChangePointDetector
from .decomposition import TimeSeriesDecomposer
from .forecasting import ForecastEngine
from .seasonality import SeasonalityDetector
from .statistics import correlation, describe, linear_slope, trend_direction

logger = logging.getLogger(__name__)

ANALYSIS_TAG = "trend_analysis"
SOURCE = "trend_analyzer"
RECENT_CHANGE_WINDOW = timedelta(days=7)


class TrendAnalyzer:
    """
    Analyses metric history and keeps the resulting trends by id

    History comes from the ``metrics`` argument when given, otherwise from the
    configured MetricsHistoryProvider.
    """

    def __init__(
        self,
        history_provider: Optional[MetricsHistoryProvider] = None,
        event_bus: Optional[EventBus] = None,
        scheduler: Optional[TaskScheduler] = None,
        settings: Optional[TrendSettings] = None,
    ):
        self.history_provider = history_provider
        self.event_bus = event_bus or EventBus()
        self.scheduler = scheduler or TaskScheduler()
        self.settings = settings or TrendSettings()

        self.decomposer = TimeSeriesDecomposer()
        self.seasonality_detector = SeasonalityDetector(self.settings.seasonality_detection_threshold)
        self.change_point_detector = ChangePointDetector(self.settings.change_point_sensitivity)
        self.forecast_engine = ForecastEngine(self.settings.forecast_horizon)

        self.trends: "OrderedDict[str, CapacityTrend]" = OrderedDict()
        self.watched: Dict[Tuple[str, str], None] = OrderedDict()
        self._ticker: Optional[TimerHandle] = None

    async def analyze_trend(
        self,
        request: TrendAnalysisRequest,
        metrics: Optional[Sequence[ResourceMetrics]] = None,
    ) -> CapacityTrend:
        """
        Analyse one resource metric over the requested time range

        Raises:
            InsufficientDataError: fewer than ``min_data_points`` samples
        """
        trend_id = f"trend_{request.resource_id}_{request.metric}_{uuid.uuid4().hex[:8]}"
        ids = {"trendId": trend_id, "resourceId": request.resource_id, "metric": request.metric}
        await self.event_bus.emit(AnalysisStarted, SOURCE, **ids)
        started = time.perf_counter()

        try:
            if metrics is None:
                metrics = await self._fetch(request)
            trend = self._analyze(trend_id, request, metrics)
        except Exception as e:
            logger.error(f"Trend analysis failed for {request.resource_id}/{request.metric}: {e}")
            await self.event_bus.emit(AnalysisFailed, SOURCE, error=str(e), **ids)
            raise

        self._store(trend)
        elapsed = time.perf_counter() - started
        logger.info(
            f"Analysed {request.resource_id}/{request.metric}: {trend.direction.value} "
            f"(slope {trend.slope:.4f}, {trend.data_points} points) in {elapsed:.3f}s"
        )
        await self.event_bus.emit(
            AnalysisCompleted, SOURCE,
            analysisTime=elapsed,
            dataPoints=trend.data_points,
            **ids,
        )
        return trend

    def _analyze(self, trend_id: str, request: TrendAnalysisRequest, metrics: Sequence[ResourceMetrics]) -> CapacityTrend:
        series = TimeSeries.from_metrics(metrics, request.metric)
        if len(series) < self.settings.min_data_points:
            raise InsufficientDataError(len(series), self.settings.min_data_points, request.resource_id)

        options = request.options
        components = self.decomposer.decompose(series)

        pattern: Optional[SeasonalPattern] = None
        if options.include_seasonality and self.settings.enable_seasonality_detection:
            pattern = self.seasonality_detector.detect(series)

        change_points: List[ChangePoint] = []
        if options.include_change_points and self.settings.enable_change_point_detection:
            change_points = self.change_point_detector.detect(series)

        if options.include_forecast and self.settings.enable_forecast_generation:
            forecast = self.forecast_engine.generate(series, pattern)
        else:
            forecast = None

        slope = linear_slope(components.trend)
        return CapacityTrend(
            id=trend_id,
            resource_id=request.resource_id,
            metric=request.metric,
            time_range=request.time_range,
            direction=trend_direction(slope),
            slope=slope,
            correlation=correlation(components.original_values, components.trend),
            seasonality=Seasonality.from_pattern(pattern),
            statistics=describe(series.values),
            change_points=tuple(change_points),
            forecast=forecast if forecast is not None else Forecast(),
            recommendations=tuple(self.generate_recommendations(components, pattern, change_points, request)),
            data_points=len(series),
            calculated_at=self.scheduler.now(),
        )

    def generate_recommendations(
        self,
        components: TrendComponents,
        pattern: Optional[SeasonalPattern],
        change_points: Sequence[ChangePoint],
        request: TrendAnalysisRequest,
    ) -> List[TrendRecommendation]:
        recommendations = []
        slope = linear_slope(components.trend)

        if abs(slope) > 0.1:
            direction = "increasing" if slope > 0 else "decreasing"
            recommendations.append(TrendRecommendation(
                type=RecommendationType.SCALE_UP if slope > 0 else RecommendationType.OPTIMIZE,
                priority=RecommendationPriority.HIGH if abs(slope) > 0.5 else RecommendationPriority.MEDIUM,
                message=f"{request.metric} shows {direction} trend with slope {slope:.3f}",
                expected_impact=f"{abs(slope * 100):.1f}% change expected",
                timeframe="Next 7 days",
                confidence=0.8,
            ))

        if pattern is not None and pattern.strength > 0.3:
            recommendations.append(TrendRecommendation(
                type=RecommendationType.OPTIMIZE,
                priority=RecommendationPriority.MEDIUM,
                message=f"Seasonal pattern detected with {pattern.period}h period",
                expected_impact="Predictable capacity planning opportunities",
                timeframe="Next seasonal cycle",
                confidence=pattern.confidence,
            ))

        if change_points and components.timestamps:
            window_end = components.timestamps[-1]
            recent = [
                cp for cp in change_points
                if cp.timestamp is not None and window_end - cp.timestamp < RECENT_CHANGE_WINDOW
            ]
            if recent:
                recommendations.append(TrendRecommendation(
                    type=RecommendationType.INVESTIGATE,
                    priority=RecommendationPriority.HIGH,
                    message=f"{len(recent)} recent change points detected",
                    expected_impact="Potential system instability or configuration changes",
                    timeframe="Immediate",
                    confidence=0.9,
                ))

        # Stable sort keeps insertion order within a priority
        recommendations.sort(key=lambda r: r.priority.rank, reverse=True)
        return recommendations

    async def batch_analyze_trends(self, requests: Sequence[TrendAnalysisRequest]) -> List[CapacityTrend]:
        """Analyse many requests in bounded concurrent chunks; failures are dropped from the result"""
        batch_id = f"batch_{uuid.uuid4().hex[:12]}"
        await self.event_bus.emit(BatchAnalysisStarted, SOURCE, batchId=batch_id, requests=len(requests))
        started = time.perf_counter()

        results: List[CapacityTrend] = []
        size = self.settings.batch_size
        for i in range(0, len(requests), size):
            chunk = requests[i:i + size]
            outcomes = await asyncio.gather(*(self._analyze_safely(r) for r in chunk))
            results.extend(t for t in outcomes if t is not None)

        await self.event_bus.emit(
            BatchAnalysisCompleted, SOURCE,
            batchId=batch_id,
            results=len(results),
            failures=len(requests) - len(results),
            batchTime=time.perf_counter() - started,
        )
        return results

    async def _analyze_safely(self, request: TrendAnalysisRequest) -> Optional[CapacityTrend]:
        try:
            return await self.analyze_trend(request)
        except Exception as e:
            logger.error(f"Batch trend analysis failed for {request.resource_id}: {e}")
            return None

    async def detect_anomalies(
        self,
        request: TrendAnalysisRequest,
        metrics: Optional[Sequence[ResourceMetrics]] = None,
    ) -> Dict[str, Any]:
        """Flag samples more than two standard deviations from the window mean"""
        if metrics is None:
            metrics = await self._fetch(request)
        trend = await self.analyze_trend(request, metrics)
        series = TimeSeries.from_metrics(metrics, request.metric)

        mean = trend.statistics.mean
        std_dev = trend.statistics.std_dev
        anomalies: List[Anomaly] = []
        if std_dev > 0:
            for i, value in enumerate(series.values):
                deviation = abs(value - mean) / std_dev
                if deviation <= 2:
                    continue
                if deviation > 3:
                    severity = AnomalySeverity.HIGH
                elif deviation > 2.5:
                    severity = AnomalySeverity.MEDIUM
                else:
                    severity = AnomalySeverity.LOW
                anomalies.append(Anomaly(
                    index=i,
                    timestamp=series.timestamps[i],
                    value=value,
                    expected_value=mean,
                    deviation=deviation,
                    severity=severity,
                ))

        return {
            "trend": trend,
            "anomalies": anomalies,
            "summary": {
                "total_anomalies": len(anomalies),
                "severity_distribution": dict(Counter(a.severity.value for a in anomalies)),
                "type_distribution": dict(Counter(a.type for a in anomalies)),
            },
        }

    async def compare_resource_trends(
        self,
        resource_ids: Sequence[str],
        metric: str,
        start: datetime,
        end: datetime,
    ) -> Dict[str, Any]:
        """Analyse the same metric for several resources and rank them by slope"""
        requests = [TrendAnalysisRequest(resource_id=rid, metric=metric, start=start, end=end) for rid in resource_ids]
        trends = await self.batch_analyze_trends(requests)
        ordered = sorted(trends, key=lambda t: t.slope, reverse=True)
        rankings = [
            {"resource_id": t.resource_id, "score": t.slope, "rank": rank}
            for rank, t in enumerate(ordered, start=1)
        ]
        return {"trends": trends, "rankings": rankings}

    def _store(self, trend: CapacityTrend):
        self.trends[trend.id] = trend
        # Oldest first; scheduled sweeps add one trend per watched pair per interval
        while len(self.trends) > self.settings.max_stored_trends:
            evicted, _ = self.trends.popitem(last=False)
            logger.debug(f"Evicted trend {evicted}")

    def get_trend(self, trend_id: str) -> Optional[CapacityTrend]:
        return self.trends.get(trend_id)

    def get_all_trends(self) -> List[CapacityTrend]:
        return list(self.trends.values())

    def get_trend_summary(self, time_range: Optional[TimeRange] = None) -> Dict[str, Any]:
        trends = self.get_all_trends()
        if time_range is not None:
            trends = [
                t for t in trends
                if t.time_range.start >= time_range.start and t.time_range.end <= time_range.end
            ]

        total = len(trends)
        if not total:
            return {
                "total_trends": 0,
                "trends_by_direction": {},
                "average_slope": 0.0,
                "seasonality_detection_rate": 0.0,
                "change_point_frequency": 0.0,
            }
        return {
            "total_trends": total,
            "trends_by_direction": dict(Counter(t.direction.value for t in trends)),
            "average_slope": sum(t.slope for t in trends) / total,
            "seasonality_detection_rate": sum(1 for t in trends if t.seasonality.detected) / total,
            "change_point_frequency": sum(len(t.change_points) for t in trends) / total,
        }

    # ------------------------------------------------------------------
    # Scheduled sweep
    # ------------------------------------------------------------------

    def watch(self, resource_id: str, metric: str):
        """Include a resource metric in the scheduled analysis sweep"""
        self.watched[(resource_id, metric)] = None

    def unwatch(self, resource_id: str, metric: str):
        self.watched.pop((resource_id, metric), None)

    def start(self) -> TimerHandle:
        if self._ticker is not None and not self._ticker.cancelled:
            logger.warning("Trend analyzer already running")
            return self._ticker
        self._ticker = self.scheduler.call_every(
            self.settings.analysis_interval, self.run_scheduled_analysis, tags=(ANALYSIS_TAG,)
        )
        logger.info(f"Scheduled trend analysis every {self.settings.analysis_interval}s")
        return self._ticker

    def stop(self):
        if self._ticker is not None:
            self._ticker.cancel()
            self._ticker = None

    async def run_scheduled_analysis(self) -> List[CapacityTrend]:
        try:
            end = self.scheduler.now()
            start = end - timedelta(seconds=self.settings.lookback)
            requests = [
                TrendAnalysisRequest(resource_id=rid, metric=metric, start=start, end=end)
                for rid, metric in self.watched
            ]
            if not requests:
                logger.debug("No watched resources for scheduled trend analysis")
                return []
            return await self.batch_analyze_trends(requests)
        except Exception as e:
            logger.error(f"Scheduled trend analysis failed: {e}")
            await self.event_bus.emit(ScheduledAnalysisError, SOURCE, error=str(e))
            return []

    async def shutdown(self):
        self.stop()
        self.trends.clear()
        logger.info("Trend analyzer shut down")
        await self.event_bus.emit(Shutdown, SOURCE, component=SOURCE)

    async def _fetch(self, request: TrendAnalysisRequest) -> List[ResourceMetrics]:
        if self.history_provider is None:
            raise InsufficientDataError(0, self.settings.min_data_points, request.resource_id)
        return await self.history_provider.fetch(request.resource_id, request.start, request.end)
