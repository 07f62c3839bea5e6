#!/usr/bin/env python3
"""
Sliding-window change point detection
"""

import math
from typing import List

from ..models.metrics import TimeSeries
from ..models.trends import ChangePoint, ChangePointType
from .statistics import as_array

MAX_CHANGE_POINTS = 10


def classify_change(mean_change: float, var_change: float, change_percent: float) -> ChangePointType:
    if var_change > mean_change:
        return ChangePointType.VARIANCE_CHANGE
    if abs(change_percent) > 20:
        return ChangePointType.INCREASE if change_percent > 0 else ChangePointType.DECREASE
    return ChangePointType.LEVEL_SHIFT


def percent_change(before: float, after: float) -> float:
    if before == 0:
        if after == before:
            return 0.0
        return math.inf if after > before else -math.inf
    return (after - before) / before * 100.0


class ChangePointDetector:
    """
    Compare the mean of the ``w`` samples before each index with the ``w`` after

    Significance is the absolute mean difference over the pooled standard
    deviation; positions above ``sensitivity`` are reported, strongest first.
    """

    def __init__(self, sensitivity: float = 2.0, min_points: int = 10):
        self.sensitivity = sensitivity
        self.min_points = min_points

    @staticmethod
    def window_size(n: int) -> int:
        return max(5, n // 20)

    def detect(self, series: TimeSeries) -> List[ChangePoint]:
        values = as_array(series.values)
        n = values.size
        if n < self.min_points:
            return []

        window = self.window_size(n)
        change_points: List[ChangePoint] = []

        for i in range(window, n - window):
            before = values[i - window:i]
            after = values[i:i + window]

            before_mean = float(before.mean())
            after_mean = float(after.mean())
            before_var = float(before.var())
            after_var = float(after.var())

            mean_change = abs(after_mean - before_mean)
            var_change = abs(after_var - before_var)

            pooled_std = math.sqrt((before_var + after_var) / 2)
            if pooled_std == 0:
                significance = math.inf if mean_change > 0 else 0.0
            else:
                significance = mean_change / pooled_std

            if significance <= self.sensitivity:
                continue

            change_percent = percent_change(before_mean, after_mean)
            change_points.append(ChangePoint(
                index=i,
                timestamp=series.timestamps[i] if series.timestamps else None,
                before_value=before_mean,
                after_value=after_mean,
                change_percent=change_percent,
                significance=significance,
                type=classify_change(mean_change, var_change, change_percent),
            ))

        change_points.sort(key=lambda cp: cp.significance, reverse=True)
        return change_points[:MAX_CHANGE_POINTS]
