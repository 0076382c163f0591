"""
Least-squares trend classification.

Fits value = intercept + slope * index over the positional index rather than
wall-clock time, so irregular sampling intervals don't bias the slope.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Sequence, Union

import numpy as np

from netpulse.core.config import TrendConfig, config
from netpulse.data.schema import MetricSeries

from . import stats
from .schema import TrendDirection, TrendResult

logger = logging.getLogger(__name__)


@dataclass
class TrendAnalyzer:
    """
    Classifies a series as increasing, decreasing or stable.

    Direction is decided on the normalized slope (fitted change across the
    window divided by the observed range), so the threshold works the same
    for bandwidth in Mbps and packet loss in fractions. Short series are
    reported as "unknown" with zero confidence.
    """

    min_data_points: int = 3
    stable_slope_threshold: float = 0.1

    @classmethod
    def from_config(cls, trend_config: Optional[TrendConfig] = None) -> "TrendAnalyzer":
        trend_config = trend_config or config.analytics.trend
        return cls(
            min_data_points=trend_config.min_data_points,
            stable_slope_threshold=trend_config.stable_slope_threshold,
        )

    def analyze(self, series: Union[MetricSeries, Sequence[float]]) -> TrendResult:
        if isinstance(series, MetricSeries):
            if not series.is_sorted:
                logger.debug(f"Sorting unordered {series.metric.value} series before trend fit")
            values = series.sorted().values
        else:
            values = list(series)

        n = len(values)
        if n < self.min_data_points:
            logger.debug(f"Trend unknown: {n} points < min_data_points={self.min_data_points}")
            return TrendResult(direction=TrendDirection.UNKNOWN, sample_count=n)

        y = np.asarray(values, dtype=float)
        x = np.arange(n, dtype=float)
        # Fit on a scaled copy when squares would overflow; slope and
        # intercept are scaled back, the ratios below are scale free.
        scale = stats.scale_factor(y)
        if scale != 1.0:
            y = y / scale
        value_range = float(y.max() - y.min())

        if value_range == 0.0:
            return TrendResult(
                direction=TrendDirection.STABLE,
                intercept=float(y[0]) * scale,
                sample_count=n,
            )

        x_mean = x.mean()
        y_mean = y.mean()
        sxx = float(np.sum((x - x_mean) ** 2))
        sxy = float(np.sum((x - x_mean) * (y - y_mean)))
        slope = sxy / sxx
        intercept = float(y_mean - slope * x_mean)

        ss_tot = float(np.sum((y - y_mean) ** 2))
        ss_res = float(np.sum((y - (intercept + slope * x)) ** 2))
        r_squared = 1.0 - ss_res / ss_tot if ss_tot > 0.0 else 0.0
        r_squared = min(max(r_squared, 0.0), 1.0) if np.isfinite(r_squared) else 0.0

        normalized_slope = slope * (n - 1) / value_range
        confidence = min(abs(slope) / value_range, 1.0)

        if abs(normalized_slope) < self.stable_slope_threshold:
            direction = TrendDirection.STABLE
        elif slope > 0:
            direction = TrendDirection.INCREASING
        else:
            direction = TrendDirection.DECREASING

        return TrendResult(
            direction=direction,
            slope=slope * scale,
            confidence=confidence,
            normalized_slope=normalized_slope,
            intercept=intercept * scale,
            r_squared=r_squared,
            sample_count=n,
        )
