"""
Capacity projection from the fitted linear trend.

The per-sample trend slope is converted to a daily growth rate using the
median sampling interval, then extrapolated from the latest value:

    projected = current + daily_growth * projection_days
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Optional

from netpulse.core.config import CapacityConfig, config
from netpulse.core.exceptions import ConfigurationError, InsufficientDataError, InvalidInputError
from netpulse.data.schema import MetricSeries

from .forecasting import infer_step
from .schema import CapacityProjection, TrendDirection
from .trend import TrendAnalyzer

logger = logging.getLogger(__name__)

DAY = timedelta(days=1)


@dataclass
class CapacityPlanner:
    """
    Projects where a metric will be after projection_days at its current
    trend, and how long until it reaches a given capacity.
    """

    projection_days: int = 30
    trend_analyzer: TrendAnalyzer = field(default_factory=TrendAnalyzer)

    def __post_init__(self) -> None:
        if self.projection_days < 1:
            raise ConfigurationError(f"projection_days must be at least 1, got {self.projection_days}")

    @classmethod
    def from_config(
        cls,
        capacity_config: Optional[CapacityConfig] = None,
        trend_analyzer: Optional[TrendAnalyzer] = None,
    ) -> "CapacityPlanner":
        capacity_config = capacity_config or config.analytics.capacity
        return cls(
            projection_days=capacity_config.projection_days,
            trend_analyzer=trend_analyzer or TrendAnalyzer.from_config(config.analytics.trend),
        )

    def project(
        self,
        series: MetricSeries,
        capacity: Optional[float] = None,
        projection_days: Optional[int] = None,
    ) -> CapacityProjection:
        """
        Project the series forward along its linear trend.

        Args:
            series: History of one metric with timestamps
            capacity: Optional ceiling (e.g. link bandwidth) for utilization
                and time-to-capacity
            projection_days: Overrides the planner default

        Raises:
            InsufficientDataError: If the trend is unknown or the series has
                no positive sampling interval
            InvalidInputError: If capacity is not positive
            ConfigurationError: If projection_days is below 1
        """
        if projection_days is None:
            projection_days = self.projection_days
        elif projection_days < 1:
            raise ConfigurationError(f"projection_days must be at least 1, got {projection_days}")
        if capacity is not None and capacity <= 0:
            raise InvalidInputError(f"Capacity must be positive, got {capacity}")

        ordered = series.sorted()
        trend = self.trend_analyzer.analyze(ordered)
        if trend.direction == TrendDirection.UNKNOWN:
            raise InsufficientDataError(
                f"{series.metric.value} for {series.device_id}: {len(series)} samples "
                f"are too few for a trend"
            )
        step = infer_step(ordered.timestamps)
        if step is None:
            raise InsufficientDataError(
                f"{series.metric.value} for {series.device_id}: no sampling interval"
            )

        current = ordered.values[-1]
        daily_growth = trend.slope * (DAY / step)
        utilization = None
        days_to_capacity = None
        if capacity is not None:
            utilization = max(current, 0.0) / capacity
            if current >= capacity:
                days_to_capacity = 0.0
            elif daily_growth > 0:
                days_to_capacity = (capacity - current) / daily_growth

        projection = CapacityProjection(
            metric=series.metric,
            current=current,
            daily_growth=daily_growth,
            projection_days=projection_days,
            projected=current + daily_growth * projection_days,
            direction=trend.direction,
            capacity=capacity,
            utilization=utilization,
            days_to_capacity=days_to_capacity,
        )
        logger.debug(
            f"Capacity {series.device_id}/{series.metric.value}: {current:.4g} -> "
            f"{projection.projected:.4g} in {projection_days} days"
        )
        return projection
