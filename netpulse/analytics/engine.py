"""
Analytics orchestrator.

Validates a metrics batch, runs every analyzer (statistics, trend, anomaly,
forecast, thresholds, capacity and optionally seasonality) for each tracked
metric present, and assembles one AnalysisReport.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, List, Mapping, Optional, Union

from pydantic import ValidationError

from netpulse.core.config import AnalyticsConfig, config
from netpulse.core.exceptions import (
    ConfigurationError,
    InsufficientDataError,
    InsufficientTrainingDataError,
    InvalidInputError,
)
from netpulse.data.schema import MetricKind, MetricsBatch, MetricSeries

from . import stats
from .capacity import CapacityPlanner
from .decomposition import SeasonalDecomposer
from .detectors import AnomalyDetector
from .forecasting import ForecastEngine
from .schema import AnalysisReport, TrendDirection
from .thresholds import ThresholdCalculator
from .trend import TrendAnalyzer

logger = logging.getLogger(__name__)


@dataclass
class AnalyticsOrchestrator:
    """
    Runs every analyzer over a device's metrics batch.

    Notes:
    - Metrics absent from the batch are simply left out of the report.
    - Short series degrade per component (no trend, no forecast) instead of
      failing the batch.
    - The forecast engine keeps one model per device+metric; pass a shared
      engine to reuse models across orchestrators.
    """

    settings: Optional[AnalyticsConfig] = None
    forecast_engine: Optional[ForecastEngine] = None
    tracked_metrics: List[MetricKind] = field(init=False)

    def __post_init__(self) -> None:
        self.settings = self.settings or config.analytics
        try:
            self.tracked_metrics = [MetricKind(name) for name in self.settings.tracked_metrics]
        except ValueError as e:
            raise ConfigurationError(f"Unknown tracked metric: {e}") from e

        self._trend_analyzer = TrendAnalyzer.from_config(self.settings.trend)
        self._detector = AnomalyDetector.from_config(self.settings.anomaly)
        self._decomposer = SeasonalDecomposer.from_config(self.settings.seasonality)
        self._threshold_calculator = ThresholdCalculator.from_config(self.settings.thresholds)
        self._capacity_planner = CapacityPlanner.from_config(
            self.settings.capacity, trend_analyzer=self._trend_analyzer
        )
        if self.forecast_engine is None:
            self.forecast_engine = ForecastEngine.from_config(self.settings.forecast)

    def process_metrics(self, batch: Union[MetricsBatch, Mapping[str, Any], None]) -> AnalysisReport:
        """
        Analyze one device's metrics batch.

        Raises:
            InvalidInputError: If the batch is missing, lacks a device id or
                metric payload, or contains unknown/malformed metric entries
        """
        parsed = self._validate(batch)

        report = AnalysisReport(
            device_id=parsed.device_id,
            timestamp=datetime.now(timezone.utc),
        )

        for metric in self.tracked_metrics:
            series = parsed.series(metric)
            if not series.points:
                continue
            self._analyze_metric(series.sorted(), report)

        ignored = [m.value for m in parsed.metrics if m not in self.tracked_metrics]
        if ignored:
            logger.debug(f"Ignoring untracked metrics for {parsed.device_id}: {ignored}")

        logger.info(
            f"Analyzed device {parsed.device_id}: {len(report.trends)} trends, "
            f"{len(report.anomalies)} anomalies, {len(report.predictions)} forecasts"
        )
        return report

    def _validate(self, batch: Any) -> MetricsBatch:
        if batch is None:
            raise InvalidInputError("Invalid metrics data: batch is missing")
        if isinstance(batch, MetricsBatch):
            return batch
        if not isinstance(batch, Mapping):
            raise InvalidInputError(f"Invalid metrics data: expected a mapping, got {type(batch).__name__}")
        try:
            return MetricsBatch.model_validate(dict(batch))
        except ValidationError as e:
            raise InvalidInputError(f"Invalid metrics data: {e}") from e

    def _analyze_metric(self, series: MetricSeries, report: AnalysisReport) -> None:
        metric = series.metric

        try:
            report.statistics[metric] = stats.describe(series.values)
        except InsufficientDataError:
            logger.debug(f"Not enough {metric.value} samples for statistics")

        trend = self._trend_analyzer.analyze(series)
        if trend.direction != TrendDirection.UNKNOWN:
            report.trends[metric] = trend

        report.anomalies.extend(self._detector.detect(series, metric))

        try:
            report.predictions.append(self.forecast_engine.forecast(series))
        except InsufficientTrainingDataError as e:
            logger.debug(f"Skipping {metric.value} forecast: {e}")

        seasonal_strength = 0.0
        if self.settings.include_seasonality:
            components = self._decomposer.decompose(series)
            report.seasonality[metric] = components
            seasonal_strength = components.strength

        if metric in report.statistics:
            report.thresholds[metric] = self._threshold_calculator.calculate(
                series, seasonal_strength=seasonal_strength
            )

        if trend.direction != TrendDirection.UNKNOWN:
            try:
                report.capacity[metric] = self._capacity_planner.project(series)
            except InsufficientDataError as e:
                logger.debug(f"Skipping {metric.value} capacity projection: {e}")
