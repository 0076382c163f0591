"""
Schema definitions for analytics results.

All outputs are deterministic and explainable. Anomalies reference their
observed value and the baseline they were scored against; forecasts carry
their interval bounds and in-sample accuracy.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from netpulse.data.schema import MetricKind


class TrendDirection(str, Enum):
    """Direction of a fitted linear trend."""

    INCREASING = "increasing"
    DECREASING = "decreasing"
    STABLE = "stable"
    UNKNOWN = "unknown"


class AnomalySeverity(str, Enum):
    """Severity levels for anomalies."""

    WARNING = "warning"
    CRITICAL = "critical"


class DecompositionMode(str, Enum):
    """How seasonal and trend components combine."""

    MULTIPLICATIVE = "multiplicative"
    ADDITIVE = "additive"


class SummaryStatistics(BaseModel):
    """
    Descriptive statistics for a numeric sample.

    Fields:
    - variance/std_dev: population (divide by n); variance is None when it
      does not fit in a float
    - skewness: bias-corrected sample skewness
    - kurtosis: excess kurtosis (0 for a normal distribution)
    """

    count: int = Field(ge=2)
    mean: float
    variance: Optional[float] = Field(default=None, ge=0.0)
    std_dev: float = Field(ge=0.0)
    median: float
    min: float
    max: float
    skewness: float
    kurtosis: float


class TrendResult(BaseModel):
    """
    Least-squares trend over positional index.

    Fields:
    - slope: fitted change per sample
    - normalized_slope: fitted change across the window divided by the range
    - confidence: min(|slope| / range, 1), 0 for flat or short series
    - r_squared: goodness of fit, 0 when undefined
    """

    direction: TrendDirection
    slope: float = 0.0
    confidence: float = Field(0.0, ge=0.0, le=1.0)
    normalized_slope: float = 0.0
    intercept: float = 0.0
    r_squared: float = Field(0.0, ge=0.0, le=1.0)
    sample_count: int = Field(0, ge=0)


class Anomaly(BaseModel):
    """
    A single point flagged by z-score detection.

    Fields:
    - metric: metric kind, set when produced by the orchestrator
    - index: position in the analysed series
    - timestamp: source timestamp (None for raw value input)
    - z_score: |value - baseline_mean| / baseline_std
    - confidence: min(z_score / (2 * z_threshold), 1)
    """

    metric: Optional[MetricKind] = None
    index: int = Field(ge=0)
    timestamp: Optional[datetime] = None
    value: float
    z_score: float = Field(ge=0.0)
    severity: AnomalySeverity
    confidence: float = Field(ge=0.0, le=1.0)
    baseline_mean: float
    baseline_std: float = Field(ge=0.0)


class SeasonalComponents(BaseModel):
    """
    Classical decomposition output.

    Fields:
    - trend: centered moving average, None where the window overruns the edges
    - seasonal: one index per position in the period
    - seasonal_series: seasonal indices tiled over the series length
    - residual: what trend and season don't explain, None where undefined
    - low_confidence: fewer full cycles than required; indices are neutral
    - strength: share of detrended variance explained by the season (0-1)
    """

    period: int = Field(ge=1)
    mode: DecompositionMode
    trend: List[Optional[float]]
    seasonal: List[float]
    seasonal_series: List[float]
    residual: List[Optional[float]]
    full_cycles: int = Field(ge=0)
    low_confidence: bool
    strength: float = Field(0.0, ge=0.0, le=1.0)


class ForecastPoint(BaseModel):
    """
    A single forecast step with its interval bounds.

    timestamp is None when the model was trained on bare values.
    """

    timestamp: Optional[datetime] = None
    value: float
    lower: float
    upper: float


class ForecastAccuracy(BaseModel):
    """
    In-sample one-step-ahead accuracy.

    MAPE ignores zero actuals and is None when every actual was zero.
    """

    rmse: float = Field(ge=0.0)
    mape: Optional[float] = Field(default=None, ge=0.0)


class MetricForecast(BaseModel):
    """Forecast for one metric of one device."""

    metric: Optional[MetricKind] = None
    forecast: List[ForecastPoint] = Field(default_factory=list)
    confidence: float = Field(0.0, ge=0.0, le=1.0)
    accuracy: Optional[ForecastAccuracy] = None


class AlertLevel(str, Enum):
    """Alert threshold tiers, lowest first."""

    WARNING = "warning"
    CRITICAL = "critical"
    EMERGENCY = "emergency"


class AlertThresholds(BaseModel):
    """
    Static alert levels derived from a metric's history.

    Each level is (mean + k * std_dev) * (1 + seasonal_strength) for the
    configured sigma multiple k.
    """

    metric: Optional[MetricKind] = None
    mean: float
    std_dev: float = Field(ge=0.0)
    seasonal_strength: float = Field(0.0, ge=0.0, le=1.0)
    warning: float
    critical: float
    emergency: float
    sample_count: int = Field(ge=2)

    def level_for(self, value: float) -> Optional[AlertLevel]:
        """Highest level the value exceeds, None below warning."""
        if value > self.emergency:
            return AlertLevel.EMERGENCY
        if value > self.critical:
            return AlertLevel.CRITICAL
        if value > self.warning:
            return AlertLevel.WARNING
        return None


class CapacityProjection(BaseModel):
    """
    Linear projection of a metric a number of days ahead.

    Fields:
    - current: most recent observed value
    - daily_growth: trend slope converted to change per day
    - projected: current + daily_growth * projection_days
    - utilization: current / capacity, when a capacity was given
    - days_to_capacity: days until the trend reaches capacity; 0 when
      already there, None without a capacity or without growth
    """

    metric: Optional[MetricKind] = None
    current: float
    daily_growth: float
    projection_days: int = Field(ge=1)
    projected: float
    direction: TrendDirection
    capacity: Optional[float] = Field(default=None, gt=0.0)
    utilization: Optional[float] = Field(default=None, ge=0.0)
    days_to_capacity: Optional[float] = Field(default=None, ge=0.0)


class AnalysisReport(BaseModel):
    """
    Unified analytics report for one device.

    Fields:
    - trends: metrics with a known trend; short series are omitted
    - anomalies: flat list in metric-then-time order
    - predictions: metrics with enough history to forecast
    - statistics: descriptive statistics per metric
    - seasonality: decompositions, only when enabled in config
    - thresholds: alert levels per metric with statistics
    - capacity: linear projections per metric with a known trend
    """

    device_id: str
    timestamp: datetime
    trends: Dict[MetricKind, TrendResult] = Field(default_factory=dict)
    anomalies: List[Anomaly] = Field(default_factory=list)
    predictions: List[MetricForecast] = Field(default_factory=list)
    statistics: Dict[MetricKind, SummaryStatistics] = Field(default_factory=dict)
    seasonality: Dict[MetricKind, SeasonalComponents] = Field(default_factory=dict)
    thresholds: Dict[MetricKind, AlertThresholds] = Field(default_factory=dict)
    capacity: Dict[MetricKind, CapacityProjection] = Field(default_factory=dict)
