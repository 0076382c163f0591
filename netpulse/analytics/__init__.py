"""
Analytics module: trend, anomaly, seasonality and forecast analysis.

Statistics, trend, anomaly, threshold, capacity and decomposition analyzers
are pure functions of their input. The forecast engine is the only stateful
component.
"""

from .capacity import CapacityPlanner
from .decomposition import SeasonalDecomposer, centered_moving_average
from .detectors import AnomalyDetector
from .engine import AnalyticsOrchestrator
from .forecasting import ForecastEngine, HoltWintersModel, ModelStore
from .schema import (
    AlertLevel,
    AlertThresholds,
    AnalysisReport,
    Anomaly,
    AnomalySeverity,
    CapacityProjection,
    DecompositionMode,
    ForecastAccuracy,
    ForecastPoint,
    MetricForecast,
    SeasonalComponents,
    SummaryStatistics,
    TrendDirection,
    TrendResult,
)
from .stats import describe
from .thresholds import ThresholdCalculator
from .trend import TrendAnalyzer

__all__ = [
    "AlertLevel",
    "AlertThresholds",
    "AnalyticsOrchestrator",
    "AnalysisReport",
    "Anomaly",
    "AnomalySeverity",
    "CapacityPlanner",
    "CapacityProjection",
    "DecompositionMode",
    "ForecastAccuracy",
    "ForecastEngine",
    "ForecastPoint",
    "HoltWintersModel",
    "MetricForecast",
    "ModelStore",
    "SeasonalComponents",
    "SeasonalDecomposer",
    "SummaryStatistics",
    "ThresholdCalculator",
    "TrendAnalyzer",
    "TrendDirection",
    "TrendResult",
    "AnomalyDetector",
    "centered_moving_average",
    "describe",
]
