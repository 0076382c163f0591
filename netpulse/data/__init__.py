"""
Data module: telemetry schema, series construction and aggregation.

Pipeline:

    Records / DataFrame from the metrics store
        ↓
    Ingestion (netpulse/data/ingestion.py) → MetricSeries
        ↓
    Aggregation (netpulse/data/aggregation.py), optional
        ↓
    Ready for analytics (netpulse/analytics)
"""

from netpulse.data.aggregation import AGGREGATION_RULES, aggregate_series, downsample_series
from netpulse.data.ingestion import series_from_frame, series_from_records
from netpulse.data.schema import (
    MetricKind,
    MetricsBatch,
    MetricSeries,
    SamplePoint,
    SampleQuality,
)

__all__ = [
    # Schema
    "MetricKind",
    "MetricsBatch",
    "MetricSeries",
    "SamplePoint",
    "SampleQuality",

    # Ingestion
    "series_from_frame",
    "series_from_records",

    # Aggregation
    "aggregate_series",
    "downsample_series",
    "AGGREGATION_RULES",
]
