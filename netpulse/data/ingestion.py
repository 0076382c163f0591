"""
Series construction from upstream records and DataFrames.

The metrics store hands samples over either as plain records (dicts) or as a
pandas DataFrame. Both are converted into a MetricSeries here. Rows with
missing or non-finite values are skipped with a warning rather than failing
the whole series.

Design:
- No I/O; callers own retrieval
- Bad rows logged but don't crash the pipeline
- Output is sorted by timestamp
"""

import logging
import math
from typing import Any, Dict, Iterable, List, Optional, Union

import pandas as pd
from pydantic import ValidationError

from netpulse.core.exceptions import InvalidInputError
from netpulse.data.schema import MetricKind, MetricSeries, SamplePoint, SampleQuality

logger = logging.getLogger(__name__)

_QUALITY_LABELS = {quality.value for quality in SampleQuality}


def _coerce_metric(metric: Union[MetricKind, str]) -> MetricKind:
    try:
        return MetricKind(metric)
    except ValueError as e:
        raise InvalidInputError(f"Unknown metric: {metric!r}") from e


def _with_known_quality(record: Dict[str, Any], idx: int, kind: MetricKind) -> Dict[str, Any]:
    """Lower-case the quality label; an unknown one falls back to the default."""
    if not isinstance(record, dict):
        return record
    quality = record.get("quality")
    if quality is None or isinstance(quality, SampleQuality):
        return record
    if isinstance(quality, str) and quality.lower() in _QUALITY_LABELS:
        return {**record, "quality": quality.lower()}
    logger.warning(
        f"Unknown quality {quality!r} on {kind.value} sample at index {idx}; "
        f"keeping the sample as {SampleQuality.HIGH.value}"
    )
    return {key: value for key, value in record.items() if key != "quality"}


def series_from_records(
    records: Iterable[Dict[str, Any]],
    device_id: str,
    metric: Union[MetricKind, str],
) -> MetricSeries:
    """
    Build a MetricSeries from sample dictionaries.

    Args:
        records: Dicts with "timestamp", "value" and optionally "quality"
        device_id: Device the samples belong to
        metric: Metric kind (enum or wire name)

    Returns:
        MetricSeries sorted by timestamp

    Raises:
        InvalidInputError: If the metric is unknown or device_id is empty
    """
    kind = _coerce_metric(metric)
    points: List[SamplePoint] = []
    skipped = 0

    for idx, record in enumerate(records):
        try:
            points.append(SamplePoint(**_with_known_quality(record, idx, kind)))
        except (TypeError, ValidationError) as e:
            skipped += 1
            logger.warning(f"Skipping malformed {kind.value} sample at index {idx}: {e}")

    if skipped:
        logger.warning(f"Skipped {skipped} malformed {kind.value} samples for device {device_id}")

    try:
        series = MetricSeries(device_id=device_id, metric=kind, points=points)
    except ValidationError as e:
        raise InvalidInputError(f"Invalid series for device {device_id!r}: {e}") from e
    return series.sorted()


def series_from_frame(
    df: pd.DataFrame,
    device_id: str,
    metric: Union[MetricKind, str],
    timestamp_column: str = "timestamp",
    value_column: str = "value",
    quality_column: Optional[str] = "quality",
) -> MetricSeries:
    """
    Build a MetricSeries from a DataFrame.

    Args:
        df: Frame with a timestamp column (or DatetimeIndex) and a value column
        device_id: Device the samples belong to
        metric: Metric kind (enum or wire name)
        timestamp_column: Column holding timestamps; the index is used if absent
        value_column: Column holding numeric values
        quality_column: Optional column holding sample quality

    Returns:
        MetricSeries sorted by timestamp

    Raises:
        InvalidInputError: If the value column is missing or timestamps can't be parsed
    """
    if value_column not in df.columns:
        raise InvalidInputError(f"Missing value column: {value_column!r}")

    if timestamp_column in df.columns:
        raw_timestamps = df[timestamp_column]
    elif isinstance(df.index, pd.DatetimeIndex):
        raw_timestamps = df.index.to_series(index=df.index)
    else:
        raise InvalidInputError(f"Missing timestamp column: {timestamp_column!r}")

    try:
        timestamps = pd.to_datetime(raw_timestamps)
    except (TypeError, ValueError) as e:
        raise InvalidInputError(f"Unparseable timestamps: {e}") from e

    values = pd.to_numeric(df[value_column], errors="coerce")
    has_quality = quality_column is not None and quality_column in df.columns

    records = []
    for position, (ts, value) in enumerate(zip(timestamps, values)):
        if pd.isna(ts) or pd.isna(value) or not math.isfinite(value):
            logger.warning(f"Dropping row {position}: missing or non-finite sample")
            continue
        record = {"timestamp": ts.to_pydatetime(), "value": float(value)}
        if has_quality:
            quality = df[quality_column].iloc[position]
            if not pd.isna(quality):
                record["quality"] = quality
        records.append(record)

    return series_from_records(records, device_id=device_id, metric=metric)
