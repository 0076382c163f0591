"""
Time-bucket aggregation for metric series.

Rolls raw samples up into hourly, daily, weekly or monthly buckets before
long-range analysis. Each bucket becomes one sample whose value is the
bucket statistic (mean by default) and whose quality is the worst quality
seen in the bucket.

downsample_series() instead merges fixed-size runs of consecutive samples to
cap the number of points, whatever their spacing.

Design:
- Buckets aligned to calendar boundaries (weeks start on Monday)
- Empty buckets are not created
- Input order does not matter; output is chronological
"""

import logging
import math
from typing import Dict

import numpy as np
import pandas as pd

from netpulse.core.exceptions import InvalidInputError
from netpulse.data.schema import MetricSeries, SamplePoint, SampleQuality

logger = logging.getLogger(__name__)


AGGREGATION_RULES: Dict[str, str] = {
    "hourly": "h",
    "daily": "D",
    "weekly": "W-MON",
    "monthly": "MS",
}

AGGREGATION_STATISTICS = ("mean", "max", "min", "sum", "median")

_QUALITY_RANK = {SampleQuality.LOW: 0, SampleQuality.MEDIUM: 1, SampleQuality.HIGH: 2}
_RANK_QUALITY = {rank: quality for quality, rank in _QUALITY_RANK.items()}


def aggregate_series(
    series: MetricSeries,
    level: str = "daily",
    statistic: str = "mean",
) -> MetricSeries:
    """
    Aggregate a series into calendar buckets.

    Args:
        series: Series to aggregate
        level: "hourly", "daily", "weekly" or "monthly"
        statistic: Bucket statistic ("mean", "max", "min", "sum", "median")

    Returns:
        New MetricSeries with one sample per non-empty bucket, stamped at the
        bucket start

    Raises:
        InvalidInputError: If the level or statistic is unknown
    """
    if level not in AGGREGATION_RULES:
        raise InvalidInputError(f"Invalid aggregation level: {level!r}")
    if statistic not in AGGREGATION_STATISTICS:
        raise InvalidInputError(f"Invalid aggregation statistic: {statistic!r}")

    if not series.points:
        return series.model_copy(update={"points": []})

    try:
        index = pd.DatetimeIndex(pd.to_datetime(series.timestamps))
    except (TypeError, ValueError) as e:
        raise InvalidInputError(f"Cannot aggregate timestamps: {e}") from e

    frame = pd.DataFrame(
        {
            "value": series.values,
            "quality": [_QUALITY_RANK[p.quality] for p in series.points],
        },
        index=index,
    ).sort_index()

    rule = AGGREGATION_RULES[level]
    resampled = frame.resample(rule, label="left", closed="left")
    values = getattr(resampled["value"], statistic)()
    qualities = resampled["quality"].min()
    counts = resampled["value"].count()

    points = [
        SamplePoint(
            timestamp=ts.to_pydatetime(),
            value=float(values[ts]),
            quality=_RANK_QUALITY[int(qualities[ts])],
        )
        for ts in values.index
        if counts[ts] > 0
    ]

    logger.debug(
        f"Aggregated {len(series)} {series.metric.value} samples into {len(points)} {level} buckets"
    )
    return series.model_copy(update={"points": points})


DOWNSAMPLE_STATISTICS = ("mean", "min", "max", "std")


def downsample_series(
    series: MetricSeries,
    max_points: int,
    statistic: str = "mean",
) -> MetricSeries:
    """
    Reduce a series to at most max_points samples for display or export.

    Consecutive runs of ceil(n / max_points) samples are merged into one,
    stamped with the run's first timestamp. A series already within the
    limit is returned unchanged.

    Args:
        series: Series to downsample
        max_points: Upper bound on the number of output samples
        statistic: "mean", "min", "max" or "std" (population) per run

    Raises:
        InvalidInputError: If max_points < 1 or the statistic is unknown
    """
    if max_points < 1:
        raise InvalidInputError(f"max_points must be at least 1, got {max_points}")
    if statistic not in DOWNSAMPLE_STATISTICS:
        raise InvalidInputError(f"Invalid downsample statistic: {statistic!r}")

    ordered = series.sorted()
    n = len(ordered)
    factor = math.ceil(n / max_points) if n else 0
    if factor <= 1:
        return ordered

    frame = pd.DataFrame(
        {
            "value": ordered.values,
            "quality": [_QUALITY_RANK[p.quality] for p in ordered.points],
        }
    )
    grouped = frame.groupby(np.arange(n) // factor)
    if statistic == "std":
        values = grouped["value"].std(ddof=0)
    else:
        values = getattr(grouped["value"], statistic)()
    qualities = grouped["quality"].min()

    points = [
        SamplePoint(
            timestamp=ordered.timestamps[bucket * factor],
            value=float(values[bucket]),
            quality=_RANK_QUALITY[int(qualities[bucket])],
        )
        for bucket in values.index
    ]

    logger.debug(
        f"Downsampled {n} {series.metric.value} samples by {factor} into {len(points)} points"
    )
    return ordered.model_copy(update={"points": points})
