"""
Descriptive statistics over numeric samples.

Population mean/variance are computed in two passes (mean first, then squared
deviations) for numerical stability on long series. Higher moments use the
bias-corrected sample formulas.

Samples whose magnitude would overflow when squared are scaled down by their
largest absolute value first; the moments are scaled back afterwards.
"""

from __future__ import annotations

from math import isfinite
from typing import Iterable, Optional, Sequence, Tuple

import numpy as np

from netpulse.core.exceptions import InsufficientDataError, InvalidInputError

from .schema import SummaryStatistics

# Above this magnitude x**2 no longer fits in a float64.
SAFE_MAGNITUDE = 1e150


def _as_array(values: Iterable[float]) -> np.ndarray:
    arr = np.asarray(list(values), dtype=float)
    if arr.ndim != 1:
        raise InvalidInputError("Statistics require a one-dimensional sample")
    if not np.all(np.isfinite(arr)):
        raise InvalidInputError("Sample contains NaN or infinite values")
    if arr.size < 2:
        raise InsufficientDataError(f"Need at least 2 values, got {arr.size}")
    return arr


def scale_factor(arr: np.ndarray) -> float:
    """1.0 for ordinary samples, else the largest absolute value."""
    peak = float(np.max(np.abs(arr))) if arr.size else 0.0
    return peak if peak > SAFE_MAGNITUDE else 1.0


def _moments(arr: np.ndarray) -> Tuple[float, float]:
    scale = scale_factor(arr)
    scaled = arr / scale if scale != 1.0 else arr
    mean = float(scaled.mean())
    std = float(np.sqrt(np.mean((scaled - mean) ** 2)))
    return mean * scale, std * scale


def mean(values: Iterable[float]) -> float:
    """Arithmetic mean."""
    return _moments(_as_array(values))[0]


def std_dev(values: Iterable[float]) -> float:
    """Population standard deviation."""
    return _moments(_as_array(values))[1]


def variance(values: Iterable[float]) -> Optional[float]:
    """
    Population variance.

    Returns None when the variance itself is too large for a float, which
    only happens for samples near the float64 limit.
    """
    return _square_or_none(std_dev(values))


def mean_and_std(values: Iterable[float]) -> Tuple[float, float]:
    """Population mean and standard deviation."""
    return _moments(_as_array(values))


def median(values: Iterable[float]) -> float:
    return float(np.median(_as_array(values)))


def skewness(values: Sequence[float], mean: float, std_dev: float) -> float:
    """
    Bias-corrected skewness: n/((n-1)(n-2)) * sum(((x-mean)/std)^3).

    Returns 0.0 when n < 3 or the sample is constant.
    """
    n = len(values)
    if n < 3 or std_dev == 0.0:
        return 0.0
    z = (np.asarray(values, dtype=float) - mean) / std_dev
    return float(n / ((n - 1) * (n - 2)) * np.sum(z**3))


def kurtosis(values: Sequence[float], mean: float, std_dev: float) -> float:
    """
    Excess kurtosis with small-sample correction.

    Returns 0.0 when n < 4 or the sample is constant.
    """
    n = len(values)
    if n < 4 or std_dev == 0.0:
        return 0.0
    z = (np.asarray(values, dtype=float) - mean) / std_dev
    scale = (n * (n + 1)) / ((n - 1) * (n - 2) * (n - 3))
    correction = (3 * (n - 1) ** 2) / ((n - 2) * (n - 3))
    return float(scale * np.sum(z**4) - correction)


def _square_or_none(std: float) -> Optional[float]:
    squared = std * std
    return squared if isfinite(squared) else None


def describe(values: Iterable[float]) -> SummaryStatistics:
    """
    Compute summary statistics for a sample.

    Raises:
        InsufficientDataError: If fewer than 2 values are given
        InvalidInputError: If any value is NaN or infinite
    """
    arr = _as_array(values)
    mean_value, std = _moments(arr)
    scale = scale_factor(arr)
    # Standardized moments are scale free; compute them on the scaled sample.
    scaled = arr / scale if scale != 1.0 else arr

    return SummaryStatistics(
        count=int(arr.size),
        mean=mean_value,
        variance=_square_or_none(std),
        std_dev=std,
        median=float(np.median(arr)),
        min=float(arr.min()),
        max=float(arr.max()),
        skewness=skewness(scaled, mean_value / scale, std / scale),
        kurtosis=kurtosis(scaled, mean_value / scale, std / scale),
    )
