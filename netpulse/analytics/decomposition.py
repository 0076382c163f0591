"""
Classical seasonal decomposition.

Splits a series into trend (centered moving average), seasonal indices
(averaged per position in the period) and residual. This is the simple
classical method, not STL: it needs at least two full periods before the
seasonal indices mean anything.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Union

import numpy as np

from netpulse.core.config import SeasonalityConfig, config
from netpulse.core.exceptions import ConfigurationError
from netpulse.data.schema import MetricSeries

from .schema import DecompositionMode, SeasonalComponents

logger = logging.getLogger(__name__)


def centered_moving_average(values: Sequence[float], window: int) -> List[Optional[float]]:
    """
    Centered moving average; None where the window overruns the series.

    Even windows use the 2xN average (half weight on both ends) so the
    result stays centered on a sample.
    """
    n = len(values)
    if window == 1:
        return [float(v) for v in values]

    if window % 2 == 0:
        weights = np.full(window + 1, 1.0 / window)
        weights[0] = weights[-1] = 0.5 / window
    else:
        weights = np.full(window, 1.0 / window)

    trend: List[Optional[float]] = [None] * n
    if n < len(weights):
        return trend

    half = window // 2
    smoothed = np.convolve(np.asarray(values, dtype=float), weights, mode="valid")
    for offset, value in enumerate(smoothed):
        trend[half + offset] = float(value)
    return trend


@dataclass
class SeasonalDecomposer:
    """
    Decomposes a series into trend, seasonal and residual components.

    Multiplicative: value = trend * seasonal * residual, indices average 1.
    Additive: value = trend + seasonal + residual, indices sum to 0.
    """

    period: int = 24
    mode: DecompositionMode = DecompositionMode.MULTIPLICATIVE
    min_cycles: int = 2

    def __post_init__(self) -> None:
        if self.period < 1:
            raise ConfigurationError(f"Seasonal period must be positive, got {self.period}")
        self.mode = DecompositionMode(self.mode)

    @classmethod
    def from_config(cls, seasonality_config: Optional[SeasonalityConfig] = None) -> "SeasonalDecomposer":
        seasonality_config = seasonality_config or config.analytics.seasonality
        return cls(
            period=seasonality_config.period,
            mode=DecompositionMode(seasonality_config.mode),
            min_cycles=seasonality_config.min_cycles,
        )

    @property
    def _multiplicative(self) -> bool:
        return self.mode == DecompositionMode.MULTIPLICATIVE

    def decompose(self, series: Union[MetricSeries, Sequence[float]]) -> SeasonalComponents:
        if isinstance(series, MetricSeries):
            values = series.sorted().values
        else:
            values = [float(v) for v in series]

        n = len(values)
        p = self.period
        full_cycles = n // p
        low_confidence = full_cycles < self.min_cycles

        trend = centered_moving_average(values, p)
        detrended = [self._remove(v, t) for v, t in zip(values, trend)]

        if low_confidence:
            logger.debug(
                f"Only {full_cycles} full cycles of period {p}; using neutral seasonal indices"
            )
            indices = [self._neutral] * p
        else:
            indices = self._seasonal_indices(detrended, full_cycles)

        seasonal_series = [indices[i % p] for i in range(n)]
        residual = [
            self._remove(d, s) if d is not None else None
            for d, s in zip(detrended, seasonal_series)
        ]

        return SeasonalComponents(
            period=p,
            mode=self.mode,
            trend=trend,
            seasonal=indices,
            seasonal_series=seasonal_series,
            residual=residual,
            full_cycles=full_cycles,
            low_confidence=low_confidence,
            strength=0.0 if low_confidence else self._strength(detrended, residual),
        )

    @property
    def _neutral(self) -> float:
        return 1.0 if self._multiplicative else 0.0

    def _remove(self, value: float, component: Optional[float]) -> Optional[float]:
        if component is None:
            return None
        if self._multiplicative:
            if component == 0.0:
                return None
            return value / component
        return value - component

    def _seasonal_indices(self, detrended: List[Optional[float]], full_cycles: int) -> List[float]:
        p = self.period
        raw: List[float] = []
        for position in range(p):
            samples = [
                detrended[cycle * p + position]
                for cycle in range(full_cycles)
                if detrended[cycle * p + position] is not None
            ]
            raw.append(float(np.mean(samples)) if samples else self._neutral)

        indices = np.asarray(raw)
        if self._multiplicative:
            scale = indices.mean()
            if scale == 0.0:
                return [1.0] * p
            return [float(v) for v in indices / scale]
        return [float(v) for v in indices - indices.mean()]

    def _strength(self, detrended: List[Optional[float]], residual: List[Optional[float]]) -> float:
        pairs = [(d, r) for d, r in zip(detrended, residual) if d is not None and r is not None]
        if len(pairs) < 2:
            return 0.0
        detrended_var = float(np.var([d for d, _ in pairs]))
        if detrended_var == 0.0:
            return 0.0
        residual_var = float(np.var([r for _, r in pairs]))
        return min(max(1.0 - residual_var / detrended_var, 0.0), 1.0)
