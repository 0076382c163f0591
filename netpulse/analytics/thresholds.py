"""
Alert threshold derivation from metric history.

Levels sit a fixed number of standard deviations above the mean. Seasonal
metrics swing further from their mean as a matter of course, so every level
is widened by the seasonal strength when one is known.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Sequence, Union

from netpulse.core.config import ThresholdConfig, config
from netpulse.core.exceptions import ConfigurationError, InvalidInputError
from netpulse.data.schema import MetricKind, MetricSeries

from . import stats
from .schema import AlertThresholds

logger = logging.getLogger(__name__)


@dataclass
class ThresholdCalculator:
    """Derives warning/critical/emergency levels as mean + k * std."""

    warning_sigma: float = 1.0
    critical_sigma: float = 2.0
    emergency_sigma: float = 3.0

    def __post_init__(self) -> None:
        if not 0.0 < self.warning_sigma < self.critical_sigma < self.emergency_sigma:
            raise ConfigurationError(
                "Sigma multiples must be positive and ascending: "
                f"{self.warning_sigma}, {self.critical_sigma}, {self.emergency_sigma}"
            )

    @classmethod
    def from_config(cls, threshold_config: Optional[ThresholdConfig] = None) -> "ThresholdCalculator":
        threshold_config = threshold_config or config.analytics.thresholds
        return cls(
            warning_sigma=threshold_config.warning_sigma,
            critical_sigma=threshold_config.critical_sigma,
            emergency_sigma=threshold_config.emergency_sigma,
        )

    def calculate(
        self,
        series: Union[MetricSeries, Sequence[float]],
        seasonal_strength: float = 0.0,
        metric: Optional[MetricKind] = None,
    ) -> AlertThresholds:
        """
        Compute alert levels for a metric's history.

        Args:
            series: MetricSeries or raw values
            seasonal_strength: 0-1 strength from a decomposition; each level
                is multiplied by (1 + strength)
            metric: Tag for the result; taken from the series when omitted

        Raises:
            InsufficientDataError: If fewer than 2 values are given
            InvalidInputError: If seasonal_strength is outside [0, 1]
        """
        if isinstance(series, MetricSeries):
            values = series.values
            metric = metric or series.metric
        else:
            values = [float(v) for v in series]

        if not 0.0 <= seasonal_strength <= 1.0:
            raise InvalidInputError(f"Seasonal strength must be in [0, 1], got {seasonal_strength}")

        mean, std = stats.mean_and_std(values)
        factor = 1.0 + seasonal_strength

        def _level(sigma: float) -> float:
            return (mean + sigma * std) * factor

        thresholds = AlertThresholds(
            metric=metric,
            mean=mean,
            std_dev=std,
            seasonal_strength=seasonal_strength,
            warning=_level(self.warning_sigma),
            critical=_level(self.critical_sigma),
            emergency=_level(self.emergency_sigma),
            sample_count=len(values),
        )
        logger.debug(
            f"Thresholds for {metric.value if metric else 'series'}: "
            f"warning={thresholds.warning:.4g} critical={thresholds.critical:.4g} "
            f"emergency={thresholds.emergency:.4g}"
        )
        return thresholds
