"""
Z-score anomaly detection with severity tiering.

Each point is scored as |value - mean| / std against a baseline:
- exclusive: mean/std of every other point, so an outlier does not inflate
  the baseline it is judged against
- population: mean/std of the whole series including the point
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from math import sqrt
from typing import List, Optional, Sequence, Tuple, Union

from netpulse.core.config import AnomalyConfig, config
from netpulse.core.exceptions import ConfigurationError, InsufficientDataError
from netpulse.data.schema import MetricKind, MetricSeries

from . import stats
from .schema import Anomaly, AnomalySeverity

logger = logging.getLogger(__name__)


@dataclass
class AnomalyDetector:
    """
    Flags points whose z-score exceeds z_threshold.

    The default baseline is "exclusive". Against a population baseline that
    includes the point itself, the largest z-score n points can produce is
    (n-1)/sqrt(n), about 1.15 for n=3, so a lone spike such as 500 in
    [100, 500, 110] could never cross a 2.5 threshold.

    A constant series (std below std_floor) never produces anomalies.
    """

    z_threshold: float = 2.5
    critical_multiplier: float = 1.5
    baseline: str = "exclusive"
    std_floor: float = 1e-6

    def __post_init__(self) -> None:
        if self.baseline not in ("exclusive", "population"):
            raise ConfigurationError(f"Unknown baseline strategy: {self.baseline}")

    @classmethod
    def from_config(cls, anomaly_config: Optional[AnomalyConfig] = None) -> "AnomalyDetector":
        anomaly_config = anomaly_config or config.analytics.anomaly
        return cls(
            z_threshold=anomaly_config.z_threshold,
            critical_multiplier=anomaly_config.critical_multiplier,
            baseline=anomaly_config.baseline,
            std_floor=anomaly_config.std_floor,
        )

    @property
    def critical_threshold(self) -> float:
        return self.z_threshold * self.critical_multiplier

    def severity(self, z_score: float) -> AnomalySeverity:
        if z_score > self.critical_threshold:
            return AnomalySeverity.CRITICAL
        return AnomalySeverity.WARNING

    def confidence(self, z_score: float) -> float:
        return min(z_score / (self.z_threshold * 2), 1.0)

    def detect(
        self,
        series: Union[MetricSeries, Sequence[float]],
        metric: Optional[MetricKind] = None,
    ) -> List[Anomaly]:
        """
        Score every point and return the anomalies in series order.

        Args:
            series: MetricSeries or raw values
            metric: Tag for the anomalies; taken from the series when omitted

        Returns:
            Anomalies with index, value and source timestamp retained
        """
        timestamps: List[Optional[datetime]]
        if isinstance(series, MetricSeries):
            values = series.values
            timestamps = list(series.timestamps)
            metric = metric or series.metric
        else:
            values = [float(v) for v in series]
            timestamps = [None] * len(values)

        minimum = 3 if self.baseline == "exclusive" else 2
        if len(values) < minimum:
            logger.debug(f"Skipping anomaly detection: {len(values)} points < {minimum}")
            return []

        try:
            mean, std = stats.mean_and_std(values)
        except InsufficientDataError:
            return []

        if std < self.std_floor:
            return []

        anomalies: List[Anomaly] = []
        for index, value in enumerate(values):
            baseline_mean, baseline_std = self._baseline(values, index, mean, std)
            z_score = abs(value - baseline_mean) / baseline_std
            if z_score <= self.z_threshold:
                continue
            anomalies.append(
                Anomaly(
                    metric=metric,
                    index=index,
                    timestamp=timestamps[index],
                    value=value,
                    z_score=z_score,
                    severity=self.severity(z_score),
                    confidence=self.confidence(z_score),
                    baseline_mean=baseline_mean,
                    baseline_std=baseline_std,
                )
            )

        return anomalies

    def _baseline(
        self, values: Sequence[float], index: int, mean: float, std: float
    ) -> Tuple[float, float]:
        if self.baseline == "population":
            return mean, std

        # Remove the point from the population moments. Worked as a ratio to
        # std so the sum of squares never overflows for huge samples.
        n = len(values)
        others = n - 1
        delta = values[index] - mean
        ratio = delta / std
        other_mean = mean - delta / others
        other_var_ratio = (n - ratio * ratio) / others - (ratio / others) ** 2
        other_std = std * sqrt(max(other_var_ratio, 0.0))
        return other_mean, max(other_std, self.std_floor)
