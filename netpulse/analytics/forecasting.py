"""
Holt-Winters forecasting (multiplicative triple exponential smoothing).

One HoltWintersModel is kept per (device, metric) key in a ModelStore. Each
key has its own lock so concurrent updates to the same model are serialized
while different keys never wait on each other. Models are plain in-memory
state: losing one only costs a retrain.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from math import log, sqrt
from statistics import median
from typing import Dict, Iterator, List, Optional, Sequence, Tuple

from netpulse.core.config import CONFIDENCE_Z_SCORES, ForecastConfig, config
from netpulse.core.exceptions import ConfigurationError, InsufficientTrainingDataError
from netpulse.data.schema import MetricKind, MetricSeries, SamplePoint

from .schema import ForecastAccuracy, ForecastPoint, MetricForecast

logger = logging.getLogger(__name__)

ModelKey = Tuple[str, MetricKind]


def infer_step(timestamps: Sequence[datetime]) -> Optional[timedelta]:
    gaps = [
        later - earlier
        for earlier, later in zip(timestamps, timestamps[1:])
        if later > earlier
    ]
    if not gaps:
        return None
    return median(gaps)


@dataclass
class HoltWintersModel:
    """
    Level/trend/seasonal state for one series.

    fit() re-estimates everything from a full history and is deterministic;
    update() advances the state by one sample and must be fed in timestamp
    order. Residuals are one-step-ahead errors, accumulated for the
    forecast intervals.
    """

    period: int = 24
    alpha: float = 0.2
    beta: float = 0.1
    gamma: float = 0.3
    std_floor: float = 1e-6
    level: float = 0.0
    trend: float = 0.0
    seasonals: List[float] = field(default_factory=list)
    trained_sample_count: int = 0
    residual_sse: float = 0.0
    residual_count: int = 0
    abs_pct_error_sum: float = 0.0
    pct_error_count: int = 0
    last_timestamp: Optional[datetime] = None
    step: Optional[timedelta] = None

    @property
    def residual_mse(self) -> float:
        if self.residual_count == 0:
            return 0.0
        return self.residual_sse / self.residual_count

    @property
    def accuracy(self) -> ForecastAccuracy:
        mape = None
        if self.pct_error_count:
            mape = self.abs_pct_error_sum / self.pct_error_count * 100
        return ForecastAccuracy(rmse=sqrt(self.residual_mse), mape=mape)

    def fit(
        self,
        values: Sequence[float],
        timestamps: Optional[Sequence[datetime]] = None,
    ) -> "HoltWintersModel":
        """
        Re-estimate the model from scratch.

        The first period seeds level, trend and seasonal indices; every
        later point is replayed through update().
        """
        p = self.period
        n = len(values)
        if n < p or n < 1:
            raise InsufficientTrainingDataError(
                f"Need at least one full period ({p}) of history, got {n}"
            )

        first_cycle = values[:p]
        self.level = sum(first_cycle) / p
        self.trend = self._initial_trend(values)
        self.seasonals = self._initial_seasonals(values)
        self.trained_sample_count = p
        self.residual_sse = 0.0
        self.residual_count = 0
        self.abs_pct_error_sum = 0.0
        self.pct_error_count = 0
        self.step = infer_step(timestamps) if timestamps is not None else None
        self.last_timestamp = timestamps[p - 1] if timestamps is not None else None

        for i in range(p, n):
            self.update(values[i], timestamps[i] if timestamps is not None else None)

        return self

    def update(self, value: float, timestamp: Optional[datetime] = None) -> None:
        """Advance the state by one observation."""
        k = self.trained_sample_count % self.period
        last_seasonal = self.seasonals[k]
        last_level = self.level
        last_trend = self.trend

        predicted = (last_level + last_trend) * last_seasonal
        error = value - predicted
        self.residual_sse += error * error
        self.residual_count += 1
        if value != 0.0:
            self.abs_pct_error_sum += abs(error / value)
            self.pct_error_count += 1

        # Zero seasonal index or level would divide by zero; skip that ratio.
        deseasonalized = value / last_seasonal if last_seasonal != 0.0 else value
        self.level = self.alpha * deseasonalized + (1 - self.alpha) * (last_level + last_trend)
        self.trend = self.beta * (self.level - last_level) + (1 - self.beta) * last_trend
        if self.level != 0.0:
            self.seasonals[k] = self.gamma * (value / self.level) + (1 - self.gamma) * last_seasonal

        self.trained_sample_count += 1
        if timestamp is not None:
            self.last_timestamp = timestamp

    def predict(self, h: int) -> float:
        """Point forecast h steps past the last observation."""
        k = (self.trained_sample_count - 1 + h) % self.period
        return (self.level + h * self.trend) * self.seasonals[k]

    def interval_half_width(self, h: int, z: float) -> float:
        std = max(sqrt(self.residual_mse), self.std_floor)
        n = max(self.trained_sample_count, 1)
        return z * std * sqrt(1 + h * (h + 1) / (2 * n))

    def forecast(self, horizon: int, z: float, default_step: timedelta) -> List[ForecastPoint]:
        step = self.step or default_step
        origin = self.last_timestamp
        points = []
        for h in range(1, horizon + 1):
            value = self.predict(h)
            half_width = self.interval_half_width(h, z)
            timestamp = origin + step * h if origin is not None else None
            points.append(
                ForecastPoint(
                    timestamp=timestamp,
                    value=value,
                    lower=value - half_width,
                    upper=value + half_width,
                )
            )
        return points

    def _initial_trend(self, values: Sequence[float]) -> float:
        p = self.period
        n = len(values)
        if n >= 2 * p:
            return sum((values[p + i] - values[i]) / p for i in range(p)) / p
        if n > 1:
            return (values[-1] - values[0]) / (n - 1)
        return 0.0

    def _initial_seasonals(self, values: Sequence[float]) -> List[float]:
        p = self.period
        full_cycles = len(values) // p
        cycle_means = [sum(values[c * p:(c + 1) * p]) / p for c in range(full_cycles)]

        seasonals = []
        for k in range(p):
            ratios = [
                values[c * p + k] / cycle_means[c]
                for c in range(full_cycles)
                if cycle_means[c] != 0.0
            ]
            seasonals.append(sum(ratios) / len(ratios) if ratios else 1.0)

        mean = sum(seasonals) / p
        if mean == 0.0:
            return [1.0] * p
        return [s / mean for s in seasonals]


@dataclass
class _ModelSlot:
    lock: threading.Lock = field(default_factory=threading.Lock)
    model: Optional[HoltWintersModel] = None
    retired: bool = False


class ModelStore:
    """
    Keyed in-memory store of forecast models.

    The registry lock only guards slot lookup and creation; model work
    happens under the slot's own lock. A slot left without a model when its
    lock is released is retired and removed, so failed trainings and lookups
    of unknown keys never leave entries behind.
    """

    def __init__(self) -> None:
        self._slots: Dict[ModelKey, _ModelSlot] = {}
        self._registry_lock = threading.Lock()

    def slot(self, key: ModelKey) -> _ModelSlot:
        with self._registry_lock:
            slot = self._slots.get(key)
            if slot is None:
                slot = _ModelSlot()
                self._slots[key] = slot
            return slot

    def _find(self, key: ModelKey) -> Optional[_ModelSlot]:
        with self._registry_lock:
            return self._slots.get(key)

    def _retire(self, key: ModelKey, slot: _ModelSlot) -> None:
        with self._registry_lock:
            if self._slots.get(key) is slot:
                del self._slots[key]
        slot.retired = True

    @contextmanager
    def locked(self, key: ModelKey, create: bool = True) -> Iterator[Optional[_ModelSlot]]:
        """
        Hold the key's slot lock for the duration of the block.

        With create=False an unknown key yields None instead of a new slot.
        A slot retired while this caller waited on its lock is skipped and
        the lookup repeated.
        """
        while True:
            slot = self.slot(key) if create else self._find(key)
            if slot is None:
                yield None
                return
            with slot.lock:
                if slot.retired:
                    continue
                try:
                    yield slot
                finally:
                    if slot.model is None:
                        self._retire(key, slot)
                return

    def get(self, key: ModelKey) -> Optional[HoltWintersModel]:
        slot = self._find(key)
        return slot.model if slot is not None else None

    def discard(self, key: ModelKey) -> bool:
        with self._registry_lock:
            slot = self._slots.pop(key, None)
        if slot is None:
            return False
        slot.retired = True
        return slot.model is not None

    def clear(self) -> None:
        with self._registry_lock:
            slots = list(self._slots.values())
            self._slots.clear()
        for slot in slots:
            slot.retired = True

    def keys(self) -> List[ModelKey]:
        with self._registry_lock:
            return [key for key, slot in self._slots.items() if slot.model is not None]

    def __len__(self) -> int:
        with self._registry_lock:
            return len(self._slots)


@dataclass
class ForecastEngine:
    """
    Trains and queries one Holt-Winters model per (device, metric).

    Notes:
    - mode "retrain" rebuilds the model from the supplied history each call
    - mode "incremental" feeds only samples newer than the model has seen,
      training from scratch the first time a key is used
    """

    period: int = 24
    alpha: float = 0.2
    beta: float = 0.1
    gamma: float = 0.3
    horizon: int = 5
    confidence_level: float = 0.95
    min_data_points: int = 3
    std_floor: float = 1e-6
    default_step_seconds: float = 3600.0
    mode: str = "retrain"
    store: ModelStore = field(default_factory=ModelStore)

    def __post_init__(self) -> None:
        if self.confidence_level not in CONFIDENCE_Z_SCORES:
            raise ConfigurationError(f"Unsupported confidence level: {self.confidence_level}")
        if self.mode not in ("retrain", "incremental"):
            raise ConfigurationError(f"Unknown forecast mode: {self.mode}")
        if self.period < 1:
            raise ConfigurationError(f"Seasonal period must be positive, got {self.period}")
        if self.horizon < 1:
            raise ConfigurationError(f"Forecast horizon must be at least 1, got {self.horizon}")
        for name in ("alpha", "beta", "gamma"):
            weight = getattr(self, name)
            if not 0.0 < weight < 1.0:
                raise ConfigurationError(f"{name} must be in (0, 1), got {weight}")

    @classmethod
    def from_config(cls, forecast_config: Optional[ForecastConfig] = None) -> "ForecastEngine":
        forecast_config = forecast_config or config.analytics.forecast
        return cls(
            period=forecast_config.period,
            alpha=forecast_config.alpha,
            beta=forecast_config.beta,
            gamma=forecast_config.gamma,
            horizon=forecast_config.horizon,
            confidence_level=forecast_config.confidence_level,
            min_data_points=forecast_config.min_data_points,
            std_floor=forecast_config.std_floor,
            default_step_seconds=forecast_config.default_step_seconds,
            mode=forecast_config.mode,
        )

    @property
    def min_history(self) -> int:
        return max(self.min_data_points, self.period)

    @property
    def z_score(self) -> float:
        return CONFIDENCE_Z_SCORES[self.confidence_level]

    def get_model(self, device_id: str, metric: MetricKind) -> Optional[HoltWintersModel]:
        return self.store.get((device_id, MetricKind(metric)))

    def discard(self, device_id: str, metric: MetricKind) -> bool:
        """Drop the model for a key; returns False if there was none."""
        return self.store.discard((device_id, MetricKind(metric)))

    def clear(self) -> None:
        self.store.clear()

    def keys(self) -> List[ModelKey]:
        return self.store.keys()

    def train(self, series: MetricSeries) -> HoltWintersModel:
        """Fully retrain the model for the series' key from its history."""
        with self.store.locked((series.device_id, series.metric)) as slot:
            slot.model = self._fit(series)
            return slot.model

    def update(self, device_id: str, metric: MetricKind, point: SamplePoint) -> HoltWintersModel:
        """
        Feed one new sample into an existing model.

        Raises:
            InsufficientTrainingDataError: If the key has never been trained
        """
        key = (device_id, MetricKind(metric))
        with self.store.locked(key, create=False) as slot:
            if slot is None or slot.model is None:
                raise InsufficientTrainingDataError(f"No trained model for {key[0]}/{key[1].value}")
            slot.model.update(point.value, point.timestamp)
            return slot.model

    def forecast(
        self,
        series: MetricSeries,
        horizon: Optional[int] = None,
        mode: Optional[str] = None,
    ) -> MetricForecast:
        """
        Train (or advance) the key's model on the series and forecast ahead.

        Raises:
            InsufficientTrainingDataError: If the history is too short to train
            ConfigurationError: If horizon is below 1 or mode is unknown
        """
        mode = mode or self.mode
        if mode not in ("retrain", "incremental"):
            raise ConfigurationError(f"Unknown forecast mode: {mode}")
        horizon = self._resolve_horizon(horizon)

        with self.store.locked((series.device_id, series.metric)) as slot:
            if mode == "incremental" and slot.model is not None:
                self._advance(slot.model, series)
            else:
                slot.model = self._fit(series)
            return self._forecast_from(slot.model, series.metric, horizon)

    def predict(
        self,
        device_id: str,
        metric: MetricKind,
        horizon: Optional[int] = None,
    ) -> MetricForecast:
        """Forecast from the key's current model without new data."""
        key = (device_id, MetricKind(metric))
        horizon = self._resolve_horizon(horizon)
        with self.store.locked(key, create=False) as slot:
            if slot is None or slot.model is None:
                raise InsufficientTrainingDataError(f"No trained model for {key[0]}/{key[1].value}")
            return self._forecast_from(slot.model, key[1], horizon)

    def _resolve_horizon(self, horizon: Optional[int]) -> int:
        if horizon is None:
            return self.horizon
        if horizon < 1:
            raise ConfigurationError(f"Forecast horizon must be at least 1, got {horizon}")
        return horizon

    def _fit(self, series: MetricSeries) -> HoltWintersModel:
        if len(series) < self.min_history:
            raise InsufficientTrainingDataError(
                f"{series.metric.value} for {series.device_id}: {len(series)} samples "
                f"< required {self.min_history}"
            )
        ordered = series.sorted()
        model = HoltWintersModel(
            period=self.period,
            alpha=self.alpha,
            beta=self.beta,
            gamma=self.gamma,
            std_floor=self.std_floor,
        )
        model.fit(ordered.values, ordered.timestamps)
        logger.info(
            f"Trained forecast model {series.device_id}/{series.metric.value} "
            f"on {len(series)} samples (rmse={sqrt(model.residual_mse):.4f})"
        )
        return model

    def _advance(self, model: HoltWintersModel, series: MetricSeries) -> None:
        fresh = [
            p for p in series.sorted().points
            if model.last_timestamp is None or p.timestamp > model.last_timestamp
        ]
        for point in fresh:
            model.update(point.value, point.timestamp)
        logger.debug(
            f"Advanced forecast model {series.device_id}/{series.metric.value} by {len(fresh)} samples"
        )

    def _forecast_from(
        self, model: HoltWintersModel, metric: MetricKind, horizon: int
    ) -> MetricForecast:
        points = model.forecast(
            horizon,
            self.z_score,
            default_step=timedelta(seconds=self.default_step_seconds),
        )
        n = model.trained_sample_count
        confidence = min(1 / log(n), 1.0) if n >= 2 else 0.0
        return MetricForecast(
            metric=metric,
            forecast=points,
            confidence=confidence,
            accuracy=model.accuracy,
        )
