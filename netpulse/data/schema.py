"""
Canonical telemetry schema for the analytics pipeline.

Defines the standardized representation of samples, per-metric series and the
metrics batches handed to the orchestrator by the surrounding collection layer.

Design rationale:
- Metric names form a closed enumeration; unknown names are rejected
- Sample values must be finite (NaN/Inf never reach the analytics)
- Series are owned by a single analysis call and never mutated in place
"""

import math
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class SampleQuality(str, Enum):
    """Collector-reported quality of a sample."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class MetricKind(str, Enum):
    """
    Tracked telemetry metrics.

    Values are the wire names used in device payloads.
    """

    BANDWIDTH = "bandwidth"
    LATENCY = "latency"
    PACKET_LOSS = "packetLoss"
    JITTER = "jitter"
    ERROR_RATE = "errorRate"
    RETRANSMISSION_RATE = "retransmissionRate"
    THROUGHPUT = "throughput"
    AVAILABILITY = "availability"


def _as_utc(value: datetime) -> datetime:
    # Naive timestamps are taken as UTC so one series never mixes naive and
    # aware values, which cannot be ordered against each other.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class SamplePoint(BaseModel):
    """
    A single time-stamped measurement.

    Attributes:
        timestamp: When the sample was taken
        value: Measured value (finite)
        quality: Collector-reported quality, "high" unless stated otherwise
    """

    timestamp: datetime = Field(..., description="Sample timestamp")
    value: float = Field(..., description="Measured value")
    quality: SampleQuality = Field(default=SampleQuality.HIGH)

    @field_validator("timestamp")
    @classmethod
    def _utc_timestamp(cls, value: datetime) -> datetime:
        return _as_utc(value)

    @field_validator("value")
    @classmethod
    def _finite_value(cls, value: float) -> float:
        if not math.isfinite(value):
            raise ValueError(f"{value} is not a valid metric value")
        return value


class MetricSeries(BaseModel):
    """
    Ordered samples for one (device, metric) pair.

    Notes:
        - Points are expected in non-decreasing timestamp order; analyzers
          that depend on ordering call sorted() defensively.
    """

    device_id: str = Field(..., min_length=1, max_length=128)
    metric: MetricKind
    points: List[SamplePoint] = Field(default_factory=list)

    def __len__(self) -> int:
        return len(self.points)

    @property
    def values(self) -> List[float]:
        return [p.value for p in self.points]

    @property
    def timestamps(self) -> List[datetime]:
        return [p.timestamp for p in self.points]

    @property
    def is_sorted(self) -> bool:
        return all(
            earlier.timestamp <= later.timestamp
            for earlier, later in zip(self.points, self.points[1:])
        )

    def sorted(self) -> "MetricSeries":
        """Return this series if ordered, otherwise a timestamp-sorted copy."""
        if self.is_sorted:
            return self
        ordered = sorted(self.points, key=lambda p: p.timestamp)
        return self.model_copy(update={"points": ordered})


def _wrap_metric_entry(name: Any, entry: Any, timestamp: datetime) -> Any:
    # Bare numbers and single samples are accepted for convenience;
    # everything else must already be a list of samples.
    if isinstance(entry, bool):
        raise ValueError(f"metric '{name}' has a non-numeric value")
    if isinstance(entry, (int, float)):
        return [{"timestamp": timestamp, "value": entry}]
    if isinstance(entry, dict):
        if "timestamp" not in entry:
            entry = {**entry, "timestamp": timestamp}
        return [entry]
    if isinstance(entry, (list, tuple)):
        return list(entry)
    raise ValueError(f"metric '{name}' must be a number, a sample or a list of samples")


class MetricsBatch(BaseModel):
    """
    Telemetry for one device, grouped by metric.

    Attributes:
        device_id: Monitored device identifier (wire name "deviceId")
        timestamp: Batch collection time; stamps bare-number entries
        metrics: Samples per metric kind
    """

    model_config = ConfigDict(populate_by_name=True)

    device_id: str = Field(..., alias="deviceId", min_length=1, max_length=128)
    timestamp: Optional[datetime] = None
    metrics: Dict[MetricKind, List[SamplePoint]]

    @model_validator(mode="before")
    @classmethod
    def _normalize_metric_entries(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        metrics = data.get("metrics")
        if not isinstance(metrics, dict):
            return data
        timestamp = data.get("timestamp") or datetime.now(timezone.utc)
        normalized = {
            name: _wrap_metric_entry(name, entry, timestamp)
            for name, entry in metrics.items()
        }
        return {**data, "metrics": normalized}

    @field_validator("timestamp")
    @classmethod
    def _utc_batch_timestamp(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _as_utc(value) if value is not None else None

    @field_validator("metrics")
    @classmethod
    def _metrics_not_empty(cls, value: Dict[MetricKind, List[SamplePoint]]) -> Dict[MetricKind, List[SamplePoint]]:
        if not value:
            raise ValueError("metrics payload is empty")
        return value

    def series(self, metric: MetricKind) -> MetricSeries:
        """Return the samples for one metric as a MetricSeries."""
        return MetricSeries(
            device_id=self.device_id,
            metric=metric,
            points=list(self.metrics.get(metric, [])),
        )
