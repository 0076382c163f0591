"""
Application configuration for NetPulse analytics.

Provides environment-aware settings with conservative defaults. All analytics
thresholds are configurable to avoid hard-coded "magic numbers".
"""

from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Literal

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# Two-sided z values for the forecast confidence levels we support.
CONFIDENCE_Z_SCORES: Dict[float, float] = {
	0.80: 1.282,
	0.85: 1.44,
	0.90: 1.645,
	0.95: 1.96,
	0.99: 2.576,
}


class TrendConfig(BaseModel):
	"""
	Settings for least-squares trend classification.

	Notes:
	- min_data_points: below this, the trend is reported as "unknown".
	- stable_slope_threshold: compared against the normalized slope
	  (fitted change across the window divided by the observed range).
	"""

	min_data_points: int = Field(3, ge=2)
	stable_slope_threshold: float = Field(0.1, ge=0.0)


class AnomalyConfig(BaseModel):
	"""
	Thresholds for z-score anomaly detection.

	Rationale:
	- z_threshold of 2.5 keeps false positives low on bursty telemetry.
	- Points above z_threshold * critical_multiplier are escalated to critical.
	- baseline "exclusive" scores each point against the other points only;
	  "population" uses the whole series including the point itself.
	"""

	z_threshold: float = Field(2.5, gt=0.0, description="Minimum z-score for an anomaly")
	critical_multiplier: float = Field(
		1.5, ge=1.0, description="Multiplier on z_threshold for critical severity"
	)
	baseline: Literal["exclusive", "population"] = "exclusive"
	std_floor: float = Field(1e-6, gt=0.0)


class SeasonalityConfig(BaseModel):
	"""
	Classical decomposition settings.

	Notes:
	- period: samples per season (24 for hourly data with a daily cycle).
	- min_cycles: full cycles needed before seasonal indices are trusted.
	"""

	period: int = Field(24, ge=1)
	mode: Literal["multiplicative", "additive"] = "multiplicative"
	min_cycles: int = Field(2, ge=1)


class ForecastConfig(BaseModel):
	"""
	Holt-Winters forecasting settings.

	Notes:
	- alpha/beta/gamma: level, trend and seasonal smoothing weights.
	- std_floor: lower bound on the residual std so intervals never collapse.
	- mode: "retrain" replays the full history on every call, "incremental"
	  only feeds points newer than the last one the model has seen.
	"""

	period: int = Field(24, ge=1)
	alpha: float = Field(0.2, gt=0.0, lt=1.0)
	beta: float = Field(0.1, gt=0.0, lt=1.0)
	gamma: float = Field(0.3, gt=0.0, lt=1.0)
	horizon: int = Field(5, ge=1)
	confidence_level: float = Field(0.95, gt=0.0, lt=1.0)
	min_data_points: int = Field(3, ge=2)
	std_floor: float = Field(1e-6, gt=0.0)
	default_step_seconds: float = Field(3600.0, gt=0.0)
	mode: Literal["retrain", "incremental"] = "retrain"

	@field_validator("confidence_level")
	@classmethod
	def _supported_confidence(cls, value: float) -> float:
		if value not in CONFIDENCE_Z_SCORES:
			supported = ", ".join(str(level) for level in sorted(CONFIDENCE_Z_SCORES))
			raise ValueError(f"confidence_level must be one of: {supported}")
		return value


class ThresholdConfig(BaseModel):
	"""
	Alert threshold multiples of the standard deviation above the mean.

	Rationale:
	- 1/2/3 sigma for warning/critical/emergency, widened further by the
	  seasonal strength when a decomposition is available.
	"""

	warning_sigma: float = Field(1.0, gt=0.0)
	critical_sigma: float = Field(2.0, gt=0.0)
	emergency_sigma: float = Field(3.0, gt=0.0)

	@model_validator(mode="after")
	def _levels_ascending(self) -> "ThresholdConfig":
		if not self.warning_sigma < self.critical_sigma < self.emergency_sigma:
			raise ValueError("Expected warning_sigma < critical_sigma < emergency_sigma")
		return self


class CapacityConfig(BaseModel):
	"""
	Capacity projection settings.

	Notes:
	- projection_days: how far ahead the trend is extrapolated.
	"""

	projection_days: int = Field(30, ge=1)


class AnalyticsConfig(BaseModel):
	"""
	Analytics configuration shared by the orchestrator and its components.
	"""

	tracked_metrics: List[str] = Field(
		default_factory=lambda: ["bandwidth", "latency", "packetLoss", "jitter"]
	)
	include_seasonality: bool = False
	trend: TrendConfig = TrendConfig()
	anomaly: AnomalyConfig = AnomalyConfig()
	seasonality: SeasonalityConfig = SeasonalityConfig()
	forecast: ForecastConfig = ForecastConfig()
	thresholds: ThresholdConfig = ThresholdConfig()
	capacity: CapacityConfig = CapacityConfig()

	@model_validator(mode="after")
	def _tracked_metrics_not_empty(self) -> "AnalyticsConfig":
		if not self.tracked_metrics:
			raise ValueError("tracked_metrics must name at least one metric")
		return self


class Config(BaseSettings):
	"""
	Global configuration with environment overrides.

	Nested values use a double underscore, e.g.
	NETPULSE_ANALYTICS__FORECAST__HORIZON=10.
	"""

	model_config = SettingsConfigDict(
		env_prefix="NETPULSE_",
		env_file=".env",
		env_nested_delimiter="__",
		extra="ignore",
	)

	log_level: str = Field("INFO", description="Default logging level")
	logs_dir: Path = Field(Path("logs"), description="Directory for log files")
	log_to_file: bool = Field(True, description="Also write to a rotating file under logs_dir")
	log_max_bytes: int = Field(5 * 1024 * 1024, gt=0, description="Rotate the log file at this size")
	log_backup_count: int = Field(3, ge=0, description="Rotated log files to keep")
	analytics: AnalyticsConfig = AnalyticsConfig()

	def model_post_init(self, __context: object) -> None:
		self.logs_dir.mkdir(parents=True, exist_ok=True)


config = Config()
