"""
Pytest configuration and shared fixtures.

Provides series builders and test configuration instances for unit and
integration tests.
"""

from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional, Sequence

import pytest

from netpulse.core.config import AnalyticsConfig, ForecastConfig, SeasonalityConfig
from netpulse.data.schema import MetricKind, MetricSeries, SamplePoint


BASE_TIME = datetime(2025, 2, 7, 0, 0, tzinfo=timezone.utc)


def build_series(
    values: Sequence[float],
    metric: MetricKind = MetricKind.LATENCY,
    device_id: str = "router-01",
    step: timedelta = timedelta(hours=1),
    start: datetime = BASE_TIME,
) -> MetricSeries:
    """Series with evenly spaced timestamps starting at `start`."""
    return MetricSeries(
        device_id=device_id,
        metric=metric,
        points=[
            SamplePoint(timestamp=start + step * i, value=float(v))
            for i, v in enumerate(values)
        ],
    )


def build_samples(
    values: Sequence[float],
    step: timedelta = timedelta(hours=1),
    start: datetime = BASE_TIME,
) -> List[dict]:
    """Raw sample dicts, as the collection layer sends them."""
    return [
        {"timestamp": (start + step * i).isoformat(), "value": float(v)}
        for i, v in enumerate(values)
    ]


@pytest.fixture
def make_series() -> Callable[..., MetricSeries]:
    """Fixture returning the series builder."""
    return build_series


@pytest.fixture
def make_samples() -> Callable[..., List[dict]]:
    """Fixture returning the raw sample builder."""
    return build_samples


@pytest.fixture
def analytics_config() -> AnalyticsConfig:
    """
    Analytics configuration with a short seasonal period.

    Keeps tests independent of .env settings and small enough to reason
    about by hand.
    """
    return AnalyticsConfig(
        seasonality=SeasonalityConfig(period=4),
        forecast=ForecastConfig(period=4, horizon=3),
    )


@pytest.fixture
def square_wave() -> Callable[[int, int, Optional[float], Optional[float]], List[float]]:
    """Repeating high/low pattern: first half of each period high."""

    def _wave(period: int, cycles: int, high: float = 20.0, low: float = 10.0) -> List[float]:
        half = period // 2
        cycle = [high] * half + [low] * (period - half)
        return cycle * cycles

    return _wave


MARKERS = {
    "unit": "isolated tests of one component",
    "integration": "tests running the orchestrator or CLI end to end",
    "slow": "threaded or long-running tests",
}


def pytest_configure(config):
    """Register the markers used across the suite."""
    for name, description in MARKERS.items():
        config.addinivalue_line("markers", f"{name}: {description}")
