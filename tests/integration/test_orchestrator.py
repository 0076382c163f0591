"""
Integration tests for the analytics orchestrator.

Batches are built the way the collection layer sends them (raw dicts with
ISO timestamps) and run through validation, every analyzer and report
assembly.
"""

from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta
from math import isfinite

import pytest

from netpulse.analytics import AnalyticsOrchestrator, ForecastEngine
from netpulse.analytics.schema import AnomalySeverity, TrendDirection
from netpulse.core.config import AnalyticsConfig
from netpulse.core.exceptions import ConfigurationError, InvalidInputError
from netpulse.data.schema import MetricKind, MetricsBatch


BANDWIDTH = [100, 110, 120, 130, 140, 150, 160, 170, 180, 190, 200, 210]
JITTER = [10.0, 12.0] * 10


def _jitter_with_spike():
    values = list(JITTER)
    values[5] = 40.0
    return values


@pytest.fixture
def orchestrator(analytics_config):
    return AnalyticsOrchestrator(settings=analytics_config)


@pytest.fixture
def batch(make_samples):
    return {
        "deviceId": "router-01",
        "metrics": {
            "jitter": make_samples(_jitter_with_spike()),
            "latency": make_samples([100, 500, 110]),
            "bandwidth": make_samples(BANDWIDTH),
        },
    }


@pytest.mark.integration
class TestInputValidation:
    """Malformed batches are rejected with INVALID_INPUT."""

    def test_missing_batch(self, orchestrator):
        with pytest.raises(InvalidInputError) as exc_info:
            orchestrator.process_metrics(None)
        assert exc_info.value.code == "INVALID_INPUT"

    def test_non_mapping(self, orchestrator):
        with pytest.raises(InvalidInputError):
            orchestrator.process_metrics(["latency", 1, 2])

    def test_missing_device_id(self, orchestrator, make_samples):
        with pytest.raises(InvalidInputError):
            orchestrator.process_metrics({"metrics": {"latency": make_samples([1, 2, 3])}})

    def test_empty_device_id(self, orchestrator):
        with pytest.raises(InvalidInputError):
            orchestrator.process_metrics({"deviceId": "", "metrics": {"latency": 1.0}})

    def test_missing_metrics(self, orchestrator):
        with pytest.raises(InvalidInputError):
            orchestrator.process_metrics({"deviceId": "router-01"})

    def test_empty_metrics(self, orchestrator):
        with pytest.raises(InvalidInputError):
            orchestrator.process_metrics({"deviceId": "router-01", "metrics": {}})

    def test_unknown_metric(self, orchestrator, make_samples):
        with pytest.raises(InvalidInputError):
            orchestrator.process_metrics(
                {"deviceId": "router-01", "metrics": {"cpuLoad": make_samples([1, 2, 3])}}
            )

    def test_non_numeric_value(self, orchestrator):
        with pytest.raises(InvalidInputError):
            orchestrator.process_metrics({"deviceId": "router-01", "metrics": {"latency": "fast"}})

    def test_unknown_tracked_metric_in_settings(self):
        with pytest.raises(ConfigurationError):
            AnalyticsOrchestrator(settings=AnalyticsConfig(tracked_metrics=["cpuLoad"]))


@pytest.mark.integration
class TestReport:
    """Full batches produce a complete report."""

    def test_report_sections(self, orchestrator, batch):
        report = orchestrator.process_metrics(batch)

        assert report.device_id == "router-01"
        assert report.timestamp.tzinfo is not None
        assert set(report.statistics) == {MetricKind.BANDWIDTH, MetricKind.LATENCY, MetricKind.JITTER}
        assert report.trends[MetricKind.BANDWIDTH].direction == TrendDirection.INCREASING
        assert report.seasonality == {}

    def test_spike_reported_as_critical(self, orchestrator, batch):
        report = orchestrator.process_metrics(batch)

        latency = [a for a in report.anomalies if a.metric == MetricKind.LATENCY]
        assert len(latency) == 1
        assert latency[0].value == 500.0
        assert latency[0].severity == AnomalySeverity.CRITICAL

    def test_anomalies_in_metric_then_time_order(self, orchestrator, batch):
        batch["metrics"]["jitter"][15]["value"] = 45.0
        report = orchestrator.process_metrics(batch)

        keys = [(a.metric, a.index) for a in report.anomalies]
        # tracked order is bandwidth, latency, packetLoss, jitter
        assert keys == [
            (MetricKind.LATENCY, 1),
            (MetricKind.JITTER, 5),
            (MetricKind.JITTER, 15),
        ]

    def test_forecast_only_with_enough_history(self, orchestrator, batch):
        report = orchestrator.process_metrics(batch)

        forecast_metrics = {p.metric for p in report.predictions}
        assert MetricKind.BANDWIDTH in forecast_metrics
        assert MetricKind.LATENCY not in forecast_metrics

        bandwidth = next(p for p in report.predictions if p.metric == MetricKind.BANDWIDTH)
        assert len(bandwidth.forecast) == 3
        last = datetime.fromisoformat(batch["metrics"]["bandwidth"][-1]["timestamp"])
        assert bandwidth.forecast[0].timestamp == last + timedelta(hours=1)
        for point in bandwidth.forecast:
            assert point.lower < point.value < point.upper

    def test_absent_metrics_are_omitted(self, orchestrator, batch):
        report = orchestrator.process_metrics(batch)

        assert MetricKind.PACKET_LOSS not in report.trends
        assert MetricKind.PACKET_LOSS not in report.statistics
        assert all(p.metric != MetricKind.PACKET_LOSS for p in report.predictions)

    def test_untracked_metric_ignored(self, orchestrator, batch, make_samples):
        batch["metrics"]["errorRate"] = make_samples([0.1, 0.2, 5.0])
        report = orchestrator.process_metrics(batch)

        assert MetricKind.ERROR_RATE not in report.statistics

    def test_short_series_degrade(self, orchestrator):
        report = orchestrator.process_metrics(
            {"deviceId": "router-01", "metrics": {"latency": 42.0}}
        )

        assert report.trends == {}
        assert report.statistics == {}
        assert report.anomalies == []
        assert report.predictions == []
        assert report.thresholds == {}
        assert report.capacity == {}

    def test_unsorted_samples(self, orchestrator, make_samples):
        samples = make_samples(BANDWIDTH)
        report = orchestrator.process_metrics(
            {"deviceId": "router-01", "metrics": {"bandwidth": list(reversed(samples))}}
        )

        assert report.trends[MetricKind.BANDWIDTH].direction == TrendDirection.INCREASING

    def test_thresholds_for_metrics_with_statistics(self, orchestrator, batch):
        report = orchestrator.process_metrics(batch)

        assert set(report.thresholds) == set(report.statistics)
        latency = report.thresholds[MetricKind.LATENCY]
        stats = report.statistics[MetricKind.LATENCY]
        assert latency.warning == pytest.approx(stats.mean + stats.std_dev)
        assert latency.emergency == pytest.approx(stats.mean + 3 * stats.std_dev)
        assert latency.seasonal_strength == 0.0

    def test_capacity_from_hourly_trend(self, orchestrator, batch):
        report = orchestrator.process_metrics(batch)

        bandwidth = report.capacity[MetricKind.BANDWIDTH]
        assert bandwidth.current == 210.0
        assert bandwidth.daily_growth == pytest.approx(240.0)
        assert bandwidth.projected == pytest.approx(210.0 + 240.0 * 30)

    def test_thresholds_widened_by_seasonal_strength(self, analytics_config, make_samples):
        settings = analytics_config.model_copy(update={"include_seasonality": True})
        orchestrator = AnalyticsOrchestrator(settings=settings)
        values = [20.0, 22.0, 10.0, 11.0] * 4

        report = orchestrator.process_metrics(
            {"deviceId": "router-01", "metrics": {"bandwidth": make_samples(values)}}
        )

        strength = report.seasonality[MetricKind.BANDWIDTH].strength
        thresholds = report.thresholds[MetricKind.BANDWIDTH]
        assert strength > 0
        assert thresholds.seasonal_strength == strength
        assert thresholds.warning == pytest.approx((thresholds.mean + thresholds.std_dev) * (1 + strength))

    def test_mixed_naive_and_aware_timestamps(self, orchestrator):
        samples = [
            {"timestamp": "2025-02-07T02:00:00", "value": 3.0},
            {"timestamp": "2025-02-07T00:00:00+00:00", "value": 1.0},
            {"timestamp": "2025-02-07T01:00:00", "value": 2.0},
            {"timestamp": "2025-02-07T03:00:00Z", "value": 4.0},
        ]

        report = orchestrator.process_metrics({"deviceId": "router-01", "metrics": {"latency": samples}})

        assert report.trends[MetricKind.LATENCY].direction == TrendDirection.INCREASING
        assert report.statistics[MetricKind.LATENCY].count == 4

    def test_values_near_float_limit(self, orchestrator, make_samples):
        values = [1e200, -1e200, 1e200, -1e200, 1e200]

        report = orchestrator.process_metrics(
            {"deviceId": "router-01", "metrics": {"bandwidth": make_samples(values)}}
        )

        trend = report.trends[MetricKind.BANDWIDTH]
        stats = report.statistics[MetricKind.BANDWIDTH]
        assert 0.0 <= trend.r_squared <= 1.0
        assert isfinite(stats.std_dev)
        assert stats.variance is None
        assert isfinite(report.thresholds[MetricKind.BANDWIDTH].emergency)

    def test_accepts_parsed_batch(self, orchestrator, batch):
        parsed = MetricsBatch.model_validate(batch)

        assert orchestrator.process_metrics(parsed).device_id == "router-01"

    def test_seasonality_when_enabled(self, analytics_config, square_wave, make_samples):
        settings = analytics_config.model_copy(update={"include_seasonality": True})
        orchestrator = AnalyticsOrchestrator(settings=settings)

        report = orchestrator.process_metrics(
            {"deviceId": "router-01", "metrics": {"bandwidth": make_samples(square_wave(4, 4))}}
        )

        components = report.seasonality[MetricKind.BANDWIDTH]
        assert components.period == 4
        assert components.seasonal == pytest.approx([4 / 3, 4 / 3, 2 / 3, 2 / 3])

    def test_report_serializes_with_wire_names(self, orchestrator, batch):
        dumped = orchestrator.process_metrics(batch).model_dump(mode="json")

        assert "bandwidth" in dumped["trends"]
        assert dumped["trends"]["bandwidth"]["direction"] == "increasing"


@pytest.mark.integration
class TestModelSharing:
    """Forecast models persist per device and metric."""

    def test_shared_engine_across_orchestrators(self, analytics_config, batch):
        engine = ForecastEngine.from_config(analytics_config.forecast)
        first = AnalyticsOrchestrator(settings=analytics_config, forecast_engine=engine)
        second = AnalyticsOrchestrator(settings=analytics_config, forecast_engine=engine)

        first.process_metrics(batch)
        batch["deviceId"] = "router-02"
        second.process_metrics(batch)

        assert ("router-01", MetricKind.BANDWIDTH) in engine.keys()
        assert ("router-02", MetricKind.BANDWIDTH) in engine.keys()
        assert first.forecast_engine is second.forecast_engine

    @pytest.mark.slow
    def test_concurrent_devices(self, orchestrator, make_samples):
        batches = [
            {"deviceId": f"router-{i:02d}", "metrics": {"bandwidth": make_samples(BANDWIDTH)}}
            for i in range(8)
        ]

        with ThreadPoolExecutor(max_workers=4) as pool:
            reports = list(pool.map(orchestrator.process_metrics, batches))

        assert [r.device_id for r in reports] == [b["deviceId"] for b in batches]
        assert len(orchestrator.forecast_engine.keys()) == 8
        forecasts = {tuple(p.value for p in r.predictions[0].forecast) for r in reports}
        assert len(forecasts) == 1
