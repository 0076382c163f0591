"""
Unit tests for time-bucket aggregation.
"""

from datetime import datetime, timedelta, timezone

import pytest

from netpulse.core.exceptions import InvalidInputError
from netpulse.data.aggregation import aggregate_series, downsample_series
from netpulse.data.schema import MetricKind, MetricSeries, SamplePoint, SampleQuality


START = datetime(2025, 2, 3, tzinfo=timezone.utc)  # a Monday


class TestAggregateSeries:
    """Test aggregate_series()."""

    def test_daily_means(self, make_series):
        # 48 hourly samples: day one all 10, day two all 20
        series = make_series([10.0] * 24 + [20.0] * 24, start=START)
        daily = aggregate_series(series, level="daily")

        assert daily.values == [10.0, 20.0]
        assert daily.timestamps[0] == START
        assert daily.metric == series.metric
        assert daily.device_id == series.device_id

    def test_hourly_max(self, make_series):
        series = make_series([1, 5, 3, 2], step=timedelta(minutes=30), start=START)
        hourly = aggregate_series(series, level="hourly", statistic="max")

        assert hourly.values == [5.0, 3.0]

    def test_weekly_buckets_start_monday(self, make_series):
        series = make_series([1.0] * 14, step=timedelta(days=1), start=START + timedelta(days=2))
        weekly = aggregate_series(series, level="weekly")

        assert [ts.weekday() for ts in weekly.timestamps] == [0] * len(weekly)
        assert len(weekly) == 3

    def test_monthly_skips_empty_buckets(self, make_series):
        points = [
            SamplePoint(timestamp=datetime(2025, 1, 15, tzinfo=timezone.utc), value=1.0),
            SamplePoint(timestamp=datetime(2025, 3, 15, tzinfo=timezone.utc), value=3.0),
        ]
        series = MetricSeries(device_id="router-01", metric=MetricKind.BANDWIDTH, points=points)
        monthly = aggregate_series(series, level="monthly")

        assert monthly.values == [1.0, 3.0]

    def test_bucket_quality_is_worst_seen(self):
        points = [
            SamplePoint(timestamp=START, value=1.0, quality=SampleQuality.HIGH),
            SamplePoint(timestamp=START + timedelta(minutes=10), value=2.0, quality=SampleQuality.LOW),
        ]
        series = MetricSeries(device_id="router-01", metric=MetricKind.JITTER, points=points)
        hourly = aggregate_series(series, level="hourly")

        assert hourly.points[0].quality == SampleQuality.LOW
        assert hourly.values == [1.5]

    def test_empty_series(self):
        series = MetricSeries(device_id="router-01", metric=MetricKind.JITTER)
        assert len(aggregate_series(series)) == 0

    def test_invalid_level(self, make_series):
        with pytest.raises(InvalidInputError):
            aggregate_series(make_series([1, 2]), level="yearly")

    def test_invalid_statistic(self, make_series):
        with pytest.raises(InvalidInputError):
            aggregate_series(make_series([1, 2]), statistic="mode")


class TestDownsampleSeries:
    """Test downsample_series()."""

    def test_runs_of_factor_points(self, make_series):
        series = make_series([1, 3, 5, 7, 9, 11, 13], start=START)
        reduced = downsample_series(series, max_points=3)

        # factor ceil(7 / 3) = 3: runs [1, 3, 5], [7, 9, 11], [13]
        assert reduced.values == [3.0, 9.0, 13.0]
        assert reduced.timestamps == [series.timestamps[0], series.timestamps[3], series.timestamps[6]]
        assert reduced.metric == series.metric

    @pytest.mark.parametrize(
        "statistic,expected",
        [("min", [1.0, 7.0]), ("max", [5.0, 11.0]), ("std", [pytest.approx(1.632993, rel=1e-6)] * 2)],
    )
    def test_statistics(self, make_series, statistic, expected):
        series = make_series([1, 3, 5, 7, 9, 11], start=START)

        assert downsample_series(series, max_points=2, statistic=statistic).values == expected

    def test_within_limit_is_unchanged(self, make_series):
        series = make_series([4, 2, 8], start=START)

        assert downsample_series(series, max_points=3).values == [4.0, 2.0, 8.0]
        assert downsample_series(series, max_points=100).values == [4.0, 2.0, 8.0]

    def test_run_quality_is_worst_seen(self):
        points = [
            SamplePoint(timestamp=START + timedelta(minutes=i), value=float(i), quality=q)
            for i, q in enumerate([SampleQuality.HIGH, SampleQuality.LOW, SampleQuality.HIGH, SampleQuality.HIGH])
        ]
        series = MetricSeries(device_id="router-01", metric=MetricKind.JITTER, points=points)

        reduced = downsample_series(series, max_points=2)

        assert [p.quality for p in reduced.points] == [SampleQuality.LOW, SampleQuality.HIGH]

    def test_empty_series(self):
        series = MetricSeries(device_id="router-01", metric=MetricKind.LATENCY, points=[])

        assert len(downsample_series(series, max_points=5)) == 0

    @pytest.mark.parametrize("kwargs", [{"max_points": 0}, {"max_points": 2, "statistic": "sum"}])
    def test_invalid_arguments(self, make_series, kwargs):
        with pytest.raises(InvalidInputError):
            downsample_series(make_series([1, 2, 3]), **kwargs)
