"""
Unit tests for delta reconciliation and snapshot/history normalization
"""

import pytest
from datetime import date, timedelta
from ingestion.planner import plan_window
from ingestion.transformers.normalizer import MetricNormalizer
from ingestion.transformers.reconciler import day_delta, reconcile, window_delta
from models.base import IngestionMode
from schemas.normalized import CumulativeSample, DailyDownloads, PointSample, WindowCount
from pydantic import ValidationError

RUN_DATE = date(2024, 3, 15)


class TestDayDelta:
    """Test per-day deltas from a cumulative counter"""

    def test_no_baseline_returns_raw_total(self):
        assert day_delta(87, None) == (87, True)

    def test_delta_against_baseline(self):
        assert day_delta(95, 87) == (8, False)

    def test_unchanged_counter(self):
        assert day_delta(87, 87) == (0, False)

    def test_counter_reset_clamps_to_zero(self):
        assert day_delta(40, 100) == (0, False)

    def test_zero_baseline_is_a_baseline(self):
        assert day_delta(12, 0) == (12, False)


class TestWindowDelta:
    """Test windowed aggregation over cumulative observations"""

    def test_latest_minus_earliest(self):
        assert window_delta([(date(2024, 3, 1), 100), (date(2024, 3, 4), 140)]) == 40

    def test_order_does_not_matter(self):
        assert window_delta([(date(2024, 3, 4), 140), (date(2024, 3, 1), 100)]) == 40

    def test_single_point_is_its_value(self):
        assert window_delta([(date(2024, 3, 4), 140)]) == 140

    def test_no_points_is_unknown(self):
        assert window_delta([]) is None

    def test_decreasing_counter_never_negative(self):
        assert window_delta([(date(2024, 3, 1), 500), (date(2024, 3, 4), 20)]) == 0


class TestReconcile:
    """Test full reconciliation against persisted history"""

    def test_first_observation(self):
        window = plan_window(IngestionMode.DAILY, today=RUN_DATE)

        result = reconcile(87, None, [], window)

        assert result.baseline is True
        assert result.day == 87
        assert result.pull_count == 87
        assert result.windows == {"week": 87, "month": 87, "year": 87}

    def test_week_window_from_persisted_points(self):
        day4 = date(2024, 3, 4)
        window = plan_window(IngestionMode.DAILY, today=day4)

        result = reconcile(140, 100, [(date(2024, 3, 1), 100)], window)

        assert result.day == 40
        assert result.windows["week"] == 40
        assert result.baseline is False

    def test_points_outside_window_are_ignored(self):
        window = plan_window(IngestionMode.DAILY, today=RUN_DATE)
        history = [
            (RUN_DATE - timedelta(days=60), 10),
            (RUN_DATE - timedelta(days=20), 50),
            (RUN_DATE - timedelta(days=1), 90),
        ]

        result = reconcile(100, 90, history, window)

        assert result.day == 10
        assert result.windows["week"] == 10
        assert result.windows["month"] == 50
        assert result.windows["year"] == 90

    def test_window_boundary_is_inclusive(self):
        window = plan_window(IngestionMode.DAILY, today=RUN_DATE)
        history = [(RUN_DATE - timedelta(days=7), 100)]

        result = reconcile(170, 100, history, window)

        assert result.windows["week"] == 70

    def test_same_day_history_is_not_double_counted(self):
        window = plan_window(IngestionMode.DAILY, today=RUN_DATE)
        history = [(RUN_DATE - timedelta(days=1), 90), (RUN_DATE, 95)]

        result = reconcile(100, 90, history, window)

        assert result.windows["week"] == 10

    def test_reset_never_goes_negative(self):
        window = plan_window(IngestionMode.DAILY, today=RUN_DATE)

        result = reconcile(5, 1000, [(RUN_DATE - timedelta(days=3), 1000)], window)

        assert result.day == 0
        assert all(v >= 0 for v in result.windows.values())


class TestMetricNormalizer:
    """Test snapshot and history row shaping"""

    def _window_count(self, window, name, downloads):
        start, end = window.point_range(name)
        return WindowCount(downloads=downloads, start=start, end=end, package="left-pad")

    def test_snapshot_from_point_sample(self):
        window = plan_window(IngestionMode.DAILY, today=RUN_DATE)
        sample = PointSample(
            day=self._window_count(window, "day", 500),
            week=self._window_count(window, "week", 3000),
            month=self._window_count(window, "month", 12000),
            year=self._window_count(window, "year", 140000),
        )

        snapshot = MetricNormalizer("pkg-a", window).snapshot_from_point_sample(sample)

        assert snapshot.date == RUN_DATE
        assert (snapshot.downloads_day, snapshot.downloads_week) == (500, 3000)
        assert (snapshot.downloads_month, snapshot.downloads_year) == (12000, 140000)
        assert snapshot.cumulative_baseline is None
        assert snapshot.raw_data["day"]["downloads"] == 500
        assert snapshot.raw_data["unknown_windows"] == []

    def test_unknown_window_stored_as_zero_and_null(self):
        window = plan_window(IngestionMode.DAILY, today=RUN_DATE)
        sample = PointSample(day=self._window_count(window, "day", 500))

        snapshot = MetricNormalizer("pkg-a", window).snapshot_from_point_sample(sample)

        assert snapshot.downloads_day == 500
        assert snapshot.downloads_week == 0
        assert snapshot.raw_data["week"] is None
        assert snapshot.raw_data["unknown_windows"] == ["week", "month", "year"]

    def test_snapshot_from_reconciliation(self):
        window = plan_window(IngestionMode.DAILY, today=RUN_DATE)
        result = reconcile(87, None, [], window)

        snapshot = MetricNormalizer("pkg-b", window).snapshot_from_reconciliation(
            result, CumulativeSample(pull_count=87)
        )

        assert snapshot.downloads_day == 87
        assert snapshot.cumulative_baseline == 87
        assert snapshot.raw_data == {"baseline": True, "pull_count": 87, "tag": None}

    def test_history_from_daily_clips_to_window(self):
        window = plan_window(IngestionMode.DAILY, today=RUN_DATE)
        series = [
            DailyDownloads(day=window.start - timedelta(days=1), downloads=1),
            DailyDownloads(day=window.start, downloads=2),
            DailyDownloads(day=window.end, downloads=3),
            DailyDownloads(day=RUN_DATE, downloads=4),
        ]

        points = MetricNormalizer("pkg-a", window).history_from_daily(series)

        assert [(p.start_date, p.downloads) for p in points] == [(window.start, 2), (window.end, 3)]
        assert all(p.start_date == p.end_date for p in points)

    def test_history_from_reconciliation(self):
        window = plan_window(IngestionMode.DAILY, today=RUN_DATE)
        result = reconcile(95, 87, [], window)

        point = MetricNormalizer("pkg-b", window).history_from_reconciliation(result)

        assert point.start_date == point.end_date == RUN_DATE
        assert point.downloads == 8

    def test_negative_counts_rejected(self):
        with pytest.raises(ValidationError):
            DailyDownloads(day=RUN_DATE, downloads=-1)
