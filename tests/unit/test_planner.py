import pytest
from datetime import date, timedelta
from ingestion.planner import WINDOW_DAYS, plan_window
from models.base import IngestionMode

RUN_DATE = date(2024, 3, 15)
YESTERDAY = date(2024, 3, 14)


def test_daily_window_is_thirty_days_ending_yesterday():
    window = plan_window(IngestionMode.DAILY, today=RUN_DATE)

    assert window.end == YESTERDAY
    assert window.days == 30
    assert window.start == YESTERDAY - timedelta(days=29)
    assert window.run_date == RUN_DATE


def test_bootstrap_window_is_a_year_ending_yesterday():
    window = plan_window("bootstrap", today=RUN_DATE)

    assert window.mode == IngestionMode.BOOTSTRAP
    assert window.end == YESTERDAY
    assert window.days == 365


def test_point_ranges_end_yesterday():
    window = plan_window(IngestionMode.DAILY, today=RUN_DATE)

    for name, length in WINDOW_DAYS.items():
        start, end = window.point_range(name)
        assert end == YESTERDAY
        assert (end - start).days + 1 == length

    assert window.point_range("day") == (YESTERDAY, YESTERDAY)


def test_cumulative_window_start():
    window = plan_window(IngestionMode.DAILY, today=RUN_DATE)

    assert window.cumulative_window_start("week") == date(2024, 3, 8)
    assert window.cumulative_window_start("year") == RUN_DATE - timedelta(days=365)


def test_width_overrides():
    assert plan_window("daily", today=RUN_DATE, daily_days=7).days == 7
    assert plan_window("bootstrap", today=RUN_DATE, bootstrap_days=90).days == 90


def test_unknown_mode_rejected():
    with pytest.raises(ValueError):
        plan_window("weekly", today=RUN_DATE)


def test_defaults_to_utc_today():
    window = plan_window(IngestionMode.DAILY)
    assert window.end == window.run_date - timedelta(days=1)
