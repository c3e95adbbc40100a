"""
History window planning.

Decides which date range a run fetches and reconciles. Every boundary is
computed relative to yesterday, the most recent fully elapsed day: same-day
counts from upstream are necessarily incomplete.
"""

from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Dict, Optional, Tuple, Union

from core.config import settings
from models.base import IngestionMode

# Length in days of each rolling window, ending yesterday inclusive
WINDOW_DAYS: Dict[str, int] = {
    "day": 1,
    "week": 7,
    "month": 30,
    "year": 365,
}


@dataclass(frozen=True)
class HistoryWindow:
    """
    Date bounds for one ingestion run.

    Attributes:
        mode: Run mode the window was planned for
        run_date: Calendar day keying the snapshot row (today)
        start: First day of the per-day history to fetch
        end: Last day of the per-day history to fetch (yesterday)
    """
    mode: IngestionMode
    run_date: date
    start: date
    end: date

    @property
    def days(self) -> int:
        """Inclusive number of days in the history range"""
        return (self.end - self.start).days + 1

    def point_range(self, window: str) -> Tuple[date, date]:
        """Inclusive (start, end) of a rolling window ending yesterday"""
        length = WINDOW_DAYS[window]
        return self.end - timedelta(days=length - 1), self.end

    def point_ranges(self) -> Dict[str, Tuple[date, date]]:
        return {name: self.point_range(name) for name in WINDOW_DAYS}

    def cumulative_window_start(self, window: str) -> date:
        """
        Earliest snapshot date whose cumulative total bounds a window.

        A counter observed on run_date minus N days and again on run_date
        spans N days of pulls.
        """
        return self.run_date - timedelta(days=WINDOW_DAYS[window])


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


def plan_window(
    mode: Union[IngestionMode, str],
    today: Optional[date] = None,
    daily_days: Optional[int] = None,
    bootstrap_days: Optional[int] = None
) -> HistoryWindow:
    """
    Plan the history window for a run.

    Args:
        mode: "daily" for the cheap incremental refresh, "bootstrap" for a
            full backfill of a newly tracked package
        today: Run date, defaults to the current UTC date
        daily_days: Width of the daily window (default DAILY_HISTORY_DAYS)
        bootstrap_days: Width of the bootstrap window (default BOOTSTRAP_HISTORY_DAYS)

    Returns:
        HistoryWindow ending yesterday
    """
    mode = IngestionMode(mode)
    run_date = today or utc_today()
    yesterday = run_date - timedelta(days=1)

    if mode == IngestionMode.BOOTSTRAP:
        width = bootstrap_days or settings.BOOTSTRAP_HISTORY_DAYS
    else:
        width = daily_days or settings.DAILY_HISTORY_DAYS

    if width < 1:
        raise ValueError(f"History window must span at least one day, got {width}")

    return HistoryWindow(
        mode=mode,
        run_date=run_date,
        start=yesterday - timedelta(days=width - 1),
        end=yesterday,
    )
