"""
Delta reconciliation for cumulative counters.

A cumulative counter (Docker Hub pull_count) only ever tells us the total
so far. Per-day and windowed figures come from differences between
observations, clamped at zero: counters can be reset or re-created
upstream and a negative download count is never stored.
"""

from dataclasses import dataclass, field
from datetime import date
from typing import Dict, Iterable, Optional, Tuple

from ingestion.planner import HistoryWindow

# (snapshot date, cumulative total observed on that date)
CumulativePoint = Tuple[date, int]


@dataclass
class Reconciliation:
    """
    Reconciled figures for one cumulative observation.

    Attributes:
        day: Downloads attributed to the run date
        windows: week/month/year values derived from persisted observations
        pull_count: The observed cumulative total
        baseline: True when there was no prior observation and `day` is
            the raw total rather than a delta
    """
    day: int
    windows: Dict[str, int] = field(default_factory=dict)
    pull_count: int = 0
    baseline: bool = False


def day_delta(total: int, baseline: Optional[int]) -> Tuple[int, bool]:
    """
    Downloads for the run date given the previous cumulative total.

    Returns:
        (value, is_baseline). With no previous total the raw value is
        returned and flagged as a baseline.
    """
    if baseline is None:
        return total, True
    return max(total - baseline, 0), False


def window_delta(points: Iterable[CumulativePoint]) -> Optional[int]:
    """
    Growth of a counter across the observations inside one window.

    Two or more points give latest minus earliest (clamped at zero); a
    single point gives that point's value; no points give None.
    """
    ordered = sorted(points, key=lambda p: p[0])
    if not ordered:
        return None
    if len(ordered) == 1:
        return ordered[0][1]
    return max(ordered[-1][1] - ordered[0][1], 0)


def reconcile(
    total: int,
    baseline: Optional[int],
    history: Iterable[CumulativePoint],
    window: HistoryWindow,
    window_names: Iterable[str] = ("week", "month", "year")
) -> Reconciliation:
    """
    Reconcile one cumulative observation against persisted history.

    Args:
        total: Cumulative total observed for window.run_date
        baseline: Latest cumulative total dated before the run date, None
            if the package has never been observed
        history: Persisted (date, total) points before the run date
        window: Planned window for this run
        window_names: Trailing windows to derive
    """
    day, is_baseline = day_delta(total, baseline)

    prior = [(d, v) for d, v in history if d < window.run_date]
    observed = prior + [(window.run_date, total)]

    windows: Dict[str, int] = {}
    for name in window_names:
        start = window.cumulative_window_start(name)
        value = window_delta(p for p in observed if p[0] >= start)
        # The current observation is always inside the window
        windows[name] = value if value is not None else total

    return Reconciliation(day=day, windows=windows, pull_count=total, baseline=is_baseline)
