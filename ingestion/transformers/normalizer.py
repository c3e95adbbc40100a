"""
Transform source samples into snapshot and history rows with Pydantic validation
"""

from typing import Dict, Any, List, Optional
from datetime import date
import logging

from ingestion.planner import HistoryWindow
from ingestion.transformers.reconciler import Reconciliation
from schemas.normalized import (
    POINT_WINDOWS,
    CumulativeSample,
    DailyDownloads,
    HistoryPointCreate,
    PointSample,
    StatSnapshotCreate,
)

logger = logging.getLogger(__name__)


class MetricNormalizer:
    """
    Normalize samples from different metric kinds into one schema.

    Handles:
    - Window count mapping
    - Unknown windows (stored as 0, recorded as null in raw_data)
    - Raw payload shaping
    - Clipping history to the planned window
    """

    def __init__(self, package_id: str, window: HistoryWindow):
        self.package_id = package_id
        self.window = window

    def snapshot_from_point_sample(self, sample: PointSample) -> StatSnapshotCreate:
        counts: Dict[str, int] = {}
        raw: Dict[str, Any] = {}

        for name in POINT_WINDOWS:
            window_count = getattr(sample, name)
            if window_count is None:
                counts[f"downloads_{name}"] = 0
                raw[name] = None
            else:
                counts[f"downloads_{name}"] = window_count.downloads
                raw[name] = window_count.model_dump(mode="json")

        raw["unknown_windows"] = sample.unknown_windows()

        return StatSnapshotCreate(
            package_id=self.package_id,
            date=self.window.run_date,
            raw_data=raw,
            **counts
        )

    def snapshot_from_reconciliation(
        self,
        result: Reconciliation,
        sample: CumulativeSample
    ) -> StatSnapshotCreate:
        return StatSnapshotCreate(
            package_id=self.package_id,
            date=self.window.run_date,
            downloads_day=result.day,
            downloads_week=result.windows.get("week", 0),
            downloads_month=result.windows.get("month", 0),
            downloads_year=result.windows.get("year", 0),
            cumulative_baseline=sample.pull_count,
            raw_data={
                "baseline": result.baseline,
                "pull_count": sample.pull_count,
                "tag": sample.tag,
            },
        )

    def history_from_daily(
        self,
        series: List[DailyDownloads],
        start: Optional[date] = None,
        end: Optional[date] = None
    ) -> List[HistoryPointCreate]:
        """One single-day history row per day inside [start, end]"""
        start = start or self.window.start
        end = end or self.window.end

        points: Dict[date, HistoryPointCreate] = {}
        skipped = 0
        for entry in series:
            if not (start <= entry.day <= end):
                skipped += 1
                continue
            # Later entries for the same day win
            points[entry.day] = HistoryPointCreate(
                package_id=self.package_id,
                start_date=entry.day,
                end_date=entry.day,
                downloads=entry.downloads,
            )

        if skipped:
            logger.debug(f"Dropped {skipped} daily points outside {start}..{end} for {self.package_id}")

        return [points[d] for d in sorted(points)]

    def history_from_reconciliation(self, result: Reconciliation) -> HistoryPointCreate:
        return HistoryPointCreate(
            package_id=self.package_id,
            start_date=self.window.run_date,
            end_date=self.window.run_date,
            downloads=result.day,
        )
