"""
Pydantic schemas for normalized metrics with validation.

Metric sources return PointSample / CumulativeSample / DailyDownloads;
the normalizer and reconciler turn them into StatSnapshotCreate and
HistoryPointCreate rows that the stats store upserts.
"""

from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, List, Dict, Any
from datetime import date, datetime
from models.base import PackageManager, RefreshMode

POINT_WINDOWS = ("day", "week", "month", "year")


class WindowCount(BaseModel):
    """Downloads reported by a point-sampled source for one date range"""
    downloads: int = Field(..., ge=0)
    start: date
    end: date
    package: Optional[str] = None


class PointSample(BaseModel):
    """
    Independent absolute counts for the four rolling windows.

    A window is None when it could not be fetched. None means unknown,
    never zero.
    """
    day: Optional[WindowCount] = None
    week: Optional[WindowCount] = None
    month: Optional[WindowCount] = None
    year: Optional[WindowCount] = None

    def unknown_windows(self) -> List[str]:
        return [name for name in POINT_WINDOWS if getattr(self, name) is None]

    def is_empty(self) -> bool:
        return len(self.unknown_windows()) == len(POINT_WINDOWS)


class CumulativeSample(BaseModel):
    """Current value of a cumulative pull counter"""
    pull_count: int = Field(..., ge=0)
    tag: Optional[str] = None


class DailyDownloads(BaseModel):
    """One day of a point-sampled source's per-day series"""
    day: date
    downloads: int = Field(..., ge=0)


class PackageRef(BaseModel):
    """Detached view of a tracked package, safe to use across rollbacks"""
    id: str
    name: Optional[str] = None
    package_name: str
    package_manager: PackageManager
    stats_refresh_mode: RefreshMode
    stats_bootstrapped_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class StatSnapshotCreate(BaseModel):
    """
    Schema for upserting a daily snapshot.

    Ensures:
    - Window counts are never negative
    - The raw payload is always a dict
    """
    package_id: str = Field(..., min_length=1, max_length=36)
    date: date

    downloads_day: int = Field(0, ge=0)
    downloads_week: int = Field(0, ge=0)
    downloads_month: int = Field(0, ge=0)
    downloads_year: int = Field(0, ge=0)

    cumulative_baseline: Optional[int] = Field(None, ge=0)
    raw_data: Dict[str, Any] = Field(default_factory=dict)


class HistoryPointCreate(BaseModel):
    """Schema for upserting one history row"""
    package_id: str = Field(..., min_length=1, max_length=36)
    start_date: date
    end_date: date
    downloads: int = Field(..., ge=0)
