"""
Pydantic schemas for data validation and serialization.

Schemas:
    normalized: Metric source outputs and the snapshot/history rows built from them
    api: Ingestion trigger, package, stats and health request/response models

Usage:
    from schemas import StatSnapshotCreate, IngestionSummary

Validation:
    Download counts are validated as non-negative everywhere, so a
    negative delta can never reach the store.
"""

from schemas.normalized import (
    WindowCount,
    PointSample,
    CumulativeSample,
    DailyDownloads,
    PackageRef,
    StatSnapshotCreate,
    HistoryPointCreate,
)
from schemas.api import (
    RunIngestionRequest,
    PackageOutcome,
    IngestionSummary,
    PackageCreate,
    PackageResponse,
    HealthCheckResponse,
)

__all__ = [
    "WindowCount",
    "PointSample",
    "CumulativeSample",
    "DailyDownloads",
    "PackageRef",
    "StatSnapshotCreate",
    "HistoryPointCreate",
    "RunIngestionRequest",
    "PackageOutcome",
    "IngestionSummary",
    "PackageCreate",
    "PackageResponse",
    "HealthCheckResponse",
]
