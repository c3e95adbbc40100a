"""
SQLAlchemy ORM models for database tables.

Models:
    base: Declarative base, dialect-portable column types and shared enums
    package: Tracked packages and their stats refresh state
    stats: Daily download snapshots and per-day download history
    ingestion_run: Ingestion run audit trail

Database Schema:
    All models inherit from the Base declarative class. JSON payloads use
    JSONB on PostgreSQL and plain JSON elsewhere, so the same models back
    the SQLite test database.

Relationships:
    - TrackedPackage → StatSnapshot (one row per calendar day)
    - TrackedPackage → HistoryPoint (one row per day of history)
"""

from models.base import (
    Base,
    PackageManager,
    MetricKind,
    RefreshMode,
    IngestionMode,
    RunStatus,
)
from models.package import TrackedPackage
from models.stats import StatSnapshot, HistoryPoint
from models.ingestion_run import IngestionRun

__all__ = [
    "Base",
    "PackageManager",
    "MetricKind",
    "RefreshMode",
    "IngestionMode",
    "RunStatus",
    "TrackedPackage",
    "StatSnapshot",
    "HistoryPoint",
    "IngestionRun",
]
