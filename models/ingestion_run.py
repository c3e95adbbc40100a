from sqlalchemy import Column, String, DateTime, Float, Integer, Text, Index
from datetime import datetime, timezone
import uuid
from models.base import Base, BigIntPK, JSONPayload, IngestionMode, RunStatus, enum_column_type


class IngestionRun(Base):
    """
    Tracks metadata for each ingestion invocation.

    Purpose:
    - Audit trail of scheduled and manual runs
    - Last-run status for the health endpoint
    - Per-package outcomes for partial-failure debugging
    """
    __tablename__ = "ingestion_runs"

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    run_id = Column(String(36), default=lambda: str(uuid.uuid4()), unique=True, nullable=False, index=True)

    mode = Column(enum_column_type(IngestionMode, "ingestion_mode"), nullable=False)
    package_id = Column(String(36), nullable=True)  # Explicit single-package trigger

    status = Column(
        enum_column_type(RunStatus, "ingestion_run_status"),
        default=RunStatus.RUNNING,
        nullable=False,
        index=True
    )

    started_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
    completed_at = Column(DateTime(timezone=True), nullable=True)
    duration_seconds = Column(Float, nullable=True)

    packages_processed = Column(Integer, default=0)
    packages_succeeded = Column(Integer, default=0)
    packages_failed = Column(Integer, default=0)

    error_message = Column(Text, nullable=True)
    results = Column(JSONPayload, nullable=True)

    __table_args__ = (
        Index("idx_ingestion_runs_mode_started", "mode", "started_at"),
    )
