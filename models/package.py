from sqlalchemy import Column, String, DateTime, Index
from datetime import datetime, timezone
import uuid
from models.base import Base, PackageManager, RefreshMode, enum_column_type


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TrackedPackage(Base):
    """
    A package whose downloads are tracked on the dashboard.

    Rows are owned by the project management layer. Ingestion only ever
    flips stats_refresh_mode from pending to daily and stamps
    stats_bootstrapped_at after a successful bootstrap run.
    """
    __tablename__ = "tracked_packages"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    organization_id = Column(String(36), nullable=True, index=True)

    name = Column(String(200), nullable=False)
    package_name = Column(String(500), nullable=False)  # Canonical reference
    package_url = Column(String(2048), nullable=True)  # As supplied by the user
    package_manager = Column(
        enum_column_type(PackageManager, "package_manager_type"),
        nullable=False,
        default=PackageManager.NPM
    )

    stats_refresh_mode = Column(
        enum_column_type(RefreshMode, "stats_refresh_mode"),
        nullable=False,
        default=RefreshMode.PENDING
    )
    stats_bootstrapped_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    __table_args__ = (
        Index("idx_tracked_packages_manager_mode", "package_manager", "stats_refresh_mode"),
    )

    def __repr__(self):
        return f"<TrackedPackage {self.package_manager}:{self.package_name}>"
