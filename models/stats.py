from sqlalchemy import Column, String, BigInteger, Date, DateTime, ForeignKey, Index, UniqueConstraint
from datetime import datetime, timezone
from models.base import Base, BigIntPK, JSONPayload


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class StatSnapshot(Base):
    """
    Rolling-window download counts for one package on one calendar day.

    Design:
    - One row per (package_id, date); reruns on the same day overwrite
    - cumulative_baseline holds the observed cumulative total for
      cumulative-counter ecosystems and is the baseline for the next run
    - raw_data keeps the upstream payloads, with null for windows that
      could not be fetched
    """
    __tablename__ = "download_stats"

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    package_id = Column(
        String(36),
        ForeignKey("tracked_packages.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    date = Column(Date, nullable=False)

    downloads_day = Column(BigInteger, nullable=False, default=0)
    downloads_week = Column(BigInteger, nullable=False, default=0)
    downloads_month = Column(BigInteger, nullable=False, default=0)
    downloads_year = Column(BigInteger, nullable=False, default=0)

    cumulative_baseline = Column(BigInteger, nullable=True)
    raw_data = Column(JSONPayload, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    __table_args__ = (
        UniqueConstraint("package_id", "date", name="uq_download_stats_package_date"),
        Index("idx_download_stats_package_date", "package_id", "date"),
    )

    def __repr__(self):
        return f"<StatSnapshot {self.package_id}:{self.date}>"


class HistoryPoint(Base):
    """Downloads attributed to one package over one date range (a single day)."""
    __tablename__ = "download_history"

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    package_id = Column(
        String(36),
        ForeignKey("tracked_packages.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    downloads = Column(BigInteger, nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    __table_args__ = (
        UniqueConstraint(
            "package_id", "start_date", "end_date",
            name="uq_download_history_package_range"
        ),
        Index("idx_download_history_package_start", "package_id", "start_date"),
    )

    def __repr__(self):
        return f"<HistoryPoint {self.package_id}:{self.start_date}..{self.end_date}>"
