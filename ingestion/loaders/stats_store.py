"""
Load snapshot and history rows with upsert logic (idempotency)
"""

from typing import List, Optional, Tuple
from datetime import date
import logging

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import settings
from core.exceptions import StoreError, UpsertError
from models.stats import HistoryPoint, StatSnapshot
from schemas.normalized import HistoryPointCreate, StatSnapshotCreate

logger = logging.getLogger(__name__)

SNAPSHOT_KEY = ["package_id", "date"]
HISTORY_KEY = ["package_id", "start_date", "end_date"]


class StatsStore:
    """
    Read and write download stats with idempotent upsert operations.

    Ensures:
    - One snapshot per (package, date), one history row per (package, range)
    - Re-running a day overwrites instead of duplicating
    - Each upsert is committed on its own, so rows written before a
      later failure in the same package are kept
    """

    def __init__(self, db_session: AsyncSession, batch_size: Optional[int] = None):
        self.db = db_session
        self.batch_size = batch_size or settings.HISTORY_UPSERT_BATCH_SIZE

    def _insert(self, model):
        dialect = self.db.get_bind().dialect.name
        if dialect == "postgresql":
            return pg_insert(model)
        if dialect == "sqlite":
            return sqlite_insert(model)
        raise StoreError(
            f"Upsert is not supported on dialect '{dialect}'",
            context={"dialect": dialect}
        )

    async def upsert_snapshot(self, snapshot: StatSnapshotCreate) -> None:
        """
        Upsert one daily snapshot (INSERT ON CONFLICT UPDATE).

        Raises:
            UpsertError: If the write fails
        """
        values = snapshot.model_dump()
        stmt = self._insert(StatSnapshot).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=SNAPSHOT_KEY,
            set_={
                "downloads_day": stmt.excluded.downloads_day,
                "downloads_week": stmt.excluded.downloads_week,
                "downloads_month": stmt.excluded.downloads_month,
                "downloads_year": stmt.excluded.downloads_year,
                "cumulative_baseline": stmt.excluded.cumulative_baseline,
                "raw_data": stmt.excluded.raw_data,
                "updated_at": stmt.excluded.updated_at,
            }
        )

        try:
            await self.db.execute(stmt)
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise UpsertError(
                f"Failed to upsert snapshot for {snapshot.package_id} on {snapshot.date}",
                context={
                    "table_name": StatSnapshot.__tablename__,
                    "package_id": snapshot.package_id,
                    "conflict_fields": SNAPSHOT_KEY,
                },
                original_exception=e
            )

        logger.debug(f"Upserted snapshot {snapshot.package_id}:{snapshot.date}")

    async def upsert_history(self, points: List[HistoryPointCreate]) -> int:
        """
        Upsert history rows in batches.

        Returns:
            Number of rows written
        """
        if not points:
            return 0

        total = 0
        for i in range(0, len(points), self.batch_size):
            batch = points[i:i + self.batch_size]
            stmt = self._insert(HistoryPoint).values([p.model_dump() for p in batch])
            stmt = stmt.on_conflict_do_update(
                index_elements=HISTORY_KEY,
                set_={
                    "downloads": stmt.excluded.downloads,
                    "updated_at": stmt.excluded.updated_at,
                }
            )

            try:
                await self.db.execute(stmt)
                await self.db.commit()
            except SQLAlchemyError as e:
                await self.db.rollback()
                raise UpsertError(
                    f"Failed to upsert history batch {i // self.batch_size + 1} for {batch[0].package_id}",
                    context={
                        "table_name": HistoryPoint.__tablename__,
                        "package_id": batch[0].package_id,
                        "conflict_fields": HISTORY_KEY,
                        "rows_written": total,
                    },
                    original_exception=e
                )

            total += len(batch)
            logger.debug(f"History batch {i // self.batch_size + 1}: upserted {len(batch)} rows")

        return total

    async def latest_snapshot_before(self, package_id: str, before: date) -> Optional[StatSnapshot]:
        """
        Most recent snapshot dated strictly before `before`.

        Raises:
            StoreError: If the read fails. A failed read is never treated
                as "no prior snapshot".
        """
        query = (
            select(StatSnapshot)
            .where(StatSnapshot.package_id == package_id, StatSnapshot.date < before)
            .order_by(StatSnapshot.date.desc())
            .limit(1)
        )
        try:
            result = await self.db.execute(query)
        except SQLAlchemyError as e:
            raise StoreError(
                f"Failed to read baseline snapshot for {package_id}",
                context={"package_id": package_id, "before": before.isoformat()},
                original_exception=e
            )
        return result.scalar_one_or_none()

    async def cumulative_baseline(self, package_id: str, before: date) -> Optional[int]:
        """Cumulative total from the latest snapshot before `before`, if any"""
        snapshot = await self.latest_snapshot_before(package_id, before)
        if snapshot is None:
            return None
        return baseline_of(snapshot)

    async def cumulative_points(self, package_id: str, start: date, before: date) -> List[Tuple[date, int]]:
        """(date, cumulative total) for snapshots in [start, before)"""
        query = (
            select(StatSnapshot)
            .where(
                StatSnapshot.package_id == package_id,
                StatSnapshot.date >= start,
                StatSnapshot.date < before,
            )
            .order_by(StatSnapshot.date)
        )
        try:
            result = await self.db.execute(query)
        except SQLAlchemyError as e:
            raise StoreError(
                f"Failed to read cumulative history for {package_id}",
                context={"package_id": package_id, "start": start.isoformat(), "before": before.isoformat()},
                original_exception=e
            )

        points = []
        for snapshot in result.scalars():
            value = baseline_of(snapshot)
            if value is not None:
                points.append((snapshot.date, value))
        return points

    async def latest_snapshot(self, package_id: str) -> Optional[StatSnapshot]:
        query = (
            select(StatSnapshot)
            .where(StatSnapshot.package_id == package_id)
            .order_by(StatSnapshot.date.desc())
            .limit(1)
        )
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def history_between(
        self,
        package_id: str,
        start: Optional[date] = None,
        end: Optional[date] = None
    ) -> List[HistoryPoint]:
        query = select(HistoryPoint).where(HistoryPoint.package_id == package_id)
        if start is not None:
            query = query.where(HistoryPoint.start_date >= start)
        if end is not None:
            query = query.where(HistoryPoint.end_date <= end)
        query = query.order_by(HistoryPoint.start_date)

        result = await self.db.execute(query)
        return list(result.scalars().all())


def baseline_of(snapshot: StatSnapshot) -> Optional[int]:
    """
    Cumulative total recorded on a snapshot.

    Rows written before cumulative_baseline existed only carry the total
    in raw_data["pull_count"].
    """
    if snapshot.cumulative_baseline is not None:
        return snapshot.cumulative_baseline

    raw = snapshot.raw_data or {}
    pull_count = raw.get("pull_count") if isinstance(raw, dict) else None
    if isinstance(pull_count, int) and not isinstance(pull_count, bool):
        return pull_count
    return None
