"""
Tracked package registry: candidate selection and the bootstrap transition
"""

from typing import Dict, List, Optional
from datetime import datetime, timezone
import logging

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from core.exceptions import SelectionError, StoreError
from models.base import IngestionMode, PackageManager, RefreshMode
from models.package import TrackedPackage

logger = logging.getLogger(__name__)

# Refresh mode a package must be in to be picked up by each run mode
MODE_TO_REFRESH = {
    IngestionMode.DAILY: RefreshMode.DAILY,
    IngestionMode.BOOTSTRAP: RefreshMode.PENDING,
}


class PackageRegistry:
    """Read access to tracked packages plus the one write ingestion performs"""

    def __init__(self, db_session: AsyncSession):
        self.db = db_session

    async def list_candidates(
        self,
        mode: IngestionMode,
        package_managers: List[PackageManager],
        package_id: Optional[str] = None
    ) -> List[TrackedPackage]:
        """
        Select the packages a run should process.

        An explicit package_id selects that package whatever its refresh
        mode or ecosystem. Otherwise packages with a supported package
        manager whose refresh mode matches the run mode are returned.

        Raises:
            SelectionError: If the query fails
        """
        mode = IngestionMode(mode)

        if package_id is not None:
            query = select(TrackedPackage).where(TrackedPackage.id == package_id)
        else:
            query = (
                select(TrackedPackage)
                .where(
                    TrackedPackage.package_manager.in_(package_managers),
                    TrackedPackage.stats_refresh_mode == MODE_TO_REFRESH[mode],
                )
                .order_by(TrackedPackage.created_at, TrackedPackage.id)
            )

        try:
            result = await self.db.execute(query)
        except (SQLAlchemyError, OSError) as e:
            raise SelectionError(
                "Failed to select packages for ingestion",
                context={"mode": mode.value, "package_id": package_id},
                original_exception=e
            )

        packages = list(result.scalars().all())
        logger.info(f"Selected {len(packages)} packages for {mode.value} ingestion")
        return packages

    async def mark_bootstrapped(self, package_id: str, when: Optional[datetime] = None) -> None:
        """Flip a package from pending to daily and stamp the bootstrap time"""
        package = await self.db.get(TrackedPackage, package_id)
        if package is None:
            raise StoreError(
                f"Package {package_id} disappeared before its bootstrap could be recorded",
                context={"package_id": package_id}
            )

        package.stats_refresh_mode = RefreshMode.DAILY
        package.stats_bootstrapped_at = when or datetime.now(timezone.utc)

        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise StoreError(
                f"Failed to record bootstrap for {package_id}",
                context={"package_id": package_id},
                original_exception=e
            )

        logger.info(f"Package {package_id} bootstrapped, refresh mode now daily")

    async def create_package(
        self,
        name: str,
        package_name: str,
        package_manager: PackageManager,
        package_url: Optional[str] = None,
        organization_id: Optional[str] = None
    ) -> TrackedPackage:
        package = TrackedPackage(
            name=name,
            package_name=package_name,
            package_url=package_url,
            package_manager=package_manager,
            organization_id=organization_id,
            stats_refresh_mode=RefreshMode.PENDING,
        )
        self.db.add(package)
        await self.db.commit()
        await self.db.refresh(package)
        return package

    async def get_package(self, package_id: str) -> Optional[TrackedPackage]:
        return await self.db.get(TrackedPackage, package_id)

    async def list_packages(
        self,
        organization_id: Optional[str] = None,
        package_manager: Optional[PackageManager] = None
    ) -> List[TrackedPackage]:
        query = select(TrackedPackage)
        if organization_id is not None:
            query = query.where(TrackedPackage.organization_id == organization_id)
        if package_manager is not None:
            query = query.where(TrackedPackage.package_manager == package_manager)
        query = query.order_by(TrackedPackage.created_at, TrackedPackage.id)

        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def count_by_refresh_mode(self) -> Dict[str, int]:
        query = (
            select(TrackedPackage.stats_refresh_mode, func.count(TrackedPackage.id))
            .group_by(TrackedPackage.stats_refresh_mode)
        )
        result = await self.db.execute(query)
        counts = {mode.value: 0 for mode in RefreshMode}
        for mode, count in result.all():
            counts[RefreshMode(mode).value] = count
        return counts
