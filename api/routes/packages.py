"""
Tracked package endpoints: registration and the stats read API for charts
"""

from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_db, verify_api_key
from core.exceptions import InvalidPackageReferenceError, UnsupportedEcosystemError
from ingestion.loaders.package_registry import PackageRegistry
from ingestion.loaders.stats_store import StatsStore
from ingestion.registry import build_source_registry
from models.base import PackageManager
from schemas.api import (
    HistoryPointResponse,
    HistoryResponse,
    PackageCreate,
    PackageResponse,
    StatSnapshotResponse,
)
import logging

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/packages", tags=["Packages"])


async def _get_package_or_404(db: AsyncSession, package_id: str):
    package = await PackageRegistry(db).get_package(package_id)
    if package is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Package {package_id} not found")
    return package


@router.post(
    "",
    response_model=PackageResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(verify_api_key)]
)
async def create_package(payload: PackageCreate, request: Request, db: AsyncSession = Depends(get_db)):
    """
    Track a new package.

    The reference is validated and canonicalized by the package manager's
    metric source, so invalid names are rejected here rather than at
    ingestion time. New packages start pending and are backfilled by the
    next bootstrap run.
    """
    request_id = getattr(request.state, "request_id", "-")

    try:
        package_name = build_source_registry().normalize_reference(
            payload.package_manager,
            payload.package_url
        )
    except (InvalidPackageReferenceError, UnsupportedEcosystemError) as e:
        logger.info(f"[{request_id}] Rejected package reference: {e.message}")
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=e.message)

    package = await PackageRegistry(db).create_package(
        name=payload.name,
        package_name=package_name,
        package_manager=payload.package_manager,
        package_url=payload.package_url,
        organization_id=payload.organization_id,
    )
    logger.info(f"[{request_id}] Tracking {package.package_manager.value}:{package.package_name} as {package.id}")
    return package


@router.get("", response_model=List[PackageResponse])
async def list_packages(
    organization_id: Optional[str] = Query(None, description="Filter by organization"),
    package_manager: Optional[PackageManager] = Query(None, description="Filter by package manager"),
    db: AsyncSession = Depends(get_db)
):
    return await PackageRegistry(db).list_packages(
        organization_id=organization_id,
        package_manager=package_manager
    )


@router.get("/{package_id}/stats/latest", response_model=StatSnapshotResponse)
async def latest_stats(package_id: str, db: AsyncSession = Depends(get_db)):
    """Most recent daily snapshot for a package"""
    await _get_package_or_404(db, package_id)

    snapshot = await StatsStore(db).latest_snapshot(package_id)
    if snapshot is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"No stats recorded for {package_id}")
    return snapshot


@router.get("/{package_id}/history", response_model=HistoryResponse)
async def download_history(
    package_id: str,
    start_date: Optional[date] = Query(None, description="First day, inclusive"),
    end_date: Optional[date] = Query(None, description="Last day, inclusive"),
    db: AsyncSession = Depends(get_db)
):
    """Per-day download history for charting"""
    if start_date and end_date and start_date > end_date:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="start_date must be on or before end_date"
        )

    await _get_package_or_404(db, package_id)

    points = await StatsStore(db).history_between(package_id, start_date, end_date)
    return HistoryResponse(
        package_id=package_id,
        start_date=start_date,
        end_date=end_date,
        total_downloads=sum(p.downloads for p in points),
        points=[HistoryPointResponse.model_validate(p) for p in points],
    )
