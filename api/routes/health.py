"""
Health check endpoint with database and ingestion status
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy import select, text
from api.dependencies import get_db
from ingestion.loaders.package_registry import PackageRegistry
from schemas.api import HealthCheckResponse, IngestionRunInfo
from models.ingestion_run import IngestionRun
import logging

logger = logging.getLogger(__name__)
router = APIRouter(tags=["Health"])


@router.get("/health", response_model=HealthCheckResponse)
async def health_check(db: AsyncSession = Depends(get_db)):
    """
    Health check endpoint.

    Returns:
    - Database connectivity status
    - Tracked package counts by refresh mode
    - The most recent ingestion run
    """
    db_connected = False

    try:
        await db.execute(text("SELECT 1"))
        db_connected = True
    except (SQLAlchemyError, OSError) as e:
        logger.error(f"Database connection failed: {str(e)}")

    if not db_connected:
        return HealthCheckResponse.build(
            database_connected=False,
            packages_by_refresh_mode={},
            last_run=None
        )

    packages_by_refresh_mode = {}
    last_run = None

    try:
        packages_by_refresh_mode = await PackageRegistry(db).count_by_refresh_mode()

        result = await db.execute(
            select(IngestionRun).order_by(IngestionRun.started_at.desc()).limit(1)
        )
        run = result.scalar_one_or_none()
        if run is not None:
            last_run = IngestionRunInfo.model_validate(run)
    except SQLAlchemyError as e:
        logger.error(f"Failed to fetch ingestion status: {str(e)}")

    return HealthCheckResponse.build(
        database_connected=db_connected,
        packages_by_refresh_mode=packages_by_refresh_mode,
        last_run=last_run
    )
