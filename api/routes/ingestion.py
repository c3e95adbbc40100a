"""
Manual ingestion trigger
"""

from typing import Optional

import httpx
from fastapi import APIRouter, Body, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_db, get_http_client, verify_api_key
from core.exceptions import IngestionError
from ingestion.runner import IngestionRunner
from schemas.api import ErrorResponse, IngestionSummary, RunIngestionRequest
import logging

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/ingestion", tags=["Ingestion"], dependencies=[Depends(verify_api_key)])


@router.post(
    "/run",
    response_model=IngestionSummary,
    response_model_by_alias=True,
    response_model_exclude_none=True,
    responses={500: {"model": ErrorResponse}}
)
async def run_ingestion(
    request: Request,
    body: Optional[RunIngestionRequest] = Body(None),
    db: AsyncSession = Depends(get_db),
    http_client: Optional[httpx.AsyncClient] = Depends(get_http_client)
):
    """
    Run ingestion for all due packages, or for one package.

    - `{"mode": "daily"}` refreshes packages already bootstrapped
    - `{"mode": "bootstrap"}` backfills pending packages
    - `{"packageId": "..."}` processes only that package

    Per-package failures are reported in `results`; only failures that
    stop the whole run return HTTP 500.
    """
    body = body or RunIngestionRequest()
    request_id = getattr(request.state, "request_id", "-")

    logger.info(f"[{request_id}] POST /ingestion/run - mode={body.mode.value}, package_id={body.package_id}")

    try:
        summary = await IngestionRunner(db, http_client=http_client).run(
            body.mode,
            package_id=body.package_id
        )
    except IngestionError as e:
        logger.error(f"[{request_id}] Ingestion run failed: {e}", extra={"error_context": e.to_dict()})
        return JSONResponse(status_code=500, content={"error": e.message})

    return summary
