"""
Pydantic schemas for API request/response models
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Optional, List, Dict
from datetime import date, datetime, timezone
from models.base import IngestionMode, PackageManager, RefreshMode, RunStatus


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ============================================================================
# Ingestion Trigger Schemas
# ============================================================================

class RunIngestionRequest(BaseModel):
    """Body of POST /ingestion/run"""
    mode: IngestionMode = IngestionMode.DAILY
    package_id: Optional[str] = Field(None, alias="packageId", max_length=36)

    model_config = ConfigDict(populate_by_name=True)


class PackageOutcome(BaseModel):
    """Result of ingesting one package"""
    package_id: str = Field(..., alias="packageId")
    success: bool
    error: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True)


class IngestionSummary(BaseModel):
    """JSON-serializable summary returned by every ingestion run"""
    message: str
    mode: IngestionMode
    processed: int = 0
    successful: int = 0
    failed: int = 0
    results: List[PackageOutcome] = Field(default_factory=list)

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "message": "Processed 2 packages",
                "mode": "daily",
                "processed": 2,
                "successful": 1,
                "failed": 1,
                "results": [
                    {"packageId": "3f0c...", "success": True},
                    {"packageId": "9a1d...", "success": False, "error": "No download counts available for left-pad"}
                ]
            }
        }
    )

    @classmethod
    def from_outcomes(cls, mode: IngestionMode, outcomes: List[PackageOutcome]) -> "IngestionSummary":
        successful = sum(1 for o in outcomes if o.success)
        return cls(
            message=f"Processed {len(outcomes)} packages",
            mode=mode,
            processed=len(outcomes),
            successful=successful,
            failed=len(outcomes) - successful,
            results=outcomes,
        )

    @property
    def first_error(self) -> Optional[str]:
        """First per-package error, which is what a caller UI surfaces"""
        for outcome in self.results:
            if not outcome.success:
                return outcome.error
        return None

    def to_payload(self) -> Dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# ============================================================================
# Package Schemas
# ============================================================================

class PackageCreate(BaseModel):
    """Body of POST /packages"""
    name: str = Field(..., min_length=1, max_length=200)
    package_manager: PackageManager = PackageManager.NPM
    package_url: str = Field(..., min_length=1, max_length=2048, description="Package name or registry URL")
    organization_id: Optional[str] = Field(None, max_length=36)

    @field_validator("name", "package_url")
    @classmethod
    def strip_whitespace(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("Value cannot be empty after stripping")
        return v


class PackageResponse(BaseModel):
    id: str
    organization_id: Optional[str] = None
    name: str
    package_name: str
    package_url: Optional[str] = None
    package_manager: PackageManager
    stats_refresh_mode: RefreshMode
    stats_bootstrapped_at: Optional[datetime] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class StatSnapshotResponse(BaseModel):
    package_id: str
    date: date
    downloads_day: int
    downloads_week: int
    downloads_month: int
    downloads_year: int
    cumulative_baseline: Optional[int] = None
    raw_data: Optional[Dict] = None

    model_config = ConfigDict(from_attributes=True)


class HistoryPointResponse(BaseModel):
    start_date: date
    end_date: date
    downloads: int

    model_config = ConfigDict(from_attributes=True)


class HistoryResponse(BaseModel):
    package_id: str
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    total_downloads: int
    points: List[HistoryPointResponse]


# ============================================================================
# Health Check Schemas
# ============================================================================

class IngestionRunInfo(BaseModel):
    """Last ingestion run information for health check"""
    run_id: str
    mode: IngestionMode
    status: RunStatus
    started_at: datetime
    completed_at: Optional[datetime] = None
    packages_processed: int = 0
    packages_succeeded: int = 0
    packages_failed: int = 0
    error_message: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class HealthCheckResponse(BaseModel):
    """Health check response model"""
    status: str = Field(..., description="Overall system status: healthy, degraded, unhealthy")
    timestamp: datetime = Field(default_factory=_utcnow)
    database_connected: bool
    packages_by_refresh_mode: Dict[str, int] = Field(default_factory=dict)
    last_run: Optional[IngestionRunInfo] = None

    @classmethod
    def build(
        cls,
        database_connected: bool,
        packages_by_refresh_mode: Dict[str, int],
        last_run: Optional[IngestionRunInfo]
    ) -> "HealthCheckResponse":
        """Derive the overall status from connectivity and the last run"""
        if not database_connected:
            status = "unhealthy"
        elif last_run is not None and last_run.status in (RunStatus.FAILED, RunStatus.PARTIAL):
            status = "degraded"
        else:
            status = "healthy"

        return cls(
            status=status,
            database_connected=database_connected,
            packages_by_refresh_mode=packages_by_refresh_mode,
            last_run=last_run,
        )


# ============================================================================
# Error Response Schema
# ============================================================================

class ErrorResponse(BaseModel):
    """Standard error response"""
    error: str
    detail: Optional[str] = None
    timestamp: datetime = Field(default_factory=_utcnow)
