# ============================================================================
# File: ingestion/runner.py
# Description: Ingestion orchestrator with per-package failure isolation
# ============================================================================
"""
Ingestion Runner - Orchestrates fetch, reconcile, upsert for every package.

This module provides the single ingestion operation with:
- Candidate selection by run mode or explicit package id
- Dispatch to the metric source matching each package's ecosystem
- Per-package failure isolation (one failure never aborts the batch)
- The pending -> daily transition after a successful bootstrap
- An ingestion run audit record for every invocation
"""

from typing import List, Optional, Union
from datetime import date, datetime, timezone
import asyncio
import logging
import uuid

import httpx
from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import settings
from core.exceptions import (
    IngestionError,
    SelectionError,
    SourceUnavailableError,
    StoreUnavailableError,
)
from ingestion.base import MetricSource
from ingestion.loaders.package_registry import PackageRegistry
from ingestion.loaders.stats_store import StatsStore
from ingestion.planner import HistoryWindow, plan_window
from ingestion.registry import SourceRegistry, build_source_registry
from ingestion.transformers.normalizer import MetricNormalizer
from ingestion.transformers.reconciler import reconcile
from models.base import IngestionMode, MetricKind, RunStatus
from models.ingestion_run import IngestionRun
from schemas.api import IngestionSummary, PackageOutcome
from schemas.normalized import PackageRef

logger = logging.getLogger(__name__)


class IngestionRunner:
    """
    Ingestion Orchestrator

    Responsibilities:
    - Select the packages a run should process
    - Fetch → reconcile → upsert for each package, sequentially
    - Record each package's outcome without aborting the batch
    - Flip successfully bootstrapped packages to daily refresh
    - Record an accurate ingestion run audit row
    """

    def __init__(
        self,
        db_session: AsyncSession,
        http_client: Optional[httpx.AsyncClient] = None,
        sources: Optional[SourceRegistry] = None,
        package_delay: Optional[float] = None
    ):
        self.db = db_session
        self.http_client = http_client
        self.sources = sources
        self.package_delay = (
            settings.INGESTION_PACKAGE_DELAY_SECONDS if package_delay is None else package_delay
        )
        self.registry = PackageRegistry(db_session)
        self.store = StatsStore(db_session)

    async def run(
        self,
        mode: Union[IngestionMode, str] = IngestionMode.DAILY,
        package_id: Optional[str] = None,
        today: Optional[date] = None
    ) -> IngestionSummary:
        """
        Run ingestion for all due packages, or for one package.

        Args:
            mode: "daily" processes packages in daily refresh mode,
                "bootstrap" processes pending packages and backfills history
            package_id: Process only this package, whatever its refresh mode
            today: Run date, defaults to the current UTC date

        Returns:
            IngestionSummary with one outcome per processed package

        Raises:
            StoreUnavailableError: If the run cannot be recorded
            SelectionError: If candidate packages cannot be selected
        """
        mode = IngestionMode(mode)

        if self.sources is not None:
            return await self._run(mode, package_id, today)

        if self.http_client is not None:
            self.sources = build_source_registry(self.http_client)
            return await self._run(mode, package_id, today)

        async with httpx.AsyncClient(timeout=settings.HTTP_TIMEOUT) as client:
            self.sources = build_source_registry(client)
            try:
                return await self._run(mode, package_id, today)
            finally:
                self.sources = None

    async def _run(
        self,
        mode: IngestionMode,
        package_id: Optional[str],
        today: Optional[date]
    ) -> IngestionSummary:
        window = plan_window(mode, today=today)
        started_at = datetime.now(timezone.utc)
        run_id = await self._start_run(mode, package_id, started_at)

        logger.info(
            f"Ingestion run {run_id} started: mode={mode.value}, "
            f"history {window.start}..{window.end}, package_id={package_id}"
        )

        # --------------------------------------------------
        # PHASE 1: CANDIDATE SELECTION
        # --------------------------------------------------
        try:
            packages = await self.registry.list_candidates(
                mode,
                package_managers=self.sources.supported(),
                package_id=package_id
            )
        except SelectionError as e:
            logger.error(f"Candidate selection failed: {e.message}", extra={"error_context": e.to_dict()})
            await self.db.rollback()
            await self._finish_run(run_id, started_at, RunStatus.FAILED, error_message=e.message)
            raise

        # Detach before processing: a per-package rollback expires ORM rows
        refs = [PackageRef.model_validate(p) for p in packages]

        if not refs:
            summary = IngestionSummary(message="No packages to ingest", mode=mode)
            await self._finish_run(run_id, started_at, RunStatus.SUCCESS, summary=summary)
            logger.info(f"Ingestion run {run_id}: no packages to ingest")
            return summary

        # --------------------------------------------------
        # PHASE 2: PER-PACKAGE INGESTION
        # --------------------------------------------------
        outcomes: List[PackageOutcome] = []
        for index, ref in enumerate(refs):
            if index > 0 and self.package_delay > 0:
                await asyncio.sleep(self.package_delay)
            outcomes.append(await self._process_package(ref, window))

        # --------------------------------------------------
        # PHASE 3: FINALIZE RUN
        # --------------------------------------------------
        summary = IngestionSummary.from_outcomes(mode, outcomes)

        if summary.failed == 0:
            status = RunStatus.SUCCESS
        elif summary.successful == 0:
            status = RunStatus.FAILED
        else:
            status = RunStatus.PARTIAL

        await self._finish_run(
            run_id,
            started_at,
            status,
            summary=summary,
            error_message=summary.first_error
        )

        logger.info(
            f"Ingestion run {run_id} completed: {status.value} - "
            f"Processed: {summary.processed}, Succeeded: {summary.successful}, Failed: {summary.failed}"
        )
        return summary

    async def _process_package(self, ref: PackageRef, window: HistoryWindow) -> PackageOutcome:
        """Ingest one package, turning any failure into a failed outcome"""
        try:
            await self._ingest(ref, window)

        except IngestionError as e:
            await self.db.rollback()
            logger.error(
                f"Ingestion failed for {ref.package_manager.value}:{ref.package_name} ({ref.id}): {e.message}",
                extra={"error_context": e.to_dict()}
            )
            return PackageOutcome(package_id=ref.id, success=False, error=e.message)

        except Exception as e:
            await self.db.rollback()
            logger.exception(f"Unexpected error ingesting {ref.package_name} ({ref.id})")
            return PackageOutcome(package_id=ref.id, success=False, error=str(e) or type(e).__name__)

        return PackageOutcome(package_id=ref.id, success=True)

    async def _ingest(self, ref: PackageRef, window: HistoryWindow) -> None:
        source = self.sources.get(ref.package_manager)
        reference = source.parse_reference(ref.package_name)
        normalizer = MetricNormalizer(ref.id, window)

        if source.metric_kind == MetricKind.CUMULATIVE_COUNTER:
            await self._ingest_cumulative(source, reference, ref, window, normalizer)
        else:
            await self._ingest_point(source, reference, window, normalizer)

        if window.mode == IngestionMode.BOOTSTRAP:
            await self.registry.mark_bootstrapped(ref.id)

    async def _ingest_point(
        self,
        source: MetricSource,
        reference: str,
        window: HistoryWindow,
        normalizer: MetricNormalizer
    ) -> None:
        sample = await source.fetch_point(reference, window)
        await self.store.upsert_snapshot(normalizer.snapshot_from_point_sample(sample))

        if not source.supports_range:
            return

        series = await source.fetch_range(reference, window.start, window.end)
        if series is None:
            if window.mode == IngestionMode.BOOTSTRAP:
                raise SourceUnavailableError(
                    f"Download history unavailable for {reference}",
                    context={
                        "package_manager": source.package_manager.value,
                        "package_name": reference,
                        "start": window.start.isoformat(),
                        "end": window.end.isoformat(),
                    }
                )
            logger.warning(f"Download history unavailable for {reference}, keeping snapshot only")
            return

        written = await self.store.upsert_history(normalizer.history_from_daily(series))
        logger.info(f"Upserted {written} history points for {reference}")

    async def _ingest_cumulative(
        self,
        source: MetricSource,
        reference: str,
        ref: PackageRef,
        window: HistoryWindow,
        normalizer: MetricNormalizer
    ) -> None:
        sample = await source.fetch_point(reference, window)

        baseline = await self.store.cumulative_baseline(ref.id, window.run_date)
        history = await self.store.cumulative_points(
            ref.id,
            start=window.cumulative_window_start("year"),
            before=window.run_date
        )
        result = reconcile(sample.pull_count, baseline, history, window)

        await self.store.upsert_snapshot(normalizer.snapshot_from_reconciliation(result, sample))
        await self.store.upsert_history([normalizer.history_from_reconciliation(result)])

        if result.baseline:
            logger.info(f"Recorded baseline pull count {sample.pull_count} for {reference}")
        else:
            logger.info(f"Reconciled {reference}: {baseline} -> {sample.pull_count}, day={result.day}")

    async def _start_run(
        self,
        mode: IngestionMode,
        package_id: Optional[str],
        started_at: datetime
    ) -> str:
        run_id = str(uuid.uuid4())
        run = IngestionRun(
            run_id=run_id,
            mode=mode,
            package_id=package_id,
            status=RunStatus.RUNNING,
            started_at=started_at
        )
        try:
            self.db.add(run)
            await self.db.commit()
        except (SQLAlchemyError, OSError) as e:
            await self.db.rollback()
            raise StoreUnavailableError(
                "Could not record ingestion run start",
                context={"operation": "start_run", "mode": mode.value},
                original_exception=e
            )
        return run_id

    async def _finish_run(
        self,
        run_id: str,
        started_at: datetime,
        status: RunStatus,
        summary: Optional[IngestionSummary] = None,
        error_message: Optional[str] = None
    ) -> None:
        completed_at = datetime.now(timezone.utc)
        values = {
            "status": status,
            "completed_at": completed_at,
            "duration_seconds": (completed_at - started_at).total_seconds(),
            "error_message": error_message,
        }
        if summary is not None:
            values.update(
                packages_processed=summary.processed,
                packages_succeeded=summary.successful,
                packages_failed=summary.failed,
                results=summary.to_payload()["results"],
            )

        try:
            await self.db.execute(
                update(IngestionRun)
                .where(IngestionRun.run_id == run_id)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            await self.db.commit()
        except (SQLAlchemyError, OSError) as e:
            # The packages are already written; a lost audit row is only logged
            await self.db.rollback()
            logger.error(f"Failed to finalize ingestion run {run_id}: {e}")
