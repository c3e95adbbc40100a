import pytest
from unittest.mock import AsyncMock, MagicMock, patch
from ingestion.scheduler import DAILY_JOB_ID, IngestionScheduler
from core.exceptions import SelectionError
from models.base import IngestionMode
from schemas.api import IngestionSummary


def _session_factory():
    mock_session = AsyncMock()
    factory = MagicMock()
    factory.return_value.__aenter__.return_value = mock_session
    return factory


def test_scheduler_initialization():
    scheduler = IngestionScheduler(session_factory=_session_factory(), hour=3, minute=15)

    assert scheduler.scheduler is not None
    assert (scheduler.hour, scheduler.minute) == (3, 15)


@pytest.mark.asyncio
async def test_daily_job_runs_daily_then_bootstrap():
    with patch("ingestion.scheduler.IngestionRunner") as mock_runner_cls:
        mock_runner = MagicMock()
        mock_runner.run = AsyncMock(side_effect=lambda mode: IngestionSummary(message="ok", mode=mode))
        mock_runner_cls.return_value = mock_runner

        scheduler = IngestionScheduler(session_factory=_session_factory(), bootstrap_pending=True)
        summary = await scheduler.run_daily_job()

        modes = [c.args[0] for c in mock_runner.run.call_args_list]
        assert modes == [IngestionMode.DAILY, IngestionMode.BOOTSTRAP]
        assert summary.mode == IngestionMode.DAILY


@pytest.mark.asyncio
async def test_bootstrap_sweep_can_be_disabled():
    with patch("ingestion.scheduler.IngestionRunner") as mock_runner_cls:
        mock_runner = MagicMock()
        mock_runner.run = AsyncMock(return_value=IngestionSummary(message="ok", mode=IngestionMode.DAILY))
        mock_runner_cls.return_value = mock_runner

        scheduler = IngestionScheduler(session_factory=_session_factory(), bootstrap_pending=False)
        await scheduler.run_daily_job()

        assert mock_runner.run.call_count == 1


@pytest.mark.asyncio
async def test_fatal_run_error_does_not_escape_job():
    with patch("ingestion.scheduler.IngestionRunner") as mock_runner_cls:
        mock_runner = MagicMock()
        mock_runner.run = AsyncMock(side_effect=SelectionError("Failed to select packages for ingestion"))
        mock_runner_cls.return_value = mock_runner

        scheduler = IngestionScheduler(session_factory=_session_factory(), bootstrap_pending=False)

        assert await scheduler.run_ingestion_job(IngestionMode.DAILY) is None


@pytest.mark.asyncio
async def test_start_registers_daily_cron_job():
    scheduler = IngestionScheduler(session_factory=_session_factory(), hour=2, minute=30)
    scheduler.start()
    try:
        job = scheduler.scheduler.get_job(DAILY_JOB_ID)
        assert job is not None
        assert "hour='2'" in str(job.trigger)
        assert "minute='30'" in str(job.trigger)
    finally:
        scheduler.stop()
