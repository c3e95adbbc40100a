import json
import pytest
from unittest.mock import AsyncMock, MagicMock, patch
from core.config import settings
from core.exceptions import StoreUnavailableError
from models.base import IngestionMode
from schemas.api import IngestionSummary, PackageOutcome
from scripts.run_ingestion import parse_args, run_ingestion


def _session_factory():
    factory = MagicMock()
    factory.return_value.__aenter__.return_value = AsyncMock()
    return factory


def test_parse_args_defaults_to_daily():
    args = parse_args([])
    assert args.mode == "daily"
    assert args.package_id is None

    args = parse_args(["--mode", "bootstrap", "--package-id", "abc"])
    assert (args.mode, args.package_id) == ("bootstrap", "abc")


def test_parse_args_rejects_unknown_mode():
    with pytest.raises(SystemExit):
        parse_args(["--mode", "weekly"])


@pytest.mark.asyncio
async def test_run_prints_summary(capsys):
    summary = IngestionSummary.from_outcomes(
        IngestionMode.DAILY,
        [PackageOutcome(package_id="p1", success=True)]
    )

    with patch.object(settings, "DATABASE_URL", ""), \
            patch("scripts.run_ingestion.get_session_maker", return_value=_session_factory()), \
            patch("scripts.run_ingestion.IngestionRunner") as mock_runner_cls:
        mock_runner_cls.return_value.run = AsyncMock(return_value=summary)
        exit_code = await run_ingestion("daily")

    assert exit_code == 0
    printed = json.loads(capsys.readouterr().out)
    assert printed["processed"] == 1
    assert printed["results"] == [{"packageId": "p1", "success": True}]


@pytest.mark.asyncio
async def test_fatal_error_exits_nonzero(capsys):
    with patch.object(settings, "DATABASE_URL", ""), \
            patch("scripts.run_ingestion.get_session_maker", return_value=_session_factory()), \
            patch("scripts.run_ingestion.IngestionRunner") as mock_runner_cls:
        mock_runner_cls.return_value.run = AsyncMock(
            side_effect=StoreUnavailableError("Could not record ingestion run start")
        )
        exit_code = await run_ingestion("bootstrap")

    assert exit_code == 1
    assert json.loads(capsys.readouterr().out) == {"error": "Could not record ingestion run start"}
