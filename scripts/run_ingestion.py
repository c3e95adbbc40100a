"""
Script to run one ingestion pass from the command line

Usage:
    python scripts/run_ingestion.py --mode daily
    python scripts/run_ingestion.py --mode bootstrap --package-id <id>
"""

import argparse
import asyncio
import json
import sys
import os
import logging

# Add current directory to path to allow imports from core, models, etc.
sys.path.append(os.getcwd())

from core.config import settings
from core.database import get_engine, get_session_maker
from core.exceptions import IngestionError
from core.logging import setup_logging
from ingestion.runner import IngestionRunner
from models.base import IngestionMode

logger = logging.getLogger(__name__)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Run package download stats ingestion")
    parser.add_argument(
        "--mode",
        choices=[m.value for m in IngestionMode],
        default=IngestionMode.DAILY.value,
        help="daily refreshes bootstrapped packages, bootstrap backfills pending ones"
    )
    parser.add_argument("--package-id", default=None, help="Process only this package")
    return parser.parse_args(argv)


async def run_ingestion(mode: str, package_id=None) -> int:
    """Run ingestion and print the JSON summary, returning the exit code"""
    try:
        async with get_session_maker()() as session:
            summary = await IngestionRunner(session).run(mode, package_id=package_id)
    except IngestionError as e:
        logger.error(f"Ingestion run failed: {e}")
        print(json.dumps({"error": e.message}))
        return 1
    finally:
        if settings.DATABASE_URL:
            await get_engine().dispose()

    print(json.dumps(summary.to_payload(), indent=2))
    return 0


if __name__ == "__main__":
    args = parse_args()
    setup_logging()
    sys.exit(asyncio.run(run_ingestion(args.mode, args.package_id)))
