"""
Core utilities and configuration for the download-stats ingestion backend.

Modules:
    config: Application configuration and environment variable management
    database: Database engine and session management
    exceptions: Custom exception hierarchy for error handling
    logging: Logging configuration

Usage:
    from core.config import settings
    from core.database import get_session_maker
    from core.exceptions import SourceUnavailableError, UpsertError
    from core.logging import setup_logging

Example:
    setup_logging()

    async with get_session_maker()() as session:
        runner = IngestionRunner(session)
        summary = await runner.run("daily")
"""

__all__ = [
    "config",
    "database",
    "exceptions",
    "logging",
]
