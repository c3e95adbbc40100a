"""
Custom exceptions for the ingestion pipeline with structured error context.

Every exception carries a human-readable message plus a context dict so
failures can be logged and stored (per-package outcomes, ingestion runs)
without losing the details of what was being fetched or written.

Exception Hierarchy:
    IngestionError (base)
    ├── ConfigurationError            fatal for the whole run
    ├── StoreError
    │   ├── StoreUnavailableError     fatal for the whole run
    │   ├── SelectionError            fatal for the whole run
    │   └── UpsertError               recorded against one package
    ├── ExtractionError               recorded against one package
    │   ├── SourceUnavailableError
    │   ├── UnsupportedEcosystemError
    │   └── UnsupportedOperationError
    └── InvalidPackageReferenceError  input validation
"""

from typing import Optional, Dict, Any
from datetime import datetime, timezone


class IngestionError(Exception):
    """
    Base exception for all ingestion-related errors.

    Attributes:
        message: Human-readable error message
        context: Additional context information (package, url, table, ...)
        original_exception: The original exception that was caught (if any)
    """

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[Exception] = None
    ):
        self.message = message
        self.context = context or {}
        self.original_exception = original_exception
        self.timestamp = datetime.now(timezone.utc)

        self.context["error_timestamp"] = self.timestamp.isoformat()

        super().__init__(message)
        if original_exception:
            self.__cause__ = original_exception

    def __str__(self) -> str:
        """Format error message with context."""
        base_msg = f"{self.__class__.__name__}: {self.message}"

        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            base_msg += f" | Context: {context_str}"

        if self.original_exception:
            base_msg += (
                f" | Caused by: {type(self.original_exception).__name__}: "
                f"{self.original_exception}"
            )

        return base_msg

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/storage."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
            "original_error": str(self.original_exception) if self.original_exception else None
        }


class ConfigurationError(IngestionError):
    """Missing or invalid settings (database URL, credentials)."""
    pass


# ============================================================================
# Store Errors
# ============================================================================

class StoreError(IngestionError):
    """Base exception for stats/history store and package registry failures."""
    pass


class StoreUnavailableError(StoreError):
    """
    The store cannot be reached at all.

    Context should include:
        - operation: What was being attempted when the store failed
    """
    pass


class SelectionError(StoreError):
    """
    Candidate package query failed.

    Context should include:
        - mode: Requested ingestion mode
        - package_id: Explicitly requested package (if any)
    """
    pass


class UpsertError(StoreError):
    """
    Exception raised when an upsert into the stats store fails.

    Context should include:
        - table_name: Name of the table
        - package_id: Package whose rows were being written
        - conflict_fields: Natural key used for the upsert
    """
    pass


# ============================================================================
# Extraction Errors
# ============================================================================

class ExtractionError(IngestionError):
    """Base exception for metric source failures."""
    pass


class SourceUnavailableError(ExtractionError):
    """
    No usable metrics could be fetched for a package.

    Context should include:
        - package_manager: Ecosystem of the package
        - package_name: Canonical package reference
    """
    pass


class UnsupportedEcosystemError(ExtractionError):
    """A declared package manager has no implemented metric source."""
    pass


class UnsupportedOperationError(ExtractionError):
    """A metric source was asked for a capability it does not have."""
    pass


# ============================================================================
# Validation Errors
# ============================================================================

class InvalidPackageReferenceError(IngestionError):
    """
    A package reference could not be parsed by its ecosystem's source.

    Context should include:
        - package_manager: Ecosystem the reference was parsed for
        - reference: The raw value supplied
    """
    pass
