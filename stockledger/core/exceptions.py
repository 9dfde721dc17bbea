"""
Domain exceptions for the stock ledger engine.

Provides specific exception types for different error scenarios.
"""

from datetime import date
from typing import Any


class StockLedgerError(Exception):
    """Base exception for all stock ledger errors."""

    def __init__(
        self,
        message: str,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}

    def to_dict(self) -> dict:
        """Convert to dictionary for API responses."""
        return {
            "error": self.code,
            "message": self.message,
            "details": self.details,
        }


# Storage Exceptions
class StorageError(StockLedgerError):
    """Base exception for storage operations."""

    pass


class DatabaseError(StorageError):
    """Database operation failed."""

    def __init__(self, operation: str, error: str):
        super().__init__(
            f"Database error during {operation}: {error}",
            code="DATABASE_ERROR",
            details={"operation": operation, "error": error},
        )


class LedgerQueryError(StorageError):
    """Reading a movement ledger or snapshot failed.

    Transient by nature; the queue retries the affected recalculation.
    """

    def __init__(self, operation: str, error: str):
        super().__init__(
            f"Ledger query failed during {operation}: {error}",
            code="LEDGER_QUERY_ERROR",
            details={"operation": operation, "error": error},
        )


class CompanyNotFoundError(StorageError):
    """Company does not exist or is inactive."""

    def __init__(self, company_id: int):
        super().__init__(
            f"Company not found: {company_id}",
            code="COMPANY_NOT_FOUND",
            details={"company_id": company_id},
        )


# Data integrity
class DataInconsistencyError(StockLedgerError):
    """Reference data contradicts itself (e.g. duplicate beginning balances)."""

    def __init__(self, message: str, **details: Any):
        super().__init__(
            message,
            code="DATA_INCONSISTENCY",
            details=details,
        )


class DuplicateBeginningBalanceError(DataInconsistencyError):
    """More than one beginning balance row for a single item."""

    def __init__(self, company_id: int, item_type: str, item_code: str, count: int):
        super().__init__(
            f"Found {count} beginning balances for {item_type}/{item_code}",
            company_id=company_id,
            item_type=item_type,
            item_code=item_code,
            count=count,
        )


class AmbiguousItemTypeError(DataInconsistencyError):
    """An item code is tracked under more than one item type."""

    def __init__(self, company_id: int, item_code: str, item_types: list[str]):
        super().__init__(
            f"Item '{item_code}' is tracked under several item types: "
            f"{', '.join(item_types)}",
            company_id=company_id,
            item_code=item_code,
            item_types=item_types,
        )


# Scheduler
class SchedulerTaskFailure(StockLedgerError):
    """One unit of scheduled work failed; the rest of the run continues."""

    def __init__(
        self,
        job: str,
        company_id: int,
        error: str,
        item_code: str | None = None,
        target_date: date | None = None,
    ):
        target = f"{company_id}/{item_code}" if item_code else str(company_id)
        super().__init__(
            f"Scheduled job '{job}' failed for {target}: {error}",
            code="SCHEDULER_TASK_FAILURE",
            details={
                "job": job,
                "company_id": company_id,
                "item_code": item_code,
                "target_date": target_date.isoformat() if target_date else None,
                "error": error,
            },
        )


class UnknownJobError(StockLedgerError):
    """Requested scheduler job does not exist."""

    def __init__(self, job: str, available: list[str]):
        super().__init__(
            f"Unknown job '{job}'. Available: {', '.join(available)}",
            code="UNKNOWN_JOB",
            details={"job": job, "available": available},
        )


# Validation Exceptions
class ValidationError(StockLedgerError):
    """Input validation failed."""

    def __init__(self, field: str, message: str, value: Any = None):
        super().__init__(
            f"Validation error for '{field}': {message}",
            code="VALIDATION_ERROR",
            details={
                "field": field,
                "message": message,
                "value": str(value)[:100] if value else None,
            },
        )


class ConfigurationError(StockLedgerError):
    """Configuration error."""

    pass
