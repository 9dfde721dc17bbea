"""
Service factory functions for dependency injection.

This module wires the SQLite implementations to the core services. Use
cases and the API import from here.

Clean Architecture: Application layer orchestrates DI, not core layer.
"""

from typing import TYPE_CHECKING

from stockledger.config import get_settings
from stockledger.core.services import (
    AvailabilityChecker,
    CascadeRecalculator,
    CompanyRegistry,
    DailyAggregator,
    SnapshotCalculator,
    SnapshotValidator,
)

if TYPE_CHECKING:
    from stockledger.core.interfaces import (
        IBeginningBalanceStore,
        IJobRunStore,
        IRecalcQueueStore,
        ISnapshotStore,
        ITrackedItemSource,
    )


# Singleton instances
_snapshot_store: "ISnapshotStore | None" = None
_queue_store: "IRecalcQueueStore | None" = None
_balance_store: "IBeginningBalanceStore | None" = None
_item_source: "ITrackedItemSource | None" = None
_aggregator: DailyAggregator | None = None
_company_registry: CompanyRegistry | None = None
_job_run_store: "IJobRunStore | None" = None


def get_snapshot_store() -> "ISnapshotStore":
    """Get or create the snapshot store."""
    global _snapshot_store
    if _snapshot_store is None:
        from stockledger.infrastructure.storage.sqlite import SQLiteSnapshotStore

        _snapshot_store = SQLiteSnapshotStore()
    return _snapshot_store


def get_recalc_queue_store() -> "IRecalcQueueStore":
    """Get or create the recalculation queue store."""
    global _queue_store
    if _queue_store is None:
        from stockledger.infrastructure.storage.sqlite import SQLiteRecalcQueueStore

        _queue_store = SQLiteRecalcQueueStore()
    return _queue_store


def get_job_run_store() -> "IJobRunStore":
    """Get or create the scheduler run history store."""
    global _job_run_store
    if _job_run_store is None:
        from stockledger.infrastructure.storage.sqlite import SQLiteJobRunStore

        _job_run_store = SQLiteJobRunStore()
    return _job_run_store


def get_beginning_balance_store() -> "IBeginningBalanceStore":
    """Get or create the beginning balance reader."""
    global _balance_store
    if _balance_store is None:
        from stockledger.infrastructure.storage.sqlite import SQLiteBeginningBalanceStore

        _balance_store = SQLiteBeginningBalanceStore()
    return _balance_store


def get_tracked_item_source() -> "ITrackedItemSource":
    """Get or create the tracked item discovery source."""
    global _item_source
    if _item_source is None:
        from stockledger.infrastructure.storage.sqlite import SQLiteTrackedItemSource

        _item_source = SQLiteTrackedItemSource()
    return _item_source


def get_daily_aggregator() -> DailyAggregator:
    """Get or create the aggregator over all movement ledgers."""
    global _aggregator
    if _aggregator is None:
        from stockledger.infrastructure.storage.sqlite import build_ledgers

        _aggregator = DailyAggregator(build_ledgers())
    return _aggregator


def get_company_registry() -> CompanyRegistry:
    """Get or create the company cache."""
    global _company_registry
    if _company_registry is None:
        from stockledger.infrastructure.storage.sqlite import SQLiteCompanyStore

        _company_registry = CompanyRegistry(
            SQLiteCompanyStore(),
            ttl_seconds=get_settings().engine.company_cache_ttl,
        )
    return _company_registry


def get_snapshot_calculator() -> SnapshotCalculator:
    """Create a SnapshotCalculator over the shared stores."""
    return SnapshotCalculator(
        snapshot_store=get_snapshot_store(),
        balance_store=get_beginning_balance_store(),
        aggregator=get_daily_aggregator(),
    )


def get_cascade_recalculator() -> CascadeRecalculator:
    """Create a CascadeRecalculator."""
    return CascadeRecalculator(get_snapshot_calculator())


def get_availability_checker() -> AvailabilityChecker:
    """Create an AvailabilityChecker."""
    return AvailabilityChecker(
        snapshot_store=get_snapshot_store(),
        balance_store=get_beginning_balance_store(),
        aggregator=get_daily_aggregator(),
    )


def get_snapshot_validator() -> SnapshotValidator:
    """Create a SnapshotValidator."""
    return SnapshotValidator(
        get_snapshot_store(),
        epsilon=get_settings().engine.balance_epsilon,
    )


def reset_services() -> None:
    """Reset all singleton instances (for testing)."""
    global _snapshot_store, _queue_store, _balance_store
    global _item_source, _aggregator, _company_registry, _job_run_store

    _snapshot_store = None
    _queue_store = None
    _balance_store = None
    _item_source = None
    _aggregator = None
    _company_registry = None
    _job_run_store = None
