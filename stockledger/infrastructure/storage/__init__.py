"""Storage infrastructure implementations."""

from stockledger.infrastructure.storage.sqlite import (
    SQLiteBeginningBalanceStore,
    SQLiteCompanyStore,
    SQLiteRecalcQueueStore,
    SQLiteSnapshotStore,
    SQLiteTrackedItemSource,
    build_ledgers,
    close_pool,
    get_connection,
    get_pool,
    get_transaction,
)

__all__ = [
    # SQLite stores
    "SQLiteSnapshotStore",
    "SQLiteRecalcQueueStore",
    "SQLiteBeginningBalanceStore",
    "SQLiteCompanyStore",
    "SQLiteTrackedItemSource",
    "build_ledgers",
    # Connection pool
    "get_pool",
    "close_pool",
    "get_connection",
    "get_transaction",
]
