"""SQLite storage implementations."""

from stockledger.infrastructure.storage.sqlite.connection import (
    ConnectionPool,
    close_pool,
    get_connection,
    get_pool,
    get_transaction,
)
from stockledger.infrastructure.storage.sqlite.job_run_store import SQLiteJobRunStore
from stockledger.infrastructure.storage.sqlite.ledger_store import (
    SQLiteBeginningBalanceStore,
    SQLiteCompanyStore,
    SQLiteMovementLedger,
    SQLiteTrackedItemSource,
    build_ledgers,
)
from stockledger.infrastructure.storage.sqlite.recalc_queue_store import (
    SQLiteRecalcQueueStore,
)
from stockledger.infrastructure.storage.sqlite.snapshot_store import SQLiteSnapshotStore

__all__ = [
    "ConnectionPool",
    "close_pool",
    "get_connection",
    "get_pool",
    "get_transaction",
    "SQLiteSnapshotStore",
    "SQLiteRecalcQueueStore",
    "SQLiteJobRunStore",
    "SQLiteMovementLedger",
    "SQLiteBeginningBalanceStore",
    "SQLiteCompanyStore",
    "SQLiteTrackedItemSource",
    "build_ledgers",
]
