"""Core interfaces (ports) for dependency injection."""

from stockledger.core.interfaces.job_run_store import IJobRunStore
from stockledger.core.interfaces.ledger import (
    IBeginningBalanceStore,
    ICompanyStore,
    IMovementLedger,
    ITrackedItemSource,
)
from stockledger.core.interfaces.recalc_queue import IRecalcQueueStore
from stockledger.core.interfaces.snapshot_store import ISnapshotStore

__all__ = [
    "ISnapshotStore",
    "IRecalcQueueStore",
    "IMovementLedger",
    "IBeginningBalanceStore",
    "ICompanyStore",
    "ITrackedItemSource",
    "IJobRunStore",
]
