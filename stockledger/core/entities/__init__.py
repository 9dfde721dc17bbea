"""Core domain entities."""

from stockledger.core.entities.availability import (
    BalanceReading,
    BalanceSource,
    BatchStockCheckResult,
    StockCheckItem,
    StockCheckResult,
)
from stockledger.core.entities.company import Company
from stockledger.core.entities.item import ItemCategory, ItemRef, ItemType, categorize
from stockledger.core.entities.job_run import JobRun, JobRunStatus, JobTrigger
from stockledger.core.entities.recalc import (
    PRIORITY_BACKDATED,
    PRIORITY_SAME_DAY,
    QueueStats,
    RecalcQueueEntry,
    RecalcStatus,
    priority_for,
)
from stockledger.core.entities.snapshot import (
    BeginningBalance,
    CalculationMethod,
    MovementKind,
    MovementTotals,
    StockSnapshot,
)

__all__ = [
    # Items
    "ItemType",
    "ItemCategory",
    "ItemRef",
    "categorize",
    "Company",
    # Snapshots
    "StockSnapshot",
    "BeginningBalance",
    "CalculationMethod",
    "MovementKind",
    "MovementTotals",
    # Queue
    "RecalcQueueEntry",
    "RecalcStatus",
    "QueueStats",
    "PRIORITY_SAME_DAY",
    "PRIORITY_BACKDATED",
    "priority_for",
    # Job history
    "JobRun",
    "JobRunStatus",
    "JobTrigger",
    # Availability
    "BalanceReading",
    "BalanceSource",
    "StockCheckItem",
    "StockCheckResult",
    "BatchStockCheckResult",
]
