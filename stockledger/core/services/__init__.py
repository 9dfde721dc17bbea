"""
Core business logic services.

Layer-pure services that depend only on:
- stockledger/core/entities/*
- stockledger/core/interfaces/*
- stockledger/core/exceptions.py

NO infrastructure imports. All dependencies injected via constructor.
"""

from stockledger.core.services.availability_checker import AvailabilityChecker
from stockledger.core.services.balance_formula import (
    closing_for_item_type,
    compute_closing,
)
from stockledger.core.services.cascade_recalculator import (
    CascadeRecalculator,
    CascadeResult,
)
from stockledger.core.services.company_registry import CompanyRegistry
from stockledger.core.services.daily_aggregator import DailyAggregator
from stockledger.core.services.snapshot_calculator import (
    SnapshotCalculation,
    SnapshotCalculator,
)
from stockledger.core.services.snapshot_validator import (
    SnapshotValidator,
    ValidationReport,
)

__all__ = [
    "compute_closing",
    "closing_for_item_type",
    "DailyAggregator",
    "SnapshotCalculator",
    "SnapshotCalculation",
    "CascadeRecalculator",
    "CascadeResult",
    "AvailabilityChecker",
    "CompanyRegistry",
    "SnapshotValidator",
    "ValidationReport",
]
