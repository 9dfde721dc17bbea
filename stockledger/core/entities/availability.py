"""Stock availability entities."""

from datetime import date
from enum import Enum

from pydantic import BaseModel, Field


class BalanceSource(str, Enum):
    """Where a balance reading came from."""

    SNAPSHOT = "snapshot"  # exact snapshot for the requested date
    CARRY_FORWARD = "carry_forward"  # nearest earlier snapshot
    LIVE = "live"  # computed from today's ledgers
    NO_HISTORY = "no_history"


class BalanceReading(BaseModel):
    """Balance of one item as of a date."""

    company_id: int
    item_type: str
    item_code: str
    as_of_date: date
    balance: float
    source: BalanceSource
    snapshot_date: date | None = None


class StockCheckItem(BaseModel):
    """One requested line in an availability check."""

    item_code: str = Field(..., min_length=1)
    item_type: str = Field(..., min_length=1)
    qty_requested: float = Field(..., ge=0)


class StockCheckResult(BaseModel):
    """Availability verdict for a single line."""

    item_code: str
    item_type: str
    qty_requested: float
    current_stock: float
    available: bool
    shortfall: float | None = None
    source: BalanceSource


class BatchStockCheckResult(BaseModel):
    """All-or-nothing verdict for a transaction's lines."""

    company_id: int
    as_of_date: date
    results: list[StockCheckResult] = Field(default_factory=list)
    all_available: bool = True

    @property
    def unavailable(self) -> list[StockCheckResult]:
        return [r for r in self.results if not r.available]
