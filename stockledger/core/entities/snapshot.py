"""Daily stock snapshot entities."""

import math
from datetime import UTC, date, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator


class CalculationMethod(str, Enum):
    """How a snapshot was produced."""

    TRANSACTION = "TRANSACTION"  # recalculated after a ledger mutation
    EOD = "EOD"  # end-of-day sweep
    MANUAL = "MANUAL"  # operator-triggered cascade


class MovementKind(str, Enum):
    """Movement ledgers read for a single item-day."""

    INCOMING = "incoming"
    OUTGOING = "outgoing"
    MATERIAL_USAGE = "material_usage"
    PRODUCTION = "production"
    ADJUSTMENT = "adjustment"
    SCRAP_IN = "scrap_in"
    SCRAP_OUT = "scrap_out"


class MovementTotals(BaseModel):
    """Aggregated quantities for one item on one day.

    Adjustment is signed (GAIN positive, LOSS negative); the others are
    already net of reversals.
    """

    incoming: float = 0.0
    outgoing: float = 0.0
    material_usage: float = 0.0
    production: float = 0.0
    adjustment: float = 0.0
    scrap_in: float = 0.0
    scrap_out: float = 0.0

    @field_validator("*", mode="before")
    @classmethod
    def coerce_missing(cls, v: Any) -> Any:
        if v is None:
            return 0.0
        if isinstance(v, float) and math.isnan(v):
            return 0.0
        return v

    @classmethod
    def from_kinds(cls, values: dict[MovementKind, float]) -> "MovementTotals":
        return cls(**{kind.value: qty for kind, qty in values.items()})


class StockSnapshot(BaseModel):
    """Closing balance of one item at the end of one day."""

    id: int | None = None
    company_id: int
    item_type: str
    item_code: str
    item_name: str | None = None
    uom: str | None = None
    snapshot_date: date

    opening_balance: float = 0.0
    incoming_qty: float = 0.0
    outgoing_qty: float = 0.0
    material_usage_qty: float = 0.0
    production_qty: float = 0.0
    adjustment_qty: float = 0.0
    scrap_in_qty: float = 0.0
    scrap_out_qty: float = 0.0
    closing_balance: float = 0.0

    calculation_method: CalculationMethod = CalculationMethod.TRANSACTION
    calculated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @property
    def totals(self) -> MovementTotals:
        return MovementTotals(
            incoming=self.incoming_qty,
            outgoing=self.outgoing_qty,
            material_usage=self.material_usage_qty,
            production=self.production_qty,
            adjustment=self.adjustment_qty,
            scrap_in=self.scrap_in_qty,
            scrap_out=self.scrap_out_qty,
        )


class BeginningBalance(BaseModel):
    """Opening stock declared when an item starts being tracked."""

    id: int | None = None
    company_id: int
    item_type: str
    item_code: str
    item_name: str | None = None
    uom: str | None = None
    qty: float = 0.0
    balance_date: date
