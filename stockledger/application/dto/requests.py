"""Request DTOs for API endpoints.

Pydantic v2 models for API request validation.
These are the ONLY contracts between API and use cases.
"""

from datetime import date

from pydantic import BaseModel, Field, model_validator

from stockledger.core.entities.availability import StockCheckItem


class CheckAvailabilityRequest(BaseModel):
    """Admission check for a pending transaction."""

    company_id: int = Field(..., gt=0)
    items: list[StockCheckItem] = Field(..., min_length=1)
    as_of_date: date | None = Field(
        default=None,
        description="Transaction date; defaults to today",
    )
    exclude_transaction_id: str | None = Field(
        default=None,
        description="Transaction being edited; its own rows are left out of the live total",
        examples=["OUT-2024-00042"],
    )


class EnqueueRecalcRequest(BaseModel):
    """Request a recalculation after a ledger mutation."""

    company_id: int = Field(..., gt=0)
    item_type: str = Field(..., min_length=1, examples=["ROH", "FERT", "SCRAP"])
    item_code: str = Field(..., min_length=1)
    recalc_date: date = Field(..., description="Transaction date of the mutation")
    reason: str | None = Field(
        default=None,
        max_length=500,
        examples=["incoming INV-001 backdated", "outgoing OUT-17 deleted"],
    )


class CascadeRequest(BaseModel):
    """Run a cascade synchronously (operator action)."""

    company_id: int = Field(..., gt=0)
    item_type: str = Field(..., min_length=1)
    item_code: str = Field(..., min_length=1)
    start_date: date
    end_date: date | None = Field(default=None, description="Defaults to today")

    @model_validator(mode="after")
    def check_range(self) -> "CascadeRequest":
        if self.end_date is not None and self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class TriggerJobRequest(BaseModel):
    """Optional parameters for a manual job run."""

    target_date: date | None = Field(
        default=None,
        description="Day to sweep (eod only); defaults to yesterday",
    )
