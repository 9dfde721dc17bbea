"""Recalculation queue entities."""

from datetime import UTC, date, datetime
from enum import Enum

from pydantic import BaseModel, Field

# Lower drains first
PRIORITY_SAME_DAY = -1
PRIORITY_BACKDATED = 0


class RecalcStatus(str, Enum):
    """Lifecycle of a queued recalculation."""

    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    DONE = "DONE"
    FAILED = "FAILED"


class RecalcQueueEntry(BaseModel):
    """Durable request to recalculate an item from a date onward."""

    id: int | None = None
    company_id: int
    item_type: str
    item_code: str
    recalc_date: date
    status: RecalcStatus = RecalcStatus.PENDING
    priority: int = PRIORITY_BACKDATED
    reason: str | None = None
    queued_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    started_at: datetime | None = None
    completed_at: datetime | None = None
    retry_count: int = 0
    error_message: str | None = None

    @property
    def item_key(self) -> tuple[int, str, str]:
        return (self.company_id, self.item_type, self.item_code)


def priority_for(recalc_date: date, today: date) -> int:
    """Same-day (or future) work jumps ahead of backdated corrections."""
    return PRIORITY_SAME_DAY if recalc_date >= today else PRIORITY_BACKDATED


class QueueStats(BaseModel):
    """Backlog of the recalculation queue."""

    company_id: int | None = None
    counts: dict[RecalcStatus, int] = Field(
        default_factory=lambda: {status: 0 for status in RecalcStatus}
    )
    escalated: int = 0  # FAILED with no retries left; needs an operator

    @property
    def backlog(self) -> int:
        return self.counts[RecalcStatus.PENDING] + self.counts[RecalcStatus.PROCESSING]
