"""Scheduler run history entities."""

from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class JobRunStatus(str, Enum):
    """Lifecycle of one job run."""

    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class JobTrigger(str, Enum):
    """What started a run."""

    SCHEDULE = "schedule"
    MANUAL = "manual"


class JobRun(BaseModel):
    """One execution of a scheduler job."""

    id: int | None = None
    job_name: str
    status: JobRunStatus = JobRunStatus.RUNNING
    triggered_by: JobTrigger = JobTrigger.SCHEDULE
    started_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    completed_at: datetime | None = None
    duration_ms: float | None = None
    total_records: int = 0
    successful_records: int = 0
    failed_records: int = 0
    error_message: str | None = None
    summary: dict[str, Any] = Field(default_factory=dict)
