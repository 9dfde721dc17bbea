"""Response DTOs for API endpoints.

Pydantic v2 models for API responses.
"""

from datetime import date, datetime
from typing import Any

from pydantic import BaseModel, Field


class SnapshotResponse(BaseModel):
    """One daily snapshot."""

    company_id: int
    item_type: str
    item_code: str
    item_name: str | None = None
    uom: str | None = None
    snapshot_date: date
    opening_balance: float
    incoming_qty: float
    outgoing_qty: float
    material_usage_qty: float
    production_qty: float
    adjustment_qty: float
    scrap_in_qty: float
    scrap_out_qty: float
    closing_balance: float
    calculation_method: str
    calculated_at: datetime


class SnapshotListResponse(BaseModel):
    snapshots: list[SnapshotResponse] = Field(default_factory=list)
    total: int = 0


class QueueEntryResponse(BaseModel):
    """One recalculation queue entry."""

    id: int | None
    company_id: int
    item_type: str
    item_code: str
    recalc_date: date
    status: str
    priority: int
    reason: str | None = None
    queued_at: datetime
    started_at: datetime | None = None
    completed_at: datetime | None = None
    retry_count: int = 0
    error_message: str | None = None


class QueueListResponse(BaseModel):
    entries: list[QueueEntryResponse] = Field(default_factory=list)
    total: int = 0


class QueueStatsResponse(BaseModel):
    """Queue backlog by status."""

    company_id: int | None = None
    pending: int = 0
    processing: int = 0
    done: int = 0
    failed: int = 0
    escalated: int = Field(default=0, description="FAILED entries with no retries left")
    backlog: int = 0


class CascadeDayResponse(BaseModel):
    snapshot_date: date
    closing_balance: float
    breakdown: dict[str, float]
    duration_ms: float


class CascadeResponse(BaseModel):
    """Outcome of a synchronous cascade."""

    company_id: int
    item_type: str
    item_code: str
    start_date: date
    end_date: date
    succeeded: bool
    days: list[CascadeDayResponse] = Field(default_factory=list)
    failed_date: date | None = None
    error: str | None = None


class ValidationIssueResponse(BaseModel):
    kind: str
    item_type: str
    item_code: str
    snapshot_date: date
    message: str
    stored: float | None = None
    expected: float | None = None


class ValidationReportResponse(BaseModel):
    company_id: int
    snapshot_date: date
    checked: int
    is_valid: bool
    issues: list[ValidationIssueResponse] = Field(default_factory=list)
    missing_dates: list[date] = Field(default_factory=list)


class JobStatusResponse(BaseModel):
    name: str
    running: bool = False
    runs: int = 0
    last_started_at: datetime | None = None
    last_duration_ms: float | None = None
    last_error: str | None = None
    next_run_at: datetime | None = None


class SchedulerStatusResponse(BaseModel):
    enabled: bool
    started: bool
    jobs: list[JobStatusResponse] = Field(default_factory=list)


class JobRunResponse(BaseModel):
    job: str
    summary: dict[str, Any] = Field(default_factory=dict)


class JobRunRecordResponse(BaseModel):
    """One past run from the job history."""

    id: int
    job_name: str
    status: str
    triggered_by: str
    started_at: datetime
    completed_at: datetime | None = None
    duration_ms: float | None = None
    total_records: int = 0
    successful_records: int = 0
    failed_records: int = 0
    error_message: str | None = None
    summary: dict[str, Any] = Field(default_factory=dict)


class JobHistoryResponse(BaseModel):
    runs: list[JobRunRecordResponse] = Field(default_factory=list)
    total: int = 0
    limit: int
    offset: int
    has_more: bool = False


class ProviderHealthResponse(BaseModel):
    """Health of one backing dependency."""

    name: str
    available: bool
    latency_ms: float | None = None
    error: str | None = None


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str = "1.0.0"
    uptime_seconds: float
    database: ProviderHealthResponse | None = None
    scheduler: ProviderHealthResponse | None = None


class ErrorResponse(BaseModel):
    """Standardized error response DTO.

    Every error response includes:
    - error_code: machine-readable code (e.g. COMPANY_NOT_FOUND)
    - message: human-readable description
    - hint: suggested recovery action
    - path: request path that triggered the error
    - request_id: correlates the response with server logs
    """

    error_code: str = Field(..., description="Machine-readable error code")
    message: str = Field(..., description="Human-readable error description")
    hint: str | None = Field(default=None, description="Suggested recovery action")
    detail: str | None = Field(default=None, description="Additional details")
    details: dict[str, Any] = Field(default_factory=dict, description="Structured context")
    path: str | None = Field(default=None, description="Request path")
    request_id: str | None = Field(default=None, description="X-Request-ID of the failed request")
    timestamp: datetime = Field(default_factory=datetime.now)
