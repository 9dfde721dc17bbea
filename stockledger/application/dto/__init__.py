"""Data transfer objects between the API and use cases."""

from stockledger.application.dto.requests import (
    CascadeRequest,
    CheckAvailabilityRequest,
    EnqueueRecalcRequest,
    TriggerJobRequest,
)
from stockledger.application.dto.responses import (
    CascadeDayResponse,
    CascadeResponse,
    ErrorResponse,
    HealthResponse,
    JobHistoryResponse,
    JobRunRecordResponse,
    JobRunResponse,
    JobStatusResponse,
    ProviderHealthResponse,
    QueueEntryResponse,
    QueueListResponse,
    QueueStatsResponse,
    SchedulerStatusResponse,
    SnapshotListResponse,
    SnapshotResponse,
    ValidationIssueResponse,
    ValidationReportResponse,
)

__all__ = [
    # Requests
    "CheckAvailabilityRequest",
    "EnqueueRecalcRequest",
    "CascadeRequest",
    "TriggerJobRequest",
    # Responses
    "SnapshotResponse",
    "SnapshotListResponse",
    "QueueEntryResponse",
    "QueueListResponse",
    "QueueStatsResponse",
    "CascadeDayResponse",
    "CascadeResponse",
    "ValidationIssueResponse",
    "ValidationReportResponse",
    "JobStatusResponse",
    "SchedulerStatusResponse",
    "JobRunResponse",
    "JobRunRecordResponse",
    "JobHistoryResponse",
    "HealthResponse",
    "ProviderHealthResponse",
    "ErrorResponse",
]
