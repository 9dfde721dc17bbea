"""Background job status, history and manual trigger endpoints."""

from fastapi import APIRouter, Body, Depends, Query

from stockledger.api.dependencies import get_jobs
from stockledger.application.dto.requests import TriggerJobRequest
from stockledger.application.dto.responses import (
    ErrorResponse,
    JobHistoryResponse,
    JobRunRecordResponse,
    JobRunResponse,
    JobStatusResponse,
    SchedulerStatusResponse,
)
from stockledger.application.scheduler import Scheduler
from stockledger.core.entities import JobRunStatus

router = APIRouter(prefix="/api/jobs", tags=["jobs"])


@router.get("/status", response_model=SchedulerStatusResponse)
async def scheduler_status(scheduler: Scheduler = Depends(get_jobs)) -> SchedulerStatusResponse:
    """Scheduler state and last run of each job."""
    status = scheduler.status()
    return SchedulerStatusResponse(
        enabled=status["enabled"],
        started=status["started"],
        jobs=[JobStatusResponse(**job) for job in status["jobs"]],
    )


@router.get(
    "/history",
    response_model=JobHistoryResponse,
    responses={404: {"model": ErrorResponse}},
)
async def job_history(
    job: str | None = None,
    status_filter: JobRunStatus | None = Query(default=None, alias="status"),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    scheduler: Scheduler = Depends(get_jobs),
) -> JobHistoryResponse:
    """Past drain and end-of-day runs, most recent first."""
    runs, total = await scheduler.history(
        job=job, status=status_filter, limit=limit, offset=offset
    )
    return JobHistoryResponse(
        runs=[JobRunRecordResponse.model_validate(r.model_dump(mode="json")) for r in runs],
        total=total,
        limit=limit,
        offset=offset,
        has_more=offset + len(runs) < total,
    )


@router.post(
    "/{job_name}/trigger",
    response_model=JobRunResponse,
    responses={404: {"model": ErrorResponse}},
)
async def trigger_job(
    job_name: str,
    request: TriggerJobRequest | None = Body(default=None),
    scheduler: Scheduler = Depends(get_jobs),
) -> JobRunResponse:
    """Run `drain` or `eod` now and return its summary."""
    target_date = request.target_date if request else None
    summary = await scheduler.trigger(job_name, target_date=target_date)
    return JobRunResponse(job=job_name, summary=summary)
