"""Recalculation queue endpoints."""

from fastapi import APIRouter, Depends, Query, status

from stockledger.api.dependencies import (
    get_app_settings,
    get_cascade,
    get_enqueue_recalc_use_case,
    get_queue,
)
from stockledger.application.dto.requests import CascadeRequest, EnqueueRecalcRequest
from stockledger.application.dto.responses import (
    CascadeDayResponse,
    CascadeResponse,
    ErrorResponse,
    QueueEntryResponse,
    QueueListResponse,
    QueueStatsResponse,
)
from stockledger.application.use_cases.enqueue_recalc import EnqueueRecalcUseCase
from stockledger.config import Settings
from stockledger.core.entities.recalc import RecalcStatus
from stockledger.core.entities.snapshot import CalculationMethod
from stockledger.core.interfaces import IRecalcQueueStore
from stockledger.core.services import CascadeRecalculator

router = APIRouter(prefix="/api/recalc", tags=["recalc"])


@router.post(
    "/enqueue",
    response_model=QueueEntryResponse,
    status_code=status.HTTP_202_ACCEPTED,
    responses={404: {"model": ErrorResponse}},
)
async def enqueue_recalc(
    request: EnqueueRecalcRequest,
    use_case: EnqueueRecalcUseCase = Depends(get_enqueue_recalc_use_case),
) -> QueueEntryResponse:
    """Queue a recalculation; the worker picks it up on its next tick."""
    entry = await use_case.execute(request)
    return QueueEntryResponse.model_validate(entry.model_dump(mode="json"))


@router.post("/cascade", response_model=CascadeResponse)
async def run_cascade(
    request: CascadeRequest,
    cascade: CascadeRecalculator = Depends(get_cascade),
) -> CascadeResponse:
    """Recalculate an item's snapshots synchronously (operator action)."""
    result = await cascade.recalc_from(
        request.company_id,
        request.item_type,
        request.item_code,
        request.start_date,
        request.end_date,
        method=CalculationMethod.MANUAL,
    )
    return CascadeResponse(
        company_id=result.company_id,
        item_type=result.item_type,
        item_code=result.item_code,
        start_date=result.start_date,
        end_date=result.end_date,
        succeeded=result.succeeded,
        days=[
            CascadeDayResponse(
                snapshot_date=calc.snapshot.snapshot_date,
                closing_balance=calc.closing_balance,
                breakdown=calc.breakdown,
                duration_ms=calc.duration_ms,
            )
            for calc in result.results
        ],
        failed_date=result.failed_date,
        error=result.error,
    )


@router.get("/queue", response_model=QueueListResponse)
async def list_queue(
    company_id: int | None = None,
    status_filter: RecalcStatus | None = Query(default=None, alias="status"),
    limit: int = Query(default=100, ge=1, le=1000),
    queue: IRecalcQueueStore = Depends(get_queue),
) -> QueueListResponse:
    """Inspect queue entries, most recently queued first."""
    entries = await queue.list_entries(company_id=company_id, status=status_filter, limit=limit)
    return QueueListResponse(
        entries=[QueueEntryResponse.model_validate(e.model_dump(mode="json")) for e in entries],
        total=len(entries),
    )


@router.get("/queue/stats", response_model=QueueStatsResponse)
async def queue_stats(
    company_id: int | None = None,
    queue: IRecalcQueueStore = Depends(get_queue),
    settings: Settings = Depends(get_app_settings),
) -> QueueStatsResponse:
    """Backlog counts; `escalated` entries will not be retried automatically."""
    stats = await queue.count_by_status(settings.recalc.max_retries, company_id=company_id)
    return QueueStatsResponse(
        company_id=stats.company_id,
        pending=stats.counts[RecalcStatus.PENDING],
        processing=stats.counts[RecalcStatus.PROCESSING],
        done=stats.counts[RecalcStatus.DONE],
        failed=stats.counts[RecalcStatus.FAILED],
        escalated=stats.escalated,
        backlog=stats.backlog,
    )
