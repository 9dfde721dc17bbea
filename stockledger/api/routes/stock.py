"""Stock availability, balance and snapshot endpoints."""

from datetime import date

from fastapi import APIRouter, Depends, Query

from stockledger.api.dependencies import (
    get_check_availability_use_case,
    get_snapshots,
    get_validator,
)
from stockledger.application.dto.requests import CheckAvailabilityRequest
from stockledger.application.dto.responses import (
    ErrorResponse,
    SnapshotListResponse,
    SnapshotResponse,
    ValidationIssueResponse,
    ValidationReportResponse,
)
from stockledger.application.use_cases.check_availability import CheckAvailabilityUseCase
from stockledger.core.entities.availability import BalanceReading, BatchStockCheckResult
from stockledger.core.exceptions import ValidationError
from stockledger.core.interfaces import ISnapshotStore
from stockledger.core.services import SnapshotValidator

router = APIRouter(prefix="/api/stock", tags=["stock"])


@router.post(
    "/check-availability",
    response_model=BatchStockCheckResult,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def check_availability(
    request: CheckAvailabilityRequest,
    use_case: CheckAvailabilityUseCase = Depends(get_check_availability_use_case),
) -> BatchStockCheckResult:
    """
    Check whether every requested line has enough stock.

    An insufficient line is a verdict (available=false with a shortfall),
    not an error; the response is 200 either way.
    """
    return await use_case.execute(request)


@router.get(
    "/balance",
    response_model=BalanceReading,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def get_balance(
    company_id: int = Query(..., gt=0),
    item_code: str = Query(..., min_length=1),
    as_of_date: date | None = None,
    item_type: str | None = None,
    use_case: CheckAvailabilityUseCase = Depends(get_check_availability_use_case),
) -> BalanceReading:
    """Balance of one item as of a date (default today)."""
    return await use_case.get_balance(
        company_id, item_code, as_of_date=as_of_date, item_type=item_type
    )


@router.get("/snapshots", response_model=SnapshotListResponse)
async def list_snapshots(
    company_id: int = Query(..., gt=0),
    item_type: str = Query(..., min_length=1),
    item_code: str = Query(..., min_length=1),
    start_date: date = Query(...),
    end_date: date = Query(...),
    store: ISnapshotStore = Depends(get_snapshots),
) -> SnapshotListResponse:
    """Snapshot history of one item."""
    if end_date < start_date:
        raise ValidationError("end_date", "must not be before start_date", end_date)
    snapshots = await store.list_for_item(
        company_id, item_type, item_code, start_date, end_date
    )
    return SnapshotListResponse(
        snapshots=[SnapshotResponse.model_validate(s.model_dump(mode="json")) for s in snapshots],
        total=len(snapshots),
    )


@router.get("/snapshots/validate", response_model=ValidationReportResponse)
async def validate_snapshots(
    company_id: int = Query(..., gt=0),
    snapshot_date: date = Query(...),
    since: date | None = Query(
        default=None, description="Also list days without snapshots from this date"
    ),
    validator: SnapshotValidator = Depends(get_validator),
) -> ValidationReportResponse:
    """Cross-check a day's snapshots against the balance formula."""
    report = await validator.validate(company_id, snapshot_date)
    missing = (
        await validator.find_missing_dates(company_id, since, snapshot_date)
        if since is not None
        else []
    )
    return ValidationReportResponse(
        company_id=report.company_id,
        snapshot_date=report.snapshot_date,
        checked=report.checked,
        is_valid=report.is_valid and not missing,
        issues=[
            ValidationIssueResponse(
                kind=issue.kind.value,
                item_type=issue.item_type,
                item_code=issue.item_code,
                snapshot_date=issue.snapshot_date,
                message=issue.message,
                stored=issue.stored,
                expected=issue.expected,
            )
            for issue in report.issues
        ],
        missing_dates=missing,
    )
