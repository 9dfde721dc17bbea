"""API tests for stock availability and snapshot endpoints."""

from datetime import date
from unittest.mock import AsyncMock

import pytest
from httpx import ASGITransport, AsyncClient

from stockledger.api.dependencies import (
    get_check_availability_use_case,
    get_snapshots,
    get_validator,
)
from stockledger.api.main import app
from stockledger.application.use_cases.check_availability import CheckAvailabilityUseCase
from stockledger.core.entities import (
    BalanceReading,
    BalanceSource,
    BatchStockCheckResult,
    StockCheckResult,
    StockSnapshot,
)
from stockledger.core.exceptions import (
    AmbiguousItemTypeError,
    CompanyNotFoundError,
    LedgerQueryError,
)
from stockledger.core.services.snapshot_validator import (
    IssueKind,
    SnapshotValidator,
    ValidationIssue,
    ValidationReport,
)

TODAY = date(2024, 3, 15)


@pytest.fixture
def mock_use_case():
    uc = AsyncMock(spec=CheckAvailabilityUseCase)
    uc.execute.return_value = BatchStockCheckResult(
        company_id=1,
        as_of_date=TODAY,
        results=[
            StockCheckResult(
                item_code="RM-1", item_type="ROH", qty_requested=10, current_stock=100,
                available=True, source=BalanceSource.SNAPSHOT,
            ),
            StockCheckResult(
                item_code="RM-2", item_type="ROH", qty_requested=10, current_stock=4,
                available=False, shortfall=6, source=BalanceSource.LIVE,
            ),
        ],
        all_available=False,
    )
    uc.get_balance.return_value = BalanceReading(
        company_id=1, item_type="ROH", item_code="RM-1", as_of_date=TODAY,
        balance=50, source=BalanceSource.CARRY_FORWARD, snapshot_date=date(2024, 3, 1),
    )
    return uc


@pytest.fixture
def mock_snapshot_store():
    store = AsyncMock()
    store.list_for_item.return_value = [
        StockSnapshot(
            id=1, company_id=1, item_type="ROH", item_code="RM-1",
            snapshot_date=date(2024, 3, 1), opening_balance=100, incoming_qty=20,
            material_usage_qty=5, outgoing_qty=10, closing_balance=105,
        )
    ]
    return store


@pytest.fixture
def mock_validator():
    validator = AsyncMock()
    validator.validate.return_value = ValidationReport(
        company_id=1,
        snapshot_date=date(2024, 3, 1),
        checked=2,
        issues=[
            ValidationIssue(
                kind=IssueKind.BALANCE_MISMATCH, item_type="ROH", item_code="RM-1",
                snapshot_date=date(2024, 3, 1), message="mismatch", stored=20, expected=15,
            )
        ],
    )
    validator.find_missing_dates.return_value = [date(2024, 2, 28)]
    return validator


@pytest.fixture
async def stock_client(mock_use_case, mock_snapshot_store, mock_validator):
    app.dependency_overrides[get_check_availability_use_case] = lambda: mock_use_case
    app.dependency_overrides[get_snapshots] = lambda: mock_snapshot_store
    app.dependency_overrides[get_validator] = lambda: mock_validator
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.pop(get_check_availability_use_case, None)
    app.dependency_overrides.pop(get_snapshots, None)
    app.dependency_overrides.pop(get_validator, None)


class TestCheckAvailabilityAPI:
    async def test_insufficient_is_200(self, stock_client: AsyncClient):
        """A short line is a verdict, not an error."""
        response = await stock_client.post(
            "/api/stock/check-availability",
            json={
                "company_id": 1,
                "items": [
                    {"item_code": "RM-1", "item_type": "ROH", "qty_requested": 10},
                    {"item_code": "RM-2", "item_type": "ROH", "qty_requested": 10},
                ],
            },
        )
        assert response.status_code == 200
        data = response.json()
        assert data["all_available"] is False
        assert data["results"][1]["shortfall"] == 6
        assert data["results"][0]["shortfall"] is None
        assert "X-Request-ID" in response.headers

    async def test_empty_items_rejected(self, stock_client: AsyncClient):
        response = await stock_client.post(
            "/api/stock/check-availability", json={"company_id": 1, "items": []}
        )
        assert response.status_code == 422
        assert response.json()["error_code"] == "VALIDATION_ERROR"

    async def test_negative_quantity_rejected(self, stock_client: AsyncClient):
        response = await stock_client.post(
            "/api/stock/check-availability",
            json={"company_id": 1, "items": [{"item_code": "A", "item_type": "ROH", "qty_requested": -1}]},
        )
        assert response.status_code == 422

    async def test_unknown_company_404(self, stock_client: AsyncClient, mock_use_case):
        mock_use_case.execute.side_effect = CompanyNotFoundError(9)
        response = await stock_client.post(
            "/api/stock/check-availability",
            json={"company_id": 9, "items": [{"item_code": "A", "item_type": "ROH", "qty_requested": 1}]},
        )
        assert response.status_code == 404
        body = response.json()
        assert body["error_code"] == "COMPANY_NOT_FOUND"
        assert body["details"] == {"company_id": 9}
        assert body["hint"]


class TestBalanceAPI:
    async def test_get_balance(self, stock_client: AsyncClient, mock_use_case):
        response = await stock_client.get(
            "/api/stock/balance", params={"company_id": 1, "item_code": "RM-1", "as_of_date": "2024-03-15"}
        )
        assert response.status_code == 200
        data = response.json()
        assert data["balance"] == 50
        assert data["source"] == "carry_forward"
        mock_use_case.get_balance.assert_called_once_with(
            1, "RM-1", as_of_date=TODAY, item_type=None
        )

    async def test_ambiguous_item_409(self, stock_client: AsyncClient, mock_use_case):
        mock_use_case.get_balance.side_effect = AmbiguousItemTypeError(1, "X", ["FERT", "ROH"])
        response = await stock_client.get(
            "/api/stock/balance", params={"company_id": 1, "item_code": "X"}
        )
        assert response.status_code == 409
        assert response.json()["error_code"] == "DATA_INCONSISTENCY"


class TestSnapshotsAPI:
    async def test_history(self, stock_client: AsyncClient):
        response = await stock_client.get(
            "/api/stock/snapshots",
            params={
                "company_id": 1, "item_type": "ROH", "item_code": "RM-1",
                "start_date": "2024-03-01", "end_date": "2024-03-31",
            },
        )
        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 1
        assert data["snapshots"][0]["closing_balance"] == 105
        assert data["snapshots"][0]["calculation_method"] == "TRANSACTION"

    async def test_reversed_range_400(self, stock_client: AsyncClient):
        response = await stock_client.get(
            "/api/stock/snapshots",
            params={
                "company_id": 1, "item_type": "ROH", "item_code": "RM-1",
                "start_date": "2024-03-31", "end_date": "2024-03-01",
            },
        )
        assert response.status_code == 400
        assert response.json()["error_code"] == "VALIDATION_ERROR"

    async def test_validate(self, stock_client: AsyncClient, mock_validator):
        response = await stock_client.get(
            "/api/stock/snapshots/validate",
            params={"company_id": 1, "snapshot_date": "2024-03-01", "since": "2024-02-27"},
        )
        assert response.status_code == 200
        data = response.json()
        assert data["is_valid"] is False
        assert data["issues"][0]["kind"] == "balance_mismatch"
        assert data["missing_dates"] == ["2024-02-28"]
        mock_validator.find_missing_dates.assert_called_once_with(
            1, date(2024, 2, 27), date(2024, 3, 1)
        )

    async def test_validate_rejects_unbounded_since(self, stock_client: AsyncClient, snapshot_store):
        app.dependency_overrides[get_validator] = lambda: SnapshotValidator(snapshot_store)
        response = await stock_client.get(
            "/api/stock/snapshots/validate",
            params={"company_id": 1, "snapshot_date": "2024-03-01", "since": "0001-01-01"},
        )
        assert response.status_code == 400
        data = response.json()
        assert data["error_code"] == "VALIDATION_ERROR"
        assert data["details"]["field"] == "since"


class TestErrorResponses:
    async def test_ledger_failure_is_503_with_retry_after(
        self, stock_client: AsyncClient, mock_use_case
    ):
        """A failed read never turns into an 'insufficient' verdict."""
        mock_use_case.execute.side_effect = LedgerQueryError("read_outgoing", "disk I/O error")
        response = await stock_client.post(
            "/api/stock/check-availability",
            json={"company_id": 1, "items": [{"item_code": "A", "item_type": "ROH", "qty_requested": 1}]},
            headers={"X-Request-ID": "req-42"},
        )
        assert response.status_code == 503
        assert response.headers["Retry-After"] == "30"
        body = response.json()
        assert body["error_code"] == "LEDGER_QUERY_ERROR"
        assert body["request_id"] == "req-42"

    async def test_validation_errors_structured(self, stock_client: AsyncClient):
        response = await stock_client.post("/api/stock/check-availability", json={"items": []})
        assert response.status_code == 422
        fields = {e["field"] for e in response.json()["details"]["errors"]}
        assert "body.company_id" in fields
