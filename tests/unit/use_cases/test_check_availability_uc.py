"""Tests for CheckAvailabilityUseCase."""

from datetime import date
from unittest.mock import AsyncMock

import pytest

from stockledger.application.dto.requests import CheckAvailabilityRequest
from stockledger.application.use_cases.check_availability import CheckAvailabilityUseCase
from stockledger.core.entities import (
    BalanceReading,
    BalanceSource,
    BatchStockCheckResult,
    Company,
    StockCheckItem,
)
from stockledger.core.exceptions import CompanyNotFoundError

TODAY = date(2024, 3, 15)


@pytest.fixture
def mock_checker():
    checker = AsyncMock()
    checker.check_availability.return_value = BatchStockCheckResult(
        company_id=1, as_of_date=TODAY, results=[], all_available=True
    )
    checker.get_balance.return_value = BalanceReading(
        company_id=1, item_type="ROH", item_code="RM-1", as_of_date=TODAY,
        balance=5, source=BalanceSource.LIVE,
    )
    return checker


@pytest.fixture
def mock_registry():
    registry = AsyncMock()
    registry.require.return_value = Company(id=1, code="ACME", name="Acme")
    return registry


@pytest.fixture
def use_case(mock_checker, mock_registry):
    return CheckAvailabilityUseCase(
        checker=mock_checker, company_registry=mock_registry, today=lambda: TODAY
    )


class TestCheckAvailabilityUseCase:
    async def test_defaults_to_today(self, use_case, mock_checker):
        request = CheckAvailabilityRequest(
            company_id=1,
            items=[StockCheckItem(item_code="RM-1", item_type="ROH", qty_requested=2)],
            exclude_transaction_id="OUT-1",
        )

        await use_case.execute(request)

        kwargs = mock_checker.check_availability.call_args.kwargs
        assert kwargs["as_of_date"] == TODAY
        assert kwargs["exclude_transaction_id"] == "OUT-1"

    async def test_explicit_date(self, use_case, mock_checker):
        request = CheckAvailabilityRequest(
            company_id=1,
            items=[StockCheckItem(item_code="RM-1", item_type="ROH", qty_requested=2)],
            as_of_date=date(2024, 3, 1),
        )
        await use_case.execute(request)
        assert mock_checker.check_availability.call_args.kwargs["as_of_date"] == date(2024, 3, 1)

    async def test_unknown_company(self, use_case, mock_registry, mock_checker):
        mock_registry.require.side_effect = CompanyNotFoundError(9)
        request = CheckAvailabilityRequest(
            company_id=9,
            items=[StockCheckItem(item_code="RM-1", item_type="ROH", qty_requested=2)],
        )
        with pytest.raises(CompanyNotFoundError):
            await use_case.execute(request)
        mock_checker.check_availability.assert_not_called()

    async def test_get_balance(self, use_case, mock_checker):
        reading = await use_case.get_balance(1, "RM-1")
        assert reading.balance == 5
        mock_checker.get_balance.assert_called_once_with(1, "RM-1", TODAY, item_type=None)
