"""Check Availability Use Case: admit or reject a transaction's lines."""

from collections.abc import Callable
from datetime import date

from stockledger.application.dto.requests import CheckAvailabilityRequest
from stockledger.config import business_today, get_logger
from stockledger.core.entities.availability import BalanceReading, BatchStockCheckResult
from stockledger.core.services.availability_checker import AvailabilityChecker
from stockledger.core.services.company_registry import CompanyRegistry

logger = get_logger(__name__)


class CheckAvailabilityUseCase:
    """Validates the company, then delegates to AvailabilityChecker."""

    def __init__(
        self,
        checker: AvailabilityChecker | None = None,
        company_registry: CompanyRegistry | None = None,
        today: Callable[[], date] = business_today,
    ):
        self._checker = checker
        self._registry = company_registry
        self._today = today

    def _get_checker(self) -> AvailabilityChecker:
        if self._checker is None:
            from stockledger.application.services import get_availability_checker

            self._checker = get_availability_checker()
        return self._checker

    def _get_registry(self) -> CompanyRegistry:
        if self._registry is None:
            from stockledger.application.services import get_company_registry

            self._registry = get_company_registry()
        return self._registry

    async def execute(self, request: CheckAvailabilityRequest) -> BatchStockCheckResult:
        """Check every line; all_available is False if any line is short."""
        await self._get_registry().require(request.company_id)

        as_of = request.as_of_date or self._today()
        result = await self._get_checker().check_availability(
            company_id=request.company_id,
            items=request.items,
            as_of_date=as_of,
            exclude_transaction_id=request.exclude_transaction_id,
        )
        logger.info(
            "availability_checked",
            company_id=request.company_id,
            as_of_date=as_of.isoformat(),
            items=len(request.items),
            all_available=result.all_available,
        )
        return result

    async def get_balance(
        self,
        company_id: int,
        item_code: str,
        as_of_date: date | None = None,
        item_type: str | None = None,
    ) -> BalanceReading:
        """Single-item balance as of a date (default today)."""
        await self._get_registry().require(company_id)
        return await self._get_checker().get_balance(
            company_id,
            item_code,
            as_of_date or self._today(),
            item_type=item_type,
        )
