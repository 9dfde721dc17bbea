"""
Cascading recalculation.

A backdated change invalidates every later snapshot of the same item, so
dates are recomputed strictly in ascending order, each awaited before the
next starts.
"""

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import date, timedelta

from stockledger.config import business_today, get_logger
from stockledger.core.entities.snapshot import CalculationMethod
from stockledger.core.services.snapshot_calculator import (
    SnapshotCalculation,
    SnapshotCalculator,
)

logger = get_logger(__name__)


@dataclass
class CascadeResult:
    """Outcome of a cascade over one item key."""

    company_id: int
    item_type: str
    item_code: str
    start_date: date
    end_date: date
    results: list[SnapshotCalculation] = field(default_factory=list)
    failed_date: date | None = None
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.failed_date is None

    @property
    def dates_processed(self) -> int:
        return len(self.results)


def date_range(start: date, end: date) -> list[date]:
    """Inclusive ascending list of dates; empty when start > end."""
    days = (end - start).days
    return [start + timedelta(days=i) for i in range(days + 1)]


class CascadeRecalculator:
    """Recomputes an item's snapshots from a start date forward."""

    def __init__(
        self,
        calculator: SnapshotCalculator,
        today: Callable[[], date] = business_today,
    ) -> None:
        self._calculator = calculator
        self._today = today

    async def recalc_from(
        self,
        company_id: int,
        item_type: str,
        item_code: str,
        start_date: date,
        end_date: date | None = None,
        method: CalculationMethod = CalculationMethod.TRANSACTION,
    ) -> CascadeResult:
        """
        Recalculate every date in [start_date, end_date] for one item.

        Stops at the first failing date and returns what was done so far
        together with that date. Re-running from the failed date is safe.

        Args:
            end_date: Last date to compute, defaults to today.
        """
        end = end_date or self._today()
        result = CascadeResult(
            company_id=company_id,
            item_type=item_type,
            item_code=item_code,
            start_date=start_date,
            end_date=end,
        )

        for day in date_range(start_date, end):
            try:
                calc = await self._calculator.calculate(
                    company_id, item_type, item_code, day, method=method
                )
            except Exception as e:
                result.failed_date = day
                result.error = str(e)
                logger.error(
                    "cascade_failed",
                    company_id=company_id,
                    item_type=item_type,
                    item_code=item_code,
                    failed_date=day.isoformat(),
                    completed=len(result.results),
                    error=str(e),
                    exc_info=True,
                )
                return result
            result.results.append(calc)

        logger.info(
            "cascade_complete",
            company_id=company_id,
            item_type=item_type,
            item_code=item_code,
            start_date=start_date.isoformat(),
            end_date=end.isoformat(),
            dates=len(result.results),
        )
        return result
