"""
End Of Day Sweep Use Case.

Computes the elapsed day's snapshot for every tracked item of every active
company, including items with no movement, and back-fills any days missed
since the item's last snapshot.
"""

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import date, timedelta

from stockledger.config import business_today, get_logger
from stockledger.core.entities.item import ItemRef
from stockledger.core.entities.snapshot import CalculationMethod
from stockledger.core.exceptions import SchedulerTaskFailure
from stockledger.core.interfaces.ledger import IBeginningBalanceStore, ITrackedItemSource
from stockledger.core.interfaces.snapshot_store import ISnapshotStore
from stockledger.core.services.cascade_recalculator import CascadeRecalculator
from stockledger.core.services.company_registry import CompanyRegistry

logger = get_logger(__name__)


@dataclass
class SweepResult:
    """Result of an end-of-day sweep."""

    target_date: date
    companies: int = 0
    items: int = 0
    snapshots_written: int = 0
    failures: list[SchedulerTaskFailure] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return not self.failures


class EndOfDaySweepUseCase:
    """Runs once a day shortly after local midnight."""

    def __init__(
        self,
        company_registry: CompanyRegistry | None = None,
        item_source: ITrackedItemSource | None = None,
        snapshot_store: ISnapshotStore | None = None,
        balance_store: IBeginningBalanceStore | None = None,
        cascade: CascadeRecalculator | None = None,
        today: Callable[[], date] = business_today,
    ):
        self._registry = company_registry
        self._item_source = item_source
        self._snapshot_store = snapshot_store
        self._balance_store = balance_store
        self._cascade = cascade
        self._today = today

    def _get_registry(self) -> CompanyRegistry:
        if self._registry is None:
            from stockledger.application.services import get_company_registry

            self._registry = get_company_registry()
        return self._registry

    def _get_item_source(self) -> ITrackedItemSource:
        if self._item_source is None:
            from stockledger.application.services import get_tracked_item_source

            self._item_source = get_tracked_item_source()
        return self._item_source

    def _get_snapshot_store(self) -> ISnapshotStore:
        if self._snapshot_store is None:
            from stockledger.application.services import get_snapshot_store

            self._snapshot_store = get_snapshot_store()
        return self._snapshot_store

    def _get_balance_store(self) -> IBeginningBalanceStore:
        if self._balance_store is None:
            from stockledger.application.services import get_beginning_balance_store

            self._balance_store = get_beginning_balance_store()
        return self._balance_store

    def _get_cascade(self) -> CascadeRecalculator:
        if self._cascade is None:
            from stockledger.application.services import get_cascade_recalculator

            self._cascade = get_cascade_recalculator()
        return self._cascade

    async def execute(self, target_date: date | None = None) -> SweepResult:
        """
        Sweep every active company for target_date (default yesterday).

        A failing company or item is recorded and skipped; the sweep
        always runs to the end.
        """
        target = target_date or self._today() - timedelta(days=1)
        result = SweepResult(target_date=target)

        logger.info("eod_sweep_started", target_date=target.isoformat())

        companies = await self._get_registry().list_active()
        result.companies = len(companies)

        for company in companies:
            try:
                items = await self._get_item_source().list_items(company.id)
            except Exception as e:
                self._record(result, SchedulerTaskFailure("eod", company.id, str(e)))
                continue

            for item in items:
                result.items += 1
                try:
                    await self._sweep_item(item, target, result)
                except Exception as e:
                    self._record(
                        result,
                        SchedulerTaskFailure("eod", company.id, str(e), item.item_code, target),
                    )

        logger.info(
            "eod_sweep_complete",
            target_date=target.isoformat(),
            companies=result.companies,
            items=result.items,
            snapshots_written=result.snapshots_written,
            failures=len(result.failures),
        )
        return result

    async def _sweep_item(self, item: ItemRef, target: date, result: SweepResult) -> None:
        start = await self._start_date(item, target)
        cascade = await self._get_cascade().recalc_from(
            item.company_id,
            item.item_type,
            item.item_code,
            start,
            target,
            method=CalculationMethod.EOD,
        )
        result.snapshots_written += cascade.dates_processed
        if not cascade.succeeded:
            self._record(
                result,
                SchedulerTaskFailure(
                    "eod",
                    item.company_id,
                    cascade.error or "cascade failed",
                    item.item_code,
                    cascade.failed_date,
                ),
            )

    async def _start_date(self, item: ItemRef, target: date) -> date:
        """First date the item needs: the day after its last snapshot,
        or its beginning balance date when it has never been snapshotted."""
        latest = await self._get_snapshot_store().get_latest_on_or_before(
            item.company_id, item.item_type, item.item_code, target
        )
        if latest is not None:
            return min(latest.snapshot_date + timedelta(days=1), target)

        balances = await self._get_balance_store().find_for_item(
            item.company_id, item.item_type, item.item_code
        )
        if balances:
            return min(min(b.balance_date for b in balances), target)
        return target

    @staticmethod
    def _record(result: SweepResult, failure: SchedulerTaskFailure) -> None:
        result.failures.append(failure)
        logger.error("eod_sweep_unit_failed", **failure.details)
