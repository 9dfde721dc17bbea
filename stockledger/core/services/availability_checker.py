"""
Real-time stock availability.

Used to admit or reject a transaction before it is written. Read-only and
fail-closed: storage errors propagate to the caller.
"""

from collections.abc import Callable
from datetime import date

from stockledger.config import business_today, get_logger
from stockledger.core.entities.availability import (
    BalanceReading,
    BalanceSource,
    BatchStockCheckResult,
    StockCheckItem,
    StockCheckResult,
)
from stockledger.core.exceptions import (
    AmbiguousItemTypeError,
    DatabaseError,
    LedgerQueryError,
)
from stockledger.core.interfaces.ledger import IBeginningBalanceStore
from stockledger.core.interfaces.snapshot_store import ISnapshotStore
from stockledger.core.services.balance_formula import closing_for_item_type
from stockledger.core.services.daily_aggregator import DailyAggregator
from stockledger.core.services.snapshot_calculator import SnapshotCalculator

logger = get_logger(__name__)


class AvailabilityChecker:
    """Answers "is there enough stock?" for one or more items."""

    def __init__(
        self,
        snapshot_store: ISnapshotStore,
        balance_store: IBeginningBalanceStore,
        aggregator: DailyAggregator,
        today: Callable[[], date] = business_today,
    ) -> None:
        self._snapshots = snapshot_store
        self._balances = balance_store
        self._aggregator = aggregator
        self._today = today
        # Shares opening-balance resolution with the snapshot path; never writes.
        self._opening = SnapshotCalculator(snapshot_store, balance_store, aggregator)

    async def read_balance(
        self,
        company_id: int,
        item_type: str,
        item_code: str,
        as_of: date,
        exclude_transaction_id: str | None = None,
    ) -> BalanceReading:
        """
        Balance of one item as of a date.

        Past dates read the exact snapshot or carry the nearest earlier one
        forward. Today (and later) trusts today's snapshot when present,
        otherwise computes a live figure clamped at zero.

        Raises:
            LedgerQueryError: A snapshot, balance or ledger read failed.
        """
        try:
            return await self._read_balance(
                company_id, item_type, item_code, as_of, exclude_transaction_id
            )
        except DatabaseError as e:
            raise LedgerQueryError("read_balance", e.details["error"]) from e

    async def _read_balance(
        self,
        company_id: int,
        item_type: str,
        item_code: str,
        as_of: date,
        exclude_transaction_id: str | None,
    ) -> BalanceReading:
        today = self._today()
        if as_of >= today:
            return await self._read_today(
                company_id, item_type, item_code, today, exclude_transaction_id
            )

        snapshot = await self._snapshots.get_latest_on_or_before(
            company_id, item_type, item_code, as_of
        )
        if snapshot is None:
            return BalanceReading(
                company_id=company_id,
                item_type=item_type,
                item_code=item_code,
                as_of_date=as_of,
                balance=0.0,
                source=BalanceSource.NO_HISTORY,
            )
        source = (
            BalanceSource.SNAPSHOT
            if snapshot.snapshot_date == as_of
            else BalanceSource.CARRY_FORWARD
        )
        return BalanceReading(
            company_id=company_id,
            item_type=item_type,
            item_code=item_code,
            as_of_date=as_of,
            balance=snapshot.closing_balance,
            source=source,
            snapshot_date=snapshot.snapshot_date,
        )

    async def _read_today(
        self,
        company_id: int,
        item_type: str,
        item_code: str,
        today: date,
        exclude_transaction_id: str | None,
    ) -> BalanceReading:
        snapshot = await self._snapshots.get(company_id, item_type, item_code, today)
        if snapshot is not None:
            return BalanceReading(
                company_id=company_id,
                item_type=item_type,
                item_code=item_code,
                as_of_date=today,
                balance=snapshot.closing_balance,
                source=BalanceSource.SNAPSHOT,
                snapshot_date=today,
            )

        opening = await self._opening.resolve_opening(
            company_id, item_type, item_code, today
        )
        totals = await self._aggregator.aggregate(
            company_id,
            item_type,
            item_code,
            today,
            exclude_transaction_id=exclude_transaction_id,
        )
        live = closing_for_item_type(item_type, opening.qty, totals)
        if live < 0:
            logger.warning(
                "live_balance_negative",
                company_id=company_id,
                item_type=item_type,
                item_code=item_code,
                balance=live,
            )
        return BalanceReading(
            company_id=company_id,
            item_type=item_type,
            item_code=item_code,
            as_of_date=today,
            balance=max(0.0, live),
            source=BalanceSource.LIVE,
        )

    async def check_availability(
        self,
        company_id: int,
        items: list[StockCheckItem],
        as_of_date: date,
        exclude_transaction_id: str | None = None,
    ) -> BatchStockCheckResult:
        """
        Check every requested line; the batch passes only if all lines do.

        Args:
            company_id: Company owning the stock.
            items: Requested lines.
            as_of_date: Transaction date.
            exclude_transaction_id: Transaction being edited, left out of
                the live aggregate so its own quantities are not counted.
        """
        results: list[StockCheckResult] = []

        for item in items:
            reading = await self.read_balance(
                company_id,
                item.item_type,
                item.item_code,
                as_of_date,
                exclude_transaction_id=exclude_transaction_id,
            )
            available = reading.balance >= item.qty_requested
            results.append(
                StockCheckResult(
                    item_code=item.item_code,
                    item_type=item.item_type,
                    qty_requested=item.qty_requested,
                    current_stock=reading.balance,
                    available=available,
                    shortfall=(
                        None
                        if available
                        else max(0.0, item.qty_requested - reading.balance)
                    ),
                    source=reading.source,
                )
            )

        batch = BatchStockCheckResult(
            company_id=company_id,
            as_of_date=as_of_date,
            results=results,
            all_available=all(r.available for r in results),
        )
        if not batch.all_available:
            logger.info(
                "insufficient_stock",
                company_id=company_id,
                as_of_date=as_of_date.isoformat(),
                items=[r.item_code for r in batch.unavailable],
            )
        return batch

    async def get_balance(
        self,
        company_id: int,
        item_code: str,
        as_of_date: date,
        item_type: str | None = None,
    ) -> BalanceReading:
        """
        Balance of one item, resolving its item type when not given.

        Raises:
            AmbiguousItemTypeError: If the code is tracked under several types.
            LedgerQueryError: A storage read failed.
        """
        if item_type is None:
            try:
                item_type = await self._resolve_item_type(company_id, item_code)
            except DatabaseError as e:
                raise LedgerQueryError("resolve_item_type", e.details["error"]) from e
            if item_type is None:
                return BalanceReading(
                    company_id=company_id,
                    item_type="",
                    item_code=item_code,
                    as_of_date=as_of_date,
                    balance=0.0,
                    source=BalanceSource.NO_HISTORY,
                )
        return await self.read_balance(company_id, item_type, item_code, as_of_date)

    async def _resolve_item_type(self, company_id: int, item_code: str) -> str | None:
        types = set(await self._snapshots.find_item_types(company_id, item_code))
        types.update(await self._balances.find_item_types(company_id, item_code))
        if len(types) > 1:
            raise AmbiguousItemTypeError(company_id, item_code, sorted(types))
        return types.pop() if types else None
