"""
Single-day snapshot calculation.

Opening balance, day aggregate, formula, idempotent upsert.
"""

import time
from dataclasses import dataclass
from datetime import UTC, date, datetime, timedelta

from stockledger.config import get_logger
from stockledger.core.entities.snapshot import CalculationMethod, StockSnapshot
from stockledger.core.exceptions import (
    DatabaseError,
    DuplicateBeginningBalanceError,
    LedgerQueryError,
)
from stockledger.core.interfaces.ledger import IBeginningBalanceStore
from stockledger.core.interfaces.snapshot_store import ISnapshotStore
from stockledger.core.services.balance_formula import closing_for_item_type
from stockledger.core.services.daily_aggregator import DailyAggregator

logger = get_logger(__name__)


@dataclass
class OpeningBalance:
    """Opening balance and the descriptive fields that came with it."""

    qty: float
    item_name: str | None = None
    uom: str | None = None
    source: str = "none"  # previous_snapshot | beginning_balance | none


@dataclass
class SnapshotCalculation:
    """Result of calculating one item-day."""

    snapshot: StockSnapshot
    duration_ms: float

    @property
    def closing_balance(self) -> float:
        return self.snapshot.closing_balance

    @property
    def breakdown(self) -> dict[str, float]:
        s = self.snapshot
        return {
            "opening_balance": s.opening_balance,
            "incoming_qty": s.incoming_qty,
            "outgoing_qty": s.outgoing_qty,
            "material_usage_qty": s.material_usage_qty,
            "production_qty": s.production_qty,
            "adjustment_qty": s.adjustment_qty,
            "scrap_in_qty": s.scrap_in_qty,
            "scrap_out_qty": s.scrap_out_qty,
        }


class SnapshotCalculator:
    """Computes and stores the snapshot of one item for one date."""

    def __init__(
        self,
        snapshot_store: ISnapshotStore,
        balance_store: IBeginningBalanceStore,
        aggregator: DailyAggregator,
    ) -> None:
        self._snapshots = snapshot_store
        self._balances = balance_store
        self._aggregator = aggregator

    async def resolve_opening(
        self, company_id: int, item_type: str, item_code: str, target_date: date
    ) -> OpeningBalance:
        """
        Opening balance for target_date.

        Previous day's closing if that snapshot exists, else the beginning
        balance when it is dated on or before target_date, else 0.

        Raises:
            DuplicateBeginningBalanceError: If the item has several beginning balances.
        """
        previous = await self._snapshots.get(
            company_id, item_type, item_code, target_date - timedelta(days=1)
        )
        if previous is not None:
            return OpeningBalance(
                qty=previous.closing_balance,
                item_name=previous.item_name,
                uom=previous.uom,
                source="previous_snapshot",
            )

        balances = await self._balances.find_for_item(company_id, item_type, item_code)
        if len(balances) > 1:
            raise DuplicateBeginningBalanceError(
                company_id, item_type, item_code, len(balances)
            )
        if balances:
            bb = balances[0]
            qty = bb.qty if bb.balance_date <= target_date else 0.0
            return OpeningBalance(
                qty=qty, item_name=bb.item_name, uom=bb.uom, source="beginning_balance"
            )

        return OpeningBalance(qty=0.0)

    async def calculate(
        self,
        company_id: int,
        item_type: str,
        item_code: str,
        target_date: date,
        method: CalculationMethod = CalculationMethod.TRANSACTION,
        item_name: str | None = None,
        uom: str | None = None,
    ) -> SnapshotCalculation:
        """
        Calculate and upsert the snapshot for one item-day.

        Safe to repeat: the same inputs always produce the same row.

        Raises:
            DataInconsistencyError: Duplicate beginning balances.
            LedgerQueryError: Any storage read or write failed.
        """
        started = time.perf_counter()

        try:
            opening = await self.resolve_opening(
                company_id, item_type, item_code, target_date
            )
            totals = await self._aggregator.aggregate(
                company_id, item_type, item_code, target_date
            )
            closing = closing_for_item_type(item_type, opening.qty, totals)

            snapshot = StockSnapshot(
                company_id=company_id,
                item_type=item_type,
                item_code=item_code,
                item_name=item_name or opening.item_name,
                uom=uom or opening.uom,
                snapshot_date=target_date,
                opening_balance=opening.qty,
                incoming_qty=totals.incoming,
                outgoing_qty=totals.outgoing,
                material_usage_qty=totals.material_usage,
                production_qty=totals.production,
                adjustment_qty=totals.adjustment,
                scrap_in_qty=totals.scrap_in,
                scrap_out_qty=totals.scrap_out,
                closing_balance=closing,
                calculation_method=method,
                calculated_at=datetime.now(UTC),
            )
            saved = await self._snapshots.upsert(snapshot)
        except DatabaseError as e:
            raise LedgerQueryError("calculate_snapshot", e.message) from e

        duration_ms = (time.perf_counter() - started) * 1000
        logger.debug(
            "snapshot_calculated",
            company_id=company_id,
            item_type=item_type,
            item_code=item_code,
            snapshot_date=target_date.isoformat(),
            opening=opening.qty,
            closing=closing,
            method=method.value,
            duration_ms=round(duration_ms, 2),
        )
        return SnapshotCalculation(snapshot=saved, duration_ms=duration_ms)
