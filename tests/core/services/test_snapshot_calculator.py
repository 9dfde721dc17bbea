"""Tests for SnapshotCalculator."""

from datetime import date
from unittest.mock import AsyncMock

import pytest

from stockledger.core.entities import CalculationMethod, MovementKind, StockSnapshot
from stockledger.core.exceptions import (
    DatabaseError,
    DuplicateBeginningBalanceError,
    LedgerQueryError,
)
from stockledger.core.services import SnapshotCalculator

DAY = date(2024, 3, 10)


def _snapshot(day: date, closing: float, **kwargs) -> StockSnapshot:
    return StockSnapshot(
        company_id=1,
        item_type="ROH",
        item_code="RM-1",
        snapshot_date=day,
        closing_balance=closing,
        **kwargs,
    )


class TestResolveOpening:
    async def test_previous_snapshot_wins(self, calculator, snapshot_store, balance_store):
        """Previous day's closing is used even when a beginning balance exists."""
        await snapshot_store.upsert(_snapshot(date(2024, 3, 9), 80, item_name="Steel"))
        balance_store.add(1, "ROH", "RM-1", 500, date(2024, 1, 1))

        opening = await calculator.resolve_opening(1, "ROH", "RM-1", DAY)

        assert opening.qty == 80
        assert opening.source == "previous_snapshot"
        assert opening.item_name == "Steel"

    async def test_beginning_balance_on_or_before(self, calculator, balance_store):
        balance_store.add(1, "ROH", "RM-1", 100, DAY, uom="KG")

        opening = await calculator.resolve_opening(1, "ROH", "RM-1", DAY)

        assert opening.qty == 100
        assert opening.uom == "KG"
        assert opening.source == "beginning_balance"

    async def test_beginning_balance_after_target_ignored(self, calculator, balance_store):
        balance_store.add(1, "ROH", "RM-1", 100, date(2024, 3, 11))

        opening = await calculator.resolve_opening(1, "ROH", "RM-1", DAY)
        assert opening.qty == 0

    async def test_no_history_is_zero(self, calculator):
        opening = await calculator.resolve_opening(1, "ROH", "RM-1", DAY)
        assert opening.qty == 0
        assert opening.source == "none"

    async def test_duplicate_beginning_balance(self, calculator, balance_store):
        """Two beginning balances for one item is a data inconsistency."""
        balance_store.add(1, "ROH", "RM-1", 100, date(2024, 1, 1))
        balance_store.add(1, "ROH", "RM-1", 50, date(2024, 2, 1))

        with pytest.raises(DuplicateBeginningBalanceError):
            await calculator.resolve_opening(1, "ROH", "RM-1", DAY)


class TestCalculate:
    async def test_writes_snapshot(self, calculator, snapshot_store, balance_store, ledgers):
        balance_store.add(1, "ROH", "RM-1", 100, date(2024, 1, 1), item_name="Steel")
        ledgers[MovementKind.INCOMING].add(1, "ROH", "RM-1", DAY, 20)
        ledgers[MovementKind.MATERIAL_USAGE].add(1, "ROH", "RM-1", DAY, 5)
        ledgers[MovementKind.OUTGOING].add(1, "ROH", "RM-1", DAY, 10)

        result = await calculator.calculate(1, "ROH", "RM-1", DAY)

        assert result.closing_balance == 105
        assert result.breakdown["opening_balance"] == 100
        assert result.breakdown["incoming_qty"] == 20
        stored = await snapshot_store.get(1, "ROH", "RM-1", DAY)
        assert stored.closing_balance == 105
        assert stored.item_name == "Steel"
        assert stored.calculation_method is CalculationMethod.TRANSACTION

    async def test_idempotent(self, calculator, snapshot_store, ledgers):
        """Recomputing the same day yields the same single row."""
        ledgers[MovementKind.PRODUCTION].add(1, "FERT", "FG-1", DAY, 7)

        first = await calculator.calculate(1, "FERT", "FG-1", DAY)
        second = await calculator.calculate(1, "FERT", "FG-1", DAY)

        assert first.snapshot.id == second.snapshot.id
        assert first.closing_balance == second.closing_balance == 7
        assert len(snapshot_store.rows) == 1

    async def test_method_recorded(self, calculator, snapshot_store):
        await calculator.calculate(1, "SCRAP", "SC-1", DAY, method=CalculationMethod.EOD)
        stored = await snapshot_store.get(1, "SCRAP", "SC-1", DAY)
        assert stored.calculation_method is CalculationMethod.EOD

    async def test_explicit_name_overrides_opening(self, calculator, snapshot_store, balance_store):
        balance_store.add(1, "ROH", "RM-1", 1, date(2024, 1, 1), item_name="Old")
        await calculator.calculate(1, "ROH", "RM-1", DAY, item_name="New", uom="PCS")
        stored = await snapshot_store.get(1, "ROH", "RM-1", DAY)
        assert stored.item_name == "New"
        assert stored.uom == "PCS"

    async def test_ledger_failure_writes_nothing(self, calculator, snapshot_store, ledgers):
        ledgers[MovementKind.INCOMING].failing_days.add(DAY)

        with pytest.raises(LedgerQueryError):
            await calculator.calculate(1, "ROH", "RM-1", DAY)
        assert snapshot_store.rows == {}

    async def test_database_error_becomes_ledger_query_error(self, balance_store, aggregator):
        store = AsyncMock()
        store.get.return_value = None
        store.upsert.side_effect = DatabaseError("upsert_snapshot", "locked")
        calculator = SnapshotCalculator(store, balance_store, aggregator)

        with pytest.raises(LedgerQueryError) as exc_info:
            await calculator.calculate(1, "ROH", "RM-1", DAY)
        assert exc_info.value.details["operation"] == "calculate_snapshot"
