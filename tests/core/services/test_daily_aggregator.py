"""Tests for DailyAggregator."""

from datetime import date

import pytest

from stockledger.core.entities import MovementKind
from stockledger.core.exceptions import ConfigurationError, LedgerQueryError
from stockledger.core.services import DailyAggregator

DAY = date(2024, 3, 10)


class TestDailyAggregator:
    def test_requires_every_ledger(self, ledgers):
        """Building without a ledger for each kind is a configuration error."""
        del ledgers[MovementKind.SCRAP_OUT]
        with pytest.raises(ConfigurationError) as exc_info:
            DailyAggregator(ledgers)
        assert exc_info.value.details["missing"] == ["scrap_out"]

    async def test_sums_each_kind(self, aggregator, ledgers):
        ledgers[MovementKind.INCOMING].add(1, "ROH", "RM-1", DAY, 10)
        ledgers[MovementKind.INCOMING].add(1, "ROH", "RM-1", DAY, 5)
        ledgers[MovementKind.MATERIAL_USAGE].add(1, "ROH", "RM-1", DAY, 3)
        ledgers[MovementKind.ADJUSTMENT].add(1, "ROH", "RM-1", DAY, -2)

        totals = await aggregator.aggregate(1, "ROH", "RM-1", DAY)

        assert totals.incoming == 15
        assert totals.material_usage == 3
        assert totals.adjustment == -2
        assert totals.outgoing == 0

    async def test_other_days_and_items_ignored(self, aggregator, ledgers):
        ledgers[MovementKind.INCOMING].add(1, "ROH", "RM-1", date(2024, 3, 9), 10)
        ledgers[MovementKind.INCOMING].add(1, "ROH", "RM-2", DAY, 10)
        ledgers[MovementKind.INCOMING].add(2, "ROH", "RM-1", DAY, 10)

        totals = await aggregator.aggregate(1, "ROH", "RM-1", DAY)
        assert totals.incoming == 0

    async def test_excludes_transaction(self, aggregator, ledgers):
        """Rows of the transaction being edited are left out."""
        ledgers[MovementKind.OUTGOING].add(1, "ROH", "RM-1", DAY, 4, transaction_id="OUT-1")
        ledgers[MovementKind.OUTGOING].add(1, "ROH", "RM-1", DAY, 6, transaction_id="OUT-2")

        totals = await aggregator.aggregate(
            1, "ROH", "RM-1", DAY, exclude_transaction_id="OUT-1"
        )
        assert totals.outgoing == 6

    async def test_ledger_failure_wrapped(self, aggregator, ledgers):
        """Any ledger failure surfaces as LedgerQueryError."""
        ledgers[MovementKind.PRODUCTION].failing_days.add(DAY)

        with pytest.raises(LedgerQueryError) as exc_info:
            await aggregator.aggregate(1, "FERT", "FG-1", DAY)
        assert "ledger unavailable" in exc_info.value.message

    async def test_ledger_query_error_passes_through(self, aggregator, ledgers):
        async def fail(*args, **kwargs):
            raise LedgerQueryError("read_incoming", "locked")

        ledgers[MovementKind.INCOMING].read_day_total = fail

        with pytest.raises(LedgerQueryError) as exc_info:
            await aggregator.aggregate(1, "ROH", "RM-1", DAY)
        assert exc_info.value.details["operation"] == "read_incoming"
