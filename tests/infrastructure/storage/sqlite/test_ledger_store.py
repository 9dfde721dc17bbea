"""Tests for the SQLite ledger and reference data readers."""

from datetime import date

import pytest

from stockledger.core.entities import MovementKind
from stockledger.core.exceptions import LedgerQueryError
from stockledger.infrastructure.storage.sqlite import (
    SQLiteBeginningBalanceStore,
    SQLiteCompanyStore,
    SQLiteMovementLedger,
    SQLiteTrackedItemSource,
    build_ledgers,
)
from stockledger.infrastructure.storage.sqlite.ledger_store import LedgerSpec

DAY = date(2024, 3, 10)


def _row(item_code="RM-1", item_type="ROH", qty=1.0, day=DAY, **extra):
    return {
        "company_id": 1,
        "item_type": item_type,
        "item_code": item_code,
        "qty": qty,
        "transaction_date": day,
        **extra,
    }


class TestSQLiteMovementLedger:
    async def test_sums_day(self, sqlite_db, insert_row):
        await insert_row("incoming_items", **_row(qty=10))
        await insert_row("incoming_items", **_row(qty=5))
        await insert_row("incoming_items", **_row(qty=99, day=date(2024, 3, 11)))

        total = await SQLiteMovementLedger(MovementKind.INCOMING).read_day_total(1, "ROH", "RM-1", DAY)
        assert total == 15

    async def test_empty_is_zero(self, sqlite_db):
        total = await SQLiteMovementLedger(MovementKind.OUTGOING).read_day_total(1, "ROH", "RM-1", DAY)
        assert total == 0.0

    async def test_soft_deleted_excluded(self, sqlite_db, insert_row):
        await insert_row("outgoing_items", **_row(qty=4))
        await insert_row("outgoing_items", **_row(qty=6, deleted_at="2024-03-11T08:00:00"))

        total = await SQLiteMovementLedger(MovementKind.OUTGOING).read_day_total(1, "ROH", "RM-1", DAY)
        assert total == 4

    async def test_reversal_negated(self, sqlite_db, insert_row):
        """A usage reversal returns material to stock."""
        await insert_row("material_usage_items", **_row(qty=10))
        await insert_row("material_usage_items", **_row(qty=3, reversal=1))

        total = await SQLiteMovementLedger(MovementKind.MATERIAL_USAGE).read_day_total(1, "ROH", "RM-1", DAY)
        assert total == 7

    async def test_adjustment_signed(self, sqlite_db, insert_row):
        await insert_row("adjustment_items", **_row(qty=5, adjustment_type="GAIN"))
        await insert_row("adjustment_items", **_row(qty=8, adjustment_type="LOSS"))

        total = await SQLiteMovementLedger(MovementKind.ADJUSTMENT).read_day_total(1, "ROH", "RM-1", DAY)
        assert total == -3

    async def test_scrap_direction(self, sqlite_db, insert_row):
        await insert_row("scrap_mutations", **_row(item_type="SCRAP", qty=6, direction="IN"))
        await insert_row("scrap_mutations", **_row(item_type="SCRAP", qty=2, direction="OUT"))

        scrap_in = await SQLiteMovementLedger(MovementKind.SCRAP_IN).read_day_total(1, "SCRAP", "RM-1", DAY)
        scrap_out = await SQLiteMovementLedger(MovementKind.SCRAP_OUT).read_day_total(1, "SCRAP", "RM-1", DAY)
        assert (scrap_in, scrap_out) == (6, 2)

    async def test_exclude_transaction(self, sqlite_db, insert_row):
        await insert_row("outgoing_items", **_row(qty=4, transaction_id="OUT-1"))
        await insert_row("outgoing_items", **_row(qty=6, transaction_id="OUT-2"))
        await insert_row("outgoing_items", **_row(qty=1))

        total = await SQLiteMovementLedger(MovementKind.OUTGOING).read_day_total(
            1, "ROH", "RM-1", DAY, exclude_transaction_id="OUT-1"
        )
        assert total == 7

    async def test_query_error_wrapped(self, sqlite_db):
        ledger = SQLiteMovementLedger(MovementKind.INCOMING, LedgerSpec("no_such_table"))
        with pytest.raises(LedgerQueryError) as exc_info:
            await ledger.read_day_total(1, "ROH", "RM-1", DAY)
        assert exc_info.value.details["operation"] == "read_incoming"

    def test_build_ledgers_covers_every_kind(self):
        ledgers = build_ledgers()
        assert set(ledgers) == set(MovementKind)


class TestReferenceReaders:
    async def test_beginning_balances(self, sqlite_db, insert_row):
        await insert_row(
            "beginning_balances",
            company_id=1, item_type="ROH", item_code="RM-1", item_name="Steel",
            uom="KG", qty=100, balance_date=date(2024, 1, 1),
        )
        await insert_row(
            "beginning_balances",
            company_id=1, item_type="FERT", item_code="RM-1", qty=5,
            balance_date=date(2024, 1, 1), deleted_at="2024-02-01",
        )
        store = SQLiteBeginningBalanceStore()

        balances = await store.find_for_item(1, "ROH", "RM-1")
        types = await store.find_item_types(1, "RM-1")

        assert len(balances) == 1
        assert balances[0].qty == 100
        assert balances[0].balance_date == date(2024, 1, 1)
        assert types == ["ROH"]

    async def test_companies(self, sqlite_db, insert_row):
        await insert_row("companies", id=1, code="ACME", name="Acme", is_active=1)
        await insert_row("companies", id=2, code="OLD", name="Old", is_active=0)
        store = SQLiteCompanyStore()

        assert (await store.get(2)).is_active is False
        assert await store.get(3) is None
        assert [c.code for c in await store.list_active()] == ["ACME"]

    async def test_tracked_items_union(self, sqlite_db, insert_row):
        """Items with only a beginning balance, only movements or only snapshots are all tracked."""
        await insert_row(
            "beginning_balances",
            company_id=1, item_type="ROH", item_code="RM-1", qty=1, balance_date=date(2024, 1, 1),
        )
        await insert_row("production_items", **_row(item_type="FERT", item_code="FG-1", item_name="Chair"))
        await insert_row("incoming_items", **_row(item_code="RM-1", item_name="Steel"))
        await insert_row("incoming_items", **_row(item_code="RM-9", deleted_at="2024-03-11"))
        await insert_row(
            "stock_daily_snapshots",
            company_id=1, item_type="SCRAP", item_code="SC-1", snapshot_date=date(2024, 3, 1),
            calculation_method="EOD", calculated_at="2024-03-02T00:05:00+00:00",
        )
        await insert_row("incoming_items", **{**_row(item_code="OTHER"), "company_id": 2})

        items = await SQLiteTrackedItemSource().list_items(1)

        assert [(i.item_type, i.item_code) for i in items] == [
            ("FERT", "FG-1"),
            ("ROH", "RM-1"),
            ("SCRAP", "SC-1"),
        ]
        assert items[1].item_name == "Steel"
