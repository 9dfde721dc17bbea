"""SQLite implementation of daily snapshot storage."""

from datetime import date, datetime

import aiosqlite

from stockledger.config import get_logger
from stockledger.core.entities.snapshot import CalculationMethod, StockSnapshot
from stockledger.core.exceptions import DatabaseError
from stockledger.core.interfaces.snapshot_store import ISnapshotStore
from stockledger.infrastructure.storage.sqlite.connection import (
    get_transaction,
    read_connection,
    utc_timestamp,
)
from stockledger.infrastructure.storage.sqlite.retry import with_write_retry

logger = get_logger(__name__)


_UPSERT_SQL = """
INSERT INTO stock_daily_snapshots (
    company_id, item_type, item_code, item_name, uom, snapshot_date,
    opening_balance, incoming_qty, outgoing_qty, material_usage_qty,
    production_qty, adjustment_qty, scrap_in_qty, scrap_out_qty,
    closing_balance, calculation_method, calculated_at
) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
ON CONFLICT (company_id, item_type, item_code, snapshot_date) DO UPDATE SET
    item_name = COALESCE(NULLIF(excluded.item_name, ''), stock_daily_snapshots.item_name),
    uom = COALESCE(NULLIF(excluded.uom, ''), stock_daily_snapshots.uom),
    opening_balance = excluded.opening_balance,
    incoming_qty = excluded.incoming_qty,
    outgoing_qty = excluded.outgoing_qty,
    material_usage_qty = excluded.material_usage_qty,
    production_qty = excluded.production_qty,
    adjustment_qty = excluded.adjustment_qty,
    scrap_in_qty = excluded.scrap_in_qty,
    scrap_out_qty = excluded.scrap_out_qty,
    closing_balance = excluded.closing_balance,
    calculation_method = excluded.calculation_method,
    calculated_at = excluded.calculated_at
"""


class SQLiteSnapshotStore(ISnapshotStore):
    """SQLite implementation of stock snapshot storage."""

    async def upsert(self, snapshot: StockSnapshot) -> StockSnapshot:
        """Insert or overwrite the snapshot for its key."""
        try:
            return await with_write_retry(self._upsert, snapshot)
        except aiosqlite.Error as e:
            logger.error(
                "snapshot_upsert_failed",
                company_id=snapshot.company_id,
                item_code=snapshot.item_code,
                snapshot_date=snapshot.snapshot_date.isoformat(),
                error=str(e),
            )
            raise DatabaseError("upsert_snapshot", str(e)) from e

    async def _upsert(self, snapshot: StockSnapshot) -> StockSnapshot:
        async with get_transaction() as conn:
            await conn.execute(
                _UPSERT_SQL,
                (
                    snapshot.company_id,
                    snapshot.item_type,
                    snapshot.item_code,
                    snapshot.item_name,
                    snapshot.uom,
                    snapshot.snapshot_date.isoformat(),
                    snapshot.opening_balance,
                    snapshot.incoming_qty,
                    snapshot.outgoing_qty,
                    snapshot.material_usage_qty,
                    snapshot.production_qty,
                    snapshot.adjustment_qty,
                    snapshot.scrap_in_qty,
                    snapshot.scrap_out_qty,
                    snapshot.closing_balance,
                    snapshot.calculation_method.value,
                    utc_timestamp(snapshot.calculated_at),
                ),
            )
            cursor = await conn.execute(
                """
                SELECT * FROM stock_daily_snapshots
                WHERE company_id = ? AND item_type = ? AND item_code = ?
                  AND snapshot_date = ?
                """,
                (
                    snapshot.company_id,
                    snapshot.item_type,
                    snapshot.item_code,
                    snapshot.snapshot_date.isoformat(),
                ),
            )
            row = await cursor.fetchone()
            return self._row_to_snapshot(row)

    async def get(
        self, company_id: int, item_type: str, item_code: str, snapshot_date: date
    ) -> StockSnapshot | None:
        """Get the snapshot for an exact date."""
        async with read_connection("get_snapshot") as conn:
            cursor = await conn.execute(
                """
                SELECT * FROM stock_daily_snapshots
                WHERE company_id = ? AND item_type = ? AND item_code = ?
                  AND snapshot_date = ?
                """,
                (company_id, item_type, item_code, snapshot_date.isoformat()),
            )
            row = await cursor.fetchone()
            if row is None:
                return None
            return self._row_to_snapshot(row)

    async def get_latest_on_or_before(
        self, company_id: int, item_type: str, item_code: str, as_of: date
    ) -> StockSnapshot | None:
        """Get the most recent snapshot dated on or before as_of."""
        async with read_connection("get_latest_snapshot") as conn:
            cursor = await conn.execute(
                """
                SELECT * FROM stock_daily_snapshots
                WHERE company_id = ? AND item_type = ? AND item_code = ?
                  AND snapshot_date <= ?
                ORDER BY snapshot_date DESC
                LIMIT 1
                """,
                (company_id, item_type, item_code, as_of.isoformat()),
            )
            row = await cursor.fetchone()
            if row is None:
                return None
            return self._row_to_snapshot(row)

    async def list_for_item(
        self,
        company_id: int,
        item_type: str,
        item_code: str,
        start: date,
        end: date,
    ) -> list[StockSnapshot]:
        """List snapshots of one item in a date range."""
        async with read_connection("list_item_snapshots") as conn:
            cursor = await conn.execute(
                """
                SELECT * FROM stock_daily_snapshots
                WHERE company_id = ? AND item_type = ? AND item_code = ?
                  AND snapshot_date BETWEEN ? AND ?
                ORDER BY snapshot_date ASC
                """,
                (company_id, item_type, item_code, start.isoformat(), end.isoformat()),
            )
            rows = await cursor.fetchall()
            return [self._row_to_snapshot(row) for row in rows]

    async def list_for_date(
        self, company_id: int, snapshot_date: date
    ) -> list[StockSnapshot]:
        """List every item's snapshot for one date."""
        async with read_connection("list_date_snapshots") as conn:
            cursor = await conn.execute(
                """
                SELECT * FROM stock_daily_snapshots
                WHERE company_id = ? AND snapshot_date = ?
                ORDER BY item_type, item_code
                """,
                (company_id, snapshot_date.isoformat()),
            )
            rows = await cursor.fetchall()
            return [self._row_to_snapshot(row) for row in rows]

    async def list_snapshot_dates(
        self, company_id: int, start: date, end: date
    ) -> list[date]:
        """Distinct dates in range with at least one snapshot."""
        async with read_connection("list_snapshot_dates") as conn:
            cursor = await conn.execute(
                """
                SELECT DISTINCT snapshot_date FROM stock_daily_snapshots
                WHERE company_id = ? AND snapshot_date BETWEEN ? AND ?
                ORDER BY snapshot_date
                """,
                (company_id, start.isoformat(), end.isoformat()),
            )
            rows = await cursor.fetchall()
            return [date.fromisoformat(row[0]) for row in rows]

    async def find_item_types(self, company_id: int, item_code: str) -> list[str]:
        """Distinct item types an item code has snapshots under."""
        async with read_connection("find_snapshot_item_types") as conn:
            cursor = await conn.execute(
                """
                SELECT DISTINCT item_type FROM stock_daily_snapshots
                WHERE company_id = ? AND item_code = ?
                """,
                (company_id, item_code),
            )
            rows = await cursor.fetchall()
            return [row[0] for row in rows]

    def _row_to_snapshot(self, row: aiosqlite.Row) -> StockSnapshot:
        """Convert database row to StockSnapshot entity."""
        return StockSnapshot(
            id=row["id"],
            company_id=row["company_id"],
            item_type=row["item_type"],
            item_code=row["item_code"],
            item_name=row["item_name"],
            uom=row["uom"],
            snapshot_date=date.fromisoformat(row["snapshot_date"]),
            opening_balance=row["opening_balance"],
            incoming_qty=row["incoming_qty"],
            outgoing_qty=row["outgoing_qty"],
            material_usage_qty=row["material_usage_qty"],
            production_qty=row["production_qty"],
            adjustment_qty=row["adjustment_qty"],
            scrap_in_qty=row["scrap_in_qty"],
            scrap_out_qty=row["scrap_out_qty"],
            closing_balance=row["closing_balance"],
            calculation_method=CalculationMethod(row["calculation_method"]),
            calculated_at=datetime.fromisoformat(row["calculated_at"]),
        )
