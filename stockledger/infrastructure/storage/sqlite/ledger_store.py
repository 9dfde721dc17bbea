"""
SQLite readers for externally owned ledgers and reference data.

Each movement ledger is one SQLiteMovementLedger configured with a
LedgerSpec; sign rules (reversals, GAIN/LOSS) are applied in SQL.
"""

from dataclasses import dataclass
from datetime import date

import aiosqlite

from stockledger.config import get_logger
from stockledger.core.entities.company import Company
from stockledger.core.entities.item import ItemRef
from stockledger.core.entities.snapshot import BeginningBalance, MovementKind
from stockledger.core.exceptions import DatabaseError, LedgerQueryError
from stockledger.core.interfaces.ledger import (
    IBeginningBalanceStore,
    ICompanyStore,
    IMovementLedger,
    ITrackedItemSource,
)
from stockledger.infrastructure.storage.sqlite.connection import read_connection

logger = get_logger(__name__)


@dataclass(frozen=True)
class LedgerSpec:
    """Where and how to sum one movement kind."""

    table: str
    qty_expr: str = "qty"
    filter_sql: str | None = None


LEDGER_SPECS: dict[MovementKind, LedgerSpec] = {
    MovementKind.INCOMING: LedgerSpec("incoming_items"),
    MovementKind.OUTGOING: LedgerSpec("outgoing_items"),
    MovementKind.MATERIAL_USAGE: LedgerSpec(
        "material_usage_items", "CASE WHEN reversal = 1 THEN -qty ELSE qty END"
    ),
    MovementKind.PRODUCTION: LedgerSpec(
        "production_items", "CASE WHEN reversal = 1 THEN -qty ELSE qty END"
    ),
    MovementKind.ADJUSTMENT: LedgerSpec(
        "adjustment_items", "CASE WHEN adjustment_type = 'LOSS' THEN -qty ELSE qty END"
    ),
    MovementKind.SCRAP_IN: LedgerSpec("scrap_mutations", filter_sql="direction = 'IN'"),
    MovementKind.SCRAP_OUT: LedgerSpec("scrap_mutations", filter_sql="direction = 'OUT'"),
}

_LEDGER_TABLES = sorted({spec.table for spec in LEDGER_SPECS.values()})


class SQLiteMovementLedger(IMovementLedger):
    """Day total for one movement kind."""

    def __init__(self, kind: MovementKind, spec: LedgerSpec | None = None) -> None:
        self.kind = kind
        self.spec = spec or LEDGER_SPECS[kind]

    async def read_day_total(
        self,
        company_id: int,
        item_type: str,
        item_code: str,
        day: date,
        exclude_transaction_id: str | None = None,
    ) -> float:
        """Net quantity for the item on `day`, soft deletes excluded."""
        sql = f"""
            SELECT COALESCE(SUM({self.spec.qty_expr}), 0) AS total
            FROM {self.spec.table}
            WHERE company_id = ? AND item_type = ? AND item_code = ?
              AND transaction_date = ? AND deleted_at IS NULL
        """
        params: list = [company_id, item_type, item_code, day.isoformat()]
        if self.spec.filter_sql:
            sql += f" AND {self.spec.filter_sql}"
        if exclude_transaction_id is not None:
            sql += " AND (transaction_id IS NULL OR transaction_id != ?)"
            params.append(exclude_transaction_id)

        operation = f"read_{self.kind.value}"
        try:
            async with read_connection(operation) as conn:
                cursor = await conn.execute(sql, params)
                row = await cursor.fetchone()
                return float(row["total"] or 0.0)
        except DatabaseError as e:
            raise LedgerQueryError(operation, e.details["error"]) from e


def build_ledgers() -> dict[MovementKind, IMovementLedger]:
    """One reader per movement kind."""
    return {kind: SQLiteMovementLedger(kind) for kind in MovementKind}


class SQLiteBeginningBalanceStore(IBeginningBalanceStore):
    """Reads beginning balances."""

    async def find_for_item(
        self, company_id: int, item_type: str, item_code: str
    ) -> list[BeginningBalance]:
        """All active beginning balance rows for an item."""
        async with read_connection("find_beginning_balances") as conn:
            cursor = await conn.execute(
                """
                SELECT * FROM beginning_balances
                WHERE company_id = ? AND item_type = ? AND item_code = ?
                  AND deleted_at IS NULL
                ORDER BY balance_date
                """,
                (company_id, item_type, item_code),
            )
            rows = await cursor.fetchall()
            return [self._row_to_balance(row) for row in rows]

    async def find_item_types(self, company_id: int, item_code: str) -> list[str]:
        """Distinct item types an item code has beginning balances under."""
        async with read_connection("find_balance_item_types") as conn:
            cursor = await conn.execute(
                """
                SELECT DISTINCT item_type FROM beginning_balances
                WHERE company_id = ? AND item_code = ? AND deleted_at IS NULL
                """,
                (company_id, item_code),
            )
            rows = await cursor.fetchall()
            return [row[0] for row in rows]

    def _row_to_balance(self, row: aiosqlite.Row) -> BeginningBalance:
        return BeginningBalance(
            id=row["id"],
            company_id=row["company_id"],
            item_type=row["item_type"],
            item_code=row["item_code"],
            item_name=row["item_name"],
            uom=row["uom"],
            qty=row["qty"],
            balance_date=date.fromisoformat(row["balance_date"]),
        )


class SQLiteCompanyStore(ICompanyStore):
    """Reads companies."""

    async def get(self, company_id: int) -> Company | None:
        """Get company by ID."""
        async with read_connection("get_company") as conn:
            cursor = await conn.execute(
                "SELECT * FROM companies WHERE id = ?", (company_id,)
            )
            row = await cursor.fetchone()
            if row is None:
                return None
            return self._row_to_company(row)

    async def list_active(self) -> list[Company]:
        """List active companies."""
        async with read_connection("list_active_companies") as conn:
            cursor = await conn.execute(
                "SELECT * FROM companies WHERE is_active = 1 ORDER BY id"
            )
            rows = await cursor.fetchall()
            return [self._row_to_company(row) for row in rows]

    def _row_to_company(self, row: aiosqlite.Row) -> Company:
        return Company(
            id=row["id"],
            code=row["code"],
            name=row["name"],
            is_active=bool(row["is_active"]),
        )


class SQLiteTrackedItemSource(ITrackedItemSource):
    """Every item a company has reference data, snapshots or movements for."""

    async def list_items(self, company_id: int) -> list[ItemRef]:
        """Union of beginning balances, snapshots and all ledgers."""
        sources = [
            "SELECT item_type, item_code, item_name, uom FROM beginning_balances "
            "WHERE company_id = ? AND deleted_at IS NULL",
            "SELECT item_type, item_code, item_name, uom FROM stock_daily_snapshots "
            "WHERE company_id = ?",
        ]
        sources.extend(
            f"SELECT item_type, item_code, item_name, uom FROM {table} "
            "WHERE company_id = ? AND deleted_at IS NULL"
            for table in _LEDGER_TABLES
        )
        sql = f"""
            SELECT item_type, item_code, MAX(item_name) AS item_name, MAX(uom) AS uom
            FROM ({' UNION ALL '.join(sources)})
            GROUP BY item_type, item_code
            ORDER BY item_type, item_code
        """
        async with read_connection("list_tracked_items") as conn:
            cursor = await conn.execute(sql, [company_id] * len(sources))
            rows = await cursor.fetchall()
            return [
                ItemRef(
                    company_id=company_id,
                    item_type=row["item_type"],
                    item_code=row["item_code"],
                    item_name=row["item_name"],
                    uom=row["uom"],
                )
                for row in rows
            ]
