"""Pytest configuration and fixtures."""

from collections import defaultdict
from collections.abc import AsyncGenerator, Awaitable, Callable
from datetime import date
from pathlib import Path
from unittest.mock import MagicMock, patch

import aiosqlite
import pytest

from stockledger.core.entities import (
    BeginningBalance,
    MovementKind,
    StockSnapshot,
)
from stockledger.core.interfaces import (
    IBeginningBalanceStore,
    IMovementLedger,
    ISnapshotStore,
)
from stockledger.core.services import DailyAggregator, SnapshotCalculator

TODAY = date(2024, 3, 15)

SnapshotKey = tuple[int, str, str, date]


class InMemorySnapshotStore(ISnapshotStore):
    """Dict-backed snapshot store with the same upsert semantics as SQLite."""

    def __init__(self) -> None:
        self.rows: dict[SnapshotKey, StockSnapshot] = {}
        self.upserts: list[StockSnapshot] = []
        self._next_id = 1

    async def upsert(self, snapshot: StockSnapshot) -> StockSnapshot:
        key = (snapshot.company_id, snapshot.item_type, snapshot.item_code, snapshot.snapshot_date)
        existing = self.rows.get(key)
        if existing is not None:
            saved = snapshot.model_copy(
                update={
                    "id": existing.id,
                    "item_name": snapshot.item_name or existing.item_name,
                    "uom": snapshot.uom or existing.uom,
                }
            )
        else:
            saved = snapshot.model_copy(update={"id": self._next_id})
            self._next_id += 1
        self.rows[key] = saved
        self.upserts.append(saved)
        return saved

    async def get(self, company_id, item_type, item_code, snapshot_date):
        return self.rows.get((company_id, item_type, item_code, snapshot_date))

    async def get_latest_on_or_before(self, company_id, item_type, item_code, as_of):
        candidates = [
            s
            for (c, t, i, d), s in self.rows.items()
            if (c, t, i) == (company_id, item_type, item_code) and d <= as_of
        ]
        return max(candidates, key=lambda s: s.snapshot_date, default=None)

    async def list_for_item(self, company_id, item_type, item_code, start, end):
        return sorted(
            (
                s
                for (c, t, i, d), s in self.rows.items()
                if (c, t, i) == (company_id, item_type, item_code) and start <= d <= end
            ),
            key=lambda s: s.snapshot_date,
        )

    async def list_for_date(self, company_id, snapshot_date):
        return sorted(
            (
                s
                for (c, _, _, d), s in self.rows.items()
                if c == company_id and d == snapshot_date
            ),
            key=lambda s: (s.item_type, s.item_code),
        )

    async def list_snapshot_dates(self, company_id, start, end):
        return sorted({d for (c, _, _, d) in self.rows if c == company_id and start <= d <= end})

    async def find_item_types(self, company_id, item_code):
        return sorted({t for (c, t, i, _) in self.rows if c == company_id and i == item_code})


class InMemoryBalanceStore(IBeginningBalanceStore):
    """List-backed beginning balance reader."""

    def __init__(self) -> None:
        self.balances: list[BeginningBalance] = []

    def add(self, company_id: int, item_type: str, item_code: str, qty: float, balance_date: date, **kwargs) -> None:
        self.balances.append(
            BeginningBalance(
                company_id=company_id,
                item_type=item_type,
                item_code=item_code,
                qty=qty,
                balance_date=balance_date,
                **kwargs,
            )
        )

    async def find_for_item(self, company_id, item_type, item_code):
        return [
            b
            for b in self.balances
            if (b.company_id, b.item_type, b.item_code) == (company_id, item_type, item_code)
        ]

    async def find_item_types(self, company_id, item_code):
        return sorted(
            {b.item_type for b in self.balances if b.company_id == company_id and b.item_code == item_code}
        )


class FakeLedger(IMovementLedger):
    """One movement ledger; rows are (qty, transaction_id) per item-day."""

    def __init__(self) -> None:
        self.rows: dict[SnapshotKey, list[tuple[float, str | None]]] = defaultdict(list)
        self.failing_days: set[date] = set()
        self.reads: list[date] = []

    def add(
        self,
        company_id: int,
        item_type: str,
        item_code: str,
        day: date,
        qty: float,
        transaction_id: str | None = None,
    ) -> None:
        self.rows[(company_id, item_type, item_code, day)].append((qty, transaction_id))

    async def read_day_total(self, company_id, item_type, item_code, day, exclude_transaction_id=None):
        self.reads.append(day)
        if day in self.failing_days:
            raise RuntimeError(f"ledger unavailable for {day}")
        return sum(
            qty
            for qty, txn in self.rows.get((company_id, item_type, item_code, day), [])
            if exclude_transaction_id is None or txn != exclude_transaction_id
        )


@pytest.fixture
def today() -> date:
    """Fixed business date for tests."""
    return TODAY


@pytest.fixture
def snapshot_store() -> InMemorySnapshotStore:
    return InMemorySnapshotStore()


@pytest.fixture
def balance_store() -> InMemoryBalanceStore:
    return InMemoryBalanceStore()


@pytest.fixture
def ledgers() -> dict[MovementKind, FakeLedger]:
    return {kind: FakeLedger() for kind in MovementKind}


@pytest.fixture
def aggregator(ledgers) -> DailyAggregator:
    return DailyAggregator(ledgers)


@pytest.fixture
def calculator(snapshot_store, balance_store, aggregator) -> SnapshotCalculator:
    return SnapshotCalculator(snapshot_store, balance_store, aggregator)


# SQLite fixtures


@pytest.fixture
def temp_db_path(tmp_path: Path) -> Path:
    """Create a temporary database path."""
    return tmp_path / "test.db"


@pytest.fixture
async def sqlite_db(temp_db_path: Path) -> AsyncGenerator[Path, None]:
    """Migrated temporary database with the global pool pointed at it."""
    import stockledger.infrastructure.storage.sqlite.connection as conn_module
    from stockledger.infrastructure.storage.sqlite.connection import close_pool
    from stockledger.infrastructure.storage.sqlite.migrations.migrator import (
        initialize_database,
    )

    await initialize_database(temp_db_path, create_backup_before=False)

    conn_module._pool = None
    mock_settings = MagicMock()
    mock_settings.storage.db_path = temp_db_path
    mock_settings.storage.pool_size = 2
    mock_settings.storage.busy_timeout = 5000
    mock_settings.storage.acquire_timeout = 5.0

    with patch.object(conn_module, "get_settings", return_value=mock_settings):
        try:
            yield temp_db_path
        finally:
            await close_pool()


@pytest.fixture
def insert_row(temp_db_path: Path) -> Callable[..., Awaitable[None]]:
    """Insert one row into a table of the test database."""

    async def _insert(table: str, **values) -> None:
        columns = ", ".join(values)
        placeholders = ", ".join("?" for _ in values)
        params = [v.isoformat() if isinstance(v, date) else v for v in values.values()]
        async with aiosqlite.connect(temp_db_path) as conn:
            await conn.execute(
                f"INSERT INTO {table} ({columns}) VALUES ({placeholders})", params
            )
            await conn.commit()

    return _insert
