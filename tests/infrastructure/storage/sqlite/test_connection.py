"""Tests for the SQLite connection pool."""

from pathlib import Path

import pytest

from stockledger.core.exceptions import DatabaseError
from stockledger.infrastructure.storage.sqlite.connection import (
    ConnectionPool,
    read_connection,
    utc_timestamp,
)


@pytest.fixture
async def pool(tmp_path: Path):
    pool = ConnectionPool(tmp_path / "pool.db", pool_size=1, busy_timeout=1000, acquire_timeout=0.05)
    await pool.initialize()
    try:
        yield pool
    finally:
        await pool.close()


class TestConnectionPool:
    async def test_ping(self, pool: ConnectionPool):
        assert await pool.ping() is True

    async def test_exhausted_pool_raises(self, pool: ConnectionPool):
        async with pool.acquire():
            assert pool.in_use == 1
            with pytest.raises(DatabaseError) as exc_info:
                async with pool.acquire():
                    pass
        assert exc_info.value.details["operation"] == "acquire_connection"
        assert pool.in_use == 0

    async def test_transaction_rolls_back(self, pool: ConnectionPool):
        async with pool.transaction() as conn:
            await conn.execute("CREATE TABLE t (v INTEGER)")

        with pytest.raises(RuntimeError):
            async with pool.transaction(immediate=True) as conn:
                await conn.execute("INSERT INTO t VALUES (1)")
                raise RuntimeError("abort")

        async with pool.acquire() as conn:
            cursor = await conn.execute("SELECT COUNT(*) FROM t")
            assert (await cursor.fetchone())[0] == 0

    async def test_wal_mode(self, pool: ConnectionPool):
        async with pool.acquire() as conn:
            cursor = await conn.execute("PRAGMA journal_mode")
            assert (await cursor.fetchone())[0] == "wal"


class TestReadConnection:
    async def test_sqlite_error_becomes_database_error(self, sqlite_db):
        with pytest.raises(DatabaseError) as exc_info:
            async with read_connection("list_widgets") as conn:
                await conn.execute("SELECT * FROM widgets")

        assert exc_info.value.details["operation"] == "list_widgets"
        assert "no such table" in exc_info.value.details["error"]

    async def test_other_errors_pass_through(self, sqlite_db):
        with pytest.raises(KeyError):
            async with read_connection("lookup"):
                raise KeyError("missing")


def test_utc_timestamp_fixed_width():
    from datetime import UTC, datetime

    assert utc_timestamp(datetime(2024, 3, 15, 9, 0, tzinfo=UTC)) == "2024-03-15T09:00:00.000000+00:00"
