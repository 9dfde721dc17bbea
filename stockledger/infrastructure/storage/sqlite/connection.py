"""
Async SQLite connection pool with aiosqlite.

The API (availability reads) and the background worker (snapshot and
queue writes) share one pool per process. WAL mode keeps readers off the
writer's lock; BEGIN IMMEDIATE transactions serialize queue claims.
"""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from pathlib import Path

import aiosqlite

from stockledger.config import get_logger, get_settings
from stockledger.core.exceptions import DatabaseError

logger = get_logger(__name__)


def utc_timestamp(moment: datetime | None = None) -> str:
    """Fixed-width ISO timestamp so TEXT columns sort chronologically."""
    return (moment or datetime.now(UTC)).astimezone(UTC).isoformat(timespec="microseconds")


class ConnectionPool:
    """Fixed-size pool of aiosqlite connections to one database file."""

    def __init__(
        self,
        db_path: Path,
        pool_size: int = 5,
        busy_timeout: int = 30000,
        acquire_timeout: float = 10.0,
    ):
        self.db_path = db_path
        self.pool_size = pool_size
        self.busy_timeout = busy_timeout
        self.acquire_timeout = acquire_timeout

        self._idle: asyncio.Queue[aiosqlite.Connection] = asyncio.Queue(maxsize=pool_size)
        self._connections: list[aiosqlite.Connection] = []
        self._initialized = False
        self._lock = asyncio.Lock()

    @property
    def in_use(self) -> int:
        return len(self._connections) - self._idle.qsize()

    async def initialize(self) -> None:
        """Open every connection up front; later calls are no-ops."""
        async with self._lock:
            if self._initialized:
                return

            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            try:
                for _ in range(self.pool_size):
                    conn = await self._connect()
                    self._connections.append(conn)
                    self._idle.put_nowait(conn)
            except aiosqlite.Error as e:
                await self._close_all()
                raise DatabaseError("open_pool", str(e)) from e

            self._initialized = True
            logger.info(
                "connection_pool_initialized",
                db_path=str(self.db_path),
                pool_size=self.pool_size,
            )

    async def _connect(self) -> aiosqlite.Connection:
        conn = await aiosqlite.connect(self.db_path)
        await conn.execute("PRAGMA journal_mode=WAL")
        await conn.execute("PRAGMA synchronous=NORMAL")
        await conn.execute(f"PRAGMA busy_timeout={self.busy_timeout}")
        conn.row_factory = aiosqlite.Row
        return conn

    @asynccontextmanager
    async def acquire(self) -> AsyncIterator[aiosqlite.Connection]:
        """
        Borrow a connection for the duration of the block.

        Raises:
            DatabaseError: No connection became free within acquire_timeout.
        """
        if not self._initialized:
            await self.initialize()

        try:
            conn = await asyncio.wait_for(self._idle.get(), timeout=self.acquire_timeout)
        except TimeoutError as e:
            logger.error(
                "connection_pool_exhausted",
                pool_size=self.pool_size,
                waited_s=self.acquire_timeout,
            )
            raise DatabaseError(
                "acquire_connection",
                f"no connection free after {self.acquire_timeout}s",
            ) from e

        try:
            yield conn
        finally:
            self._idle.put_nowait(conn)

    @asynccontextmanager
    async def transaction(self, immediate: bool = False) -> AsyncIterator[aiosqlite.Connection]:
        """
        Borrow a connection inside a transaction.

        Commits when the block exits normally, rolls back on any exception.

        Args:
            immediate: Take the write lock up front (BEGIN IMMEDIATE), for
                read-then-write sequences such as claiming queue entries.
        """
        async with self.acquire() as conn:
            try:
                if immediate:
                    await conn.execute("BEGIN IMMEDIATE")
                yield conn
                await conn.commit()
            except BaseException:
                await conn.rollback()
                raise

    async def ping(self) -> bool:
        """Run a trivial query; False if the database is unreachable."""
        try:
            async with self.acquire() as conn:
                cursor = await conn.execute("SELECT 1")
                await cursor.fetchone()
            return True
        except (aiosqlite.Error, DatabaseError) as e:
            logger.warning("database_ping_failed", error=str(e))
            return False

    async def _close_all(self) -> None:
        for conn in self._connections:
            await conn.close()
        self._connections.clear()
        while not self._idle.empty():
            self._idle.get_nowait()

    async def close(self) -> None:
        async with self._lock:
            await self._close_all()
            self._initialized = False
            logger.info("connection_pool_closed", db_path=str(self.db_path))


_pool: ConnectionPool | None = None


async def get_pool() -> ConnectionPool:
    """Get or create the process-wide pool from storage settings."""
    global _pool
    if _pool is None:
        storage = get_settings().storage
        _pool = ConnectionPool(
            db_path=storage.db_path,
            pool_size=storage.pool_size,
            busy_timeout=storage.busy_timeout,
            acquire_timeout=storage.acquire_timeout,
        )
        await _pool.initialize()
    return _pool


async def close_pool() -> None:
    global _pool
    if _pool is not None:
        await _pool.close()
        _pool = None


@asynccontextmanager
async def get_connection() -> AsyncIterator[aiosqlite.Connection]:
    """Borrow a connection from the process-wide pool."""
    pool = await get_pool()
    async with pool.acquire() as conn:
        yield conn


@asynccontextmanager
async def read_connection(operation: str) -> AsyncIterator[aiosqlite.Connection]:
    """
    Borrow a connection for a read.

    aiosqlite errors raised inside the block surface as DatabaseError
    tagged with `operation`.
    """
    try:
        async with get_connection() as conn:
            yield conn
    except aiosqlite.Error as e:
        logger.error("sqlite_read_failed", operation=operation, error=str(e))
        raise DatabaseError(operation, str(e)) from e


@asynccontextmanager
async def get_transaction(immediate: bool = False) -> AsyncIterator[aiosqlite.Connection]:
    """Borrow a connection from the process-wide pool inside a transaction."""
    pool = await get_pool()
    async with pool.transaction(immediate=immediate) as conn:
        yield conn
