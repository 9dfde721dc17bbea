"""SQLite implementation of the recalculation queue."""

from datetime import date, datetime

import aiosqlite

from stockledger.config import get_logger
from stockledger.core.entities.recalc import QueueStats, RecalcQueueEntry, RecalcStatus
from stockledger.core.exceptions import DatabaseError
from stockledger.core.interfaces.recalc_queue import IRecalcQueueStore
from stockledger.infrastructure.storage.sqlite.connection import (
    get_transaction,
    read_connection,
    utc_timestamp,
)
from stockledger.infrastructure.storage.sqlite.retry import with_write_retry

logger = get_logger(__name__)

# A fresh enqueue is new work: it re-arms whatever state the row was in.
_ENQUEUE_SQL = """
INSERT INTO recalc_queue (
    company_id, item_type, item_code, recalc_date,
    status, priority, reason, queued_at, retry_count
) VALUES (?, ?, ?, ?, 'PENDING', ?, ?, ?, 0)
ON CONFLICT (company_id, item_type, item_code, recalc_date) DO UPDATE SET
    status = 'PENDING',
    priority = excluded.priority,
    reason = excluded.reason,
    queued_at = excluded.queued_at,
    started_at = NULL,
    completed_at = NULL,
    retry_count = 0,
    error_message = NULL
"""

_RUNNABLE = "(status = 'PENDING' OR (status = 'FAILED' AND retry_count < ?))"


def _placeholders(values: list) -> str:
    return ", ".join("?" for _ in values)


class SQLiteRecalcQueueStore(IRecalcQueueStore):
    """SQLite implementation of recalculation queue storage."""

    async def enqueue(
        self,
        company_id: int,
        item_type: str,
        item_code: str,
        recalc_date: date,
        reason: str | None,
        priority: int,
    ) -> RecalcQueueEntry:
        """Upsert and arm an entry as PENDING."""
        try:
            return await with_write_retry(
                self._enqueue, company_id, item_type, item_code, recalc_date, reason, priority
            )
        except aiosqlite.Error as e:
            raise DatabaseError("enqueue_recalc", str(e)) from e

    async def _enqueue(
        self,
        company_id: int,
        item_type: str,
        item_code: str,
        recalc_date: date,
        reason: str | None,
        priority: int,
    ) -> RecalcQueueEntry:
        async with get_transaction() as conn:
            await conn.execute(
                _ENQUEUE_SQL,
                (
                    company_id,
                    item_type,
                    item_code,
                    recalc_date.isoformat(),
                    priority,
                    reason,
                    utc_timestamp(),
                ),
            )
            cursor = await conn.execute(
                """
                SELECT * FROM recalc_queue
                WHERE company_id = ? AND item_type = ? AND item_code = ?
                  AND recalc_date = ?
                """,
                (company_id, item_type, item_code, recalc_date.isoformat()),
            )
            row = await cursor.fetchone()
            entry = self._row_to_entry(row)
            logger.info(
                "recalc_enqueued",
                entry_id=entry.id,
                company_id=company_id,
                item_type=item_type,
                item_code=item_code,
                recalc_date=recalc_date.isoformat(),
                priority=priority,
                reason=reason,
            )
            return entry

    async def get(
        self, company_id: int, item_type: str, item_code: str, recalc_date: date
    ) -> RecalcQueueEntry | None:
        """Get the entry for a key."""
        async with read_connection("get_recalc_entry") as conn:
            cursor = await conn.execute(
                """
                SELECT * FROM recalc_queue
                WHERE company_id = ? AND item_type = ? AND item_code = ?
                  AND recalc_date = ?
                """,
                (company_id, item_type, item_code, recalc_date.isoformat()),
            )
            row = await cursor.fetchone()
            if row is None:
                return None
            return self._row_to_entry(row)

    async def claim_batch(
        self, company_id: int, limit: int, max_retries: int
    ) -> list[RecalcQueueEntry]:
        """Atomically claim up to `limit` runnable entries."""
        try:
            return await with_write_retry(self._claim_batch, company_id, limit, max_retries)
        except aiosqlite.Error as e:
            raise DatabaseError("claim_recalc_batch", str(e)) from e

    async def _claim_batch(
        self, company_id: int, limit: int, max_retries: int
    ) -> list[RecalcQueueEntry]:
        async with get_transaction(immediate=True) as conn:
            cursor = await conn.execute(
                f"""
                SELECT id FROM recalc_queue
                WHERE company_id = ? AND {_RUNNABLE}
                ORDER BY priority ASC, queued_at ASC, id ASC
                LIMIT ?
                """,
                (company_id, max_retries, limit),
            )
            ids = [row[0] for row in await cursor.fetchall()]
            if not ids:
                return []

            await conn.execute(
                f"""
                UPDATE recalc_queue
                SET status = 'PROCESSING', started_at = ?, completed_at = NULL
                WHERE id IN ({_placeholders(ids)})
                """,
                (utc_timestamp(), *ids),
            )
            cursor = await conn.execute(
                f"""
                SELECT * FROM recalc_queue
                WHERE id IN ({_placeholders(ids)})
                ORDER BY priority ASC, queued_at ASC, id ASC
                """,
                ids,
            )
            rows = await cursor.fetchall()
            return [self._row_to_entry(row) for row in rows]

    async def mark_done(self, entry_ids: list[int]) -> int:
        """Mark still-PROCESSING entries DONE."""
        if not entry_ids:
            return 0
        try:
            return await with_write_retry(self._mark_done, entry_ids)
        except aiosqlite.Error as e:
            raise DatabaseError("mark_recalc_done", str(e)) from e

    async def _mark_done(self, entry_ids: list[int]) -> int:
        async with get_transaction() as conn:
            cursor = await conn.execute(
                f"""
                UPDATE recalc_queue
                SET status = 'DONE', completed_at = ?, error_message = NULL
                WHERE id IN ({_placeholders(entry_ids)}) AND status = 'PROCESSING'
                """,
                (utc_timestamp(), *entry_ids),
            )
            return cursor.rowcount

    async def mark_failed(self, entry_ids: list[int], error: str) -> list[RecalcQueueEntry]:
        """Mark still-PROCESSING entries FAILED and bump retry_count."""
        if not entry_ids:
            return []
        try:
            return await with_write_retry(self._mark_failed, entry_ids, error)
        except aiosqlite.Error as e:
            raise DatabaseError("mark_recalc_failed", str(e)) from e

    async def _mark_failed(self, entry_ids: list[int], error: str) -> list[RecalcQueueEntry]:
        async with get_transaction() as conn:
            cursor = await conn.execute(
                f"""
                SELECT id FROM recalc_queue
                WHERE id IN ({_placeholders(entry_ids)}) AND status = 'PROCESSING'
                """,
                entry_ids,
            )
            ids = [row[0] for row in await cursor.fetchall()]
            if not ids:
                return []

            await conn.execute(
                f"""
                UPDATE recalc_queue
                SET status = 'FAILED', retry_count = retry_count + 1,
                    error_message = ?, completed_at = ?
                WHERE id IN ({_placeholders(ids)})
                """,
                (error[:1000], utc_timestamp(), *ids),
            )
            cursor = await conn.execute(
                f"SELECT * FROM recalc_queue WHERE id IN ({_placeholders(ids)})",
                ids,
            )
            rows = await cursor.fetchall()
            return [self._row_to_entry(row) for row in rows]

    async def release_stale(self, older_than: datetime) -> int:
        """Return abandoned PROCESSING claims to PENDING."""
        try:
            return await with_write_retry(self._release_stale, older_than)
        except aiosqlite.Error as e:
            raise DatabaseError("release_stale_claims", str(e)) from e

    async def _release_stale(self, older_than: datetime) -> int:
        async with get_transaction() as conn:
            cursor = await conn.execute(
                """
                UPDATE recalc_queue
                SET status = 'PENDING', started_at = NULL
                WHERE status = 'PROCESSING' AND started_at < ?
                """,
                (utc_timestamp(older_than),),
            )
            if cursor.rowcount:
                logger.warning("stale_recalc_claims_released", count=cursor.rowcount)
            return cursor.rowcount

    async def list_companies_with_work(self, max_retries: int) -> list[int]:
        """Companies that have runnable entries."""
        async with read_connection("list_companies_with_work") as conn:
            cursor = await conn.execute(
                f"""
                SELECT DISTINCT company_id FROM recalc_queue
                WHERE {_RUNNABLE}
                ORDER BY company_id
                """,
                (max_retries,),
            )
            rows = await cursor.fetchall()
            return [row[0] for row in rows]

    async def list_entries(
        self,
        company_id: int | None = None,
        status: RecalcStatus | None = None,
        limit: int = 100,
    ) -> list[RecalcQueueEntry]:
        """List entries, most recently queued first."""
        clauses = []
        params: list = []
        if company_id is not None:
            clauses.append("company_id = ?")
            params.append(company_id)
        if status is not None:
            clauses.append("status = ?")
            params.append(status.value)
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""

        async with read_connection("list_recalc_entries") as conn:
            cursor = await conn.execute(
                f"""
                SELECT * FROM recalc_queue
                {where}
                ORDER BY queued_at DESC, id DESC
                LIMIT ?
                """,
                (*params, limit),
            )
            rows = await cursor.fetchall()
            return [self._row_to_entry(row) for row in rows]

    async def count_by_status(
        self, max_retries: int, company_id: int | None = None
    ) -> QueueStats:
        """Entry counts per status, plus FAILED entries out of retries."""
        where = "WHERE company_id = ?" if company_id is not None else ""
        params = (company_id,) if company_id is not None else ()
        stats = QueueStats(company_id=company_id)

        async with read_connection("count_recalc_entries") as conn:
            cursor = await conn.execute(
                f"""
                SELECT status,
                       COUNT(*) AS total,
                       SUM(CASE WHEN retry_count >= ? THEN 1 ELSE 0 END) AS exhausted
                FROM recalc_queue
                {where}
                GROUP BY status
                """,
                (max_retries, *params),
            )
            for row in await cursor.fetchall():
                status = RecalcStatus(row["status"])
                stats.counts[status] = row["total"]
                if status is RecalcStatus.FAILED:
                    stats.escalated = row["exhausted"] or 0
        return stats

    def _row_to_entry(self, row: aiosqlite.Row) -> RecalcQueueEntry:
        """Convert database row to RecalcQueueEntry entity."""
        return RecalcQueueEntry(
            id=row["id"],
            company_id=row["company_id"],
            item_type=row["item_type"],
            item_code=row["item_code"],
            recalc_date=date.fromisoformat(row["recalc_date"]),
            status=RecalcStatus(row["status"]),
            priority=row["priority"],
            reason=row["reason"],
            queued_at=datetime.fromisoformat(row["queued_at"]),
            started_at=datetime.fromisoformat(row["started_at"]) if row["started_at"] else None,
            completed_at=(
                datetime.fromisoformat(row["completed_at"]) if row["completed_at"] else None
            ),
            retry_count=row["retry_count"],
            error_message=row["error_message"],
        )
