"""SQLite implementation of scheduler run history."""

import json
from datetime import datetime
from typing import Any

import aiosqlite

from stockledger.config import get_logger
from stockledger.core.entities.job_run import JobRun, JobRunStatus, JobTrigger
from stockledger.core.exceptions import DatabaseError
from stockledger.core.interfaces.job_run_store import IJobRunStore
from stockledger.infrastructure.storage.sqlite.connection import (
    get_transaction,
    read_connection,
    utc_timestamp,
)
from stockledger.infrastructure.storage.sqlite.retry import with_write_retry

logger = get_logger(__name__)


def _filters(job_name: str | None, status: JobRunStatus | None) -> tuple[str, list]:
    clauses = []
    params: list = []
    if job_name is not None:
        clauses.append("job_name = ?")
        params.append(job_name)
    if status is not None:
        clauses.append("status = ?")
        params.append(status.value)
    where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
    return where, params


class SQLiteJobRunStore(IJobRunStore):
    """SQLite implementation of job run storage."""

    async def start(self, job_name: str, triggered_by: JobTrigger) -> JobRun:
        """Insert a RUNNING row."""
        try:
            return await with_write_retry(self._start, job_name, triggered_by)
        except aiosqlite.Error as e:
            raise DatabaseError("start_job_run", str(e)) from e

    async def _start(self, job_name: str, triggered_by: JobTrigger) -> JobRun:
        run = JobRun(job_name=job_name, triggered_by=triggered_by)
        async with get_transaction() as conn:
            cursor = await conn.execute(
                """
                INSERT INTO job_runs (job_name, status, triggered_by, started_at)
                VALUES (?, 'RUNNING', ?, ?)
                """,
                (job_name, triggered_by.value, utc_timestamp(run.started_at)),
            )
            run.id = cursor.lastrowid
        return run

    async def complete(
        self,
        run_id: int,
        total: int,
        successful: int,
        failed: int,
        duration_ms: float,
        summary: dict[str, Any],
    ) -> None:
        """Close a run as COMPLETED."""
        try:
            await with_write_retry(
                self._finish,
                run_id,
                JobRunStatus.COMPLETED,
                duration_ms,
                total=total,
                successful=successful,
                failed=failed,
                summary=json.dumps(summary, default=str),
            )
        except aiosqlite.Error as e:
            raise DatabaseError("complete_job_run", str(e)) from e

    async def fail(self, run_id: int, error_message: str, duration_ms: float) -> None:
        """Close a run as FAILED."""
        try:
            await with_write_retry(
                self._finish,
                run_id,
                JobRunStatus.FAILED,
                duration_ms,
                error_message=error_message,
            )
        except aiosqlite.Error as e:
            raise DatabaseError("fail_job_run", str(e)) from e

    async def _finish(
        self,
        run_id: int,
        status: JobRunStatus,
        duration_ms: float,
        total: int = 0,
        successful: int = 0,
        failed: int = 0,
        error_message: str | None = None,
        summary: str | None = None,
    ) -> None:
        async with get_transaction() as conn:
            await conn.execute(
                """
                UPDATE job_runs
                SET status = ?, completed_at = ?, duration_ms = ?,
                    total_records = ?, successful_records = ?, failed_records = ?,
                    error_message = ?, summary = ?
                WHERE id = ? AND status = 'RUNNING'
                """,
                (
                    status.value,
                    utc_timestamp(),
                    duration_ms,
                    total,
                    successful,
                    failed,
                    error_message,
                    summary,
                    run_id,
                ),
            )

    async def fail_unfinished(self, error_message: str) -> int:
        """Close RUNNING rows left behind by a previous process."""
        try:
            count = await with_write_retry(self._fail_unfinished, error_message)
        except aiosqlite.Error as e:
            raise DatabaseError("fail_unfinished_job_runs", str(e)) from e
        if count:
            logger.warning("unfinished_job_runs_closed", count=count)
        return count

    async def _fail_unfinished(self, error_message: str) -> int:
        async with get_transaction() as conn:
            cursor = await conn.execute(
                """
                UPDATE job_runs
                SET status = 'FAILED', completed_at = ?, error_message = ?
                WHERE status = 'RUNNING'
                """,
                (utc_timestamp(), error_message),
            )
            return cursor.rowcount

    async def list_runs(
        self,
        job_name: str | None = None,
        status: JobRunStatus | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[JobRun]:
        """List runs, most recent first."""
        where, params = _filters(job_name, status)
        async with read_connection("list_job_runs") as conn:
            cursor = await conn.execute(
                f"""
                SELECT * FROM job_runs
                {where}
                ORDER BY started_at DESC, id DESC
                LIMIT ? OFFSET ?
                """,
                (*params, limit, offset),
            )
            rows = await cursor.fetchall()
            return [self._row_to_run(row) for row in rows]

    async def count_runs(
        self, job_name: str | None = None, status: JobRunStatus | None = None
    ) -> int:
        """Count runs matching the filters."""
        where, params = _filters(job_name, status)
        async with read_connection("count_job_runs") as conn:
            cursor = await conn.execute(f"SELECT COUNT(*) FROM job_runs {where}", params)
            row = await cursor.fetchone()
            return row[0]

    def _row_to_run(self, row: aiosqlite.Row) -> JobRun:
        """Convert database row to JobRun entity."""
        return JobRun(
            id=row["id"],
            job_name=row["job_name"],
            status=JobRunStatus(row["status"]),
            triggered_by=JobTrigger(row["triggered_by"]),
            started_at=datetime.fromisoformat(row["started_at"]),
            completed_at=(
                datetime.fromisoformat(row["completed_at"]) if row["completed_at"] else None
            ),
            duration_ms=row["duration_ms"],
            total_records=row["total_records"],
            successful_records=row["successful_records"],
            failed_records=row["failed_records"],
            error_message=row["error_message"],
            summary=json.loads(row["summary"]) if row["summary"] else {},
        )
