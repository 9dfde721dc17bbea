"""
Drain Recalc Queue Use Case (the queue worker).

Claims a batch of entries per company, runs one cascade per item key from
its earliest claimed date, and records DONE or FAILED on each entry.
"""

import asyncio
from collections import defaultdict
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, date, datetime, timedelta

import structlog

from stockledger.config import business_today, get_logger, get_settings
from stockledger.core.entities.recalc import RecalcQueueEntry
from stockledger.core.exceptions import SchedulerTaskFailure, StockLedgerError
from stockledger.core.interfaces.recalc_queue import IRecalcQueueStore
from stockledger.core.services.cascade_recalculator import CascadeRecalculator

logger = get_logger(__name__)

ItemKey = tuple[int, str, str]


@dataclass
class DrainResult:
    """Outcome of one drain tick for one company."""

    company_id: int
    claimed: int = 0
    done: int = 0
    failed: int = 0
    escalated: int = 0
    released: int = 0
    failures: list[SchedulerTaskFailure] = field(default_factory=list)


class DrainRecalcQueueUseCase:
    """
    Queue worker.

    Different item keys run concurrently (bounded); dates within a key run
    strictly in order inside the cascade. Overlapping drains of the same
    company in this process are serialized.
    """

    def __init__(
        self,
        queue_store: IRecalcQueueStore | None = None,
        cascade: CascadeRecalculator | None = None,
        batch_size: int | None = None,
        max_retries: int | None = None,
        max_concurrency: int | None = None,
        stale_claim_minutes: int | None = None,
        today: Callable[[], date] = business_today,
    ):
        settings = get_settings()
        self._queue_store = queue_store
        self._cascade = cascade
        self.batch_size = batch_size or settings.recalc.batch_size
        self.max_retries = max_retries or settings.recalc.max_retries
        self.max_concurrency = max_concurrency or settings.recalc.max_concurrency
        self.stale_claim_minutes = stale_claim_minutes or settings.engine.stale_claim_minutes
        self._today = today
        self._company_locks: dict[int, asyncio.Lock] = defaultdict(asyncio.Lock)

    def _get_queue_store(self) -> IRecalcQueueStore:
        if self._queue_store is None:
            from stockledger.application.services import get_recalc_queue_store

            self._queue_store = get_recalc_queue_store()
        return self._queue_store

    def _get_cascade(self) -> CascadeRecalculator:
        if self._cascade is None:
            from stockledger.application.services import get_cascade_recalculator

            self._cascade = get_cascade_recalculator()
        return self._cascade

    async def execute(self, company_id: int) -> DrainResult:
        """Drain one batch for one company."""
        released = await self._release_stale()
        result = await self._drain_locked(company_id)
        result.released = released
        return result

    async def _release_stale(self) -> int:
        cutoff = datetime.now(UTC) - timedelta(minutes=self.stale_claim_minutes)
        return await self._get_queue_store().release_stale(cutoff)

    async def _drain_locked(self, company_id: int) -> DrainResult:
        async with self._company_locks[company_id]:
            with structlog.contextvars.bound_contextvars(company_id=company_id):
                return await self._drain(company_id)

    async def execute_all(self) -> list[DrainResult]:
        """Drain one batch for every company that has runnable entries."""
        queue = self._get_queue_store()
        released = await self._release_stale()
        company_ids = await queue.list_companies_with_work(self.max_retries)
        if not company_ids:
            logger.debug("recalc_queue_empty", released=released)
            return []

        outcomes = await asyncio.gather(
            *(self._drain_locked(company_id) for company_id in company_ids),
            return_exceptions=True,
        )

        results: list[DrainResult] = []
        for company_id, outcome in zip(company_ids, outcomes, strict=True):
            if isinstance(outcome, BaseException):
                if not isinstance(outcome, Exception):
                    raise outcome
                failure = SchedulerTaskFailure("drain", company_id, str(outcome))
                logger.error("recalc_drain_company_failed", **failure.details)
                results.append(DrainResult(company_id=company_id, failures=[failure]))
            else:
                results.append(outcome)
        return results

    async def _drain(self, company_id: int) -> DrainResult:
        queue = self._get_queue_store()
        result = DrainResult(company_id=company_id)

        entries = await queue.claim_batch(company_id, self.batch_size, self.max_retries)
        result.claimed = len(entries)
        if not entries:
            return result

        groups: dict[ItemKey, list[RecalcQueueEntry]] = {}
        for entry in entries:
            groups.setdefault(entry.item_key, []).append(entry)

        semaphore = asyncio.Semaphore(self.max_concurrency)
        await asyncio.gather(
            *(
                self._process_key(key, group, semaphore, result)
                for key, group in groups.items()
            )
        )

        logger.info(
            "recalc_drain_complete",
            company_id=company_id,
            claimed=result.claimed,
            keys=len(groups),
            done=result.done,
            failed=result.failed,
            escalated=result.escalated,
        )
        return result

    async def _process_key(
        self,
        key: ItemKey,
        entries: list[RecalcQueueEntry],
        semaphore: asyncio.Semaphore,
        result: DrainResult,
    ) -> None:
        company_id, item_type, item_code = key
        ids = [e.id for e in entries if e.id is not None]
        start = min(e.recalc_date for e in entries)
        end = max(self._today(), max(e.recalc_date for e in entries))

        async with semaphore:
            try:
                cascade = await self._get_cascade().recalc_from(
                    company_id, item_type, item_code, start, end
                )
                if cascade.succeeded:
                    result.done += await self._get_queue_store().mark_done(ids)
                    return

                failed = await self._get_queue_store().mark_failed(
                    ids, cascade.error or "cascade failed"
                )
            except StockLedgerError as e:
                # Entries stay PROCESSING and are released as stale later
                failure = SchedulerTaskFailure("drain", company_id, e.message, item_code)
                result.failures.append(failure)
                logger.error("recalc_queue_update_failed", **failure.details)
                return

        result.failed += len(failed)
        result.failures.append(
            SchedulerTaskFailure(
                "drain",
                company_id,
                cascade.error or "cascade failed",
                item_code,
                cascade.failed_date,
            )
        )
        for entry in failed:
            if entry.retry_count >= self.max_retries:
                result.escalated += 1
                logger.error(
                    "recalc_entry_escalated",
                    entry_id=entry.id,
                    company_id=entry.company_id,
                    item_type=entry.item_type,
                    item_code=entry.item_code,
                    recalc_date=entry.recalc_date.isoformat(),
                    retry_count=entry.retry_count,
                    error=entry.error_message,
                )
