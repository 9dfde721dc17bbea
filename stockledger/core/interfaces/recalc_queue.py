"""Abstract interface for the durable recalculation queue."""

from abc import ABC, abstractmethod
from datetime import date, datetime

from stockledger.core.entities.recalc import QueueStats, RecalcQueueEntry, RecalcStatus


class IRecalcQueueStore(ABC):
    """Interface for recalculation queue persistence."""

    @abstractmethod
    async def enqueue(
        self,
        company_id: int,
        item_type: str,
        item_code: str,
        recalc_date: date,
        reason: str | None,
        priority: int,
    ) -> RecalcQueueEntry:
        """Upsert an entry on its (company, item, date) key and arm it as PENDING.

        Repeated enqueues coalesce into one row carrying the latest
        reason, priority and queued_at.
        """
        pass

    @abstractmethod
    async def get(
        self, company_id: int, item_type: str, item_code: str, recalc_date: date
    ) -> RecalcQueueEntry | None:
        """Get the entry for a key."""
        pass

    @abstractmethod
    async def claim_batch(
        self, company_id: int, limit: int, max_retries: int
    ) -> list[RecalcQueueEntry]:
        """Atomically move up to `limit` runnable entries to PROCESSING.

        Runnable means PENDING, or FAILED with retry_count below
        max_retries. Ordered by priority then queued_at.
        """
        pass

    @abstractmethod
    async def mark_done(self, entry_ids: list[int]) -> int:
        """Mark PROCESSING entries DONE. Returns rows changed."""
        pass

    @abstractmethod
    async def mark_failed(self, entry_ids: list[int], error: str) -> list[RecalcQueueEntry]:
        """Mark PROCESSING entries FAILED and bump retry_count."""
        pass

    @abstractmethod
    async def release_stale(self, older_than: datetime) -> int:
        """Return PROCESSING entries started before older_than to PENDING."""
        pass

    @abstractmethod
    async def list_companies_with_work(self, max_retries: int) -> list[int]:
        """Companies that have runnable entries."""
        pass

    @abstractmethod
    async def list_entries(
        self,
        company_id: int | None = None,
        status: RecalcStatus | None = None,
        limit: int = 100,
    ) -> list[RecalcQueueEntry]:
        """List entries, most recently queued first."""
        pass

    @abstractmethod
    async def count_by_status(
        self, max_retries: int, company_id: int | None = None
    ) -> QueueStats:
        """Entry counts per status, plus FAILED entries out of retries."""
        pass
