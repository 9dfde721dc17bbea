"""Enqueue Recalc Use Case: durable request to recompute an item from a date."""

from collections.abc import Callable
from datetime import date

from stockledger.application.dto.requests import EnqueueRecalcRequest
from stockledger.config import business_today, get_logger
from stockledger.core.entities.recalc import RecalcQueueEntry, priority_for
from stockledger.core.interfaces.recalc_queue import IRecalcQueueStore
from stockledger.core.services.company_registry import CompanyRegistry

logger = get_logger(__name__)


class EnqueueRecalcUseCase:
    """Called by every ledger mutation (create, edit, delete, reversal)."""

    def __init__(
        self,
        queue_store: IRecalcQueueStore | None = None,
        company_registry: CompanyRegistry | None = None,
        today: Callable[[], date] = business_today,
    ):
        self._queue_store = queue_store
        self._registry = company_registry
        self._today = today

    def _get_queue_store(self) -> IRecalcQueueStore:
        if self._queue_store is None:
            from stockledger.application.services import get_recalc_queue_store

            self._queue_store = get_recalc_queue_store()
        return self._queue_store

    def _get_registry(self) -> CompanyRegistry:
        if self._registry is None:
            from stockledger.application.services import get_company_registry

            self._registry = get_company_registry()
        return self._registry

    async def execute(self, request: EnqueueRecalcRequest) -> RecalcQueueEntry:
        """
        Upsert the queue entry for the mutated item-date.

        Same-day work gets priority -1, backdated work 0.

        Raises:
            CompanyNotFoundError: Unknown or inactive company.
        """
        await self._get_registry().require(request.company_id)

        priority = priority_for(request.recalc_date, self._today())
        entry = await self._get_queue_store().enqueue(
            company_id=request.company_id,
            item_type=request.item_type,
            item_code=request.item_code,
            recalc_date=request.recalc_date,
            reason=request.reason,
            priority=priority,
        )
        return entry
