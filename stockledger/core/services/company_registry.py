"""
Company existence cache.

Owned by whoever constructs it; entries expire after a TTL and can be
dropped explicitly when a company is created, deactivated or renamed.
"""

import time
from collections.abc import Callable

from stockledger.config import get_logger
from stockledger.core.entities.company import Company
from stockledger.core.exceptions import CompanyNotFoundError
from stockledger.core.interfaces.ledger import ICompanyStore

logger = get_logger(__name__)


class CompanyRegistry:
    """TTL cache in front of ICompanyStore."""

    def __init__(
        self,
        store: ICompanyStore,
        ttl_seconds: float = 300,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._store = store
        self._ttl = ttl_seconds
        self._clock = clock
        self._entries: dict[int, tuple[Company, float]] = {}

    async def get(self, company_id: int) -> Company | None:
        """Get an active company, using the cache when fresh."""
        cached = self._entries.get(company_id)
        now = self._clock()
        if cached is not None and now - cached[1] < self._ttl:
            return cached[0]

        company = await self._store.get(company_id)
        if company is None or not company.is_active:
            # Misses are not cached; arbitrary ids must not grow the cache
            self._entries.pop(company_id, None)
            return None
        self._entries[company_id] = (company, now)
        return company

    async def require(self, company_id: int) -> Company:
        """Get an active company or raise CompanyNotFoundError."""
        company = await self.get(company_id)
        if company is None:
            raise CompanyNotFoundError(company_id)
        return company

    async def list_active(self) -> list[Company]:
        """Always reads through; refreshes cached entries as a side effect."""
        companies = await self._store.list_active()
        now = self._clock()
        for company in companies:
            self._entries[company.id] = (company, now)
        return companies

    def invalidate(self, company_id: int | None = None) -> None:
        """Drop one company, or everything when company_id is None."""
        if company_id is None:
            self._entries.clear()
        else:
            self._entries.pop(company_id, None)
        logger.debug("company_cache_invalidated", company_id=company_id)
