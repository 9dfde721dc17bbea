"""Abstract interface for daily snapshot storage."""

from abc import ABC, abstractmethod
from datetime import date

from stockledger.core.entities.snapshot import StockSnapshot


class ISnapshotStore(ABC):
    """Interface for stock snapshot persistence."""

    @abstractmethod
    async def upsert(self, snapshot: StockSnapshot) -> StockSnapshot:
        """Insert or overwrite the snapshot for its (company, item, date) key.

        A blank item name or uom never overwrites a stored value.
        """
        pass

    @abstractmethod
    async def get(
        self, company_id: int, item_type: str, item_code: str, snapshot_date: date
    ) -> StockSnapshot | None:
        """Get the snapshot for an exact date."""
        pass

    @abstractmethod
    async def get_latest_on_or_before(
        self, company_id: int, item_type: str, item_code: str, as_of: date
    ) -> StockSnapshot | None:
        """Get the most recent snapshot dated on or before as_of."""
        pass

    @abstractmethod
    async def list_for_item(
        self,
        company_id: int,
        item_type: str,
        item_code: str,
        start: date,
        end: date,
    ) -> list[StockSnapshot]:
        """List snapshots of one item in a date range, ordered by date ASC."""
        pass

    @abstractmethod
    async def list_for_date(
        self, company_id: int, snapshot_date: date
    ) -> list[StockSnapshot]:
        """List every item's snapshot for one date."""
        pass

    @abstractmethod
    async def list_snapshot_dates(
        self, company_id: int, start: date, end: date
    ) -> list[date]:
        """Distinct dates in range that have at least one snapshot."""
        pass

    @abstractmethod
    async def find_item_types(self, company_id: int, item_code: str) -> list[str]:
        """Distinct item types an item code has snapshots under."""
        pass
