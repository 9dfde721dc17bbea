"""Abstract interfaces for the read side of external ledgers."""

from abc import ABC, abstractmethod
from datetime import date

from stockledger.core.entities.company import Company
from stockledger.core.entities.item import ItemRef
from stockledger.core.entities.snapshot import BeginningBalance


class IMovementLedger(ABC):
    """One movement ledger, summed per item per day."""

    @abstractmethod
    async def read_day_total(
        self,
        company_id: int,
        item_type: str,
        item_code: str,
        day: date,
        exclude_transaction_id: str | None = None,
    ) -> float:
        """Net quantity for the item on `day`.

        Soft-deleted rows are excluded and reversals are already negated.
        Rows belonging to exclude_transaction_id are left out.
        """
        pass


class IBeginningBalanceStore(ABC):
    """Read access to beginning balances."""

    @abstractmethod
    async def find_for_item(
        self, company_id: int, item_type: str, item_code: str
    ) -> list[BeginningBalance]:
        """All beginning balance rows for an item (normally zero or one)."""
        pass

    @abstractmethod
    async def find_item_types(self, company_id: int, item_code: str) -> list[str]:
        """Distinct item types an item code has beginning balances under."""
        pass


class ICompanyStore(ABC):
    """Read access to companies."""

    @abstractmethod
    async def get(self, company_id: int) -> Company | None:
        """Get company by ID."""
        pass

    @abstractmethod
    async def list_active(self) -> list[Company]:
        """List active companies."""
        pass


class ITrackedItemSource(ABC):
    """Discovers every item a company tracks, moving or not."""

    @abstractmethod
    async def list_items(self, company_id: int) -> list[ItemRef]:
        """Union of items with beginning balances, snapshots or movements."""
        pass
